from typing import Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

import models
import schemas
from transitions import OPEN_STATUSES


# --- Job CRUD ---
def create_job(db: Session, job: schemas.JobCreate, user_id: str) -> models.JobOpportunity:
    db_job = models.JobOpportunity(
        user_id=user_id,
        title=job.title,
        company=job.company,
        current_status=job.current_status,
        deadline=job.deadline,
    )
    db.add(db_job)
    db.flush()  # Assign ID without committing
    return db_job


def get_job(db: Session, job_id: str) -> Optional[models.JobOpportunity]:
    """Get a job by primary key regardless of owner; callers decide 403 vs 404."""
    return db.get(models.JobOpportunity, job_id)


def get_job_for_user(db: Session, job_id: str, user_id: str) -> Optional[models.JobOpportunity]:
    return (
        db.query(models.JobOpportunity)
        .filter(models.JobOpportunity.id == job_id, models.JobOpportunity.user_id == user_id)
        .first()
    )


def get_jobs_by_ids_for_user(
    db: Session, job_ids: Sequence[str], user_id: str
) -> list[models.JobOpportunity]:
    return (
        db.query(models.JobOpportunity)
        .filter(models.JobOpportunity.id.in_(job_ids), models.JobOpportunity.user_id == user_id)
        .all()
    )


def get_active_jobs_for_user(db: Session, user_id: str) -> list[models.JobOpportunity]:
    return (
        db.query(models.JobOpportunity)
        .filter(
            models.JobOpportunity.user_id == user_id,
            models.JobOpportunity.current_status != "archived",
        )
        .order_by(models.JobOpportunity.created_at.desc())
        .all()
    )


def get_archived_jobs_for_user(db: Session, user_id: str) -> list[models.JobOpportunity]:
    return (
        db.query(models.JobOpportunity)
        .filter(
            models.JobOpportunity.user_id == user_id,
            models.JobOpportunity.current_status == "archived",
        )
        .order_by(models.JobOpportunity.archived_at.desc())
        .all()
    )


def delete_job(db: Session, db_job: models.JobOpportunity) -> None:
    # ORM cascade removes history, referral requests and job contacts
    db.delete(db_job)


# --- Application history ---
def add_history_entry(db: Session, entry: models.ApplicationHistory) -> models.ApplicationHistory:
    db.add(entry)
    return entry


def get_history_for_job(
    db: Session, job_id: str, limit: Optional[int] = None
) -> list[models.ApplicationHistory]:
    query = (
        db.query(models.ApplicationHistory)
        .filter(models.ApplicationHistory.job_id == job_id)
        .order_by(models.ApplicationHistory.timestamp.desc(), models.ApplicationHistory.id.desc())
    )
    if limit is not None:
        query = query.limit(limit)
    return query.all()


# --- Professional contacts ---
def create_contact(
    db: Session, contact: schemas.ContactCreate, user_id: str
) -> models.ProfessionalContact:
    db_contact = models.ProfessionalContact(
        user_id=user_id,
        full_name=contact.full_name,
        first_name=contact.first_name,
        email=contact.email,
        company=contact.company,
        job_title=contact.job_title,
        relationship_type=contact.relationship_type,
        relationship_strength=contact.relationship_strength,
        last_contact_date=contact.last_contact_date,
        linked_job_ids=list(contact.linked_job_ids),
    )
    db.add(db_contact)
    db.flush()
    return db_contact


def get_contact_for_user(
    db: Session, contact_id: str, user_id: str
) -> Optional[models.ProfessionalContact]:
    return (
        db.query(models.ProfessionalContact)
        .filter(
            models.ProfessionalContact.id == contact_id,
            models.ProfessionalContact.user_id == user_id,
        )
        .first()
    )


def get_contacts_for_user(db: Session, user_id: str) -> list[models.ProfessionalContact]:
    """Strong relationships first, creation order within equal strength."""
    return (
        db.query(models.ProfessionalContact)
        .filter(models.ProfessionalContact.user_id == user_id)
        .order_by(
            models.ProfessionalContact.relationship_strength.desc(),
            models.ProfessionalContact.created_at.asc(),
        )
        .all()
    )


def set_relationship_strength(
    db: Session, contact: models.ProfessionalContact, strength: int
) -> models.ProfessionalContact:
    contact.relationship_strength = strength
    db.add(contact)
    db.flush()
    return contact


# --- Referral requests ---
def create_referral_request(db: Session, **fields) -> models.ReferralRequest:
    db_request = models.ReferralRequest(**fields)
    db.add(db_request)
    db.flush()
    return db_request


def get_referral_request_for_user(
    db: Session, request_id: str, user_id: str
) -> Optional[models.ReferralRequest]:
    return (
        db.query(models.ReferralRequest)
        .options(joinedload(models.ReferralRequest.job), joinedload(models.ReferralRequest.contact))
        .filter(models.ReferralRequest.id == request_id, models.ReferralRequest.user_id == user_id)
        .first()
    )


def list_referral_requests(
    db: Session,
    user_id: str,
    job_id: Optional[str] = None,
    contact_id: Optional[str] = None,
    status: Optional[str] = None,
) -> list[models.ReferralRequest]:
    query = (
        db.query(models.ReferralRequest)
        .options(joinedload(models.ReferralRequest.job), joinedload(models.ReferralRequest.contact))
        .filter(models.ReferralRequest.user_id == user_id)
    )
    if job_id:
        query = query.filter(models.ReferralRequest.job_id == job_id)
    if contact_id:
        query = query.filter(models.ReferralRequest.contact_id == contact_id)
    if status:
        query = query.filter(models.ReferralRequest.status == status)
    return query.order_by(models.ReferralRequest.created_at.desc()).all()


def update_referral_request(
    db: Session, db_request: models.ReferralRequest, fields: dict
) -> models.ReferralRequest:
    for key, value in fields.items():
        setattr(db_request, key, value)
    db.add(db_request)
    db.flush()
    return db_request


def delete_referral_request(db: Session, db_request: models.ReferralRequest) -> None:
    db.delete(db_request)
    db.flush()


def count_open_requests_for_contact(db: Session, contact_id: str) -> int:
    return (
        db.query(func.count(models.ReferralRequest.id))
        .filter(
            models.ReferralRequest.contact_id == contact_id,
            models.ReferralRequest.status.in_(OPEN_STATUSES),
        )
        .scalar()
        or 0
    )

