"""Job opportunity lifecycle: archive, bulk archive, restore, permanent delete.

Every status change is written together with its history entry in a single
transaction. Ownership and state checks run before anything is written.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

import structlog
from sqlalchemy.orm import Session

import crud
import models
import referrals
import schemas
from database import transaction
from errors import ForbiddenError, InvalidStatusError, NotFoundError, ValidationError
from history import ARCHIVED, previous_status, record_status_change

logger = structlog.get_logger(__name__)

DEFAULT_RESTORE_STATUS = "interested"


def get_owned_job(db: Session, job_id: str, user_id: str) -> models.JobOpportunity:
    """Load a job, distinguishing missing (404) from someone else's (403)."""
    job = crud.get_job(db, job_id)
    if job is None:
        raise NotFoundError("Job opportunity not found")
    if job.user_id != user_id:
        raise ForbiddenError("Not authorized to access this job opportunity")
    return job


def create_job(
    db: Session, job_in: schemas.JobCreate, user_id: str, now: Optional[datetime] = None
) -> models.JobOpportunity:
    now = now or models.utcnow()
    with transaction(db, "Failed to create job opportunity"):
        job = crud.create_job(db, job_in, user_id)
        change = record_status_change(job, job.current_status, now, notes="Job created")
        change.apply_to(job)
        crud.add_history_entry(db, change.entry)
    logger.info("job_created", job_id=job.id, user_id=user_id, status=job.current_status)
    return job


def archive(
    db: Session,
    job_id: str,
    user_id: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.JobOpportunity:
    job = get_owned_job(db, job_id, user_id)
    if job.current_status == ARCHIVED:
        raise InvalidStatusError("Job opportunity is already archived")

    now = now or models.utcnow()
    reason = reason or None
    with transaction(db, "Failed to archive job opportunity"):
        change = record_status_change(
            job, ARCHIVED, now, notes=reason or "Job archived", archive_reason=reason
        )
        change.apply_to(job)
        crud.add_history_entry(db, change.entry)

    logger.info("job_archived", job_id=job.id, user_id=user_id, reason=reason)
    return job


def bulk_archive(
    db: Session,
    job_ids: Sequence[str],
    user_id: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> int:
    """Archive every listed job or none of them. Returns the number archived."""
    if not job_ids:
        raise ValidationError(
            "jobIds must be a non-empty array",
            details=[{"field": "jobIds", "message": "At least one job id is required"}],
        )

    duplicates = sorted({job_id for job_id in job_ids if job_ids.count(job_id) > 1})
    if duplicates:
        raise ValidationError(
            "jobIds must not repeat a job",
            details=[{"field": "jobIds", "message": f"{job_id} is listed more than once"} for job_id in duplicates],
        )

    # Every listed id must match exactly one owned row
    jobs = crud.get_jobs_by_ids_for_user(db, job_ids, user_id)
    if len(jobs) != len(job_ids):
        raise ForbiddenError("One or more jobs were not found or are not owned by this user")

    already_archived = [job.id for job in jobs if job.current_status == ARCHIVED]
    if already_archived:
        raise InvalidStatusError(
            "One or more jobs are already archived",
            details=[{"field": "jobIds", "message": f"{job_id} is already archived"} for job_id in already_archived],
        )

    now = now or models.utcnow()
    reason = reason or None
    with transaction(db, "Failed to archive job opportunities"):
        for job in jobs:
            change = record_status_change(
                job, ARCHIVED, now, notes=reason or "Job archived", archive_reason=reason
            )
            change.apply_to(job)
            crud.add_history_entry(db, change.entry)

    logger.info("jobs_bulk_archived", user_id=user_id, count=len(jobs), reason=reason)
    return len(jobs)


def restore(
    db: Session,
    job_id: str,
    user_id: str,
    restore_to_status: Optional[str] = None,
    default_status: str = DEFAULT_RESTORE_STATUS,
    now: Optional[datetime] = None,
) -> models.JobOpportunity:
    job = get_owned_job(db, job_id, user_id)
    if job.current_status != ARCHIVED:
        raise InvalidStatusError("Job opportunity is not archived")

    if restore_to_status == ARCHIVED:
        raise ValidationError(
            "Cannot restore a job into the archived status",
            details=[{"field": "restoreToStatus", "message": "must not be 'archived'"}],
        )

    if restore_to_status:
        target = restore_to_status
    else:
        # Newest two entries: the archive itself and whatever preceded it
        recent = crud.get_history_for_job(db, job.id, limit=2)
        target = previous_status(recent, default_status)

    now = now or models.utcnow()
    with transaction(db, "Failed to restore job opportunity"):
        change = record_status_change(job, target, now, notes=f"Restored from archive to {target}")
        change.apply_to(job)
        crud.add_history_entry(db, change.entry)

    logger.info("job_restored", job_id=job.id, user_id=user_id, status=target)
    return job


def permanently_delete(db: Session, job_id: str, user_id: str, confirm_delete) -> None:
    """Delete a job and everything hanging off it. No soft-delete path.

    ``confirm_delete`` must be the boolean ``True`` itself; truthy look-alikes
    are rejected. Impacts the job's referral requests applied to their
    contacts are taken back off in the same transaction as the delete.
    """
    if confirm_delete is not True:
        raise ValidationError(
            "Permanent deletion requires explicit confirmation",
            details=[{"field": "confirmDelete", "message": "confirmDelete must be true"}],
        )

    job = get_owned_job(db, job_id, user_id)
    reversed_impacts = 0
    with transaction(db, "Failed to delete job opportunity"):
        for request in job.referral_requests:
            if request.relationship_impact:
                referrals.apply_strength_delta(db, request.contact_id, user_id, -request.relationship_impact)
                reversed_impacts += 1
        crud.delete_job(db, job)

    logger.info(
        "job_permanently_deleted", job_id=job_id, user_id=user_id, reversed_impacts=reversed_impacts
    )


def list_history(db: Session, job_id: str, user_id: str) -> list[models.ApplicationHistory]:
    job = get_owned_job(db, job_id, user_id)
    return crud.get_history_for_job(db, job.id)
