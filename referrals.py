"""Referral request workflow and the relationship-strength ledger.

A request's stored ``relationship_impact`` is the amount currently applied
to its contact's ``relationship_strength``. Every change to the stored value
moves the contact by the difference, and deleting the request takes the
stored value back off, so each impact is applied at most once and reversed
exactly once.

Two ledger modes exist. Atomic (the default) writes the request and the
contact in one transaction. Lenient commits the request first and then
attempts the contact write on its own, logging rather than raising if that
second write fails; the contact can then drift from its requests.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import analytics
import crud
import models
import schemas
import timing
from database import transaction
from errors import NotFoundError
from transitions import derive_transition_fields

logger = structlog.get_logger(__name__)

DEFAULT_STRENGTH = 50
MIN_STRENGTH = 0
MAX_STRENGTH = 100


def clamp_strength(value: int) -> int:
    return max(MIN_STRENGTH, min(MAX_STRENGTH, value))


def apply_strength_delta(db: Session, contact_id: str, user_id: str, delta: int) -> Optional[int]:
    """Move a contact's strength by ``delta`` (clamped). Flushes, never commits."""
    contact = crud.get_contact_for_user(db, contact_id, user_id)
    if contact is None:
        logger.warning("relationship_strength_contact_missing", contact_id=contact_id, user_id=user_id)
        return None

    current = DEFAULT_STRENGTH if contact.relationship_strength is None else contact.relationship_strength
    new_strength = clamp_strength(current + delta)
    crud.set_relationship_strength(db, contact, new_strength)
    logger.info(
        "relationship_strength_adjusted",
        contact_id=contact_id,
        delta=delta,
        previous=current,
        strength=new_strength,
    )
    return new_strength


def _sync_strength_leniently(db: Session, contact_id: str, user_id: str, delta: int) -> None:
    try:
        with transaction(db):
            apply_strength_delta(db, contact_id, user_id, delta)
    except SQLAlchemyError as exc:
        logger.error(
            "relationship_strength_sync_failed",
            contact_id=contact_id,
            delta=delta,
            exc_info=exc,
        )


def get_request(db: Session, user_id: str, request_id: str) -> models.ReferralRequest:
    request = crud.get_referral_request_for_user(db, request_id, user_id)
    if request is None:
        raise NotFoundError("Referral request not found")
    return request


def list_requests(
    db: Session,
    user_id: str,
    job_id: Optional[str] = None,
    contact_id: Optional[str] = None,
    status: Optional[str] = None,
) -> list[models.ReferralRequest]:
    return crud.list_referral_requests(db, user_id, job_id=job_id, contact_id=contact_id, status=status)


def create(
    db: Session,
    user_id: str,
    data: schemas.ReferralRequestCreate,
    apply_impact: bool = True,
) -> models.ReferralRequest:
    """Create a request for a job and contact the caller owns.

    With ``apply_impact`` a supplied ``relationship_impact`` is stored and
    applied to the contact in the same transaction; without it the field is
    dropped so nothing unapplied is ever stored.
    """
    job = crud.get_job_for_user(db, data.job_id, user_id)
    contact = crud.get_contact_for_user(db, data.contact_id, user_id)
    if job is None:
        raise NotFoundError("Job opportunity not found")
    if contact is None:
        raise NotFoundError("Contact not found")

    fields = data.model_dump(exclude={"relationship_impact"})
    fields["status"] = data.status.value
    impact = data.relationship_impact if apply_impact else None

    with transaction(db, "Failed to create referral request"):
        request = crud.create_referral_request(db, user_id=user_id, relationship_impact=impact, **fields)
        if impact:
            apply_strength_delta(db, contact.id, user_id, impact)

    logger.info(
        "referral_request_created",
        request_id=request.id,
        job_id=job.id,
        contact_id=contact.id,
        status=request.status,
        relationship_impact=impact,
    )
    return request


def update(
    db: Session,
    user_id: str,
    request_id: str,
    data: schemas.ReferralRequestUpdate,
    atomic: bool = True,
    now: Optional[datetime] = None,
) -> models.ReferralRequest:
    existing = get_request(db, user_id, request_id)
    now = now or models.utcnow()

    previous_status = existing.status
    previous_impact = existing.relationship_impact
    fields = derive_transition_fields(previous_status, data.changes(), now, existing.response_date)

    new_impact = fields["relationship_impact"] if "relationship_impact" in fields else previous_impact
    delta = (new_impact or 0) - (previous_impact or 0)

    if atomic:
        with transaction(db, "Failed to update referral request"):
            crud.update_referral_request(db, existing, fields)
            if delta:
                apply_strength_delta(db, existing.contact_id, user_id, delta)
    else:
        with transaction(db, "Failed to update referral request"):
            crud.update_referral_request(db, existing, fields)
        if delta:
            _sync_strength_leniently(db, existing.contact_id, user_id, delta)

    logger.info(
        "referral_request_updated",
        request_id=existing.id,
        previous_status=previous_status,
        status=existing.status,
        impact_delta=delta,
    )
    return existing


def delete(db: Session, user_id: str, request_id: str, atomic: bool = True) -> None:
    existing = get_request(db, user_id, request_id)
    impact = existing.relationship_impact
    contact_id = existing.contact_id

    if atomic:
        with transaction(db, "Failed to delete referral request"):
            if impact:
                apply_strength_delta(db, contact_id, user_id, -impact)
            crud.delete_referral_request(db, existing)
    else:
        if impact:
            _sync_strength_leniently(db, contact_id, user_id, -impact)
        with transaction(db, "Failed to delete referral request"):
            crud.delete_referral_request(db, existing)

    logger.info("referral_request_deleted", request_id=request_id, reversed_impact=impact)


def potential_sources(
    db: Session,
    user_id: str,
    job_id: str,
    limit: int = 50,
    now: Optional[datetime] = None,
) -> tuple[models.JobOpportunity, list[timing.RankedSource]]:
    job = crud.get_job_for_user(db, job_id, user_id)
    if job is None:
        raise NotFoundError("Job opportunity not found")

    contacts = [c for c in crud.get_contacts_for_user(db, user_id) if job.id in (c.linked_job_ids or [])]
    pending_counts = {c.id: crud.count_open_requests_for_contact(db, c.id) for c in contacts}
    return job, timing.rank_sources(job, contacts, pending_counts, now=now, limit=limit)


def summarize_for_user(db: Session, user_id: str) -> schemas.ReferralAnalytics:
    return analytics.summarize(crud.list_referral_requests(db, user_id))
