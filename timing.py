"""Optimal-timing heuristic for asking a contact for a referral."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, Optional, Sequence

import models

BASE_SCORE = 50
NEVER_CONTACTED_DAYS = 365
DEFAULT_STRENGTH = 50


@dataclass(frozen=True)
class TimingScore:
    score: int
    reason: str
    days_since_last_contact: int


@dataclass(frozen=True)
class RankedSource:
    contact: models.ProfessionalContact
    timing: TimingScore
    existing_referral_requests: int


def days_since(moment: Optional[datetime], now: datetime) -> int:
    if moment is None:
        return NEVER_CONTACTED_DAYS
    # SQLite hands back naive datetimes; everything is stored as UTC
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (now - moment).days


def score(
    last_contact_date: Optional[datetime],
    relationship_strength: Optional[int],
    pending_referral_count: int,
    now: Optional[datetime] = None,
) -> TimingScore:
    """Score 0-100 with a human-readable reason.

    Starts at 50 and adjusts for recency of contact (+20 under 30 days, +10
    under 90, -10 otherwise or never), relationship strength (+20 at 70 or
    above, -15 below 50) and an already-open request to the same contact
    (-10).
    """
    now = now or models.utcnow()
    days = days_since(last_contact_date, now)
    value = BASE_SCORE

    if days < 30:
        value += 20
        reason = "Recent contact - good timing"
    elif days < 90:
        value += 10
        reason = "Moderate time since last contact"
    else:
        value -= 10
        reason = "Long time since last contact - consider reconnecting first"

    strength = DEFAULT_STRENGTH if relationship_strength is None else relationship_strength
    if strength >= 70:
        value += 20
        reason += " - Strong relationship"
    elif strength < 50:
        value -= 15
        reason += " - Weak relationship - build rapport first"

    if pending_referral_count > 0:
        value -= 10
        reason += " - Already has pending referral request"

    return TimingScore(score=max(0, min(100, value)), reason=reason, days_since_last_contact=days)


def score_contact(
    contact: models.ProfessionalContact, pending_referral_count: int, now: Optional[datetime] = None
) -> TimingScore:
    return score(contact.last_contact_date, contact.relationship_strength, pending_referral_count, now)


def rank_sources(
    job: models.JobOpportunity,
    contacts: Sequence[models.ProfessionalContact],
    pending_counts: Mapping[str, int],
    now: Optional[datetime] = None,
    limit: int = 50,
) -> list[RankedSource]:
    """Contacts linked to ``job``, best timing first.

    Python's sort is stable, so equal scores keep the order of ``contacts``.
    """
    now = now or models.utcnow()
    ranked = []
    for contact in contacts:
        if job.id not in (contact.linked_job_ids or []):
            continue
        pending = pending_counts.get(contact.id, 0)
        ranked.append(
            RankedSource(
                contact=contact,
                timing=score_contact(contact, pending, now),
                existing_referral_requests=pending,
            )
        )
    ranked.sort(key=lambda source: source.timing.score, reverse=True)
    return ranked[:limit]
