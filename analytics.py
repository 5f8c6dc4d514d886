from __future__ import annotations

from collections import Counter
from typing import Iterable

import models
import schemas
from transitions import RESPONDED_STATUSES, SUCCESS_STATUSES


def _is_successful(request: models.ReferralRequest) -> bool:
    return request.status in SUCCESS_STATUSES or request.success is True


def summarize(requests: Iterable[models.ReferralRequest]) -> schemas.ReferralAnalytics:
    """Summary statistics over every referral request a user owns.

    Success rate and per-contact tallies only look at requests the contact has
    answered (accepted, declined, completed). Contacts are keyed by full name.
    """
    requests = list(requests)

    by_status = Counter(request.status for request in requests)
    successful = sum(1 for request in requests if _is_successful(request))
    responded = [request for request in requests if request.status in RESPONDED_STATUSES]

    success_rate = successful / len(responded) * 100 if responded else 0.0

    by_contact: dict[str, schemas.ContactSuccess] = {}
    for request in requests:
        name = request.contact.full_name if request.contact is not None else request.contact_id
        tally = by_contact.setdefault(name, schemas.ContactSuccess())
        if request.status in RESPONDED_STATUSES:
            tally.total += 1
            if _is_successful(request):
                tally.successful += 1

    impacts = [request.relationship_impact for request in responded if request.relationship_impact is not None]
    avg_impact = sum(impacts) / len(impacts) if impacts else 0.0

    return schemas.ReferralAnalytics(
        total=len(requests),
        by_status=dict(by_status),
        success_rate=round(success_rate, 2),
        successful=successful,
        responded=len(responded),
        by_contact=by_contact,
        avg_relationship_impact=round(avg_impact, 2),
    )
