"""Referral request status transitions as data.

Any status may move to any other; what is fixed is the set of fields a move
*into* a status stamps on the request. ``derive_transition_fields`` applies
the table to one update and returns the fields to merge.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from schemas import ReferralStatus


@dataclass(frozen=True)
class StatusEffect:
    stamp_sent_date: bool = False
    success: Optional[bool] = None
    stamp_response_date: bool = False
    # Keep an existing responseDate instead of overwriting it
    response_date_if_unset: bool = False
    default_impact: Optional[int] = None


STATUS_EFFECTS: dict[ReferralStatus, StatusEffect] = {
    ReferralStatus.draft: StatusEffect(),
    ReferralStatus.pending: StatusEffect(),
    ReferralStatus.sent: StatusEffect(stamp_sent_date=True),
    ReferralStatus.accepted: StatusEffect(success=True, stamp_response_date=True, default_impact=2),
    ReferralStatus.declined: StatusEffect(success=False, stamp_response_date=True, default_impact=-1),
    ReferralStatus.completed: StatusEffect(
        success=True, stamp_response_date=True, response_date_if_unset=True, default_impact=2
    ),
    ReferralStatus.expired: StatusEffect(),
}

# Statuses whose requests are still waiting on the contact
OPEN_STATUSES = (ReferralStatus.pending.value, ReferralStatus.sent.value)
RESPONDED_STATUSES = (
    ReferralStatus.accepted.value,
    ReferralStatus.declined.value,
    ReferralStatus.completed.value,
)
SUCCESS_STATUSES = (ReferralStatus.accepted.value, ReferralStatus.completed.value)


def derive_transition_fields(
    current_status: str,
    changes: Mapping[str, Any],
    now: datetime,
    current_response_date: Optional[datetime] = None,
) -> dict[str, Any]:
    """Return the fields a status change stamps, merged over ``changes``.

    Nothing is derived unless ``changes`` carries a status different from
    ``current_status``. A caller-supplied ``relationship_impact`` (even an
    explicit null) always wins over the status default.
    """
    derived = dict(changes)
    target = derived.get("status")
    if target is None or target == current_status:
        return derived

    effect = STATUS_EFFECTS[ReferralStatus(target)]

    if effect.stamp_sent_date:
        derived["sent_date"] = now

    if effect.success is not None:
        derived["success"] = effect.success

    if effect.stamp_response_date:
        if not effect.response_date_if_unset:
            derived["response_date"] = now
        elif derived.get("response_date") is None and current_response_date is None:
            derived["response_date"] = now

    if effect.default_impact is not None and "relationship_impact" not in changes:
        derived["relationship_impact"] = effect.default_impact

    return derived
