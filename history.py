"""Status history recording.

``record_status_change`` is pure: it builds the history row and the job
fields that go with it but writes nothing. The lifecycle manager persists
both inside one transaction.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import models

ARCHIVED = "archived"


@dataclass
class StatusChange:
    entry: models.ApplicationHistory
    job_fields: dict[str, Any] = field(default_factory=dict)

    def apply_to(self, job: models.JobOpportunity) -> None:
        for key, value in self.job_fields.items():
            setattr(job, key, value)


def record_status_change(
    job: models.JobOpportunity,
    new_status: str,
    now: datetime,
    notes: Optional[str] = None,
    archive_reason: Optional[str] = None,
) -> StatusChange:
    """Build the history entry and job projection for moving ``job`` to ``new_status``.

    Archiving stamps ``archived_at``/``archive_reason``; any other status
    clears both, keeping ``archived_at`` set exactly when the job is archived.
    """
    if new_status == ARCHIVED:
        job_fields = {
            "current_status": ARCHIVED,
            "archived_at": now,
            "archive_reason": archive_reason,
        }
    else:
        job_fields = {
            "current_status": new_status,
            "archived_at": None,
            "archive_reason": None,
        }

    entry = models.ApplicationHistory(
        job_id=job.id,
        status=new_status,
        notes=notes,
        timestamp=now,
    )
    return StatusChange(entry=entry, job_fields=job_fields)


def previous_status(entries: list[models.ApplicationHistory], default: str) -> str:
    """Status a job held before its latest archive.

    ``entries`` are the most recent history rows, newest first, so ``[0]`` is
    the archive itself and ``[1]`` what came before. Falls back to
    ``default`` when there is nothing before the archive or when that entry
    is itself an archive.
    """
    if len(entries) < 2:
        return default
    candidate = entries[1].status
    if not candidate or candidate == ARCHIVED:
        return default
    return candidate
