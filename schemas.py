from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ReferralStatus(str, Enum):
    draft = "draft"
    pending = "pending"
    sent = "sent"
    accepted = "accepted"
    declined = "declined"
    completed = "completed"
    expired = "expired"


# --- Job opportunities ---
class JobCreate(ApiModel):
    title: str = Field(min_length=1, max_length=255)
    company: str = Field(min_length=1, max_length=255)
    current_status: str = Field(default="interested", min_length=1, max_length=50)
    deadline: Optional[date] = None

    @field_validator("current_status")
    @classmethod
    def not_archived(cls, value: str) -> str:
        if value == "archived":
            raise ValueError("jobs cannot be created archived; use the archive endpoint")
        return value


class HistoryEntry(ApiModel):
    id: int
    job_id: str
    status: str
    notes: Optional[str] = None
    timestamp: datetime


class Job(ApiModel):
    id: str
    user_id: str
    title: str
    company: str
    current_status: str
    archive_reason: Optional[str] = None
    archived_at: Optional[datetime] = None
    deadline: Optional[date] = None
    created_at: datetime
    updated_at: datetime


class JobWithHistory(Job):
    history: list[HistoryEntry] = []


class JobListItem(Job):
    latest_history: Optional[HistoryEntry] = None


class ArchiveRequest(ApiModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class BulkArchiveRequest(ApiModel):
    job_ids: list[str] = Field(min_length=1)
    reason: Optional[str] = Field(default=None, max_length=1000)


class BulkArchiveResponse(ApiModel):
    archived_count: int


class RestoreRequest(ApiModel):
    restore_to_status: Optional[str] = Field(default=None, min_length=1, max_length=50)

    @field_validator("restore_to_status")
    @classmethod
    def not_archived(cls, value: Optional[str]) -> Optional[str]:
        if value == "archived":
            raise ValueError("cannot restore a job into the archived status")
        return value


class PermanentDeleteRequest(ApiModel):
    # Strict: "true", 1 and friends do not count as confirmation
    confirm_delete: Optional[StrictBool] = None


# --- Professional contacts ---
class ContactCreate(ApiModel):
    full_name: str = Field(min_length=1, max_length=255)
    first_name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = Field(default=None, max_length=255)
    company: Optional[str] = Field(default=None, max_length=255)
    job_title: Optional[str] = Field(default=None, max_length=255)
    relationship_type: Optional[str] = Field(default=None, max_length=100)
    relationship_strength: int = Field(default=50, ge=0, le=100)
    last_contact_date: Optional[datetime] = None
    linked_job_ids: list[str] = []


class Contact(ApiModel):
    id: str
    user_id: str
    full_name: str
    first_name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    job_title: Optional[str] = None
    relationship_type: Optional[str] = None
    relationship_strength: Optional[int] = None
    last_contact_date: Optional[datetime] = None
    linked_job_ids: list[str] = []
    created_at: datetime


# --- Referral requests ---
class ReferralRequestCreate(ApiModel):
    job_id: str = Field(min_length=1)
    contact_id: str = Field(min_length=1)
    status: ReferralStatus = ReferralStatus.draft
    request_message: Optional[str] = None
    template_used: Optional[str] = Field(default=None, max_length=100)
    request_date: Optional[datetime] = None
    sent_date: Optional[datetime] = None
    follow_up_date: Optional[datetime] = None
    next_follow_up_date: Optional[datetime] = None
    relationship_impact: Optional[int] = Field(default=None, ge=-10, le=10)
    optimal_timing_score: Optional[int] = Field(default=None, ge=0, le=100)
    timing_reason: Optional[str] = None


class ReferralRequestUpdate(ApiModel):
    """Every field optional; only the keys the caller sent are applied."""

    status: Optional[ReferralStatus] = None
    request_message: Optional[str] = None
    template_used: Optional[str] = Field(default=None, max_length=100)
    request_date: Optional[datetime] = None
    sent_date: Optional[datetime] = None
    response_date: Optional[datetime] = None
    follow_up_date: Optional[datetime] = None
    next_follow_up_date: Optional[datetime] = None
    response_notes: Optional[str] = None
    outcome: Optional[str] = None
    success: Optional[bool] = None
    relationship_impact: Optional[int] = Field(default=None, ge=-10, le=10)
    gratitude_expressed: Optional[bool] = None
    gratitude_notes: Optional[str] = None
    optimal_timing_score: Optional[int] = Field(default=None, ge=0, le=100)
    timing_reason: Optional[str] = None

    @field_validator("status", "gratitude_expressed", mode="before")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value

    def changes(self) -> dict:
        """Fields explicitly present in the request body, explicit nulls included."""
        data = self.model_dump(exclude_unset=True)
        if "status" in data:
            data["status"] = ReferralStatus(data["status"]).value
        return data


class ReferralRequestOut(ApiModel):
    id: str
    user_id: str
    job_id: str
    contact_id: str
    status: ReferralStatus
    request_message: Optional[str] = None
    template_used: Optional[str] = None
    request_date: Optional[datetime] = None
    sent_date: Optional[datetime] = None
    response_date: Optional[datetime] = None
    follow_up_date: Optional[datetime] = None
    next_follow_up_date: Optional[datetime] = None
    response_notes: Optional[str] = None
    outcome: Optional[str] = None
    success: Optional[bool] = None
    relationship_impact: Optional[int] = None
    gratitude_expressed: bool = False
    gratitude_notes: Optional[str] = None
    optimal_timing_score: Optional[int] = None
    timing_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    job: Optional[Job] = None
    contact: Optional[Contact] = None


class PotentialSource(Contact):
    optimal_timing_score: int
    timing_reason: str
    days_since_last_contact: int
    existing_referral_requests: int


class PotentialSourcesResponse(ApiModel):
    job: Job
    potential_sources: list[PotentialSource]


class ContactSuccess(ApiModel):
    total: int = 0
    successful: int = 0


class ReferralAnalytics(ApiModel):
    total: int
    by_status: dict[str, int]
    success_rate: float
    successful: int
    responded: int
    by_contact: dict[str, ContactSuccess]
    avg_relationship_impact: float
