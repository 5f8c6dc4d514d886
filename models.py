import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import relationship
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class JobOpportunity(Base):
    __tablename__ = "job_opportunities"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(128), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    company = Column(String(255), nullable=False)
    current_status = Column(String(50), nullable=False, default="interested")
    archive_reason = Column(Text, nullable=True)
    archived_at = Column(DateTime(timezone=True), nullable=True)  # set iff current_status == "archived"
    deadline = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    history = relationship(
        "ApplicationHistory",
        back_populates="job",
        cascade="all, delete-orphan",
    )
    referral_requests = relationship(
        "ReferralRequest",
        back_populates="job",
        cascade="all, delete-orphan",
    )
    job_contacts = relationship(
        "JobContact",
        back_populates="job",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_job_user_status", "user_id", "current_status"),
    )


class ApplicationHistory(Base):
    """Append-only; rows disappear only with their job."""

    __tablename__ = "application_history"

    # Integer key doubles as a tie-breaker for entries sharing a timestamp
    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(
        String(36), ForeignKey("job_opportunities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(String(50), nullable=False)
    notes = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    job = relationship("JobOpportunity", back_populates="history")


class JobContact(Base):
    __tablename__ = "job_contacts"

    id = Column(String(36), primary_key=True, default=new_id)
    job_id = Column(
        String(36), ForeignKey("job_opportunities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    role = Column(String(100), nullable=True)

    job = relationship("JobOpportunity", back_populates="job_contacts")


class ProfessionalContact(Base):
    __tablename__ = "professional_contacts"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(128), nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    company = Column(String(255), nullable=True)
    job_title = Column(String(255), nullable=True)
    relationship_type = Column(String(100), nullable=True)
    relationship_strength = Column(Integer, nullable=True, default=50)
    last_contact_date = Column(DateTime(timezone=True), nullable=True)
    linked_job_ids = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    referral_requests = relationship(
        "ReferralRequest",
        back_populates="contact",
        cascade="all, delete-orphan",
    )


class ReferralRequest(Base):
    __tablename__ = "referral_requests"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(128), nullable=False, index=True)
    job_id = Column(
        String(36), ForeignKey("job_opportunities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    contact_id = Column(
        String(36), ForeignKey("professional_contacts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status = Column(String(20), nullable=False, default="draft")
    request_message = Column(Text, nullable=True)
    template_used = Column(String(100), nullable=True)
    request_date = Column(DateTime(timezone=True), nullable=True)
    sent_date = Column(DateTime(timezone=True), nullable=True)
    response_date = Column(DateTime(timezone=True), nullable=True)
    follow_up_date = Column(DateTime(timezone=True), nullable=True)
    next_follow_up_date = Column(DateTime(timezone=True), nullable=True)
    response_notes = Column(Text, nullable=True)
    outcome = Column(Text, nullable=True)
    success = Column(Boolean, nullable=True)
    # The value currently applied to contact.relationship_strength
    relationship_impact = Column(Integer, nullable=True)
    gratitude_expressed = Column(Boolean, nullable=False, default=False)
    gratitude_notes = Column(Text, nullable=True)
    optimal_timing_score = Column(Integer, nullable=True)
    timing_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    job = relationship("JobOpportunity", back_populates="referral_requests")
    contact = relationship("ProfessionalContact", back_populates="referral_requests")

    __table_args__ = (
        Index("idx_referral_contact_status", "contact_id", "status"),
    )
