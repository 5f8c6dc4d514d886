"""Initial schema: job opportunities, history, job contacts, professional contacts, referral requests.

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Job opportunities
    op.create_table(
        "job_opportunities",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False, index=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("company", sa.String(255), nullable=False),
        sa.Column("current_status", sa.String(50), nullable=False),
        sa.Column("archive_reason", sa.Text),
        sa.Column("archived_at", sa.DateTime(timezone=True)),
        sa.Column("deadline", sa.Date),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_job_user_status", "job_opportunities", ["user_id", "current_status"])

    # Status history (append-only)
    op.create_table(
        "application_history",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "job_id",
            sa.String(36),
            sa.ForeignKey("job_opportunities.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("status", sa.String(50), nullable=False),
        sa.Column("notes", sa.Text),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "job_contacts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "job_id",
            sa.String(36),
            sa.ForeignKey("job_opportunities.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("role", sa.String(100)),
    )

    op.create_table(
        "professional_contacts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False, index=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100)),
        sa.Column("email", sa.String(255)),
        sa.Column("company", sa.String(255)),
        sa.Column("job_title", sa.String(255)),
        sa.Column("relationship_type", sa.String(100)),
        sa.Column("relationship_strength", sa.Integer),
        sa.Column("last_contact_date", sa.DateTime(timezone=True)),
        sa.Column("linked_job_ids", sa.JSON, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "referral_requests",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False, index=True),
        sa.Column(
            "job_id",
            sa.String(36),
            sa.ForeignKey("job_opportunities.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "contact_id",
            sa.String(36),
            sa.ForeignKey("professional_contacts.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("request_message", sa.Text),
        sa.Column("template_used", sa.String(100)),
        sa.Column("request_date", sa.DateTime(timezone=True)),
        sa.Column("sent_date", sa.DateTime(timezone=True)),
        sa.Column("response_date", sa.DateTime(timezone=True)),
        sa.Column("follow_up_date", sa.DateTime(timezone=True)),
        sa.Column("next_follow_up_date", sa.DateTime(timezone=True)),
        sa.Column("response_notes", sa.Text),
        sa.Column("outcome", sa.Text),
        sa.Column("success", sa.Boolean),
        sa.Column("relationship_impact", sa.Integer),
        sa.Column("gratitude_expressed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("gratitude_notes", sa.Text),
        sa.Column("optimal_timing_score", sa.Integer),
        sa.Column("timing_reason", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("idx_referral_contact_status", "referral_requests", ["contact_id", "status"])


def downgrade() -> None:
    op.drop_index("idx_referral_contact_status", table_name="referral_requests")
    op.drop_table("referral_requests")
    op.drop_table("professional_contacts")
    op.drop_table("job_contacts")
    op.drop_table("application_history")
    op.drop_index("idx_job_user_status", table_name="job_opportunities")
    op.drop_table("job_opportunities")
