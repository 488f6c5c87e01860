"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates the tables of the Group Event Planner: users, events and
event_documents (one CAS-versioned JSON body per event collection).
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EVENT_STATUS = sa.Enum("pending", "confirmed", "canceled", name="eventstatus")
USER_ROLE = sa.Enum("organiser", "admin", "attendee", name="userrole")
COLLECTION = sa.Enum(
    "attendees", "requests", "polls", "comments", "links", "to_do", "last_updated",
    name="collection",
)


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("fingerprint", sa.String(255), nullable=False, server_default=""),
        sa.Column("role", USER_ROLE, nullable=False, server_default="attendee"),
        sa.Column("profile_pic", sa.Integer, nullable=True),
        sa.Column("is_coming", sa.Boolean, nullable=True),
        sa.Column("availability", sa.JSON, nullable=False),
        sa.Column("last_opened", sa.JSON, nullable=False),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- events ---
    op.create_table(
        "events",
        sa.Column("event_id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("location", sa.JSON, nullable=True),
        sa.Column("earliest_date", sa.Date, nullable=False),
        sa.Column("latest_date", sa.Date, nullable=False),
        sa.Column("duration", sa.Integer, nullable=False, server_default="1"),
        sa.Column("organiser_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("status", EVENT_STATUS, nullable=False, server_default="pending"),
        sa.Column("cancellation_reason", sa.String(500), nullable=True),
        sa.Column("chosen_dates", sa.JSON, nullable=True),
        sa.Column("reminder_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reminder_sent", sa.Boolean, nullable=False, server_default="0"),
        sa.Column("daily_reminder_sent", sa.Boolean, nullable=False, server_default="0"),
        sa.Column("deleted_warning_sent", sa.Boolean, nullable=False, server_default="0"),
        sa.Column("deletion_warned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("details_version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_events_status", "events", ["status"])
    op.create_index("ix_events_updated_at", "events", ["updated_at"])

    # --- event_documents ---
    op.create_table(
        "event_documents",
        sa.Column(
            "event_id", sa.String(36),
            sa.ForeignKey("events.event_id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("name", COLLECTION, primary_key=True),
        sa.Column("body", sa.JSON, nullable=False),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
    )


def downgrade() -> None:
    op.drop_table("event_documents")
    op.drop_index("ix_events_updated_at", table_name="events")
    op.drop_index("ix_events_status", table_name="events")
    op.drop_table("events")
    op.drop_table("users")
    EVENT_STATUS.drop(op.get_bind(), checkfirst=True)
    USER_ROLE.drop(op.get_bind(), checkfirst=True)
    COLLECTION.drop(op.get_bind(), checkfirst=True)
