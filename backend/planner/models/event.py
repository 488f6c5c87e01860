"""Event and EventDocument ORM models."""
import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Enum as SAEnum,
)
from sqlalchemy.orm import relationship

from planner.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands timestamps back naive; treat those as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class EventStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    canceled = "canceled"


class Collection(str, enum.Enum):
    """Names of the per-event documents, each CAS-protected on its own."""

    attendees = "attendees"
    requests = "requests"
    polls = "polls"
    comments = "comments"
    links = "links"
    to_do = "to_do"
    last_updated = "last_updated"


def empty_document(name: Collection):
    if name == Collection.polls:
        return {}
    if name == Collection.to_do:
        return {"to_do": [], "done": []}
    return []


class Event(Base):
    __tablename__ = "events"

    event_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(JSON, nullable=True)  # address/city/postcode/country/lat/lon
    earliest_date = Column(Date, nullable=False)
    latest_date = Column(Date, nullable=False)
    duration = Column(Integer, nullable=False, default=1)
    organiser_id = Column(String(36), ForeignKey("users.user_id"), nullable=False)
    status = Column(SAEnum(EventStatus), nullable=False, default=EventStatus.pending)
    cancellation_reason = Column(String(500), nullable=True)
    chosen_dates = Column(JSON, nullable=True)
    reminder_time = Column(DateTime(timezone=True), nullable=True)
    reminder_sent = Column(Boolean, nullable=False, default=False)
    daily_reminder_sent = Column(Boolean, nullable=False, default=False)
    deleted_warning_sent = Column(Boolean, nullable=False, default=False)
    deletion_warned_at = Column(DateTime(timezone=True), nullable=True)
    # Optimistic lock for every column above; bumped on each row write.
    version = Column(Integer, nullable=False, default=1)
    # Pinned by clients editing the descriptive fields; only those edits bump it.
    details_version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    documents = relationship(
        "EventDocument", back_populates="event", cascade="all, delete-orphan"
    )


class EventDocument(Base):
    __tablename__ = "event_documents"

    event_id = Column(
        String(36), ForeignKey("events.event_id", ondelete="CASCADE"), primary_key=True
    )
    name = Column(SAEnum(Collection), primary_key=True)
    body = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    event = relationship("Event", back_populates="documents")
