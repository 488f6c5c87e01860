"""Pytest fixtures — file-backed SQLite database, store, recording notifier and API client."""
import os

os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_app.db")

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from planner.database import Base, get_db
from planner.errors import DeliveryFailure
from planner.main import app
from planner.models.event import Collection, Event
from planner.models.user import User, UserRole
from planner.services import mutators
from planner.services.document_store import DocumentStore, get_store
from planner.services.notifications import Link, Notifier, get_notifier

SQLITE_URL = "sqlite:///./test.db"


@dataclass
class SentEmail:
    to: str
    first_name: str
    subject: str
    body_html: str
    link: Optional[Link] = None


class RecordingNotifier(Notifier):
    """Keeps every message in memory; addresses in ``failing`` raise DeliveryFailure."""

    def __init__(self):
        self.sent: list[SentEmail] = []
        self.failing: set[str] = set()

    def send(self, to, first_name, subject, body_html, link=None):
        if to in self.failing:
            raise DeliveryFailure(f"Mailbox {to} unavailable")
        self.sent.append(SentEmail(to, first_name, subject, body_html, link))

    def recipients(self, subject: str) -> list[str]:
        return [mail.to for mail in self.sent if mail.subject == subject]

    def subjects(self) -> list[str]:
        return [mail.subject for mail in self.sent]

    def clear(self) -> None:
        self.sent.clear()


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False, "timeout": 30})

    # Enable WAL mode for better concurrency
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Yield a plain database session for assertions."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def store(session_factory):
    return DocumentStore(session_factory, max_attempts=5)


@pytest.fixture(scope="function")
def notifier():
    return RecordingNotifier()


@pytest.fixture(scope="function")
def client(session_factory, store, notifier):
    """FastAPI TestClient with database, store and notifier dependencies overridden."""

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers: build state straight through the store
# ---------------------------------------------------------------------------
def make_user(store: DocumentStore, name: str = "Olivia Organiser", email: Optional[str] = None,
              role: UserRole = UserRole.organiser) -> User:
    """Helper — insert a user and return it."""
    email = email or f"{name.split(' ')[0].lower()}@example.com"
    return store.create_user(User(email=email, username=name, fingerprint="fp", role=role))


def make_event(store: DocumentStore, organiser: User, title: str = "Lake Trip",
               attendees: Optional[list[User]] = None) -> Event:
    """Helper — insert a pending event and add ``attendees`` to it."""
    event = store.create_event(Event(
        title=title,
        description="Weekend away",
        location={"city": "Keswick", "country": "UK"},
        earliest_date=date(2026, 7, 1),
        latest_date=date(2026, 7, 31),
        duration=2,
        organiser_id=organiser.user_id,
    ))
    for user in attendees or []:
        store.mutate(event.event_id, Collection.attendees,
                     lambda current, uid=user.user_id: mutators.add_attendee(current, uid))
    return store.load_event(event.event_id)


def set_event_fields(store: DocumentStore, event_id: str, **values) -> Event:
    """Helper — overwrite row fields without counting as activity."""
    return store.update_event(event_id, lambda event: values, touch=False).event


def utc(year: int, month: int, day: int, hour: int = 0) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


def days_ago(now: datetime, days: int) -> datetime:
    return now - timedelta(days=days)
