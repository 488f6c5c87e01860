"""Event service: creation, detail edits and collection writes.

Every collection write goes through ``DocumentStore.mutate`` so it is a CAS on
that one document and also counts as activity on the event. When such a write
clears a pending deletion warning the organiser gets a rescue notice.
"""
import html
import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional

from planner.errors import Conflict, Forbidden, InvalidState
from planner.models.event import Collection, Event
from planner.models.user import UserRole
from planner.services.document_store import DocumentStore, Mutator, MutationResult
from planner.services.notifications import (
    Notifier,
    event_link,
    notify_organiser,
    send_rescue_notice,
)

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "description", "location", "earliest_date", "latest_date", "duration")


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


def _check_dates(earliest: date, latest: date) -> None:
    if earliest > latest:
        raise InvalidState("earliest_date must not be after latest_date")


def check_authorization(store: DocumentStore, event: Event, actor_user_id: str) -> None:
    """Only the organiser, or an admin attending the event, may manage it."""
    if actor_user_id == event.organiser_id:
        return
    attendees, _ = store.load_collection(event.event_id, Collection.attendees)
    if actor_user_id in attendees:
        actor = store.get_user(actor_user_id)
        if actor.role == UserRole.admin:
            return
    raise Forbidden("Only the organiser or an event admin may do this")


def check_organiser(event: Event, actor_user_id: str) -> None:
    if actor_user_id != event.organiser_id:
        raise Forbidden("Only the organiser may do this")


def create_event(
    store: DocumentStore,
    notifier: Notifier,
    *,
    title: str,
    earliest_date: date,
    latest_date: date,
    organiser_id: str,
    description: Optional[str] = None,
    location: Optional[dict] = None,
    duration: int = 1,
) -> Event:
    """Create a pending event owned by an existing organiser user.

    Users belong to exactly one event, since purging an event deletes every
    user it references.
    """
    _check_dates(earliest_date, latest_date)
    organiser = store.get_user(organiser_id)
    if organiser.role != UserRole.organiser:
        raise InvalidState("Only a user with the organiser role can own an event")
    if store.is_user_referenced(organiser.user_id):
        raise InvalidState("User already belongs to an event")
    event = store.create_event(
        Event(
            title=title,
            description=description,
            location=location,
            earliest_date=earliest_date,
            latest_date=latest_date,
            duration=duration or 1,
            organiser_id=organiser.user_id,
        )
    )
    notify_organiser(
        store,
        notifier,
        event,
        "Event Created",
        f'Your event "{html.escape(title)}" has been created successfully. '
        "Share the link below so others can join.",
        event_link(event.event_id),
    )
    return event


def update_event_details(
    store: DocumentStore,
    notifier: Notifier,
    event_id: str,
    actor_user_id: str,
    details_version: int,
    updates: dict[str, Any],
) -> Event:
    """Edit descriptive fields.

    ``details_version`` must match the stored one. Collection writes and status
    changes do not bump it, so only a concurrent detail edit makes it stale.
    """
    unknown = set(updates) - set(EDITABLE_FIELDS)
    if unknown:
        raise InvalidState(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
    check_authorization(store, store.load_event(event_id), actor_user_id)

    def apply(event: Event) -> dict:
        if event.details_version != details_version:
            raise Conflict(
                f"Version mismatch: expected {event.details_version}, got {details_version}. Re-fetch and retry."
            )
        _check_dates(updates.get("earliest_date", event.earliest_date),
                     updates.get("latest_date", event.latest_date))
        return dict(updates, details_version=event.details_version + 1)

    update = store.update_event(event_id, apply)
    if update.rescued:
        send_rescue_notice(store, notifier, event_id)
    logger.info("Updated details of event %s to version %d", event_id, update.event.details_version)
    return update.event


def apply_mutation(
    store: DocumentStore,
    notifier: Notifier,
    event_id: str,
    field: Collection,
    mutator: Mutator,
) -> MutationResult:
    """Run a collection mutator under CAS and handle the rescue notice."""
    result = store.mutate(event_id, field, mutator)
    if result.rescued:
        send_rescue_notice(store, notifier, event_id)
    return result


def load_collection(store: DocumentStore, event_id: str, field: Collection) -> Any:
    value, _ = store.load_collection(event_id, field)
    return value
