"""Event API routes: details, lifecycle, chosen dates and last-updated markers."""
import logging
from functools import partial
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from planner.database import get_db
from planner.models.event import Collection, Event, EventStatus
from planner.schemas.event import (
    ActorRequest,
    CancelRequest,
    ChosenDatesToggle,
    ConfirmRequest,
    EventCreate,
    EventOut,
    EventStatusOut,
    EventUpdate,
    PathMarker,
    PathMarkerOut,
)
from planner.schemas.user import EventAvailabilityOut
from planner.services import event_service, lifecycle, mutators, user_service
from planner.services.document_store import DocumentStore, get_store
from planner.services.notifications import Notifier, get_notifier
from planner.services.retention import delete_event_by_organiser

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=EventOut, status_code=status.HTTP_201_CREATED)
def create_event(
    payload: EventCreate,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    """Create a pending event for an existing organiser."""
    return event_service.create_event(
        store,
        notifier,
        title=payload.title,
        description=payload.description,
        location=payload.location.model_dump(exclude_none=True) if payload.location else None,
        earliest_date=payload.earliest_date,
        latest_date=payload.latest_date,
        duration=payload.duration,
        organiser_id=payload.organiser_id,
    )


@router.get("/", response_model=list[EventOut])
def list_events(
    organiser_id: Optional[str] = Query(None),
    event_status: Optional[EventStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
):
    query = db.query(Event)
    if organiser_id:
        query = query.filter(Event.organiser_id == organiser_id)
    if event_status:
        query = query.filter(Event.status == event_status)
    return query.order_by(Event.created_at).all()


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: str, db: Session = Depends(get_db)):
    event = db.query(Event).filter(Event.event_id == event_id).first()
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


@router.get("/{event_id}/status", response_model=EventStatusOut)
def get_event_status(event_id: str, store: DocumentStore = Depends(get_store)):
    return store.load_event(event_id)


@router.put("/{event_id}", response_model=EventOut)
def update_event(
    event_id: str,
    payload: EventUpdate,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    """Edit event details (optimistic locking enforced)."""
    updates = payload.model_dump(exclude_unset=True, exclude={"details_version", "actor_user_id"})
    if "location" in updates and payload.location is not None:
        updates["location"] = payload.location.model_dump(exclude_none=True)
    return event_service.update_event_details(
        store, notifier, event_id, payload.actor_user_id, payload.details_version, updates
    )


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(
    event_id: str,
    actor_user_id: str = Query(..., description="ID of the user deleting the event"),
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    """Delete the event and every user in it (organiser only)."""
    delete_event_by_organiser(store, notifier, event_id, actor_user_id)


@router.post("/{event_id}/confirm", response_model=EventOut)
def confirm_event(
    event_id: str,
    payload: ConfirmRequest,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    event_service.check_authorization(store, store.load_event(event_id), payload.actor_user_id)
    return lifecycle.confirm_event(store, notifier, event_id, payload.chosen_dates, payload.reminder_time)


@router.post("/{event_id}/cancel", response_model=EventOut)
def cancel_event(
    event_id: str,
    payload: CancelRequest,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    event_service.check_authorization(store, store.load_event(event_id), payload.actor_user_id)
    return lifecycle.cancel_event(store, notifier, event_id, payload.reason)


@router.post("/{event_id}/reopen", response_model=EventOut)
def reopen_event(
    event_id: str,
    payload: ActorRequest,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    event_service.check_authorization(store, store.load_event(event_id), payload.actor_user_id)
    return lifecycle.reopen_event(store, notifier, event_id)


@router.post("/{event_id}/chosen-dates", response_model=EventOut)
def toggle_chosen_dates(
    event_id: str,
    payload: ChosenDatesToggle,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    """Add missing dates and remove present ones on a confirmed event."""
    event_service.check_authorization(store, store.load_event(event_id), payload.actor_user_id)
    return lifecycle.toggle_chosen_dates(store, notifier, event_id, payload.dates)


@router.get("/{event_id}/availability", response_model=EventAvailabilityOut)
def event_availability(event_id: str, store: DocumentStore = Depends(get_store)):
    organiser, attendees = user_service.event_members(store, event_id)
    return {"organiser": organiser, "attendees": attendees}


@router.post("/{event_id}/last-updated", response_model=PathMarkerOut)
def update_last_updated(
    event_id: str,
    payload: PathMarker,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    result = event_service.apply_mutation(
        store, notifier, event_id, Collection.last_updated,
        partial(mutators.upsert_path_marker, path=payload.path, timestamp=event_service.now_iso()),
    )
    return result.outcome


@router.get("/{event_id}/last-updated", response_model=list[PathMarkerOut])
def fetch_last_updated(event_id: str, store: DocumentStore = Depends(get_store)):
    return event_service.load_collection(store, event_id, Collection.last_updated)
