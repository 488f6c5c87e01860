"""Attendee, join request and role API routes."""
import logging

from fastapi import APIRouter, Depends, status

from planner.models.event import Collection
from planner.models.user import UserRole
from planner.schemas.user import (
    AttendeesOut,
    JoinRequestIn,
    JoinRequestOut,
    MemberAction,
    MemberOut,
    RequestDecision,
)
from planner.services import event_service, user_service
from planner.services.document_store import DocumentStore, get_store
from planner.services.notifications import Notifier, get_notifier

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{event_id}", response_model=AttendeesOut)
def fetch_attendees(event_id: str, store: DocumentStore = Depends(get_store)):
    """Organiser, attendees and pending join requests of an event."""
    organiser, attendees = user_service.event_members(store, event_id)
    requests = event_service.load_collection(store, event_id, Collection.requests)
    return {"organiser": organiser, "attendees": attendees, "requests": requests}


@router.post("/{event_id}/requests", response_model=JoinRequestOut, status_code=status.HTTP_201_CREATED)
def request_access(
    event_id: str,
    payload: JoinRequestIn,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    return user_service.request_access(
        store, notifier, event_id,
        email=payload.email, username=payload.username, profile_pic=payload.profile_pic,
    )


@router.post("/{event_id}/requests/decision", response_model=JoinRequestOut)
def decide_request(
    event_id: str,
    payload: RequestDecision,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    """Accept or reject the first request made with ``email``."""
    return user_service.set_request_status(
        store, notifier, event_id, payload.actor_user_id, payload.email, payload.status
    )


@router.post("/{event_id}/promote", response_model=MemberOut)
def promote_user(event_id: str, payload: MemberAction, store: DocumentStore = Depends(get_store)):
    return user_service.change_role(store, event_id, payload.actor_user_id, payload.user_id, UserRole.admin)


@router.post("/{event_id}/demote", response_model=MemberOut)
def demote_user(event_id: str, payload: MemberAction, store: DocumentStore = Depends(get_store)):
    return user_service.change_role(store, event_id, payload.actor_user_id, payload.user_id, UserRole.attendee)


@router.post("/{event_id}/kick", status_code=status.HTTP_200_OK)
def kick_user(
    event_id: str,
    payload: MemberAction,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    user_service.kick_user(store, notifier, event_id, payload.actor_user_id, payload.user_id)
    return {"status": "ok", "user_id": payload.user_id}
