"""User API routes."""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from planner.database import get_db
from planner.models.user import User, UserCollection
from planner.schemas.event import PathMarker, PathMarkerOut
from planner.schemas.user import AvailabilityUpdate, IsComingUpdate, LeaveRequest, UserCreate, UserOut, UserUpdate
from planner.services import user_service
from planner.services.document_store import DocumentStore, get_store
from planner.services.notifications import Notifier, get_notifier

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    """Create a user, joining ``event_id`` when one is given."""
    return user_service.create_user(
        store,
        notifier,
        email=payload.email,
        username=payload.name,
        fingerprint=payload.fingerprint,
        role=payload.role,
        profile_pic=payload.profile_pic,
        event_id=payload.event_id,
    )


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: str, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.patch("/{user_id}", response_model=UserOut)
def update_user(user_id: str, payload: UserUpdate, store: DocumentStore = Depends(get_store)):
    """Update name, email and picture. Emails are unique within the event."""
    user = user_service.update_user(
        store, payload.event_id, user_id,
        username=payload.name, email=payload.email, profile_pic=payload.profile_pic,
    )
    logger.info("Updated user %s", user_id)
    return user


@router.post("/{user_id}/is-coming", response_model=UserOut)
def set_is_coming(user_id: str, payload: IsComingUpdate, store: DocumentStore = Depends(get_store)):
    return user_service.set_is_coming(store, user_id, payload.is_coming)


@router.post("/{user_id}/availability")
def set_availability(user_id: str, payload: AvailabilityUpdate, store: DocumentStore = Depends(get_store)):
    """Set per-date availability; a null status clears that date."""
    result = user_service.set_availability(store, user_id, [item.model_dump() for item in payload.updates])
    return {"availability": result.value, "skipped": result.outcome}


@router.delete("/{user_id}/availability")
def clear_availability(user_id: str, store: DocumentStore = Depends(get_store)):
    result = user_service.clear_availability(store, user_id)
    return {"availability": result.value, "cleared": result.outcome}


@router.post("/{user_id}/last-opened", response_model=PathMarkerOut)
def update_last_opened(user_id: str, payload: PathMarker, store: DocumentStore = Depends(get_store)):
    return user_service.update_last_opened(store, user_id, payload.path).outcome


@router.get("/{user_id}/last-opened", response_model=list[PathMarkerOut])
def fetch_last_opened(user_id: str, store: DocumentStore = Depends(get_store)):
    markers, _ = store.load_user_collection(user_id, UserCollection.last_opened)
    return markers


@router.post("/{user_id}/leave", status_code=status.HTTP_200_OK)
def leave_event(
    user_id: str,
    payload: LeaveRequest,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    """Leave an event; the user record is deleted with it."""
    user_service.leave_event(store, notifier, payload.event_id, user_id)
    return {"status": "ok"}
