"""Poll API routes."""
import logging
from functools import partial

from fastapi import APIRouter, Depends, status

from planner.models.event import Collection
from planner.schemas.collections import PollCreate, PollDelete, PollOut, VoteOut, VoteRequest
from planner.services import event_service, mutators
from planner.services.document_store import DocumentStore, get_store
from planner.services.notifications import Notifier, get_notifier

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{event_id}", response_model=dict[str, PollOut])
def fetch_polls(event_id: str, store: DocumentStore = Depends(get_store)):
    return event_service.load_collection(store, event_id, Collection.polls)


@router.post("/{event_id}", status_code=status.HTTP_201_CREATED)
def create_poll(
    event_id: str,
    payload: PollCreate,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    poll_id = event_service.new_id()
    result = event_service.apply_mutation(
        store, notifier, event_id, Collection.polls,
        partial(
            mutators.create_poll,
            poll_id=poll_id,
            title=payload.title,
            description=payload.description,
            options=payload.options,
            created_by=payload.user_id,
            priority=payload.priority,
            created_at=event_service.now_iso(),
        ),
    )
    logger.info("Created poll %s in event %s", poll_id, event_id)
    return {"poll_id": poll_id, "poll": result.outcome}


@router.post("/{event_id}/{poll_id}/vote", response_model=VoteOut)
def cast_vote(
    event_id: str,
    poll_id: str,
    payload: VoteRequest,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    """Vote for an option, or withdraw the vote if it is already there."""
    result = event_service.apply_mutation(
        store, notifier, event_id, Collection.polls,
        partial(mutators.toggle_vote, poll_id=poll_id, option=payload.option, user_id=payload.user_id),
    )
    return result.outcome


@router.post("/{event_id}/{poll_id}/remove-vote", response_model=PollOut)
def remove_vote(
    event_id: str,
    poll_id: str,
    payload: VoteRequest,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    result = event_service.apply_mutation(
        store, notifier, event_id, Collection.polls,
        partial(mutators.remove_vote, poll_id=poll_id, option=payload.option, user_id=payload.user_id),
    )
    return result.outcome


@router.post("/{event_id}/{poll_id}/delete", status_code=status.HTTP_200_OK)
def delete_poll(
    event_id: str,
    poll_id: str,
    payload: PollDelete,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    """Delete a poll (creator only)."""
    event_service.apply_mutation(
        store, notifier, event_id, Collection.polls,
        partial(mutators.delete_poll, poll_id=poll_id, user_id=payload.user_id),
    )
    return {"status": "ok", "poll_id": poll_id}
