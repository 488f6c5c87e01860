"""Comment API routes."""
from functools import partial

from fastapi import APIRouter, Depends, status

from planner.models.event import Collection
from planner.schemas.collections import CommentCreate, CommentDelete, CommentOut, RemovedOut
from planner.services import event_service, mutators
from planner.services.document_store import DocumentStore, get_store
from planner.services.notifications import Notifier, get_notifier

router = APIRouter()


@router.get("/{event_id}", response_model=list[CommentOut])
def fetch_comments(event_id: str, store: DocumentStore = Depends(get_store)):
    return event_service.load_collection(store, event_id, Collection.comments)


@router.post("/{event_id}", response_model=CommentOut, status_code=status.HTTP_201_CREATED)
def add_comment(
    event_id: str,
    payload: CommentCreate,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    result = event_service.apply_mutation(
        store, notifier, event_id, Collection.comments,
        partial(
            mutators.add_comment,
            comment_id=event_service.new_id(),
            user_id=payload.user_id,
            message=payload.message,
            reply_to=payload.reply_to,
            created_at=event_service.now_iso(),
        ),
    )
    return result.outcome


@router.post("/{event_id}/delete", response_model=RemovedOut)
def delete_comments(
    event_id: str,
    payload: CommentDelete,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    """Delete the listed comments. Replies to them stay."""
    result = event_service.apply_mutation(
        store, notifier, event_id, Collection.comments,
        partial(mutators.delete_comments, comment_ids=payload.comment_ids),
    )
    return {"removed": result.outcome}
