"""To-do list API routes."""
import logging
from functools import partial

from fastapi import APIRouter, Depends, status

from planner.models.event import Collection
from planner.schemas.collections import RemovedOut, TaskCreate, TaskOut, TodoOut
from planner.services import event_service, mutators
from planner.services.document_store import DocumentStore, get_store
from planner.services.notifications import Notifier, get_notifier

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/{event_id}", response_model=TodoOut)
def fetch_todo(event_id: str, store: DocumentStore = Depends(get_store)):
    return event_service.load_collection(store, event_id, Collection.to_do)


@router.post("/{event_id}", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
def add_task(
    event_id: str,
    payload: TaskCreate,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    result = event_service.apply_mutation(
        store, notifier, event_id, Collection.to_do,
        partial(
            mutators.add_task,
            task_id=event_service.new_id(),
            creator_id=payload.user_id,
            task=payload.task,
            created_at=event_service.now_iso(),
        ),
    )
    return result.outcome


def _move(store, notifier, event_id, task_id, source, target):
    result = event_service.apply_mutation(
        store, notifier, event_id, Collection.to_do,
        partial(mutators.move_task, task_id=task_id, source=source, target=target),
    )
    logger.info("Moved task %s of event %s to %s", task_id, event_id, target)
    return result.outcome


@router.post("/{event_id}/{task_id}/done", response_model=TaskOut)
def move_to_done(
    event_id: str,
    task_id: str,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    return _move(store, notifier, event_id, task_id, "to_do", "done")


@router.post("/{event_id}/{task_id}/undo", response_model=TaskOut)
def move_to_do(
    event_id: str,
    task_id: str,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    return _move(store, notifier, event_id, task_id, "done", "to_do")


@router.delete("/{event_id}/{task_id}", response_model=RemovedOut)
def delete_task(
    event_id: str,
    task_id: str,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    result = event_service.apply_mutation(
        store, notifier, event_id, Collection.to_do, partial(mutators.delete_task, task_id=task_id)
    )
    return {"removed": result.outcome}
