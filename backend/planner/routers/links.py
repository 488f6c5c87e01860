"""Link API routes."""
from functools import partial

from fastapi import APIRouter, Depends, Query, status

from planner.models.event import Collection
from planner.schemas.collections import LinkCreate, LinkOut, RemovedOut
from planner.services import event_service, mutators
from planner.services.document_store import DocumentStore, get_store
from planner.services.notifications import Notifier, get_notifier

router = APIRouter()


@router.get("/{event_id}", response_model=list[LinkOut])
def fetch_links(event_id: str, store: DocumentStore = Depends(get_store)):
    return event_service.load_collection(store, event_id, Collection.links)


@router.post("/{event_id}", response_model=LinkOut, status_code=status.HTTP_201_CREATED)
def add_link(
    event_id: str,
    payload: LinkCreate,
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    result = event_service.apply_mutation(
        store, notifier, event_id, Collection.links,
        partial(mutators.add_link, link=payload.link, added_by=payload.user_id, created_at=event_service.now_iso()),
    )
    return result.outcome


@router.delete("/{event_id}", response_model=RemovedOut)
def delete_link(
    event_id: str,
    link: str = Query(..., description="URL of the link to remove"),
    store: DocumentStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    result = event_service.apply_mutation(
        store, notifier, event_id, Collection.links, partial(mutators.delete_link, link=link)
    )
    return {"removed": result.outcome}
