"""Retention Reaper and the cascading event purge.

Every event, whatever its status, moves through two inactivity stages:

1. older than ``RETENTION_WARN_DAYS`` since ``updated_at`` and not yet warned:
   the organiser is told when the event will be deleted and the warning flag
   is CAS-set together with ``deletion_warned_at``;
2. warned and ``RETENTION_DELETE_DAYS`` have passed since the warning: the
   event is purged along with every user it references.

Both stages are conditional on the event version the reaper read, so any
activity in between (which bumps the version and clears the warning) wins.
"""
import html
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import pytz

from planner.config import settings
from planner.errors import Conflict, Forbidden, InvalidState, NotFound, PlannerError
from planner.models.event import Collection, Event, as_utc
from planner.services.document_store import CasResult, DocumentStore
from planner.services.notifications import (
    Notifier,
    Recipient,
    event_link,
    fan_out,
    member_ids,
    resolve_recipients,
)

logger = logging.getLogger(__name__)


@dataclass
class RetentionReport:
    scanned: int = 0
    warned: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def purge_event(
    store: DocumentStore,
    notifier: Notifier,
    event: Event,
    subject: str,
    body_html: str,
) -> bool:
    """Delete ``event`` and every user it references, then tell the organiser.

    The delete only happens if the event is still at the version in ``event``.
    Returns False when someone wrote the event in between.
    """
    attendees, _ = store.load_collection(event.event_id, Collection.attendees)
    user_ids = member_ids(event.organiser_id, attendees)
    organiser: list[Recipient] = resolve_recipients(store, [event.organiser_id])

    result = store.delete_event(event.event_id, event.version)
    if result is CasResult.not_found:
        raise NotFound("Event not found")
    if result is CasResult.conflict:
        logger.info("Event %s changed since it was read, not deleting", event.event_id)
        return False
    logger.info("Deleted event %s", event.event_id)

    if organiser:
        fan_out(notifier, organiser, subject, body_html)

    try:
        removed = store.delete_users(user_ids)
    except PlannerError as exc:
        logger.error(
            "Inconsistency: event %s deleted but its users %s were not: %s",
            event.event_id, user_ids, exc.detail,
        )
        return True
    if removed != len(user_ids):
        logger.warning("Deleted %d of %d users of event %s", removed, len(user_ids), event.event_id)
    return True


def delete_event_by_organiser(store: DocumentStore, notifier: Notifier, event_id: str, actor_id: str) -> None:
    """Purge on the organiser's request, rereading the event after each conflict."""
    for attempt in range(1, store.max_attempts + 1):
        event = store.load_event(event_id)
        if actor_id != event.organiser_id:
            raise Forbidden("Only the organiser can delete this event")
        body = f'Your event "{html.escape(event.title)}" has been deleted.'
        if purge_event(store, notifier, event, "Event Deleted", body):
            return
        logger.debug("Delete of event %s conflicted (attempt %d/%d)", event_id, attempt, store.max_attempts)
    raise Conflict("Event was updated while deleting. Re-fetch and retry.")


class RetentionReaper:
    def __init__(
        self,
        store: DocumentStore,
        notifier: Notifier,
        warn_after: Optional[timedelta] = None,
        delete_after: Optional[timedelta] = None,
        tz_name: Optional[str] = None,
    ):
        self.store = store
        self.notifier = notifier
        self.warn_after = warn_after if warn_after is not None else settings.retention_warn_after
        self.delete_after = delete_after if delete_after is not None else settings.retention_delete_after
        self.tz = pytz.timezone(tz_name or settings.REMINDER_TIMEZONE)

    def run(self, now: Optional[datetime] = None, should_stop: Callable[[], bool] = lambda: False) -> RetentionReport:
        now = now or datetime.now(timezone.utc)
        report = RetentionReport()
        events = self.store.list_events()
        logger.info("Checking retention for %d events", len(events))
        for event in events:
            if should_stop():
                logger.info("Retention pass stopped early after %d events", report.scanned)
                break
            report.scanned += 1
            try:
                if not event.deleted_warning_sent:
                    if self.warning_due(event, now) and self.warn(event, now):
                        report.warned.append(event.event_id)
                elif self.deletion_due(event, now) and self.delete(event):
                    report.deleted.append(event.event_id)
            except Exception:
                logger.exception("Retention processing failed for event %s", event.event_id)
                report.failed.append(event.event_id)
        return report

    def warning_due(self, event: Event, now: datetime) -> bool:
        return now - as_utc(event.updated_at) > self.warn_after

    def deletion_due(self, event: Event, now: datetime) -> bool:
        warned_at = as_utc(event.deletion_warned_at) or as_utc(event.updated_at)
        return now - warned_at >= self.delete_after

    def warn(self, event: Event, now: datetime) -> bool:
        deletion_date = (now + self.delete_after).astimezone(self.tz)
        body = (
            f'The event "{html.escape(event.title)}" is scheduled to be deleted on '
            f"{deletion_date:%B} {deletion_date.day}, {deletion_date.year} due to inactivity. "
            "Please Log In to the event to prevent it from being deleted."
        )
        organiser = resolve_recipients(self.store, [event.organiser_id])
        if not organiser:
            logger.warning("Event %s has no organiser record; cannot warn about deletion", event.event_id)
            return False
        subject = f"Reminder: {event.title} is going to be Deleted!"
        if not fan_out(self.notifier, organiser, subject, body, event_link(event.event_id, "Save Event")):
            logger.warning("Deletion warning for event %s not delivered; retrying next period", event.event_id)
            return False

        seen_updated_at = as_utc(event.updated_at)

        def mark_warned(current: Event) -> dict:
            if current.deleted_warning_sent or as_utc(current.updated_at) != seen_updated_at:
                raise InvalidState("Event saw activity while the warning was sent")
            return {"deleted_warning_sent": True, "deletion_warned_at": now}

        try:
            self.store.update_event(event.event_id, mark_warned, touch=False)
        except InvalidState as exc:
            logger.info("Not marking event %s as warned: %s", event.event_id, exc.detail)
            return False
        logger.info("Sent deletion warning for event %s", event.event_id)
        return True

    def delete(self, event: Event) -> bool:
        body = f'Your event "{html.escape(event.title)}" has been automatically deleted due to inactivity.'
        return purge_event(self.store, self.notifier, event, "Event Deleted", body)
