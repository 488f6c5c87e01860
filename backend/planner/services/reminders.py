"""Reminder Dispatcher.

Once per scheduling period every confirmed event with a reminder time is
checked against two independent triggers:

- *upcoming*: today is the reminder date and ``reminder_sent`` is unset;
- *day-of*: today is the earliest chosen date and ``daily_reminder_sent``
  is unset.

A trigger emails the organiser and every attendee and only then CAS-sets its
flag. If any delivery fails the flag stays unset and the whole recipient set
is retried next period, so delivery is at-least-once under partial failure.
"""
import html
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Iterable, Optional

import pytz

from planner.config import settings
from planner.errors import InvalidState
from planner.models.event import Collection, Event, EventStatus, as_utc
from planner.services.document_store import DocumentStore
from planner.services.notifications import (
    Notifier,
    Recipient,
    describe_location,
    event_link,
    fan_out,
    member_ids,
    resolve_recipients,
)

logger = logging.getLogger(__name__)

UPCOMING = "reminder_sent"
DAY_OF = "daily_reminder_sent"


@dataclass
class ReminderReport:
    scanned: int = 0
    upcoming_sent: list[str] = field(default_factory=list)
    day_of_sent: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def parse_chosen_date(value) -> date:
    """Parse a stored chosen date (``YYYY-MM-DD`` or ISO timestamp) to a UTC date."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return value
    else:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date()


def earliest_chosen_date(chosen_dates: Optional[Iterable]) -> Optional[date]:
    """Numeric minimum of the chosen dates; ``None`` when there are none.

    Raises ``ValueError`` if any entry cannot be parsed.
    """
    parsed = [parse_chosen_date(value) for value in chosen_dates or []]
    if not parsed:
        return None
    return min(parsed)


class ReminderDispatcher:
    def __init__(self, store: DocumentStore, notifier: Notifier, tz_name: Optional[str] = None):
        self.store = store
        self.notifier = notifier
        self.tz = pytz.timezone(tz_name or settings.REMINDER_TIMEZONE)

    def run(self, now: Optional[datetime] = None, should_stop: Callable[[], bool] = lambda: False) -> ReminderReport:
        now = now or datetime.now(timezone.utc)
        today = now.astimezone(self.tz).date()
        report = ReminderReport()

        events = self.store.list_events(status=EventStatus.confirmed, with_reminder=True)
        logger.info("Checking reminders for %d confirmed events (today is %s)", len(events), today)
        for event in events:
            if should_stop():
                logger.info("Reminder pass stopped early after %d events", report.scanned)
                break
            report.scanned += 1
            try:
                for flag in self.process_event(event, today):
                    (report.upcoming_sent if flag == UPCOMING else report.day_of_sent).append(event.event_id)
            except Exception:
                logger.exception("Reminder processing failed for event %s", event.event_id)
                report.failed.append(event.event_id)
        return report

    def process_event(self, event: Event, today: date) -> list[str]:
        """Evaluate both triggers for one event. Returns the flags that were set."""
        reminder_date = as_utc(event.reminder_time).astimezone(self.tz).date()
        try:
            earliest = earliest_chosen_date(event.chosen_dates)
        except ValueError:
            logger.warning("Failed parsing chosen_dates %r of event %s", event.chosen_dates, event.event_id)
            earliest = None
        if earliest is None:
            logger.info("Event %s has no usable chosen dates, skipping day-of reminder", event.event_id)

        upcoming_due = reminder_date == today and not event.reminder_sent
        day_of_due = earliest is not None and earliest == today and not event.daily_reminder_sent
        if not (upcoming_due or day_of_due):
            return []

        attendees, _ = self.store.load_collection(event.event_id, Collection.attendees)
        recipients = resolve_recipients(self.store, member_ids(event.organiser_id, attendees))
        if not recipients:
            logger.warning("No recipients for event %s, skipping reminders", event.event_id)
            return []

        title = html.escape(event.title)
        location = html.escape(describe_location(event.location))
        fired = []
        if upcoming_due:
            when = f"on {earliest:%Y-%m-%d}" if earliest else "soon"
            body = f'Just a reminder that the event "{title}" is happening {when} at {location}!'
            if self._fire(event, recipients, UPCOMING, f"Reminder: {event.title} is coming up!", body):
                fired.append(UPCOMING)
        if day_of_due:
            body = f'Just a reminder that the event "{title}" is happening Today at {location}!'
            if self._fire(event, recipients, DAY_OF, f"Reminder: {event.title} is Today!", body):
                fired.append(DAY_OF)
        return fired

    def _fire(self, event: Event, recipients: list[Recipient], flag: str, subject: str, body: str) -> bool:
        logger.info("Sending %s for event %s to %d recipients", flag, event.event_id, len(recipients))
        if not fan_out(self.notifier, recipients, subject, body, event_link(event.event_id)):
            logger.warning("Not all %s emails were delivered for event %s; retrying next period", flag, event.event_id)
            return False

        seen_reminder = as_utc(event.reminder_time)
        seen_dates = event.chosen_dates

        def mark_sent(current: Event) -> dict:
            # Only mark the flag for the confirmation cycle we notified about.
            if (
                current.status is not EventStatus.confirmed
                or as_utc(current.reminder_time) != seen_reminder
                or current.chosen_dates != seen_dates
            ):
                raise InvalidState("Event changed while reminders were being sent")
            return {flag: True}

        try:
            self.store.update_event(event.event_id, mark_sent, touch=False)
        except InvalidState as exc:
            logger.warning("Not marking %s for event %s: %s", flag, event.event_id, exc.detail)
            return False
        logger.info("Updated %s for event %s", flag, event.event_id)
        return True
