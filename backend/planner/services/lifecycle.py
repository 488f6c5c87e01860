"""Event state machine.

Transitions are declared in ``TRANSITIONS``; each one names the states it may
start from, the state it ends in and the status-scoped fields it writes.
Applying a transition is a single CAS on the event row, followed by a
best-effort email to the organiser and every attendee.

    pending ──confirm──▶ confirmed
    pending|confirmed ──cancel──▶ canceled
    confirmed|canceled ──reopen──▶ pending
"""
import html
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

from planner.errors import InvalidState
from planner.models.event import Event, EventStatus
from planner.services import mutators
from planner.services.document_store import DocumentStore
from planner.services.notifications import Notifier, event_link, notify_members, send_rescue_notice

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    name: str
    sources: frozenset
    target: EventStatus
    fields: Callable[[Event, dict], dict]
    subject: str
    message: Callable[[Event], str]


def _confirm_fields(event: Event, params: dict) -> dict:
    dates = list(dict.fromkeys(str(d) for d in params.get("chosen_dates") or []))
    if not dates:
        raise InvalidState("Confirming an event requires at least one chosen date")
    return {
        "chosen_dates": dates,
        "reminder_time": params.get("reminder_time"),
        "cancellation_reason": None,
    }


def _cancel_fields(event: Event, params: dict) -> dict:
    # chosen_dates stay for display on the cancelled event page
    return {"cancellation_reason": params.get("reason") or "", "reminder_time": None}


def _reopen_fields(event: Event, params: dict) -> dict:
    return {
        "chosen_dates": None,
        "reminder_time": None,
        "cancellation_reason": None,
        "reminder_sent": False,
        "daily_reminder_sent": False,
    }


def _confirm_message(event: Event) -> str:
    message = (
        f'The event "{html.escape(event.title)}" has been confirmed.<br/>'
        f"Selected dates: {', '.join(event.chosen_dates or [])}"
    )
    if event.reminder_time:
        message += f"<br/>Reminder date: {event.reminder_time:%Y-%m-%d}"
    return message


TRANSITIONS: dict[str, Transition] = {
    "confirm": Transition(
        name="confirm",
        sources=frozenset({EventStatus.pending}),
        target=EventStatus.confirmed,
        fields=_confirm_fields,
        subject="Event Confirmed",
        message=_confirm_message,
    ),
    "cancel": Transition(
        name="cancel",
        sources=frozenset({EventStatus.pending, EventStatus.confirmed}),
        target=EventStatus.canceled,
        fields=_cancel_fields,
        subject="Event Cancelled",
        message=lambda event: (
            f'The event "{html.escape(event.title)}" has been cancelled. '
            f"Reason: {html.escape(event.cancellation_reason or '')}"
        ),
    ),
    "reopen": Transition(
        name="reopen",
        sources=frozenset({EventStatus.confirmed, EventStatus.canceled}),
        target=EventStatus.pending,
        fields=_reopen_fields,
        subject="Event Reopened",
        message=lambda event: (
            f'The event "{html.escape(event.title)}" has been reopened and dates are being planned again.'
        ),
    ),
}


def transition(store: DocumentStore, notifier: Notifier, event_id: str, action: str, **params: Any) -> Event:
    """Apply ``action`` to the event and notify its members.

    Raises ``NotFound`` for an unknown event and ``InvalidState`` when the
    current status is not a source of ``action``.
    """
    spec = TRANSITIONS.get(action)
    if spec is None:
        raise InvalidState(f"Unknown transition: {action}")

    def apply(event: Event) -> dict:
        if event.status not in spec.sources:
            raise InvalidState(f"Cannot {action} an event that is {event.status.value}")
        values = spec.fields(event, params)
        values["status"] = spec.target
        return values

    update = store.update_event(event_id, apply)
    event = update.event
    logger.info("Event %s: %s -> %s", event_id, action, spec.target.value)

    if update.rescued:
        send_rescue_notice(store, notifier, event_id)
    notify_members(store, notifier, event, spec.subject, spec.message(event), event_link(event_id))
    return event


def confirm_event(
    store: DocumentStore,
    notifier: Notifier,
    event_id: str,
    chosen_dates: Iterable[Any],
    reminder_time: Optional[datetime] = None,
) -> Event:
    return transition(store, notifier, event_id, "confirm", chosen_dates=list(chosen_dates), reminder_time=reminder_time)


def cancel_event(store: DocumentStore, notifier: Notifier, event_id: str, reason: str = "") -> Event:
    return transition(store, notifier, event_id, "cancel", reason=reason)


def reopen_event(store: DocumentStore, notifier: Notifier, event_id: str) -> Event:
    return transition(store, notifier, event_id, "reopen")


def toggle_chosen_dates(store: DocumentStore, notifier: Notifier, event_id: str, dates: Iterable[Any]) -> Event:
    """Add or remove chosen dates on a confirmed event.

    The set may not become empty; reopen the event instead.
    """
    toggles = list(dates)

    def apply(event: Event) -> dict:
        if event.status is not EventStatus.confirmed:
            raise InvalidState("Chosen dates can only be changed on a confirmed event")
        chosen, _ = mutators.toggle_chosen_dates(event.chosen_dates, dates=toggles)
        if not chosen:
            raise InvalidState("A confirmed event needs at least one chosen date")
        return {"chosen_dates": chosen}

    update = store.update_event(event_id, apply)
    if update.rescued:
        send_rescue_notice(store, notifier, event_id)
    return update.event
