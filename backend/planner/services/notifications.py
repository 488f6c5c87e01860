"""Email notifications: provider client, HTML template and fan-out helpers.

Delivery is always best-effort from the caller's point of view: ``send``
raises ``DeliveryFailure`` and the fan-out helpers turn that into a boolean
so state changes never depend on the mail provider.
"""
import html
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

import httpx

from planner.config import settings
from planner.errors import DeliveryFailure, PlannerError
from planner.models.event import Collection, Event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Link:
    url: str
    label: str


@dataclass(frozen=True)
class Recipient:
    user_id: str
    email: str
    first_name: str


class Notifier:
    """Interface of the email collaborator."""

    def send(
        self,
        to: str,
        first_name: str,
        subject: str,
        body_html: str,
        link: Optional[Link] = None,
    ) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


def render_email_html(first_name: str, body_html: str, link: Optional[Link] = None) -> str:
    """Wrap a message body in the branded email layout."""
    button = ""
    if link is not None:
        button = (
            '<tr><td style="text-align: center;">'
            f'<a href="{html.escape(link.url, quote=True)}" style="display: inline-block; '
            "padding: 10px 20px; margin-top: 20px; background-color: rgb(0, 0, 0); color: white; "
            'font-size: 16px; text-decoration: none; border-radius: 4px;">'
            f"{html.escape(link.label)}</a></td></tr>"
        )
    return (
        '<table role="presentation" style="width: 100%; max-width: 600px; margin: auto; '
        'padding: 20px; background-color: #f9f9f9; border: 3px solid black; font-family: Arial, sans-serif;">'
        f'<tr><td style="text-align: center; padding-bottom: 20px;"><strong>Hi {html.escape(first_name)},</strong></td></tr>'
        f'<tr><td style="text-align: center; padding-bottom: 10px;">{body_html}</td></tr>'
        f"{button}"
        '<tr><td style="text-align: center; padding-top: 20px;"><strong>Best regards,</strong><br/>'
        "Group Event Planner Team</td></tr>"
        '<tr><td style="font-size: 12px; text-align: center; padding-top: 20px;">'
        "This is an automated email. Please do not reply.<br/>"
        f"&copy; {datetime.now().year} Group Event Planner.</td></tr>"
        "</table>"
    )


class SendGridNotifier(Notifier):
    """Delivers mail through the SendGrid v3 HTTP API."""

    def __init__(
        self,
        api_key: str,
        sender: str,
        api_url: str = "https://api.sendgrid.com/v3/mail/send",
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key
        self.sender = sender
        self.api_url = api_url
        self._client = client or httpx.Client(timeout=timeout)

    def send(self, to, first_name, subject, body_html, link=None) -> None:
        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.sender},
            "subject": subject,
            "content": [{"type": "text/html", "value": render_email_html(first_name, body_html, link)}],
        }
        try:
            response = self._client.post(
                self.api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except httpx.HTTPError as exc:
            logger.error("Error sending email to %s: %s", to, exc)
            raise DeliveryFailure(f"Could not reach the email provider: {exc}") from exc

        if response.is_error:
            logger.error("SendGrid rejected email to %s: %s %s", to, response.status_code, response.text)
            raise DeliveryFailure(f"Email provider answered {response.status_code}")
        logger.info("Email sent successfully to %s", to)

    def close(self) -> None:
        self._client.close()


class LoggingNotifier(Notifier):
    """Development notifier: logs messages instead of delivering them."""

    def send(self, to, first_name, subject, body_html, link=None) -> None:
        logger.info("Email to %s (%s): %s | %s%s", to, first_name, subject, body_html,
                    f" [{link.label}: {link.url}]" if link else "")


_notifier: Optional[Notifier] = None


def build_notifier() -> Notifier:
    if settings.SENDGRID_API_KEY:
        return SendGridNotifier(
            api_key=settings.SENDGRID_API_KEY,
            sender=settings.SENDGRID_VERIFIED_SENDER,
            api_url=settings.SENDGRID_API_URL,
            timeout=settings.EMAIL_TIMEOUT_SECONDS,
        )
    logger.warning("SENDGRID_API_KEY is not set; emails will only be logged")
    return LoggingNotifier()


def get_notifier() -> Notifier:
    """Dependency returning the process-wide notifier."""
    global _notifier
    if _notifier is None:
        _notifier = build_notifier()
    return _notifier


def close_notifier() -> None:
    """Release the process-wide notifier, if one was built."""
    global _notifier
    if _notifier is not None:
        _notifier.close()
        _notifier = None


# ── Fan-out ────────────────────────────────────────────────────────


def event_link(event_id: str, label: str = "View Event") -> Link:
    return Link(url=settings.event_url(event_id), label=label)


def describe_location(location) -> str:
    if not isinstance(location, dict):
        return "TBA"
    parts = [location.get(key) for key in ("city", "address", "country", "postcode")]
    return ", ".join(str(part) for part in parts if part) or "TBA"


def member_ids(organiser_id: Optional[str], attendees: Iterable[str]) -> list[str]:
    """Organiser first, then attendees, without duplicates."""
    ordered = [organiser_id] if organiser_id else []
    ordered.extend(uid for uid in attendees or [] if uid)
    return list(dict.fromkeys(ordered))


def resolve_recipients(store, user_ids: Iterable[str]) -> list[Recipient]:
    ids = list(dict.fromkeys(user_ids))
    users = store.get_users(ids)
    recipients = []
    for user_id in ids:
        user = users.get(user_id)
        if user is None:
            logger.warning("No user record for %s, skipping notification", user_id)
            continue
        recipients.append(Recipient(user_id, user.email, user.first_name))
    return recipients


def fan_out(
    notifier: Notifier,
    recipients: Iterable[Recipient],
    subject: str,
    body_html: str,
    link: Optional[Link] = None,
) -> bool:
    """Send one message to every recipient. Returns True only if all succeeded."""
    delivered_all = True
    for recipient in recipients:
        try:
            notifier.send(recipient.email, recipient.first_name, subject, body_html, link)
        except DeliveryFailure as exc:
            logger.warning("Failed sending '%s' to %s: %s", subject, recipient.email, exc.detail)
            delivered_all = False
    return delivered_all


def notify_members(store, notifier: Notifier, event: Event, subject: str, body_html: str,
                   link: Optional[Link] = None) -> bool:
    """Best-effort fan-out to the organiser and every attendee of ``event``."""
    try:
        attendees, _ = store.load_collection(event.event_id, Collection.attendees)
        recipients = resolve_recipients(store, member_ids(event.organiser_id, attendees))
    except PlannerError as exc:
        logger.warning("Could not collect recipients for event %s: %s", event.event_id, exc.detail)
        return False
    return fan_out(notifier, recipients, subject, body_html, link)


def notify_organiser(store, notifier: Notifier, event: Event, subject: str, body_html: str,
                     link: Optional[Link] = None) -> bool:
    try:
        recipients = resolve_recipients(store, [event.organiser_id])
    except PlannerError as exc:
        logger.warning("Could not look up organiser of event %s: %s", event.event_id, exc.detail)
        return False
    if not recipients:
        return False
    return fan_out(notifier, recipients, subject, body_html, link)


def send_rescue_notice(store, notifier: Notifier, event_id: str) -> bool:
    """Tell the organiser that recent activity cancelled the pending deletion."""
    try:
        event = store.load_event(event_id)
    except PlannerError as exc:
        logger.warning("Could not load event %s for rescue notice: %s", event_id, exc.detail)
        return False
    body = (
        f'We wanted to let you know that your event "{html.escape(event.title)}" is no longer going '
        "to be deleted as it has been updated recently. You can continue managing your event."
    )
    sent = notify_organiser(store, notifier, event, "Event Will Not Be Deleted", body)
    if sent:
        logger.info("Rescue notice sent for event %s", event_id)
    return sent
