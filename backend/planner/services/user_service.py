"""Users, event membership and join requests."""
import html
import logging
from functools import partial
from typing import Iterable, Optional

from planner.errors import DuplicateEmail, InvalidState, NotMember, PlannerError
from planner.models.event import Collection, Event
from planner.models.user import User, UserCollection, UserRole
from planner.services import mutators
from planner.services.document_store import DocumentStore, MutationResult
from planner.services.event_service import apply_mutation, check_authorization, check_organiser, now_iso
from planner.services.notifications import Notifier, Recipient, event_link, fan_out, member_ids

logger = logging.getLogger(__name__)


def event_members(store: DocumentStore, event_id: str) -> tuple[Optional[User], list[User]]:
    """Return the organiser and the attendees of an event, attendees in join order."""
    event = store.load_event(event_id)
    attendees, _ = store.load_collection(event_id, Collection.attendees)
    users = store.get_users(member_ids(event.organiser_id, attendees))
    return users.get(event.organiser_id), [users[uid] for uid in attendees if uid in users]


def _check_email_free(store: DocumentStore, event: Event, email: str, exclude: Optional[str] = None) -> None:
    attendees, _ = store.load_collection(event.event_id, Collection.attendees)
    others = [uid for uid in member_ids(event.organiser_id, attendees) if uid != exclude]
    wanted = email.strip().lower()
    for user in store.get_users(others).values():
        if user.email.strip().lower() == wanted:
            raise DuplicateEmail("Email is already used.")


def create_user(
    store: DocumentStore,
    notifier: Notifier,
    *,
    email: str,
    username: str,
    fingerprint: str,
    role: Optional[str] = None,
    profile_pic: Optional[int] = None,
    event_id: Optional[str] = None,
) -> User:
    """Create a user, optionally adding them to an event's attendees.

    An unknown role falls back to ``attendee``. If joining the event fails the
    new user row is removed again.
    """
    try:
        user_role = UserRole(role) if role else UserRole.attendee
    except ValueError:
        user_role = UserRole.attendee

    event = None
    if event_id:
        if user_role is UserRole.organiser:
            raise InvalidState("An organiser cannot join an event as an attendee")
        event = store.load_event(event_id)
        _check_email_free(store, event, email)

    user = store.create_user(
        User(email=email, username=username, fingerprint=fingerprint, role=user_role, profile_pic=profile_pic)
    )
    logger.info("Created user %s (%s)", user.user_id, user.role.value)
    if event is None:
        return user

    try:
        apply_mutation(store, notifier, event.event_id, Collection.attendees,
                       partial(mutators.add_attendee, user_id=user.user_id))
    except PlannerError:
        store.delete_users([user.user_id])
        raise
    logger.info("User %s joined event %s", user.user_id, event.event_id)

    fan_out(
        notifier,
        [Recipient(user.user_id, user.email, user.first_name)],
        "Event Joined",
        f'You\'ve successfully joined the event "{html.escape(event.title)}".<br/>'
        "Click below to view the event details.",
        event_link(event.event_id, "See Event"),
    )
    return user


def update_user(
    store: DocumentStore,
    event_id: str,
    user_id: str,
    *,
    username: str,
    email: str,
    profile_pic: Optional[int] = None,
) -> User:
    """Edit a user's profile. The email must be unused by anyone else in the event."""
    store.get_user(user_id)
    _check_email_free(store, store.load_event(event_id), email, exclude=user_id)
    return store.update_user(user_id, {"username": username, "email": email, "profile_pic": profile_pic})


def set_is_coming(store: DocumentStore, user_id: str, is_coming: Optional[bool]) -> User:
    return store.update_user(user_id, {"is_coming": is_coming})


def set_availability(store: DocumentStore, user_id: str, updates: Iterable[dict]) -> MutationResult:
    result = store.mutate_user(
        user_id, UserCollection.availability, partial(mutators.set_availability, updates=list(updates))
    )
    if result.outcome:
        logger.warning("Ignored invalid availability updates for user %s: %s", user_id, result.outcome)
    return result


def clear_availability(store: DocumentStore, user_id: str) -> MutationResult:
    return store.mutate_user(user_id, UserCollection.availability, lambda current: ({}, len(current or {})))


def update_last_opened(store: DocumentStore, user_id: str, path: str) -> MutationResult:
    return store.mutate_user(
        user_id, UserCollection.last_opened, partial(mutators.upsert_path_marker, path=path, timestamp=now_iso())
    )


def _remove_member(store: DocumentStore, notifier: Notifier, event_id: str, user_id: str) -> None:
    # Attendee list first so the user row is never referenced once deleted.
    apply_mutation(store, notifier, event_id, Collection.attendees,
                   partial(mutators.remove_attendee, user_id=user_id))
    if not store.delete_users([user_id]):
        logger.warning("User %s was already gone after leaving event %s", user_id, event_id)


def leave_event(store: DocumentStore, notifier: Notifier, event_id: str, user_id: str) -> None:
    _remove_member(store, notifier, event_id, user_id)
    logger.info("User %s left event %s", user_id, event_id)


def kick_user(store: DocumentStore, notifier: Notifier, event_id: str, actor_user_id: str, user_id: str) -> None:
    check_authorization(store, store.load_event(event_id), actor_user_id)
    _remove_member(store, notifier, event_id, user_id)
    logger.info("User %s was removed from event %s by %s", user_id, event_id, actor_user_id)


def change_role(
    store: DocumentStore,
    event_id: str,
    actor_user_id: str,
    user_id: str,
    role: UserRole,
) -> User:
    """Promote an attendee to admin or demote an admin back to attendee."""
    if role not in (UserRole.admin, UserRole.attendee):
        raise InvalidState(f"Cannot assign role {role.value}")
    check_organiser(store.load_event(event_id), actor_user_id)
    attendees, _ = store.load_collection(event_id, Collection.attendees)
    if user_id not in attendees:
        raise NotMember(f"User {user_id} is not an attendee of this event")
    user = store.update_user(user_id, {"role": role})
    logger.info("User %s is now %s in event %s", user_id, role.value, event_id)
    return user


def request_access(
    store: DocumentStore,
    notifier: Notifier,
    event_id: str,
    *,
    email: str,
    username: str,
    profile_pic: Optional[int] = None,
) -> dict:
    result = apply_mutation(
        store, notifier, event_id, Collection.requests,
        partial(mutators.append_request, email=email, username=username,
                profile_pic=profile_pic, time_requested=now_iso()),
    )
    return result.outcome


def set_request_status(
    store: DocumentStore,
    notifier: Notifier,
    event_id: str,
    actor_user_id: str,
    email: str,
    status: str,
) -> dict:
    check_authorization(store, store.load_event(event_id), actor_user_id)
    result = apply_mutation(
        store, notifier, event_id, Collection.requests,
        partial(mutators.set_request_status, email=email, status=status),
    )
    return result.outcome
