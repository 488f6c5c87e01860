"""Pure collection mutators.

Every function takes the prior document value plus the command arguments and
returns ``(next_value, outcome)``. The prior value is never modified, so a
mutator can be re-applied to a freshly loaded document after a CAS conflict.
Timestamps and ids are passed in by the caller for the same reason.
"""
import copy
from typing import Any, Iterable, Optional

from planner.errors import (
    AlreadyMember,
    Forbidden,
    InvalidPriority,
    InvalidState,
    NotFound,
    NotMember,
    OptionNotFound,
)

POLL_PRIORITIES = ("level-1", "level-2", "level-3")
REQUEST_STATUSES = ("pending", "accepted", "rejected")
AVAILABILITY_STATUSES = ("available", "unavailable", "tentative")
TODO_LISTS = ("to_do", "done")


# ── Attendees ──────────────────────────────────────────────────────


def add_attendee(attendees: Optional[list], user_id: str) -> tuple[list, list]:
    current = list(attendees or [])
    if user_id in current:
        raise AlreadyMember(f"User {user_id} is already an attendee")
    current.append(user_id)
    return current, current


def remove_attendee(attendees: Optional[list], user_id: str) -> tuple[list, list]:
    current = list(attendees or [])
    if user_id not in current:
        raise NotMember(f"User {user_id} is not an attendee of this event")
    current = [uid for uid in current if uid != user_id]
    return current, current


# ── Join requests ──────────────────────────────────────────────────


def append_request(
    requests: Optional[list],
    *,
    email: str,
    username: str,
    time_requested: str,
    profile_pic: Optional[int] = None,
) -> tuple[list, dict]:
    # Duplicate pending requests from one email are kept on purpose.
    entry = {
        "email": email,
        "username": username,
        "profile_pic": profile_pic,
        "time_requested": time_requested,
        "status": "pending",
    }
    current = copy.deepcopy(requests or [])
    current.append(entry)
    return current, entry


def set_request_status(requests: Optional[list], *, email: str, status: str) -> tuple[list, dict]:
    if status not in ("accepted", "rejected"):
        raise InvalidState(f"Invalid request status: {status}")
    current = copy.deepcopy(requests or [])
    for entry in current:
        if entry.get("email") == email:
            entry["status"] = status
            return current, entry
    raise NotFound(f"Request not found for {email}")


# ── Polls ──────────────────────────────────────────────────────────


def create_poll(
    polls: Optional[dict],
    *,
    poll_id: str,
    title: str,
    description: str,
    options: Iterable[str],
    created_by: str,
    priority: str,
    created_at: str,
) -> tuple[dict, dict]:
    if priority not in POLL_PRIORITIES:
        raise InvalidPriority(f"Invalid priority level: {priority}")
    option_names = list(dict.fromkeys(options))
    if not option_names:
        raise InvalidState("A poll needs at least one option")

    current = copy.deepcopy(polls or {})
    current[poll_id] = {
        "title": title,
        "description": description,
        "created_by": created_by,
        "created_at": created_at,
        "priority": priority,
        "options": {name: [] for name in option_names},
    }
    return current, current[poll_id]


def _poll_option(polls: dict, poll_id: str, option: str) -> dict:
    poll = polls.get(poll_id)
    if not poll or option not in poll.get("options", {}):
        raise OptionNotFound("Poll or option not found")
    return poll


def toggle_vote(
    polls: Optional[dict], *, poll_id: str, option: str, user_id: str
) -> tuple[dict, dict]:
    """Vote for ``option``, or withdraw the vote if it is already there.

    Polls are single choice: voting for one option clears the user from the
    others. Outcome is ``{"voted": bool, "poll": <poll>}``.
    """
    current = copy.deepcopy(polls or {})
    poll = _poll_option(current, poll_id, option)
    options = poll["options"]

    if user_id in options[option]:
        options[option] = [voter for voter in options[option] if voter != user_id]
        voted = False
    else:
        for name in options:
            options[name] = [voter for voter in options[name] if voter != user_id]
        options[option].append(user_id)
        voted = True
    return current, {"voted": voted, "poll": poll}


def remove_vote(
    polls: Optional[dict], *, poll_id: str, option: str, user_id: str
) -> tuple[dict, dict]:
    current = copy.deepcopy(polls or {})
    poll = _poll_option(current, poll_id, option)
    voters = poll["options"][option]
    if user_id not in voters:
        raise InvalidState("User has not voted for this option")
    poll["options"][option] = [voter for voter in voters if voter != user_id]
    return current, poll


def delete_poll(polls: Optional[dict], *, poll_id: str, user_id: str) -> tuple[dict, dict]:
    current = copy.deepcopy(polls or {})
    poll = current.get(poll_id)
    if poll is None:
        raise NotFound("Poll does not exist")
    if poll.get("created_by") != user_id:
        raise Forbidden("Only the poll creator may delete this poll")
    del current[poll_id]
    return current, poll


# ── Comments ───────────────────────────────────────────────────────


def add_comment(
    comments: Optional[list],
    *,
    comment_id: str,
    user_id: str,
    message: str,
    created_at: str,
    reply_to: Optional[str] = None,
) -> tuple[list, dict]:
    comment = {
        "user_id": user_id,
        "message": message,
        "reply_to": reply_to,
        "uuid": comment_id,
        "created_at": created_at,
    }
    current = copy.deepcopy(comments or [])
    current.append(comment)
    return current, comment


def delete_comments(comments: Optional[list], *, comment_ids: Iterable[str]) -> tuple[list, int]:
    """Drop every comment whose id is listed. Replies to them are left alone."""
    doomed = set(comment_ids)
    current = copy.deepcopy(comments or [])
    kept = [comment for comment in current if comment.get("uuid") not in doomed]
    return kept, len(current) - len(kept)


# ── Links ──────────────────────────────────────────────────────────


def add_link(
    links: Optional[list], *, link: str, added_by: str, created_at: str
) -> tuple[list, dict]:
    entry = {"link": link, "added_by": added_by, "created_at": created_at}
    current = copy.deepcopy(links or [])
    current.append(entry)
    return current, entry


def delete_link(links: Optional[list], *, link: str) -> tuple[list, int]:
    current = copy.deepcopy(links or [])
    kept = [entry for entry in current if entry.get("link") != link]
    if len(kept) == len(current):
        raise NotFound("Link not found")
    return kept, len(current) - len(kept)


# ── To-do ──────────────────────────────────────────────────────────


def _todo(value: Optional[dict]) -> dict:
    current = copy.deepcopy(value or {})
    for name in TODO_LISTS:
        current.setdefault(name, [])
    return current


def add_task(
    todo: Optional[dict], *, task_id: str, creator_id: str, task: str, created_at: str
) -> tuple[dict, dict]:
    entry = {"task_id": task_id, "creator_id": creator_id, "task": task, "created_at": created_at}
    current = _todo(todo)
    current["to_do"].append(entry)
    return current, entry


def move_task(todo: Optional[dict], *, task_id: str, source: str, target: str) -> tuple[dict, dict]:
    if source not in TODO_LISTS or target not in TODO_LISTS or source == target:
        raise InvalidState(f"Cannot move a task from {source!r} to {target!r}")
    current = _todo(todo)
    for index, entry in enumerate(current[source]):
        if entry.get("task_id") == task_id:
            moved = current[source].pop(index)
            current[target].append(moved)
            return current, moved
    raise NotFound("Task not found")


def delete_task(todo: Optional[dict], *, task_id: str) -> tuple[dict, int]:
    current = _todo(todo)
    removed = 0
    for name in TODO_LISTS:
        kept = [entry for entry in current[name] if entry.get("task_id") != task_id]
        removed += len(current[name]) - len(kept)
        current[name] = kept
    return current, removed


# ── Path markers (event last-updated, user last-opened) ────────────


def upsert_path_marker(markers: Optional[list], *, path: str, timestamp: str) -> tuple[list, dict]:
    current = copy.deepcopy(markers) if isinstance(markers, list) else []
    for entry in current:
        if entry.get("path") == path:
            entry["timestamp"] = timestamp
            return current, entry
    entry = {"path": path, "timestamp": timestamp}
    current.append(entry)
    return current, entry


# ── Chosen dates ───────────────────────────────────────────────────


def toggle_chosen_dates(chosen: Optional[list], *, dates: Iterable[Any]) -> tuple[list, list]:
    """Add each date that is missing and remove each date that is present."""
    current = [str(d) for d in (chosen or [])]
    for date in (str(d) for d in dates):
        if date in current:
            current = [d for d in current if d != date]
        else:
            current.append(date)
    return current, current


# ── Availability ───────────────────────────────────────────────────


def set_availability(availability: Optional[dict], *, updates: Iterable[dict]) -> tuple[dict, list]:
    """Apply ``{"date", "status"}`` updates. A ``None`` status clears the date.

    Unknown statuses are skipped and reported in the outcome.
    """
    current = dict(availability or {})
    skipped = []
    for update in updates:
        date, status = str(update.get("date")), update.get("status")
        if status is None:
            current.pop(date, None)
        elif status in AVAILABILITY_STATUSES:
            current[date] = status
        else:
            skipped.append(update)
    return current, skipped
