"""Document Store Adapter: compare-and-swap access to event and user state.

Two kinds of CAS-protected resources live here:

- **Event documents** (``event_documents`` rows): one JSON body per
  (event, collection), each with its own version counter, so writers of
  different collections never contend with each other.
- **Event rows** (``events``): status-scoped fields, reminder flags and the
  retention stage, guarded by ``Event.version``.

A CAS is a single conditional ``UPDATE ... WHERE version = :expected``; the
row count tells success from conflict. ``mutate`` and ``update_event`` wrap
that in a bounded reload/reapply/re-CAS loop. Writes made on behalf of a user
also "touch" the event (advance ``updated_at`` and clear the deletion
warning) in the same transaction.

Lock order is always event row first, then documents, then users.
"""
import enum
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from planner.config import settings
from planner.errors import Conflict, NotFound, StoreUnavailable
from planner.models.event import Collection, Event, EventDocument, EventStatus, empty_document, utcnow
from planner.models.user import User, UserCollection

logger = logging.getLogger(__name__)

Mutator = Callable[[Any], tuple[Any, Any]]


class CasResult(str, enum.Enum):
    success = "success"
    conflict = "conflict"
    not_found = "not_found"


@dataclass
class MutationResult:
    value: Any
    outcome: Any
    rescued: bool = False  # this write cleared a pending deletion warning


@dataclass
class RowUpdate:
    event: Event
    rescued: bool = False


class DocumentStore:
    def __init__(self, session_factory: sessionmaker, max_attempts: Optional[int] = None):
        self._session_factory = session_factory
        self.max_attempts = max_attempts or settings.CAS_MAX_ATTEMPTS

    @contextmanager
    def _session(self):
        session: Session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Store operation failed: %s", exc)
            raise StoreUnavailable("Document store unavailable") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ── Event documents ────────────────────────────────────────────

    def load_collection(self, event_id: str, field: Collection) -> tuple[Any, int]:
        """Return ``(body, version)`` for one event document."""
        with self._session() as session:
            row = session.execute(
                select(EventDocument.body, EventDocument.version).where(
                    EventDocument.event_id == event_id,
                    EventDocument.name == Collection(field),
                )
            ).first()
        if row is None:
            raise NotFound("Event not found")
        return row.body, row.version

    def load_collections(self, event_id: str, fields: Iterable[Collection]) -> dict[Collection, Any]:
        wanted = [Collection(f) for f in fields]
        with self._session() as session:
            rows = session.execute(
                select(EventDocument.name, EventDocument.body).where(
                    EventDocument.event_id == event_id,
                    EventDocument.name.in_(wanted),
                )
            ).all()
        if not rows:
            raise NotFound("Event not found")
        found = {name: body for name, body in rows}
        return {name: found.get(name, empty_document(name)) for name in wanted}

    def cas_store_collection(
        self,
        event_id: str,
        field: Collection,
        expected_version: int,
        new_value: Any,
        touch: bool = False,
    ) -> CasResult:
        with self._session() as session:
            rescued = self._touch(session, event_id) if touch else False
            result = self._cas_document(session, event_id, Collection(field), expected_version, new_value)
            if result is CasResult.success:
                session.commit()
                if rescued:
                    logger.info("Deletion warning cleared for event %s", event_id)
            else:
                session.rollback()
        return result

    def mutate(
        self,
        event_id: str,
        field: Collection,
        mutator: Mutator,
        touch: bool = True,
    ) -> MutationResult:
        """Apply ``mutator`` to a document under CAS, retrying on conflict.

        Mutator errors (``InvalidState``, ``Forbidden``, ...) propagate on the
        first attempt that raises them.
        """
        field = Collection(field)
        for attempt in range(1, self.max_attempts + 1):
            value, version = self.load_collection(event_id, field)
            new_value, outcome = mutator(value)
            with self._session() as session:
                rescued = self._touch(session, event_id) if touch else False
                result = self._cas_document(session, event_id, field, version, new_value)
                if result is CasResult.success:
                    session.commit()
                    return MutationResult(new_value, outcome, rescued)
                session.rollback()
            if result is CasResult.not_found:
                raise NotFound("Event not found")
            logger.debug(
                "CAS conflict on %s/%s at version %d (attempt %d/%d)",
                event_id, field.value, version, attempt, self.max_attempts,
            )
        raise Conflict(f"Too many concurrent updates to {field.value} of event {event_id}")

    def _cas_document(
        self, session: Session, event_id: str, field: Collection, expected_version: int, new_value: Any
    ) -> CasResult:
        result = session.execute(
            update(EventDocument)
            .where(
                EventDocument.event_id == event_id,
                EventDocument.name == field,
                EventDocument.version == expected_version,
            )
            .values(body=new_value, version=EventDocument.version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return CasResult.success
        exists = session.execute(
            select(EventDocument.version).where(
                EventDocument.event_id == event_id, EventDocument.name == field
            )
        ).first()
        return CasResult.conflict if exists else CasResult.not_found

    def _touch(self, session: Session, event_id: str) -> bool:
        """Record activity on the event. Returns True if a warning was cleared."""
        flipped = session.execute(
            update(Event)
            .where(Event.event_id == event_id, Event.deleted_warning_sent.is_(True))
            .values(deleted_warning_sent=False, deletion_warned_at=None)
            .execution_options(synchronize_session=False)
        ).rowcount == 1
        session.execute(
            update(Event)
            .where(Event.event_id == event_id)
            .values(updated_at=utcnow(), version=Event.version + 1)
            .execution_options(synchronize_session=False)
        )
        return flipped

    # ── Event rows ─────────────────────────────────────────────────

    def create_event(self, event: Event) -> Event:
        """Insert an event together with an empty document per collection."""
        with self._session() as session:
            session.add(event)
            session.flush()
            for name in Collection:
                session.add(EventDocument(event_id=event.event_id, name=name, body=empty_document(name)))
            session.commit()
            session.refresh(event)
            session.expunge(event)
        logger.info("Created event '%s' (%s) for organiser %s", event.title, event.event_id, event.organiser_id)
        return event

    def load_event(self, event_id: str) -> Event:
        with self._session() as session:
            event = session.get(Event, event_id)
            if event is None:
                raise NotFound("Event not found")
            session.expunge(event)
        return event

    def list_events(self, status: Optional[EventStatus] = None, with_reminder: bool = False) -> list[Event]:
        query = select(Event)
        if status is not None:
            query = query.where(Event.status == status)
        if with_reminder:
            query = query.where(Event.reminder_time.is_not(None))
        with self._session() as session:
            events = list(session.execute(query).scalars())
            session.expunge_all()
        return events

    def update_event(
        self,
        event_id: str,
        apply: Callable[[Event], dict],
        touch: bool = True,
        expected_version: Optional[int] = None,
    ) -> RowUpdate:
        """CAS-update row fields computed by ``apply(current_event)``.

        With ``expected_version`` the caller pins the version it last saw and a
        mismatch is reported as ``Conflict`` straight away, without retrying.
        """
        attempts = 1 if expected_version is not None else self.max_attempts
        for attempt in range(1, attempts + 1):
            event = self.load_event(event_id)
            if expected_version is not None and event.version != expected_version:
                raise Conflict(
                    f"Version mismatch: expected {event.version}, got {expected_version}. Re-fetch and retry."
                )
            values = dict(apply(event))
            rescued = False
            if touch:
                rescued = bool(event.deleted_warning_sent)
                values.update(updated_at=utcnow(), deleted_warning_sent=False, deletion_warned_at=None)

            with self._session() as session:
                result = self._cas_event(session, event_id, event.version, values)
                if result is CasResult.success:
                    session.commit()
                else:
                    session.rollback()
            if result is CasResult.success:
                for name, value in values.items():
                    setattr(event, name, value)
                event.version += 1
                return RowUpdate(event, rescued)
            if result is CasResult.not_found:
                raise NotFound("Event not found")
            logger.debug("CAS conflict on event %s (attempt %d/%d)", event_id, attempt, attempts)
        raise Conflict(f"Too many concurrent updates to event {event_id}")

    def _cas_event(self, session: Session, event_id: str, expected_version: int, values: dict) -> CasResult:
        result = session.execute(
            update(Event)
            .where(Event.event_id == event_id, Event.version == expected_version)
            .values(**values, version=Event.version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return CasResult.success
        exists = session.execute(select(Event.version).where(Event.event_id == event_id)).first()
        return CasResult.conflict if exists else CasResult.not_found

    def delete_event(self, event_id: str, expected_version: int) -> CasResult:
        """Delete the event and its documents if nobody wrote it since ``expected_version``."""
        with self._session() as session:
            result = self._cas_event(session, event_id, expected_version, {})
            if result is not CasResult.success:
                session.rollback()
                return result
            session.execute(delete(EventDocument).where(EventDocument.event_id == event_id))
            session.execute(delete(Event).where(Event.event_id == event_id))
            session.commit()
        return CasResult.success

    # ── Users ──────────────────────────────────────────────────────

    def create_user(self, user: User) -> User:
        with self._session() as session:
            session.add(user)
            session.commit()
            session.refresh(user)
            session.expunge(user)
        return user

    def get_user(self, user_id: str) -> User:
        with self._session() as session:
            user = session.get(User, user_id)
            if user is None:
                raise NotFound("User not found")
            session.expunge(user)
        return user

    def get_users(self, user_ids: Iterable[str]) -> dict[str, User]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return {}
        with self._session() as session:
            users = list(session.execute(select(User).where(User.user_id.in_(ids))).scalars())
            session.expunge_all()
        return {user.user_id: user for user in users}

    def is_user_referenced(self, user_id: str) -> bool:
        """True if any event names ``user_id`` as its organiser or an attendee."""
        with self._session() as session:
            owns = session.execute(
                select(Event.event_id).where(Event.organiser_id == user_id).limit(1)
            ).first()
            if owns is not None:
                return True
            bodies = session.execute(
                select(EventDocument.body).where(EventDocument.name == Collection.attendees)
            ).scalars()
            return any(user_id in (body or []) for body in bodies)

    def update_user(self, user_id: str, values: dict) -> User:
        """Plain field update for single-valued profile columns."""
        with self._session() as session:
            result = session.execute(
                update(User)
                .where(User.user_id == user_id)
                .values(**values, version=User.version + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFound("User not found")
            session.commit()
        return self.get_user(user_id)

    def delete_users(self, user_ids: Iterable[str]) -> int:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return 0
        with self._session() as session:
            result = session.execute(delete(User).where(User.user_id.in_(ids)))
            session.commit()
        return result.rowcount

    def load_user_collection(self, user_id: str, field: UserCollection) -> tuple[Any, int]:
        column = getattr(User, UserCollection(field).value)
        with self._session() as session:
            row = session.execute(select(column, User.version).where(User.user_id == user_id)).first()
        if row is None:
            raise NotFound("User not found")
        return row[0], row[1]

    def cas_store_user_collection(
        self, user_id: str, field: UserCollection, expected_version: int, new_value: Any
    ) -> CasResult:
        name = UserCollection(field).value
        with self._session() as session:
            result = session.execute(
                update(User)
                .where(User.user_id == user_id, User.version == expected_version)
                .values({name: new_value, "version": User.version + 1})
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                session.commit()
                return CasResult.success
            session.rollback()
            exists = session.execute(select(User.version).where(User.user_id == user_id)).first()
        return CasResult.conflict if exists else CasResult.not_found

    def mutate_user(self, user_id: str, field: UserCollection, mutator: Mutator) -> MutationResult:
        for attempt in range(1, self.max_attempts + 1):
            value, version = self.load_user_collection(user_id, field)
            new_value, outcome = mutator(value)
            result = self.cas_store_user_collection(user_id, field, version, new_value)
            if result is CasResult.success:
                return MutationResult(new_value, outcome)
            if result is CasResult.not_found:
                raise NotFound("User not found")
            logger.debug("CAS conflict on user %s/%s (attempt %d/%d)", user_id, field, attempt, self.max_attempts)
        raise Conflict(f"Too many concurrent updates to {field} of user {user_id}")


_store: Optional[DocumentStore] = None


def get_store() -> DocumentStore:
    """Dependency returning the process-wide store bound to ``SessionLocal``."""
    global _store
    if _store is None:
        from planner.database import SessionLocal

        _store = DocumentStore(SessionLocal)
    return _store
