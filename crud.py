"""CRUD operations for the Daily Reminder backend.

This module provides the EventRepository: every read and write on the events
table, the pending-reminder queries the scheduler relies on, and change
notifications for anyone who subscribes.

IMPORTANT: due-time comparisons use the normalized reminder_at datetime
column, never the client's reminder_time string.
"""

import threading
import uuid
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, List, NamedTuple, Optional, Union

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from database import Event, Store
from errors import EventNotFound, InvalidEvent, WriteFailed
from logger_config import setup_logger
from schemas import EventIn, EventOut, format_validation_errors, parse_local_datetime

logger = setup_logger(__name__, 'crud.log')

# Change notification kinds
CREATED = "created"
UPDATED = "updated"
REMINDER_CHANGED = "reminder_changed"
DELETED = "deleted"

ChangeListener = Callable[[str, str], None]


class PendingReminder(NamedTuple):
    """An armed reminder as seen by the scheduler"""
    id: str
    reminder_time: datetime


def _to_record(row: Event) -> EventOut:
    """Convert an ORM row into the plain event record returned to callers."""
    return EventOut(
        id=row.id,
        category=row.category,
        start_date=row.start_date,
        end_date=row.end_date,
        title=row.title,
        color=row.color,
        description=row.description,
        reminder_time=row.reminder_time,
        is_reminder_enabled=bool(row.reminder_enabled),
    )


def _columns(event_in: EventIn) -> dict:
    """Column values for a validated event payload."""
    return {
        'category': event_in.category,
        'title': event_in.title,
        'color': event_in.color,
        'description': event_in.description,
        'start_date': event_in.start_date,
        'end_date': event_in.end_date,
        'reminder_time': event_in.reminder_time,
        'reminder_enabled': event_in.is_reminder_enabled,
        'start_at': parse_local_datetime(event_in.start_date),
        'reminder_at': (
            parse_local_datetime(event_in.reminder_time)
            if event_in.reminder_time is not None else None
        ),
    }


class EventRepository:
    """Repository over the events table.

    All calls run synchronously on the calling thread. FastAPI serves sync
    endpoints from a thread pool, so a re-entrant lock serializes database
    access; it is held for one call at a time and never while listeners run.
    """

    def __init__(self, store: Store, clock: Callable[[], datetime] = datetime.now):
        self._store = store
        self._clock = clock
        self._lock = threading.RLock()
        self._listeners: List[ChangeListener] = []

    # ------------------------------------------------------------------
    # Change notifications
    # ------------------------------------------------------------------

    def subscribe(self, listener: ChangeListener) -> None:
        """Register listener(kind, event_id) for created/updated/reminder_changed/deleted."""
        self._listeners.append(listener)

    def _emit(self, kind: str, event_id: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(kind, event_id)
            except Exception as e:
                logger.error(f"Change listener failed on {kind} {event_id}: {str(e)}", exc_info=True)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list(self, day: Optional[date] = None) -> List[EventOut]:
        """List events ordered by start time.

        Args:
            day: Optional local date; only events starting on that day are returned

        Returns:
            List[EventOut]: Event records, earliest start first
        """
        with self._lock, self._store.session() as db:
            query = db.query(Event)
            if day is not None:
                day_start = datetime.combine(day, time.min)
                query = query.filter(
                    Event.start_at >= day_start,
                    Event.start_at < day_start + timedelta(days=1)
                )
            rows = query.order_by(Event.start_at, Event.id).all()
            return [_to_record(row) for row in rows]

    def upcoming(self, now: Optional[datetime] = None, limit: int = 10) -> List[EventOut]:
        """Get events that have not started yet.

        Args:
            now: Reference time (default: the repository clock)
            limit: Maximum number of results

        Returns:
            List[EventOut]: Next events, earliest start first
        """
        now = now or self._clock()
        with self._lock, self._store.session() as db:
            rows = db.query(Event).filter(
                Event.start_at >= now
            ).order_by(Event.start_at, Event.id).limit(limit).all()
            return [_to_record(row) for row in rows]

    def get(self, event_id: str) -> EventOut:
        """Get a specific event by ID.

        Raises:
            EventNotFound: If no event has this id
        """
        with self._lock, self._store.session() as db:
            row = db.get(Event, event_id)
            if row is None:
                raise EventNotFound(event_id)
            return _to_record(row)

    def count(self) -> int:
        """Total number of stored events"""
        with self._lock, self._store.session() as db:
            return db.query(Event).count()

    def pending_reminders(self, now: datetime) -> List[PendingReminder]:
        """Get armed reminders whose time has arrived.

        Returns reminders with reminder_enabled set and reminder_at <= now,
        oldest first, ties broken by id.
        """
        with self._lock, self._store.session() as db:
            rows = db.query(Event.id, Event.reminder_at).filter(
                Event.reminder_enabled.is_(True),
                Event.reminder_at.isnot(None),
                Event.reminder_at <= now
            ).order_by(Event.reminder_at, Event.id).all()
            return [PendingReminder(row.id, row.reminder_at) for row in rows]

    def upcoming_reminders(self, now: datetime) -> List[PendingReminder]:
        """Get armed reminders that are still in the future (reminder_at > now)."""
        with self._lock, self._store.session() as db:
            rows = db.query(Event.id, Event.reminder_at).filter(
                Event.reminder_enabled.is_(True),
                Event.reminder_at.isnot(None),
                Event.reminder_at > now
            ).order_by(Event.reminder_at, Event.id).all()
            return [PendingReminder(row.id, row.reminder_at) for row in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _validate(self, data: Union[EventIn, Dict]) -> EventIn:
        if isinstance(data, EventIn):
            return data
        try:
            return EventIn.model_validate(data)
        except ValidationError as e:
            raise InvalidEvent(format_validation_errors(e.errors())) from e

    def create(self, data: Union[EventIn, Dict]) -> EventOut:
        """Create a new event with a fresh id.

        Args:
            data: Validated EventIn, or a dict in the event JSON shape

        Returns:
            EventOut: The stored event

        Raises:
            InvalidEvent: On missing or malformed fields
            WriteFailed: On database errors
        """
        event_in = self._validate(data)
        now = self._clock()
        row = Event(id=str(uuid.uuid4()), created_at=now, updated_at=now, **_columns(event_in))

        with self._lock:
            try:
                with self._store.session() as db:
                    db.add(row)
            except SQLAlchemyError as e:
                logger.error(f"Error creating event: {str(e)}")
                raise WriteFailed("Failed to create event") from e
            record = _to_record(row)

        logger.info(f"Created event {record.id}: '{record.title}'")
        self._emit(CREATED, record.id)
        return record

    def update(self, event_id: str, data: Union[EventIn, Dict]) -> EventOut:
        """Overwrite all mutable fields of an event.

        Emits "updated", plus "reminder_changed" when reminderTime or
        isReminderEnabled changed.

        Raises:
            InvalidEvent: On missing or malformed fields
            EventNotFound: If no event has this id
            WriteFailed: On database errors
        """
        event_in = self._validate(data)
        columns = _columns(event_in)

        with self._lock:
            try:
                with self._store.session() as db:
                    row = db.get(Event, event_id)
                    if row is None:
                        raise EventNotFound(event_id)

                    before = (row.reminder_time, bool(row.reminder_enabled))
                    for key, value in columns.items():
                        setattr(row, key, value)
                    row.updated_at = self._clock()
                    record = _to_record(row)
            except SQLAlchemyError as e:
                logger.error(f"Error updating event {event_id}: {str(e)}")
                raise WriteFailed("Failed to update event") from e

        reminder_changed = before != (record.reminder_time, record.is_reminder_enabled)
        logger.info(f"Updated event {event_id} (reminder changed: {reminder_changed})")
        self._emit(UPDATED, event_id)
        if reminder_changed:
            self._emit(REMINDER_CHANGED, event_id)
        return record

    def delete(self, event_id: str) -> None:
        """Delete an event.

        Raises:
            EventNotFound: If no event has this id
            WriteFailed: On database errors
        """
        with self._lock:
            try:
                with self._store.session() as db:
                    row = db.get(Event, event_id)
                    if row is None:
                        raise EventNotFound(event_id)
                    db.delete(row)
            except SQLAlchemyError as e:
                logger.error(f"Error deleting event {event_id}: {str(e)}")
                raise WriteFailed("Failed to delete event") from e

        logger.info(f"Deleted event {event_id}")
        self._emit(DELETED, event_id)

    def disable_reminder(self, event_id: str, reminder_at: Optional[datetime] = None) -> None:
        """Clear the reminder flag of an event.

        Idempotent: an already disabled reminder or an unknown id is a no-op.

        Args:
            event_id: Event whose reminder fired
            reminder_at: Only clear the flag if the reminder is still set for
                this time (a reminder moved since it was read stays armed)

        Raises:
            WriteFailed: On database errors
        """
        with self._lock:
            try:
                with self._store.session() as db:
                    query = db.query(Event).filter(
                        Event.id == event_id,
                        Event.reminder_enabled.is_(True)
                    )
                    if reminder_at is not None:
                        query = query.filter(Event.reminder_at == reminder_at)
                    changed = query.update(
                        {Event.reminder_enabled: False, Event.updated_at: self._clock()},
                        synchronize_session=False
                    )
            except SQLAlchemyError as e:
                logger.error(f"Error disabling reminder for event {event_id}: {str(e)}")
                raise WriteFailed("Failed to disable reminder") from e

        if changed:
            logger.info(f"Reminder disabled for event {event_id}")
