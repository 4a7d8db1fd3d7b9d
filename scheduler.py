"""Reminder scheduler for the Daily Reminder backend.

This module implements the periodic scanner that fires due reminders.

The scheduler:
- Ticks once immediately at startup (catch-up), then every SCHEDULER_TICK_SECONDS
- Asks the repository for armed reminders whose time has passed, oldest first
- Shows each one through the notifier, then clears its reminder flag
- Keeps an in-memory snapshot of future reminders, rebuilt on every change
  signal, for status reporting only; the database decides what fires
"""

import asyncio
from datetime import datetime
from typing import Callable, Dict, Optional

from crud import CREATED, DELETED, REMINDER_CHANGED, EventRepository, PendingReminder
from errors import EventNotFound
from logger_config import setup_logger
from notifier import Notifier
from schemas import EventOut, parse_local_datetime

logger = setup_logger(__name__, 'scheduler.log')

REFRESH_SIGNALS = (CREATED, DELETED, REMINDER_CHANGED)


class ReminderScheduler:
    """Periodic reminder scanner and notification dispatcher.

    Args:
        repository: Event repository to read and disable reminders
        notifier: Where due reminders are shown
        interval_seconds: Seconds between ticks
        clock: Returns the current local wall-clock time (datetime.now)
    """

    def __init__(
        self,
        repository: EventRepository,
        notifier: Notifier,
        interval_seconds: int = 30,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._repository = repository
        self._notifier = notifier
        self.interval_seconds = interval_seconds
        self._clock = clock

        self._snapshot: Dict[str, datetime] = {}
        self._task: Optional[asyncio.Task] = None
        self._shutdown_requested = False

        self.fired_total = 0
        self.last_fired = 0
        self.last_tick_at: Optional[datetime] = None
        self.ticks = 0

        repository.subscribe(self._on_change)

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def _on_change(self, kind: str, event_id: str) -> None:
        if kind in REFRESH_SIGNALS:
            logger.debug(f"Change signal {kind} for event {event_id}, refreshing")
            self.refresh()

    def refresh(self) -> None:
        """Rebuild the snapshot of future reminders from the database.

        Safe to call any number of times; errors are logged, not raised.
        """
        try:
            upcoming = self._repository.upcoming_reminders(self._clock())
        except Exception as e:
            logger.error(f"Error refreshing reminder snapshot: {str(e)}", exc_info=True)
            return

        self._snapshot = {reminder.id: reminder.reminder_time for reminder in upcoming}
        logger.debug(f"Reminder snapshot refreshed: {len(self._snapshot)} upcoming")

    @property
    def snapshot(self) -> Dict[str, datetime]:
        """Copy of {event id: reminder time} for armed future reminders"""
        return dict(self._snapshot)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self) -> int:
        """Fire every due reminder once.

        Returns:
            int: Number of reminders shown in this tick
        """
        now = self._clock()
        self.ticks += 1

        try:
            pending = self._repository.pending_reminders(now)
        except Exception as e:
            logger.error(f"Error reading pending reminders: {str(e)}", exc_info=True)
            return 0

        fired = 0
        for reminder in pending:
            if self._fire(reminder, now):
                fired += 1

        self.last_fired = fired
        self.fired_total += fired
        self.last_tick_at = now

        if fired:
            logger.info(f"Tick at {now.isoformat(timespec='seconds')}: fired {fired} reminder(s)")
            self.refresh()
        else:
            logger.debug("No due reminders at this time")
        return fired

    def _fire(self, reminder: PendingReminder, now: datetime) -> bool:
        """Show one reminder and disable it. Returns True if the notifier was invoked."""
        try:
            event = self._repository.get(reminder.id)
        except EventNotFound:
            logger.info(f"Event {reminder.id} deleted before its reminder fired")
            return False
        except Exception as e:
            logger.error(f"Error loading event {reminder.id}: {str(e)}", exc_info=True)
            return False

        # A write may have landed between the pending read and this load
        due_at = _due_at(event, now)
        if due_at is None:
            logger.info(f"Reminder for event {event.id} changed before it fired, skipping")
            return False

        logger.info(
            f"Firing reminder for event {event.id}: '{event.title}' "
            f"(due {due_at.isoformat(timespec='seconds')})"
        )

        try:
            self._notifier.show(event)
        except Exception as e:
            # Still disabled below so a broken notifier cannot cause a retry loop
            logger.error(f"Notifier failed for event {event.id}: {str(e)}", exc_info=True)

        try:
            # Only clears the epoch that was shown; a re-armed reminder stays armed
            self._repository.disable_reminder(event.id, reminder_at=due_at)
        except Exception as e:
            logger.error(
                f"Could not disable reminder for event {event.id}: {str(e)}. "
                f"Next tick retries if it is still armed."
            )
        return True

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Tick immediately, then every interval_seconds until stopped."""
        logger.info("Reminder scheduler started")
        logger.info(f"Check interval: {self.interval_seconds} seconds")

        self.refresh()
        iteration = 0
        while not self._shutdown_requested:
            try:
                iteration += 1
                logger.debug(f"Scheduler iteration {iteration} started")
                self.tick()
            except Exception as e:
                logger.error(f"Error in scheduler iteration {iteration}: {str(e)}", exc_info=True)

            # Sleep in 1-second steps to allow quick shutdown
            for _ in range(self.interval_seconds):
                if self._shutdown_requested:
                    break
                await asyncio.sleep(1)

        logger.info("Reminder scheduler stopped")

    def start(self) -> asyncio.Task:
        """Start run() as a task on the running event loop."""
        if self._task is None or self._task.done():
            self._shutdown_requested = False
            self._task = asyncio.create_task(self.run(), name="reminder-scheduler")
        return self._task

    async def stop(self) -> None:
        """Stop the loop and wait for the task to finish."""
        self._shutdown_requested = True
        if self._task is None:
            return

        try:
            await asyncio.wait_for(self._task, timeout=5)
        except asyncio.TimeoutError:
            logger.warning("Scheduler did not stop in time, cancelling")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        finally:
            self._task = None

    def stats(self) -> dict:
        """Scheduler counters for the status endpoint"""
        next_reminder = min(self._snapshot.values()) if self._snapshot else None
        return {
            "running": self._task is not None and not self._task.done(),
            "tick_interval_seconds": self.interval_seconds,
            "ticks": self.ticks,
            "last_tick_at": self.last_tick_at.isoformat(timespec='seconds') if self.last_tick_at else None,
            "last_fired": self.last_fired,
            "fired_total": self.fired_total,
            "upcoming_reminders": len(self._snapshot),
            "next_reminder_at": next_reminder.isoformat(timespec='seconds') if next_reminder else None,
        }


def _due_at(event: EventOut, now: datetime) -> Optional[datetime]:
    """Reminder time of an event that is still armed and due, else None."""
    if not event.is_reminder_enabled or event.reminder_time is None:
        return None
    due_at = parse_local_datetime(event.reminder_time)
    return due_at if due_at <= now else None
