"""Tests for the reminder scheduler.

Time is driven by a fake clock; ticks are called directly except in the loop
tests, which run the real asyncio task briefly.
"""

import asyncio
from datetime import timedelta

import pytest

from conftest import FailingNotifier, RecordingNotifier
from errors import EventNotFound, WriteFailed
from scheduler import ReminderScheduler


def _at(clock, **delta):
    """ISO string for clock time plus delta"""
    return (clock() + timedelta(**delta)).isoformat()


def test_basic_fire(repository, scheduler, notifier, clock, make_payload):
    """A due reminder is shown once and then disabled"""
    event = repository.create(make_payload(title="standup", reminderTime=_at(clock, seconds=2)))

    assert scheduler.tick() == 0
    assert notifier.shown == []

    clock.advance(seconds=3)
    assert scheduler.tick() == 1
    assert notifier.titles == ["standup"]
    assert repository.get(event.id).is_reminder_enabled is False


def test_fires_at_most_once(repository, scheduler, notifier, clock, make_payload):
    repository.create(make_payload(reminderTime=_at(clock, minutes=-1)))

    for _ in range(5):
        scheduler.tick()
        clock.advance(seconds=30)

    assert len(notifier.shown) == 1


def test_disable_before_fire(repository, scheduler, notifier, clock, make_payload):
    event = repository.create(make_payload(reminderTime=_at(clock, seconds=2)))
    repository.update(event.id, make_payload(reminderTime=_at(clock, seconds=2), isReminderEnabled=False))

    clock.advance(seconds=3)
    for _ in range(3):
        scheduler.tick()

    assert notifier.shown == []


def test_catch_up_fires_overdue_oldest_first(repository, notifier, clock, make_payload):
    """Reminders missed while the process was down all fire on the first tick"""
    repository.create(make_payload(title="one minute ago", reminderTime=_at(clock, minutes=-1)))
    repository.create(make_payload(title="ten minutes ago", reminderTime=_at(clock, minutes=-10)))
    repository.create(make_payload(title="five minutes ago", reminderTime=_at(clock, minutes=-5)))

    scheduler = ReminderScheduler(repository, notifier, clock=clock)

    assert scheduler.tick() == 3
    assert notifier.titles == ["ten minutes ago", "five minutes ago", "one minute ago"]

    assert scheduler.tick() == 0
    assert len(notifier.shown) == 3


def test_hours_overdue_still_fires(repository, scheduler, notifier, clock, make_payload):
    repository.create(make_payload(reminderTime=_at(clock, hours=-6)))
    assert scheduler.tick() == 1


def test_delete_during_arm(repository, scheduler, notifier, clock, make_payload):
    event = repository.create(make_payload(reminderTime=_at(clock, seconds=2)))
    repository.delete(event.id)

    clock.advance(seconds=3)
    scheduler.tick()

    assert notifier.shown == []
    with pytest.raises(EventNotFound):
        repository.get(event.id)


def test_notifier_failure_still_disables(repository, clock, make_payload):
    failing = FailingNotifier()
    scheduler = ReminderScheduler(repository, failing, clock=clock)
    event = repository.create(make_payload(reminderTime=_at(clock, seconds=-1)))

    assert scheduler.tick() == 1
    assert failing.calls == 1
    assert repository.get(event.id).is_reminder_enabled is False

    scheduler.tick()
    assert failing.calls == 1


def test_failed_disable_retries_next_tick(repository, scheduler, notifier, clock, make_payload, monkeypatch):
    repository.create(make_payload(reminderTime=_at(clock, seconds=-1)))

    def broken_disable(event_id, reminder_at=None):
        raise WriteFailed("Failed to disable reminder")

    with monkeypatch.context() as patch:
        patch.setattr(repository, "disable_reminder", broken_disable)
        scheduler.tick()
    assert len(notifier.shown) == 1

    scheduler.tick()
    assert len(notifier.shown) == 2

    scheduler.tick()
    assert len(notifier.shown) == 2


def _write_after_pending_read(repository, monkeypatch, write):
    """Run write() once, between the tick's pending read and its event load."""
    original_get = repository.get
    done = []

    def get_after_write(event_id):
        if not done:
            done.append(True)
            write()
        return original_get(event_id)

    monkeypatch.setattr(repository, "get", get_after_write)


def test_disable_racing_tick_does_not_fire(repository, scheduler, notifier, clock, make_payload, monkeypatch):
    reminder_time = _at(clock, minutes=-1)
    event = repository.create(make_payload(reminderTime=reminder_time))

    _write_after_pending_read(repository, monkeypatch, lambda: repository.update(
        event.id, make_payload(reminderTime=reminder_time, isReminderEnabled=False)
    ))

    assert scheduler.tick() == 0
    assert notifier.shown == []
    assert repository.get(event.id).is_reminder_enabled is False


def test_rearm_racing_tick_keeps_new_reminder(repository, scheduler, notifier, clock, make_payload, monkeypatch):
    """Moving a due reminder into the future while a tick runs defers it"""
    event = repository.create(make_payload(reminderTime=_at(clock, minutes=-1)))
    later = _at(clock, hours=2)

    _write_after_pending_read(repository, monkeypatch, lambda: repository.update(
        event.id, make_payload(reminderTime=later, isReminderEnabled=True)
    ))

    assert scheduler.tick() == 0
    assert notifier.shown == []

    stored = repository.get(event.id)
    assert stored.reminder_time == later
    assert stored.is_reminder_enabled is True

    clock.advance(hours=3)
    assert scheduler.tick() == 1
    assert len(notifier.shown) == 1
    assert repository.get(event.id).is_reminder_enabled is False


def test_moved_but_still_due_fires_new_time(repository, scheduler, notifier, clock, make_payload, monkeypatch):
    event = repository.create(make_payload(reminderTime=_at(clock, minutes=-10)))
    moved = _at(clock, minutes=-2)

    _write_after_pending_read(repository, monkeypatch, lambda: repository.update(
        event.id, make_payload(reminderTime=moved, isReminderEnabled=True)
    ))

    assert scheduler.tick() == 1
    assert repository.get(event.id).is_reminder_enabled is False

    assert scheduler.tick() == 0
    assert len(notifier.shown) == 1


def test_pending_read_failure_does_not_escape(repository, scheduler, notifier, monkeypatch):
    def broken_pending(now):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(repository, "pending_reminders", broken_pending)
    assert scheduler.tick() == 0


def test_re_enable_starts_new_epoch(repository, scheduler, notifier, clock, make_payload):
    reminder_time = _at(clock, minutes=-1)
    event = repository.create(make_payload(reminderTime=reminder_time))

    scheduler.tick()
    assert len(notifier.shown) == 1

    repository.update(event.id, make_payload(reminderTime=reminder_time, isReminderEnabled=True))
    scheduler.tick()
    assert len(notifier.shown) == 2


def test_refresh_snapshot_holds_future_reminders(repository, scheduler, clock, make_payload):
    future = repository.create(make_payload(reminderTime=_at(clock, minutes=30)))
    repository.create(make_payload(reminderTime=_at(clock, minutes=-30)))
    repository.create(make_payload(reminderTime=_at(clock, minutes=45), isReminderEnabled=False))

    scheduler.refresh()
    assert list(scheduler.snapshot) == [future.id]


def test_refresh_is_idempotent(repository, scheduler, clock, make_payload):
    repository.create(make_payload(reminderTime=_at(clock, minutes=10)))
    repository.create(make_payload(reminderTime=_at(clock, minutes=20)))

    scheduler.refresh()
    once = scheduler.snapshot
    for _ in range(4):
        scheduler.refresh()

    assert scheduler.snapshot == once
    assert len(once) == 2


def test_change_signals_refresh_snapshot(repository, scheduler, clock, make_payload):
    event = repository.create(make_payload(reminderTime=_at(clock, minutes=10)))
    assert event.id in scheduler.snapshot

    repository.update(event.id, make_payload(reminderTime=_at(clock, minutes=10), isReminderEnabled=False))
    assert event.id not in scheduler.snapshot

    repository.update(event.id, make_payload(reminderTime=_at(clock, minutes=10), isReminderEnabled=True))
    assert event.id in scheduler.snapshot

    repository.delete(event.id)
    assert scheduler.snapshot == {}


def test_snapshot_does_not_decide_firing(repository, scheduler, notifier, clock, make_payload):
    """A stale snapshot cannot stop a due reminder from firing"""
    repository.create(make_payload(reminderTime=_at(clock, seconds=-5)))
    scheduler._snapshot = {}

    assert scheduler.tick() == 1


def test_stats(repository, scheduler, clock, make_payload):
    repository.create(make_payload(reminderTime=_at(clock, seconds=-5)))
    repository.create(make_payload(reminderTime=_at(clock, minutes=5)))

    scheduler.tick()
    stats = scheduler.stats()
    assert stats["fired_total"] == 1
    assert stats["last_fired"] == 1
    assert stats["upcoming_reminders"] == 1
    assert stats["tick_interval_seconds"] == 30
    assert stats["running"] is False


@pytest.mark.asyncio
async def test_run_ticks_immediately_and_stops(repository, clock, make_payload):
    notifier = RecordingNotifier()
    scheduler = ReminderScheduler(repository, notifier, interval_seconds=10, clock=clock)
    repository.create(make_payload(reminderTime=_at(clock, minutes=-1)))

    scheduler.start()
    await asyncio.sleep(0.1)
    assert scheduler.stats()["running"] is True
    assert len(notifier.shown) == 1

    await scheduler.stop()
    assert scheduler.stats()["running"] is False


@pytest.mark.asyncio
async def test_stop_without_start_is_noop(scheduler):
    await scheduler.stop()
