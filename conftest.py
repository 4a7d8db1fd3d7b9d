"""Shared fixtures for the Daily Reminder tests.

Environment overrides must be set before config is imported, so they live at
the top of this module.
"""

import os

os.environ.setdefault("DAILY_REMINDER_LOG_TO_FILE", "false")
os.environ.setdefault("DAILY_REMINDER_NOTIFICATIONS_ENABLED", "false")

from datetime import datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from api_server import create_app  # noqa: E402
from crud import EventRepository  # noqa: E402
from database import Store  # noqa: E402
from notifier import Notifier  # noqa: E402
from scheduler import ReminderScheduler  # noqa: E402


class FakeClock:
    """Manually advanced local clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class RecordingNotifier(Notifier):
    """Notifier that remembers every event it was asked to show."""

    def __init__(self):
        self.shown = []

    def show(self, event) -> None:
        self.shown.append(event)

    @property
    def titles(self):
        return [event.title for event in self.shown]


class FailingNotifier(Notifier):
    """Notifier that always raises."""

    def __init__(self):
        self.calls = 0

    def show(self, event) -> None:
        self.calls += 1
        raise RuntimeError("notification daemon is gone")


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 1, 1, 8, 0, 0))


@pytest.fixture
def store(tmp_path):
    store = Store(tmp_path / "activities.db")
    yield store
    store.dispose()


@pytest.fixture
def repository(store, clock):
    return EventRepository(store, clock=clock)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def scheduler(repository, notifier, clock):
    return ReminderScheduler(repository, notifier, interval_seconds=30, clock=clock)


@pytest.fixture
def client(repository, scheduler):
    app = create_app(repository, scheduler, start_scheduler=False)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_payload():
    """Factory for event payloads in the API's JSON shape."""

    def _make(**overrides):
        payload = {
            "category": "work",
            "startDate": "2025-01-01T09:00:00",
            "endDate": "2025-01-01T10:00:00",
            "title": "standup",
            "color": "#4444ff",
            "description": "",
            "reminderTime": "2025-01-01T08:55:00",
            "isReminderEnabled": True,
        }
        payload.update(overrides)
        return payload

    return _make
