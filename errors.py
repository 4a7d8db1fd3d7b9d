"""Error taxonomy for the Daily Reminder backend.

API handlers map these to HTTP statuses; the scheduler logs them and keeps
going; StorageUnavailable at startup is fatal.
"""


class ReminderServiceError(Exception):
    """Base exception for reminder service errors"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class StorageUnavailable(ReminderServiceError):
    """Database directory could not be created or the file could not be opened"""


class InvalidEvent(ReminderServiceError):
    """Malformed event payload or missing required field"""

    status_code = 400


class EventNotFound(ReminderServiceError):
    """No event with the requested id"""

    status_code = 404

    def __init__(self, event_id: str):
        super().__init__(f"Event not found: {event_id}")
        self.event_id = event_id


class WriteFailed(ReminderServiceError):
    """Database rejected a write (constraint, I/O)"""


class NotifyFailed(ReminderServiceError):
    """Notification command missing or could not be launched"""
