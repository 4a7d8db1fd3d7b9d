"""Pydantic schemas for the Daily Reminder backend.

This module defines request and response schemas for the event API.
IMPORTANT: date fields travel as ISO 8601 strings and are returned exactly as
the client sent them. They are validated by parsing, and the parsed value is
normalized to a naive local datetime for scheduling.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


def parse_local_datetime(value: str) -> datetime:
    """Parse an ISO datetime string into a naive local wall-clock datetime.

    Handles:
    - Naive ISO: "2025-01-01T09:00:00" -> taken as local time
    - ISO with Z: "2025-01-01T08:00:00.000Z" -> converted to local time
    - ISO with offset: "2025-01-01T09:00:00+05:30" -> converted to local time

    Raises:
        ValueError: If the string is not an ISO datetime
    """
    dt = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt


def format_validation_errors(errors: List[Dict]) -> str:
    """Flatten Pydantic error dicts into one readable message.

    Example: "body.title: String should have at least 1 character"
    """
    parts = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"


class EventBase(BaseModel):
    """Fields shared by event requests and responses.

    Python attribute names are snake_case; JSON uses the frontend's camelCase.
    """

    category: str = Field(
        ...,
        min_length=1,
        description="Event category",
        examples=["Work", "Personal", "Health"]
    )

    start_date: str = Field(
        ...,
        alias="startDate",
        description="Start (ISO 8601, local wall clock)",
        examples=["2025-01-01T09:00:00"]
    )

    end_date: str = Field(
        ...,
        alias="endDate",
        description="End (ISO 8601, local wall clock), not before startDate",
        examples=["2025-01-01T10:00:00"]
    )

    title: str = Field(
        ...,
        min_length=1,
        description="Event title",
        examples=["Team Standup"]
    )

    color: str = Field(
        default="",
        description="Display color hint",
        examples=["blue", "#4444ff"]
    )

    description: str = Field(
        default="",
        description="Optional detailed description"
    )

    reminder_time: Optional[str] = Field(
        None,
        alias="reminderTime",
        description="When to show the reminder (ISO 8601), or null"
    )

    is_reminder_enabled: bool = Field(
        False,
        alias="isReminderEnabled",
        description="Whether the reminder is armed"
    )

    class Config:
        """Pydantic configuration"""
        populate_by_name = True


class EventIn(EventBase):
    """Schema for creating or replacing an event.

    Any "id" in the body is ignored; the server assigns ids.
    """

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, value):
        return "" if value is None else value

    @field_validator("reminder_time", mode="before")
    @classmethod
    def _blank_reminder_time(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("is_reminder_enabled", mode="before")
    @classmethod
    def _none_enabled(cls, value):
        return False if value is None else value

    @field_validator("start_date", "end_date", "reminder_time")
    @classmethod
    def _iso_datetime(cls, value: Optional[str], info) -> Optional[str]:
        if value is None:
            return value
        try:
            parse_local_datetime(value)
        except ValueError:
            raise ValueError(f"{info.field_name} is not an ISO 8601 datetime: {value!r}")
        return value

    @model_validator(mode="after")
    def _check_consistency(self) -> "EventIn":
        if parse_local_datetime(self.end_date) < parse_local_datetime(self.start_date):
            raise ValueError("endDate must not be before startDate")
        if self.is_reminder_enabled and self.reminder_time is None:
            raise ValueError("reminderTime is required when isReminderEnabled is true")
        return self


class EventOut(EventBase):
    """Schema for event responses."""

    id: str = Field(..., description="Unique event ID")

    class Config:
        """Pydantic configuration"""
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "id": "3f2b9c1e-8a47-4d0e-9d6c-5b1a2e7f4c10",
                "category": "work",
                "startDate": "2025-01-01T09:00:00",
                "endDate": "2025-01-01T10:00:00",
                "title": "standup",
                "color": "#4444ff",
                "description": "",
                "reminderTime": "2025-01-01T08:55:00",
                "isReminderEnabled": True
            }
        }
