#!/usr/bin/env python3
"""Populate a running Daily Reminder backend with sample events.

Events are placed relative to today (past week, today, tomorrow, this week)
so the calendar has something to show; most carry a reminder 30 minutes
before they start.

Usage:
    python seed_events.py
    python seed_events.py --base-url http://127.0.0.1:9090
"""

import argparse
import asyncio
import sys
from datetime import date, datetime, time, timedelta
from typing import List, Optional

import httpx

from config import settings
from logger_config import setup_logger

logger = setup_logger(__name__, 'seed.log')

REMINDER_LEAD = timedelta(minutes=30)

# (day offset, start hour, start minute, duration minutes, category, title, color, description, reminder)
SAMPLE_EVENTS = [
    (-7, 8, 0, 60, "Health", "Morning Jog", "green", "30-minute jog at the park", False),
    (-5, 9, 0, 480, "Work", "Client Meeting", "blue", "Quarterly review with ABC Corp", False),
    (0, 10, 0, 90, "Work", "Team Standup", "blue", "Daily sync with development team", True),
    (0, 14, 0, 60, "Personal", "Dentist Appointment", "red", "Regular checkup", True),
    (0, 18, 0, 60, "Shopping", "Grocery Shopping", "yellow", "Weekly groceries", True),
    (1, 6, 0, 60, "Exercise", "Gym Workout", "orange", "Leg day", True),
    (1, 19, 0, 120, "Study", "Online Course", "purple", "Complete modules 3-5", True),
    (3, 19, 0, 180, "Social", "Dinner with Friends", "purple", "Italian restaurant downtown", True),
    (4, 10, 0, 120, "Home", "House Cleaning", "green", "Living room and kitchen", True),
    (5, 15, 0, 60, "Personal", "Haircut", "yellow", "", True),
]


def generate_sample_events(today: date) -> List[dict]:
    """Build event payloads in the API's JSON shape, relative to today."""
    events = []
    for offset, hour, minute, duration, category, title, color, description, reminder in SAMPLE_EVENTS:
        start = datetime.combine(today + timedelta(days=offset), time(hour, minute))
        end = start + timedelta(minutes=duration)
        events.append({
            "category": category,
            "startDate": start.isoformat(),
            "endDate": end.isoformat(),
            "title": title,
            "color": color,
            "description": description,
            "reminderTime": (start - REMINDER_LEAD).isoformat() if reminder else None,
            "isReminderEnabled": reminder,
        })
    return events


async def check_backend(client: httpx.AsyncClient, base_url: str) -> bool:
    """Return True if the backend answers /status."""
    try:
        response = await client.get(f"{base_url}/status")
        return response.status_code == 200
    except httpx.RequestError as e:
        logger.error(f"Backend not reachable at {base_url}: {str(e)}")
        return False


async def create_event(client: httpx.AsyncClient, base_url: str, event: dict) -> Optional[dict]:
    """POST one event. Returns the created event, or None on failure."""
    try:
        response = await client.post(f"{base_url}/api/event", json=event)
    except httpx.TimeoutException:
        logger.error(f"Timeout while creating '{event['title']}'")
        return None
    except httpx.RequestError as e:
        logger.error(f"Network error while creating '{event['title']}': {str(e)}")
        return None

    if response.status_code != 201:
        logger.error(
            f"Failed to create '{event['title']}'. "
            f"Status: {response.status_code}, Response: {response.text}"
        )
        return None
    return response.json()


async def seed(
    base_url: str,
    today: Optional[date] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> int:
    """Create all sample events. Returns the number created, or -1 if the backend is down."""
    events = generate_sample_events(today or date.today())

    async with httpx.AsyncClient(timeout=10.0, transport=transport) as client:
        if not await check_backend(client, base_url):
            return -1

        created = 0
        for event in events:
            result = await create_event(client, base_url, event)
            if result:
                created += 1
                logger.info(f"✓ {result['title']} ({result['startDate']}) -> {result['id']}")
        return created


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Seed the Daily Reminder backend with sample events")
    parser.add_argument(
        "--base-url",
        default=f"http://{settings.API_HOST}:{settings.API_PORT}",
        help="backend base URL",
    )
    args = parser.parse_args(argv)
    base_url = args.base_url.rstrip("/")

    created = asyncio.run(seed(base_url))
    if created < 0:
        logger.error("Start the backend first: python main.py --headless")
        return 1

    logger.info(f"Seeded {created} event(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
