#!/usr/bin/env python3
"""Entry point for the Daily Reminder backend.

Opens the event database, wires repository, notifier and scheduler into the
FastAPI app, and serves it on loopback with uvicorn.

Usage:
    python main.py --headless --port=8080

Exit code 0 on clean shutdown, 1 when the database or the port is unavailable.
"""

import argparse
import sys
import webbrowser
from typing import List, Optional

import uvicorn

from api_server import create_app
from config import __version__, settings
from crud import EventRepository
from database import Store
from errors import StorageUnavailable
from logger_config import setup_logger
from notifier import build_notifier
from scheduler import ReminderScheduler

logger = setup_logger(__name__, 'service.log')


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Daily Reminder backend")
    parser.add_argument(
        "--headless",
        action="store_true",
        help="run the backend only, without opening the frontend",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.API_PORT,
        help=f"HTTP port on {settings.API_HOST} (default: {settings.API_PORT})",
    )
    args = parser.parse_args(argv)
    if not 0 <= args.port <= 65535:
        parser.error(f"invalid port: {args.port}")
    return args


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point - start backend and scheduler."""
    args = parse_args(argv)

    logger.info("=" * 60)
    logger.info(f"Daily Reminder Backend v{__version__} "
                f"({'headless' if args.headless else 'desktop'} mode)")
    logger.info("=" * 60)

    try:
        store = Store.from_settings(settings)
    except StorageUnavailable as e:
        logger.error(f"❌ Failed to initialize database: {e.message}")
        return 1

    repository = EventRepository(store)
    scheduler = ReminderScheduler(
        repository,
        build_notifier(settings),
        interval_seconds=settings.SCHEDULER_TICK_SECONDS,
    )
    app = create_app(repository, scheduler)

    server = uvicorn.Server(uvicorn.Config(
        app,
        host=settings.API_HOST,
        port=args.port,
        log_level="warning",
    ))

    logger.info(f"🚀 Serving on http://{settings.API_HOST}:{args.port}")
    logger.info("📋 Endpoints: GET /status | GET,POST /api/event | "
                "GET /api/event/upcoming | GET,PUT,DELETE /api/event/{id}")

    if not args.headless:
        if settings.FRONTEND_URL:
            logger.info(f"Opening frontend: {settings.FRONTEND_URL}")
            webbrowser.open_new_tab(settings.FRONTEND_URL)
        else:
            logger.info("No FRONTEND_URL configured; running backend only")

    try:
        server.run()
    except SystemExit:
        # uvicorn exits when the port cannot be bound
        pass
    finally:
        store.dispose()

    if not server.started:
        logger.error(f"❌ Failed to start server on port {args.port}")
        return 1

    logger.info("Daily Reminder Backend stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
