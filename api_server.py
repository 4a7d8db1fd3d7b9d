"""FastAPI REST API server for the Daily Reminder backend.

This module provides the HTTP endpoints the calendar frontend talks to.
Every write goes through the EventRepository and then refreshes the reminder
scheduler so its view of upcoming reminders stays current. The repository's
change signal refreshes it as well; the explicit call covers a listener that
failed, and refresh is idempotent.

The server is bound to loopback only; see main.py.
"""

from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

import schemas
from config import __version__
from crud import EventRepository
from errors import ReminderServiceError
from logger_config import setup_logger
from scheduler import ReminderScheduler

logger = setup_logger(__name__, 'api.log')

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,POST,PUT,DELETE,PATCH,OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
    "Access-Control-Max-Age": "86400",
}


class UTF8JSONResponse(JSONResponse):
    """JSON response that spells out its charset"""
    media_type = "application/json; charset=utf-8"


def error_response(message: str, status_code: int) -> UTF8JSONResponse:
    """Error body shared by all failures: {"error": "<message>"}"""
    return UTF8JSONResponse(status_code=status_code, content={"error": message})


def get_repository(request: Request) -> EventRepository:
    """Event repository dependency for FastAPI."""
    return request.app.state.repository


def get_scheduler(request: Request) -> ReminderScheduler:
    """Reminder scheduler dependency for FastAPI."""
    return request.app.state.scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the reminder scheduler for as long as the server is up."""
    scheduler: ReminderScheduler = app.state.scheduler
    if app.state.start_scheduler:
        scheduler.start()
    yield
    await scheduler.stop()


def create_app(
    repository: EventRepository,
    scheduler: ReminderScheduler,
    start_scheduler: bool = True,
) -> FastAPI:
    """Build the FastAPI application around a repository and scheduler.

    Args:
        repository: Event repository backing the endpoints
        scheduler: Scheduler refreshed after writes (and started with the app)
        start_scheduler: Start the scheduler loop in the app lifespan

    Returns:
        FastAPI: Configured application
    """
    app = FastAPI(
        title="Daily Reminder API",
        description="Local calendar events with desktop reminders",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        default_response_class=UTF8JSONResponse,
        lifespan=lifespan,
    )
    app.state.repository = repository
    app.state.scheduler = scheduler
    app.state.start_scheduler = start_scheduler

    # CORS for the frontend (any origin, loopback-only server).
    # Every OPTIONS gets 200 with the fixed headers, whatever it asks for.
    @app.middleware("http")
    async def cors(request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=CORS_HEADERS)
        response = await call_next(request)
        response.headers["Access-Control-Allow-Origin"] = "*"
        return response

    _register_error_handlers(app)
    _register_routes(app)
    return app


def _register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(ReminderServiceError)
    async def service_error_handler(request: Request, exc: ReminderServiceError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return error_response(exc.message, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return error_response(schemas.format_validation_errors(exc.errors()), 400)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return error_response(str(exc.detail), exc.status_code)


def _register_routes(app: FastAPI) -> None:

    @app.get("/status")
    def status(
        repository: EventRepository = Depends(get_repository),
        scheduler: ReminderScheduler = Depends(get_scheduler),
    ):
        """Service status, for the frontend and for monitoring"""
        return {
            "status": "Daily Reminder Backend is running!",
            "service": "Daily Reminder HTTP API",
            "version": __version__,
            "events": repository.count(),
            "scheduler": scheduler.stats(),
        }

    @app.get("/api/event", response_model=List[schemas.EventOut])
    def list_events(
        day: Optional[date] = Query(None, alias="date", description="Only events starting on this date (YYYY-MM-DD)"),
        repository: EventRepository = Depends(get_repository),
    ):
        """List all events, earliest start first."""
        return repository.list(day)

    @app.get("/api/event/upcoming", response_model=List[schemas.EventOut])
    def upcoming_events(
        limit: int = Query(10, ge=1, le=100, description="Maximum number of results"),
        repository: EventRepository = Depends(get_repository),
    ):
        """Events that have not started yet, earliest first."""
        return repository.upcoming(limit=limit)

    @app.post("/api/event", response_model=schemas.EventOut, status_code=201)
    def create_event(
        event: schemas.EventIn,
        repository: EventRepository = Depends(get_repository),
        scheduler: ReminderScheduler = Depends(get_scheduler),
    ):
        """Create a new event.

        Request body example:
        ```json
        {
            "category": "work",
            "startDate": "2025-01-01T09:00:00",
            "endDate": "2025-01-01T10:00:00",
            "title": "standup",
            "color": "#4444ff",
            "description": "",
            "reminderTime": "2025-01-01T08:55:00",
            "isReminderEnabled": true
        }
        ```
        """
        created = repository.create(event)
        scheduler.refresh()
        return created

    @app.get("/api/event/{event_id}", response_model=schemas.EventOut)
    def get_event(
        event_id: str,
        repository: EventRepository = Depends(get_repository),
    ):
        """Get a specific event by ID."""
        return repository.get(event_id)

    @app.put("/api/event/{event_id}", response_model=schemas.EventOut)
    def update_event(
        event_id: str,
        event: schemas.EventIn,
        repository: EventRepository = Depends(get_repository),
        scheduler: ReminderScheduler = Depends(get_scheduler),
    ):
        """Replace an event. All mutable fields are overwritten."""
        updated = repository.update(event_id, event)
        scheduler.refresh()
        return updated

    @app.delete("/api/event/{event_id}", status_code=200)
    def delete_event(
        event_id: str,
        repository: EventRepository = Depends(get_repository),
        scheduler: ReminderScheduler = Depends(get_scheduler),
    ):
        """Delete an event."""
        repository.delete(event_id)
        scheduler.refresh()
        return {"message": "Event deleted successfully", "id": event_id}
