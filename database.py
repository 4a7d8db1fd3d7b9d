"""Database module for the Daily Reminder backend.

This module defines the SQLAlchemy Event model and the Store, which owns the
SQLite file, its engine and the session factory.

IMPORTANT: date fields are kept twice. The *_date / reminder_time columns hold
the client's ISO strings verbatim (so a POST round-trips unchanged), while
start_at / reminder_at hold naive local datetime objects used for ordering and
due-time comparisons.
"""

import contextlib
from pathlib import Path
from typing import Iterator

from sqlalchemy import Boolean, Column, DateTime, Index, String, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from errors import StorageUnavailable
from logger_config import setup_logger

logger = setup_logger(__name__, 'service.log')

# SQLAlchemy Base
Base = declarative_base()


class Event(Base):
    """Event model - one calendar entry with an optional reminder."""

    __tablename__ = "events"

    # Primary Key
    id = Column(String, primary_key=True, doc="Unique event ID (UUID)")

    # Event Content
    category = Column(String, nullable=False, doc="Category, e.g. Work, Health")
    title = Column(String, nullable=False, doc="Event title")
    color = Column(String, nullable=False, default="", doc="Display color hint")
    description = Column(String, nullable=False, default="", doc="Optional description")

    # Client-supplied ISO strings, stored verbatim
    start_date = Column(String, nullable=False, doc="Start as sent by the client")
    end_date = Column(String, nullable=False, doc="End as sent by the client")
    reminder_time = Column(String, nullable=True, doc="Reminder time as sent by the client")

    reminder_enabled = Column(Boolean, nullable=False, default=False, doc="Reminder armed flag")

    # Normalized local wall-clock datetimes used in queries
    start_at = Column(DateTime, nullable=False, doc="start_date as naive local datetime")
    reminder_at = Column(DateTime, nullable=True, doc="reminder_time as naive local datetime")

    # Timestamps (local wall clock)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index('idx_reminder_due', 'reminder_enabled', 'reminder_at'),
        Index('idx_start_at', 'start_at'),
    )

    def __repr__(self):
        """String representation"""
        return (
            f"<Event(id={self.id}, title={self.title}, start={self.start_date}, "
            f"reminder={self.reminder_time}, enabled={self.reminder_enabled})>"
        )


class Store:
    """Single-file SQLite store holding the events table.

    The Store is created once at startup and passed to the repository; nothing
    reaches the database through module-level state.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailable(
                f"Cannot create data directory {self.db_path.parent}: {e}"
            ) from e

        try:
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                connect_args={"check_same_thread": False, "timeout": 10.0},
                echo=False  # Set to True for SQL debugging
            )
            # Create table if absent (no migrations)
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Cannot open database {self.db_path}: {e}") from e

        self._session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False
        )
        logger.info(f"Database opened: {self.db_path}")

    @classmethod
    def from_settings(cls, settings) -> "Store":
        """Open the store at the configured app-data location."""
        return cls(settings.database_path())

    @contextlib.contextmanager
    def session(self) -> Iterator[Session]:
        """Session scope for the with statement.

        Commits on normal exit, rolls back on exception.
        """
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def dispose(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()
        logger.info("Database closed")
