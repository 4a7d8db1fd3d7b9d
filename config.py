"""Configuration module for the Daily Reminder backend.

This module provides configuration settings using Pydantic Settings.
Environment variables (prefixed with DAILY_REMINDER_) or a .env file can be
used to override default values; with no overrides the backend runs on
loopback port 8080 and stores its data in the per-user app-data directory.
"""

import os
import sys
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

__version__ = "1.0.0"

LOOPBACK_HOSTS = {"127.0.0.1", "localhost", "::1"}


class Settings(BaseSettings):
    """Application settings for the Daily Reminder backend.

    All settings can be overridden via environment variables.
    Example: export DAILY_REMINDER_API_PORT=9090
    """

    # API Server Configuration
    API_HOST: str = "127.0.0.1"
    """API server host address (loopback only)"""

    API_PORT: int = 8080
    """API server port used by the frontend"""

    # Storage Configuration
    DATA_DIR: Optional[Path] = None
    """Override for the app-data directory. Default: per-user app-data location"""

    APP_ORGANIZATION: str = "DailyReminder"
    """Organization folder under the per-user app-data directory"""

    APP_NAME: str = "Daily Activity Reminder"
    """Application folder under the organization folder"""

    DATABASE_FILENAME: str = "activities.db"
    """SQLite database file name inside the app-data directory"""

    # Scheduler Configuration
    SCHEDULER_TICK_SECONDS: int = Field(default=30, ge=10, le=60)
    """Interval in seconds between reminder scans (10-60)"""

    # Notification Configuration
    NOTIFICATIONS_ENABLED: bool = True
    """Show desktop notifications. When False reminders are only logged"""

    NOTIFICATION_TIMEOUT_MS: int = 10000
    """How long a desktop notification stays visible"""

    SOUND_FILE: Optional[Path] = None
    """Alert sound to play instead of the system-provided one"""

    # Frontend Configuration
    FRONTEND_URL: Optional[str] = None
    """Frontend opened in the system browser when not running headless"""

    # Logging Configuration
    LOG_TO_FILE: bool = True
    """Write rotating log files under <app-data>/logs"""

    LOG_LEVEL: str = "INFO"
    """Log level for the service loggers"""

    class Config:
        """Pydantic config"""
        env_prefix = "DAILY_REMINDER_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True

    @field_validator("API_HOST")
    @classmethod
    def _loopback_only(cls, value: str) -> str:
        if value not in LOOPBACK_HOSTS:
            raise ValueError(f"API_HOST must be a loopback address, got {value!r}")
        return value

    def app_data_dir(self) -> Path:
        """Return the per-user application-data directory for this app.

        Mirrors the platform conventions desktop toolkits use:
        - Linux/BSD: $XDG_DATA_HOME or ~/.local/share
        - macOS: ~/Library/Application Support
        - Windows: %APPDATA% (Roaming)
        """
        if self.DATA_DIR is not None:
            return Path(self.DATA_DIR)

        home = Path.home()
        if sys.platform.startswith("win"):
            base = Path(os.environ.get("APPDATA") or home / "AppData" / "Roaming")
        elif sys.platform == "darwin":
            base = home / "Library" / "Application Support"
        else:
            base = Path(os.environ.get("XDG_DATA_HOME") or home / ".local" / "share")

        return base / self.APP_ORGANIZATION / self.APP_NAME

    def database_path(self) -> Path:
        """Full path of the SQLite database file"""
        return self.app_data_dir() / self.DATABASE_FILENAME

    def logs_dir(self) -> Path:
        """Directory for rotating log files"""
        return self.app_data_dir() / "logs"


# Global settings instance
settings = Settings()
