"""
Nagger — Centralized configuration.

Loads all settings from .env and validates required keys.
The reminder defaults are validated here so that a broken default
timezone stops the process at startup instead of on the first tick.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

# Load .env from project root (two levels up from nagger/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    model_config = ConfigDict(frozen=True)

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # SQLite
    DATABASE_PATH: str = "data/nagger.db"

    # Process-wide reminder defaults (chats without /setreminder use these)
    REMINDER_TIME: str = "09:00"
    REMINDER_TIMEZONE: str = "UTC"

    # Retention sweep
    MESSAGE_TTL_HOURS: int = 24
    CLEANUP_INTERVAL_MINUTES: int = 60

    LOG_LEVEL: str = "INFO"

    @field_validator("REMINDER_TIME")
    @classmethod
    def check_reminder_time(cls, v: str) -> str:
        from nagger.core.timeutil import is_valid_reminder_time

        if not is_valid_reminder_time(v):
            raise ValueError(f"REMINDER_TIME must be HH:MM (24-hour), got {v!r}")
        return v

    @field_validator("REMINDER_TIMEZONE")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"REMINDER_TIMEZONE is not a known zone: {v!r}") from exc
        return v

    @field_validator("MESSAGE_TTL_HOURS", "CLEANUP_INTERVAL_MINUTES", mode="before")
    @classmethod
    def parse_positive_int(cls, v: str | int) -> int:
        value = int(v)
        if value <= 0:
            raise ValueError(f"must be a positive integer, got {v!r}")
        return value


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    try:
        return Settings(
            TELEGRAM_BOT_TOKEN=token,
            DATABASE_PATH=os.getenv("DATABASE_PATH", "data/nagger.db"),
            REMINDER_TIME=os.getenv("REMINDER_TIME", "09:00"),
            REMINDER_TIMEZONE=os.getenv("REMINDER_TIMEZONE", "UTC"),
            MESSAGE_TTL_HOURS=os.getenv("MESSAGE_TTL_HOURS", "24"),
            CLEANUP_INTERVAL_MINUTES=os.getenv("CLEANUP_INTERVAL_MINUTES", "60"),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        )
    except ValidationError as exc:
        print(f"ERROR: invalid configuration in .env:\n{exc}", file=sys.stderr)
        sys.exit(1)


# Singleton — imported by the composition root as:
#   from nagger.config import settings
settings = _load_settings()
