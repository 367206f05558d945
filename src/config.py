"""
Timetable — Centralized configuration.

Loads runtime settings from .env and validates them. Per-user notification
preferences are not here: they live in the store (NotificationSettings).
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator, model_validator

# Load .env from project root (one level up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Storage
    DATABASE_PATH: str = "data/timetable.db"
    STORAGE_QUOTA_BYTES: int = 5 * 1024 * 1024

    # Clock
    TIMEZONE: str = "UTC"

    # Ticks
    RULE_TICK_SECONDS: float = 60.0
    DISPLAY_TICK_SECONDS: float = 1.0

    # Daily summary window (local hours, end exclusive)
    SUMMARY_START_HOUR: int = 8
    SUMMARY_END_HOUR: int = 22

    # Telegram push (optional; empty token disables push)
    TELEGRAM_BOT_TOKEN: str = ""
    TELEGRAM_CHAT_ID: int | None = None

    # Logging
    LOG_LEVEL: str = "INFO"

    @field_validator("TELEGRAM_CHAT_ID", mode="before")
    @classmethod
    def parse_chat_id(cls, v: str | int | None) -> int | None:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return int(v)

    @field_validator("TIMEZONE")
    @classmethod
    def check_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {v}") from exc
        return v

    @field_validator("SUMMARY_START_HOUR", "SUMMARY_END_HOUR")
    @classmethod
    def check_hour(cls, v: int) -> int:
        if not 0 <= v <= 24:
            raise ValueError("hour must be between 0 and 24")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        return v.upper()

    @model_validator(mode="after")
    def check_summary_window(self) -> Settings:
        if self.SUMMARY_START_HOUR >= self.SUMMARY_END_HOUR:
            raise ValueError("SUMMARY_START_HOUR must be before SUMMARY_END_HOUR")
        return self

    @property
    def push_configured(self) -> bool:
        return bool(self.TELEGRAM_BOT_TOKEN) and self.TELEGRAM_CHAT_ID is not None


def _load_settings() -> Settings:
    """Load settings from environment, exiting on invalid values."""
    try:
        return Settings(
            DATABASE_PATH=os.getenv("DATABASE_PATH", "data/timetable.db"),
            STORAGE_QUOTA_BYTES=os.getenv("STORAGE_QUOTA_BYTES", str(5 * 1024 * 1024)),
            TIMEZONE=os.getenv("TIMEZONE", "UTC"),
            RULE_TICK_SECONDS=os.getenv("RULE_TICK_SECONDS", "60"),
            DISPLAY_TICK_SECONDS=os.getenv("DISPLAY_TICK_SECONDS", "1"),
            SUMMARY_START_HOUR=os.getenv("SUMMARY_START_HOUR", "8"),
            SUMMARY_END_HOUR=os.getenv("SUMMARY_END_HOUR", "22"),
            TELEGRAM_BOT_TOKEN=os.getenv("TELEGRAM_BOT_TOKEN", ""),
            TELEGRAM_CHAT_ID=os.getenv("TELEGRAM_CHAT_ID", ""),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        )
    except ValidationError as exc:
        print(f"ERROR: invalid configuration in .env:\n{exc}", file=sys.stderr)
        sys.exit(1)


# Singleton — imported as:
#   from src.config import settings
settings = _load_settings()
