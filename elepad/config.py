"""
Elepad Reminders — Centralized configuration.

Loads all settings from .env and validates them.
Every other module reads configuration through the `settings` singleton.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from elepad/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram (only needed to run the bot host)
    TELEGRAM_BOT_TOKEN: str = ""

    # SQLite
    DATABASE_PATH: str = "data/elepad.db"

    # Local zone used to decide which civil day "today" is.
    # Fixed offsets ("-03:00", "UTC-3") or IANA names are accepted.
    TIMEZONE: str = "-03:00"

    # Security: empty list means every chat may talk to the bot
    ALLOWED_USER_IDS: list[int] = []

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []


def _load_settings() -> Settings:
    """Load settings from the environment."""
    return Settings(
        TELEGRAM_BOT_TOKEN=os.getenv("TELEGRAM_BOT_TOKEN", ""),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/elepad.db"),
        TIMEZONE=os.getenv("TIMEZONE", "-03:00"),
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
    )


# Singleton, imported by all other modules as:
#   from elepad.config import settings
settings = _load_settings()
