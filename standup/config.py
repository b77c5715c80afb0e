"""
Daily Standup Bot — Centralized configuration.

Loads all settings from .env and validates required keys.
Every other module reads its defaults from here.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from standup/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram
    TELEGRAM_BOT_TOKEN: str

    # LLM — provider-agnostic (gemini, anthropic, openai, deepseek, cohere)
    LLM_PROVIDER: str = "gemini"
    LLM_MODEL: str = ""          # empty → smart default per provider
    LLM_API_KEY: str = ""        # empty → heuristic evaluation only
    LLM_REASON_MODEL: str = ""   # empty → same as LLM_MODEL
    LLM_RUBRIC_VERSION: str = "v1"
    LLM_TIMEOUT_SECONDS: float = 6.0
    LLM_MAX_RETRIES: int = 2

    # SQLite
    DATABASE_PATH: str = "data/standup.db"

    # Users without a stored timezone
    DEFAULT_TZ: str = "America/Bogota"

    # Prompt windows (user-local time)
    MORNING_HOUR: int = 8
    MORNING_MINUTE: int = 0
    EVENING_HOUR: int = 18
    EVENING_MINUTE: int = 0
    WINDOW_MINUTES: int = 10
    REPEAT_MORNING_EVERY_MINUTES: int = 0   # 0 → claim once per day

    # Workload
    BASELINE_POINTS_PER_DAY: float = 5.0

    # Scheduler trigger
    SCHEDULER_INTERVAL_SECONDS: int = 60
    CRON_SECRET: str = ""
    CRON_DEBUG_FORCE: str = ""   # "morning" | "evening" | "both"
    CRON_DEBUG_USER: str = ""
    CRON_DEBUG_LIMIT: int = 0

    @field_validator(
        "MORNING_HOUR", "MORNING_MINUTE", "EVENING_HOUR", "EVENING_MINUTE",
        "WINDOW_MINUTES", "REPEAT_MORNING_EVERY_MINUTES", "LLM_MAX_RETRIES",
        "SCHEDULER_INTERVAL_SECONDS", "CRON_DEBUG_LIMIT",
        mode="before",
    )
    @classmethod
    def parse_int(cls, v: str | int) -> int:
        if isinstance(v, str) and not v.strip():
            return 0
        return int(v)

    @field_validator("LLM_TIMEOUT_SECONDS", "BASELINE_POINTS_PER_DAY", mode="before")
    @classmethod
    def parse_float(cls, v: str | float) -> float:
        return float(v)

    @field_validator("CRON_DEBUG_FORCE", mode="before")
    @classmethod
    def parse_debug_mode(cls, v: str) -> str:
        return (v or "").strip().lower()


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    llm_api_key = os.getenv("LLM_API_KEY", "")
    if llm_api_key.startswith("your-"):
        llm_api_key = ""

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        LLM_PROVIDER=os.getenv("LLM_PROVIDER", "gemini"),
        LLM_MODEL=os.getenv("LLM_MODEL", ""),
        LLM_API_KEY=llm_api_key,
        LLM_REASON_MODEL=os.getenv("LLM_REASON_MODEL", ""),
        LLM_RUBRIC_VERSION=os.getenv("LLM_RUBRIC_VERSION", "v1"),
        LLM_TIMEOUT_SECONDS=os.getenv("LLM_TIMEOUT_SECONDS", "6"),
        LLM_MAX_RETRIES=os.getenv("LLM_MAX_RETRIES", "2"),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/standup.db"),
        DEFAULT_TZ=os.getenv("DEFAULT_TZ", "America/Bogota"),
        MORNING_HOUR=os.getenv("MORNING_HOUR", "8"),
        MORNING_MINUTE=os.getenv("MORNING_MINUTE", "0"),
        EVENING_HOUR=os.getenv("EVENING_HOUR", "18"),
        EVENING_MINUTE=os.getenv("EVENING_MINUTE", "0"),
        WINDOW_MINUTES=os.getenv("WINDOW_MINUTES", "10"),
        REPEAT_MORNING_EVERY_MINUTES=os.getenv("REPEAT_MORNING_EVERY_MINUTES", "0"),
        BASELINE_POINTS_PER_DAY=os.getenv("BASELINE_POINTS_PER_DAY", "5"),
        SCHEDULER_INTERVAL_SECONDS=os.getenv("SCHEDULER_INTERVAL_SECONDS", "60"),
        CRON_SECRET=os.getenv("CRON_SECRET", ""),
        CRON_DEBUG_FORCE=os.getenv("CRON_DEBUG_FORCE", ""),
        CRON_DEBUG_USER=os.getenv("CRON_DEBUG_USER", ""),
        CRON_DEBUG_LIMIT=os.getenv("CRON_DEBUG_LIMIT", "0"),
    )


# Singleton — imported by entry points as:
#   from standup.config import settings
settings = _load_settings()
