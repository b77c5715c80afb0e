"""Timezone helpers for logical days and prompt windows."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

_MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class LocalParts:
    """Wall-clock view of an instant in a user's timezone."""

    hour: int
    minute: int
    ymd: str      # YYYY-MM-DD, the logical day
    epoch: int


def now_epoch() -> int:
    return int(time.time())


def resolve_tz(tz: str | None, default_tz: str) -> ZoneInfo:
    """Return ZoneInfo for tz, falling back to default_tz when unknown or empty."""
    if tz:
        try:
            return ZoneInfo(tz)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r, falling back to %s", tz, default_tz)
    return ZoneInfo(default_tz)


def local_parts(epoch: int, tz: str | None, default_tz: str = "America/Bogota") -> LocalParts:
    local = datetime.fromtimestamp(epoch, tz=resolve_tz(tz, default_tz))
    return LocalParts(
        hour=local.hour,
        minute=local.minute,
        ymd=local.date().isoformat(),
        epoch=epoch,
    )


def local_date(epoch: int, tz: str | None, default_tz: str = "America/Bogota") -> str:
    """Logical day (YYYY-MM-DD) of an instant in the given timezone."""
    return local_parts(epoch, tz, default_tz).ymd


def minutes_apart(hour: int, minute: int, target_hour: int, target_minute: int) -> int:
    """Distance in minutes between two times of day, wrapping around midnight."""
    diff = abs((hour * 60 + minute) - (target_hour * 60 + target_minute))
    return min(diff, _MINUTES_PER_DAY - diff)


def within_window(
    hour: int,
    minute: int,
    target_hour: int,
    target_minute: int,
    window_minutes: int,
) -> bool:
    """True when hour:minute lies within ±window_minutes of the target (inclusive)."""
    return minutes_apart(hour, minute, target_hour, target_minute) <= window_minutes
