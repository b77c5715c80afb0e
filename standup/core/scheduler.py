"""
Daily Standup Bot — Window scheduler.

Each tick walks every user and, in the user's own timezone, sends the
morning prompt inside the morning window and the evening prompt inside the
evening window. A prompt goes out at most once per cycle: the send is gated
by an atomic claim in the store, so overlapping ticks never double-send.

This module is provider-agnostic: it depends on RepositoryPort and
NotificationPort protocols, not on specific implementations.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from standup.core import messages
from standup.core.clock import local_parts, now_epoch, within_window
from standup.core.orchestrator import ensure_daily_cycle
from standup.data.models import CycleState, DailyCycle, Message, MessageType

if TYPE_CHECKING:
    from standup.data.models import User
    from standup.ports.notification_port import NotificationPort
    from standup.ports.repository_port import RepositoryPort

logger = logging.getLogger(__name__)

DEBUG_MODES = ("morning", "evening", "both")


class UnauthorizedError(Exception):
    """Raised when a scheduler trigger carries no valid bearer token."""


@dataclass
class SchedulerOptions:
    morning_hour: int = 8
    morning_minute: int = 0
    evening_hour: int = 18
    evening_minute: int = 0
    window_minutes: int = 10
    repeat_morning_every_minutes: int = 0   # 0 → claim once per day
    default_tz: str = "America/Bogota"
    debug_force: str = ""                   # "morning" | "evening" | "both"
    debug_user: str = ""
    debug_limit: int = 0

    @classmethod
    def from_settings(cls, settings) -> SchedulerOptions:
        return cls(
            morning_hour=settings.MORNING_HOUR,
            morning_minute=settings.MORNING_MINUTE,
            evening_hour=settings.EVENING_HOUR,
            evening_minute=settings.EVENING_MINUTE,
            window_minutes=settings.WINDOW_MINUTES,
            repeat_morning_every_minutes=settings.REPEAT_MORNING_EVERY_MINUTES,
            default_tz=settings.DEFAULT_TZ,
            debug_force=settings.CRON_DEBUG_FORCE,
            debug_user=settings.CRON_DEBUG_USER,
            debug_limit=settings.CRON_DEBUG_LIMIT,
        )


@dataclass
class TickResult:
    morning: int = 0
    evening: int = 0

    def as_dict(self) -> dict[str, int]:
        return {"morning": self.morning, "evening": self.evening}


class WindowScheduler:
    """Sends the morning and evening prompts once per user per window."""

    def __init__(
        self,
        repo: RepositoryPort,
        notifier: NotificationPort,
        options: SchedulerOptions | None = None,
    ) -> None:
        self._repo = repo
        self._notifier = notifier
        self.options = options or SchedulerOptions()

    async def tick(self, now: int | None = None) -> TickResult:
        """Run one pass over all users. Returns how many prompts were sent."""
        epoch = now if now is not None else now_epoch()

        if self.options.debug_force in DEBUG_MODES:
            return await self._debug_tick(epoch)

        result = TickResult()
        for user in self._repo.get_all_users():
            try:
                await self._tick_user(user, epoch, result)
            except Exception as exc:
                logger.error("Scheduler tick failed for user %s: %s", user.user_id, exc)

        if result.morning or result.evening:
            logger.info("Tick sent %d morning and %d evening prompt(s)", result.morning, result.evening)
        return result

    async def _tick_user(self, user: User, epoch: int, result: TickResult) -> None:
        opts = self.options
        parts = local_parts(epoch, user.tz, opts.default_tz)

        if within_window(parts.hour, parts.minute, opts.morning_hour, opts.morning_minute, opts.window_minutes):
            daily = ensure_daily_cycle(self._repo, user.user_id, parts.ymd)
            if daily.state == CycleState.PENDING_MORNING and self._claim_morning(daily, epoch):
                if await self._send_prompt(user, daily, messages.MORNING, epoch):
                    result.morning += 1

        if within_window(parts.hour, parts.minute, opts.evening_hour, opts.evening_minute, opts.window_minutes):
            daily = self._repo.get_daily_by_date(user.user_id, parts.ymd)
            if (
                daily is not None
                and daily.state == CycleState.PENDING_UPDATE
                and self._repo.claim_evening_prompt(daily.id, epoch)
            ):
                if await self._send_prompt(user, daily, messages.EVENING, epoch):
                    result.evening += 1

    def _claim_morning(self, daily: DailyCycle, epoch: int) -> bool:
        repeat = self.options.repeat_morning_every_minutes
        if repeat > 0:
            return self._repo.refresh_morning_prompt(daily.id, epoch, repeat * 60)
        return self._repo.claim_morning_prompt(daily.id, epoch)

    async def _send_prompt(self, user: User, daily: DailyCycle | None, text: str, epoch: int) -> bool:
        try:
            await self._notifier.send_text(user.chat_id, text)
        except Exception as exc:
            logger.error("Failed to send prompt to user %s: %s", user.user_id, exc)
            return False

        logger.info("Prompt sent to user %s", user.user_id)
        self._repo.insert_message(Message(
            chat_id=user.chat_id,
            user_id=user.user_id,
            text=text,
            timestamp=epoch,
            type=MessageType.SYSTEM,
            provider=user.provider,
            daily_id=daily.id if daily else None,
        ))
        return True

    async def _debug_tick(self, epoch: int) -> TickResult:
        """Send unconditionally, ignoring windows and claims."""
        opts = self.options
        users = self._repo.get_all_users()
        if opts.debug_user:
            users = [u for u in users if u.user_id == opts.debug_user]
        if opts.debug_limit > 0:
            users = users[:opts.debug_limit]

        logger.warning("Debug tick (%s) for %d user(s)", opts.debug_force, len(users))
        result = TickResult()
        for user in users:
            if opts.debug_force in ("morning", "both"):
                if await self._send_prompt(user, None, messages.MORNING + messages.DEBUG_SUFFIX, epoch):
                    result.morning += 1
            if opts.debug_force in ("evening", "both"):
                if await self._send_prompt(user, None, messages.EVENING + messages.DEBUG_SUFFIX, epoch):
                    result.evening += 1
        return result


async def run_authorized_tick(
    scheduler: WindowScheduler,
    authorization: str | None,
    secret: str,
    now: int | None = None,
) -> dict[str, int]:
    """Run one tick for an external trigger carrying `Authorization: Bearer <secret>`."""
    if not secret:
        raise UnauthorizedError("CRON_SECRET is not configured")

    scheme, _, token = (authorization or "").strip().partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token.strip().encode(), secret.encode()):
        raise UnauthorizedError("Invalid scheduler token")

    result = await scheduler.tick(now)
    return result.as_dict()
