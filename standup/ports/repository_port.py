"""Repository port — durable state of users, daily cycles and their audit trail.

Core modules depend on this protocol, never on a specific store. Every
method is mandatory. Coordination between concurrent invocations relies on
the single-statement conditional updates documented per method, so a
backend must implement them atomically, never as read-then-write.
"""

from __future__ import annotations

from typing import Protocol

from standup.data.models import (
    CycleState,
    DailyCycle,
    DailyPatch,
    ExpireResult,
    Message,
    Reason,
    Task,
    User,
)

REPOSITORY_PORT_VERSION = 2


class RepositoryPort(Protocol):
    """Abstract storage interface used by the orchestrator and the scheduler."""

    # Users

    def upsert_user(
        self, user_id: str, chat_id: str, tz: str | None, provider: str,
    ) -> User:
        """Create the user or refresh its chat_id. tz is only overwritten when given."""
        ...

    def get_user(self, user_id: str) -> User | None: ...

    def get_all_users(self) -> list[User]: ...

    # Daily cycles

    def get_daily(self, daily_id: int) -> DailyCycle | None: ...

    def get_daily_by_date(self, user_id: str, date: str) -> DailyCycle | None: ...

    def get_or_create_daily(
        self, user_id: str, date: str, state: CycleState = CycleState.PENDING_MORNING,
    ) -> DailyCycle:
        """Return the (user_id, date) cycle, creating it if absent. Never duplicates."""
        ...

    def set_daily_state(
        self,
        daily_id: int,
        state: CycleState,
        patch: DailyPatch | None = None,
        expected_state: CycleState | None = None,
    ) -> bool:
        """Move a cycle to `state`. With expected_state, only if still in it."""
        ...

    def patch_daily(self, daily_id: int, patch: DailyPatch) -> None: ...

    def claim_morning_prompt(self, daily_id: int, epoch: int) -> bool:
        """Set morning_prompt_at only if unset. True for the single winning caller."""
        ...

    def claim_evening_prompt(self, daily_id: int, epoch: int) -> bool:
        """Set evening_prompt_at only if unset. True for the single winning caller."""
        ...

    def refresh_morning_prompt(
        self, daily_id: int, epoch: int, min_interval_seconds: int,
    ) -> bool:
        """Re-claim the morning slot when the last claim is older than the interval."""
        ...

    def expire_stale_cycles(self, user_id: str, before_date: str) -> ExpireResult:
        """Expire the user's unfinished cycles of days before `before_date`."""
        ...

    # Messages

    def insert_message(self, message: Message) -> bool:
        """Append a message. False when (provider, provider_event_id) already exists."""
        ...

    def has_event(self, provider: str, event_id: str) -> bool: ...

    def get_first_morning_text(self, daily_id: int) -> str: ...

    def get_first_update_text(self, daily_id: int) -> str: ...

    def list_messages(self, daily_id: int) -> list[Message]: ...

    # Tasks and reasons

    def insert_tasks(self, daily_id: int, user_id: str, tasks: list[Task]) -> None:
        """Replace the cycle's tasks wholesale."""
        ...

    def get_tasks(self, daily_id: int) -> list[Task]: ...

    def upsert_reasons(self, daily_id: int, reasons: list[Reason]) -> None:
        """Insert reasons; on (daily_id, code) conflict the higher confidence wins."""
        ...

    def get_reasons(self, daily_id: int) -> list[Reason]: ...
