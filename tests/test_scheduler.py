"""Tests for standup.core.scheduler — WindowScheduler and the tick trigger.

Runs against a real temp-file StandupDB with a mocked notifier.
"""

from unittest.mock import AsyncMock

import pytest

from standup.core import messages
from standup.core.scheduler import (
    SchedulerOptions,
    TickResult,
    UnauthorizedError,
    WindowScheduler,
    run_authorized_tick,
)
from standup.data.models import CycleState, MessageType


@pytest.fixture
def users(standup_db):
    standup_db.upsert_user("u1", "c1", "America/Bogota", "telegram")
    standup_db.upsert_user("u2", "c2", "America/Bogota", "telegram")


def _scheduler(standup_db, notifier, **options):
    return WindowScheduler(standup_db, notifier, SchedulerOptions(**options))


class TestMorningWindow:
    @pytest.mark.asyncio
    async def test_sends_once_per_cycle(self, standup_db, notifier, users, at):
        scheduler = _scheduler(standup_db, notifier)

        first = await scheduler.tick(at(2025, 3, 10, 8, 0))
        second = await scheduler.tick(at(2025, 3, 10, 8, 5))

        assert first == TickResult(morning=2, evening=0)
        assert second == TickResult(morning=0, evening=0)
        assert notifier.send_text.await_count == 2
        notifier.send_text.assert_any_await("c1", messages.MORNING)

    @pytest.mark.asyncio
    async def test_creates_cycle_and_records_prompt(self, standup_db, notifier, users, at):
        await _scheduler(standup_db, notifier).tick(at(2025, 3, 10, 8, 0))

        daily = standup_db.get_daily_by_date("u1", "2025-03-10")
        assert daily.state == CycleState.PENDING_MORNING
        assert daily.morning_prompt_at == at(2025, 3, 10, 8, 0)
        [row] = standup_db.list_messages(daily.id)
        assert row.type == MessageType.SYSTEM
        assert row.text == messages.MORNING

    @pytest.mark.asyncio
    async def test_window_edges_inclusive(self, standup_db, notifier, users, at):
        scheduler = _scheduler(standup_db, notifier)
        assert (await scheduler.tick(at(2025, 3, 10, 7, 49))).morning == 0
        assert (await scheduler.tick(at(2025, 3, 10, 7, 50))).morning == 2

    @pytest.mark.asyncio
    async def test_outside_window_does_nothing(self, standup_db, notifier, users, at):
        result = await _scheduler(standup_db, notifier).tick(at(2025, 3, 10, 12, 0))

        assert result == TickResult()
        assert standup_db.get_daily_by_date("u1", "2025-03-10") is None
        notifier.send_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_skips_cycle_past_morning(self, standup_db, notifier, users, at):
        daily = standup_db.get_or_create_daily("u1", "2025-03-10")
        standup_db.set_daily_state(daily.id, CycleState.PENDING_UPDATE)

        result = await _scheduler(standup_db, notifier).tick(at(2025, 3, 10, 8, 0))

        assert result.morning == 1
        notifier.send_text.assert_awaited_once_with("c2", messages.MORNING)

    @pytest.mark.asyncio
    async def test_respects_user_timezone(self, standup_db, notifier, at):
        standup_db.upsert_user("u1", "c1", "America/Bogota", "telegram")
        standup_db.upsert_user("u3", "c3", "Europe/Madrid", "telegram")

        result = await _scheduler(standup_db, notifier).tick(at(2025, 3, 10, 8, 0, tz="Europe/Madrid"))

        assert result.morning == 1
        notifier.send_text.assert_awaited_once_with("c3", messages.MORNING)

    @pytest.mark.asyncio
    async def test_unknown_timezone_falls_back(self, standup_db, notifier, at):
        standup_db.upsert_user("u1", "c1", "Mars/Olympus", "telegram")

        result = await _scheduler(standup_db, notifier).tick(at(2025, 3, 10, 8, 0))

        assert result.morning == 1

    @pytest.mark.asyncio
    async def test_new_day_expires_previous_cycle(self, standup_db, notifier, users, at):
        old = standup_db.get_or_create_daily("u1", "2025-03-09")
        standup_db.set_daily_state(old.id, CycleState.PENDING_UPDATE)

        await _scheduler(standup_db, notifier).tick(at(2025, 3, 10, 8, 0))

        assert standup_db.get_daily(old.id).state == CycleState.EXPIRED


class TestEveningWindow:
    @pytest.mark.asyncio
    async def test_sends_when_pending_update(self, standup_db, notifier, users, at):
        daily = standup_db.get_or_create_daily("u1", "2025-03-10")
        standup_db.set_daily_state(daily.id, CycleState.PENDING_UPDATE)
        scheduler = _scheduler(standup_db, notifier)

        first = await scheduler.tick(at(2025, 3, 10, 18, 0))
        second = await scheduler.tick(at(2025, 3, 10, 18, 3))

        assert first == TickResult(morning=0, evening=1)
        assert second.evening == 0
        notifier.send_text.assert_awaited_once_with("c1", messages.EVENING)
        assert standup_db.get_daily(daily.id).evening_prompt_at == at(2025, 3, 10, 18, 0)

    @pytest.mark.asyncio
    async def test_skips_without_plan(self, standup_db, notifier, users, at):
        standup_db.get_or_create_daily("u1", "2025-03-10")

        result = await _scheduler(standup_db, notifier).tick(at(2025, 3, 10, 18, 0))

        assert result.evening == 0
        notifier.send_text.assert_not_awaited()


class TestIsolationAndRepeat:
    @pytest.mark.asyncio
    async def test_failure_for_one_user_does_not_stop_others(self, standup_db, notifier, users, at):
        async def send_text(chat_id, text):
            if chat_id == "c1":
                raise RuntimeError("blocked by user")

        notifier.send_text = AsyncMock(side_effect=send_text)

        result = await _scheduler(standup_db, notifier).tick(at(2025, 3, 10, 8, 0))

        assert result.morning == 1
        assert notifier.send_text.await_count == 2

    @pytest.mark.asyncio
    async def test_store_failure_is_isolated(self, standup_db, notifier, users, at, monkeypatch):
        original = standup_db.get_daily_by_date

        def flaky(user_id, date):
            if user_id == "u1":
                raise RuntimeError("db locked")
            return original(user_id, date)

        monkeypatch.setattr(standup_db, "get_daily_by_date", flaky)

        result = await _scheduler(standup_db, notifier).tick(at(2025, 3, 10, 8, 0))

        assert result.morning == 1
        notifier.send_text.assert_awaited_once_with("c2", messages.MORNING)

    @pytest.mark.asyncio
    async def test_repeat_variant_resends_after_interval(self, standup_db, notifier, at):
        standup_db.upsert_user("u1", "c1", "America/Bogota", "telegram")
        scheduler = _scheduler(standup_db, notifier, repeat_morning_every_minutes=5)

        sent = [
            (await scheduler.tick(at(2025, 3, 10, 8, minute))).morning
            for minute in (0, 2, 5, 9)
        ]

        assert sent == [1, 0, 1, 0]

    @pytest.mark.asyncio
    async def test_repeat_stops_once_plan_arrives(self, standup_db, notifier, at):
        standup_db.upsert_user("u1", "c1", "America/Bogota", "telegram")
        scheduler = _scheduler(standup_db, notifier, repeat_morning_every_minutes=5)
        await scheduler.tick(at(2025, 3, 10, 8, 0))
        daily = standup_db.get_daily_by_date("u1", "2025-03-10")
        standup_db.set_daily_state(daily.id, CycleState.PENDING_UPDATE)

        result = await scheduler.tick(at(2025, 3, 10, 8, 6))

        assert result.morning == 0


class TestDebugMode:
    @pytest.mark.asyncio
    async def test_sends_both_ignoring_windows(self, standup_db, notifier, users, at):
        scheduler = _scheduler(standup_db, notifier, debug_force="both")

        first = await scheduler.tick(at(2025, 3, 10, 13, 0))
        second = await scheduler.tick(at(2025, 3, 10, 13, 5))

        assert first == TickResult(morning=2, evening=2)
        assert second == TickResult(morning=2, evening=2)
        notifier.send_text.assert_any_await("c1", messages.MORNING + messages.DEBUG_SUFFIX)
        notifier.send_text.assert_any_await("c1", messages.EVENING + messages.DEBUG_SUFFIX)

    @pytest.mark.asyncio
    async def test_user_filter_and_limit(self, standup_db, notifier, users, at):
        only_u2 = await _scheduler(standup_db, notifier, debug_force="morning", debug_user="u2").tick()
        limited = await _scheduler(standup_db, notifier, debug_force="evening", debug_limit=1).tick()

        assert only_u2 == TickResult(morning=1, evening=0)
        assert limited == TickResult(morning=0, evening=1)


class TestAuthorizedTick:
    @pytest.mark.asyncio
    async def test_valid_token_runs_tick(self, standup_db, notifier, users, at):
        scheduler = _scheduler(standup_db, notifier)

        result = await run_authorized_tick(
            scheduler, "Bearer s3cret", "s3cret", now=at(2025, 3, 10, 8, 0),
        )

        assert result == {"morning": 2, "evening": 0}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("header", [None, "", "Bearer wrong", "Basic s3cret", "s3cret"])
    async def test_rejects_bad_header(self, standup_db, notifier, header):
        scheduler = _scheduler(standup_db, notifier)
        with pytest.raises(UnauthorizedError):
            await run_authorized_tick(scheduler, header, "s3cret")
        notifier.send_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejects_when_secret_not_configured(self, standup_db, notifier):
        with pytest.raises(UnauthorizedError):
            await run_authorized_tick(_scheduler(standup_db, notifier), "Bearer ", "")
