"""
Daily Standup Bot — Cycle orchestrator.

Drives one user's daily cycle through its states:

    pending_morning → pending_update → done | needs_followup → done

with an escape to expired when a new logical day starts before the cycle
finished. Every inbound message is persisted; each one triggers at most
one outbound text.

This module is provider-agnostic: it depends on RepositoryPort,
NotificationPort and EvaluatorPort, not on specific implementations.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from standup.core import messages
from standup.core.clock import local_date, now_epoch
from standup.core.reasons import REASONS_HEURISTIC_VERSION, tag_reasons
from standup.core.workload import classify_workload, extract_tasks
from standup.data.models import CycleState, DailyCycle, DailyPatch, Message, MessageType, Reason

if TYPE_CHECKING:
    from standup.core.coaching import Coach
    from standup.core.reason_classifier import ReasonClassifier
    from standup.ports.evaluator_port import EvaluatorPort
    from standup.ports.notification_port import NotificationPort
    from standup.ports.repository_port import RepositoryPort

logger = logging.getLogger(__name__)


class InvalidTransition(Exception):
    """Raised when a cycle is asked to move along an edge the state machine lacks."""


TRANSITIONS: dict[CycleState, frozenset[CycleState]] = {
    CycleState.PENDING_MORNING: frozenset({CycleState.PENDING_UPDATE, CycleState.EXPIRED}),
    CycleState.PENDING_UPDATE: frozenset(
        {CycleState.DONE, CycleState.NEEDS_FOLLOWUP, CycleState.EXPIRED}
    ),
    CycleState.NEEDS_FOLLOWUP: frozenset({CycleState.DONE, CycleState.EXPIRED}),
    CycleState.DONE: frozenset(),
    CycleState.EXPIRED: frozenset(),
}

_TYPE_BY_STATE = {
    CycleState.PENDING_MORNING: MessageType.MORNING,
    CycleState.PENDING_UPDATE: MessageType.UPDATE,
    CycleState.NEEDS_FOLLOWUP: MessageType.FOLLOWUP,
}


def classify_message_type(state: CycleState) -> MessageType:
    """Meaning of an inbound text given the cycle state it arrives in."""
    return _TYPE_BY_STATE.get(CycleState(state), MessageType.CHAT)


def check_transition(current: CycleState, target: CycleState) -> None:
    if CycleState(target) not in TRANSITIONS[CycleState(current)]:
        raise InvalidTransition(f"{CycleState(current).value} → {CycleState(target).value}")


def ensure_daily_cycle(repo: RepositoryPort, user_id: str, date: str) -> DailyCycle:
    """Return the user's cycle for `date`, opening it if needed.

    Opening a new day expires the user's unfinished cycles of earlier days.
    """
    daily = repo.get_daily_by_date(user_id, date)
    if daily is not None:
        return daily
    result = repo.expire_stale_cycles(user_id, date)
    if not result.supported:
        logger.warning("Repository cannot expire stale cycles (user %s)", user_id)
    return repo.get_or_create_daily(user_id, date)


# ---------------------------------------------------------------------------
# Inbound events and results
# ---------------------------------------------------------------------------


@dataclass
class NormalizedUpdate:
    """Channel-agnostic inbound event built by a channel adapter."""

    provider: str
    event_id: str
    user_id: str
    chat_id: str
    text: str
    ts: int
    type: str = "message"            # "command" | "message"
    command: str | None = None       # e.g. "start"
    message_id: str | None = None
    user_tz: str | None = None


@dataclass
class InboundMessage:
    """A user text already classified against the current cycle state."""

    user_id: str
    chat_id: str
    text: str
    timestamp: int
    type: MessageType
    provider: str = "telegram"
    provider_event_id: str | None = None
    provider_message_id: str | None = None


@dataclass
class HandleResult:
    status: str                      # "processed" | "duplicate"
    state: CycleState | None = None
    daily_id: int | None = None
    score: int | None = None


@dataclass
class OrchestratorOptions:
    default_tz: str = "America/Bogota"
    baseline_points_per_day: float = 5.0
    reason_top_k: int = 3
    reason_min_confidence: float = 0.45
    reason_fallback_confidence: float = 0.6
    reason_ambiguity_margin: float = 0.05
    llm_reason_confidence: float = 0.9

    @classmethod
    def from_settings(cls, settings) -> OrchestratorOptions:
        return cls(
            default_tz=settings.DEFAULT_TZ,
            baseline_points_per_day=settings.BASELINE_POINTS_PER_DAY,
        )


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class CycleOrchestrator:
    """Applies inbound messages to the daily cycle state machine."""

    def __init__(
        self,
        repo: RepositoryPort,
        notifier: NotificationPort,
        evaluator: EvaluatorPort,
        classifier: ReasonClassifier | None = None,
        coach: Coach | None = None,
        options: OrchestratorOptions | None = None,
    ) -> None:
        self._repo = repo
        self._notifier = notifier
        self._evaluator = evaluator
        self._classifier = classifier
        self._coach = coach
        self.options = options or OrchestratorOptions()

    # -- entry points ------------------------------------------------------

    async def handle_update(self, update: NormalizedUpdate) -> HandleResult:
        """Process a normalized channel event end to end."""
        if update.event_id and self._repo.has_event(update.provider, update.event_id):
            logger.info("Duplicate event %s/%s ignored", update.provider, update.event_id)
            return HandleResult(status="duplicate")

        user = self._repo.upsert_user(update.user_id, update.chat_id, update.user_tz, update.provider)
        date = local_date(update.ts, user.tz, self.options.default_tz)
        daily = ensure_daily_cycle(self._repo, user.user_id, date)

        if update.type == "command" and update.command == "start":
            return await self._handle_start(update, daily)

        inbound = InboundMessage(
            user_id=update.user_id,
            chat_id=update.chat_id,
            text=update.text,
            timestamp=update.ts,
            type=classify_message_type(daily.state),
            provider=update.provider,
            provider_event_id=update.event_id or None,
            provider_message_id=update.message_id,
        )
        return await self.handle(inbound, daily=daily)

    async def handle(self, event: InboundMessage, daily: DailyCycle | None = None) -> HandleResult:
        """Persist one inbound message and advance its cycle.

        Raises InvalidTransition when event.type does not fit the cycle state.
        """
        if event.provider_event_id and self._repo.has_event(event.provider, event.provider_event_id):
            logger.info("Duplicate event %s/%s ignored", event.provider, event.provider_event_id)
            return HandleResult(status="duplicate")

        if daily is None:
            user = self._repo.get_user(event.user_id)
            tz = user.tz if user else None
            daily = ensure_daily_cycle(
                self._repo, event.user_id, local_date(event.timestamp, tz, self.options.default_tz),
            )

        message_type = MessageType(event.type)
        if message_type != MessageType.CHAT and classify_message_type(daily.state) != message_type:
            raise InvalidTransition(
                f"{message_type.value} message does not apply to a {daily.state.value} cycle"
            )

        inbound = Message(
            chat_id=event.chat_id,
            user_id=event.user_id,
            text=event.text,
            timestamp=event.timestamp,
            type=message_type,
            provider=event.provider,
            provider_message_id=event.provider_message_id,
            provider_event_id=event.provider_event_id,
            daily_id=daily.id,
        )
        if not self._repo.insert_message(inbound):
            return HandleResult(status="duplicate", state=daily.state, daily_id=daily.id)

        if message_type == MessageType.MORNING:
            return await self._on_morning(daily, event)
        if message_type == MessageType.UPDATE:
            return await self._on_update(daily, event, inbound)
        if message_type == MessageType.FOLLOWUP:
            return await self._on_followup(daily, event)
        return HandleResult(status="processed", state=daily.state, daily_id=daily.id)

    # -- state handlers ----------------------------------------------------

    async def _handle_start(self, update: NormalizedUpdate, daily: DailyCycle) -> HandleResult:
        inbound = Message(
            chat_id=update.chat_id,
            user_id=update.user_id,
            text=update.text or "/start",
            timestamp=update.ts,
            type=MessageType.CHAT,
            provider=update.provider,
            provider_message_id=update.message_id,
            provider_event_id=update.event_id or None,
            daily_id=daily.id,
        )
        if not self._repo.insert_message(inbound):
            return HandleResult(status="duplicate", state=daily.state, daily_id=daily.id)

        if daily.state == CycleState.PENDING_MORNING:
            if not self._repo.claim_morning_prompt(daily.id, update.ts):
                logger.info("Morning prompt of daily #%d already claimed, resending on /start", daily.id)
            text = messages.MORNING
        elif daily.state == CycleState.NEEDS_FOLLOWUP:
            text = messages.STATUS_AWAITING_FOLLOWUP
        elif daily.state == CycleState.PENDING_UPDATE:
            text = messages.STATUS_ALREADY_STARTED
        else:
            text = messages.STATUS_DONE

        await self._send(daily, update.user_id, update.chat_id, update.provider, text)
        return HandleResult(status="processed", state=daily.state, daily_id=daily.id)

    async def _on_morning(self, daily: DailyCycle, event: InboundMessage) -> HandleResult:
        patch = DailyPatch(first_morning_at=event.timestamp)

        tasks = extract_tasks(event.text)
        if tasks:
            self._repo.insert_tasks(daily.id, event.user_id, tasks)
            total_points = sum(task.points for task in tasks)
            patch.workload_points = total_points
            patch.workload_level = classify_workload(total_points, self.options.baseline_points_per_day)
            logger.info(
                "Daily #%d: %d task(s), %d point(s), workload %s",
                daily.id, len(tasks), total_points, patch.workload_level,
            )

        if not self._transition(daily, CycleState.PENDING_UPDATE, patch):
            return self._lost_race(daily)

        await self._send(daily, event.user_id, event.chat_id, event.provider, messages.ACK_MORNING)
        return HandleResult(status="processed", state=CycleState.PENDING_UPDATE, daily_id=daily.id)

    async def _on_update(self, daily: DailyCycle, event: InboundMessage, inbound: Message) -> HandleResult:
        plan = self._repo.get_first_morning_text(daily.id) or ""
        result = await self._evaluator.evaluate(plan, event.text)
        score = int(round(max(0, min(100, result.score))))
        logger.info("Daily #%d scored %d by %s", daily.id, score, result.model)

        patch = DailyPatch(
            first_update_at=event.timestamp,
            score=score,
            eval_model=result.model,
            eval_version=result.version,
            eval_rationale=result.rationale or None,
        )

        if score >= 100:
            patch.closed_at = event.timestamp
            if not self._transition(daily, CycleState.DONE, patch):
                return self._lost_race(daily)
            await self._send(
                daily, event.user_id, event.chat_id, event.provider, messages.congrats(result.advice),
            )
            return HandleResult(status="processed", state=CycleState.DONE, daily_id=daily.id, score=score)

        if not self._transition(daily, CycleState.NEEDS_FOLLOWUP, patch):
            return self._lost_race(daily)

        message_id = inbound.provider_message_id or (str(inbound.id) if inbound.id is not None else None)
        await self._label_reasons(daily.id, plan, event.text, message_id)
        await self._send(daily, event.user_id, event.chat_id, event.provider, messages.FOLLOWUP)
        return HandleResult(status="processed", state=CycleState.NEEDS_FOLLOWUP, daily_id=daily.id, score=score)

    async def _on_followup(self, daily: DailyCycle, event: InboundMessage) -> HandleResult:
        if not self._transition(daily, CycleState.DONE, DailyPatch(closed_at=event.timestamp)):
            return self._lost_race(daily)

        reply = await self._coaching_reply(daily.id, event.text)
        if reply:
            await self._send(daily, event.user_id, event.chat_id, event.provider, reply, chunked=True)
        else:
            await self._send(daily, event.user_id, event.chat_id, event.provider, messages.CLOSING_THANKS)
        return HandleResult(status="processed", state=CycleState.DONE, daily_id=daily.id, score=daily.score)

    # -- helpers -----------------------------------------------------------

    def _transition(self, daily: DailyCycle, target: CycleState, patch: DailyPatch | None = None) -> bool:
        check_transition(daily.state, target)
        return self._repo.set_daily_state(daily.id, target, patch, expected_state=daily.state)

    @staticmethod
    def _lost_race(daily: DailyCycle) -> HandleResult:
        logger.warning("Daily #%d left %s concurrently, skipping", daily.id, daily.state.value)
        return HandleResult(status="processed", state=daily.state, daily_id=daily.id)

    async def _label_reasons(self, daily_id: int, plan: str, update: str, message_id: str | None) -> None:
        opts = self.options
        tags = tag_reasons(update, top_k=opts.reason_top_k, min_confidence=opts.reason_min_confidence)
        if tags:
            self._repo.upsert_reasons(daily_id, [
                Reason(
                    code=tag.code,
                    confidence=tag.confidence,
                    source="heuristic",
                    raw=update[:300],
                    message_id=message_id,
                    model_version=REASONS_HEURISTIC_VERSION,
                )
                for tag in tags
            ])

        ranked = sorted((tag.confidence for tag in tags), reverse=True)
        needs_llm = (
            not ranked
            or ranked[0] < opts.reason_fallback_confidence
            or (len(ranked) > 1 and ranked[0] - ranked[1] < opts.reason_ambiguity_margin)
        )
        if not needs_llm or self._classifier is None:
            return

        code = await self._classifier.classify(plan or None, update)
        if code is None:
            return
        logger.info("Daily #%d: classifier picked %s", daily_id, code)
        self._repo.upsert_reasons(daily_id, [
            Reason(
                code=code,
                confidence=opts.llm_reason_confidence,
                source="llm",
                message_id=message_id,
                model_version=self._classifier.model,
            )
        ])

    async def _coaching_reply(self, daily_id: int, explanation: str) -> str:
        if self._coach is None:
            return ""
        plan = self._repo.get_first_morning_text(daily_id)
        update = self._repo.get_first_update_text(daily_id)
        try:
            return await self._coach.reply(plan, update, explanation)
        except Exception as exc:
            logger.warning("Coaching reply failed for daily #%d: %s", daily_id, exc)
            return ""

    async def _send(
        self,
        daily: DailyCycle,
        user_id: str,
        chat_id: str,
        provider: str,
        text: str,
        chunked: bool = False,
    ) -> None:
        """Deliver one outbound text and record it. Delivery errors are logged, not raised."""
        try:
            if chunked:
                await self._notifier.send_chunks(chat_id, text)
            else:
                await self._notifier.send_text(chat_id, text)
        except Exception as exc:
            logger.error("Failed to send message to chat %s (daily #%d): %s", chat_id, daily.id, exc)
            return

        self._repo.insert_message(Message(
            chat_id=chat_id,
            user_id=user_id,
            text=text,
            timestamp=now_epoch(),
            type=MessageType.SYSTEM,
            provider=provider,
            daily_id=daily.id,
        ))
