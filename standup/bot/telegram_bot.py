"""
Daily Standup Bot — Telegram Bot.

Telegram is the channel the daily ritual runs on. Every inbound text is
normalized into a provider-agnostic event and handed to the orchestrator;
the window scheduler runs on the application's job queue.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from telegram import Bot, Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from standup.config import settings
from standup.core.orchestrator import CycleOrchestrator, NormalizedUpdate, OrchestratorOptions
from standup.core.scheduler import SchedulerOptions, WindowScheduler, run_authorized_tick

if TYPE_CHECKING:
    from standup.ports.notification_port import NotificationPort
    from standup.ports.repository_port import RepositoryPort

logger = logging.getLogger(__name__)

PROVIDER = "telegram"


# ---------------------------------------------------------------------------
# Update normalization
# ---------------------------------------------------------------------------


def normalize_update(update: Update) -> NormalizedUpdate | None:
    """Build the channel-agnostic event from a Telegram update.

    Returns None for updates without a user, chat or text message.
    """
    message = update.effective_message
    user = update.effective_user
    chat = update.effective_chat
    if message is None or user is None or chat is None or message.text is None:
        return None

    text = message.text.strip()
    command = None
    if text.startswith("/"):
        # "/start@MyBot payload" → "start"; a bare "/" is plain chat
        parts = text[1:].split(maxsplit=1)
        command = (parts[0].split("@", 1)[0].lower() or None) if parts else None

    return NormalizedUpdate(
        provider=PROVIDER,
        event_id=str(update.update_id),
        user_id=str(user.id),
        chat_id=str(chat.id),
        text=text,
        ts=int(message.date.timestamp()),
        type="command" if command else "message",
        command=command,
        message_id=str(message.message_id),
    )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _dispatch(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    orchestrator: CycleOrchestrator = context.bot_data["orchestrator"]
    normalized = normalize_update(update)
    if normalized is None:
        return
    result = await orchestrator.handle_update(normalized)
    logger.info(
        "Update %s from user %s: %s (state=%s)",
        normalized.event_id, normalized.user_id, result.status,
        result.state.value if result.state else None,
    )


async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — open today's cycle and send the morning prompt."""
    await _dispatch(update, context)


async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle plain text messages — plan, update or follow-up depending on the cycle."""
    await _dispatch(update, context)


async def _on_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    logger.error("Error while handling update %s: %s", update, context.error, exc_info=context.error)


async def _scheduler_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    scheduler: WindowScheduler = context.bot_data["scheduler"]
    await scheduler.tick()


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def build_services(
    notifier: NotificationPort,
    repo: RepositoryPort | None = None,
) -> tuple[CycleOrchestrator, WindowScheduler]:
    """Construct the orchestrator and the scheduler from settings."""
    from standup.adapters.evaluator_factory import create_evaluator
    from standup.core.coaching import Coach
    from standup.core.llm import create_llm_client
    from standup.core.reason_classifier import ReasonClassifier

    if repo is None:
        from standup.data.db import StandupDB
        repo = StandupDB(settings.DATABASE_PATH)

    llm = create_llm_client(settings)
    evaluator = create_evaluator(settings, client=llm)
    classifier = ReasonClassifier(llm, model=settings.LLM_REASON_MODEL) if llm else None
    coach = Coach(llm) if llm else None

    orchestrator = CycleOrchestrator(
        repo,
        notifier,
        evaluator,
        classifier=classifier,
        coach=coach,
        options=OrchestratorOptions.from_settings(settings),
    )
    scheduler = WindowScheduler(repo, notifier, SchedulerOptions.from_settings(settings))
    return orchestrator, scheduler


def build_app(
    repo: RepositoryPort | None = None,
    notifier: NotificationPort | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        repo: Repository port implementation. Defaults to StandupDB.
        notifier: Notification port implementation. Defaults to TelegramNotifier
                  (created from the bot instance after app is built).
    """
    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()

    if notifier is None:
        from standup.adapters.telegram_notifier import TelegramNotifier
        notifier = TelegramNotifier(app.bot)

    orchestrator, scheduler = build_services(notifier, repo)
    app.bot_data["orchestrator"] = orchestrator
    app.bot_data["scheduler"] = scheduler

    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_text))
    app.add_error_handler(_on_error)

    app.job_queue.run_repeating(
        _scheduler_job,
        interval=settings.SCHEDULER_INTERVAL_SECONDS,
        first=5,
        name="standup_scheduler",
    )

    logger.info(
        "Telegram bot application built; scheduler every %ds",
        settings.SCHEDULER_INTERVAL_SECONDS,
    )
    return app


async def run_tick_once(authorization: str | None) -> dict[str, int]:
    """Run a single scheduler tick outside the polling loop (external cron).

    Raises UnauthorizedError unless `authorization` is "Bearer <CRON_SECRET>".
    """
    from standup.adapters.telegram_notifier import TelegramNotifier

    async with Bot(settings.TELEGRAM_BOT_TOKEN) as bot:
        _, scheduler = build_services(TelegramNotifier(bot))
        return await run_authorized_tick(scheduler, authorization, settings.CRON_SECRET)


def main() -> None:
    """Entry point: build the app and start polling."""
    logger.info("Starting Daily Standup bot...")
    app = build_app()
    app.run_polling()
