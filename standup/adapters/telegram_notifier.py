"""Telegram notification adapter — implements NotificationPort.

Wraps a telegram.Bot instance to satisfy the NotificationPort protocol.
Long texts are split into several messages below Telegram's size limit.
"""

from __future__ import annotations

import asyncio
import logging

from telegram import Bot

logger = logging.getLogger(__name__)

MAX_CHUNK_CHARS = 3500
CHUNK_DELAY_SECONDS = 0.5
NICE_CUT_RATIO = 0.6


def split_for_telegram(text: str, max_chars: int = MAX_CHUNK_CHARS) -> list[str]:
    """Split text into chunks of at most max_chars.

    Prefers cutting at a paragraph break, then a line break, then a space,
    as long as the cut falls in the last 40% of the window; otherwise cuts hard.
    """
    if not text or len(text) <= max_chars:
        return [text]

    chunks: list[str] = []
    rest = text
    while len(rest) > max_chars:
        window = rest[:max_chars]
        cut = -1
        for separator in ("\n\n", "\n", " "):
            index = window.rfind(separator)
            if index >= max_chars * NICE_CUT_RATIO:
                cut = index
                break
        if cut <= 0:
            cut = max_chars
        chunk = rest[:cut].rstrip()
        if chunk:
            chunks.append(chunk)
        rest = rest[cut:].lstrip()

    if rest:
        chunks.append(rest)
    return chunks


class TelegramNotifier:
    """Telegram implementation of NotificationPort."""

    def __init__(
        self,
        bot: Bot,
        max_chunk_chars: int = MAX_CHUNK_CHARS,
        chunk_delay: float = CHUNK_DELAY_SECONDS,
    ) -> None:
        self._bot = bot
        self.max_chunk_chars = max_chunk_chars
        self.chunk_delay = chunk_delay

    async def send_text(self, chat_id: str, text: str) -> None:
        await self._bot.send_message(chat_id=chat_id, text=text)

    async def send_chunks(self, chat_id: str, text: str) -> None:
        chunks = split_for_telegram(text, self.max_chunk_chars)
        for i, chunk in enumerate(chunks):
            await self._bot.send_message(chat_id=chat_id, text=chunk)
            if self.chunk_delay > 0 and i < len(chunks) - 1:
                await asyncio.sleep(self.chunk_delay)
        logger.debug("Sent %d chunk(s) to chat %s", len(chunks), chat_id)
