"""Notification port — abstract interface for sending messages to users.

Core modules depend on this protocol, never on a specific messaging provider.
"""

from __future__ import annotations

from typing import Protocol


class NotificationPort(Protocol):
    """Abstract notification interface used by core modules."""

    async def send_text(self, chat_id: str, text: str) -> None: ...

    async def send_chunks(self, chat_id: str, text: str) -> None:
        """Send a long text as several messages, pausing between them."""
        ...
