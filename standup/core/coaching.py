"""Closing reply for a day that did not go as planned."""

from __future__ import annotations

import logging

from standup.core.llm import LLMClient

logger = logging.getLogger(__name__)

COACH_SYSTEM_PROMPT = (
    "Asume el rol de psicólogo conductual experto en personas con TDAH y coach, hablando por un chat. "
    "Analiza paso a paso el motivo por el cual la persona no cumplió sus objetivos y ayúdale a "
    "comprender lo ocurrido desde un análisis funcional para mejorar su eficiencia. "
    "Sé amable y alentador, háblale de manera cercana y empática sin dejar de lado tu rol."
)


def build_coach_prompt(plan: str, update: str, explanation: str) -> str:
    parts = []
    if plan:
        parts.append(f"Plan: {plan}")
    if update:
        parts.append(f"Resultado: {update}")
    if explanation:
        parts.append(f"Motivo: {explanation}")
    parts.append("Respuesta:")
    return "\n".join(parts)


class Coach:
    """Generates a coaching text from plan, result and the user's explanation."""

    def __init__(self, client: LLMClient, max_tokens: int = 800, timeout: float | None = None) -> None:
        self._client = client
        self.max_tokens = max_tokens
        self.timeout = timeout

    async def reply(self, plan: str, update: str, explanation: str) -> str:
        """Return the coaching text. Raises LLMError when the model fails."""
        text = await self._client.complete(
            COACH_SYSTEM_PROMPT,
            build_coach_prompt(plan, update, explanation),
            max_tokens=self.max_tokens,
            timeout=self.timeout,
        )
        return (text or "").strip()
