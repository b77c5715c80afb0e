"""
Daily Standup Bot — Plan vs. result evaluation.

LLMEvaluator asks the configured model for a JSON verdict, retrying
transient failures with exponential backoff and jitter. HeuristicEvaluator
scores by word overlap and is also the fallback when the model is out of
reach. Neither raises.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
import re

from standup.core.llm import LLMClient, LLMError
from standup.core.llm_json import parse_model_json
from standup.core.text import normalize_words, strip_diacritics
from standup.ports.evaluator_port import EvalResult

logger = logging.getLogger(__name__)

DEFAULT_SCORE = 60
MAX_TEXT_LENGTH = 200
BACKOFF_BASE_SECONDS = 0.3
BACKOFF_JITTER_SECONDS = 0.2

EVAL_SYSTEM_PROMPT = (
    "Eres un evaluador de dailys Agile. Debes responder ÚNICAMENTE un JSON válido con la forma: "
    '{"score":0..100,"rationale":"<=200 chars","advice":"<=200 chars"}. '
    "No incluyas nada más (sin texto extra ni bloques de código)."
)

_INCOMPLETE_RE = re.compile(r"\b(no|no pude|no logre|pendiente|not|didn't|unfinished)\b")


def build_eval_prompt(plan: str, update: str) -> str:
    return (
        f"Plan:\n{plan or '(sin plan)'}\n\n"
        f"Resultado:\n{update}\n\n"
        "Criterios: claridad del plan, alineación plan-resultado, evidencia de cumplimiento. "
        "Umbral 100 = cumplimiento total.\n"
        "Responde SOLO JSON válido."
    )


def clamp_score(value, default: int = DEFAULT_SCORE) -> int:
    """Coerce a model score to an int in [0, 100]; non-numeric → default."""
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return int(round(max(0.0, min(100.0, number))))


def backoff_seconds(attempt: int) -> float:
    return BACKOFF_BASE_SECONDS * 2 ** attempt + random.uniform(0, BACKOFF_JITTER_SECONDS)


# ---------------------------------------------------------------------------
# Heuristic
# ---------------------------------------------------------------------------


def _word_set(text: str) -> set[str]:
    return {word for word in normalize_words(text).split(" ") if len(word) > 2}


def compute_heuristic_score(plan: str, update: str) -> int:
    """Score an update against the plan by word overlap.

    >>> compute_heuristic_score("Resolver bug X", "Terminé de resolver el bug X")
    100
    >>> compute_heuristic_score("Resolver bug X", "no pude terminar, pendiente")
    60
    """
    update_words = _word_set(update or "")
    if not update_words:
        return 50

    if _INCOMPLETE_RE.search(strip_diacritics((update or "").lower())):
        return 60

    plan_words = _word_set(plan or "")
    overlap = len(update_words & plan_words)
    ratio = overlap / max(1, len(plan_words))

    if ratio >= 0.5 and len(update) >= 20:
        return 100
    if ratio >= 0.3 and len(update) >= 20:
        return 90
    return 70


class HeuristicEvaluator:
    """Deterministic evaluator used without LLM credentials."""

    def __init__(self, version: str = "v1", model: str = "heuristic") -> None:
        self.version = version
        self.model = model

    async def evaluate(self, plan: str, update: str) -> EvalResult:
        return self.evaluate_sync(plan, update, self.model)

    def evaluate_sync(self, plan: str, update: str, model: str | None = None) -> EvalResult:
        score = compute_heuristic_score(plan, update)
        if score == 100:
            rationale = "Plan y resultado alineados (heurística)."
            advice = "Sigue con la misma disciplina."
        else:
            rationale = "No se encontró evidencia fuerte de cumplimiento (heurística)."
            advice = "Define 1–3 objetivos concretos y medibles para mañana."
        return EvalResult(
            score=score,
            rationale=rationale,
            advice=advice,
            model=model or self.model,
            version=self.version,
        )


# ---------------------------------------------------------------------------
# LLM
# ---------------------------------------------------------------------------


class LLMEvaluator:
    """Evaluator backed by the configured LLM provider."""

    def __init__(
        self,
        client: LLMClient,
        rubric_version: str = "v1",
        max_retries: int = 2,
        timeout: float | None = None,
    ) -> None:
        self._client = client
        self.model = client.model
        self.version = rubric_version
        self.max_retries = max(0, max_retries)
        self.timeout = timeout
        self._fallback = HeuristicEvaluator(version=rubric_version)

    async def evaluate(self, plan: str, update: str) -> EvalResult:
        prompt = build_eval_prompt(plan, update)
        last_error: Exception | None = None

        for attempt in range(self.max_retries + 1):
            try:
                text = await self._client.complete(
                    EVAL_SYSTEM_PROMPT, prompt, max_tokens=200, timeout=self.timeout,
                )
                return self._to_result(text)
            except LLMError as exc:
                last_error = exc
                if not exc.retryable:
                    logger.error("LLM evaluation aborted (status %s): %s", exc.status, exc)
                    break
                if attempt < self.max_retries:
                    delay = backoff_seconds(attempt)
                    logger.warning(
                        "LLM evaluation failed (status %s), retry %d in %.2fs",
                        exc.status, attempt + 1, delay,
                    )
                    await asyncio.sleep(delay)
            except Exception as exc:
                last_error = exc
                logger.error("Unexpected LLM evaluation error: %s", exc)
                break

        logger.warning("Falling back to heuristic evaluation: %s", last_error)
        return self._fallback.evaluate_sync(plan, update, model=f"{self.model}-fallback")

    def _to_result(self, text: str) -> EvalResult:
        parsed = parse_model_json(text)
        return EvalResult(
            score=clamp_score(parsed.get("score")),
            rationale=str(parsed.get("rationale") or "")[:MAX_TEXT_LENGTH],
            advice=str(parsed.get("advice") or "")[:MAX_TEXT_LENGTH],
            model=self.model,
            version=self.version,
        )
