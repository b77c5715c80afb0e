"""Evaluator port — scores an evening update against the morning plan.

Implementations must never raise: a failed evaluation degrades to a
best-effort result.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass
class EvalResult:
    """Completion score of a day, 0–100, with the model's explanation."""

    score: int
    rationale: str = ""   # <= 200 chars
    advice: str = ""      # <= 200 chars
    model: str = ""
    version: str = ""     # rubric version


class EvaluatorPort(Protocol):
    """Abstract evaluator interface used by the orchestrator."""

    async def evaluate(self, plan: str, update: str) -> EvalResult: ...
