"""
Daily Standup Bot — Workload analysis.

Turns a free-text morning plan into a list of tasks with a rough size each,
and rates the day's load against a baseline of points per day.
Purely deterministic: no LLM involved.
"""

from __future__ import annotations

import re

from standup.data.models import COMPLEXITY_POINTS, Task

_BULLET_RE = re.compile(r"^[-*•]\s+")
_NUMBERED_RE = re.compile(r"^\d+[.)]\s+")
_QUOTES_RE = re.compile(r"[\"“”]")

_CONNECTOR_WORD_RE = re.compile(r"\b(y|and)\b", re.IGNORECASE)
_CONNECTOR_PUNCT_RE = re.compile(r"[;,]")
_BIG_RE = re.compile(
    r"\b(migrar|migration|migrat\w*|refactor\w*|infraestructura|infra|integrar|"
    r"integration|desplegar|deploy)\b",
    re.IGNORECASE,
)
_RESEARCH_RE = re.compile(
    r"\b(investigar|aprender|tutorial|documentacion|documentación|investigate|learn)\b",
    re.IGNORECASE,
)


def split_plan_lines(plan: str) -> list[str]:
    """Split a plan into task lines, dropping blanks and bullet/number markers."""
    lines: list[str] = []
    for raw in (plan or "").splitlines():
        line = raw.strip()
        if not line:
            continue
        line = _BULLET_RE.sub("", line)
        line = _NUMBERED_RE.sub("", line)
        line = _QUOTES_RE.sub("", line).strip()
        if line:
            lines.append(line)
    return lines


def count_connectors(text: str) -> int:
    return len(_CONNECTOR_WORD_RE.findall(text)) + len(_CONNECTOR_PUNCT_RE.findall(text))


def estimate_complexity(text: str) -> str:
    """Size a task as XS/S/M/L/XL from word count, connectors and keywords.

    >>> estimate_complexity("Revisar correo")
    'XS'
    >>> estimate_complexity("Migrar la base de datos, ajustar permisos y desplegar")
    'XL'
    """
    words = len(text.split())
    connectors = count_connectors(text)
    big = bool(_BIG_RE.search(text))
    research = bool(_RESEARCH_RE.search(text))

    if words <= 5 and connectors == 0 and not big:
        complexity = "XS"
    elif words <= 10 and connectors <= 1 and not big:
        complexity = "S"
    elif words <= 18 and connectors <= 2:
        complexity = "M"
    else:
        complexity = "L"

    if big and connectors >= 2:
        complexity = "XL"
    if research and complexity == "XS":
        complexity = "S"
    return complexity


def extract_tasks(plan: str) -> list[Task]:
    """Extract positional tasks (pos 1..n) from a morning plan."""
    tasks: list[Task] = []
    for pos, text in enumerate(split_plan_lines(plan), start=1):
        complexity = estimate_complexity(text)
        tasks.append(
            Task(
                pos=pos,
                text=text,
                complexity=complexity,
                points=COMPLEXITY_POINTS[complexity],
                source="heuristic",
            )
        )
    return tasks


def classify_workload(total_points: float, baseline_points_per_day: float = 5) -> str:
    """Rate a day's points as "low", "normal" or "high" around the baseline."""
    if total_points < 0.7 * baseline_points_per_day:
        return "low"
    if total_points > 1.3 * baseline_points_per_day:
        return "high"
    return "normal"
