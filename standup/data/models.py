"""
Daily Standup Bot — Data Models.

One DailyCycle per user per logical day drives the standup ritual.
Messages are the append-only audit trail; tasks and reasons hang off the
cycle they were extracted from.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class CycleState(str, Enum):
    PENDING_MORNING = "pending_morning"
    PENDING_UPDATE = "pending_update"
    NEEDS_FOLLOWUP = "needs_followup"
    DONE = "done"
    EXPIRED = "expired"


class MessageType(str, Enum):
    MORNING = "morning"
    UPDATE = "update"
    FOLLOWUP = "followup"
    CHAT = "chat"
    SYSTEM = "system"


class ReasonCode(str, Enum):
    """Closed set of reasons a daily plan was not completed."""

    IMPEDIMENT = "impediment"
    BLOCKED_DEPENDENCY = "blocked_dependency"
    SCOPE_CHANGE = "scope_change"
    OVERCOMMITMENT = "overcommitment"
    UNKNOWN_TECH = "unknown_tech"
    TECH_DEBT = "tech_debt"
    REQUIREMENTS_CLARITY = "requirements_clarity"
    TOOLING_ISSUES = "tooling_issues"
    MAJOR_INCIDENT = "major_incident"
    MEETINGS_OVERLOAD = "meetings_overload"
    HEALTH_ISSUE = "health_issue"
    PERSONAL_EMERGENCY = "personal_emergency"


# Fixed story-point mapping for task complexity
COMPLEXITY_POINTS: dict[str, int] = {"XS": 1, "S": 2, "M": 3, "L": 5, "XL": 8}


@dataclass
class User:
    """A chat user taking part in the daily ritual."""

    user_id: str
    chat_id: str
    tz: str
    provider: str = "telegram"
    created_at: int = 0
    updated_at: int = 0


@dataclass
class DailyCycle:
    """The standup state of one user for one logical day (YYYY-MM-DD in the user's tz)."""

    id: int
    user_id: str
    date: str
    state: CycleState
    score: int | None = None
    eval_model: str | None = None
    eval_version: str | None = None       # rubric version
    eval_rationale: str | None = None
    morning_prompt_at: int | None = None  # claim, set at most once
    evening_prompt_at: int | None = None  # claim, set at most once
    first_morning_at: int | None = None
    first_update_at: int | None = None
    closed_at: int | None = None
    workload_points: int | None = None
    workload_level: str | None = None     # "low" | "normal" | "high"
    created_at: int = 0
    updated_at: int = 0


@dataclass
class DailyPatch:
    """Optional field updates for a DailyCycle. Fields left as None are untouched.

    Milestones (first_morning_at, first_update_at, closed_at) keep their first
    value; the rest overwrite.
    """

    score: int | None = None
    eval_model: str | None = None
    eval_version: str | None = None
    eval_rationale: str | None = None
    first_morning_at: int | None = None
    first_update_at: int | None = None
    closed_at: int | None = None
    workload_points: int | None = None
    workload_level: str | None = None


@dataclass
class Message:
    """Immutable audit record of an inbound or outbound text."""

    chat_id: str
    user_id: str
    text: str
    timestamp: int                          # epoch seconds
    type: MessageType
    provider: str = "telegram"
    provider_message_id: str | None = None
    provider_event_id: str | None = None    # dedup key together with provider
    daily_id: int | None = None
    id: int | None = None


@dataclass
class Task:
    """One item of a morning plan."""

    pos: int                 # 1-based, unique within a cycle
    text: str
    complexity: str          # XS | S | M | L | XL
    points: int
    source: str = "heuristic"


@dataclass
class Reason:
    """Why a cycle's plan was not completed, with how sure we are."""

    code: str
    confidence: float
    source: str = "heuristic"   # heuristic | llm | manual
    raw: str | None = None
    message_id: str | None = None
    model_version: str | None = None


@dataclass
class ExpireResult:
    """Outcome of a day-rollover expiry request.

    A backend that cannot expire cycles reports supported=False instead of
    silently doing nothing.
    """

    supported: bool = True
    expired: int = 0
    expired_ids: list[int] = field(default_factory=list)
