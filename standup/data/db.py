"""
Daily Standup Bot — SQLite store.

Implements RepositoryPort. All cross-invocation coordination (prompt claims,
state transitions, cycle creation, inbound dedup) is expressed as single
conditional statements backed by unique constraints, so overlapping bot
updates and scheduler ticks never double-process.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path

from standup.data.models import (
    CycleState,
    DailyCycle,
    DailyPatch,
    ExpireResult,
    Message,
    MessageType,
    Reason,
    Task,
    User,
)
from standup.ports.repository_port import REPOSITORY_PORT_VERSION

logger = logging.getLogger(__name__)

_NOW_SQL = "CAST(strftime('%s','now') AS INTEGER)"

# Milestones keep their first value; everything else overwrites.
_MILESTONE_FIELDS = ("first_morning_at", "first_update_at", "closed_at")
_PATCH_FIELDS = (
    "score", "eval_model", "eval_version", "eval_rationale",
    "first_morning_at", "first_update_at", "closed_at",
    "workload_points", "workload_level",
)


def _now() -> int:
    return int(time.time())


def _patch_clauses(patch: DailyPatch | None) -> tuple[list[str], list]:
    """Translate a DailyPatch into SET clauses and their arguments."""
    sets: list[str] = []
    args: list = []
    if patch is None:
        return sets, args
    for name in _PATCH_FIELDS:
        value = getattr(patch, name)
        if value is None:
            continue
        if name in _MILESTONE_FIELDS:
            sets.append(f"{name} = COALESCE({name}, ?)")
        else:
            sets.append(f"{name} = ?")
        args.append(value)
    return sets, args


class StandupDB:
    """SQLite-backed storage for users, daily cycles, messages, tasks and reasons."""

    port_version = REPOSITORY_PORT_VERSION

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from standup.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _init_db(self) -> None:
        """Create tables and indexes if they don't exist, and migrate schema."""
        with self._connect() as conn:
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS users (
                    user_id     TEXT PRIMARY KEY,
                    chat_id     TEXT NOT NULL,
                    tz          TEXT NOT NULL,
                    provider    TEXT NOT NULL DEFAULT 'telegram',
                    created_at  INTEGER NOT NULL DEFAULT ({_NOW_SQL}),
                    updated_at  INTEGER NOT NULL DEFAULT ({_NOW_SQL})
                )
            """)
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS daily_cycles (
                    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id            TEXT    NOT NULL REFERENCES users(user_id),
                    date               TEXT    NOT NULL,
                    state              TEXT    NOT NULL CHECK (state IN
                        ('pending_morning','pending_update','needs_followup','done','expired')),
                    score              INTEGER,
                    eval_model         TEXT,
                    eval_version       TEXT,
                    eval_rationale     TEXT,
                    morning_prompt_at  INTEGER,
                    evening_prompt_at  INTEGER,
                    created_at         INTEGER NOT NULL DEFAULT ({_NOW_SQL}),
                    updated_at         INTEGER NOT NULL DEFAULT ({_NOW_SQL}),
                    UNIQUE (user_id, date)
                )
            """)
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS messages (
                    id                   INTEGER PRIMARY KEY AUTOINCREMENT,
                    daily_id             INTEGER REFERENCES daily_cycles(id),
                    chat_id              TEXT    NOT NULL,
                    user_id              TEXT    NOT NULL,
                    provider             TEXT    NOT NULL DEFAULT 'telegram',
                    provider_message_id  TEXT,
                    provider_event_id    TEXT,
                    text                 TEXT    NOT NULL DEFAULT '',
                    timestamp            INTEGER NOT NULL,
                    type                 TEXT    NOT NULL CHECK (type IN
                        ('morning','update','followup','chat','system')),
                    created_at           INTEGER NOT NULL DEFAULT ({_NOW_SQL})
                )
            """)
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS daily_tasks (
                    id          INTEGER PRIMARY KEY AUTOINCREMENT,
                    daily_id    INTEGER NOT NULL REFERENCES daily_cycles(id),
                    user_id     TEXT    NOT NULL,
                    pos         INTEGER NOT NULL,
                    text        TEXT    NOT NULL,
                    complexity  TEXT    NOT NULL CHECK (complexity IN ('XS','S','M','L','XL')),
                    points      INTEGER NOT NULL,
                    source      TEXT    NOT NULL CHECK (source IN ('heuristic','llm')),
                    created_at  INTEGER NOT NULL DEFAULT ({_NOW_SQL}),
                    UNIQUE (daily_id, pos)
                )
            """)
            conn.execute(f"""
                CREATE TABLE IF NOT EXISTS daily_reasons (
                    id             INTEGER PRIMARY KEY AUTOINCREMENT,
                    daily_id       INTEGER NOT NULL REFERENCES daily_cycles(id),
                    code           TEXT    NOT NULL,
                    confidence     REAL    NOT NULL,
                    source         TEXT    NOT NULL CHECK (source IN ('heuristic','llm','manual')),
                    raw            TEXT,
                    message_id     TEXT,
                    model_version  TEXT,
                    created_at     INTEGER NOT NULL DEFAULT ({_NOW_SQL}),
                    UNIQUE (daily_id, code)
                )
            """)

            # Migrate existing DBs: add columns introduced after the first release
            existing_cols = {
                row[1] for row in conn.execute("PRAGMA table_info(daily_cycles)").fetchall()
            }
            for column, col_type in (
                ("first_morning_at", "INTEGER"),
                ("first_update_at", "INTEGER"),
                ("closed_at", "INTEGER"),
                ("workload_points", "INTEGER"),
                ("workload_level", "TEXT"),
            ):
                if column not in existing_cols:
                    conn.execute(f"ALTER TABLE daily_cycles ADD COLUMN {column} {col_type}")

            conn.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS uq_messages_event "
                "ON messages(provider, provider_event_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS ix_messages_daily_type "
                "ON messages(daily_id, type, id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS ix_daily_cycles_state "
                "ON daily_cycles(user_id, state)"
            )
        logger.debug(
            "Standup tables initialized at %s (repository port v%d)", self._db_path, self.port_version,
        )

    # ------------------------------------------------------------------
    # Row mappers
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            user_id=row["user_id"],
            chat_id=row["chat_id"],
            tz=row["tz"],
            provider=row["provider"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_daily(row: sqlite3.Row) -> DailyCycle:
        return DailyCycle(
            id=row["id"],
            user_id=row["user_id"],
            date=row["date"],
            state=CycleState(row["state"]),
            score=row["score"],
            eval_model=row["eval_model"],
            eval_version=row["eval_version"],
            eval_rationale=row["eval_rationale"],
            morning_prompt_at=row["morning_prompt_at"],
            evening_prompt_at=row["evening_prompt_at"],
            first_morning_at=row["first_morning_at"],
            first_update_at=row["first_update_at"],
            closed_at=row["closed_at"],
            workload_points=row["workload_points"],
            workload_level=row["workload_level"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> Message:
        return Message(
            id=row["id"],
            daily_id=row["daily_id"],
            chat_id=row["chat_id"],
            user_id=row["user_id"],
            provider=row["provider"],
            provider_message_id=row["provider_message_id"],
            provider_event_id=row["provider_event_id"],
            text=row["text"],
            timestamp=row["timestamp"],
            type=MessageType(row["type"]),
        )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def upsert_user(
        self, user_id: str, chat_id: str, tz: str | None, provider: str = "telegram",
    ) -> User:
        """Create the user or refresh chat_id. tz is only overwritten when given."""
        if tz is None:
            from standup.config import settings
            insert_tz = settings.DEFAULT_TZ
        else:
            insert_tz = tz

        now = _now()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO users (user_id, chat_id, tz, provider, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    chat_id    = excluded.chat_id,
                    tz         = CASE WHEN ? IS NULL THEN users.tz ELSE excluded.tz END,
                    provider   = excluded.provider,
                    updated_at = excluded.updated_at
                """,
                (user_id, chat_id, insert_tz, provider, now, now, tz),
            )
            row = conn.execute(
                "SELECT * FROM users WHERE user_id = ?", (user_id,),
            ).fetchone()
        return self._row_to_user(row)

    def get_user(self, user_id: str) -> User | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE user_id = ?", (user_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_all_users(self) -> list[User]:
        """Return all users, oldest first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM users ORDER BY created_at, user_id"
            ).fetchall()
        return [self._row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Daily cycles
    # ------------------------------------------------------------------

    def get_daily(self, daily_id: int) -> DailyCycle | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM daily_cycles WHERE id = ?", (daily_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_daily(row)

    def get_daily_by_date(self, user_id: str, date: str) -> DailyCycle | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM daily_cycles WHERE user_id = ? AND date = ?",
                (user_id, date),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_daily(row)

    def get_or_create_daily(
        self, user_id: str, date: str, state: CycleState = CycleState.PENDING_MORNING,
    ) -> DailyCycle:
        """Return the (user_id, date) cycle, creating it if absent.

        INSERT OR IGNORE against the UNIQUE (user_id, date) constraint makes
        concurrent creators converge on the same row.
        """
        now = _now()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO daily_cycles (user_id, date, state, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, date, CycleState(state).value, now, now),
            )
            row = conn.execute(
                "SELECT * FROM daily_cycles WHERE user_id = ? AND date = ?",
                (user_id, date),
            ).fetchone()
        daily = self._row_to_daily(row)
        if cursor.rowcount > 0:
            logger.info("Daily #%d created for user %s on %s", daily.id, user_id, date)
        return daily

    def set_daily_state(
        self,
        daily_id: int,
        state: CycleState,
        patch: DailyPatch | None = None,
        expected_state: CycleState | None = None,
    ) -> bool:
        """Move a cycle to `state`, applying `patch` in the same statement.

        With expected_state the update is a compare-and-set: it only applies
        while the cycle is still in expected_state.
        """
        sets, args = _patch_clauses(patch)
        sets = ["state = ?", *sets, "updated_at = ?"]
        args = [CycleState(state).value, *args, _now()]

        query = f"UPDATE daily_cycles SET {', '.join(sets)} WHERE id = ?"
        args.append(daily_id)
        if expected_state is not None:
            query += " AND state = ?"
            args.append(CycleState(expected_state).value)

        with self._connect() as conn:
            cursor = conn.execute(query, args)
        changed = cursor.rowcount > 0
        if changed:
            logger.info("Daily #%d → %s", daily_id, CycleState(state).value)
        return changed

    def patch_daily(self, daily_id: int, patch: DailyPatch) -> None:
        sets, args = _patch_clauses(patch)
        if not sets:
            return
        sets.append("updated_at = ?")
        args.extend([_now(), daily_id])
        with self._connect() as conn:
            conn.execute(
                f"UPDATE daily_cycles SET {', '.join(sets)} WHERE id = ?", args,
            )

    def _claim(self, column: str, daily_id: int, epoch: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                f"""
                UPDATE daily_cycles SET {column} = ?, updated_at = ?
                WHERE id = ? AND {column} IS NULL
                """,
                (epoch, _now(), daily_id),
            )
        return cursor.rowcount > 0

    def claim_morning_prompt(self, daily_id: int, epoch: int) -> bool:
        """Atomically set morning_prompt_at if unset. Only one caller ever wins."""
        return self._claim("morning_prompt_at", daily_id, epoch)

    def claim_evening_prompt(self, daily_id: int, epoch: int) -> bool:
        """Atomically set evening_prompt_at if unset. Only one caller ever wins."""
        return self._claim("evening_prompt_at", daily_id, epoch)

    def refresh_morning_prompt(
        self, daily_id: int, epoch: int, min_interval_seconds: int,
    ) -> bool:
        """Re-claim the morning slot of a still-pending cycle once the interval passed."""
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE daily_cycles SET morning_prompt_at = ?, updated_at = ?
                WHERE id = ?
                  AND state = 'pending_morning'
                  AND (morning_prompt_at IS NULL OR morning_prompt_at <= ?)
                """,
                (epoch, _now(), daily_id, epoch - min_interval_seconds),
            )
        return cursor.rowcount > 0

    def expire_stale_cycles(self, user_id: str, before_date: str) -> ExpireResult:
        """Expire the user's unfinished cycles dated before `before_date`."""
        with self._connect() as conn:
            ids = [
                row["id"] for row in conn.execute(
                    """
                    SELECT id FROM daily_cycles
                    WHERE user_id = ? AND date < ? AND state NOT IN ('done', 'expired')
                    """,
                    (user_id, before_date),
                ).fetchall()
            ]
            expired_ids: list[int] = []
            for daily_id in ids:
                cursor = conn.execute(
                    """
                    UPDATE daily_cycles SET state = 'expired', updated_at = ?
                    WHERE id = ? AND state NOT IN ('done', 'expired')
                    """,
                    (_now(), daily_id),
                )
                if cursor.rowcount > 0:
                    expired_ids.append(daily_id)
        if expired_ids:
            logger.info("Expired %d stale cycle(s) of user %s", len(expired_ids), user_id)
        return ExpireResult(supported=True, expired=len(expired_ids), expired_ids=expired_ids)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def insert_message(self, message: Message) -> bool:
        """Append a message row.

        Returns False when a row with the same (provider, provider_event_id)
        already exists; any other integrity error propagates.
        """
        try:
            with self._connect() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO messages
                        (daily_id, chat_id, user_id, provider, provider_message_id,
                         provider_event_id, text, timestamp, type)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        message.daily_id, message.chat_id, message.user_id,
                        message.provider, message.provider_message_id,
                        message.provider_event_id, message.text or "",
                        message.timestamp, MessageType(message.type).value,
                    ),
                )
                message.id = cursor.lastrowid
        except sqlite3.IntegrityError:
            if message.provider_event_id is not None and self.has_event(
                message.provider, message.provider_event_id,
            ):
                logger.info(
                    "Duplicate event %s/%s ignored",
                    message.provider, message.provider_event_id,
                )
                return False
            raise
        return True

    def has_event(self, provider: str, event_id: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM messages WHERE provider = ? AND provider_event_id = ?",
                (provider, event_id),
            ).fetchone()
        return row is not None

    def _first_text(self, daily_id: int, message_type: MessageType) -> str:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT text FROM messages
                WHERE daily_id = ? AND type = ?
                ORDER BY id LIMIT 1
                """,
                (daily_id, message_type.value),
            ).fetchone()
        return row["text"] if row is not None else ""

    def get_first_morning_text(self, daily_id: int) -> str:
        """The cycle's plan: text of its first morning message, or ''."""
        return self._first_text(daily_id, MessageType.MORNING)

    def get_first_update_text(self, daily_id: int) -> str:
        return self._first_text(daily_id, MessageType.UPDATE)

    def list_messages(self, daily_id: int) -> list[Message]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM messages WHERE daily_id = ? ORDER BY id", (daily_id,),
            ).fetchall()
        return [self._row_to_message(r) for r in rows]

    # ------------------------------------------------------------------
    # Tasks and reasons
    # ------------------------------------------------------------------

    def insert_tasks(self, daily_id: int, user_id: str, tasks: list[Task]) -> None:
        """Replace the cycle's tasks (delete + positional insert, one transaction)."""
        with self._connect() as conn:
            conn.execute("DELETE FROM daily_tasks WHERE daily_id = ?", (daily_id,))
            conn.executemany(
                """
                INSERT INTO daily_tasks (daily_id, user_id, pos, text, complexity, points, source)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (daily_id, user_id, t.pos, t.text, t.complexity, t.points, t.source)
                    for t in tasks
                ],
            )
        logger.info("Daily #%d: %d task(s) stored", daily_id, len(tasks))

    def get_tasks(self, daily_id: int) -> list[Task]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM daily_tasks WHERE daily_id = ? ORDER BY pos", (daily_id,),
            ).fetchall()
        return [
            Task(
                pos=r["pos"],
                text=r["text"],
                complexity=r["complexity"],
                points=r["points"],
                source=r["source"],
            )
            for r in rows
        ]

    def upsert_reasons(self, daily_id: int, reasons: list[Reason]) -> None:
        """Insert reasons; on (daily_id, code) conflict keep the higher confidence.

        The winning confidence brings its source and model_version along;
        raw and message_id are kept unless the new row provides them.
        """
        if not reasons:
            return
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO daily_reasons
                    (daily_id, code, confidence, source, raw, message_id, model_version)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(daily_id, code) DO UPDATE SET
                    confidence    = CASE WHEN excluded.confidence > daily_reasons.confidence
                                         THEN excluded.confidence ELSE daily_reasons.confidence END,
                    source        = CASE WHEN excluded.confidence > daily_reasons.confidence
                                         THEN excluded.source ELSE daily_reasons.source END,
                    model_version = CASE WHEN excluded.confidence > daily_reasons.confidence
                                         THEN excluded.model_version ELSE daily_reasons.model_version END,
                    raw           = COALESCE(excluded.raw, daily_reasons.raw),
                    message_id    = COALESCE(excluded.message_id, daily_reasons.message_id)
                """,
                [
                    (
                        daily_id, r.code, r.confidence, r.source,
                        r.raw, r.message_id, r.model_version,
                    )
                    for r in reasons
                ],
            )

    def get_reasons(self, daily_id: int) -> list[Reason]:
        """Return the cycle's reasons, most confident first."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM daily_reasons WHERE daily_id = ?
                ORDER BY confidence DESC, code
                """,
                (daily_id,),
            ).fetchall()
        return [
            Reason(
                code=r["code"],
                confidence=r["confidence"],
                source=r["source"],
                raw=r["raw"],
                message_id=r["message_id"],
                model_version=r["model_version"],
            )
            for r in rows
        ]
