"""SQLite-backed session and activity records for PECS Tutor."""

from __future__ import annotations

import json
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional


class ActivityType(str, Enum):
    EXCHANGE_ATTEMPT = "exchange_attempt"
    EXCHANGE_SUCCESS = "exchange_success"
    EXCHANGE_PROMPTED = "exchange_prompted"
    DISCRIMINATION_CORRECT = "discrimination_correct"
    DISCRIMINATION_INCORRECT = "discrimination_incorrect"
    SENTENCE_BUILT = "sentence_built"
    RESPONSE_CORRECT = "response_correct"
    RESPONSE_INCORRECT = "response_incorrect"
    COMMENT_MADE = "comment_made"
    VERBAL_APPROXIMATION = "verbal_approximation"


class PromptLevel(str, Enum):
    INDEPENDENT = "independent"
    GESTURAL = "gestural"
    VERBAL = "verbal"
    PHYSICAL = "physical"
    FULL_PHYSICAL = "full_physical"


class Environment(str, Enum):
    HOME = "home"
    CLINIC = "clinic"
    SCHOOL = "school"
    OTHER = "other"


PECS_PHASES = range(1, 7)


@dataclass
class ActivityRecord:
    """One learner action inside a session, as handed to the store."""
    activity_type: ActivityType
    was_successful: bool
    response_time_ms: Optional[int] = None
    card_id: Optional[str] = None
    cards_in_array: list[str] = field(default_factory=list)
    prompt_level: Optional[PromptLevel] = None
    reinforcement_given: Optional[str] = None


@dataclass
class SessionSummary:
    duration_seconds: int
    successful_exchanges: int
    total_exchanges: int

    @property
    def success_rate_percent(self) -> int:
        if self.total_exchanges <= 0:
            return 0
        return round(self.successful_exchanges / self.total_exchanges * 100)


@dataclass
class SessionRow:
    id: str
    child_id: str
    phase_id: int
    facilitator_id: Optional[str]
    environment: str
    started_at: str
    ended_at: Optional[str] = None
    duration_seconds: Optional[int] = None
    successful_exchanges: int = 0
    total_exchanges: int = 0
    metrics: dict = field(default_factory=dict)


@dataclass
class ActivityRow:
    id: int
    session_id: str
    activity_type: str
    success: bool
    prompt_level: Optional[str]
    response_time_ms: Optional[int]
    card_id: Optional[str]
    cards_in_array: list[str]
    reinforcement_given: Optional[str]
    created_at: str


_SESSION_COLUMNS = (
    "id, child_id, phase_id, facilitator_id, environment, started_at, "
    "ended_at, duration_seconds, successful_exchanges, total_exchanges, metrics"
)
_ACTIVITY_COLUMNS = (
    "id, session_id, activity_type, success, prompt_level, response_time_ms, "
    "card_id, cards_in_array, reinforcement_given, created_at"
)
_ACTIVITY_INSERT_COLUMNS = _ACTIVITY_COLUMNS[len("id, "):]


def _session_from_row(r) -> SessionRow:
    return SessionRow(
        id=r[0], child_id=r[1], phase_id=r[2], facilitator_id=r[3],
        environment=r[4], started_at=r[5], ended_at=r[6],
        duration_seconds=r[7], successful_exchanges=r[8] or 0,
        total_exchanges=r[9] or 0, metrics=json.loads(r[10] or "{}"),
    )


def _activity_from_row(r) -> ActivityRow:
    return ActivityRow(
        id=r[0], session_id=r[1], activity_type=r[2], success=bool(r[3]),
        prompt_level=r[4], response_time_ms=r[5], card_id=r[6],
        cards_in_array=json.loads(r[7] or "[]"),
        reinforcement_given=r[8], created_at=r[9],
    )


def _activity_params(session_id: str, activity: ActivityRecord, now: str) -> tuple:
    prompt = PromptLevel(activity.prompt_level).value if activity.prompt_level else None
    return (
        session_id,
        ActivityType(activity.activity_type).value,
        int(activity.was_successful),
        prompt,
        activity.response_time_ms,
        activity.card_id,
        json.dumps(list(activity.cards_in_array)),
        activity.reinforcement_given,
        now,
    )


class ActivityStore:
    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or (Path.home() / ".pecstutor" / "activity.db")
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    child_id TEXT NOT NULL,
                    phase_id INTEGER NOT NULL,
                    facilitator_id TEXT,
                    environment TEXT DEFAULT 'home',
                    started_at TEXT NOT NULL,
                    ended_at TEXT,
                    duration_seconds INTEGER,
                    successful_exchanges INTEGER DEFAULT 0,
                    total_exchanges INTEGER DEFAULT 0,
                    metrics TEXT DEFAULT '{}'
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS activities (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id TEXT NOT NULL REFERENCES sessions(id),
                    activity_type TEXT NOT NULL,
                    success INTEGER NOT NULL,
                    prompt_level TEXT,
                    response_time_ms INTEGER,
                    card_id TEXT,
                    cards_in_array TEXT DEFAULT '[]',
                    reinforcement_given TEXT,
                    created_at TEXT NOT NULL
                )
            """)

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    # --- Sessions ---

    def create_session(
        self,
        child_id: str,
        phase: int,
        facilitator_id: Optional[str] = None,
        environment: str = "home",
    ) -> SessionRow:
        if phase not in PECS_PHASES:
            raise ValueError(f"PECS phase must be 1-6, got {phase}")
        row = SessionRow(
            id=str(uuid.uuid4()),
            child_id=child_id,
            phase_id=phase,
            facilitator_id=facilitator_id,
            environment=Environment(environment).value,
            started_at=datetime.now().isoformat(),
        )
        with self._conn() as conn:
            conn.execute(
                """INSERT INTO sessions
                   (id, child_id, phase_id, facilitator_id, environment, started_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (row.id, row.child_id, row.phase_id, row.facilitator_id,
                 row.environment, row.started_at),
            )
        return row

    def end_session(self, session_id: str, summary: SessionSummary) -> Optional[SessionRow]:
        metrics = {"successRate": summary.success_rate_percent}
        with self._conn() as conn:
            conn.execute(
                """UPDATE sessions SET ended_at = ?, duration_seconds = ?,
                   successful_exchanges = ?, total_exchanges = ?, metrics = ?
                   WHERE id = ?""",
                (datetime.now().isoformat(), summary.duration_seconds,
                 summary.successful_exchanges, summary.total_exchanges,
                 json.dumps(metrics), session_id),
            )
        return self.get_session(session_id)

    def get_session(self, session_id: str) -> Optional[SessionRow]:
        with self._conn() as conn:
            row = conn.execute(
                f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE id = ?",
                (session_id,),
            ).fetchone()
        if not row:
            return None
        return _session_from_row(row)

    def get_child_sessions(
        self, child_id: str, limit: Optional[int] = None, offset: int = 0
    ) -> list[SessionRow]:
        sql = (
            f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE child_id = ? "
            "ORDER BY started_at DESC"
        )
        params: tuple = (child_id,)
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params += (limit, offset)
        with self._conn() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_session_from_row(r) for r in rows]

    # --- Activities ---

    def record_activity(self, session_id: str, activity: ActivityRecord) -> ActivityRow:
        now = datetime.now().isoformat()
        with self._conn() as conn:
            cur = conn.execute(
                f"""INSERT INTO activities
                    ({_ACTIVITY_INSERT_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                _activity_params(session_id, activity, now),
            )
            row = conn.execute(
                f"SELECT {_ACTIVITY_COLUMNS} FROM activities WHERE id = ?",
                (cur.lastrowid,),
            ).fetchone()
        return _activity_from_row(row)

    def record_activities(
        self, session_id: str, activities: list[ActivityRecord]
    ) -> int:
        """Insert a batch in one transaction. Returns the number written."""
        if not activities:
            return 0
        now = datetime.now().isoformat()
        with self._conn() as conn:
            conn.executemany(
                f"""INSERT INTO activities
                    ({_ACTIVITY_INSERT_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                [_activity_params(session_id, a, now) for a in activities],
            )
        return len(activities)

    def get_session_activities(self, session_id: str) -> list[ActivityRow]:
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT {_ACTIVITY_COLUMNS} FROM activities "
                "WHERE session_id = ? ORDER BY id",
                (session_id,),
            ).fetchall()
        return [_activity_from_row(r) for r in rows]

    # --- Reporting ---

    def get_recent_activity(self, child_id: str, limit: int = 5) -> list[dict]:
        """Most recent ended sessions for a child, newest first."""
        with self._conn() as conn:
            rows = conn.execute(
                """SELECT started_at, phase_id, successful_exchanges,
                          total_exchanges, duration_seconds
                   FROM sessions
                   WHERE child_id = ? AND ended_at IS NOT NULL
                   ORDER BY started_at DESC LIMIT ?""",
                (child_id, limit),
            ).fetchall()
        return [
            {
                "date": r[0],
                "phase": r[1],
                "successRate": round(r[2] / r[3] * 100) if r[3] else 0,
                "duration": r[4],
            }
            for r in rows
        ]
