"""Server handler: dispatches JSON-lines requests to the adaptive session."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from pecstutor.config.settings import Settings
from pecstutor.engine.adaptive import PerformanceSummary
from pecstutor.engine.session import AdaptiveDifficulty
from pecstutor.state.activity import (
    ActivityRecord,
    ActivityStore,
    ActivityType,
    PromptLevel,
    SessionSummary,
)
from pecstutor.state.recorder import SessionRecorder

from .protocol import Notification, camelize, to_snake

logger = logging.getLogger(__name__)


def _summary_to_dict(summary: PerformanceSummary) -> dict:
    return {
        "successRate": summary.success_rate,
        "trend": summary.trend.value,
        "avgResponseTimeMs": summary.avg_response_time_ms,
        "currentDifficulty": summary.current_difficulty,
        "totalTrials": summary.total_trials,
    }


class ServerHandler:
    """Owns the active learning session and routes requests to it."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        write_notification: Optional[Callable[[Notification], None]] = None,
        store: Optional[ActivityStore] = None,
    ):
        self.settings = settings or Settings.load()
        self._write_notification = write_notification or (lambda n: None)

        self.recorder = SessionRecorder(store or ActivityStore(db_path=self.settings.db_path))

        self._engine: Optional[AdaptiveDifficulty] = None
        self._session_id: Optional[str] = None
        self._started_at = 0.0
        self._successes = 0
        self._attempts = 0

    async def dispatch(self, msg: dict) -> dict:
        """Route a request message to the appropriate handler method."""
        method = msg.get("method", "")
        params = msg.get("params") or {}

        handler_map = {
            "getSettings": self._get_settings,
            "startSession": self._start_session,
            "recordTrial": self._record_trial,
            "getPerformance": self._get_performance,
            "setDifficulty": self._set_difficulty,
            "reset": self._reset,
            "endSession": self._end_session,
        }

        handler = handler_map.get(method)
        if handler is None:
            raise ValueError(f"Unknown method: {method}")

        return await handler(params)

    def _require_engine(self) -> AdaptiveDifficulty:
        if self._engine is None:
            raise ValueError("No active session")
        return self._engine

    def _on_difficulty_change(self, new_difficulty: int, message: str) -> None:
        self._write_notification(Notification(
            "difficultyChanged",
            {"newDifficulty": new_difficulty, "message": message},
        ))

    async def _get_settings(self, params: dict) -> dict:
        settings = self._engine.settings if self._engine else self.settings.adaptive
        return camelize(settings.model_dump())

    async def _start_session(self, params: dict) -> dict:
        if self._engine is not None:
            raise ValueError("Session already active; call endSession first")
        overrides = {to_snake(k): v for k, v in (params.get("settings") or {}).items()}
        adaptive = self.settings.adaptive.with_overrides(**overrides)

        session_id = await self.recorder.start_session(
            child_id=params["childId"],
            phase=int(params["phase"]),
            facilitator_id=params.get("facilitatorId"),
            environment=params.get("environment", "home"),
        )

        self._session_id = session_id
        self._engine = AdaptiveDifficulty(
            settings=adaptive,
            initial_difficulty=params.get("initialDifficulty"),
            on_difficulty_change=self._on_difficulty_change,
        )
        self._started_at = time.monotonic()
        self._successes = 0
        self._attempts = 0
        return {
            "sessionId": self._session_id,
            "currentDifficulty": self._engine.current_difficulty,
            "persisted": self._session_id is not None,
        }

    async def _record_trial(self, params: dict) -> dict:
        engine = self._require_engine()
        success = bool(params["success"])
        response_time_ms = int(params.get("responseTimeMs", 0))

        # Parse the whole request first; a rejected request must not count as a trial.
        default_type = (
            ActivityType.DISCRIMINATION_CORRECT if success
            else ActivityType.DISCRIMINATION_INCORRECT
        )
        prompt_level = params.get("promptLevel")
        activity = ActivityRecord(
            activity_type=ActivityType(params.get("activityType", default_type)),
            was_successful=success,
            response_time_ms=response_time_ms,
            card_id=params.get("cardId"),
            cards_in_array=list(params.get("cardsInArray") or []),
            prompt_level=PromptLevel(prompt_level) if prompt_level else None,
            reinforcement_given=params.get("reinforcementGiven"),
        )

        outcome = engine.record_trial(success, response_time_ms)
        self._attempts += 1
        if success:
            self._successes += 1

        persisted = False
        if self._session_id is not None:
            persisted = await self.recorder.record_activity(self._session_id, activity)

        return {
            "difficultyChanged": outcome.difficulty_changed,
            "newDifficulty": outcome.new_difficulty,
            "message": outcome.message,
            "persisted": persisted,
        }

    async def _get_performance(self, params: dict) -> dict:
        return _summary_to_dict(self._require_engine().get_performance())

    async def _set_difficulty(self, params: dict) -> dict:
        engine = self._require_engine()
        engine.set_difficulty(int(params["difficulty"]))
        return {"currentDifficulty": engine.current_difficulty}

    async def _reset(self, params: dict) -> dict:
        engine = self._require_engine()
        engine.reset(params.get("initialDifficulty"))
        return {
            "currentDifficulty": engine.current_difficulty,
            "totalTrials": engine.total_trials,
        }

    async def _end_session(self, params: dict) -> dict:
        engine = self._require_engine()
        summary = SessionSummary(
            duration_seconds=int(time.monotonic() - self._started_at),
            successful_exchanges=self._successes,
            total_exchanges=self._attempts,
        )
        performance = _summary_to_dict(engine.get_performance())

        ended = False
        if self._session_id is not None:
            ended = await self.recorder.end_session(self._session_id, summary)
            if not ended:
                logger.warning(
                    "session %s not closed; %d activities still pending",
                    self._session_id, len(self.recorder.pending(self._session_id)),
                )
                return {"ended": False, "summary": performance}

        self._engine = None
        self._session_id = None
        return {
            "ended": ended,
            "summary": {
                **performance,
                "durationSeconds": summary.duration_seconds,
                "successfulExchanges": summary.successful_exchanges,
                "totalExchanges": summary.total_exchanges,
            },
        }
