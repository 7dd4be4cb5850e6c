"""Session-scoped owner of the adaptive engine state."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Callable, Optional

from pecstutor.config.settings import AdaptiveSettings
from pecstutor.engine.adaptive import (
    AdaptiveState,
    PerformanceSummary,
    TrialInput,
    Trend,
    create_adaptive_state,
    get_performance_summary,
    update_adaptive_state,
)

logger = logging.getLogger(__name__)

DifficultyCallback = Callable[[int, str], None]


@dataclass(frozen=True)
class TrialOutcome:
    difficulty_changed: bool
    new_difficulty: int
    message: str


class AdaptiveDifficulty:
    """Holds one session's ``AdaptiveState`` and feeds trials through the engine.

    Calls are serialized with a lock: each update reads and replaces the whole
    state, so interleaved updates would lose trials.
    """

    def __init__(
        self,
        settings: Optional[AdaptiveSettings] = None,
        initial_difficulty: Optional[int] = None,
        on_difficulty_change: Optional[DifficultyCallback] = None,
    ):
        self.settings = settings or AdaptiveSettings()
        self._initial_difficulty = self.settings.clamp(
            self.settings.current_array_size
            if initial_difficulty is None else initial_difficulty
        )
        self._on_difficulty_change = on_difficulty_change
        self._lock = threading.Lock()
        self._state = create_adaptive_state(self._initial_difficulty)

    @property
    def state(self) -> AdaptiveState:
        return self._state

    @property
    def current_difficulty(self) -> int:
        return self._state.current_difficulty

    @property
    def total_trials(self) -> int:
        return self._state.total_trials

    @property
    def success_rate(self) -> float:
        return self.get_performance().success_rate

    @property
    def trend(self) -> Trend:
        return self.get_performance().trend

    def record_trial(self, success: bool, response_time_ms: int) -> TrialOutcome:
        with self._lock:
            self._state, change = update_adaptive_state(
                self._state,
                TrialInput(success=success, response_time_ms=response_time_ms),
                self.settings,
            )
            state = self._state
        logger.debug(
            "trial %d: success=%s rt=%sms difficulty=%d",
            state.total_trials, success, response_time_ms,
            state.current_difficulty,
        )

        if change.changed:
            logger.info(
                "difficulty %s to %d: %s",
                change.direction.value, change.new_difficulty, change.message,
            )
            if self._on_difficulty_change is not None:
                self._on_difficulty_change(change.new_difficulty, change.message)

        return TrialOutcome(
            difficulty_changed=change.changed,
            new_difficulty=change.new_difficulty,
            message=change.message,
        )

    def reset(self, initial_difficulty: Optional[int] = None) -> None:
        """Discard all history and start over (used at session boundaries)."""
        difficulty = (
            self._initial_difficulty if initial_difficulty is None
            else self.settings.clamp(initial_difficulty)
        )
        with self._lock:
            self._state = create_adaptive_state(difficulty)

    def set_difficulty(self, difficulty: int) -> None:
        """Manual override; clamped into bounds, bypasses the controller."""
        clamped = self.settings.clamp(difficulty)
        if clamped != difficulty:
            logger.debug("set_difficulty(%s) clamped to %d", difficulty, clamped)
        with self._lock:
            self._state = replace(self._state, current_difficulty=clamped)

    def get_performance(self) -> PerformanceSummary:
        with self._lock:
            state = self._state
        return get_performance_summary(
            state,
            self.settings.window_size,
            self.settings.trend_margin,
            self.settings.trend_noise_floor,
        )
