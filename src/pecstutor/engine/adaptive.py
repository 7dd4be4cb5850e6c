"""Adaptive difficulty engine.

Keeps the learner inside the target success band by nudging the number of
picture cards presented up or down one step at a time:

- Increase difficulty when the windowed success rate reaches the increase
  threshold (default 85%).
- Decrease difficulty when it falls to the decrease threshold (default 65%).
- Hold steady in between (hysteresis band) and at the configured bounds.

All functions here are pure: they take a state and return a new one.
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Sequence

from pecstutor.config.settings import AdaptiveSettings

DEFAULT_SETTINGS = AdaptiveSettings()

# Float slack for threshold and margin comparisons (0.6 - 0.5 != 0.1).
_EPSILON = 1e-9


class Trend(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class Direction(str, Enum):
    INCREASE = "increase"
    DECREASE = "decrease"
    NONE = "none"


@dataclass(frozen=True)
class Trial:
    success: bool
    response_time_ms: int
    difficulty: int  # difficulty in effect when the trial happened
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class TrialInput:
    """A reported outcome, before the engine stamps it with a difficulty."""
    success: bool
    response_time_ms: int = 0


@dataclass(frozen=True)
class AdaptiveState:
    current_difficulty: int
    trial_history: tuple[Trial, ...] = ()
    total_trials: int = 0


@dataclass(frozen=True)
class DifficultyChange:
    changed: bool
    new_difficulty: int
    message: str = ""
    direction: Direction = Direction.NONE


@dataclass(frozen=True)
class PerformanceSummary:
    success_rate: float
    trend: Trend
    avg_response_time_ms: float = 0.0
    current_difficulty: int = 0
    total_trials: int = 0


def recent_window(trials: Iterable[Trial], window_size: int = 10) -> deque[Trial]:
    """Most recent ``window_size`` trials, oldest first."""
    return deque(trials, maxlen=max(1, window_size))


def _rate(trials: Sequence[Trial]) -> float:
    if not trials:
        return 0.0
    return sum(1 for t in trials if t.success) / len(trials)


def calculate_success_rate(trials: Iterable[Trial], window_size: int = 10) -> float:
    """Success rate over the last ``window_size`` trials (0 when empty)."""
    return _rate(recent_window(trials, window_size))


def calculate_avg_response_time(trials: Iterable[Trial], window_size: int = 10) -> float:
    window = recent_window(trials, window_size)
    if not window:
        return 0.0
    return sum(t.response_time_ms for t in window) / len(window)


def detect_trend(
    window: Sequence[Trial],
    margin: float = 0.1,
    noise_floor: bool = True,
) -> Trend:
    """Compare the older and newer halves of a window.

    The older half takes the extra trial when the window is odd. With
    ``noise_floor`` on, and a half of odd length, a difference no larger than
    one trial's share of the smaller half is noise; an alternating pattern over
    odd halves then reads as stable. Even halves only use ``margin``.
    """
    trials = list(window)
    if len(trials) < 2:
        return Trend.STABLE

    split = (len(trials) + 1) // 2
    older, newer = trials[:split], trials[split:]
    diff = _rate(newer) - _rate(older)

    if abs(diff) + _EPSILON < margin:
        return Trend.STABLE
    if noise_floor and (len(older) % 2 or len(newer) % 2):
        if abs(diff) <= 1.0 / min(len(older), len(newer)) + _EPSILON:
            return Trend.STABLE
    return Trend.IMPROVING if diff > 0 else Trend.DECLINING


def create_adaptive_state(initial_difficulty: int = 2) -> AdaptiveState:
    """Fresh state with empty history. Callers clamp the difficulty."""
    return AdaptiveState(current_difficulty=initial_difficulty)


def decide_adjustment(
    state: AdaptiveState,
    settings: AdaptiveSettings = DEFAULT_SETTINGS,
) -> tuple[Direction, str]:
    """Decide whether the current window warrants a difficulty step."""
    window = recent_window(state.trial_history, settings.window_size)
    if len(window) < settings.min_trials_before_adjust:
        return Direction.NONE, "Not enough trials yet"

    success_rate = _rate(window)
    current = state.current_difficulty

    if (success_rate + _EPSILON >= settings.increase_threshold
            and current < settings.max_array_size):
        return Direction.INCREASE, f"Great job! Success rate is {round(success_rate * 100)}%"

    if (success_rate - _EPSILON <= settings.decrease_threshold
            and current > settings.min_array_size):
        return Direction.DECREASE, "Let's make it a bit easier"

    return Direction.NONE, "Difficulty is appropriate"


def update_adaptive_state(
    state: AdaptiveState,
    trial_input: TrialInput,
    settings: AdaptiveSettings = DEFAULT_SETTINGS,
) -> tuple[AdaptiveState, DifficultyChange]:
    """Record one trial and apply at most one ±1 difficulty step.

    Returns the replacement state and the decision. The input state is never
    mutated.
    """
    trial = Trial(
        success=bool(trial_input.success),
        response_time_ms=max(0, int(trial_input.response_time_ms)),
        difficulty=state.current_difficulty,
    )
    history = (*state.trial_history, trial)[-settings.history_limit:]
    new_state = replace(
        state,
        trial_history=history,
        total_trials=state.total_trials + 1,
    )

    direction, reason = decide_adjustment(new_state, settings)
    if direction is Direction.NONE:
        return new_state, DifficultyChange(
            changed=False,
            new_difficulty=state.current_difficulty,
        )

    step = 1 if direction is Direction.INCREASE else -1
    new_difficulty = state.current_difficulty + step
    return replace(new_state, current_difficulty=new_difficulty), DifficultyChange(
        changed=True,
        new_difficulty=new_difficulty,
        message=reason,
        direction=direction,
    )


def get_performance_summary(
    state: AdaptiveState,
    window_size: int = 10,
    margin: float = 0.1,
    noise_floor: bool = True,
) -> PerformanceSummary:
    window = recent_window(state.trial_history, window_size)
    return PerformanceSummary(
        success_rate=_rate(window),
        trend=detect_trend(window, margin, noise_floor),
        avg_response_time_ms=calculate_avg_response_time(window, window_size),
        current_difficulty=state.current_difficulty,
        total_trials=state.total_trials,
    )
