"""Tests for the adaptive difficulty controller and performance summary."""

from __future__ import annotations

import random

from pecstutor.config.settings import AdaptiveSettings
from pecstutor.engine.adaptive import (
    AdaptiveState,
    Direction,
    Trend,
    Trial,
    TrialInput,
    calculate_avg_response_time,
    calculate_success_rate,
    create_adaptive_state,
    detect_trend,
    get_performance_summary,
    update_adaptive_state,
)


def _trials(outcomes, rt=1000):
    return tuple(
        Trial(success=s, response_time_ms=rt, difficulty=2, timestamp=0.0)
        for s in outcomes
    )


def _state(outcomes, difficulty=2):
    trials = _trials(outcomes)
    return AdaptiveState(current_difficulty=difficulty, trial_history=trials,
                         total_trials=len(trials))


class TestCreateState:
    def test_empty(self):
        state = create_adaptive_state(3)
        assert state.current_difficulty == 3
        assert state.trial_history == ()
        assert state.total_trials == 0

    def test_default_difficulty(self):
        assert create_adaptive_state().current_difficulty == 2


class TestUpdate:
    def test_records_trial_at_current_difficulty(self):
        state = create_adaptive_state(4)
        new_state, change = update_adaptive_state(
            state, TrialInput(success=True, response_time_ms=1500), AdaptiveSettings()
        )
        assert new_state.total_trials == 1
        assert new_state.trial_history[-1].difficulty == 4
        assert new_state.trial_history[-1].response_time_ms == 1500
        assert not change.changed
        assert change.new_difficulty == 4
        assert change.message == ""

    def test_input_state_not_mutated(self):
        state = create_adaptive_state(2)
        update_adaptive_state(state, TrialInput(success=True), AdaptiveSettings())
        assert state.trial_history == ()
        assert state.total_trials == 0

    def test_negative_response_time_clamped(self):
        state, _ = update_adaptive_state(
            create_adaptive_state(), TrialInput(success=False, response_time_ms=-50),
            AdaptiveSettings(),
        )
        assert state.trial_history[0].response_time_ms == 0

    def test_no_change_before_min_trials(self, feed):
        _, changes = feed([True] * 4)
        assert not any(c.changed for c in changes)
        _, changes = feed([False] * 4, initial_difficulty=4)
        assert not any(c.changed for c in changes)

    def test_five_successes_increase_once(self, feed):
        state, changes = feed([True] * 5)
        assert [c.changed for c in changes] == [False] * 4 + [True]
        assert changes[-1].new_difficulty == 3
        assert changes[-1].direction is Direction.INCREASE
        assert "100%" in changes[-1].message
        assert state.current_difficulty == 3

    def test_five_failures_decrease_once(self, feed):
        state, changes = feed([False] * 5, initial_difficulty=4)
        assert sum(c.changed for c in changes) == 1
        assert changes[-1].changed
        assert changes[-1].direction is Direction.DECREASE
        assert changes[-1].message == "Let's make it a bit easier"
        assert state.current_difficulty == 3

    def test_step_is_always_one(self, feed):
        state, changes = feed([True] * 30)
        previous = 2
        for c in changes:
            if c.changed:
                assert abs(c.new_difficulty - previous) == 1
                previous = c.new_difficulty

    def test_never_exceeds_max(self, feed):
        state, changes = feed([True] * 40)
        assert state.current_difficulty == 5
        assert all(c.new_difficulty <= 5 for c in changes)
        # Once saturated, qualifying windows report no change
        assert not changes[-1].changed
        assert changes[-1].new_difficulty == 5

    def test_never_below_min(self, feed):
        state, changes = feed([False] * 40, initial_difficulty=5)
        assert state.current_difficulty == 2
        assert not changes[-1].changed

    def test_stable_band_holds(self, feed):
        # Every window from trial 5 on stays inside (0.65, 0.85)
        outcomes = [True, True, False, True, True, False, True, True, True, False]
        state, changes = feed(outcomes, initial_difficulty=3)
        assert state.current_difficulty == 3
        assert not any(c.changed for c in changes)

    def test_threshold_equality_triggers_increase(self, feed):
        settings = AdaptiveSettings(increase_threshold=0.9, target_success_rate=0.8,
                                    min_trials_before_adjust=10)
        # 9/10 == 0.9 exactly
        state, changes = feed([False] + [True] * 9, settings=settings)
        assert changes[-1].changed
        assert state.current_difficulty == 3

    def test_threshold_equality_triggers_decrease(self, feed):
        settings = AdaptiveSettings(decrease_threshold=0.6, min_trials_before_adjust=5)
        # 3/5 == 0.6 exactly
        state, changes = feed([True, True, True, False, False],
                              settings=settings, initial_difficulty=4)
        assert changes[-1].changed
        assert changes[-1].direction is Direction.DECREASE

    def test_window_ignores_old_trials(self, feed):
        settings = AdaptiveSettings(window_size=5, min_trials_before_adjust=5,
                                    max_array_size=3)
        # Reach max with successes, then failures push the window down
        state, _ = feed([True] * 5, settings=settings)
        assert state.current_difficulty == 3
        state, changes = feed([False] * 5, settings=settings, state=state)
        assert state.current_difficulty == 2
        assert state.total_trials == 10

    def test_history_truncated_but_total_counts(self, feed):
        settings = AdaptiveSettings(window_size=5, history_multiplier=2)
        state, _ = feed([True, False] * 20, settings=settings)
        assert len(state.trial_history) == 10
        assert state.total_trials == 40

    def test_bounds_hold_for_random_sequences(self, feed):
        rng = random.Random(1234)
        settings = AdaptiveSettings(min_array_size=1, max_array_size=6, current_array_size=3)
        for _ in range(20):
            outcomes = [rng.random() < rng.random() for _ in range(60)]
            state, changes = feed(outcomes, settings=settings, initial_difficulty=3)
            assert all(1 <= c.new_difficulty <= 6 for c in changes)
            assert 1 <= state.current_difficulty <= 6


class TestRates:
    def test_success_rate_empty(self):
        assert calculate_success_rate(()) == 0

    def test_success_rate_windowed(self):
        trials = _trials([False] * 10 + [True] * 5)
        assert calculate_success_rate(trials, window_size=5) == 1.0
        assert calculate_success_rate(trials, window_size=10) == 0.5

    def test_success_rate_fewer_than_window(self):
        assert calculate_success_rate(_trials([True, False, True, True])) == 0.75

    def test_avg_response_time(self):
        trials = _trials([True]) + _trials([False], rt=3000)
        assert calculate_avg_response_time(trials) == 2000
        assert calculate_avg_response_time(()) == 0


class TestTrend:
    def test_improving(self):
        assert detect_trend(_trials([False] * 5 + [True] * 5)) is Trend.IMPROVING

    def test_declining(self):
        assert detect_trend(_trials([True] * 5 + [False] * 5)) is Trend.DECLINING

    def test_alternating_is_stable(self):
        assert detect_trend(_trials([True, False] * 5)) is Trend.STABLE
        assert detect_trend(_trials([False, True] * 5)) is Trend.STABLE

    def test_single_trial_is_stable(self):
        assert detect_trend(_trials([True])) is Trend.STABLE
        assert detect_trend(()) is Trend.STABLE

    def test_odd_window_extra_goes_to_older_half(self):
        # older = F F F (0.0), newer = T T (1.0)
        assert detect_trend(_trials([False, False, False, True, True])) is Trend.IMPROVING

    def test_margin_is_configurable(self):
        # older 2/10, newer 6/10: difference 0.4
        outcomes = [True, True] + [False] * 8 + [True] * 6 + [False] * 4
        assert detect_trend(_trials(outcomes), margin=0.1) is Trend.IMPROVING
        assert detect_trend(_trials(outcomes), margin=0.5) is Trend.STABLE

    def test_even_halves_use_margin_alone(self):
        # older 5/10, newer 6/10: difference equals the margin
        outcomes = [True] * 5 + [False] * 5 + [True] * 6 + [False] * 4
        assert detect_trend(_trials(outcomes), margin=0.1) is Trend.IMPROVING

    def test_single_flip_in_odd_halves_is_stable(self):
        # older 3/5, newer 4/5
        outcomes = [True, True, True, False, False, True, True, True, True, False]
        assert detect_trend(_trials(outcomes), margin=0.05) is Trend.STABLE
        assert (detect_trend(_trials(outcomes), margin=0.05, noise_floor=False)
                is Trend.IMPROVING)

    def test_alternating_without_noise_floor(self):
        assert (detect_trend(_trials([True, False] * 5), noise_floor=False)
                is Trend.DECLINING)
        assert (detect_trend(_trials([False, True] * 5), noise_floor=False)
                is Trend.IMPROVING)


class TestPerformanceSummary:
    def test_empty_state(self):
        summary = get_performance_summary(create_adaptive_state())
        assert summary.success_rate == 0
        assert summary.trend is Trend.STABLE
        assert summary.total_trials == 0

    def test_uses_window(self):
        state = _state([False] * 10 + [True] * 10, difficulty=3)
        summary = get_performance_summary(state, window_size=10)
        assert summary.success_rate == 1.0
        assert summary.trend is Trend.STABLE
        assert summary.current_difficulty == 3
        assert summary.total_trials == 20

    def test_trend_from_state(self):
        assert get_performance_summary(_state([False] * 5 + [True] * 5)).trend is Trend.IMPROVING
        assert get_performance_summary(_state([True] * 5 + [False] * 5)).trend is Trend.DECLINING

    def test_idempotent(self):
        state = _state([True, False, True, True, False, True])
        assert get_performance_summary(state) == get_performance_summary(state)
        assert state.total_trials == 6
