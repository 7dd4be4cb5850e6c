"""Shared fixtures for PECS Tutor tests."""

from __future__ import annotations

import pytest

from pecstutor.config.settings import AdaptiveSettings, Settings
from pecstutor.engine.adaptive import TrialInput, create_adaptive_state, update_adaptive_state
from pecstutor.state.activity import ActivityStore


@pytest.fixture
def settings():
    """Defaults: cards 2-5, window 10, thresholds 0.65 / 0.80 / 0.85, 5 trials."""
    return AdaptiveSettings()


@pytest.fixture
def app_settings(tmp_path):
    return Settings(data_dir=tmp_path / "data")


@pytest.fixture
def store(tmp_path):
    return ActivityStore(db_path=tmp_path / "data" / "activity.db")


@pytest.fixture
def feed():
    """Run a sequence of outcomes through the pure engine.

    Returns (final_state, list_of_changes).
    """
    def _feed(outcomes, settings=None, initial_difficulty=2, state=None):
        settings = settings or AdaptiveSettings()
        state = state or create_adaptive_state(initial_difficulty)
        changes = []
        for success in outcomes:
            state, change = update_adaptive_state(
                state, TrialInput(success=success, response_time_ms=1000), settings
            )
            changes.append(change)
        return state, changes

    return _feed
