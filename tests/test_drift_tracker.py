"""
Tests for cumulative deviation drift tracking.
"""

import logging
import threading

import pytest

from sdlc_eval.errors import InvalidInputError
from sdlc_eval.history import ScoreHistory
from sdlc_eval.statistical.drift import (
    DriftLevel,
    DriftState,
    DriftTracker,
    classify_drift,
)


@pytest.mark.parametrize("cumulative,level", [
    (0.0, DriftLevel.NORMAL),
    (1.99, DriftLevel.NORMAL),
    (-1.99, DriftLevel.NORMAL),
    (2.0, DriftLevel.WARNING),
    (-2.5, DriftLevel.WARNING),
    (3.0, DriftLevel.ALERT),
    (-7.0, DriftLevel.ALERT),
])
def test_classify_drift(cumulative, level):
    assert classify_drift(cumulative) is level


def test_empty_history_is_normal(history):
    tracker = DriftTracker(history, "s1")
    assert tracker.status() == {"target": 7.0, "cumulative_sum": 0.0, "state": "NORMAL"}


def test_persistent_shortfall_escalates(history):
    tracker = DriftTracker(history, "s1", target=7.0)

    levels = [tracker.level(tracker.record_observation(6.0)) for _ in range(4)]

    assert levels == [DriftLevel.NORMAL, DriftLevel.WARNING, DriftLevel.ALERT, DriftLevel.ALERT]
    assert tracker.status()["cumulative_sum"] == -4.0


def test_sum_does_not_reset(history):
    tracker = DriftTracker(history, "s1", target=7.0)
    for score in (4.0, 9.0, 7.0):
        state = tracker.record_observation(score)
    # -3 + 2 + 0
    assert state.cumulative_sum == pytest.approx(-1.0)
    assert len(state.history) == 3
    assert tracker.level(state) is DriftLevel.NORMAL


def test_state_matches_history(history):
    tracker = DriftTracker(history, "s1", target=7.0)
    tracker.record_observation(8.0)
    tracker.record_observation(6.5)

    state = tracker.state
    assert state == DriftState.from_entries(7.0, history.entries("s1"))
    assert [score for _, score in state.history] == [8.0, 6.5]


def test_state_survives_new_instances(history_path):
    DriftTracker(ScoreHistory(history_path), "s1").record_observation(4.5)
    status = DriftTracker(ScoreHistory(history_path), "s1").status()
    assert status["cumulative_sum"] == -2.5
    assert status["state"] == "WARNING"


def test_status_does_not_modify_history(history):
    tracker = DriftTracker(history, "s1")
    tracker.record_observation(7.5)
    tracker.status()
    tracker.status()
    assert len(history.entries("s1")) == 1


def test_scenarios_are_independent(history):
    DriftTracker(history, "a").record_observation(3.0)
    assert DriftTracker(history, "b").status()["state"] == "NORMAL"


def test_level_change_is_logged(history, caplog):
    tracker = DriftTracker(history, "s1", target=7.0)
    with caplog.at_level(logging.INFO, logger="sdlc_eval.statistical.drift"):
        tracker.record_observation(4.0)
    assert any("NORMAL -> ALERT" in r.message for r in caplog.records)


def test_invalid_score_rejected(history):
    tracker = DriftTracker(history, "s1")
    with pytest.raises(InvalidInputError):
        tracker.record_observation("seven")
    assert history.entries("s1") == []


def test_invalid_thresholds_rejected(history):
    with pytest.raises(InvalidInputError):
        DriftTracker(history, "s1", warning_threshold=3.0, alert_threshold=2.0)


def test_concurrent_records_are_all_kept(history_path):
    history = ScoreHistory(history_path)
    tracker = DriftTracker(history, "s1", target=7.0)

    threads = [threading.Thread(target=tracker.record_observation, args=(6.0,)) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(history.entries("s1")) == 8
    assert tracker.status()["cumulative_sum"] == -8.0


def test_observation_above_rubric_total_rejected(history):
    tracker = DriftTracker(history, "s1", target=7.0, max_score=10)
    with pytest.raises(InvalidInputError):
        tracker.record_observation(50)
    assert history.entries("s1") == []
    assert tracker.record_observation(10).cumulative_sum == pytest.approx(3.0)
