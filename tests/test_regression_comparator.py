"""
Tests for overlapping-interval regression verdicts and the baseline table.
"""

import logging
import threading
from contextlib import contextmanager

import pytest

from sdlc_eval.history import BaselineTable
from sdlc_eval.statistical.confidence import ConfidenceInterval, compute_confidence_interval
from sdlc_eval.statistical.regression import (
    Baseline,
    Verdict,
    compare_intervals,
    evaluate_against_baseline,
)


def _ci(mean, margin, n=5):
    return ConfidenceInterval(mean=mean, margin=margin, sample_size=n, degrees_of_freedom=n - 1)


def test_disjoint_above_is_improved():
    assert compare_intervals(_ci(6.0, 0.5), _ci(8.0, 0.5)) is Verdict.IMPROVED


def test_disjoint_below_is_regression():
    assert compare_intervals(_ci(8.0, 0.5), _ci(6.0, 0.5)) is Verdict.REGRESSION


def test_overlap_is_stable():
    assert compare_intervals(_ci(7.0, 0.5), _ci(7.4, 0.5)) is Verdict.STABLE


def test_touching_intervals_are_stable():
    # candidate.lower == baseline.upper is overlap, not improvement
    assert compare_intervals(_ci(6.0, 0.5), _ci(7.0, 0.5)) is Verdict.STABLE


@pytest.mark.parametrize("a,b", [
    (_ci(6.0, 0.5), _ci(8.0, 0.5)),
    (_ci(7.0, 1.0), _ci(7.5, 0.2)),
    (_ci(9.0, 0.1), _ci(3.0, 2.0)),
])
def test_swap_is_anti_symmetric(a, b):
    swapped = {
        Verdict.IMPROVED: Verdict.REGRESSION,
        Verdict.REGRESSION: Verdict.IMPROVED,
        Verdict.STABLE: Verdict.STABLE,
    }
    assert compare_intervals(b, a) is swapped[compare_intervals(a, b)]


def test_baseline_round_trips_through_interval():
    ci = compute_confidence_interval([7.0, 7.5, 8.0, 7.5])
    baseline = Baseline.from_interval("add-validation", ci)
    assert baseline.lower == pytest.approx(ci.lower)
    assert baseline.upper == pytest.approx(ci.upper)
    assert baseline.to_interval().margin == ci.margin


class TestEvaluateAgainstBaseline:

    def test_missing_baseline_is_stable(self, baselines):
        result = evaluate_against_baseline(baselines, "s1", _ci(7.0, 0.3))
        assert result.verdict is Verdict.STABLE
        assert result.baseline is None
        assert result.baseline_updated is False
        assert baselines.get("s1") is None

    def test_first_accept_sets_baseline(self, baselines):
        result = evaluate_against_baseline(baselines, "s1", _ci(7.0, 0.3), accept=True)
        assert result.baseline_updated is True
        stored = baselines.get("s1")
        assert stored.mean == 7.0
        assert stored.margin == 0.3
        assert stored.sample_size == 5

    def test_regression_never_replaces_baseline(self, baselines, caplog):
        baselines.put(Baseline("s1", mean=8.0, margin=0.2, sample_size=5))

        with caplog.at_level(logging.WARNING, logger="sdlc_eval.statistical.regression"):
            result = evaluate_against_baseline(baselines, "s1", _ci(6.0, 0.2), accept=True)

        assert result.verdict is Verdict.REGRESSION
        assert result.passed is False
        assert result.baseline_updated is False
        assert baselines.get("s1").mean == 8.0
        assert any("Regression on s1" in r.message for r in caplog.records)

    def test_improvement_with_accept_updates_baseline(self, baselines):
        baselines.put(Baseline("s1", mean=6.0, margin=0.2, sample_size=5))
        result = evaluate_against_baseline(baselines, "s1", _ci(8.0, 0.2), accept=True)
        assert result.verdict is Verdict.IMPROVED
        assert baselines.get("s1").mean == 8.0

    def test_without_accept_baseline_untouched(self, baselines):
        baselines.put(Baseline("s1", mean=6.0, margin=0.2, sample_size=5))
        evaluate_against_baseline(baselines, "s1", _ci(8.0, 0.2))
        assert baselines.get("s1").mean == 6.0

    def test_to_dict(self, baselines):
        baselines.put(Baseline("s1", mean=7.0, margin=0.5, sample_size=5))
        d = evaluate_against_baseline(baselines, "s1", _ci(7.2, 0.4)).to_dict()
        assert d["verdict"] == "STABLE"
        assert d["baseline"] == {"mean": 7.0, "margin": 0.5, "sample_size": 5}
        assert d["candidate"]["mean"] == 7.2


class _LockDepthTable(BaselineTable):
    """Records how deep the table lock is held at each get and put."""

    def __init__(self, path):
        super().__init__(path)
        self.depth = 0
        self.seen = []

    @contextmanager
    def locked(self):
        with super().locked():
            self.depth += 1
            try:
                yield
            finally:
                self.depth -= 1

    def get(self, scenario_id):
        self.seen.append(("get", self.depth))
        return super().get(scenario_id)

    def put(self, baseline):
        self.seen.append(("put", self.depth))
        super().put(baseline)


def test_lookup_and_write_share_one_lock_hold(tmp_path):
    table = _LockDepthTable(tmp_path / "baselines.json")
    evaluate_against_baseline(table, "s1", _ci(7.0, 0.3), accept=True)
    assert table.seen == [("get", 1), ("put", 1)]


def test_concurrent_accepts_keep_the_better_baseline(tmp_path):
    table = BaselineTable(tmp_path / "baselines.json")
    start = threading.Barrier(2)
    results = {}

    def run(name, candidate):
        start.wait()
        results[name] = evaluate_against_baseline(table, "s1", candidate, accept=True)

    threads = [
        threading.Thread(target=run, args=("high", _ci(8.0, 0.2))),
        threading.Thread(target=run, args=("low", _ci(5.0, 0.2))),
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    # Whichever runs second sees the first one's baseline.
    assert table.get("s1").mean == 8.0
    assert Verdict.STABLE in {r.verdict for r in results.values()}
    assert sum(r.baseline_updated for r in results.values()) in (1, 2)
