"""
Baseline vs. candidate comparison using overlapping confidence intervals.

Both measurements come from a stochastic process, so a single-point
comparison would over-claim significance. The comparator only reports a
change when the intervals are disjoint:

    IMPROVED    candidate.lower > baseline.upper
    REGRESSION  candidate.upper < baseline.lower
    STABLE      otherwise (intervals overlap)

Swapping baseline and candidate swaps IMPROVED and REGRESSION and leaves
STABLE unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

from sdlc_eval.statistical.confidence import CONFIDENCE_LEVEL, ConfidenceInterval

if TYPE_CHECKING:
    from sdlc_eval.history import BaselineTable

logger = logging.getLogger(__name__)


class Verdict(str, Enum):
    """Three-way comparison outcome."""
    IMPROVED = "IMPROVED"
    STABLE = "STABLE"
    REGRESSION = "REGRESSION"


@dataclass(frozen=True)
class Baseline:
    """Last accepted "known good" interval for a scenario."""
    scenario_id: str
    mean: float
    margin: float
    sample_size: int

    @property
    def lower(self) -> float:
        return self.mean - self.margin

    @property
    def upper(self) -> float:
        return self.mean + self.margin

    @classmethod
    def from_interval(cls, scenario_id: str, interval: ConfidenceInterval) -> "Baseline":
        return cls(
            scenario_id=scenario_id,
            mean=interval.mean,
            margin=interval.margin,
            sample_size=interval.sample_size,
        )

    def to_interval(self, confidence: float = CONFIDENCE_LEVEL) -> ConfidenceInterval:
        return ConfidenceInterval(
            mean=self.mean,
            margin=self.margin,
            sample_size=self.sample_size,
            degrees_of_freedom=max(self.sample_size - 1, 0),
            confidence_level=confidence,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mean": round(self.mean, 4),
            "margin": round(self.margin, 4),
            "sample_size": self.sample_size,
        }


Interval = Union[ConfidenceInterval, Baseline]


def compare_intervals(baseline: Interval, candidate: Interval) -> Verdict:
    """Classify the candidate against the baseline by interval overlap."""
    if candidate.lower > baseline.upper:
        return Verdict.IMPROVED
    if candidate.upper < baseline.lower:
        return Verdict.REGRESSION
    return Verdict.STABLE


@dataclass(frozen=True)
class ComparisonResult:
    """Verdict for one scenario plus the intervals it was derived from."""
    scenario_id: str
    verdict: Verdict
    candidate: ConfidenceInterval
    baseline: Optional[Baseline] = None
    baseline_updated: bool = False

    @property
    def passed(self) -> bool:
        return self.verdict is not Verdict.REGRESSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario_id": self.scenario_id,
            "verdict": self.verdict.value,
            "candidate": self.candidate.to_dict(),
            "baseline": self.baseline.to_dict() if self.baseline else None,
            "baseline_updated": self.baseline_updated,
        }


def evaluate_against_baseline(
    table: "BaselineTable",
    scenario_id: str,
    candidate: ConfidenceInterval,
    accept: bool = False,
) -> ComparisonResult:
    """
    Compare a candidate interval against the stored baseline for a scenario.

    With no stored baseline the verdict is STABLE and, if `accept` is set,
    the candidate becomes the first baseline. An existing baseline is only
    replaced when `accept` is set and the verdict is not REGRESSION.
    The lookup, comparison and write happen under the table lock, so two
    concurrent accepts cannot both see the same old baseline.
    """
    with table.locked():
        baseline = table.get(scenario_id)
        verdict = Verdict.STABLE if baseline is None else compare_intervals(baseline, candidate)

        updated = False
        if accept and verdict is not Verdict.REGRESSION:
            table.put(Baseline.from_interval(scenario_id, candidate))
            updated = True

    if updated:
        logger.info(
            "Baseline for %s set to mean=%.4f margin=%.4f (n=%d)",
            scenario_id, candidate.mean, candidate.margin, candidate.sample_size,
        )
    elif verdict is Verdict.REGRESSION:
        logger.warning(
            "Regression on %s: candidate [%.4f, %.4f] below baseline [%.4f, %.4f]",
            scenario_id, candidate.lower, candidate.upper, baseline.lower, baseline.upper,
        )

    return ComparisonResult(
        scenario_id=scenario_id,
        verdict=verdict,
        candidate=candidate,
        baseline=baseline,
        baseline_updated=updated,
    )


__all__ = [
    "Verdict",
    "Baseline",
    "compare_intervals",
    "ComparisonResult",
    "evaluate_against_baseline",
]
