"""
Statistical methods for SDLC compliance scores.

  - Student-t confidence intervals over repeated trials
  - Overlapping-interval regression verdicts against a stored baseline
  - Cumulative deviation drift tracking over the persisted score history

All functions are deterministic.
"""

from sdlc_eval.statistical.confidence import (
    CONFIDENCE_LEVEL,
    MIN_SAMPLE_SIZE,
    ConfidenceInterval,
    compute_confidence_interval,
    t_critical,
)
from sdlc_eval.statistical.regression import (
    Baseline,
    ComparisonResult,
    Verdict,
    compare_intervals,
    evaluate_against_baseline,
)
from sdlc_eval.statistical.drift import (
    DriftLevel,
    DriftState,
    DriftTracker,
    classify_drift,
)

__all__ = [
    # Confidence intervals
    "CONFIDENCE_LEVEL",
    "MIN_SAMPLE_SIZE",
    "ConfidenceInterval",
    "compute_confidence_interval",
    "t_critical",
    # Regression comparison
    "Baseline",
    "ComparisonResult",
    "Verdict",
    "compare_intervals",
    "evaluate_against_baseline",
    # Drift
    "DriftLevel",
    "DriftState",
    "DriftTracker",
    "classify_drift",
]
