"""
Student-t confidence intervals for repeated trial scores.

A single evaluation run is a draw from a stochastic process (agent and judge
both sample), so a CI gate reports the mean of several trials together with
the uncertainty of that mean:

    mean   = Σx / n
    s      = sqrt(Σ(x - mean)² / (n - 1))        # Bessel-corrected
    df     = n - 1
    t      = t_{df}^{-1}(1 - α/2)                 # two-sided critical value
    margin = t · s / sqrt(n)
    CI     = [mean - margin, mean + margin]

For fixed variance the interval narrows as n grows: both t and s/sqrt(n)
decrease.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np
from scipy import stats

from sdlc_eval.errors import InsufficientSampleError, InvalidInputError
from sdlc_eval.rubric import validate_trial_score


MIN_SAMPLE_SIZE = 2
CONFIDENCE_LEVEL = 0.95  # 95% CI

NumericSeries = Sequence[Union[int, float]]


@dataclass(frozen=True)
class ConfidenceInterval:
    """
    Point estimate and symmetric interval for the mean trial score.

    Invariants: lower = mean - margin, upper = mean + margin, margin >= 0.
    """
    mean: float
    margin: float
    sample_size: int
    degrees_of_freedom: int
    confidence_level: float = CONFIDENCE_LEVEL

    @property
    def lower(self) -> float:
        return self.mean - self.margin

    @property
    def upper(self) -> float:
        return self.mean + self.margin

    @property
    def width(self) -> float:
        return 2 * self.margin

    def contains(self, value: float) -> bool:
        return self.lower <= value <= self.upper

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "mean": round(self.mean, 4),
            "margin": round(self.margin, 4),
            "lower": round(self.lower, 4),
            "upper": round(self.upper, 4),
            "sample_size": self.sample_size,
            "degrees_of_freedom": self.degrees_of_freedom,
            "confidence_level": self.confidence_level,
        }


def t_critical(degrees_of_freedom: int, confidence: float = CONFIDENCE_LEVEL) -> float:
    """
    Two-sided critical value of Student's t-distribution.

    Examples:
        >>> round(t_critical(4), 3)
        2.776
    """
    if degrees_of_freedom < 1:
        raise InvalidInputError("degrees_of_freedom", degrees_of_freedom, "must be >= 1")
    return float(stats.t.ppf(1 - (1 - confidence) / 2, degrees_of_freedom))


def compute_confidence_interval(
    scores: NumericSeries,
    confidence: float = CONFIDENCE_LEVEL,
    max_score: Optional[float] = None,
) -> ConfidenceInterval:
    """
    Estimate the mean trial score with a Student-t confidence interval.

    Args:
        scores: Trial scores from repeated runs (order is irrelevant)
        confidence: Confidence level in (0, 1), default 0.95
        max_score: Rubric total; scores above it are rejected when given

    Returns:
        ConfidenceInterval

    Raises:
        InsufficientSampleError: If fewer than 2 scores are given
        InvalidInputError: If a score is non-numeric, non-finite, negative
                           or above max_score, or confidence is outside (0, 1)

    Examples:
        >>> ci = compute_confidence_interval([5.1, 5.3, 5.0, 5.2, 5.4])
        >>> round(ci.mean, 2), round(ci.margin, 2)
        (5.2, 0.2)
    """
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)) \
            or not (0 < confidence < 1):
        raise InvalidInputError("confidence", confidence, "must be in (0, 1)")

    values = np.asarray(
        [validate_trial_score(s, max_score=max_score, field_name=f"scores[{i}]") for i, s in enumerate(scores)],
        dtype=np.float64,
    )
    n = int(values.size)
    if n < MIN_SAMPLE_SIZE:
        raise InsufficientSampleError(sample_size=n, minimum=MIN_SAMPLE_SIZE)

    mean = float(np.mean(values))
    std = float(np.std(values, ddof=1))
    df = n - 1
    margin = t_critical(df, confidence) * (std / math.sqrt(n))

    return ConfidenceInterval(
        mean=mean,
        margin=max(0.0, margin),
        sample_size=n,
        degrees_of_freedom=df,
        confidence_level=confidence,
    )


__all__ = [
    "MIN_SAMPLE_SIZE",
    "CONFIDENCE_LEVEL",
    "ConfidenceInterval",
    "t_critical",
    "compute_confidence_interval",
]
