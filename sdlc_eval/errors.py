"""
Error taxonomy for the SDLC evaluation engine.

Every validation failure is raised to the caller with enough structured detail
to name the offending field or criterion. None of these errors is ever turned
into a default score.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence, Tuple


class EvaluationError(Exception):
    """Base exception for all evaluation engine failures."""
    pass


class SchemaError(EvaluationError):
    """Raised when a judge payload is structurally malformed."""

    def __init__(self, message: str, fields: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.fields: List[str] = list(fields or [])


class BoundsError(EvaluationError):
    """
    Raised when one or more criteria report points outside [0, max].

    Attributes:
        violations: (criterion, points, max) for every out-of-range criterion.
    """

    def __init__(self, violations: Sequence[Tuple[str, float, float]]):
        self.violations: List[Tuple[str, float, float]] = list(violations)
        details = "; ".join(
            f"{name}: points={points} max={maximum}"
            for name, points, maximum in self.violations
        )
        super().__init__(f"Out-of-range criteria: {details}")


class TotalError(EvaluationError):
    """Raised when the rubric's summed max differs from the declared total."""

    def __init__(self, actual: float, expected: float):
        self.actual = actual
        self.expected = expected
        super().__init__(f"Sum of max is {actual}, expected {expected}")


class InsufficientSampleError(EvaluationError):
    """Raised when too few trials were supplied to estimate an interval."""

    def __init__(self, sample_size: int, minimum: int = 2):
        self.sample_size = sample_size
        self.minimum = minimum
        super().__init__(
            f"Need at least {minimum} trial scores to estimate an interval, "
            f"got {sample_size}"
        )


class InvalidInputError(EvaluationError):
    """Raised for non-numeric scores, bad ratios or unknown interpretation buckets."""

    def __init__(self, field: str, value: Any, reason: str = ""):
        self.field = field
        self.value = value
        message = f"Invalid {field}: {value!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class ConfigError(EvaluationError):
    """Raised when the evaluation configuration cannot be loaded."""
    pass


class HistoryError(EvaluationError):
    """Raised when a persisted history or baseline file is unreadable."""
    pass


__all__ = [
    "EvaluationError",
    "SchemaError",
    "BoundsError",
    "TotalError",
    "InsufficientSampleError",
    "InvalidInputError",
    "ConfigError",
    "HistoryError",
]
