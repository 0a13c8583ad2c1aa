"""
Typed rubric model.

Judge payloads are converted into these structures at the validation boundary;
nothing downstream of `sdlc_eval.validation` handles the raw payload shape.

Rubrics (points per criterion):

    criterion       standard  ui
    task_tracking       1      1
    confidence          1      1
    plan_mode           2      2
    tdd_red             2      2
    tdd_green           2      2
    self_review         1      1
    clean_code          1      1
    ui_verification     -      1
    ---------------------------
    total              10     11
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from sdlc_eval.errors import InvalidInputError


# Prompt version: increment when the judge prompt changes materially
EVAL_PROMPT_VERSION = "v2"

PASS_THRESHOLD = 7.0

STANDARD_TOTAL = 10.0
UI_TOTAL = 11.0

STANDARD_CRITERIA: Tuple[Tuple[str, float], ...] = (
    ("task_tracking", 1.0),
    ("confidence", 1.0),
    ("plan_mode", 2.0),
    ("tdd_red", 2.0),
    ("tdd_green", 2.0),
    ("self_review", 1.0),
    ("clean_code", 1.0),
)

UI_CRITERIA: Tuple[Tuple[str, float], ...] = STANDARD_CRITERIA + (
    ("ui_verification", 1.0),
)

RUBRICS: Dict[str, Tuple[Tuple[str, float], ...]] = {
    "standard": STANDARD_CRITERIA,
    "ui": UI_CRITERIA,
}


def rubric_total(rubric: str) -> float:
    """Return the declared total for a named rubric ("standard" or "ui")."""
    if rubric not in RUBRICS:
        raise InvalidInputError(
            "rubric", rubric, f"expected one of {', '.join(sorted(RUBRICS))}"
        )
    return sum(maximum for _, maximum in RUBRICS[rubric])


def validate_trial_score(
    value: Any,
    max_score: Optional[float] = None,
    field_name: str = "score",
) -> float:
    """
    Validate and convert a single TrialScore.

    Args:
        value: Candidate score (int, float or numeric string)
        max_score: Optional upper bound (10 or 11 for the shipped rubrics)
        field_name: Name used in error messages

    Returns:
        The score as float

    Raises:
        InvalidInputError: If the value is non-numeric, non-finite, negative
                           or above max_score
    """
    if isinstance(value, bool):
        raise InvalidInputError(field_name, value, "booleans are not scores")
    try:
        score = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(field_name, value, "not a number") from None
    if math.isnan(score) or math.isinf(score):
        raise InvalidInputError(field_name, value, "must be finite")
    if score < 0:
        raise InvalidInputError(field_name, value, "must be >= 0")
    if max_score is not None and score > max_score:
        raise InvalidInputError(field_name, value, f"must be <= {max_score}")
    return score


@dataclass(frozen=True)
class CriterionResult:
    """
    Points awarded for one rubric criterion.

    Invariant: 0 <= points <= max.
    """
    name: str
    points: float
    max: float
    evidence: str = ""

    def __post_init__(self):
        if self.max < 0:
            raise InvalidInputError(f"{self.name}.max", self.max, "must be >= 0")
        if not (0 <= self.points <= self.max):
            raise InvalidInputError(
                f"{self.name}.points", self.points, f"must be within [0, {self.max}]"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {"points": self.points, "max": self.max, "evidence": self.evidence}


class RubricBreakdown:
    """
    Ordered mapping of criterion name to CriterionResult.

    The breakdown preserves the order criteria were supplied in, which is the
    order the judge reported them.
    """

    def __init__(self, criteria: List[CriterionResult]):
        self._criteria: Dict[str, CriterionResult] = {}
        for criterion in criteria:
            self._criteria[criterion.name] = criterion

    def __getitem__(self, name: str) -> CriterionResult:
        return self._criteria[name]

    def __contains__(self, name: object) -> bool:
        return name in self._criteria

    def __iter__(self) -> Iterator[str]:
        return iter(self._criteria)

    def __len__(self) -> int:
        return len(self._criteria)

    def items(self):
        return self._criteria.items()

    @property
    def total_points(self) -> float:
        return round(sum(c.points for c in self._criteria.values()), 6)

    @property
    def max_total(self) -> float:
        return round(sum(c.max for c in self._criteria.values()), 6)

    def replace(self, criterion: CriterionResult) -> "RubricBreakdown":
        """Return a copy with one criterion swapped in (same position)."""
        updated = [
            criterion if name == criterion.name else existing
            for name, existing in self._criteria.items()
        ]
        return RubricBreakdown(updated)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {name: c.to_dict() for name, c in self._criteria.items()}

    def __repr__(self):
        return f"RubricBreakdown(total={self.total_points}/{self.max_total}, criteria={list(self)})"


@dataclass(frozen=True)
class JudgeAssessment:
    """A validated judge verdict. `score` is always recomputed from the breakdown."""
    breakdown: RubricBreakdown
    summary: str
    improvements: List[str] = field(default_factory=list)
    reported_score: Optional[float] = None
    reported_pass: Optional[bool] = None
    pass_threshold: float = PASS_THRESHOLD

    @property
    def score(self) -> float:
        return self.breakdown.total_points

    @property
    def passed(self) -> bool:
        return self.score >= self.pass_threshold

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "max": self.breakdown.max_total,
            "pass": self.passed,
            "criteria": self.breakdown.to_dict(),
            "summary": self.summary,
            "improvements": list(self.improvements),
            "prompt_version": EVAL_PROMPT_VERSION,
        }


def breakdown_from_mapping(criteria: Mapping[str, Mapping[str, Any]]) -> RubricBreakdown:
    """Build a breakdown from {name: {points, max, evidence}} without further checks."""
    return RubricBreakdown([
        CriterionResult(
            name=name,
            points=float(entry["points"]),
            max=float(entry["max"]),
            evidence=str(entry.get("evidence", "")),
        )
        for name, entry in criteria.items()
    ])


__all__ = [
    "EVAL_PROMPT_VERSION",
    "PASS_THRESHOLD",
    "STANDARD_TOTAL",
    "UI_TOTAL",
    "STANDARD_CRITERIA",
    "UI_CRITERIA",
    "RUBRICS",
    "rubric_total",
    "validate_trial_score",
    "CriterionResult",
    "RubricBreakdown",
    "JudgeAssessment",
    "breakdown_from_mapping",
]
