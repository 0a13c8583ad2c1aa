"""
Judge payload validation.

Validates LLM judge output before any score is trusted:
  - Missing required fields (schema validation)
  - Out-of-range points (bounds checking)
  - Wrong rubric total (sum validation)
  - Clamping as the only sanctioned recovery for out-of-range values

Expected payload shape:

    {
      "score": 8.5,                     # optional, recomputed from criteria
      "criteria": {
        "task_tracking": {"points": 1, "max": 1, "evidence": "..."},
        ...
      },
      "summary": "...",
      "pass": true,                     # optional, recomputed from score
      "improvements": ["..."]
    }
"""

from __future__ import annotations

import copy
import logging
import math
from numbers import Real
from typing import Any, Dict, List, Mapping, Tuple

from jsonschema import Draft7Validator, ValidationError

from sdlc_eval.errors import BoundsError, SchemaError, TotalError
from sdlc_eval.rubric import (
    PASS_THRESHOLD,
    JudgeAssessment,
    RubricBreakdown,
    breakdown_from_mapping,
)

logger = logging.getLogger(__name__)

REQUIRED_CRITERION_FIELDS = ("points", "max", "evidence")

# Tolerance for comparing float sums of max values
TOTAL_TOLERANCE = 1e-9

# Draft 7 schema for the judge verdict. Bounds (0 <= points <= max) and the
# rubric total are checked separately so they raise their own errors.
JUDGE_PAYLOAD_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["criteria", "summary", "improvements"],
    "properties": {
        "criteria": {
            "type": "object",
            "minProperties": 1,
            "additionalProperties": {
                "type": "object",
                "required": list(REQUIRED_CRITERION_FIELDS),
                "properties": {
                    "points": {"type": "number"},
                    "max": {"type": "number", "minimum": 0},
                },
            },
        },
        "summary": {"type": "string"},
        "improvements": {"type": "array"},
    },
}

_VALIDATOR = Draft7Validator(JUDGE_PAYLOAD_SCHEMA)


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _error_fields(error: ValidationError) -> List[str]:
    """Name the payload fields (criterion names under .criteria) a schema error belongs to."""
    path = list(error.path)
    if len(path) >= 2 and path[0] == "criteria":
        return [str(path[1])]
    if path:
        return [str(path[0])]
    if error.validator == "required" and isinstance(error.instance, dict):
        missing = [key for key in error.validator_value if key not in error.instance]
        if missing:
            return missing
    return ["<root>"]


def validate_schema(payload: Any) -> None:
    """
    Validate that a judge payload has the required structure.

    Required: .criteria (non-empty object), .summary (string),
    .improvements (array). Each criterion must carry points, max and evidence,
    with numeric points, a numeric max >= 0, and both finite.

    Raises:
        SchemaError: naming every missing field or malformed criterion
    """
    errors = sorted(_VALIDATOR.iter_errors(payload), key=lambda e: [str(p) for p in e.path])

    fields: List[str] = []
    messages: List[str] = []
    for error in errors:
        names = _error_fields(error)
        fields.extend(name for name in names if name not in fields)
        messages.append(f"{names[0]}: {error.message}")

    if not errors:
        # JSON allows NaN and Infinity, which pass every numeric schema keyword
        for name, entry in payload["criteria"].items():
            if not all(math.isfinite(entry[key]) for key in ("points", "max")):
                fields.append(str(name))
                messages.append(f"{name}: points and max must be finite")

    if fields:
        raise SchemaError(
            f"Invalid judge payload ({', '.join(fields)}): {'; '.join(messages)}",
            fields=fields,
        )


def _violations(payload: Mapping[str, Any]) -> List[Tuple[str, float, float]]:
    found = []
    for name, entry in payload["criteria"].items():
        points = entry["points"]
        maximum = entry["max"]
        if points < 0 or points > maximum:
            found.append((str(name), points, maximum))
    return found


def validate_bounds(payload: Mapping[str, Any]) -> None:
    """
    Validate that every criterion satisfies 0 <= points <= max.

    Assumes validate_schema has passed.

    Raises:
        BoundsError: listing every out-of-range criterion
    """
    violations = _violations(payload)
    if violations:
        raise BoundsError(violations)


def validate_total(payload: Mapping[str, Any], expected_total: float) -> None:
    """
    Validate that the sum of all max values equals the expected total.

    Args:
        payload: Payload with a .criteria mapping
        expected_total: 10 for the standard rubric, 11 for UI scenarios

    Raises:
        TotalError: If the sums differ
    """
    actual = sum(entry["max"] for entry in payload["criteria"].values())
    if not math.isclose(actual, expected_total, abs_tol=TOTAL_TOLERANCE):
        raise TotalError(actual=actual, expected=expected_total)


def clamp_bounds(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of the payload with every points value clamped into [0, max].

    Logs one warning per clamped criterion. The input is never modified and
    clamping an already clamped payload changes nothing.
    """
    clamped = copy.deepcopy(dict(payload))
    criteria = dict(clamped["criteria"])
    for name, entry in criteria.items():
        points = entry["points"]
        maximum = entry["max"]
        if points < 0:
            new_points = 0
        elif points > maximum:
            new_points = maximum
        else:
            continue
        logger.warning(
            "Clamping out-of-range criterion %s: %s -> %s (range [0, %s])",
            name, points, new_points, maximum,
        )
        entry = dict(entry)
        entry["points"] = new_points
        criteria[name] = entry
    clamped["criteria"] = criteria
    return clamped


def to_breakdown(payload: Mapping[str, Any]) -> RubricBreakdown:
    """Convert a validated payload's criteria into a RubricBreakdown."""
    return breakdown_from_mapping(payload["criteria"])


def parse_judge_payload(
    payload: Any,
    expected_total: float,
    strict: bool = True,
    pass_threshold: float = PASS_THRESHOLD,
) -> JudgeAssessment:
    """
    Validate a judge payload and convert it into a JudgeAssessment.

    Args:
        payload: Raw judge output (already JSON-decoded)
        expected_total: Declared rubric total
        strict: If True, out-of-range points raise BoundsError; otherwise they
                are clamped with a warning
        pass_threshold: Score at or above which the assessment passes

    Raises:
        SchemaError, BoundsError, TotalError
    """
    validate_schema(payload)
    if strict:
        validate_bounds(payload)
    else:
        payload = clamp_bounds(payload)
    validate_total(payload, expected_total)

    breakdown = to_breakdown(payload)

    reported_score = payload.get("score")
    if reported_score is not None and _is_number(reported_score):
        if not math.isclose(float(reported_score), breakdown.total_points, abs_tol=0.01):
            logger.warning(
                "Judge reported score %s but criteria sum to %s; using criteria sum",
                reported_score, breakdown.total_points,
            )
    else:
        reported_score = None

    reported_pass = payload.get("pass")
    if not isinstance(reported_pass, bool):
        reported_pass = None

    return JudgeAssessment(
        breakdown=breakdown,
        summary=payload["summary"],
        improvements=[str(item) for item in payload["improvements"]],
        reported_score=float(reported_score) if reported_score is not None else None,
        reported_pass=reported_pass,
        pass_threshold=pass_threshold,
    )


__all__ = [
    "REQUIRED_CRITERION_FIELDS",
    "validate_schema",
    "validate_bounds",
    "validate_total",
    "clamp_bounds",
    "to_breakdown",
    "parse_judge_payload",
]
