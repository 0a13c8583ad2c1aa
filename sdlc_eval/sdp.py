"""
SDP: SDLC Degradation-adjusted Performance.

Separates "did our process degrade" from "did the underlying model's general
capability shift". The caller supplies an external change ratio r, the
fractional change of an independent capability signal for the model under
test relative to a recorded baseline reading of that same signal.

    adjustment    = raw · r
    sdp_unclamped = raw - adjustment
    sdp           = clamp(sdp_unclamped, raw · (1 - cap), raw · (1 + cap))   # cap = 0.2
    delta         = sdp - raw
    robustness    = raw - raw · r                                           # before clamping

The cap keeps the external signal from dominating the metric.

The linear weighting and the interpretation buckets are a policy, not a law:
both are inferred from partial evidence and are pluggable through
`SdpPolicy`, `adjustment_fn` and `interpret_fn`.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from sdlc_eval.errors import InvalidInputError
from sdlc_eval.rubric import validate_trial_score

logger = logging.getLogger(__name__)

DEFAULT_CAP = 0.2
DEFAULT_STABLE_BAND = 0.05


class Interpretation(str, Enum):
    """Advisory reading of an SDP record. Not used in the numeric cap."""
    MODEL_DEGRADED = "MODEL_DEGRADED"
    MODEL_IMPROVED = "MODEL_IMPROVED"
    STABLE = "STABLE"
    SDLC_ROBUST = "SDLC_ROBUST"
    SDLC_ISSUE = "SDLC_ISSUE"

    @classmethod
    def parse(cls, value: Any) -> "Interpretation":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError:
            raise InvalidInputError(
                "interpretation", value,
                f"expected one of {', '.join(m.value for m in cls)}",
            ) from None


@dataclass(frozen=True)
class SdpPolicy:
    """
    Tunable SDP parameters.

    Attributes:
        cap: Maximum fractional move of sdp away from raw (default 0.2)
        stable_band: |change| below this counts as "no material change",
                     both for the external ratio and for raw vs. reference
    """
    cap: float = DEFAULT_CAP
    stable_band: float = DEFAULT_STABLE_BAND

    def validate(self) -> None:
        if not (0 <= self.cap < 1):
            raise InvalidInputError("sdp.cap", self.cap, "must be in [0, 1)")
        if not (0 <= self.stable_band < 1):
            raise InvalidInputError("sdp.stable_band", self.stable_band, "must be in [0, 1)")


@dataclass(frozen=True)
class DegradationRecord:
    """Result of one SDP computation."""
    raw_score: float
    external_change_ratio: float
    sdp_score: float
    delta: float
    robustness: float
    interpretation: Interpretation
    external_score: Optional[float] = None
    external_baseline: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "raw": round(self.raw_score, 4),
            "sdp": round(self.sdp_score, 4),
            "delta": round(self.delta, 4),
            "external": self.external_score,
            "external_baseline": self.external_baseline,
            "external_change": round(self.external_change_ratio, 4),
            "robustness": round(self.robustness, 4),
            "interpretation": self.interpretation.value,
        }


AdjustmentFn = Callable[[float, float], float]
InterpretFn = Callable[[float, float, float, Optional[float], SdpPolicy], Any]


def linear_adjustment(raw_score: float, change_ratio: float) -> float:
    """Default weighting: the score moves one-for-one with the external signal."""
    return raw_score * change_ratio


def default_interpretation(
    raw_score: float,
    change_ratio: float,
    delta: float,
    reference_raw: Optional[float],
    policy: SdpPolicy,
) -> Interpretation:
    """
    Bucket an SDP record.

    `reference_raw` (typically the scenario's baseline mean) tells whether raw
    held steady or fell; without it raw is assumed steady.
    """
    band = policy.stable_band
    raw_fell = False
    if reference_raw is not None and reference_raw > 0:
        raw_fell = (raw_score - reference_raw) / reference_raw <= -band

    if change_ratio <= -band:
        # External capability fell: if raw held, the process absorbed it
        if reference_raw is not None and not raw_fell:
            return Interpretation.SDLC_ROBUST
        return Interpretation.MODEL_DEGRADED
    if raw_fell:
        return Interpretation.SDLC_ISSUE
    if change_ratio >= band:
        return Interpretation.MODEL_IMPROVED
    return Interpretation.STABLE


def external_change_ratio(current: float, baseline: float) -> float:
    """
    Fractional change of an external capability reading vs. its baseline.

    Examples:
        >>> external_change_ratio(72.0, 80.0)
        -0.1
    """
    current_value = _as_finite("external_score", current)
    baseline_value = _as_finite("external_baseline", baseline)
    if baseline_value == 0:
        raise InvalidInputError("external_baseline", baseline, "must be non-zero")
    return round((current_value - baseline_value) / baseline_value, 10)


def _as_finite(field_name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise InvalidInputError(field_name, value, "not a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(field_name, value, "not a number") from None
    if math.isnan(number) or math.isinf(number):
        raise InvalidInputError(field_name, value, "must be finite")
    return number


class DegradationAdjustedScorer:
    """
    Computes SDP records under a configurable policy.

    Usage:
        scorer = DegradationAdjustedScorer()
        record = scorer.score(6.0, external_change_ratio=-0.1)
        record.sdp_score   # 6.6
    """

    def __init__(
        self,
        policy: Optional[SdpPolicy] = None,
        adjustment_fn: AdjustmentFn = linear_adjustment,
        interpret_fn: InterpretFn = default_interpretation,
        max_score: Optional[float] = None,
    ):
        self.policy = policy or SdpPolicy()
        self.policy.validate()
        self.adjustment_fn = adjustment_fn
        self.interpret_fn = interpret_fn
        self.max_score = max_score

    def score(
        self,
        raw_score: float,
        external_change_ratio: float,
        reference_raw: Optional[float] = None,
        external_score: Optional[float] = None,
        external_baseline: Optional[float] = None,
    ) -> DegradationRecord:
        """
        Adjust a raw score for an external capability change.

        Raises:
            InvalidInputError: non-numeric, negative or over-max raw score, non-finite
                               ratio, or an unknown interpretation bucket
        """
        raw = validate_trial_score(raw_score, max_score=self.max_score, field_name="raw_score")
        ratio = _as_finite("external_change_ratio", external_change_ratio)

        adjustment = self.adjustment_fn(raw, ratio)
        unclamped = raw - adjustment
        low = raw * (1 - self.policy.cap)
        high = raw * (1 + self.policy.cap)
        sdp = min(max(unclamped, low), high)
        delta = sdp - raw
        robustness = raw - (raw * ratio)

        if sdp != unclamped:
            logger.debug(
                "SDP %.4f capped to %.4f (raw=%.4f, external_change=%.4f)",
                unclamped, sdp, raw, ratio,
            )

        interpretation = Interpretation.parse(
            self.interpret_fn(raw, ratio, delta, reference_raw, self.policy)
        )

        return DegradationRecord(
            raw_score=raw,
            external_change_ratio=ratio,
            sdp_score=sdp,
            delta=delta,
            robustness=robustness,
            interpretation=interpretation,
            external_score=external_score,
            external_baseline=external_baseline,
        )

    def score_from_readings(
        self,
        raw_score: float,
        external_score: float,
        external_baseline: float,
        reference_raw: Optional[float] = None,
    ) -> DegradationRecord:
        """Derive the change ratio from two external readings, then score."""
        ratio = external_change_ratio(external_score, external_baseline)
        return self.score(
            raw_score,
            ratio,
            reference_raw=reference_raw,
            external_score=float(external_score),
            external_baseline=float(external_baseline),
        )


def format_sdp_lines(record: DegradationRecord) -> str:
    """
    Render the line-oriented output consumed by CI scripts.

        raw=6.00
        sdp=6.60
        delta=0.60
        external=72.00
        external_change=-10.00%
        robustness=6.60
        interpretation=MODEL_DEGRADED
    """
    lines = [
        f"raw={record.raw_score:.2f}",
        f"sdp={record.sdp_score:.2f}",
        f"delta={record.delta:.2f}",
    ]
    if record.external_score is not None:
        lines.append(f"external={record.external_score:.2f}")
    lines.extend([
        f"external_change={record.external_change_ratio * 100:.2f}%",
        f"robustness={record.robustness:.2f}",
        f"interpretation={record.interpretation.value}",
    ])
    return "\n".join(lines)


__all__ = [
    "DEFAULT_CAP",
    "DEFAULT_STABLE_BAND",
    "Interpretation",
    "SdpPolicy",
    "DegradationRecord",
    "linear_adjustment",
    "default_interpretation",
    "external_change_ratio",
    "DegradationAdjustedScorer",
    "format_sdp_lines",
]
