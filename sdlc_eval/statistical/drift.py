"""
Long-horizon drift tracking over the persisted score history.

A running signed deviation accumulator: every observation adds
(score - target) to a cumulative sum S. This is a simplified, non-resetting
cumulative-sum tracker (no slack parameter, no reset on crossing). Small
persistent shortfalls accumulate into an alert faster than a single bad run.

Levels are derived from |S|, never stored:

    NORMAL   |S| < 2.0
    WARNING  2.0 <= |S| < 3.0
    ALERT    |S| >= 3.0

The state is re-derived from the history on every read, so the history file is
the only thing persisted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional, Sequence, Tuple

from sdlc_eval.errors import InvalidInputError
from sdlc_eval.rubric import validate_trial_score

if TYPE_CHECKING:
    from sdlc_eval.history import ScoreEntry, ScoreHistory

logger = logging.getLogger(__name__)

DEFAULT_TARGET = 7.0
WARNING_THRESHOLD = 2.0
ALERT_THRESHOLD = 3.0


class DriftLevel(str, Enum):
    NORMAL = "NORMAL"
    WARNING = "WARNING"
    ALERT = "ALERT"


def classify_drift(
    cumulative_sum: float,
    warning_threshold: float = WARNING_THRESHOLD,
    alert_threshold: float = ALERT_THRESHOLD,
) -> DriftLevel:
    magnitude = abs(cumulative_sum)
    if magnitude >= alert_threshold:
        return DriftLevel.ALERT
    if magnitude >= warning_threshold:
        return DriftLevel.WARNING
    return DriftLevel.NORMAL


@dataclass(frozen=True)
class DriftState:
    """Target, cumulative deviation and the (timestamp, score) history it came from."""
    target: float
    cumulative_sum: float = 0.0
    history: Tuple[Tuple[str, float], ...] = field(default_factory=tuple)

    @classmethod
    def from_entries(cls, target: float, entries: Sequence["ScoreEntry"]) -> "DriftState":
        cumulative = 0.0
        for entry in entries:
            cumulative += entry.score - target
        return cls(
            target=target,
            cumulative_sum=cumulative,
            history=tuple((entry.timestamp, entry.score) for entry in entries),
        )


class DriftTracker:
    """
    Drift monitor for one scenario's score series.

    The tracker owns no state of its own; it is a view over a ScoreHistory
    passed in by the caller.

    Usage:
        tracker = DriftTracker(ScoreHistory(path), "add-validation", target=7.0)
        tracker.record_observation(6.5)
        tracker.status()   # {"target": 7.0, "cumulative_sum": -0.5, "state": "NORMAL"}
    """

    def __init__(
        self,
        history: "ScoreHistory",
        scenario_id: str,
        target: float = DEFAULT_TARGET,
        warning_threshold: float = WARNING_THRESHOLD,
        alert_threshold: float = ALERT_THRESHOLD,
        max_score: Optional[float] = None,
    ):
        if not (0 < warning_threshold < alert_threshold):
            raise InvalidInputError(
                "drift thresholds",
                (warning_threshold, alert_threshold),
                "need 0 < warning < alert",
            )
        self.history = history
        self.scenario_id = scenario_id
        self.target = validate_trial_score(target, max_score=max_score, field_name="target")
        self.warning_threshold = warning_threshold
        self.alert_threshold = alert_threshold
        self.max_score = max_score

    @property
    def state(self) -> DriftState:
        return DriftState.from_entries(self.target, self.history.entries(self.scenario_id))

    def level(self, state: DriftState) -> DriftLevel:
        return classify_drift(state.cumulative_sum, self.warning_threshold, self.alert_threshold)

    def record_observation(self, score: float) -> DriftState:
        """Append (now, score) to the history and return the updated state."""
        value = validate_trial_score(score, max_score=self.max_score)
        with self.history.locked():
            previous = self.level(self.state)
            entries = self.history.append(self.scenario_id, value)
        state = DriftState.from_entries(self.target, entries)
        current = self.level(state)
        if current is not previous:
            logger.info(
                "Drift level for %s changed %s -> %s (cumulative_sum=%.4f)",
                self.scenario_id, previous.value, current.value, state.cumulative_sum,
            )
        return state

    def status(self) -> Dict[str, Any]:
        """Return {target, cumulative_sum, state} without modifying anything."""
        state = self.state
        return {
            "target": self.target,
            "cumulative_sum": round(state.cumulative_sum, 4),
            "state": self.level(state).value,
        }


__all__ = [
    "DEFAULT_TARGET",
    "WARNING_THRESHOLD",
    "ALERT_THRESHOLD",
    "DriftLevel",
    "classify_drift",
    "DriftState",
    "DriftTracker",
]
