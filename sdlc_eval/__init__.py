"""
SDLC Evaluation Engine

Scores how well an AI coding agent follows a software development lifecycle
process. A judge verdict is validated against a fixed rubric, objective
criteria are re-checked deterministically from the transcript, and repeated
trials are summarized with confidence intervals, compared with a stored
baseline, tracked for drift and adjusted for external model capability shifts.
"""

from sdlc_eval.errors import (
    BoundsError,
    ConfigError,
    EvaluationError,
    HistoryError,
    InsufficientSampleError,
    InvalidInputError,
    SchemaError,
    TotalError,
)
from sdlc_eval.rubric import (
    EVAL_PROMPT_VERSION,
    PASS_THRESHOLD,
    CriterionResult,
    JudgeAssessment,
    RubricBreakdown,
    rubric_total,
)
from sdlc_eval.validation import (
    clamp_bounds,
    parse_judge_payload,
    validate_bounds,
    validate_schema,
    validate_total,
)
from sdlc_eval.deterministic import (
    DeterministicScorer,
    apply_deterministic_scores,
    run_all,
)
from sdlc_eval.statistical import (
    Baseline,
    ConfidenceInterval,
    DriftLevel,
    DriftTracker,
    Verdict,
    compare_intervals,
    compute_confidence_interval,
    evaluate_against_baseline,
)
from sdlc_eval.history import BaselineTable, ScoreHistory
from sdlc_eval.sdp import (
    DegradationAdjustedScorer,
    DegradationRecord,
    Interpretation,
    SdpPolicy,
)
from sdlc_eval.config import EvalConfig, load_config

__version__ = "0.1.0"

__all__ = [
    # Errors
    "EvaluationError",
    "SchemaError",
    "BoundsError",
    "TotalError",
    "InsufficientSampleError",
    "InvalidInputError",
    "ConfigError",
    "HistoryError",
    # Rubric and validation
    "EVAL_PROMPT_VERSION",
    "PASS_THRESHOLD",
    "CriterionResult",
    "RubricBreakdown",
    "JudgeAssessment",
    "rubric_total",
    "validate_schema",
    "validate_bounds",
    "validate_total",
    "clamp_bounds",
    "parse_judge_payload",
    # Deterministic checks
    "DeterministicScorer",
    "run_all",
    "apply_deterministic_scores",
    # Statistics
    "ConfidenceInterval",
    "compute_confidence_interval",
    "Baseline",
    "Verdict",
    "compare_intervals",
    "evaluate_against_baseline",
    "DriftLevel",
    "DriftTracker",
    # Persistence
    "ScoreHistory",
    "BaselineTable",
    # SDP
    "SdpPolicy",
    "Interpretation",
    "DegradationRecord",
    "DegradationAdjustedScorer",
    # Config
    "EvalConfig",
    "load_config",
]
