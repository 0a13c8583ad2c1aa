#!/usr/bin/env python3
"""
Command line interface for the SDLC evaluation engine.

Usage:
    python -m sdlc_eval.cli check transcript.txt
    python -m sdlc_eval.cli validate judge.json --rubric ui --transcript transcript.txt
    python -m sdlc_eval.cli interval 5.1 5.3 5.0 5.2 5.4
    python -m sdlc_eval.cli compare --scenario add-validation --accept 7.5 8.0 7.0
    python -m sdlc_eval.cli drift record --scenario add-validation 6.5
    python -m sdlc_eval.cli drift status --scenario add-validation
    python -m sdlc_eval.cli sdp 6.0 --external-score 72 --external-baseline 80
    python -m sdlc_eval.cli usage agent-output.json --score 7.5

Output:
    JSON to stdout (sorted keys), except `sdp --lines` which prints the
    key=value lines consumed by CI scripts.

Exit codes:
    0  success
    1  failing verdict (judge below threshold, REGRESSION) or error; errors
       are printed as {"error": ..., "type": ..., "field": ...}
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from sdlc_eval.config import EvalConfig, load_config
from sdlc_eval.deterministic import apply_deterministic_scores, run_all
from sdlc_eval.errors import EvaluationError, InvalidInputError, SchemaError
from sdlc_eval.history import BaselineTable, ScoreHistory
from sdlc_eval.rubric import RUBRICS, rubric_total
from sdlc_eval.sdp import DegradationAdjustedScorer, format_sdp_lines
from sdlc_eval.statistical.confidence import compute_confidence_interval
from sdlc_eval.statistical.drift import DriftTracker
from sdlc_eval.statistical.regression import evaluate_against_baseline
from sdlc_eval.usage import load_token_usage, usage_report
from sdlc_eval.validation import parse_judge_payload

logger = logging.getLogger(__name__)


def _read_text(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _read_json(path: str) -> Any:
    text = _read_text(path)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise SchemaError(f"Judge output is not valid JSON: {e}") from e


def _error_payload(error: Exception) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"error": str(error), "type": type(error).__name__}
    field_name = getattr(error, "field", None)
    if field_name is not None:
        payload["field"] = field_name
    fields = getattr(error, "fields", None)
    if fields:
        payload["fields"] = list(fields)
    return payload


def _emit(result: Any, pretty: bool) -> None:
    indent = 2 if pretty else None
    print(json.dumps(result, indent=indent, sort_keys=True))


def _scores_for(args: argparse.Namespace, config: EvalConfig) -> List[float]:
    """Scores from the command line, or the scenario's history when none are given."""
    if args.scores:
        return list(args.scores)
    if not args.scenario:
        raise InvalidInputError("scores", [], "give scores or --scenario to read them from history")
    history = ScoreHistory(args.history or config.history_path)
    return [entry.score for entry in history.entries(args.scenario)]


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------

def cmd_check(args: argparse.Namespace, config: EvalConfig) -> int:
    _emit(run_all(_read_text(args.transcript)), args.pretty)
    return 0


def cmd_validate(args: argparse.Namespace, config: EvalConfig) -> int:
    if args.expected_total is not None:
        expected_total = args.expected_total
    elif args.rubric:
        expected_total = rubric_total(args.rubric)
    else:
        expected_total = config.expected_total

    assessment = parse_judge_payload(
        _read_json(args.judge_output),
        expected_total=expected_total,
        strict=not args.clamp,
        pass_threshold=config.pass_threshold,
    )
    result = assessment.to_dict()

    if args.transcript:
        deterministic = run_all(_read_text(args.transcript))
        breakdown = apply_deterministic_scores(assessment.breakdown, deterministic)
        score = breakdown.total_points
        result["criteria"] = breakdown.to_dict()
        result["score"] = score
        result["pass"] = score >= config.pass_threshold
        result["deterministic"] = deterministic

    result["prompt_version"] = config.prompt_version
    _emit(result, args.pretty)
    return 0 if result["pass"] else 1


def cmd_interval(args: argparse.Namespace, config: EvalConfig) -> int:
    confidence = args.confidence if args.confidence is not None else config.confidence_level
    interval = compute_confidence_interval(
        _scores_for(args, config), confidence=confidence, max_score=config.expected_total,
    )
    _emit(interval.to_dict(), args.pretty)
    return 0


def cmd_compare(args: argparse.Namespace, config: EvalConfig) -> int:
    interval = compute_confidence_interval(
        _scores_for(args, config), config.confidence_level, max_score=config.expected_total,
    )
    table = BaselineTable(args.baselines or config.baselines_path)
    comparison = evaluate_against_baseline(table, args.scenario, interval, accept=args.accept)
    _emit(comparison.to_dict(), args.pretty)
    return 0 if comparison.passed else 1


def _tracker(args: argparse.Namespace, config: EvalConfig) -> DriftTracker:
    return DriftTracker(
        ScoreHistory(args.history or config.history_path),
        args.scenario,
        target=args.target if args.target is not None else config.drift_target,
        warning_threshold=config.drift_warning_threshold,
        alert_threshold=config.drift_alert_threshold,
        max_score=config.expected_total,
    )


def cmd_drift_record(args: argparse.Namespace, config: EvalConfig) -> int:
    tracker = _tracker(args, config)
    state = tracker.record_observation(args.score)
    _emit({
        "target": state.target,
        "cumulative_sum": round(state.cumulative_sum, 4),
        "state": tracker.level(state).value,
        "observations": len(state.history),
    }, args.pretty)
    return 0


def cmd_drift_status(args: argparse.Namespace, config: EvalConfig) -> int:
    _emit(_tracker(args, config).status(), args.pretty)
    return 0


def cmd_sdp(args: argparse.Namespace, config: EvalConfig) -> int:
    scorer = DegradationAdjustedScorer(policy=config.sdp, max_score=config.expected_total)
    if args.external_change is not None:
        record = scorer.score(args.raw, args.external_change, reference_raw=args.reference_raw)
    elif args.external_score is not None and args.external_baseline is not None:
        record = scorer.score_from_readings(
            args.raw, args.external_score, args.external_baseline,
            reference_raw=args.reference_raw,
        )
    else:
        raise InvalidInputError(
            "external_change", None,
            "give --external-change or both --external-score and --external-baseline",
        )

    if args.lines:
        print(format_sdp_lines(record))
    else:
        _emit(record.to_dict(), args.pretty)
    return 0


def cmd_usage(args: argparse.Namespace, config: EvalConfig) -> int:
    usage = load_token_usage(args.agent_output)
    _emit(usage_report(usage, args.score, config.input_price, config.output_price), args.pretty)
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sdlc-eval",
        description="Score and track SDLC compliance of AI coding agent runs.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Objective checks on a transcript (max 4 points)
  sdlc-eval check transcript.txt

  # Validate a judge verdict against the UI rubric, overriding objective criteria
  sdlc-eval validate judge.json --rubric ui --transcript transcript.txt

  # Compare five new trials with the stored baseline and accept if not a regression
  sdlc-eval compare --scenario add-validation --accept 7.5 8.0 7.0 7.5 8.5

  # CI-friendly SDP lines
  sdlc-eval sdp 6.0 --external-change -0.1 --lines
        """,
    )
    parser.add_argument("--config", type=Path, default=None,
                        help="YAML config file (default: $SDLC_EVAL_CONFIG or config/sdlc_eval.yaml)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Log at DEBUG level to stderr")
    parser.add_argument("--pretty", action="store_true",
                        help="Pretty-print JSON output with indentation")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("check", help="Run deterministic compliance checks on a transcript")
    p.add_argument("transcript", help="Transcript file, or - for stdin")
    p.set_defaults(func=cmd_check)

    p = sub.add_parser("validate", help="Validate a judge verdict")
    p.add_argument("judge_output", help="Judge JSON file, or - for stdin")
    group = p.add_mutually_exclusive_group()
    group.add_argument("--rubric", choices=sorted(RUBRICS), default=None,
                       help="Rubric whose total the criteria must sum to")
    group.add_argument("--expected-total", type=float, default=None,
                       help="Explicit expected sum of criterion max values")
    p.add_argument("--clamp", action="store_true",
                   help="Clamp out-of-range points instead of rejecting them")
    p.add_argument("--transcript", default=None,
                   help="Transcript whose deterministic results override the judge")
    p.set_defaults(func=cmd_validate)

    for name, func, helptext in (
        ("interval", cmd_interval, "Confidence interval over trial scores"),
        ("compare", cmd_compare, "Regression verdict against the stored baseline"),
    ):
        p = sub.add_parser(name, help=helptext)
        p.add_argument("scores", type=float, nargs="*",
                       help="Trial scores (default: the scenario's recorded history)")
        p.add_argument("--scenario", required=(name == "compare"), default=None)
        p.add_argument("--history", type=Path, default=None, help="Score history file")
        p.set_defaults(func=func)
        if name == "interval":
            p.add_argument("--confidence", type=float, default=None,
                           help="Confidence level (default from config, 0.95)")
        else:
            p.add_argument("--baselines", type=Path, default=None, help="Baseline table file")
            p.add_argument("--accept", action="store_true",
                           help="Store the candidate as the new baseline unless it regressed")

    drift = sub.add_parser("drift", help="Cumulative drift tracking")
    drift_sub = drift.add_subparsers(dest="drift_command", required=True)
    for name, func, helptext in (
        ("record", cmd_drift_record, "Append a score and report the drift level"),
        ("status", cmd_drift_status, "Report the drift level without recording"),
    ):
        p = drift_sub.add_parser(name, help=helptext)
        p.add_argument("--scenario", required=True)
        p.add_argument("--history", type=Path, default=None, help="Score history file")
        p.add_argument("--target", type=float, default=None,
                       help="Target score (default from config, 7.0)")
        if name == "record":
            p.add_argument("score", type=float)
        p.set_defaults(func=func)

    p = sub.add_parser("sdp", help="Degradation-adjusted performance")
    p.add_argument("raw", type=float, help="Raw judge score")
    p.add_argument("--external-change", type=float, default=None,
                   help="Fractional change of the external capability signal (e.g. -0.1)")
    p.add_argument("--external-score", type=float, default=None)
    p.add_argument("--external-baseline", type=float, default=None)
    p.add_argument("--reference-raw", type=float, default=None,
                   help="Reference raw score, usually the baseline mean")
    p.add_argument("--lines", action="store_true", help="Print key=value lines instead of JSON")
    p.set_defaults(func=cmd_sdp)

    p = sub.add_parser("usage", help="Token usage and estimated cost of an agent run")
    p.add_argument("agent_output", type=Path, help="Agent JSON output file")
    p.add_argument("--score", type=float, default=None, help="Score for tokens-per-point")
    p.set_defaults(func=cmd_usage)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point.

    Returns:
        Exit code: 0 for success, 1 for a failing verdict or error.
    """
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_config(args.config)
        logger.debug("Running %s with %s", args.command, config)
        return args.func(args, config)
    except EvaluationError as e:
        print(json.dumps(_error_payload(e), sort_keys=True))
        return 1
    except OSError as e:
        print(json.dumps({"error": str(e), "type": type(e).__name__}, sort_keys=True))
        return 1


if __name__ == "__main__":
    sys.exit(main())
