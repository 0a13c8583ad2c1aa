"""
Deterministic compliance pre-checks.

Scores the objectively checkable rubric criteria straight from an execution
transcript, before (and independently of) the LLM judge. The checks are free
and reproducible: identical text always yields identical results.

Criteria checked deterministically:
  - task_tracking: TodoWrite or TaskCreate usage (1 pt)
  - confidence: HIGH/MEDIUM/LOW stated (1 pt)
  - tdd_red: test file written before implementation (2 pt)

Marker matching is case-sensitive on purpose: writing "todowrite" or "high
confidence" in prose must not earn points.

The checks are an ordered list of `ComplianceRule`s. Rules that care about
file ordering read a tokenized stream of `TouchEvent`s rather than scanning
the raw text themselves.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from sdlc_eval.rubric import CriterionResult, RubricBreakdown

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Touch event tokenizer
# ---------------------------------------------------------------------------

class FileKind(str, Enum):
    """Classification of a touched path."""
    TEST = "test"
    IMPLEMENTATION = "implementation"


# "Write file: src/app.js", "Edit file: tests/app.test.js", "Create: x.py"
_MARKER_LINE = re.compile(
    r"\b(?P<action>Write|Create|Edit|Modify|Update)(?: file)?:[ \t]*(?P<path>[^\s'\"`]+)"
)
# Tool-call form: "Write(src/app.js)", "MultiEdit(tests/app.test.js)"
_MARKER_CALL = re.compile(
    r"\b(?P<action>Write|Edit|MultiEdit)\((?:file_path=)?['\"]?(?P<path>[^\s'\"`)]+)['\"]?\)"
)

TOUCH_PATTERNS: Tuple[re.Pattern, ...] = (_MARKER_LINE, _MARKER_CALL)

# File extensions start with a letter: "app.js", "main.go", not "v1.2"
_FILE_EXTENSION = re.compile(r"\.[A-Za-z][A-Za-z0-9]*$")
_HAS_LETTER = re.compile(r"[A-Za-z]")

TEST_SEGMENTS = frozenset({"test", "tests", "spec", "specs"})
_SEGMENT_SPLIT = re.compile(r"[/\\._\-]+")
# ValidatorTest.java, UserTests.swift, FooSpec.scala, TestParser.java
_CAMEL_TEST_STEM = re.compile(r"[a-z0-9](?:Tests?|Specs?)$|^Tests?[A-Z]")


def _looks_like_path(token: str) -> bool:
    """True for tokens shaped like a file path rather than prose ("done", "v1.2")."""
    basename = re.split(r"[/\\]", token)[-1]
    if _FILE_EXTENSION.search(basename):
        return True
    return ("/" in token or "\\" in token) and bool(_HAS_LETTER.search(token))


def classify_path(path: str) -> FileKind:
    """
    Classify a touched path as test-like or implementation-like.

    A path is test-like when any of its segments (split on "/", ".", "_",
    "-") is test/tests/spec/specs, e.g. tests/validate.test.js,
    spec/validate.spec.ts, test_app.py or app_test.go, or when the file stem
    carries a CamelCase Test/Tests/Spec suffix or Test prefix, e.g.
    ValidatorTest.java. "src/latest.js" is implementation: the indicator must
    be a whole segment or a CamelCase word.
    """
    segments = _SEGMENT_SPLIT.split(path.lower())
    if any(segment in TEST_SEGMENTS for segment in segments):
        return FileKind.TEST
    stem = re.split(r"[/\\]", path)[-1].split(".")[0]
    if _CAMEL_TEST_STEM.search(stem):
        return FileKind.TEST
    return FileKind.IMPLEMENTATION


@dataclass(frozen=True)
class TouchEvent:
    """A single file touch found in the transcript."""
    position: int
    action: str
    path: str
    kind: FileKind


def extract_touch_events(text: str) -> List[TouchEvent]:
    """Return every file touch in the transcript, ordered by character position."""
    events: Dict[int, TouchEvent] = {}
    for pattern in TOUCH_PATTERNS:
        for match in pattern.finditer(text or ""):
            path = match.group("path").rstrip(",;:.")
            # Prose such as "Update: done" or "Update: v1.2 plan" is not a file touch
            if not _looks_like_path(path):
                continue
            position = match.start()
            if position in events:
                continue
            events[position] = TouchEvent(
                position=position,
                action=match.group("action"),
                path=path,
                kind=classify_path(path),
            )
    return [events[pos] for pos in sorted(events)]


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------

RuleOutcome = Tuple[float, str]


@dataclass(frozen=True)
class ComplianceRule:
    """
    One deterministic check.

    Attributes:
        name: Rubric criterion the rule scores
        max_points: Points awarded on success
        evaluate: (text, touch events) -> (points, evidence)
    """
    name: str
    max_points: float
    evaluate: Callable[[str, Sequence[TouchEvent]], RuleOutcome]

    def apply(self, text: str, events: Sequence[TouchEvent]) -> CriterionResult:
        points, evidence = self.evaluate(text, events)
        return CriterionResult(
            name=self.name, points=points, max=self.max_points, evidence=evidence
        )


TASK_TRACKING_MARKERS = ("TodoWrite", "TaskCreate")
CONFIDENCE_LEVELS = ("HIGH", "MEDIUM", "LOW")

_TASK_TRACKING = re.compile(r"\b(" + "|".join(TASK_TRACKING_MARKERS) + r")\b")
_CONFIDENCE = re.compile(r"\b(" + "|".join(CONFIDENCE_LEVELS) + r")\b")


def _task_tracking_rule(text: str, events: Sequence[TouchEvent]) -> RuleOutcome:
    match = _TASK_TRACKING.search(text or "")
    if match:
        return 1, f"Found {match.group(1)} usage"
    return 0, "No TodoWrite/TaskCreate usage found"


def _confidence_rule(text: str, events: Sequence[TouchEvent]) -> RuleOutcome:
    match = _CONFIDENCE.search(text or "")
    if match:
        return 1, f"Stated {match.group(1)} confidence"
    return 0, "No HIGH/MEDIUM/LOW confidence statement found"


def _tdd_red_rule(text: str, events: Sequence[TouchEvent]) -> RuleOutcome:
    first_test: Optional[TouchEvent] = None
    first_impl: Optional[TouchEvent] = None
    for event in events:
        if event.kind is FileKind.TEST and first_test is None:
            first_test = event
        elif event.kind is FileKind.IMPLEMENTATION and first_impl is None:
            first_impl = event

    if first_test is None:
        if first_impl is None:
            return 0, "No file writes found"
        return 0, f"No test file written (first write: {first_impl.path})"
    if first_impl is None:
        return 2, f"Test file {first_test.path} written; no implementation file touched"
    if first_test.position < first_impl.position:
        return 2, f"Test file {first_test.path} written before implementation {first_impl.path}"
    return 0, f"Implementation {first_impl.path} written before test file {first_test.path}"


DEFAULT_RULES: Tuple[ComplianceRule, ...] = (
    ComplianceRule("task_tracking", 1, _task_tracking_rule),
    ComplianceRule("confidence", 1, _confidence_rule),
    ComplianceRule("tdd_red", 2, _tdd_red_rule),
)


# ---------------------------------------------------------------------------
# Scorer
# ---------------------------------------------------------------------------

class DeterministicScorer:
    """
    Runs an ordered list of compliance rules over a transcript.

    Usage:
        scorer = DeterministicScorer()
        results = scorer.run_all(transcript)
        results["total"], results["max"]
    """

    def __init__(self, rules: Sequence[ComplianceRule] = DEFAULT_RULES):
        names = [rule.name for rule in rules]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate rule names: {names}")
        self.rules: Tuple[ComplianceRule, ...] = tuple(rules)

    @property
    def max_points(self) -> float:
        return sum(rule.max_points for rule in self.rules)

    def evaluate(self, text: str) -> List[CriterionResult]:
        events = extract_touch_events(text)
        return [rule.apply(text, events) for rule in self.rules]

    def run_all(self, text: str) -> Dict[str, Any]:
        """
        Run every rule and aggregate.

        Returns:
            {<criterion>: {"points", "max", "evidence"}, ..., "total", "max"}
        """
        results: Dict[str, Any] = {}
        total = 0
        for result in self.evaluate(text):
            results[result.name] = result.to_dict()
            total += result.points
        results["total"] = total
        results["max"] = self.max_points
        return results


_DEFAULT_SCORER = DeterministicScorer()


def check_task_tracking(text: str) -> int:
    """Return 1 if TodoWrite or TaskCreate appears (case-sensitive), else 0."""
    return int(_task_tracking_rule(text, ())[0])


def check_confidence(text: str) -> int:
    """Return 1 if HIGH, MEDIUM or LOW appears as an uppercase whole word, else 0."""
    return int(_confidence_rule(text, ())[0])


def check_tdd_red(text: str) -> int:
    """Return 2 if the first test file touch precedes the first implementation touch, else 0."""
    return int(_tdd_red_rule(text, extract_touch_events(text))[0])


def run_all(text: str) -> Dict[str, Any]:
    """Run the default deterministic checks (max 4 points)."""
    return _DEFAULT_SCORER.run_all(text)


def apply_deterministic_scores(
    breakdown: RubricBreakdown,
    results: Dict[str, Any],
) -> RubricBreakdown:
    """
    Override judge points with deterministic results for objective criteria.

    Only criteria present in both the breakdown and the results are touched,
    and the breakdown's own max is kept.
    """
    updated = breakdown
    for name, criterion in breakdown.items():
        entry = results.get(name)
        if not isinstance(entry, dict):
            continue
        points = min(float(entry["points"]), criterion.max)
        if points != criterion.points:
            logger.warning(
                "Deterministic check overrides judge for %s: %s -> %s",
                name, criterion.points, points,
            )
        updated = updated.replace(CriterionResult(
            name=name,
            points=points,
            max=criterion.max,
            evidence=f"[deterministic] {entry.get('evidence', '')}",
        ))
    return updated


__all__ = [
    "FileKind",
    "TouchEvent",
    "classify_path",
    "extract_touch_events",
    "ComplianceRule",
    "DEFAULT_RULES",
    "DeterministicScorer",
    "check_task_tracking",
    "check_confidence",
    "check_tdd_red",
    "run_all",
    "apply_deterministic_scores",
]
