# tests/conftest.py
import json

import pytest

from sdlc_eval.history import BaselineTable, ScoreHistory


def _rubric(points):
    maxima = {
        "task_tracking": 1,
        "confidence": 1,
        "plan_mode": 2,
        "tdd_red": 2,
        "tdd_green": 2,
        "self_review": 1,
        "clean_code": 1,
    }
    return {
        name: {"points": points.get(name, maximum), "max": maximum, "evidence": f"{name} observed"}
        for name, maximum in maxima.items()
    }


@pytest.fixture
def judge_payload():
    """A well-formed standard-rubric judge verdict scoring 8/10."""
    return {
        "score": 8,
        "pass": True,
        "criteria": _rubric({"plan_mode": 0}),
        "summary": "Followed TDD, skipped plan mode.",
        "improvements": ["Enter plan mode before multi-file changes"],
    }


@pytest.fixture
def judge_file(tmp_path, judge_payload):
    path = tmp_path / "judge.json"
    path.write_text(json.dumps(judge_payload), encoding="utf-8")
    return path


class StepClock:
    """Deterministic timestamps for history entries."""

    def __init__(self):
        self.ticks = 0

    def __call__(self):
        self.ticks += 1
        return f"2026-01-01T00:00:{self.ticks:02d}+00:00"


@pytest.fixture
def history_path(tmp_path):
    return tmp_path / "state" / "history.json"


@pytest.fixture
def history(history_path):
    return ScoreHistory(history_path, clock=StepClock())


@pytest.fixture
def baselines(tmp_path):
    return BaselineTable(tmp_path / "state" / "baselines.json")
