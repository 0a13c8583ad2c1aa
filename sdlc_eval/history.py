"""
Persisted evaluation state.

Two plain JSON documents, each read in full and rewritten in full on update:

    score history  {"version": 1, "scenarios": {id: [{"timestamp", "score"}, ...]}}
    baselines      {"version": 1, "baselines": {id: {"mean", "margin", "sample_size"}}}

The score history is append-only: entries are never edited or removed. All
read-modify-append-write cycles run under a lock shared by every
`ScoreHistory` / `BaselineTable` instance pointing at the same file, so
concurrent evaluations in one process apply their updates in order. Separate
processes must serialize their runs themselves.

A store constructed without a path keeps its document in memory.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock, RLock
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from sdlc_eval.errors import HistoryError
from sdlc_eval.rubric import validate_trial_score
from sdlc_eval.statistical.regression import Baseline

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1

PathLike = Union[str, Path]

_LOCKS: Dict[str, RLock] = {}
_LOCKS_GUARD = Lock()


def _lock_for(path: Optional[Path]) -> RLock:
    if path is None:
        return RLock()
    key = str(path.resolve())
    with _LOCKS_GUARD:
        if key not in _LOCKS:
            _LOCKS[key] = RLock()
        return _LOCKS[key]


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class _JsonDocument:
    """A versioned JSON document with one top-level collection."""

    collection: str = ""

    def __init__(self, path: Optional[PathLike] = None):
        self.path: Optional[Path] = Path(path) if path is not None else None
        self._lock = _lock_for(self.path)
        self._memory: Dict[str, Any] = {}

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the store's exclusive lock for a read-modify-write cycle."""
        with self._lock:
            yield

    def _read(self) -> Dict[str, Any]:
        if self.path is None:
            return json.loads(json.dumps(self._memory))
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise HistoryError(f"Corrupt {self.collection} file {self.path}: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get(self.collection), dict):
            raise HistoryError(
                f"Malformed {self.collection} file {self.path}: "
                f"missing top-level '{self.collection}' object"
            )
        version = data.get("version")
        if version != FORMAT_VERSION:
            raise HistoryError(
                f"Unsupported {self.collection} file version {version!r} in {self.path} "
                f"(expected {FORMAT_VERSION})"
            )
        return data[self.collection]

    def _write(self, collection: Dict[str, Any]) -> None:
        if self.path is None:
            self._memory = json.loads(json.dumps(collection))
            return
        document = {"version": FORMAT_VERSION, self.collection: collection}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_name(self.path.name + ".tmp")
        temp_path.write_text(json.dumps(document, indent=2, sort_keys=True), encoding="utf-8")
        temp_path.replace(self.path)


@dataclass(frozen=True)
class ScoreEntry:
    """One timestamped scalar evaluation result."""
    timestamp: str
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp, "score": self.score}


class ScoreHistory(_JsonDocument):
    """
    Append-only score history keyed by scenario.

    Usage:
        history = ScoreHistory(Path(".sdlc-eval/history.json"))
        history.append("add-validation", 7.5)
        history.entries("add-validation")
    """

    collection = "scenarios"

    def __init__(
        self,
        path: Optional[PathLike] = None,
        clock: Callable[[], str] = utc_now,
    ):
        super().__init__(path)
        self._clock = clock

    @staticmethod
    def _parse_entries(scenario_id: str, raw: Any) -> List[ScoreEntry]:
        if not isinstance(raw, list):
            raise HistoryError(f"History for {scenario_id!r} must be a list")
        entries = []
        for i, item in enumerate(raw):
            try:
                entries.append(ScoreEntry(timestamp=str(item["timestamp"]), score=float(item["score"])))
            except (KeyError, TypeError, ValueError) as e:
                raise HistoryError(f"Malformed history entry {i} for {scenario_id!r}: {item!r}") from e
        return entries

    def scenarios(self) -> List[str]:
        with self.locked():
            return sorted(self._read())

    def entries(self, scenario_id: str) -> List[ScoreEntry]:
        with self.locked():
            return self._parse_entries(scenario_id, self._read().get(scenario_id, []))

    def append(self, scenario_id: str, score: float) -> List[ScoreEntry]:
        """
        Append a timestamped score and persist the full document.

        Returns:
            The scenario's complete entry list after the append, read under
            the same lock as the write.
        """
        value = validate_trial_score(score)
        with self.locked():
            collection = self._read()
            existing = self._parse_entries(scenario_id, collection.get(scenario_id, []))
            entry = ScoreEntry(timestamp=self._clock(), score=value)
            existing.append(entry)
            collection[scenario_id] = [e.to_dict() for e in existing]
            self._write(collection)
        logger.debug("Recorded score %.4f for %s (%d entries)", value, scenario_id, len(existing))
        return existing


class BaselineTable(_JsonDocument):
    """Last accepted baseline per scenario."""

    collection = "baselines"

    def get(self, scenario_id: str) -> Optional[Baseline]:
        with self.locked():
            raw = self._read().get(scenario_id)
        if raw is None:
            return None
        try:
            return Baseline(
                scenario_id=scenario_id,
                mean=float(raw["mean"]),
                margin=float(raw["margin"]),
                sample_size=int(raw["sample_size"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise HistoryError(f"Malformed baseline for {scenario_id!r}: {raw!r}") from e

    def put(self, baseline: Baseline) -> None:
        with self.locked():
            collection = self._read()
            collection[baseline.scenario_id] = {
                "mean": baseline.mean,
                "margin": baseline.margin,
                "sample_size": baseline.sample_size,
            }
            self._write(collection)

    def scenarios(self) -> List[str]:
        with self.locked():
            return sorted(self._read())


__all__ = [
    "FORMAT_VERSION",
    "utc_now",
    "ScoreEntry",
    "ScoreHistory",
    "BaselineTable",
]
