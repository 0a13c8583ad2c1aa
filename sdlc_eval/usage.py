"""
Token usage and cost accounting for agent runs.

The agent's JSON output reports usage in one of three shapes; they are tried
in order:

    {"usage": {"input_tokens": ..., "output_tokens": ...}}
    {"token_usage": {"input_tokens": ..., "output_tokens": ...}}
    {"input_tokens": ..., "output_tokens": ...}

Unknown values are None and render as "N/A".
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

logger = logging.getLogger(__name__)

# USD per token (~$3 / 1M input, ~$15 / 1M output)
INPUT_PRICE_PER_TOKEN = 0.000003
OUTPUT_PRICE_PER_TOKEN = 0.000015

NOT_AVAILABLE = "N/A"

_USAGE_CONTAINERS = ("usage", "token_usage")


@dataclass(frozen=True)
class TokenUsage:
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None

    @property
    def known(self) -> bool:
        return self.input_tokens is not None and self.output_tokens is not None

    @property
    def total_tokens(self) -> Optional[int]:
        if not self.known:
            return None
        return self.input_tokens + self.output_tokens

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input_tokens": _or_na(self.input_tokens),
            "output_tokens": _or_na(self.output_tokens),
            "total_tokens": _or_na(self.total_tokens),
        }


def _or_na(value: Any) -> Any:
    return NOT_AVAILABLE if value is None else value


def _as_count(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def _lookup(payload: Mapping[str, Any], key: str) -> Optional[int]:
    for container in _USAGE_CONTAINERS:
        nested = payload.get(container)
        if isinstance(nested, Mapping):
            value = _as_count(nested.get(key))
            if value is not None:
                return value
    return _as_count(payload.get(key))


def extract_token_usage(payload: Any) -> TokenUsage:
    """Extract token counts from a decoded agent output, falling back to unknown."""
    if not isinstance(payload, Mapping):
        return TokenUsage()
    return TokenUsage(
        input_tokens=_lookup(payload, "input_tokens"),
        output_tokens=_lookup(payload, "output_tokens"),
    )


def load_token_usage(path: Union[str, Path]) -> TokenUsage:
    """
    Read token usage from an agent output file.

    Usage reporting is informational, so a missing or unparsable file yields
    unknown counts and a warning rather than an error.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except FileNotFoundError:
        logger.warning("Agent output not found, token usage unknown: %s", path)
        return TokenUsage()
    except json.JSONDecodeError as e:
        logger.warning("Agent output is not valid JSON, token usage unknown: %s (%s)", path, e)
        return TokenUsage()
    return extract_token_usage(payload)


def estimate_cost(
    usage: TokenUsage,
    input_price: float = INPUT_PRICE_PER_TOKEN,
    output_price: float = OUTPUT_PRICE_PER_TOKEN,
) -> Optional[float]:
    """
    Estimated USD cost of a run, or None when counts are unknown.

    Examples:
        >>> estimate_cost(TokenUsage(12345, 8901))
        0.1706
    """
    if not usage.known:
        return None
    cost = (
        Decimal(usage.input_tokens) * Decimal(str(input_price))
        + Decimal(usage.output_tokens) * Decimal(str(output_price))
    )
    return float(cost.quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP))


def tokens_per_point(usage: TokenUsage, score: float) -> Optional[int]:
    """Tokens spent per rubric point; None for a zero score or unknown usage."""
    total = usage.total_tokens
    if total is None or not score:
        return None
    return int(total // score)


def usage_report(
    usage: TokenUsage,
    score: Optional[float] = None,
    input_price: float = INPUT_PRICE_PER_TOKEN,
    output_price: float = OUTPUT_PRICE_PER_TOKEN,
) -> Dict[str, Any]:
    report = usage.to_dict()
    report["estimated_cost_usd"] = _or_na(estimate_cost(usage, input_price, output_price))
    if score is not None:
        report["tokens_per_point"] = _or_na(tokens_per_point(usage, score))
    return report


__all__ = [
    "INPUT_PRICE_PER_TOKEN",
    "OUTPUT_PRICE_PER_TOKEN",
    "NOT_AVAILABLE",
    "TokenUsage",
    "extract_token_usage",
    "load_token_usage",
    "estimate_cost",
    "tokens_per_point",
    "usage_report",
]
