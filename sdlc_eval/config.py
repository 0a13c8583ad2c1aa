"""
Evaluation engine configuration.

Values come from, in increasing precedence:
  1. EvalConfig defaults
  2. A YAML file (config/sdlc_eval.yaml by default)
  3. SDLC_EVAL_* environment variables (a .env file is honoured by the CLI)

YAML layout:

    pass_threshold: 7.0
    expected_total: 10
    confidence_level: 0.95
    prompt_version: v2
    drift:
      target: 7.0
      warning_threshold: 2.0
      alert_threshold: 3.0
    sdp:
      cap: 0.2
      stable_band: 0.05
    paths:
      history: .sdlc-eval/history.json
      baselines: .sdlc-eval/baselines.json
    pricing:
      input: 0.000003
      output: 0.000015
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from sdlc_eval.errors import ConfigError
from sdlc_eval.rubric import EVAL_PROMPT_VERSION, PASS_THRESHOLD, STANDARD_TOTAL
from sdlc_eval.sdp import SdpPolicy
from sdlc_eval.statistical.confidence import CONFIDENCE_LEVEL
from sdlc_eval.statistical.drift import ALERT_THRESHOLD, DEFAULT_TARGET, WARNING_THRESHOLD
from sdlc_eval.usage import INPUT_PRICE_PER_TOKEN, OUTPUT_PRICE_PER_TOKEN

DEFAULT_CONFIG_PATH = Path("config/sdlc_eval.yaml")
CONFIG_PATH_ENV = "SDLC_EVAL_CONFIG"

# Environment variable -> (section, key); section None means top level
ENV_OVERRIDES: Dict[str, tuple] = {
    "SDLC_EVAL_PASS_THRESHOLD": (None, "pass_threshold"),
    "SDLC_EVAL_EXPECTED_TOTAL": (None, "expected_total"),
    "SDLC_EVAL_CONFIDENCE_LEVEL": (None, "confidence_level"),
    "SDLC_EVAL_DRIFT_TARGET": ("drift", "target"),
    "SDLC_EVAL_SDP_CAP": ("sdp", "cap"),
    "SDLC_EVAL_HISTORY": ("paths", "history"),
    "SDLC_EVAL_BASELINES": ("paths", "baselines"),
}


@dataclass
class EvalConfig:
    """
    Configuration for the evaluation engine.

    Attributes:
        pass_threshold: Judge score at or above which a run passes (default: 7.0)
        expected_total: Declared rubric total, 10 standard / 11 UI (default: 10)
        confidence_level: Two-sided CI level (default: 0.95)
        drift_target: Target score for drift accumulation (default: 7.0)
        drift_warning_threshold: |S| at which drift is WARNING (default: 2.0)
        drift_alert_threshold: |S| at which drift is ALERT (default: 3.0)
        sdp: SDP cap and stable band
        history_path: Score history JSON file
        baselines_path: Baseline table JSON file
        input_price: USD per input token
        output_price: USD per output token
        prompt_version: Judge prompt version recorded with results
    """
    pass_threshold: float = PASS_THRESHOLD
    expected_total: float = STANDARD_TOTAL
    confidence_level: float = CONFIDENCE_LEVEL
    drift_target: float = DEFAULT_TARGET
    drift_warning_threshold: float = WARNING_THRESHOLD
    drift_alert_threshold: float = ALERT_THRESHOLD
    sdp: SdpPolicy = field(default_factory=SdpPolicy)
    history_path: Path = Path(".sdlc-eval/history.json")
    baselines_path: Path = Path(".sdlc-eval/baselines.json")
    input_price: float = INPUT_PRICE_PER_TOKEN
    output_price: float = OUTPUT_PRICE_PER_TOKEN
    prompt_version: str = EVAL_PROMPT_VERSION

    def validate(self) -> None:
        """Validate configuration parameters."""
        if not (0 < self.confidence_level < 1):
            raise ConfigError("confidence_level must be in (0, 1)")
        if self.expected_total <= 0:
            raise ConfigError("expected_total must be > 0")
        if not (0 <= self.pass_threshold <= self.expected_total):
            raise ConfigError("pass_threshold must be within [0, expected_total]")
        if not (0 < self.drift_warning_threshold < self.drift_alert_threshold):
            raise ConfigError("drift thresholds need 0 < warning_threshold < alert_threshold")
        if self.drift_target < 0:
            raise ConfigError("drift.target must be >= 0")
        if not (0 <= self.sdp.cap < 1):
            raise ConfigError("sdp.cap must be in [0, 1)")
        if not (0 <= self.sdp.stable_band < 1):
            raise ConfigError("sdp.stable_band must be in [0, 1)")
        if self.input_price < 0 or self.output_price < 0:
            raise ConfigError("pricing must be >= 0")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EvalConfig":
        """Build a config from the nested YAML layout."""
        drift = _section(data, "drift")
        sdp = _section(data, "sdp")
        paths = _section(data, "paths")
        pricing = _section(data, "pricing")
        defaults = cls()
        try:
            config = cls(
                pass_threshold=float(data.get("pass_threshold", defaults.pass_threshold)),
                expected_total=float(data.get("expected_total", defaults.expected_total)),
                confidence_level=float(data.get("confidence_level", defaults.confidence_level)),
                drift_target=float(drift.get("target", defaults.drift_target)),
                drift_warning_threshold=float(
                    drift.get("warning_threshold", defaults.drift_warning_threshold)
                ),
                drift_alert_threshold=float(
                    drift.get("alert_threshold", defaults.drift_alert_threshold)
                ),
                sdp=SdpPolicy(
                    cap=float(sdp.get("cap", defaults.sdp.cap)),
                    stable_band=float(sdp.get("stable_band", defaults.sdp.stable_band)),
                ),
                history_path=Path(paths.get("history", defaults.history_path)),
                baselines_path=Path(paths.get("baselines", defaults.baselines_path)),
                input_price=float(pricing.get("input", defaults.input_price)),
                output_price=float(pricing.get("output", defaults.output_price)),
                prompt_version=str(data.get("prompt_version", defaults.prompt_version)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration value: {e}") from e
        config.validate()
        return config


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, Mapping):
        raise ConfigError(f"Config section '{name}' must be a mapping")
    return section


def _apply_env(data: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    merged = {k: (dict(v) if isinstance(v, Mapping) else v) for k, v in data.items()}
    for var, (section, key) in ENV_OVERRIDES.items():
        if var not in environ:
            continue
        if section is None:
            merged[key] = environ[var]
        else:
            target = merged.setdefault(section, {})
            if not isinstance(target, dict):
                raise ConfigError(f"Config section '{section}' must be a mapping")
            target[key] = environ[var]
    return merged


def load_config(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> EvalConfig:
    """
    Load configuration from YAML and the environment.

    Args:
        path: Config file; defaults to $SDLC_EVAL_CONFIG or config/sdlc_eval.yaml.
              A missing default file is not an error, a missing explicit file is.
        environ: Environment mapping (defaults to os.environ)

    Raises:
        ConfigError: If the file is missing (when explicit), unparsable or invalid
    """
    environ = os.environ if environ is None else environ
    explicit = path is not None or CONFIG_PATH_ENV in environ
    config_path = Path(path if path is not None else environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH))

    data: Dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Error parsing YAML file: {config_path}") from e
        if loaded is not None:
            if not isinstance(loaded, dict):
                raise ConfigError(f"Malformed config file: top level must be a mapping in {config_path}")
            data = loaded
    elif explicit:
        raise ConfigError(f"Config file not found at: {config_path}")

    return EvalConfig.from_mapping(_apply_env(data, environ))


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "CONFIG_PATH_ENV",
    "ENV_OVERRIDES",
    "EvalConfig",
    "load_config",
]
