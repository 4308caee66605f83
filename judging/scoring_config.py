from __future__ import annotations

import json
import math
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()


CRITERIA: Tuple[str, ...] = (
    "project_design",
    "functionality",
    "presentation",
    "web_design",
    "impact",
)

DEFAULT_WEIGHTS: Dict[str, float] = {
    "project_design": 0.25,
    "functionality": 0.30,
    "presentation": 0.15,
    "web_design": 0.10,
    "impact": 0.20,
}

# Earlier score sheets used per-criterion maxima of 25/30/15/10/20; the current
# judge form scores every criterion out of 100. Both are just configurations.
DEFAULT_RANGE: Tuple[float, float] = (0.0, 100.0)

WEIGHT_SUM_TOLERANCE = 1e-9

SETTING_KEYS = {
    "weights": "scoring_weights",
    "ranges": "scoring_ranges",
}


class ScoringConfigError(ValueError):
    pass


def normalize_criterion(value: Optional[str]) -> Optional[str]:
    """
    Map any accepted spelling of a criterion to its canonical snake_case name.
    Accepts "projectDesign", "project_design", "Project Design", "project-design".
    """
    if value is None:
        return None
    raw = str(value).strip()
    if not raw:
        return None
    chars = []
    for ch in raw:
        if ch.isupper():
            chars.append("_")
            chars.append(ch.lower())
        elif ch in {" ", "-"}:
            chars.append("_")
        else:
            chars.append(ch)
    name = "".join(chars).strip("_")
    while "__" in name:
        name = name.replace("__", "_")
    return name if name in CRITERIA else None


@dataclass(frozen=True)
class ScoringConfig:
    weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    ranges: Dict[str, Tuple[float, float]] = field(
        default_factory=lambda: {c: DEFAULT_RANGE for c in CRITERIA}
    )

    def __post_init__(self):
        _check_keys("weights", self.weights)
        _check_keys("ranges", self.ranges)

        total = 0.0
        for criterion in CRITERIA:
            weight = self.weights[criterion]
            if not isinstance(weight, (int, float)) or isinstance(weight, bool) or not math.isfinite(weight):
                raise ScoringConfigError(f"Weight for '{criterion}' must be a finite number.")
            if weight < 0:
                raise ScoringConfigError(f"Weight for '{criterion}' must not be negative.")
            total += weight
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise ScoringConfigError(f"Criterion weights must sum to 1.0 (got {total!r}).")

        for criterion in CRITERIA:
            bounds = self.ranges[criterion]
            try:
                low, high = bounds
            except (TypeError, ValueError):
                raise ScoringConfigError(f"Range for '{criterion}' must be a (min, max) pair.")
            if not all(isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v) for v in (low, high)):
                raise ScoringConfigError(f"Range for '{criterion}' must contain finite numbers.")
            if low >= high:
                raise ScoringConfigError(f"Range for '{criterion}' must have min < max.")

    def range_for(self, criterion: str) -> Tuple[float, float]:
        return self.ranges[criterion]


def _check_keys(label: str, values: Mapping[str, object]) -> None:
    if not isinstance(values, Mapping):
        raise ScoringConfigError(f"Scoring {label} must be an object keyed by criterion.")
    missing = [c for c in CRITERIA if c not in values]
    unknown = [k for k in values if k not in CRITERIA]
    if missing:
        raise ScoringConfigError(f"Scoring {label} missing criteria: {', '.join(missing)}")
    if unknown:
        raise ScoringConfigError(f"Scoring {label} has unknown criteria: {', '.join(map(str, unknown))}")


def _canonical_keys(label: str, raw: Mapping[str, object]) -> Dict[str, object]:
    out: Dict[str, object] = {}
    for key, value in raw.items():
        name = normalize_criterion(key)
        if name is None:
            raise ScoringConfigError(f"Unknown criterion in scoring {label}: {key!r}")
        out[name] = value
    return out


def parse_weights(raw: Mapping[str, object]) -> Dict[str, float]:
    weights = {}
    for name, value in _canonical_keys("weights", raw).items():
        try:
            weights[name] = float(value)
        except (TypeError, ValueError):
            raise ScoringConfigError(f"Weight for '{name}' must be a number.")
    return weights


def parse_ranges(raw: Mapping[str, object]) -> Dict[str, Tuple[float, float]]:
    """
    Ranges may be given as [min, max] pairs or {"min": .., "max": ..} objects.
    """
    ranges = {}
    for name, value in _canonical_keys("ranges", raw).items():
        try:
            if isinstance(value, Mapping):
                low, high = value["min"], value["max"]
            else:
                low, high = value
            ranges[name] = (float(low), float(high))
        except (KeyError, TypeError, ValueError):
            raise ScoringConfigError(f"Range for '{name}' must be [min, max] or {{min, max}}.")
    return ranges


def _json_env(name: str) -> Optional[dict]:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ScoringConfigError(f"{name} is not valid JSON: {e}")
    if not isinstance(value, dict):
        raise ScoringConfigError(f"{name} must be a JSON object keyed by criterion.")
    return value


def load_scoring_config_from_env() -> ScoringConfig:
    """
    Built-in defaults overridden by SCORE_WEIGHTS / SCORE_RANGES (JSON objects).
    Raises ScoringConfigError on a bad value so misconfiguration fails at startup.
    """
    weights = dict(DEFAULT_WEIGHTS)
    ranges = {c: DEFAULT_RANGE for c in CRITERIA}

    env_weights = _json_env("SCORE_WEIGHTS")
    if env_weights is not None:
        # Weights are replaced as a whole so the sum check sees what was configured.
        weights = parse_weights(env_weights)

    env_ranges = _json_env("SCORE_RANGES")
    if env_ranges is not None:
        ranges.update(parse_ranges(env_ranges))

    return ScoringConfig(weights=weights, ranges=ranges)


BASE_SCORING_CONFIG = load_scoring_config_from_env()


def out_of_range_criteria(values: Mapping[str, float], config: ScoringConfig) -> List[str]:
    bad = []
    for criterion in CRITERIA:
        value = values.get(criterion)
        if value is None:
            bad.append(criterion)
            continue
        low, high = config.range_for(criterion)
        # NaN compares false against both bounds.
        if not (low <= float(value) <= high):
            bad.append(criterion)
    return bad
