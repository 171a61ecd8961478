"""Weighted composite score for the eight call-center metrics.

The calculator is direction-agnostic: ``lateness`` and ``break_exceeds`` are
weighted exactly like the other six metrics. Callers holding "lower is better"
raw values must convert them with :func:`invert_metric` before building a
:class:`MetricSet`.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import asdict, dataclass, replace
from typing import Any

from app.services.common import safe_div
from app.services.scorecards.errors import ScorecardValidationError
from app.services.scorecards.normalizer import METRIC_MAX, METRIC_MIDPOINT, METRIC_MIN

METRIC_NAMES: tuple[str, ...] = (
    "service",
    "productivity",
    "quality",
    "assiduity",
    "performance",
    "adherence",
    "lateness",
    "break_exceeds",
)

# camelCase names used by older payloads and the spreadsheet layer
METRIC_ALIASES: dict[str, str] = {"breakExceeds": "break_exceeds"}

DEFAULT_WEIGHT = 1.0


def _canonical(mapping: Mapping[str, Any] | None) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for key, value in (mapping or {}).items():
        name = METRIC_ALIASES.get(key, key)
        if name.endswith("Weight"):
            name = METRIC_ALIASES.get(name[: -len("Weight")], name[: -len("Weight")])
        if name in METRIC_NAMES:
            data[name] = value
    return data


def _coerce_metric(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ScorecardValidationError("invalid_metric", f"{name} must be an integer between 1 and 5")
    if isinstance(value, float):
        if not value.is_integer():
            raise ScorecardValidationError("invalid_metric", f"{name} must be an integer between 1 and 5")
        value = int(value)
    if not isinstance(value, int):
        raise ScorecardValidationError("invalid_metric", f"{name} must be an integer between 1 and 5")
    if value < METRIC_MIN or value > METRIC_MAX:
        raise ScorecardValidationError("metric_out_of_range", f"{name} must be between 1 and 5 (got {value})")
    return value


def _coerce_weight(name: str, value: Any) -> float:
    try:
        weight = float(value)
    except (TypeError, ValueError) as exc:
        raise ScorecardValidationError("invalid_weight", f"{name} weight must be a number") from exc
    if math.isnan(weight) or math.isinf(weight) or weight < 0:
        raise ScorecardValidationError("invalid_weight", f"{name} weight must be a non-negative number")
    return weight


@dataclass(frozen=True)
class MetricSet:
    service: int
    productivity: int
    quality: int
    assiduity: int
    performance: int
    adherence: int
    lateness: int
    break_exceeds: int

    def __post_init__(self) -> None:
        for name in METRIC_NAMES:
            object.__setattr__(self, name, _coerce_metric(name, getattr(self, name)))

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> MetricSet:
        data = _canonical(mapping)
        missing = [name for name in METRIC_NAMES if data.get(name) is None]
        if missing:
            raise ScorecardValidationError("missing_metric", f"Missing metrics: {', '.join(missing)}")
        return cls(**data)

    @classmethod
    def from_partial(cls, mapping: Mapping[str, Any] | None) -> MetricSet:
        """Legacy merge: absent metrics default to the scale midpoint."""
        data = {name: METRIC_MIDPOINT for name in METRIC_NAMES}
        data.update({k: v for k, v in _canonical(mapping).items() if v is not None})
        return cls(**data)

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class WeightSet:
    service: float = DEFAULT_WEIGHT
    productivity: float = DEFAULT_WEIGHT
    quality: float = DEFAULT_WEIGHT
    assiduity: float = DEFAULT_WEIGHT
    performance: float = DEFAULT_WEIGHT
    adherence: float = DEFAULT_WEIGHT
    lateness: float = DEFAULT_WEIGHT
    break_exceeds: float = DEFAULT_WEIGHT

    def __post_init__(self) -> None:
        for name in METRIC_NAMES:
            object.__setattr__(self, name, _coerce_weight(name, getattr(self, name)))

    @classmethod
    def from_partial(cls, mapping: Mapping[str, Any] | None) -> WeightSet:
        data = {k: v for k, v in _canonical(mapping).items() if v is not None}
        return cls(**data)

    @property
    def total(self) -> float:
        return sum(getattr(self, name) for name in METRIC_NAMES)

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class ScoreResult:
    total_score: float
    percentage: float
    max_attainable: float

    def rounded(self) -> ScoreResult:
        return replace(
            self,
            total_score=round(self.total_score, 2),
            percentage=round(self.percentage, 2),
            max_attainable=round(self.max_attainable, 2),
        )


def calculate_score(metrics: MetricSet, weights: WeightSet | None = None) -> ScoreResult:
    weights = weights or WeightSet()
    total = sum(getattr(metrics, name) * getattr(weights, name) for name in METRIC_NAMES)
    max_attainable = METRIC_MAX * weights.total
    # all-zero weights report 0%, never NaN
    percentage = safe_div(total, max_attainable) * 100
    return ScoreResult(total_score=total, percentage=percentage, max_attainable=max_attainable)


def invert_metric(raw: int) -> int:
    """Flip a "lower is better" raw score onto the 1-5 "higher is better" scale."""
    return METRIC_MAX + METRIC_MIN - raw
