"""Month-over-month trends over a scorecard series.

Every function takes the series most-recent-first, the order returned by
``ScorecardStore.recent_series``. The comparison is a plain first-vs-last
delta; no smoothing or regression is applied.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from app.services.common import safe_div
from app.services.scorecards.calculator import METRIC_NAMES


class PeriodScore(Protocol):
    year: int
    month: int
    percentage: float
    total_score: float


@dataclass(frozen=True)
class PeriodDelta:
    year: int
    month: int
    percentage: float
    delta: float | None


@dataclass
class TrendResult:
    current_percentage: float = 0.0
    previous_percentage: float | None = None
    improvement_delta: float = 0.0
    session_count: int = 0
    average_percentage: float = 0.0
    deltas: list[PeriodDelta] = field(default_factory=list)


def _pct(item: Any) -> float:
    return float(getattr(item, "percentage", 0) or 0)


def month_over_month(series: Sequence[PeriodScore]) -> list[PeriodDelta]:
    deltas: list[PeriodDelta] = []
    for index, item in enumerate(series):
        older = series[index + 1] if index + 1 < len(series) else None
        delta = round(_pct(item) - _pct(older), 2) if older is not None else None
        deltas.append(PeriodDelta(year=item.year, month=item.month, percentage=_pct(item), delta=delta))
    return deltas


def calculate_trend(series: Sequence[PeriodScore]) -> TrendResult:
    if not series:
        return TrendResult()
    percentages = [_pct(item) for item in series]
    improvement = percentages[0] - percentages[-1] if len(percentages) >= 2 else 0.0
    return TrendResult(
        current_percentage=percentages[0],
        previous_percentage=percentages[1] if len(percentages) >= 2 else None,
        improvement_delta=round(improvement, 2),
        session_count=len(percentages),
        average_percentage=round(safe_div(sum(percentages), len(percentages)), 2),
        deltas=month_over_month(series),
    )


def metric_deltas(current: Any, previous: Any) -> dict[str, float]:
    keys = (*METRIC_NAMES, "total_score", "percentage")
    return {key: round(float(getattr(current, key, 0) or 0) - float(getattr(previous, key, 0) or 0), 2) for key in keys}


def average_metrics(series: Sequence[Any]) -> dict[str, float]:
    keys = (*METRIC_NAMES, "total_score", "percentage")
    count = len(series)
    return {
        key: round(safe_div(sum(float(getattr(item, key, 0) or 0) for item in series), count), 2) for key in keys
    }


def previous_period(year: int, month: int) -> tuple[int, int]:
    """Calendar month before (year, month); January steps back into December."""
    if month == 1:
        return year - 1, 12
    return year, month - 1
