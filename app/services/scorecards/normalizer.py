"""Conversions between the 1-5 metric scale and 0-100 percentages.

All functions are total: out-of-range or junk input is clamped rather than
rejected, so a noisy cell never fails a whole report.
"""

from __future__ import annotations

import math
from typing import Any

from app.services.common import clamp

METRIC_MIN = 1
METRIC_MAX = 5
METRIC_MIDPOINT = 3
PERCENTAGE_MIN = 0.0
PERCENTAGE_MAX = 100.0


def _to_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_metric(value: Any) -> int:
    number = _to_number(value)
    if number is None:
        return METRIC_MIN
    if math.isinf(number):
        return METRIC_MAX if number > 0 else METRIC_MIN
    return int(clamp(_round_half_up(number), METRIC_MIN, METRIC_MAX))


def metric_to_percentage(raw: Any) -> float:
    number = _to_number(raw)
    if number is None:
        return PERCENTAGE_MIN
    return clamp(number * 100 / METRIC_MAX, PERCENTAGE_MIN, PERCENTAGE_MAX)


def percentage_to_metric(pct: Any) -> int:
    number = _to_number(pct)
    if number is None:
        return METRIC_MIN
    bounded = clamp(number, PERCENTAGE_MIN, PERCENTAGE_MAX)
    return int(clamp(_round_half_up(bounded * METRIC_MAX / 100), METRIC_MIN, METRIC_MAX))


def percentage_metrics(metrics: dict[str, int]) -> dict[str, float]:
    return {name: round(metric_to_percentage(value), 2) for name, value in metrics.items()}
