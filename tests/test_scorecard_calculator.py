"""Tests for the weighted scorecard calculator."""

import itertools
import math

import pytest

from app.services.scorecards.calculator import (
    METRIC_NAMES,
    MetricSet,
    WeightSet,
    calculate_score,
    invert_metric,
)
from app.services.scorecards.errors import ScorecardValidationError


def _metrics(value=3, **overrides):
    data = {name: value for name in METRIC_NAMES}
    data.update(overrides)
    return MetricSet(**data)


def test_default_weights_all_fives_is_100_percent():
    result = calculate_score(_metrics(5))
    assert result.total_score == 40
    assert result.max_attainable == 40
    assert result.percentage == 100.0


def test_weighted_score():
    metrics = _metrics(3, service=5, quality=1)
    weights = WeightSet(service=2.0, quality=0.5)
    result = calculate_score(metrics, weights)
    # 5*2 + 1*0.5 + 6 metrics * 3 * 1
    assert result.total_score == pytest.approx(28.5)
    assert result.max_attainable == pytest.approx(5 * 8.5)
    assert result.percentage == pytest.approx(28.5 / 42.5 * 100)


def test_zero_weights_report_zero_percent():
    zero = WeightSet(**{name: 0 for name in METRIC_NAMES})
    result = calculate_score(_metrics(5), zero)
    assert result.percentage == 0
    assert result.total_score == 0
    assert not math.isnan(result.percentage)


@pytest.mark.parametrize(
    "value, weight",
    list(itertools.product([1, 2, 3, 4, 5], [0.0, 0.25, 1.0, 3.0, 100.0])),
)
def test_percentage_stays_within_bounds(value, weight):
    metrics = _metrics(value, service=1, break_exceeds=5)
    weights = WeightSet(**{name: weight for name in METRIC_NAMES}) if weight else WeightSet(service=0.0)
    result = calculate_score(metrics, weights)
    assert 0 <= result.percentage <= 100


def test_rounded_keeps_two_decimals():
    result = calculate_score(_metrics(3, service=4), WeightSet(service=1 / 3)).rounded()
    assert result.percentage == round(result.percentage, 2)
    assert result.total_score == round(result.total_score, 2)


@pytest.mark.parametrize("bad", [0, 6, 2.5, "4", None, True])
def test_metric_set_rejects_invalid_values(bad):
    with pytest.raises(ScorecardValidationError):
        _metrics(3, quality=bad)


def test_metric_set_accepts_integral_floats():
    assert _metrics(3, quality=4.0).quality == 4


def test_from_mapping_requires_every_metric():
    with pytest.raises(ScorecardValidationError) as exc:
        MetricSet.from_mapping({"service": 4})
    assert exc.value.code == "missing_metric"


def test_from_mapping_accepts_camel_case_alias():
    data = {name: 4 for name in METRIC_NAMES if name != "break_exceeds"}
    data["breakExceeds"] = 2
    assert MetricSet.from_mapping(data).break_exceeds == 2


def test_from_partial_defaults_to_midpoint():
    metrics = MetricSet.from_partial({"service": 5, "unknown": 1})
    assert metrics.service == 5
    assert metrics.quality == 3


@pytest.mark.parametrize("bad", [-1, float("nan"), float("inf"), "heavy"])
def test_weight_set_rejects_invalid_weights(bad):
    with pytest.raises(ScorecardValidationError):
        WeightSet(service=bad)


def test_weight_set_from_partial_accepts_weight_suffix():
    weights = WeightSet.from_partial({"serviceWeight": 2, "breakExceedsWeight": 0.5})
    assert weights.service == 2.0
    assert weights.break_exceeds == 0.5
    assert weights.quality == 1.0


def test_lateness_is_not_inverted():
    low = calculate_score(_metrics(3, lateness=1))
    high = calculate_score(_metrics(3, lateness=5))
    assert high.percentage > low.percentage


def test_invert_metric():
    assert [invert_metric(raw) for raw in (1, 2, 3, 4, 5)] == [5, 4, 3, 2, 1]
