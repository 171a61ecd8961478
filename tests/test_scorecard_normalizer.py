"""Tests for 1-5 scale / percentage conversions."""

import pytest

from app.services.scorecards.normalizer import (
    clamp_metric,
    metric_to_percentage,
    percentage_metrics,
    percentage_to_metric,
)


@pytest.mark.parametrize("raw, expected", [(1, 20.0), (3, 60.0), (5, 100.0)])
def test_metric_to_percentage(raw, expected):
    assert metric_to_percentage(raw) == expected


def test_metric_to_percentage_clamps_out_of_range():
    assert metric_to_percentage(7) == 100.0
    assert metric_to_percentage(-2) == 0.0
    assert metric_to_percentage(None) == 0.0
    assert metric_to_percentage("junk") == 0.0


@pytest.mark.parametrize(
    "pct, expected",
    [(0, 1), (20, 1), (50, 3), (59.9, 3), (70, 4), (80, 4), (90, 5), (100, 5), (150, 5), (-10, 1)],
)
def test_percentage_to_metric(pct, expected):
    assert percentage_to_metric(pct) == expected


def test_percentage_to_metric_rounds_half_up():
    # 50% of 5 is exactly 2.5
    assert percentage_to_metric(50) == 3
    assert percentage_to_metric(30) == 2


def test_percentage_to_metric_junk_is_minimum():
    assert percentage_to_metric(None) == 1
    assert percentage_to_metric("n/a") == 1
    assert percentage_to_metric(float("nan")) == 1


def test_clamp_metric():
    assert clamp_metric(0) == 1
    assert clamp_metric(9) == 5
    assert clamp_metric(3.4) == 3
    assert clamp_metric(float("inf")) == 5
    assert clamp_metric(True) == 1


def test_percentage_metrics():
    assert percentage_metrics({"service": 4, "lateness": 2}) == {"service": 80.0, "lateness": 40.0}
