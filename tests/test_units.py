import math

import pytest

from coastal_obs.core import units


def test_conversion_factors():
    assert units.ms_to_knots(1) == pytest.approx(1.94384)
    assert units.meters_to_feet(1) == pytest.approx(3.28084)
    assert units.nautical_to_statute_miles(1) == pytest.approx(1.15078)
    assert units.km_to_statute_miles(1) == pytest.approx(0.62137)


@pytest.mark.parametrize("value", [None, "", "MM", "mm", " MM ", "NaN", "null", float("nan"), float("inf"), "abc"])
def test_missing_values_become_none(value):
    assert units.to_float(value) is None


def test_missing_never_becomes_zero():
    assert units.ms_to_knots("MM") is None
    assert units.meters_to_feet(None) is None


def test_to_float_parses_strings_and_numbers():
    assert units.to_float("1.25") == 1.25
    assert units.to_float(" 3 ") == 3.0
    assert units.to_float(7) == 7.0


def test_normalize_direction():
    assert units.normalize_direction(360) == 0.0
    assert units.normalize_direction("270") == 270.0
    assert units.normalize_direction(-5) is None
    assert units.normalize_direction(400) is None
    assert units.normalize_direction("MM") is None


def test_mean_direction_averages_before_folding():
    assert units.mean_direction([360, 358]) == 359.0
    assert units.mean_direction([360, 360]) == 0.0
    assert units.mean_direction([350, 10]) == 180.0
    assert units.mean_direction([400, -5, "MM", 90]) == 90.0
    assert units.mean_direction(["MM"]) is None


def test_non_negative_rejects_negative_readings():
    assert units.non_negative(-0.1) is None
    assert units.non_negative(0) == 0.0


def test_mean_ignores_missing():
    assert units.mean(["1", "MM", 3, None]) == 2.0
    assert units.mean(["MM", None]) is None
    assert math.isclose(units.mean([0.1, 0.2]), 0.15)


def test_round_value():
    assert units.round_value(1.23456, 3) == 1.235
    assert units.round_value(None, 3) is None
