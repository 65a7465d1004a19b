import pytest

from helpers import NOW
from tempo.application.utils.clock import fixed_clock, hour_of_day
from tempo.application.utils.ids import generate_id
from tempo.application.utils.stats import (
    binary_variance,
    clamp,
    mean,
    percent_change,
    round_half_up,
    success_rate,
)


@pytest.mark.parametrize(
    "value,expected",
    [(2.5, 3), (13.5, 14), (16.49, 16), (0.5, 1), (15.0, 15)],
)
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


def test_clamp():
    assert clamp(5, 0, 1) == 1
    assert clamp(-5, 0, 1) == 0
    assert clamp(0.4, 0, 1) == 0.4


def test_mean_and_success_rate_defaults():
    assert mean([]) == 0.0
    assert mean([], default=0.5) == 0.5
    assert mean([0.1] * 10) == pytest.approx(0.1)
    assert success_rate([], default=1.0) == 1.0
    assert success_rate([True, False, True, True]) == 0.75


def test_binary_variance():
    assert binary_variance([True]) == 0.0
    assert binary_variance([True, True, True]) == 0.0
    assert binary_variance([True, False]) == pytest.approx(0.25)


def test_percent_change():
    assert percent_change(0.5, 0.6) == pytest.approx(20.0)
    assert percent_change(0.0, 0.6) == 0.0


def test_hour_of_day_respects_timezone():
    assert hour_of_day(NOW) == 12
    assert hour_of_day(NOW, "America/New_York") == 7
    assert hour_of_day(NOW, "Asia/Tokyo") == 21


def test_fixed_clock():
    clock = fixed_clock(NOW)
    assert clock() == NOW


def test_generate_id_is_prefixed_and_unique():
    first = generate_id("rev")
    second = generate_id("rev")
    assert first.startswith("rev_")
    assert len(first) == len("rev_") + 26
    assert first != second
