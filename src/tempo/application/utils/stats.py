"""Small numeric helpers shared by the analyzers."""

import math
from collections.abc import Iterable


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (SM-2 interval rounding)."""
    return int(math.floor(value + 0.5))


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def mean(values: Iterable[float], default: float = 0.0) -> float:
    items = list(values)
    if not items:
        return default
    return math.fsum(items) / len(items)


def success_rate(outcomes: Iterable[bool], default: float = 0.0) -> float:
    items = list(outcomes)
    if not items:
        return default
    return sum(1 for ok in items if ok) / len(items)


def binary_variance(outcomes: Iterable[bool]) -> float:
    """Population variance of a sequence of pass/fail outcomes."""
    values = [1.0 if ok else 0.0 for ok in outcomes]
    if len(values) < 2:
        return 0.0
    avg = math.fsum(values) / len(values)
    return math.fsum((v - avg) ** 2 for v in values) / len(values)


def percent_change(old: float, new: float) -> float:
    """Percentage change from old to new; 0 when old is 0."""
    if old == 0:
        return 0.0
    return (new - old) / old * 100
