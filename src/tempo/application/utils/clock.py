"""Time helpers. Every service takes a clock so tests can pin "now"."""

import time
from collections.abc import Callable
from datetime import datetime
from zoneinfo import ZoneInfo

Clock = Callable[[], int]


def system_clock() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def fixed_clock(now: int) -> Clock:
    return lambda: now


def hour_of_day(timestamp_ms: int, timezone: str = "UTC") -> int:
    """Local hour (0-23) of an epoch-ms timestamp in the given IANA zone."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=ZoneInfo(timezone)).hour
