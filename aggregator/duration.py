"""
Human durations for the aggregation period: "1h30m", "45s", "500ms",
"1h 30m 15s". Integer amounts only, units h / m / s / ms.
"""

import re
import threading
from datetime import timedelta

_COMPONENT = re.compile(r"\s*(\d+)\s*(ms|h|m|s)\s*")

_UNITS = {
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
    "ms": timedelta(milliseconds=1),
}


class InvalidDuration(ValueError):
    """Raised for empty, unparseable, zero, negative or out-of-range durations."""
    pass


def parse_duration(text: str) -> timedelta:
    """Parse a duration string. The result is always positive."""
    if not text or not text.strip():
        raise InvalidDuration("empty duration")

    total = timedelta(0)
    pos = 0
    while pos < len(text):
        match = _COMPONENT.match(text, pos)
        if not match:
            raise InvalidDuration(f"can't parse duration {text!r}")
        amount, unit = match.groups()
        try:
            total += int(amount) * _UNITS[unit]
        except OverflowError as e:
            raise InvalidDuration(f"duration too large: {text!r}") from e
        pos = match.end()

    if total <= timedelta(0):
        raise InvalidDuration(f"duration must be positive, got {text!r}")
    # Event.wait can't take a longer timeout
    if total.total_seconds() > threading.TIMEOUT_MAX:
        raise InvalidDuration(f"duration too large: {text!r}")
    return total


def format_duration(value: timedelta) -> str:
    """Inverse of parse_duration for display: 5400s -> '1h30m'."""
    ms = int(value.total_seconds() * 1000)
    parts = []
    for unit, size in (("h", 3_600_000), ("m", 60_000), ("s", 1000), ("ms", 1)):
        if ms >= size:
            parts.append(f"{ms // size}{unit}")
            ms %= size
    return "".join(parts) or "0s"
