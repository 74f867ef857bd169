"""Session duration parsing.

Durations use the compact unit-suffixed form ("15m", "1h", "1h30m", "1.5h").
Supported units: ns, us (or µs), ms, s, m, h.
"""
import re
from datetime import timedelta

from .errors import InvalidDurationError

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration string into a timedelta.

    Args:
        value: Duration such as "1h" or "2h45m"

    Returns:
        Positive timedelta

    Raises:
        InvalidDurationError: If the string is empty, malformed, uses an
            unknown unit, or is not strictly positive
    """
    if value is None or not value.strip():
        raise InvalidDurationError(str(value or ""), "empty duration")

    text = value.strip()
    position = 0
    seconds = 0.0
    while position < len(text):
        match = _COMPONENT.match(text, position)
        if not match:
            raise InvalidDurationError(value)
        number, unit = match.groups()
        seconds += float(number) * _UNIT_SECONDS[unit]
        position = match.end()

    if seconds <= 0:
        raise InvalidDurationError(value, "duration must be greater than zero")

    return timedelta(seconds=seconds)
