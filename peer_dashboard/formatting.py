"""Human-readable renderings of byte counts and durations.

Both helpers accept ``None`` for a value that is not known yet and return a
fixed placeholder for it, so callers never have to special-case startup.
"""
from typing import Optional

KB = 1024
MB = 1024 ** 2
GB = 1024 ** 3

MINUTE = 60
HOUR = 60 * MINUTE
DAY = 24 * HOUR

UNKNOWN_SIZE = "-"
UNKNOWN_DURATION = "--:--"


def format_size(n: Optional[float]) -> str:
    """Formats a byte count with a single-letter unit suffix.

    Args:
        n: The number of bytes (or bytes per second), or `None` if unknown.

    Returns:
        A string such as "500b", "2k", "1.5m" or "3.00g". Unknown values are
        rendered as "-".
    """
    if n is None:
        return UNKNOWN_SIZE
    if n < KB:
        return f"{round(n)}b"
    if n < MB:
        return f"{round(n / KB)}k"
    if n < GB:
        return f"{n / MB:.1f}m"
    return f"{n / GB:.2f}g"


def format_duration(seconds: Optional[float]) -> str:
    """Formats a number of seconds as a clock-style duration.

    Fractional seconds are truncated and negative values are clamped to zero.

    Args:
        seconds: The duration in seconds, or `None` if unknown.

    Returns:
        "0:SS", "M:SS", "H:MM:SS" or "Dd H:MM:SS" depending on magnitude.
        Unknown values are rendered as "--:--".
    """
    if seconds is None:
        return UNKNOWN_DURATION
    total = max(int(seconds), 0)
    if total < MINUTE:
        return f"0:{total:02d}"
    if total < HOUR:
        minutes, secs = divmod(total, MINUTE)
        return f"{minutes}:{secs:02d}"
    if total < DAY:
        hours, rest = divmod(total, HOUR)
        minutes, secs = divmod(rest, MINUTE)
        return f"{hours}:{minutes:02d}:{secs:02d}"
    days, rest = divmod(total, DAY)
    hours, rest = divmod(rest, HOUR)
    minutes, secs = divmod(rest, MINUTE)
    return f"{days}d {hours}:{minutes:02d}:{secs:02d}"
