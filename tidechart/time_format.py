"""Decimal-hour to clock-time formatting."""
import math

MINUTES_PER_DAY = 24 * 60


def format_hhmm(decimal_hours: float) -> str:
    """
    Format a decimal hour count as a zero-padded 24-hour "HH:MM" string.

    The value is rounded to the nearest minute (halves round up) and wrapped
    into a single day, so 23:59:30 and later read "00:00" and negative
    values count back from midnight.

    Args:
        decimal_hours: Hours, e.g. 12.5 for half past noon

    Returns:
        Time string such as "12:30"

    Raises:
        ValueError: If decimal_hours is NaN or infinite
    """
    if not math.isfinite(decimal_hours):
        raise ValueError(f"Cannot format non-finite hour value: {decimal_hours}")

    minutes = math.floor(decimal_hours * 60 + 0.5) % MINUTES_PER_DAY
    hours, minutes = divmod(minutes, 60)
    return f"{hours:02d}:{minutes:02d}"
