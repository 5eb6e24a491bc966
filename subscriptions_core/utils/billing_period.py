"""Billing period and duration utilities.

Parses the ISO 8601 duration strings used for billing periods and receipt
expiration settings and applies them to UTC datetimes.
"""

import re
from datetime import datetime, timedelta, timezone

# Milliseconds in common time units
MILLIS_PER_SECOND = 1000
MILLIS_PER_MINUTE = 60 * MILLIS_PER_SECOND
MILLIS_PER_HOUR = 60 * MILLIS_PER_MINUTE
MILLIS_PER_DAY = 24 * MILLIS_PER_HOUR
MILLIS_PER_WEEK = 7 * MILLIS_PER_DAY
MILLIS_PER_MONTH = 30 * MILLIS_PER_DAY  # Standard approximation for billing
MILLIS_PER_YEAR = 365 * MILLIS_PER_DAY  # Standard approximation for billing

_UNIT_MILLIS = {
    "D": MILLIS_PER_DAY,
    "W": MILLIS_PER_WEEK,
    "M": MILLIS_PER_MONTH,
    "Y": MILLIS_PER_YEAR,
}

_PERIOD_PATTERN = re.compile(r"^(\d+)?([DWMY])$")


def parse_billing_period(period: str) -> int:
    """Parse ISO 8601 duration string to milliseconds.

    Supported formats: P[n]D, P[n]W, P[n]M, P[n]Y. Months are approximated as
    30 days and years as 365 days.

    Args:
        period: ISO 8601 duration string (e.g., "P1M", "P30D")

    Returns:
        Duration in milliseconds

    Raises:
        ValueError: If the period string is invalid or unsupported

    Examples:
        >>> parse_billing_period("P1D")
        86400000

        >>> parse_billing_period("P1M")
        2592000000
    """
    if not period or not isinstance(period, str):
        raise ValueError("Period must be a non-empty string")

    period = period.strip().upper()

    if not period.startswith("P"):
        raise ValueError(f"Invalid period format: '{period}'. Must start with 'P'")

    duration_str = period[1:]
    if not duration_str:
        raise ValueError(f"Invalid period format: '{period}'. No duration specified")

    match = _PERIOD_PATTERN.match(duration_str)
    if not match:
        raise ValueError(
            f"Unsupported period format: '{period}'. "
            "Supported formats: P[n]D, P[n]W, P[n]M, P[n]Y"
        )

    number_str, unit = match.groups()
    number = int(number_str) if number_str else 1

    if number <= 0:
        raise ValueError(f"Period number must be positive, got: {number}")

    return number * _UNIT_MILLIS[unit]


def billing_period_to_timedelta(period: str) -> timedelta:
    """Convert ISO 8601 duration string to a timedelta.

    Examples:
        >>> billing_period_to_timedelta("P1W")
        datetime.timedelta(days=7)
    """
    return timedelta(milliseconds=parse_billing_period(period))


def validate_billing_period(period: str) -> bool:
    """Return True if ``period`` is a supported ISO 8601 duration."""
    try:
        parse_billing_period(period)
        return True
    except (ValueError, TypeError):
        return False


def billing_cycles_elapsed(start: datetime, now: datetime, period: str) -> int:
    """Count billing periods started between ``start`` and ``now``.

    The period starting at ``start`` counts as the first one, so the result is
    at least 1 whenever ``now >= start``.

    Raises:
        ValueError: If ``now`` is before ``start``
    """
    if now < start:
        raise ValueError("now must not be before start")
    period_millis = parse_billing_period(period)
    elapsed_millis = int((now - start).total_seconds() * MILLIS_PER_SECOND)
    return elapsed_millis // period_millis + 1


def truncate_to_day(moment: datetime) -> datetime:
    """Truncate a datetime to midnight UTC of its day."""
    moment = moment.astimezone(timezone.utc)
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)
