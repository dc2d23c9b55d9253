"""UTC datetime and stay-date utilities."""

from datetime import date, datetime, timedelta, timezone
from typing import Iterator


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-aware datetime.

    This function should be used instead of datetime.now() or datetime.utcnow()
    to ensure all timestamps are timezone-aware and stored in UTC.

    Returns:
        Timezone-aware datetime in UTC

    Example:
        >>> now = utc_now()
        >>> now.tzinfo is not None
        True
    """
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Return the current calendar date in UTC."""
    return utc_now().date()


def nights_between(check_in: date, check_out: date) -> int:
    """Number of nights in the half-open stay [check_in, check_out)."""
    return (check_out - check_in).days


def stay_dates(check_in: date, check_out: date) -> Iterator[date]:
    """
    Yield every night of the half-open range [check_in, check_out).

    The check-out day itself is never yielded, so a stay ending on a date
    and another starting on it share no night.

    Example:
        >>> list(stay_dates(date(2025, 1, 1), date(2025, 1, 3)))
        [datetime.date(2025, 1, 1), datetime.date(2025, 1, 2)]
    """
    current = check_in
    while current < check_out:
        yield current
        current += timedelta(days=1)
