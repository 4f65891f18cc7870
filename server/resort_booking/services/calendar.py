"""Half-open date interval arithmetic shared by availability and pricing."""

from datetime import date, timedelta
from typing import Iterator


def overlaps(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Return True when [a_start, a_end) and [b_start, b_end) share at least one day."""
    return a_start < b_end and b_start < a_end


def occupies(check_in: date, check_out: date, day: date) -> bool:
    """Return True when a stay of [check_in, check_out) holds the room on ``day``."""
    return check_in <= day < check_out


def iter_nights(check_in: date, check_out: date) -> Iterator[date]:
    """Yield each night of the stay; the checkout day is not a night."""
    day = check_in
    while day < check_out:
        yield day
        day += timedelta(days=1)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield each calendar day of the inclusive range [start, end]."""
    return iter_nights(start, end + timedelta(days=1))


def night_count(check_in: date, check_out: date) -> int:
    return max(0, (check_out - check_in).days)


def is_weekend(day: date) -> bool:
    """Saturday and Sunday nights are billed at the weekend rate."""
    return day.weekday() >= 5


def day_of_week(day: date) -> int:
    """Day number with 0 = Sunday through 6 = Saturday."""
    return day.isoweekday() % 7
