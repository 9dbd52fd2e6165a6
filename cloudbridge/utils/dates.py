"""Calendar helpers for billing windows."""

from datetime import date, datetime, timedelta
from typing import Iterator, Tuple, Union

from ..errors import ConfigError


def parse_day(value: Union[str, date, datetime]) -> date:
    """Parse a YYYY-MM-DD string (or pass a date through).

    Raises:
        ConfigError: If the value is not a valid ISO day
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ConfigError(f"Invalid date {value!r}. Use YYYY-MM-DD") from None


def check_range(start: date, end: date) -> None:
    """Raise ConfigError when an inclusive window is inverted."""
    if end < start:
        raise ConfigError(f"Invalid date range: end {end.isoformat()} is before start {start.isoformat()}")


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every day of the inclusive window."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def month_start(day: date) -> date:
    return day.replace(day=1)


def current_month_window(today: date) -> Tuple[date, date]:
    """First of the month through today, inclusive."""
    return month_start(today), today


def previous_month_window(today: date) -> Tuple[date, date]:
    """First through last day of the previous calendar month."""
    last_day = month_start(today) - timedelta(days=1)
    return month_start(last_day), last_day


def billing_cycle(day: date) -> str:
    """YYYY-MM label of the month containing day."""
    return day.strftime("%Y-%m")
