"""Unit tests for billing window helpers."""

from datetime import date

import pytest

from cloudbridge.errors import ConfigError
from cloudbridge.utils.dates import (
    billing_cycle,
    check_range,
    current_month_window,
    iter_days,
    parse_day,
    previous_month_window,
)


def test_parse_day():
    assert parse_day("2024-03-05") == date(2024, 3, 5)
    assert parse_day(date(2024, 3, 5)) == date(2024, 3, 5)


def test_parse_day_invalid():
    with pytest.raises(ConfigError, match="YYYY-MM-DD"):
        parse_day("03/05/2024")


def test_check_range_rejects_inverted_window():
    with pytest.raises(ConfigError):
        check_range(date(2024, 3, 2), date(2024, 3, 1))
    check_range(date(2024, 3, 1), date(2024, 3, 1))


def test_iter_days_inclusive():
    assert list(iter_days(date(2024, 2, 28), date(2024, 3, 1))) == [
        date(2024, 2, 28),
        date(2024, 2, 29),
        date(2024, 3, 1),
    ]


def test_month_windows():
    today = date(2024, 3, 15)
    assert current_month_window(today) == (date(2024, 3, 1), date(2024, 3, 15))
    assert previous_month_window(today) == (date(2024, 2, 1), date(2024, 2, 29))


def test_previous_month_window_across_year():
    assert previous_month_window(date(2024, 1, 10)) == (date(2023, 12, 1), date(2023, 12, 31))


def test_billing_cycle():
    assert billing_cycle(date(2024, 3, 15)) == "2024-03"
