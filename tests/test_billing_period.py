from datetime import datetime, timedelta

import pytest

from utils.billing_period import add_months, compute_end_date


def test_monthly_uses_calendar_months_and_clamps_to_leap_day():
    assert compute_end_date(datetime(2024, 1, 31), "monthly") == datetime(2024, 2, 29)


def test_monthly_clamps_in_non_leap_year():
    assert compute_end_date(datetime(2023, 1, 31), "monthly") == datetime(2023, 2, 28)


def test_monthly_keeps_time_of_day():
    start = datetime(2024, 3, 15, 13, 45, 10)
    assert compute_end_date(start, "monthly") == datetime(2024, 4, 15, 13, 45, 10)


def test_monthly_rolls_over_year_end():
    assert compute_end_date(datetime(2023, 12, 31), "monthly") == datetime(2024, 1, 31)


def test_yearly_adds_one_calendar_year():
    assert compute_end_date(datetime(2023, 3, 1), "yearly") == datetime(2024, 3, 1)


def test_yearly_from_leap_day_clamps_to_feb_28():
    assert compute_end_date(datetime(2024, 2, 29), "yearly") == datetime(2025, 2, 28)


@pytest.mark.parametrize("interval", ["weekly", "", None, "MONTHLY"])
def test_unknown_interval_adds_exactly_thirty_days(interval):
    start = datetime(2024, 1, 31, 8, 0)
    assert compute_end_date(start, interval) == start + timedelta(days=30)


def test_add_months_handles_multi_year_offsets():
    assert add_months(datetime(2024, 11, 30), 15) == datetime(2026, 2, 28)
