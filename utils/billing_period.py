"""
Billing period arithmetic for subscription end dates.
"""
import calendar
from datetime import timedelta

DEFAULT_PERIOD_DAYS = 30


def add_months(start, months):
    """Advance by calendar months, clamping the day to the end of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def compute_end_date(start, interval):
    """
    End of the billing period that begins at start.
    monthly -> +1 calendar month, yearly -> +1 calendar year, anything else -> +30 days.
    """
    if interval == 'monthly':
        return add_months(start, 1)
    if interval == 'yearly':
        return add_months(start, 12)
    return start + timedelta(days=DEFAULT_PERIOD_DAYS)
