# app/services/date_helpers.py
#
# Date Helper Functions
# Month ranges for reports and the calendar arithmetic the detector and the
# burn-rate analytics share.

import calendar
from datetime import date
from typing import Optional, Tuple


# ---- Month arithmetic ----

def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def shift_months(d: date, months: int) -> date:
    """Same day `months` later (negative = earlier), clamped to month end."""
    index = d.year * 12 + (d.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    return date(year, month, min(d.day, days_in_month(year, month)))


def previous_month(d: date) -> Tuple[int, int]:
    if d.month == 1:
        return d.year - 1, 12
    return d.year, d.month - 1


# ---- Date Range Utilities ----

def get_month_range(month_str: Optional[str] = None, today: Optional[date] = None):
    """
    month_str: 'YYYY-MM' or None.
    Returns (start_date, end_date_inclusive, normalized_month_str).
    If month_str is None or invalid, uses the month of `today`.
    """
    today = today or date.today()

    # 1) pick year/month
    year, month = today.year, today.month
    if month_str:
        try:
            year_str, month_only_str = month_str.split("-")
            y, m = int(year_str), int(month_only_str)
            if 1 <= m <= 12:
                year, month = y, m
        except ValueError:
            pass

    # 2) first and last day
    start_date = date(year, month, 1)
    end_date = date(year, month, days_in_month(year, month))

    normalized = f"{year:04d}-{month:02d}"
    return start_date, end_date, normalized
