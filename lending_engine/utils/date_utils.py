"""Date manipulation utilities"""

from datetime import date, timedelta
from typing import List


def generate_due_dates(start: date, periods: int, period_days: int) -> List[date]:
    """Due dates for each period, the first falling on start"""
    return [start + timedelta(days=i * period_days) for i in range(periods)]


def age_in_years(date_of_birth: date, as_of: date) -> int:
    """Age by calendar year, ignoring whether the birthday has passed yet"""
    return as_of.year - date_of_birth.year
