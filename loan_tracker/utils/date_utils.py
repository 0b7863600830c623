"""Date manipulation utilities"""

from datetime import date, datetime, timezone

from dateutil.relativedelta import relativedelta


def add_months(from_date: date, months: int) -> date:
    """Add calendar months, clamping the day to the end of shorter months (Jan 31 + 1 -> Feb 28/29)"""
    return from_date + relativedelta(months=months)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
