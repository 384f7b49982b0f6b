"""
Date helpers shared by the settlement and reporting services.

All timestamps are stored as naive UTC datetimes.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from dateutil.relativedelta import relativedelta


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def package_expiry(approved_at: datetime, duration: Optional[str]) -> Optional[datetime]:
    """
    Expiry date of a package approved at ``approved_at``.

    monthly -> +1 calendar month, yearly -> +1 calendar year, anything else -> None.
    Month-end dates clamp to the last day of the target month (Jan 31 -> Feb 28/29).
    """
    if duration == "monthly":
        return approved_at + relativedelta(months=1)
    if duration == "yearly":
        return approved_at + relativedelta(years=1)
    return None


def days_after(moment: datetime, days: int) -> datetime:
    return moment + timedelta(days=days)


def month_window(now: datetime, offset: int = 0) -> Tuple[datetime, datetime]:
    """[start, end) of the calendar month ``offset`` months away from ``now``'s month."""
    start = datetime(now.year, now.month, 1) + relativedelta(months=offset)
    return start, start + relativedelta(months=1)


def year_window(now: datetime) -> Tuple[datetime, datetime]:
    start = datetime(now.year, 1, 1)
    return start, datetime(now.year + 1, 1, 1)


def day_window(now: datetime) -> Tuple[datetime, datetime]:
    start = datetime(now.year, now.month, now.day)
    return start, start + timedelta(days=1)
