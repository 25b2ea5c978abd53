"""Premium access period calculation."""

import calendar as cal
from datetime import datetime


def add_months(dt: datetime, months: int) -> datetime:
    """Add months to a datetime, clamping to last day of month."""
    month = dt.month - 1 + months
    year = dt.year + month // 12
    month = month % 12 + 1
    max_day = cal.monthrange(year, month)[1]
    day = min(dt.day, max_day)
    return dt.replace(year=year, month=month, day=day)


def next_premium_expiry(
    now: datetime,
    current_expiry: datetime | None,
    months: int = 1,
) -> datetime:
    """Expiry after one paid billing period.

    A renewal paid while premium is still running is stacked on top of the
    remaining time instead of starting from ``now``.
    """
    start = now
    if current_expiry is not None and current_expiry > now:
        start = current_expiry
    return add_months(start, months)
