"""
Billing period utilities for monthly billing cycles that start on an
arbitrary day of the month.

All dates are computed at a fixed UTC offset (UTC-8 by default) so the
billing window does not move with the machine's local timezone.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel

from config import DEFAULT_UTC_OFFSET_HOURS

logger = logging.getLogger(__name__)


class BillingWindow(BaseModel):
    """Start of the current billing period."""

    start_date: date
    start_time: datetime

    @property
    def start_timestamp(self) -> int:
        """Billing start as epoch seconds, comparable with index start/end."""
        return int(self.start_time.timestamp())


def fixed_offset(utc_offset_hours: int = DEFAULT_UTC_OFFSET_HOURS) -> timezone:
    return timezone(timedelta(hours=utc_offset_hours))


def localized_now(utc_offset_hours: int = DEFAULT_UTC_OFFSET_HOURS) -> datetime:
    """Get the current time at the billing offset."""
    return datetime.now(fixed_offset(utc_offset_hours))


def find_valid_date(year: int, month: int, day: int) -> date:
    """
    Build a date, repairing out-of-range months and days.

    Months outside 1-12 roll into the neighbouring year (month 0 is December
    of ``year - 1``). A day past the end of the month is clamped to the last
    day of that month, e.g. day 31 in April gives April 30.

    Args:
        year: Calendar year.
        month: Month number, may be 0 or negative after subtraction.
        day: Requested day of month (1-31).

    Returns:
        The nearest valid date not after the requested day.
    """
    if day < 1:
        raise ValueError(f"day must be >= 1, got {day}")
    return date(year, 1, 1) + relativedelta(months=month - 1, day=day)


def billing_period_start_date(today: date, start_day: int) -> date:
    """
    Get the most recent billing period start on or before ``today``.

    Args:
        today: The reference date, already localized to the billing offset.
        start_day: Configured day of month the period starts on (1-31).

    Returns:
        The billing period start date.
    """
    if not 1 <= start_day <= 31:
        raise ValueError(f"billing period start day must be between 1 and 31, got {start_day}")

    month = today.month - 1 if today.day < start_day else today.month
    return find_valid_date(today.year, month, start_day)


def calculate_billing_window(
    start_day: int,
    now: Optional[datetime] = None,
    utc_offset_hours: int = DEFAULT_UTC_OFFSET_HOURS,
) -> BillingWindow:
    """
    Calculate the start of the current billing period.

    Args:
        start_day: Configured day of month the period starts on.
        now: Reference time; naive values are taken as already local to the
            billing offset. Defaults to the current time.
        utc_offset_hours: Fixed offset the billing period is defined in.

    Returns:
        BillingWindow with the start date and its local-midnight instant.
    """
    tz = fixed_offset(utc_offset_hours)
    if now is None:
        now = localized_now(utc_offset_hours)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=tz)
    else:
        now = now.astimezone(tz)

    start_date = billing_period_start_date(now.date(), start_day)
    start_time = datetime(start_date.year, start_date.month, start_date.day, 0, 0, 0, tzinfo=tz)

    logger.info(
        "Billing period (start day %d) begins %s (%d)",
        start_day,
        start_date.isoformat(),
        int(start_time.timestamp()),
    )
    return BillingWindow(start_date=start_date, start_time=start_time)
