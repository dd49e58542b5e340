"""
Calendar helpers pinned to the tenant's timezone.

Day arithmetic ("is this date in the past", "which day is tomorrow") is done
on calendar dates in the tenant zone, never on raw instants, so that a
request made shortly before midnight lands on the correct day.
"""

import datetime
from typing import Optional, Union

import pendulum
from pendulum import Date, DateTime

InstantLike = Union[DateTime, datetime.datetime]


def to_instant(value: Optional[InstantLike] = None) -> DateTime:
    """
    Coerce a datetime into a pendulum DateTime.

    ``None`` means "now"; naive datetimes are interpreted as UTC.
    """
    if value is None:
        return pendulum.now("UTC")
    if isinstance(value, DateTime):
        return value
    return pendulum.instance(value)


def to_tenant_date(value: InstantLike, timezone: str) -> Date:
    """Return the calendar date an instant falls on in the tenant zone."""
    return to_instant(value).in_timezone(timezone).date()


def tenant_today(now: Optional[InstantLike], timezone: str) -> Date:
    return to_tenant_date(to_instant(now), timezone)


def is_past_date(day: datetime.date, now: Optional[InstantLike], timezone: str) -> bool:
    """Check whether a calendar date is strictly before today in the tenant zone."""
    return day < tenant_today(now, timezone)
