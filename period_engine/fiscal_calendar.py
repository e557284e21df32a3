# SPDX-License-Identifier: Apache-2.0
"""
Fiscal period calendar.

A fiscal year is anchored to the first Sunday on/after January 1 and split into
13 consecutive 28-day periods (P1..P13).  All arithmetic is done on local
calendar dates, never on timestamps, so no time-zone drift can move a date
across a period boundary.
"""
import calendar
import datetime
from typing import List, NamedTuple

from dateutil import parser as date_parser

from period_engine.constants import (
    DATE_FORMAT,
    DAYS_PER_WEEK,
    FISCAL_YEAR_DAYS,
    PERIOD_END_OFFSET_DAYS,
    PERIOD_LENGTH_DAYS,
    PERIODS_PER_YEAR,
    REMAINDER_PERIOD,
    WEEKS_PER_PERIOD,
)


class DateRange(NamedTuple):
    """Inclusive range of local calendar dates."""
    start_date: datetime.date
    end_date: datetime.date

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def contains(self, d) -> bool:
        return self.start_date <= to_date(d) <= self.end_date

    def to_dict(self) -> dict:
        return {
            "startDate": format_date(self.start_date),
            "endDate": format_date(self.end_date),
        }


class Period(NamedTuple):
    """A single 28-day fiscal period."""
    year: int
    number: int
    start_date: datetime.date
    end_date: datetime.date

    @property
    def label(self) -> str:
        return f"P{self.number}"

    @property
    def date_range(self) -> DateRange:
        return DateRange(self.start_date, self.end_date)

    def contains(self, d) -> bool:
        return self.date_range.contains(d)

    def to_dict(self) -> dict:
        return {
            "period": self.number,
            "startDate": format_date(self.start_date),
            "endDate": format_date(self.end_date),
            "label": self.label,
            "startDay": calendar.day_abbr[self.start_date.weekday()],
            "endDay": calendar.day_abbr[self.end_date.weekday()],
        }


class PeriodInfo(NamedTuple):
    period: int
    anchor: datetime.date


class PeriodLocation(NamedTuple):
    """The fiscal year and period that actually contain a date."""
    year: int
    period: int
    remainder: bool


def to_date(value) -> datetime.date:
    """
    Normalise a date-like value to a ``datetime.date``.

    Accepts ``date``, ``datetime`` (including ``pandas.Timestamp``) and ISO
    formatted strings.  Any time-of-day or offset component is dropped; the
    engine only ever works with the local calendar date.

    Raises:
        TypeError: If the value cannot be interpreted as a date.
        ValueError: If a string is not a valid ISO date.
    """
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str):
        try:
            return date_parser.isoparse(value.strip()).date()
        except ValueError:
            raise ValueError(f"Invalid date '{value}', expected format YYYY-MM-DD")
    raise TypeError(f"Cannot interpret {value!r} of type {type(value).__name__} as a date")


def format_date(d) -> str:
    return to_date(d).strftime(DATE_FORMAT)


def date_range(start, end) -> DateRange:
    """
    Build a DateRange, enforcing ``start <= end``.

    Raises:
        ValueError: If the start date is after the end date.
    """
    start_date, end_date = to_date(start), to_date(end)
    if start_date > end_date:
        raise ValueError(f"Range start {format_date(start_date)} is after range end {format_date(end_date)}")
    return DateRange(start_date, end_date)


def first_sunday(year: int) -> datetime.date:
    """
    Returns the first Sunday on or after January 1 of the given year.

    This is the anchor of the fiscal year: period 1 starts on it.

    Args:
        year (int): The calendar year.

    Returns:
        datetime.date: The anchor date, always between Jan 1 and Jan 7.
    """
    new_year_day = datetime.date(year, 1, 1)
    # isoweekday(): Monday=1 .. Sunday=7, so % 7 gives Sunday=0 .. Saturday=6
    day_of_week = new_year_day.isoweekday() % 7
    if day_of_week == 0:
        return new_year_day
    return new_year_day + datetime.timedelta(days=7 - day_of_week)


def period_for(d, year: int) -> PeriodInfo:
    """
    Maps a date to a period number using the anchor of ``year``.

    The result is never clamped: a date before the anchor yields a period <= 0
    and a date past the 364th day yields a period > 13.  Use
    ``locate_period`` when the fiscal year containing the date is wanted.

    Args:
        d: The target date (date, datetime or ISO string).
        year (int): The fiscal year whose anchor is used.

    Returns:
        PeriodInfo: The period number and the anchor it was computed from.
    """
    anchor = first_sunday(year)
    days_since_anchor = (to_date(d) - anchor).days
    return PeriodInfo(days_since_anchor // PERIOD_LENGTH_DAYS + 1, anchor)


def period_start(year: int, number: int) -> datetime.date:
    return first_sunday(year) + datetime.timedelta(days=(number - 1) * PERIOD_LENGTH_DAYS)


def get_period(year: int, number: int) -> Period:
    start = period_start(year, number)
    return Period(year, number, start, start + datetime.timedelta(days=PERIOD_END_OFFSET_DAYS))


def periods_for_year(year: int) -> List[Period]:
    return [get_period(year, number) for number in range(1, PERIODS_PER_YEAR + 1)]


def fiscal_year_range(year: int) -> DateRange:
    """The 364 days covered by P1..P13 of a fiscal year."""
    return date_range_from_periods(year, 1, PERIODS_PER_YEAR)


def date_range_from_periods(year: int, from_period: int, to_period: int) -> DateRange:
    """
    Converts a span of periods into an inclusive date range.

    The range starts on the first day (a Sunday) of ``from_period`` and ends on
    the last day (a Saturday) of ``to_period``.

    Args:
        year (int): The fiscal year.
        from_period (int): First period of the span.
        to_period (int): Last period of the span.

    Returns:
        DateRange: The inclusive date range.

    Raises:
        ValueError: If ``from_period`` is after ``to_period``.
    """
    anchor = first_sunday(year)
    start = anchor + datetime.timedelta(days=(from_period - 1) * PERIOD_LENGTH_DAYS)
    end = anchor + datetime.timedelta(days=to_period * PERIOD_LENGTH_DAYS - 1)
    return date_range(start, end)


def locate_period(d) -> PeriodLocation:
    """
    Finds the fiscal period that contains a date.

    Dates in the first days of January that fall before their own year's anchor
    belong to the previous fiscal year.  Consecutive anchors are 364 or 371 days
    apart; the 7 days a long year leaves over after P13 are reported as period
    14 with ``remainder=True``.

    Args:
        d: The date to locate.

    Returns:
        PeriodLocation: fiscal year, period (1..14) and the remainder flag.
    """
    target = to_date(d)
    year = target.year
    info = period_for(target, year)
    if info.period < 1:
        year -= 1
        info = period_for(target, year)
    return PeriodLocation(year, info.period, info.period == REMAINDER_PERIOD)


def fiscal_week_for(d) -> PeriodLocation:
    """
    Finds the fiscal week (1..52, 53 for the remainder week) containing a date.

    Weeks start on Sunday at the anchor; four weeks make one period.  The
    ``period`` field of the returned location holds the week number.
    """
    target = to_date(d)
    location = locate_period(target)
    days_since_anchor = (target - first_sunday(location.year)).days
    week = days_since_anchor // DAYS_PER_WEEK + 1
    return PeriodLocation(location.year, week, days_since_anchor >= FISCAL_YEAR_DAYS)


def week_start(year: int, week: int) -> datetime.date:
    return first_sunday(year) + datetime.timedelta(days=(week - 1) * DAYS_PER_WEEK)


def period_of_week(week: int) -> int:
    return (week - 1) // WEEKS_PER_PERIOD + 1


def period_label(year: int, number: int) -> str:
    return f"{year}-P{number:02d}"


def week_label(year: int, week: int) -> str:
    return f"{year}-W{week:02d}"


def period_info(years) -> dict:
    """
    Builds the period catalog for the period-range selector.

    Args:
        years (iterable[int]): Fiscal years to describe.

    Returns:
        dict: ``{year: {"firstSunday": "YYYY-MM-DD", "periods": [...]}}`` with
        one entry per period P1..P13.
    """
    return {
        year: {
            "firstSunday": format_date(first_sunday(year)),
            "periods": [period.to_dict() for period in periods_for_year(year)],
        }
        for year in years
    }
