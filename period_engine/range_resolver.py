# SPDX-License-Identifier: Apache-2.0
"""
Resolves a dashboard time filter selection into a primary date range and the
comparison range it is measured against.

``now`` is always an explicit argument.  Callers capture it once per request
and pass the same value to every resolution so the primary and comparison
windows of all widgets stay mutually consistent.
"""
import datetime
from typing import NamedTuple, Optional

from period_engine.constants import (
    FISCAL_YEAR_END_OFFSET_DAYS,
    LAST_YEAR,
    PERIOD_END_OFFSET_DAYS,
    PERIOD_LENGTH_DAYS,
    SELECT_PERIOD,
    THIS_PERIOD,
    THIS_YEAR,
    TIME_FILTER_MODES,
)
from period_engine.fiscal_calendar import DateRange, first_sunday, format_date, period_for, to_date
from period_engine.validator import InvalidTimeFilter


class TimeFilterSelection(NamedTuple):
    mode: str
    year: int
    period: Optional[int] = None


class ResolvedRange(NamedTuple):
    """Primary and comparison windows of a selection, as inclusive local dates."""
    start_date: datetime.date
    end_date: datetime.date
    compare_start_date: datetime.date
    compare_end_date: datetime.date

    @property
    def primary(self) -> DateRange:
        return DateRange(self.start_date, self.end_date)

    @property
    def compare(self) -> DateRange:
        return DateRange(self.compare_start_date, self.compare_end_date)

    def to_dict(self) -> dict:
        return {
            "startDate": format_date(self.start_date),
            "endDate": format_date(self.end_date),
            "compareStartDate": format_date(self.compare_start_date),
            "compareEndDate": format_date(self.compare_end_date),
        }


def _calendar_year(year: int) -> DateRange:
    return DateRange(datetime.date(year, 1, 1), datetime.date(year, 12, 31))


def _fiscal_year_window(fiscal_year: int, compare_year: int) -> ResolvedRange:
    # The 364-day fiscal window is compared against a full calendar year.
    # Existing KPIs are computed against this asymmetry, so it is kept as is.
    start = first_sunday(fiscal_year)
    compare = _calendar_year(compare_year)
    return ResolvedRange(
        start,
        start + datetime.timedelta(days=FISCAL_YEAR_END_OFFSET_DAYS),
        compare.start_date,
        compare.end_date,
    )


def _period_window(anchor: datetime.date, period: int) -> ResolvedRange:
    start = anchor + datetime.timedelta(days=(period - 1) * PERIOD_LENGTH_DAYS)
    end = start + datetime.timedelta(days=PERIOD_END_OFFSET_DAYS)
    shift = datetime.timedelta(days=PERIOD_LENGTH_DAYS)
    return ResolvedRange(start, end, start - shift, end - shift)


def _resolve_this_year(year, period, now):
    return _fiscal_year_window(year, year - 1)


def _resolve_last_year(year, period, now):
    return _fiscal_year_window(year - 1, year - 2)


def _resolve_this_period(year, period, now):
    if now is None:
        raise ValueError(f"'{THIS_PERIOD}' needs the request's 'now' date")
    # Not clamped: before the anchor p <= 0 and the window is the 28-day
    # block that ends the day before the anchor, which still contains now
    info = period_for(to_date(now), year)
    return _period_window(info.anchor, info.period)


def _resolve_select_period(year, period, now):
    if period is None:
        raise InvalidTimeFilter(f"'{SELECT_PERIOD}' requires a period")
    return _period_window(first_sunday(year), period)


_RESOLVERS = {
    THIS_YEAR: _resolve_this_year,
    LAST_YEAR: _resolve_last_year,
    THIS_PERIOD: _resolve_this_period,
    SELECT_PERIOD: _resolve_select_period,
}


def resolve(mode: str, year: int, period: Optional[int] = None, now=None) -> ResolvedRange:
    """
    Resolves a time filter into primary and comparison date ranges.

    - ``this-year``: fiscal year ``year`` (anchor .. anchor + 363) compared with
      calendar year ``year - 1``.
    - ``last-year``: fiscal year ``year - 1`` compared with calendar year ``year - 2``.
    - ``this-period``: the 28-day period containing ``now``, compared with the
      28 days immediately before it.
    - ``select-period``: period ``period`` of ``year``, compared with the 28 days
      immediately before it (across the fiscal year boundary for P1).

    The period is not range-checked here; use ``SelectionValidator`` at the
    boundary before resolving user input.

    Args:
        mode (str): One of this-year, last-year, this-period, select-period.
        year (int): The selected fiscal year.
        period (int, optional): The selected period, required for select-period.
        now (date | datetime | str, optional): The request's current date, required
            for this-period.

    Returns:
        ResolvedRange: The primary and comparison windows.

    Raises:
        InvalidTimeFilter: If the mode is unknown or select-period has no period.
    """
    try:
        resolver = _RESOLVERS[mode]
    except KeyError:
        raise InvalidTimeFilter(f"Unknown time filter '{mode}', expected one of {list(TIME_FILTER_MODES)}")
    return resolver(year, period, now)


def resolve_selection(selection: TimeFilterSelection, now=None) -> ResolvedRange:
    return resolve(selection.mode, selection.year, selection.period, now)
