import datetime
from typing import Iterable

import numpy as np
import pandas as pd

from period_engine.constants import (
    DATE_FORMAT,
    DEFAULT_LEADERBOARD_SIZE,
    DEFAULT_DATE_COLUMN,
    GROUP_DAILY,
    GROUP_PERIOD,
    GROUP_WEEKLY,
    PERIODS_PER_YEAR,
    WEEKS_PER_PERIOD,
)
from period_engine.fiscal_calendar import (
    date_range_from_periods,
    fiscal_week_for,
    format_date,
    get_period,
    locate_period,
    period_label,
    period_of_week,
    week_label,
    week_start,
)

TREND_COLUMNS = ['date', 'count', 'periodStart', 'periodEnd', 'year', 'week', 'period']


def normalise_dates(df, date_column=DEFAULT_DATE_COLUMN):
    """
    Return a copy of the event DataFrame with its date column as midnight timestamps.

    Any time-of-day is dropped so every event is bucketed by its local calendar date.

    Raises:
        ValueError: If the date column is missing or cannot be parsed.
    """
    if date_column not in df.columns:
        raise ValueError(f"DataFrame must contain a '{date_column}' column.")

    frame = df.copy(deep=True)
    try:
        frame[date_column] = pd.to_datetime(frame[date_column]).dt.normalize()
    except (ValueError, TypeError) as e:
        raise ValueError(f"Could not convert column '{date_column}' to datetime: {e}")
    return frame.sort_values(by=date_column).reset_index(drop=True)


def apply_metric_filter(df, metric_name, metric_config):
    """
    Apply the optional pandas query of a metric definition.

    Raises:
        KeyError: If the query references an unknown column.
    """
    if 'filter' not in metric_config:
        return df

    query = metric_config['filter']
    try:
        return df.query(query)
    except pd.errors.UndefinedVariableError as e:
        raise KeyError(
            f"Invalid filter provided: {query}. Unknown column found in the filter for metric {metric_name} "
            f"at yaml line {metric_config.get('__line__', 'unknown')}, error: {e}"
        )


def check_metric_column(df, metric_name, metric_config):
    column = metric_config.get('column')
    if column is not None and column not in df.columns:
        raise KeyError(f"Column {column} not found in the dataset while calculating the metric {metric_name}, "
                       f"yaml line: {metric_config.get('__line__', 'unknown')}")
    return column


def filter_window(df, window, date_column=DEFAULT_DATE_COLUMN):
    """Rows whose date falls inside the inclusive window."""
    start = pd.Timestamp(window.start_date)
    end = pd.Timestamp(window.end_date)
    return df[(df[date_column] >= start) & (df[date_column] <= end)]


def aggregate_metric(df, metric_name, metric_config):
    """
    Aggregate one metric over the rows of an (already windowed) event DataFrame.

    ``count`` counts rows (or non-null values of ``column`` if one is given); the
    other aggregations apply to ``column``.  An empty window sums to 0 while
    mean/min/max of an empty window are NaN.

    Raises:
        KeyError: If the metric's column is not in the data set.
    """
    rows = apply_metric_filter(df, metric_name, metric_config)
    aggf = metric_config.get('aggf', 'count')
    column = check_metric_column(rows, metric_name, metric_config)

    if aggf == 'count':
        return int(len(rows)) if column is None else int(rows[column].count())

    value = rows[column].agg(aggf)
    if isinstance(value, np.generic):
        value = value.item()
    return value


def create_leaderboard(df, group_column, metric_name='count', metric_config=None, top_n=DEFAULT_LEADERBOARD_SIZE):
    """
    Rank the values of ``group_column`` (e.g. the reporting person) by a metric.

    Rows without a group value are ignored. Ties are broken by the group value
    so the ranking is stable across runs.

    Args:
        df (pd.DataFrame): Event data, usually already cut to the primary window.
        group_column (str): Column identifying the contributor.
        metric_name (str): Name of the metric, used in error messages.
        metric_config (dict, optional): Metric definition, defaults to counting rows.
        top_n (int): Number of entries to keep.

    Returns:
        list: Up to ``top_n`` dicts ``{group_column: key, "value": value}``, best first.

    Raises:
        KeyError: If the group column or the metric's column is not in the data set.
    """
    if group_column not in df.columns:
        raise KeyError(f"Column {group_column} not found in the dataset while ranking the metric {metric_name}")

    metric_config = metric_config or {'aggf': 'count'}
    rows = apply_metric_filter(df, metric_name, metric_config)
    column = check_metric_column(rows, metric_name, metric_config)
    aggf = metric_config.get('aggf', 'count')
    grouped = rows.groupby(group_column)

    if aggf == 'count':
        series = grouped.size() if column is None else grouped[column].count()
    else:
        series = grouped[column].agg(aggf)

    ranking = series.rename('value').reset_index().dropna(subset=['value'])
    ranking = ranking.sort_values(by=['value', group_column], ascending=[False, True]).head(top_n)
    return trend_to_records(ranking)


def create_daily_series(df, metric_name='count', metric_config=None, date_column=DEFAULT_DATE_COLUMN):
    """
    Aggregate events into one row per calendar day.

    Args:
        df (pd.DataFrame): Normalised event data.
        metric_name (str): Name of the metric, used in error messages.
        metric_config (dict, optional): Metric definition, defaults to counting rows.
        date_column (str): Name of the date column.

    Returns:
        pd.DataFrame: Columns ``Date`` and ``count`` sorted by date.
    """
    metric_config = metric_config or {'aggf': 'count'}
    rows = apply_metric_filter(df, metric_name, metric_config)
    check_metric_column(rows, metric_name, metric_config)
    aggf = metric_config.get('aggf', 'count')
    grouped = rows.groupby(rows[date_column])

    if aggf == 'count':
        column = metric_config.get('column')
        series = grouped.size() if column is None else grouped[column].count()
    else:
        series = grouped[metric_config['column']].agg(aggf)

    daily = series.rename('count').reset_index()
    daily.columns = ['Date', 'count']
    return daily.sort_values(by='Date').reset_index(drop=True)


def group_daily_by_day(daily_df):
    if daily_df.empty:
        return pd.DataFrame(columns=['date', 'count'])
    frame = daily_df.copy()
    frame['date'] = frame['Date'].dt.strftime(DATE_FORMAT)
    return frame[['date', 'count']]


def group_daily_by_week(daily_df):
    """Sum daily values into fiscal weeks labelled ``YYYY-Www``."""
    if daily_df.empty:
        return pd.DataFrame(columns=['date', 'count'])
    weeks = [fiscal_week_for(ts) for ts in daily_df['Date']]
    frame = daily_df.assign(date=[week_label(w.year, w.period) for w in weeks])
    return frame.groupby('date', as_index=False)['count'].sum()


def group_daily_by_period(daily_df):
    """
    Sum daily values into fiscal periods labelled ``YYYY-Pnn``.

    Each day is located in the fiscal year that actually contains it, so the
    first days of January before the anchor count towards the previous year.
    """
    if daily_df.empty:
        return pd.DataFrame(columns=['date', 'count'])
    locations = [locate_period(ts) for ts in daily_df['Date']]
    frame = daily_df.assign(date=[period_label(loc.year, loc.period) for loc in locations])
    return frame.groupby('date', as_index=False)['count'].sum()


def create_daily_skeleton(year, from_period, to_period):
    window = date_range_from_periods(year, from_period, to_period)
    dates = pd.date_range(window.start_date, window.end_date, freq='D')
    labels = dates.strftime(DATE_FORMAT)
    return pd.DataFrame({'date': labels, 'periodStart': labels, 'periodEnd': labels})


def create_weekly_skeleton(year, from_period, to_period):
    rows = []
    first_week = (from_period - 1) * WEEKS_PER_PERIOD + 1
    last_week = to_period * WEEKS_PER_PERIOD
    for week in range(first_week, last_week + 1):
        start = week_start(year, week)
        rows.append({
            'date': week_label(year, week),
            'periodStart': format_date(start),
            'periodEnd': format_date(start + datetime.timedelta(days=6)),
            'year': year,
            'week': week,
            'period': period_of_week(week),
        })
    return pd.DataFrame(rows)


def create_period_skeleton(years: Iterable[int], from_period=1, to_period=PERIODS_PER_YEAR):
    rows = []
    for year in years:
        for number in range(from_period, to_period + 1):
            period = get_period(year, number)
            rows.append({
                'date': period_label(year, number),
                'periodStart': format_date(period.start_date),
                'periodEnd': format_date(period.end_date),
                'year': year,
                'period': number,
            })
    return pd.DataFrame(rows)


def fill_missing_buckets(trend_df, skeleton_df):
    """
    Align a grouped trend with the full list of buckets, filling gaps with zero.

    Buckets of ``trend_df`` that are not part of the skeleton (outside the
    requested span) are dropped.

    Args:
        trend_df (pd.DataFrame): Grouped values with ``date`` label and ``count``.
        skeleton_df (pd.DataFrame): Every bucket of the span, in display order.

    Returns:
        pd.DataFrame: One row per skeleton bucket with the TREND_COLUMNS present.
    """
    counts = trend_df[['date', 'count']] if not trend_df.empty else pd.DataFrame(columns=['date', 'count'])
    merged = skeleton_df.merge(counts, on='date', how='left')
    merged['count'] = pd.to_numeric(merged['count']).fillna(0)

    if all(float(value).is_integer() for value in merged['count']):
        merged['count'] = merged['count'].astype('int64')

    return merged[[column for column in TREND_COLUMNS if column in merged.columns]]


def create_trend(df, group_by, year, from_period=1, to_period=PERIODS_PER_YEAR, metric_name='count',
                 metric_config=None, date_column=DEFAULT_DATE_COLUMN, from_year=None, to_year=None):
    """
    Build a trend series of daily, fiscal-week or fiscal-period buckets.

    Args:
        df (pd.DataFrame): Normalised event data.
        group_by (str): daily, weekly or period.
        year (int): The fiscal year of the span.
        from_period (int): First period of the span.
        to_period (int): Last period of the span.
        metric_name (str): Metric name for error messages.
        metric_config (dict, optional): Metric definition, defaults to counting rows.
        date_column (str): Name of the date column.
        from_year (int, optional): With ``to_year``, spans whole fiscal years (period grouping only).
        to_year (int, optional): Last fiscal year of a multi-year span.

    Returns:
        pd.DataFrame: One row per bucket in display order.

    Raises:
        ValueError: If the grouping is unknown.
    """
    daily_df = create_daily_series(df, metric_name, metric_config, date_column)

    if group_by == GROUP_DAILY:
        return fill_missing_buckets(group_daily_by_day(daily_df),
                                    create_daily_skeleton(year, from_period, to_period))
    if group_by == GROUP_WEEKLY:
        return fill_missing_buckets(group_daily_by_week(daily_df),
                                    create_weekly_skeleton(year, from_period, to_period))
    if group_by == GROUP_PERIOD:
        if from_year is not None and to_year is not None:
            skeleton = create_period_skeleton(range(from_year, to_year + 1))
        else:
            skeleton = create_period_skeleton([year], from_period, to_period)
        return fill_missing_buckets(group_daily_by_period(daily_df), skeleton)

    raise ValueError(f"Unsupported trend grouping: {group_by}")


def trend_to_records(trend_df):
    """Convert a trend DataFrame into JSON-ready dicts, dropping empty fields."""
    records = []
    for row in trend_df.replace([np.inf, -np.inf], np.nan).to_dict(orient='records'):
        record = {}
        for key, value in row.items():
            if value is None or (np.isscalar(value) and pd.isna(value)):
                continue
            record[key] = value.item() if isinstance(value, np.generic) else value
        records.append(record)
    return records
