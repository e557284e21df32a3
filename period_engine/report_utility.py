import datetime
import logging
import traceback
from enum import Enum
from json import JSONEncoder
from typing import List

import numpy as np
import requests
import yaml
from yaml import SafeLoader

from period_engine.fiscal_calendar import format_date, period_info
from period_engine.report import PeriodReport, get_comparison_names
from period_engine.trend_utility import trend_to_records
from period_engine.validator import InvalidPeriod, InvalidTimeFilter, InvalidYear

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_NO_DATA = "no_data"


class KpiTile:
    def __init__(self):
        self.name = ""
        self.metric = ""
        self.current = None
        self.previous = None
        self.percentage = 0.0
        self.type = ""
        self.description = ""


class PeriodWindow:
    def __init__(self, start_date, end_date):
        self.startDate = start_date
        self.endDate = end_date


class Dashboard:
    def __init__(self):
        self.status = STATUS_OK
        self.reason = ""
        self.title = ""
        self.timeFilter = ""
        self.year = None
        self.period = None
        self.asOf = ""
        self.currentPeriod = None
        self.lastPeriod = None
        self.tiles: List[KpiTile] = list()
        self.trend = []
        self.leaderboards = {}


class Encoder(JSONEncoder):
    def default(self, o):
        if isinstance(o, (datetime.date, datetime.datetime)):
            return format_date(o)
        if isinstance(o, Enum):
            return o.value
        if isinstance(o, np.generic):
            return o.item()
        return o.__dict__


class SafeLineLoader(SafeLoader):
    def construct_mapping(self, node, deep=False):
        mapping = super(SafeLineLoader, self).construct_mapping(node, deep=deep)
        # Add 1 so line numbering starts at 1
        mapping['__line__'] = node.start_mark.line + 1
        return mapping


def _parse_yaml(content, source):
    try:
        return yaml.load(content, SafeLineLoader)
    except yaml.YAMLError as e:
        logger.error(e, exc_info=True)
        error_message = traceback.format_exc().split('.yaml')[-1].replace(',', '').replace('"', '')
        raise ValueError(f"Could not load the dashboard configuration from {source} due to incorrect yaml, "
                         f"caused due to error in {error_message}")


def load_yaml_from_stream(config_file):
    """Loads the dashboard configuration from an open text or binary stream."""
    return _parse_yaml(config_file.read(), "stream")


def load_yaml_from_path(path: str):
    try:
        with open(path, 'r') as f:
            content = f.read()
    except FileNotFoundError:
        logger.error(f"Dashboard configuration file not found at local path: {path}")
        raise FileNotFoundError(f"Dashboard configuration file not found at: {path}")
    return _parse_yaml(content, path)


def load_yaml_from_url(url: str):
    # Retrieve the file content from the URL
    try:
        response = requests.get(url, allow_redirects=True)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.error(f"Failed to fetch dashboard configuration from URL: {url}. Error: {e}", exc_info=True)
        raise ConnectionError(f"Failed to fetch dashboard configuration from URL: {url}")
    # Convert bytes to string
    return _parse_yaml(response.content.decode("utf-8"), url)


def load_yaml_from_url_or_path(url_or_path: str):
    if url_or_path.lower().startswith(('http://', 'https://')):
        return load_yaml_from_url(url_or_path)
    return load_yaml_from_path(url_or_path)


def _clean_value(value):
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and (np.isnan(value) or np.isinf(value)):
        return None
    return value


def build_kpi_tile(report: PeriodReport, name, metric) -> KpiTile:
    """
    Builds one KPI tile: the metric's current and previous value and their comparison.

    Args:
        report (PeriodReport): The computed report.
        name (str): The comparison name shown on the tile, e.g. ticketGrowthRate.
        metric (str): The metric the comparison is computed from.

    Returns:
        KpiTile: The populated tile.
    """
    current, previous = report.get_metric_values(metric)
    comparison = report.comparisons[name]

    tile = KpiTile()
    tile.name = name
    tile.metric = metric
    tile.current = _clean_value(current)
    tile.previous = _clean_value(previous)
    tile.percentage = comparison.percentage
    tile.type = comparison.type.value
    tile.description = comparison.description
    return tile


def get_dashboard(report: PeriodReport) -> Dashboard:
    """
    Converts a computed PeriodReport into the dashboard payload consumed by the UI.

    Args:
        report (PeriodReport): The computed report.

    Returns:
        Dashboard: The payload, serialisable with ``json.dumps(..., cls=Encoder)``.
    """
    dashboard = Dashboard()
    dashboard.title = report.title
    dashboard.timeFilter = report.selection.mode
    dashboard.year = report.selection.year
    dashboard.period = report.selection.period
    dashboard.asOf = format_date(report.now)

    ranges = report.ranges.to_dict()
    dashboard.currentPeriod = PeriodWindow(ranges['startDate'], ranges['endDate'])
    dashboard.lastPeriod = PeriodWindow(ranges['compareStartDate'], ranges['compareEndDate'])

    for name, metric in get_comparison_names(report.cfg, report.metrics_configs).items():
        dashboard.tiles.append(build_kpi_tile(report, name, metric))

    if report.trend is not None:
        dashboard.trend = trend_to_records(report.trend)
    dashboard.leaderboards = report.leaderboards

    return dashboard


def get_no_data_dashboard(cfg: dict, reason: str) -> Dashboard:
    dashboard = Dashboard()
    dashboard.status = STATUS_NO_DATA
    dashboard.reason = reason
    setup = cfg.get('setup') or {}
    dashboard.title = setup.get('title', '')
    dashboard.timeFilter = setup.get('time_filter', '')
    return dashboard


def build_dashboard(cfg: dict, daily_df, now=None) -> Dashboard:
    """
    Builds the dashboard for a configuration and an event DataFrame.

    An invalid selection (year, period or time filter) degrades to an explicit
    no-data dashboard instead of rendering a nonsensical range; any other error
    propagates to the caller.

    Args:
        cfg (dict): The dashboard YAML configuration.
        daily_df (pandas.DataFrame): The event data.
        now (date | datetime | str, optional): The request date, defaults to setup.now or today.

    Returns:
        Dashboard: The dashboard payload.
    """
    try:
        report = PeriodReport(cfg, daily_df, now=now)
    except (InvalidYear, InvalidPeriod, InvalidTimeFilter) as e:
        logger.warning(f"No data for this selection: {e}")
        return get_no_data_dashboard(cfg, str(e))
    return get_dashboard(report)


def get_period_info(years) -> dict:
    """Period catalog of the given years, keyed by the year as a string for JSON."""
    return {str(year): info for year, info in period_info(years).items()}
