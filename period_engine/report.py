import datetime
import logging

from period_engine import trend_utility as trend_util
from period_engine.comparison import compare_metrics
from period_engine.constants import DEFAULT_DATE_COLUMN, DEFAULT_LEADERBOARD_SIZE, GROUP_PERIOD, PERIODS_PER_YEAR
from period_engine.fiscal_calendar import to_date
from period_engine.range_resolver import TimeFilterSelection, resolve_selection
from period_engine.validator import PeriodConfigValidator

logger = logging.getLogger(__name__)


def get_metrics_configs(cfg: dict) -> dict:
    return {name: config or {} for name, config in (cfg.get('metrics') or {}).items() if name != '__line__'}


def get_comparison_names(cfg: dict, metrics_configs: dict) -> dict:
    comparisons = {name: metric for name, metric in (cfg.get('comparisons') or {}).items() if name != '__line__'}
    return comparisons or {metric: metric for metric in metrics_configs}


class PeriodReport:
    """
        Represents the period-over-period report behind one dashboard render.

        The report is computed once from an already loaded event DataFrame: every range is
        resolved against the same ``now`` so all tiles, comparisons and the trend agree.

        Attributes:
            cfg (dict): The configuration dictionary.
            now (datetime.date): The request date, captured once for the whole report.
            title (str): The dashboard title.
            date_column (str): The name of the event date column.
            selection (TimeFilterSelection): The validated time filter selection.
            ranges (ResolvedRange): The primary and comparison windows of the selection.
            events_df (pandas.DataFrame): The event data with normalised dates.
            metrics_configs (dict): The metrics configuration dictionary.
            current_df (pandas.DataFrame): Events inside the primary window.
            previous_df (pandas.DataFrame): Events inside the comparison window.
            current_totals (dict): Metric name to its value for the primary window.
            previous_totals (dict): Metric name to its value for the comparison window.
            comparisons (dict): Comparison name to its ComparisonResult.
            trend (pandas.DataFrame): The configured trend series, None if no trend is configured.
            leaderboards (dict): Leaderboard name to its ranked contributors over the primary window.
        """
    def __init__(self, cfg, daily_df, now=None):
        self.cfg = cfg
        validator = PeriodConfigValidator(cfg)
        validator.validate_yaml()

        setup = self.cfg['setup']
        self.now = to_date(now if now is not None else setup.get('now', datetime.date.today()))
        self.title = setup.get('title', '')
        self.date_column = setup.get('date_column', DEFAULT_DATE_COLUMN)

        mode, year, period = validator.selection_validator().validate(
            setup['time_filter'], setup.get('year', self.now.year), setup.get('period'))
        self.selection = TimeFilterSelection(mode, year, period)
        self.ranges = resolve_selection(self.selection, self.now)
        logger.info(f"Resolved {self.selection} as of {self.now}: {self.ranges.to_dict()}")

        self.events_df = trend_util.normalise_dates(daily_df, self.date_column)
        self.metrics_configs = get_metrics_configs(self.cfg)

        self.current_df = trend_util.filter_window(self.events_df, self.ranges.primary, self.date_column)
        self.previous_df = trend_util.filter_window(self.events_df, self.ranges.compare, self.date_column)

        self.current_totals, self.previous_totals = self.calculate_window_totals()
        self.comparisons = compare_metrics(self.current_totals, self.previous_totals,
                                           get_comparison_names(self.cfg, self.metrics_configs))
        self.trend = self.create_trend()
        self.leaderboards = self.create_leaderboards()
        # init end

    def calculate_window_totals(self):
        """
        Aggregates every configured metric over the primary and the comparison window.

        Returns:
            tuple: (current_totals, previous_totals), both dicts of metric name to value.
        """
        current_totals = {}
        previous_totals = {}
        for metric, metric_config in self.metrics_configs.items():
            current_totals[metric] = trend_util.aggregate_metric(self.current_df, metric, metric_config)
            previous_totals[metric] = trend_util.aggregate_metric(self.previous_df, metric, metric_config)
        return current_totals, previous_totals

    def create_trend(self):
        """
        Builds the trend series described by the optional trend section.

        The trend counts events (or aggregates ``trend.metric``) per day, fiscal week or
        fiscal period of the selected year and fills empty buckets with zero.

        Returns:
            pandas.DataFrame: The trend rows, or None when no trend is configured.
        """
        if 'trend' not in self.cfg:
            return None

        trend_cfg = self.cfg['trend'] or {}
        metric = trend_cfg.get('metric')
        metric_config = self.metrics_configs[metric] if metric else None
        from_year, to_year = trend_cfg.get('from_year'), trend_cfg.get('to_year')
        return trend_util.create_trend(
            self.events_df,
            trend_cfg.get('group_by', GROUP_PERIOD),
            self.selection.year,
            int(trend_cfg.get('from_period', 1)),
            int(trend_cfg.get('to_period', PERIODS_PER_YEAR)),
            metric or 'count',
            metric_config,
            self.date_column,
            int(from_year) if from_year is not None else None,
            int(to_year) if to_year is not None else None,
        )

    def create_leaderboards(self):
        """
        Ranks contributors over the primary window for every configured leaderboard.

        Returns:
            dict: Leaderboard name to its ranked rows, best first; empty when none is configured.
        """
        leaderboards = {}
        for name, board_cfg in (self.cfg.get('leaderboards') or {}).items():
            if name == '__line__':
                continue
            metric = board_cfg.get('metric')
            leaderboards[name] = trend_util.create_leaderboard(
                self.current_df,
                board_cfg['group_by'],
                metric or 'count',
                self.metrics_configs[metric] if metric else None,
                board_cfg.get('top_n', DEFAULT_LEADERBOARD_SIZE),
            )
        return leaderboards

    def get_metric_values(self, metric):
        """
        Returns the current and previous value of a metric.

        Raises:
            KeyError: If the metric is not configured.
        """
        if metric not in self.current_totals:
            raise KeyError(f"Unknown metric {metric}, please check if you have defined it in the metrics section")
        return self.current_totals[metric], self.previous_totals[metric]

