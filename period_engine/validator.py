import logging

from period_engine.constants import (
    DEFAULT_LEADERBOARD_SIZE,
    DEFAULT_MAX_YEAR,
    DEFAULT_MIN_YEAR,
    PERIODS_PER_YEAR,
    SELECT_PERIOD,
    SUPPORTED_AGGF,
    TIME_FILTER_MODES,
    TREND_GROUPINGS,
)

logger = logging.getLogger(__name__)


class InvalidYear(ValueError):
    """Year is not an integer or lies outside the accepted range."""


class InvalidPeriod(ValueError):
    """Period is not an integer in [1, 13]."""


class InvalidTimeFilter(ValueError):
    """Unknown time filter mode, or a mode missing a required argument."""


def _as_int(value, error_cls, label):
    if isinstance(value, bool):
        raise error_cls(f"{label} must be an integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            raise error_cls(f"{label} must be an integer, got {value!r}") from None
    raise error_cls(f"{label} must be an integer, got {value!r}")


def validate_year(year, min_year=DEFAULT_MIN_YEAR, max_year=DEFAULT_MAX_YEAR) -> int:
    year = _as_int(year, InvalidYear, "year")
    if not min_year <= year <= max_year:
        raise InvalidYear(f"year must be between {min_year} and {max_year}, got {year}")
    return year


def validate_period(period) -> int:
    if period is None:
        raise InvalidPeriod("period is required")
    period = _as_int(period, InvalidPeriod, "period")
    if not 1 <= period <= PERIODS_PER_YEAR:
        raise InvalidPeriod(f"period must be between 1 and {PERIODS_PER_YEAR}, got {period}")
    return period


def validate_time_filter(mode) -> str:
    if mode not in TIME_FILTER_MODES:
        raise InvalidTimeFilter(f"Unknown time filter '{mode}', expected one of {list(TIME_FILTER_MODES)}")
    return mode


class SelectionValidator:
    def __init__(self, min_year: int = DEFAULT_MIN_YEAR, max_year: int = DEFAULT_MAX_YEAR):
        """
        Validation boundary for time filter selections coming from the dashboard selector.

        Every selection is checked here before its range is used to bound a query,
        so malformed input fails fast with a typed error instead of producing a
        nonsensical range.

        Args:
            min_year (int): Smallest accepted fiscal year.
            max_year (int): Largest accepted fiscal year.
        """
        if min_year > max_year:
            raise ValueError(f"min_year {min_year} is greater than max_year {max_year}")
        self.min_year = min_year
        self.max_year = max_year

    def validate(self, mode, year, period=None):
        """
        Validates a selection and returns it normalised.

        The period is only required (and only checked) for ``select-period``; the
        other modes derive their range from the year or from ``now``.

        Returns:
            tuple: (mode, year, period) with year and period as ints.

        Raises:
            InvalidTimeFilter: Unknown mode, or select-period without a period.
            InvalidYear: Year outside [min_year, max_year].
            InvalidPeriod: Period outside [1, 13].
        """
        mode = validate_time_filter(mode)
        year = validate_year(year, self.min_year, self.max_year)
        if mode == SELECT_PERIOD:
            if period is None:
                raise InvalidTimeFilter(f"'{SELECT_PERIOD}' requires a period")
            period = validate_period(period)
        elif period is not None:
            period = validate_period(period)
        return mode, year, period

    def validate_period_span(self, from_period, to_period):
        from_period = validate_period(from_period)
        to_period = validate_period(to_period)
        if from_period > to_period:
            raise InvalidPeriod(f"from_period {from_period} is after to_period {to_period}")
        return from_period, to_period

    def validate_year_span(self, from_year, to_year):
        from_year = validate_year(from_year, self.min_year, self.max_year)
        to_year = validate_year(to_year, self.min_year, self.max_year)
        if from_year > to_year:
            raise InvalidYear(f"from_year {from_year} is after to_year {to_year}")
        return from_year, to_year


class PeriodConfigValidator:
    def __init__(self, cfg: dict):
        """
        Initializes the validator for the dashboard yaml config.

        Args:
            cfg (dict): The dashboard YAML configuration, ideally loaded with SafeLineLoader
                so errors can point at the offending line.
        """
        self.cfg = cfg

    def validate_yaml(self):
        self.check_setup()
        self.validate_metrics()
        self.validate_comparisons()
        self.validate_trend()
        self.validate_leaderboards()

    def selection_validator(self) -> SelectionValidator:
        setup = self.cfg['setup']
        return SelectionValidator(
            _as_int(setup.get('min_year', DEFAULT_MIN_YEAR), InvalidYear, "min_year"),
            _as_int(setup.get('max_year', DEFAULT_MAX_YEAR), InvalidYear, "max_year"),
        )

    def check_setup(self):
        """
        Checks the setup section of the configuration.

        Raises:
            KeyError: If the setup section or its time_filter key is missing.
            InvalidTimeFilter / InvalidYear / InvalidPeriod: If the selection is invalid.
        """
        if 'setup' not in self.cfg or not isinstance(self.cfg['setup'], dict):
            raise KeyError("Missing SETUP section in the dashboard configuration")
        setup = self.cfg['setup']
        line = setup.get('__line__', 'unknown')
        if 'time_filter' not in setup:
            raise KeyError(f"Error in SETUP section, time_filter is missing at line {line}")

        try:
            validator = self.selection_validator()
            if 'year' in setup:
                validator.validate(setup['time_filter'], setup['year'], setup.get('period'))
            else:
                validate_time_filter(setup['time_filter'])
                if setup['time_filter'] == SELECT_PERIOD:
                    raise InvalidTimeFilter(f"'{SELECT_PERIOD}' requires a year and a period")
        except ValueError as e:
            raise type(e)(f"{e} at line: {line}") from e

    def validate_metrics(self):
        """
        Validates the metric definitions.

        Raises:
            KeyError: If the metrics section is empty, an aggregation is unsupported, or a
                non-count aggregation has no column.
        """
        metrics = {k: v for k, v in (self.cfg.get('metrics') or {}).items() if k != '__line__'}
        if not metrics:
            raise KeyError("At least one metric must be defined in the metrics section")

        for metric, config in metrics.items():
            config = config or {}
            line = config.get('__line__', 'unknown')
            aggf = config.get('aggf', 'count')
            if aggf not in SUPPORTED_AGGF:
                raise KeyError(
                    f"Invalid aggf '{aggf}' for the metric {metric} at line: {line}, "
                    f"expected one of {list(SUPPORTED_AGGF)}")
            if aggf != 'count' and 'column' not in config:
                raise KeyError(f"The column parameter is required for aggf '{aggf}' in the metric {metric} "
                               f"at line: {line}")

    def validate_comparisons(self):
        comparisons = self.cfg.get('comparisons') or {}
        metrics = self.cfg.get('metrics') or {}
        for name, metric in comparisons.items():
            if name == '__line__':
                continue
            if metric not in metrics:
                raise KeyError(f"Comparison {name} refers to the unknown metric {metric} at line: "
                               f"{comparisons.get('__line__', 'unknown')}")

    def validate_trend(self):
        if 'trend' not in self.cfg:
            return
        trend = self.cfg['trend'] or {}
        line = trend.get('__line__', 'unknown')
        group_by = trend.get('group_by', 'period')
        if group_by not in TREND_GROUPINGS:
            raise KeyError(f"Invalid group_by '{group_by}' in the trend section at line: {line}, "
                           f"expected one of {list(TREND_GROUPINGS)}")
        if 'metric' in trend and trend['metric'] not in (self.cfg.get('metrics') or {}):
            raise KeyError(f"Trend refers to the unknown metric {trend['metric']} at line: {line}")

        validator = self.selection_validator()
        try:
            validator.validate_period_span(trend.get('from_period', 1), trend.get('to_period', PERIODS_PER_YEAR))
            if 'from_year' in trend or 'to_year' in trend:
                if group_by != 'period':
                    raise InvalidTimeFilter("from_year/to_year are only supported when grouping by period")
                validator.validate_year_span(trend.get('from_year'), trend.get('to_year'))
        except ValueError as e:
            raise type(e)(f"{e} at line: {line}") from e

    def validate_leaderboards(self):
        """
        Validates the leaderboard definitions.

        Raises:
            KeyError: If a leaderboard has no group_by column or refers to an unknown metric.
            ValueError: If top_n is not a positive integer.
        """
        leaderboards = self.cfg.get('leaderboards') or {}
        metrics = self.cfg.get('metrics') or {}
        for name, config in leaderboards.items():
            if name == '__line__':
                continue
            config = config or {}
            line = config.get('__line__', 'unknown')
            if 'group_by' not in config:
                raise KeyError(f"The group_by parameter is required for the leaderboard {name} at line: {line}")
            if 'metric' in config and config['metric'] not in metrics:
                raise KeyError(f"Leaderboard {name} refers to the unknown metric {config['metric']} at line: {line}")
            top_n = config.get('top_n', DEFAULT_LEADERBOARD_SIZE)
            if isinstance(top_n, bool) or not isinstance(top_n, int) or top_n < 1:
                raise ValueError(f"top_n of the leaderboard {name} must be a positive integer, got {top_n!r} "
                                 f"at line: {line}")
