import copy
import unittest

from period_engine.validator import (
    InvalidPeriod,
    InvalidTimeFilter,
    InvalidYear,
    PeriodConfigValidator,
    SelectionValidator,
    validate_period,
    validate_time_filter,
    validate_year,
)


class TestSelectionValidator(unittest.TestCase):

    def setUp(self):
        self.validator = SelectionValidator()

    def test_valid_select_period(self):
        self.assertEqual(self.validator.validate("select-period", 2024, 3), ("select-period", 2024, 3))

    def test_numeric_strings_are_normalised(self):
        self.assertEqual(self.validator.validate("select-period", "2024", "13"), ("select-period", 2024, 13))

    def test_year_modes_do_not_need_a_period(self):
        self.assertEqual(self.validator.validate("this-year", 2024), ("this-year", 2024, None))
        self.assertEqual(self.validator.validate("this-period", 2024), ("this-period", 2024, None))

    def test_select_period_without_period(self):
        with self.assertRaises(InvalidTimeFilter):
            self.validator.validate("select-period", 2024)

    def test_unknown_mode(self):
        with self.assertRaises(InvalidTimeFilter):
            self.validator.validate("this-week", 2024)

    def test_period_out_of_range(self):
        for period in (0, 14, -1):
            with self.assertRaises(InvalidPeriod):
                self.validator.validate("select-period", 2024, period)

    def test_period_is_checked_for_other_modes_when_given(self):
        with self.assertRaises(InvalidPeriod):
            self.validator.validate("this-year", 2024, 20)

    def test_year_out_of_range(self):
        for year in (1999, 2101):
            with self.assertRaises(InvalidYear):
                self.validator.validate("this-year", year)

    def test_non_integer_values(self):
        with self.assertRaises(InvalidYear):
            validate_year("twenty")
        with self.assertRaises(InvalidYear):
            validate_year(True)
        with self.assertRaises(InvalidPeriod):
            validate_period(3.5)
        with self.assertRaises(InvalidPeriod):
            validate_period(None)

    def test_malformed_numeric_strings(self):
        for year in ("--2024", "²", "20 24", ""):
            with self.assertRaises(InvalidYear):
                validate_year(year)
        for period in ("--3", "³", "3.0"):
            with self.assertRaises(InvalidPeriod):
                validate_period(period)

    def test_malformed_year_in_setup_names_the_line(self):
        config = {
            "setup": {"time_filter": "this-year", "year": "--2024", "__line__": 1},
            "metrics": {"totalTickets": {"aggf": "count"}},
        }
        with self.assertRaises(InvalidYear) as context:
            PeriodConfigValidator(config).validate_yaml()
        self.assertIn("at line: 1", str(context.exception))

    def test_custom_bounds(self):
        validator = SelectionValidator(min_year=2022, max_year=2025)
        self.assertEqual(validator.validate("this-year", 2022)[1], 2022)
        with self.assertRaises(InvalidYear):
            validator.validate("this-year", 2026)

    def test_bounds_must_be_ordered(self):
        with self.assertRaises(ValueError):
            SelectionValidator(min_year=2030, max_year=2020)

    def test_errors_are_value_errors(self):
        for error_cls in (InvalidYear, InvalidPeriod, InvalidTimeFilter):
            self.assertTrue(issubclass(error_cls, ValueError))

    def test_validate_time_filter(self):
        self.assertEqual(validate_time_filter("last-year"), "last-year")

    def test_period_span(self):
        self.assertEqual(self.validator.validate_period_span(2, "5"), (2, 5))
        with self.assertRaises(InvalidPeriod):
            self.validator.validate_period_span(5, 2)

    def test_year_span(self):
        self.assertEqual(self.validator.validate_year_span(2022, 2024), (2022, 2024))
        with self.assertRaises(InvalidYear):
            self.validator.validate_year_span(2024, 2022)


class TestPeriodConfigValidator(unittest.TestCase):

    def setUp(self):
        self.base_config = {
            "setup": {
                "title": "Maintenance KPI",
                "time_filter": "select-period",
                "year": 2024,
                "period": 3,
                "__line__": 1,
            },
            "metrics": {
                "totalTickets": {"aggf": "count", "__line__": 9},
                "totalCostAvoidance": {"aggf": "sum", "column": "cost_avoidance", "__line__": 11},
                "__line__": 8,
            },
            "comparisons": {
                "ticketGrowthRate": "totalTickets",
                "__line__": 15,
            },
            "trend": {
                "group_by": "period",
                "from_period": 1,
                "to_period": 4,
                "__line__": 18,
            },
        }

    def config(self):
        return copy.deepcopy(self.base_config)

    def test_valid_config(self):
        PeriodConfigValidator(self.config()).validate_yaml()

    def test_missing_setup(self):
        config = self.config()
        del config["setup"]
        with self.assertRaises(KeyError):
            PeriodConfigValidator(config).validate_yaml()

    def test_missing_time_filter(self):
        config = self.config()
        del config["setup"]["time_filter"]
        with self.assertRaises(KeyError) as context:
            PeriodConfigValidator(config).validate_yaml()
        self.assertIn("line 1", str(context.exception))

    def test_invalid_period_names_the_line(self):
        config = self.config()
        config["setup"]["period"] = 14
        with self.assertRaises(InvalidPeriod) as context:
            PeriodConfigValidator(config).validate_yaml()
        self.assertIn("at line: 1", str(context.exception))

    def test_year_outside_configured_bounds(self):
        config = self.config()
        config["setup"]["max_year"] = 2023
        with self.assertRaises(InvalidYear):
            PeriodConfigValidator(config).validate_yaml()

    def test_select_period_without_year(self):
        config = self.config()
        del config["setup"]["year"]
        with self.assertRaises(InvalidTimeFilter):
            PeriodConfigValidator(config).validate_yaml()

    def test_this_period_without_year(self):
        config = self.config()
        config["setup"]["time_filter"] = "this-period"
        del config["setup"]["year"]
        del config["setup"]["period"]
        PeriodConfigValidator(config).validate_yaml()

    def test_no_metrics(self):
        config = self.config()
        config["metrics"] = {"__line__": 8}
        with self.assertRaises(KeyError):
            PeriodConfigValidator(config).validate_yaml()

    def test_unsupported_aggf(self):
        config = self.config()
        config["metrics"]["totalTickets"]["aggf"] = "median"
        with self.assertRaises(KeyError) as context:
            PeriodConfigValidator(config).validate_yaml()
        self.assertIn("line: 9", str(context.exception))

    def test_sum_without_column(self):
        config = self.config()
        del config["metrics"]["totalCostAvoidance"]["column"]
        with self.assertRaises(KeyError) as context:
            PeriodConfigValidator(config).validate_yaml()
        self.assertIn("column parameter is required", str(context.exception))

    def test_comparison_of_unknown_metric(self):
        config = self.config()
        config["comparisons"]["closureRateImprovement"] = "closedTickets"
        with self.assertRaises(KeyError) as context:
            PeriodConfigValidator(config).validate_yaml()
        self.assertIn("closedTickets", str(context.exception))

    def test_invalid_trend_grouping(self):
        config = self.config()
        config["trend"]["group_by"] = "monthly"
        with self.assertRaises(KeyError):
            PeriodConfigValidator(config).validate_yaml()

    def test_trend_of_unknown_metric(self):
        config = self.config()
        config["trend"]["metric"] = "openTickets"
        with self.assertRaises(KeyError):
            PeriodConfigValidator(config).validate_yaml()

    def test_reversed_trend_span(self):
        config = self.config()
        config["trend"]["from_period"] = 6
        with self.assertRaises(InvalidPeriod) as context:
            PeriodConfigValidator(config).validate_yaml()
        self.assertIn("at line: 18", str(context.exception))

    def test_trend_year_span_needs_period_grouping(self):
        config = self.config()
        config["trend"].update({"group_by": "weekly", "from_year": 2023, "to_year": 2024})
        with self.assertRaises(InvalidTimeFilter):
            PeriodConfigValidator(config).validate_yaml()

    def test_trend_year_span(self):
        config = self.config()
        config["trend"].update({"from_year": 2023, "to_year": 2024})
        PeriodConfigValidator(config).validate_yaml()

    def test_leaderboards(self):
        config = self.config()
        config["leaderboards"] = {
            "topReporter": {"group_by": "reported_by", "__line__": 23},
            "topCostSaver": {"group_by": "reported_by", "metric": "totalCostAvoidance", "top_n": 3, "__line__": 25},
            "__line__": 22,
        }
        PeriodConfigValidator(config).validate_yaml()

    def test_leaderboard_without_group_by(self):
        config = self.config()
        config["leaderboards"] = {"topReporter": {"top_n": 1, "__line__": 23}}
        with self.assertRaises(KeyError) as context:
            PeriodConfigValidator(config).validate_yaml()
        self.assertIn("group_by parameter is required", str(context.exception))

    def test_leaderboard_of_unknown_metric(self):
        config = self.config()
        config["leaderboards"] = {"topDowntimeSaver": {"group_by": "reported_by", "metric": "downtime", "__line__": 23}}
        with self.assertRaises(KeyError) as context:
            PeriodConfigValidator(config).validate_yaml()
        self.assertIn("line: 23", str(context.exception))

    def test_leaderboard_size_must_be_positive(self):
        for top_n in (0, -1, "3", True):
            config = self.config()
            config["leaderboards"] = {"topReporter": {"group_by": "reported_by", "top_n": top_n, "__line__": 23}}
            with self.assertRaises(ValueError):
                PeriodConfigValidator(config).validate_yaml()

    def test_selection_validator_uses_setup_bounds(self):
        config = self.config()
        config["setup"].update({"min_year": 2022, "max_year": 2025})
        validator = PeriodConfigValidator(config).selection_validator()
        self.assertEqual((validator.min_year, validator.max_year), (2022, 2025))


if __name__ == '__main__':
    unittest.main()
