# SPDX-License-Identifier: Apache-2.0
"""
Named constants for the fiscal period engine.

These constants replace magic numbers throughout the codebase so the rules of
the 13 x 28-day maintenance reporting calendar are self-documenting.
"""

# ---------------------------------------------------------------------------
# Fiscal calendar shape
#
# A fiscal year starts on the first Sunday on/after January 1 and is cut into
# 13 periods of 28 days (4 weeks each).  13 x 28 = 364, so consecutive anchors
# are either 364 or 371 days apart; the 7 leftover days of a long year are the
# "remainder" and are reported as period 14 of the earlier year.
# ---------------------------------------------------------------------------
DAYS_PER_WEEK = 7
WEEKS_PER_PERIOD = 4
PERIOD_LENGTH_DAYS = 28
PERIODS_PER_YEAR = 13
FISCAL_YEAR_DAYS = 364  # 13 * 28
REMAINDER_PERIOD = PERIODS_PER_YEAR + 1

# Offsets used when resolving ranges (inclusive end dates)
PERIOD_END_OFFSET_DAYS = PERIOD_LENGTH_DAYS - 1  # 27
FISCAL_YEAR_END_OFFSET_DAYS = FISCAL_YEAR_DAYS - 1  # 363

# ---------------------------------------------------------------------------
# Time filter modes supplied by the dashboard selector
# ---------------------------------------------------------------------------
THIS_YEAR = 'this-year'
LAST_YEAR = 'last-year'
THIS_PERIOD = 'this-period'
SELECT_PERIOD = 'select-period'
TIME_FILTER_MODES = (THIS_YEAR, LAST_YEAR, THIS_PERIOD, SELECT_PERIOD)

# ---------------------------------------------------------------------------
# Validation bounds (overridable from the dashboard yaml setup section)
# ---------------------------------------------------------------------------
DEFAULT_MIN_YEAR = 2000
DEFAULT_MAX_YEAR = 2100

# ---------------------------------------------------------------------------
# Comparison scaling
# ---------------------------------------------------------------------------
PCT_MULTIPLIER = 100  # percent-change metrics: (current - previous) * 100 / previous
NEW_ACTIVITY_PCT = 100.0
ACTIVITY_STOPPED_PCT = -100.0

# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------
DATE_FORMAT = '%Y-%m-%d'
DEFAULT_DATE_COLUMN = 'Date'

# Trend grouping
GROUP_DAILY = 'daily'
GROUP_WEEKLY = 'weekly'
GROUP_PERIOD = 'period'
TREND_GROUPINGS = (GROUP_DAILY, GROUP_WEEKLY, GROUP_PERIOD)

# Metric aggregation functions accepted in the metrics section
SUPPORTED_AGGF = ('count', 'sum', 'mean', 'min', 'max')

# Leaderboards rank contributors over the primary window; the top one by default
DEFAULT_LEADERBOARD_SIZE = 1
