# SPDX-License-Identifier: Apache-2.0
"""
Period-over-period comparison of metric values.

Each (current, previous) pair is turned into a percentage, a qualitative change
type and a short description.  Zero on either side is handled by dedicated
rules, so the dashboard never has to render ``NaN%`` or ``Infinity%``.
"""
from enum import Enum
from typing import NamedTuple

import numpy as np
import pandas as pd

from period_engine.constants import ACTIVITY_STOPPED_PCT, NEW_ACTIVITY_PCT, PCT_MULTIPLIER


class ChangeType(str, Enum):
    NO_CHANGE = 'no_change'
    NEW_ACTIVITY = 'new_activity'
    ACTIVITY_STOPPED = 'activity_stopped'
    INCREASE = 'increase'
    DECREASE = 'decrease'


class ComparisonResult(NamedTuple):
    percentage: float
    type: ChangeType
    description: str

    def to_dict(self) -> dict:
        return {
            "percentage": self.percentage,
            "type": self.type.value,
            "description": self.description,
        }


def _as_number(value, label):
    # An empty aggregation window comes back as None/NaN and counts as zero
    if value is None or (np.isscalar(value) and pd.isna(value)):
        return 0
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{label} value must be a number, got {value!r}")
    if np.isinf(value):
        raise ValueError(f"{label} value must be finite, got {value}")
    return value


def _format_number(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def classify(current, previous) -> ComparisonResult:
    """
    Classifies the change between the current and previous window of a metric.

    Rules are evaluated in order:

    1. both zero -> ``no_change``, 0 %
    2. previous zero, current positive -> ``new_activity``, 100 %;
       previous zero, current negative -> ``decrease``, -100 %
    3. previous positive, current zero -> ``activity_stopped``, -100 %
    4. otherwise the percentage change relative to ``previous``; ``increase``
       or ``decrease`` by comparing the two values, ``no_change`` when they
       are equal.

    Signed metrics (cost corrections, net savings) go through rule 4 as well,
    so ``classify(5, -10)`` is an ``increase`` of -150 %.

    Args:
        current: The metric value of the current window.
        previous: The metric value of the comparison window.

    Returns:
        ComparisonResult: percentage, change type and description.

    Raises:
        TypeError: If a value is not numeric.
        ValueError: If a value is infinite.
    """
    current = _as_number(current, "current")
    previous = _as_number(previous, "previous")

    if previous == 0 and current == 0:
        return ComparisonResult(0.0, ChangeType.NO_CHANGE, "no change (both periods had 0)")
    if previous == 0 and current > 0:
        return ComparisonResult(NEW_ACTIVITY_PCT, ChangeType.NEW_ACTIVITY,
                                f"new activity (0 → {_format_number(current)})")
    if previous == 0:
        return ComparisonResult(ACTIVITY_STOPPED_PCT, ChangeType.DECREASE, f"{ACTIVITY_STOPPED_PCT:.1f}% change")
    if previous > 0 and current == 0:
        return ComparisonResult(ACTIVITY_STOPPED_PCT, ChangeType.ACTIVITY_STOPPED,
                                f"activity stopped ({_format_number(previous)} → 0)")

    if current == previous:
        return ComparisonResult(0.0, ChangeType.NO_CHANGE, "0.0% change")

    percentage = (current - previous) * PCT_MULTIPLIER / previous
    change_type = ChangeType.INCREASE if current > previous else ChangeType.DECREASE
    return ComparisonResult(float(percentage), change_type, f"{percentage:.1f}% change")


def compare_metrics(current: dict, previous: dict, names: dict = None) -> dict:
    """
    Classifies a bundle of KPIs in one call.

    Args:
        current (dict): Metric name -> value for the current window.
        previous (dict): Metric name -> value for the comparison window.
        names (dict, optional): Output name -> metric name, e.g.
            ``{"ticketGrowthRate": "totalTickets"}``.  Defaults to comparing every
            metric of ``current`` under its own name.

    Returns:
        dict: Output name -> ComparisonResult.

    Raises:
        KeyError: If a named metric is missing from either window.
    """
    names = names if names is not None else {metric: metric for metric in current}
    results = {}
    for name, metric in names.items():
        if metric not in current or metric not in previous:
            raise KeyError(f"Metric {metric} for comparison {name} is missing from the current or previous values")
        results[name] = classify(current[metric], previous[metric])
    return results
