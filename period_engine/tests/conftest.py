# SPDX-License-Identifier: Apache-2.0
"""
Shared fixtures for the period engine test suite.

Provides scenario loading utilities that build a PeriodReport and its dashboard
payload from the maintenance ticket scenario in period_engine/tests/scenario.
"""
import copy
import os
from functools import lru_cache
from pathlib import Path

import pytest
import yaml

from period_engine.data_loader import DataLoader
from period_engine.report import PeriodReport
from period_engine.report_utility import SafeLineLoader, get_dashboard

SCENARIO_DIR = Path(os.path.dirname(__file__)) / "scenario"
CONFIG_FILE = SCENARIO_DIR / "config.yaml"
EVENTS_FILE = SCENARIO_DIR / "events.csv"


def load_config():
    with open(CONFIG_FILE) as f:
        return yaml.load(f, SafeLineLoader)


@lru_cache(maxsize=None)
def _load_scenario():
    """Load the scenario's report and dashboard once.

    Every test of the scenario shares one report, so we cache to avoid
    reloading the CSV and recomputing the totals.
    """
    config = load_config()
    data_loader = DataLoader(cfg=config, csv_data=str(EVENTS_FILE))
    report = PeriodReport(config, daily_df=data_loader.daily_df)
    dashboard = get_dashboard(report)
    return report, dashboard


def load_scenario():
    """Public API: returns (report, dashboard) for the scenario."""
    return _load_scenario()


@pytest.fixture
def scenario_config():
    """A fresh copy of the scenario configuration that tests may modify."""
    return copy.deepcopy(load_config())


@pytest.fixture
def events_df():
    return DataLoader(cfg=load_config(), csv_data=str(EVENTS_FILE)).daily_df
