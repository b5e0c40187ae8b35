from __future__ import annotations

import os

import pytest

from kubejobs.core.config.manager import ConfigFsPaths
from kubejobs.core.config.models import MonitorConfig

from .helpers.fakes import FakeClock, FakeGateway, RecordingSender

TIMEOUTS = {
    "config": 5,
    "analyzer": 60,
    "advisor": 10,
    "scanner": 120,
    "evaluator": 10,
    "reporter": 20,
    "notifier": 5,
}


def build_monitor_config(**overrides) -> MonitorConfig:
    data = {"namespace": "test-ns", "timeouts": dict(TIMEOUTS)}
    data.update(overrides)
    return MonitorConfig.model_validate(data)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def sender():
    return RecordingSender()


@pytest.fixture
def monitor_config():
    return build_monitor_config()


@pytest.fixture
def tmp_config_root(tmp_path):
    """
    Provides an isolated root with an empty config/ under tmp_path.
    """
    fs = ConfigFsPaths(root=str(tmp_path))
    os.makedirs(fs.config_dir, exist_ok=True)
    return fs
