from __future__ import annotations

import json
import os
from datetime import timedelta

import pytest
from pydantic import ValidationError

from kubejobs.core.config.manager import ConfigManager
from kubejobs.core.config.models import MonitorConfig, TimeoutConfig
from kubejobs.core.errors import ConfigError
from kubejobs.core.workers import WORKER_ENDPOINTS, Endpoint

from .conftest import TIMEOUTS
from .helpers.fakes import DummyLogger


def _write(fs, name, data):
    with open(os.path.join(fs.config_dir, name), "w", encoding="utf-8") as f:
        json.dump(data, f)


def test_timeouts_cover_every_worker_type():
    assert set(TimeoutConfig.model_fields) == {e.value for e in WORKER_ENDPOINTS}


def test_timeouts_are_minutes():
    t = TimeoutConfig(**TIMEOUTS)
    assert t.for_endpoint(Endpoint.ANALYZER) == timedelta(minutes=60)
    with pytest.raises(ValueError):
        t.for_endpoint(Endpoint.ORCHESTRATOR)


def test_missing_timeout_is_rejected():
    partial = dict(TIMEOUTS)
    del partial["scanner"]
    with pytest.raises(ValidationError):
        MonitorConfig.model_validate({"namespace": "ns", "timeouts": partial})


def test_defaults_and_immutability():
    cfg = MonitorConfig.model_validate({"namespace": "ns", "timeouts": TIMEOUTS})
    assert cfg.reaper_interval == timedelta(seconds=600)
    assert cfg.lost_jobs_min_age == timedelta(seconds=30)
    assert cfg.recently_processed_interval == timedelta(seconds=60)
    assert cfg.enable_reaper and cfg.enable_lost_jobs and cfg.enable_long_running_jobs and cfg.enable_watching
    with pytest.raises(ValidationError):
        cfg.namespace = "other"


def test_non_positive_durations_are_rejected():
    with pytest.raises(ValidationError):
        MonitorConfig.model_validate({"namespace": "ns", "timeouts": TIMEOUTS, "reaper_max_age": 0})


def test_load_from_files(tmp_config_root):
    _write(tmp_config_root, "monitor.json", {"namespace": "ort", "reaper_max_age": 900, "timeouts": TIMEOUTS})
    _write(
        tmp_config_root,
        "transport.json",
        {"endpoints": {"orchestrator": {"transport_type": "kubernetes", "options": {"namespace": "ort"}}}},
    )
    cfg = ConfigManager(fs=tmp_config_root, env={}, logger=DummyLogger()).load_all()
    assert cfg.monitor.namespace == "ort"
    assert cfg.monitor.reaper_max_age == timedelta(seconds=900)
    assert cfg.transport.sender_for(Endpoint.ORCHESTRATOR).transport_type == "kubernetes"
    assert cfg.logging.level == "INFO"


def test_environment_overrides(tmp_config_root):
    _write(tmp_config_root, "monitor.json", {"namespace": "ort", "timeouts": TIMEOUTS})
    env = {
        "MONITOR_NAMESPACE": "from-env",
        "MONITOR_LOST_JOBS_MIN_AGE": "45",
        "MONITOR_REAPER_ENABLED": "false",
        "MONITOR_TIMEOUT_SCANNER": "240",
        "ORCHESTRATOR_SENDER_TRANSPORT_TYPE": "kubernetes",
        "ORCHESTRATOR_SENDER_IMAGE_NAME": "orchestrator:2",
    }
    cfg = ConfigManager(fs=tmp_config_root, env=env).load_all()
    assert cfg.monitor.namespace == "from-env"
    assert cfg.monitor.lost_jobs_min_age == timedelta(seconds=45)
    assert cfg.monitor.enable_reaper is False
    assert cfg.monitor.timeouts.scanner == 240
    sender = cfg.transport.sender_for(Endpoint.ORCHESTRATOR)
    assert sender.transport_type == "kubernetes"
    assert sender.options == {"image_name": "orchestrator:2"}


def test_missing_required_settings_fail_at_startup(tmp_config_root):
    with pytest.raises(ConfigError) as ei:
        ConfigManager(fs=tmp_config_root, env={}).load_all()
    assert any("namespace" in e for e in ei.value.context["errors"])


def test_corrupt_file_fails(tmp_config_root):
    with open(tmp_config_root.file("monitor.json"), "w", encoding="utf-8") as f:
        f.write("{not json")
    with pytest.raises(ConfigError):
        ConfigManager(fs=tmp_config_root, env={}).load_all()


def test_unknown_keys_are_rejected(tmp_config_root):
    _write(tmp_config_root, "monitor.json", {"namespace": "ort", "timeouts": TIMEOUTS, "reaperMaxAge": 5})
    with pytest.raises(ConfigError):
        ConfigManager(fs=tmp_config_root, env={}).load_all()


def test_missing_sender_is_a_config_error(tmp_config_root):
    _write(tmp_config_root, "monitor.json", {"namespace": "ort", "timeouts": TIMEOUTS})
    cfg = ConfigManager(fs=tmp_config_root, env={}).load_all()
    with pytest.raises(ConfigError):
        cfg.transport.sender_for(Endpoint.ORCHESTRATOR)


def test_get_before_load():
    with pytest.raises(ConfigError):
        ConfigManager(env={}).get()
