from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from kubejobs.core.config.io import read_json_file
from kubejobs.core.config.models import AppConfig
from kubejobs.core.errors import ConfigError
from kubejobs.core.workers import WORKER_ENDPOINTS, Endpoint

CONFIG_FILES = ("monitor.json", "transport.json", "logging.json", "persistence.json")

# Environment variable -> key in monitor.json
MONITOR_ENV_KEYS: Dict[str, str] = {
    "MONITOR_NAMESPACE": "namespace",
    "MONITOR_REAPER_INTERVAL": "reaper_interval",
    "MONITOR_REAPER_MAX_AGE": "reaper_max_age",
    "MONITOR_LOST_JOBS_INTERVAL": "lost_jobs_interval",
    "MONITOR_LOST_JOBS_MIN_AGE": "lost_jobs_min_age",
    "MONITOR_RECENTLY_PROCESSED_INTERVAL": "recently_processed_interval",
    "MONITOR_LONG_RUNNING_JOBS_INTERVAL": "long_running_jobs_interval",
    "MONITOR_WATCHING_ENABLED": "enable_watching",
    "MONITOR_REAPER_ENABLED": "enable_reaper",
    "MONITOR_LOST_JOBS_ENABLED": "enable_lost_jobs",
    "MONITOR_LONG_RUNNING_JOBS_ENABLED": "enable_long_running_jobs",
}

SENDER_ENV_INFIX = "_SENDER_"


def _coerce(value: str) -> Any:
    v = value.strip()
    if v.isdigit():
        return int(v)
    return v


@dataclass(frozen=True)
class ConfigFsPaths:
    root: str = "."

    @property
    def config_dir(self) -> str:
        return os.path.join(self.root, "config")

    def file(self, name: str) -> str:
        return os.path.join(self.config_dir, name)


class ConfigManager:
    def __init__(self, *, fs: Optional[ConfigFsPaths] = None, env: Optional[Mapping[str, str]] = None, logger=None):
        self.fs = fs or ConfigFsPaths(".")
        self.env = os.environ if env is None else env
        self.logger = logger
        self._cfg: Optional[AppConfig] = None

    # ---------- public API ----------
    def load_all(self) -> AppConfig:
        files = self._load_raw_files()
        raw = {
            "monitor": self._apply_monitor_env(files.get("monitor.json", {})),
            "transport": self._apply_transport_env(files.get("transport.json", {})),
            "logging": files.get("logging.json", {}),
            "persistence": files.get("persistence.json", {}),
        }
        try:
            cfg = AppConfig.model_validate(raw)
        except ValidationError as e:
            raise ConfigError("Invalid configuration.", errors=_short_errors(e)) from e
        self._cfg = cfg
        if self.logger:
            self.logger.info(f"Configuration loaded from {self.fs.config_dir} (namespace={cfg.monitor.namespace}).")
        return cfg

    def get(self) -> AppConfig:
        if self._cfg is None:
            raise ConfigError("Config not loaded.")
        return self._cfg

    # ---------- internals ----------
    def _load_raw_files(self) -> Dict[str, Dict[str, Any]]:
        out: Dict[str, Dict[str, Any]] = {}
        for name in CONFIG_FILES:
            rr = read_json_file(self.fs.file(name))
            if rr.ok:
                out[name] = rr.data
            elif rr.error == "missing":
                out[name] = {}
            else:
                raise ConfigError("Config file could not be read.", file=name, error=rr.error)
        return out

    def _apply_monitor_env(self, data: Dict[str, Any]) -> Dict[str, Any]:
        merged = dict(data)
        for env_name, key in MONITOR_ENV_KEYS.items():
            if env_name in self.env:
                merged[key] = _coerce(self.env[env_name])
        timeouts = dict(merged.get("timeouts") or {})
        for endpoint in WORKER_ENDPOINTS:
            env_name = f"MONITOR_TIMEOUT_{endpoint.env_prefix}"
            if env_name in self.env:
                timeouts[endpoint.value] = _coerce(self.env[env_name])
        if timeouts:
            merged["timeouts"] = timeouts
        return merged

    def _apply_transport_env(self, data: Dict[str, Any]) -> Dict[str, Any]:
        endpoints = {k: dict(v) for k, v in (data.get("endpoints") or {}).items()}
        for endpoint in Endpoint:
            prefix = endpoint.env_prefix + SENDER_ENV_INFIX
            overrides = {k[len(prefix) :].lower(): v for k, v in self.env.items() if k.startswith(prefix)}
            if not overrides:
                continue
            sender = endpoints.setdefault(endpoint.value, {})
            transport_type = overrides.pop("transport_type", None)
            if transport_type is not None:
                sender["transport_type"] = transport_type
            options = dict(sender.get("options") or {})
            options.update(overrides)
            sender["options"] = options
        merged = dict(data)
        merged["endpoints"] = endpoints
        return merged


def _short_errors(e: ValidationError) -> list[str]:
    return [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
