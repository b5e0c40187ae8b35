from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kubejobs.core.errors import ConfigError
from kubejobs.core.workers import WORKER_ENDPOINTS, Endpoint


class TimeoutConfig(BaseModel):
    """Maximum runtime in minutes per worker type. Every worker type needs an entry."""

    model_config = ConfigDict(extra="forbid", frozen=True)
    config: int = Field(ge=1)
    analyzer: int = Field(ge=1)
    advisor: int = Field(ge=1)
    scanner: int = Field(ge=1)
    evaluator: int = Field(ge=1)
    reporter: int = Field(ge=1)
    notifier: int = Field(ge=1)

    def for_endpoint(self, endpoint: Endpoint) -> timedelta:
        endpoint = Endpoint(endpoint)
        if endpoint not in WORKER_ENDPOINTS:
            raise ValueError(f"No timeout for endpoint '{endpoint.value}'.")
        return timedelta(minutes=int(getattr(self, endpoint.value)))


def _check_timeouts_cover_workers() -> None:
    fields = set(TimeoutConfig.model_fields)
    workers = {e.value for e in WORKER_ENDPOINTS}
    if fields != workers:
        raise ConfigError(
            "Timeout configuration does not match worker types.",
            missing=sorted(workers - fields),
            unexpected=sorted(fields - workers),
        )


_check_timeouts_cover_workers()


class MonitorConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    namespace: str = Field(min_length=1)
    reaper_interval: timedelta = timedelta(seconds=600)
    reaper_max_age: timedelta = timedelta(seconds=600)
    lost_jobs_interval: timedelta = timedelta(seconds=120)
    lost_jobs_min_age: timedelta = timedelta(seconds=30)
    recently_processed_interval: timedelta = timedelta(seconds=60)
    long_running_jobs_interval: timedelta = timedelta(seconds=120)
    enable_watching: bool = True
    enable_reaper: bool = True
    enable_lost_jobs: bool = True
    enable_long_running_jobs: bool = True
    watch_timeout_seconds: int = Field(default=300, ge=1)
    request_timeout_seconds: int = Field(default=30, ge=1)
    pod_delete_workers: int = Field(default=4, ge=1)
    timeouts: TimeoutConfig

    @field_validator(
        "reaper_interval",
        "reaper_max_age",
        "lost_jobs_interval",
        "lost_jobs_min_age",
        "recently_processed_interval",
        "long_running_jobs_interval",
    )
    @classmethod
    def _positive(cls, v: timedelta) -> timedelta:
        if v.total_seconds() <= 0:
            raise ValueError("duration must be positive")
        return v


class SenderConfig(BaseModel):
    """Transport selection for one endpoint; `options` are interpreted by the transport."""

    model_config = ConfigDict(extra="forbid", frozen=True)
    transport_type: str = Field(min_length=1)
    options: Dict[str, Any] = Field(default_factory=dict)


class TransportConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    endpoints: Dict[str, SenderConfig] = Field(default_factory=dict)

    @field_validator("endpoints")
    @classmethod
    def _known_endpoints(cls, v: Dict[str, SenderConfig]) -> Dict[str, SenderConfig]:
        known = {e.value for e in Endpoint}
        unknown = sorted(k for k in v if k not in known)
        if unknown:
            raise ValueError(f"unknown endpoints: {unknown}")
        return v

    def sender_for(self, endpoint: Endpoint) -> SenderConfig:
        cfg = self.endpoints.get(Endpoint(endpoint).value)
        if cfg is None:
            raise ConfigError("No sender configured for endpoint.", endpoint=Endpoint(endpoint).value)
        return cfg


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    log_dir: str = "logs"
    level: str = "INFO"
    events_path: str = "logs/events.jsonl"


class PersistenceConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    sqlite_path: str = "data/kubejobs.db"


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    monitor: MonitorConfig
    transport: TransportConfig = Field(default_factory=TransportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
