from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from kubejobs.core.events import redact


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class KubeJobsError(Exception):
    code: str
    message: str
    severity: Severity = Severity.ERROR
    recoverable: bool = True
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.code)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "recoverable": bool(self.recoverable),
            "context": redact(self.context or {}),
        }


# ---- Core types ----
class ConfigError(KubeJobsError):
    def __init__(self, message: str = "Configuration error.", **ctx: Any):
        super().__init__("config_error", message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


class TransportError(KubeJobsError):
    def __init__(self, message: str = "Message could not be sent.", **ctx: Any):
        super().__init__("transport_error", message, severity=Severity.ERROR, recoverable=True, context=ctx)


class UnknownTransportError(KubeJobsError):
    def __init__(self, message: str = "Unknown transport type.", **ctx: Any):
        super().__init__("unknown_transport", message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


class ClusterApiError(KubeJobsError):
    def __init__(self, message: str = "Cluster API request failed.", **ctx: Any):
        super().__init__("cluster_api_error", message, severity=Severity.WARN, recoverable=True, context=ctx)

