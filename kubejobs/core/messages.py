from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from kubejobs.core.trace import resolve_trace_id


class MessagePayload(BaseModel):
    """Base of all payloads. The wire form uses camelCase keys."""

    model_config = ConfigDict(extra="forbid", frozen=True, alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: str):
        return cls.model_validate_json(raw)


# ---- Coordinator-bound status payloads ----
class WorkerError(MessagePayload):
    endpoint_name: str


class LostSchedule(MessagePayload):
    ort_run_id: int


# ---- Worker requests ----
class ConfigRequest(MessagePayload):
    ort_run_id: int


class AnalyzerRequest(MessagePayload):
    analyzer_job_id: int


class AdvisorRequest(MessagePayload):
    advisor_job_id: int


class ScannerRequest(MessagePayload):
    scanner_job_id: int


class EvaluatorRequest(MessagePayload):
    evaluator_job_id: int


class ReporterRequest(MessagePayload):
    reporter_job_id: int


class NotifierRequest(MessagePayload):
    notifier_job_id: int


@dataclass(frozen=True)
class MessageHeader:
    trace_id: str
    ort_run_id: int
    token: str = ""
    transport_properties: Dict[str, str] = field(default_factory=dict)

    def with_resolved_trace_id(self) -> "MessageHeader":
        if self.trace_id and self.trace_id.strip():
            return self
        return replace(self, trace_id=resolve_trace_id(self.trace_id))


P = TypeVar("P", bound=MessagePayload)


@dataclass(frozen=True)
class Message(Generic[P]):
    header: MessageHeader
    payload: P

    def serialized_payload(self) -> str:
        return self.payload.to_json()


def decode_payload(raw: str, payload_type: Type[P]) -> P:
    return payload_type.from_json(raw)


def transport_property(header: MessageHeader, transport_type: str, name: str) -> Optional[str]:
    """Transport properties are namespaced as `<transport>.<name>`."""
    return header.transport_properties.get(f"{transport_type}.{name}")

