from __future__ import annotations

import logging
import os
import re
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kubejobs.core.messages import MessageHeader, transport_property

logger = logging.getLogger("kubejobs.transport.kubernetes")

TRANSPORT_NAME = "kubernetes"

# Whitespace outside of double quotes.
_SPLIT_RE = re.compile(r'\s+(?=(?:[^"]*"[^"]*")*[^"]*$)')
_PLACEHOLDER_RE = re.compile(r"\$\{([^}]+)\}")


def split_at_whitespace(value: str) -> List[str]:
    """Split at blanks, keeping double-quoted parts together (quotes are removed)."""
    parts = _SPLIT_RE.split(value.strip()) if value and value.strip() else []
    out: List[str] = []
    for p in parts:
        if len(p) >= 2 and p.startswith('"') and p.endswith('"'):
            p = p[1:-1]
        if p:
            out.append(p)
    return out


class SecretMount(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    secret: str
    mount_path: str


class PvcMount(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)
    claim_name: str
    mount_path: str
    read_only: bool = True


def _split_mapping(entry: str) -> Optional[tuple[str, str]]:
    parts = entry.split("->")
    if len(parts) != 2:
        return None
    left, right = parts[0].strip(), parts[1].strip()
    if not left or not right:
        return None
    return left, right


def parse_secret_mounts(value: str) -> List[SecretMount]:
    """`secret->/path` entries; invalid entries are skipped."""
    mounts: List[SecretMount] = []
    for entry in split_at_whitespace(value):
        pair = _split_mapping(entry)
        if pair is None:
            logger.warning(f"Ignoring invalid secret mount declaration '{entry}'.")
            continue
        mounts.append(SecretMount(secret=pair[0], mount_path=pair[1]))
    return mounts


def parse_pvc_mounts(value: str) -> List[PvcMount]:
    """`claim->/path,R` (read-only) or `claim->/path,W` (read-write) entries; invalid entries are skipped."""
    mounts: List[PvcMount] = []
    for entry in split_at_whitespace(value):
        pair = _split_mapping(entry)
        path, _, mode = pair[1].rpartition(",") if pair else ("", "", "")
        mode = mode.strip().upper()
        if pair is None or not path.strip() or mode not in ("R", "W"):
            logger.warning(f"Ignoring invalid PVC mount declaration '{entry}'.")
            continue
        mounts.append(PvcMount(claim_name=pair[0], mount_path=path.strip(), read_only=(mode == "R")))
    return mounts


def interpolate(template: str, header: MessageHeader) -> str:
    """Resolve `${name}` from the message's `kubernetes.<name>` transport property; unknown names stay as they are."""

    def _sub(m: "re.Match[str]") -> str:
        value = transport_property(header, TRANSPORT_NAME, m.group(1))
        return value if value is not None else m.group(0)

    return _PLACEHOLDER_RE.sub(_sub, template)


class KubernetesSenderConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    namespace: str = Field(min_length=1)
    image_name: str = Field(min_length=1)
    image_pull_policy: str = "Never"
    image_pull_secret: Optional[str] = None
    restart_policy: str = "OnFailure"
    backoff_limit: int = Field(default=2, ge=0)
    commands: List[str] = Field(default_factory=list)
    args: List[str] = Field(default_factory=list)
    user_id: int = 1000
    service_account_name: Optional[str] = None
    mount_secrets: List[SecretMount] = Field(default_factory=list)
    mount_pvcs: List[PvcMount] = Field(default_factory=list)
    annotation_variables: List[str] = Field(default_factory=list)
    cpu_request: Optional[str] = None
    cpu_limit: Optional[str] = None
    memory_request: Optional[str] = None
    memory_limit: Optional[str] = None
    enable_debug_logging: bool = False

    @field_validator("commands", "args", mode="before")
    @classmethod
    def _split_command_line(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return split_at_whitespace(v)
        return v

    @field_validator("mount_secrets", mode="before")
    @classmethod
    def _parse_secrets(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return parse_secret_mounts(v)
        return v

    @field_validator("mount_pvcs", mode="before")
    @classmethod
    def _parse_pvcs(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return parse_pvc_mounts(v)
        return v

    @field_validator("annotation_variables", mode="before")
    @classmethod
    def _split_names(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [n.strip() for n in v.split(",") if n.strip()]
        return v

    def annotations(self, environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """
        Annotations taken from the environment variables listed in
        `annotation_variables`. Each must hold `key=value`; missing or malformed
        variables are skipped.
        """
        source = os.environ if environ is None else environ
        out: Dict[str, str] = {}
        for name in self.annotation_variables:
            raw = source.get(name)
            if raw is None:
                logger.warning(f"Annotation variable '{name}' is not set.")
                continue
            key, sep, value = raw.partition("=")
            key, value = key.strip(), value.strip()
            if not sep or not key or not value:
                logger.warning(f"Ignoring invalid annotation in variable '{name}'.")
                continue
            out[key] = value
        return out

    def resources(self) -> Dict[str, Dict[str, str]]:
        requests = {k: v for k, v in (("cpu", self.cpu_request), ("memory", self.memory_request)) if v}
        limits = {k: v for k, v in (("cpu", self.cpu_limit), ("memory", self.memory_limit)) if v}
        out: Dict[str, Dict[str, str]] = {}
        if requests:
            out["requests"] = requests
        if limits:
            out["limits"] = limits
        return out
