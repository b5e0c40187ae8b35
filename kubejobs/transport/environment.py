from __future__ import annotations

import os
from typing import Dict, Mapping, Optional, Type

from kubejobs.core.messages import Message, MessageHeader, P, decode_payload
from kubejobs.core.workers import Endpoint

# Shell/session variables that must not leak into worker containers.
ENV_BLOCKLIST = frozenset({"_", "HOME", "PATH", "PWD"})

TRACE_ID_VARIABLE = "traceId"
RUN_ID_VARIABLE = "runId"
TOKEN_VARIABLE = "token"
PAYLOAD_VARIABLE = "payload"


def worker_environment(endpoint: Endpoint, message: Message, environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Environment for a worker container.

    The current environment is passed through minus the blocklist. A variable
    `<WORKER>_X` is exposed to that worker as `X`, replacing any plain `X`.
    Header fields and the serialized payload are added last.
    """
    source = os.environ if environ is None else environ
    prefix = Endpoint(endpoint).env_prefix + "_"

    env: Dict[str, str] = {}
    overrides: Dict[str, str] = {}
    for key, value in source.items():
        if key in ENV_BLOCKLIST:
            continue
        if key.startswith(prefix) and len(key) > len(prefix):
            overrides[key[len(prefix) :]] = value
        else:
            env[key] = value
    env.update(overrides)

    env[TRACE_ID_VARIABLE] = message.header.trace_id
    env[RUN_ID_VARIABLE] = str(message.header.ort_run_id)
    env[TOKEN_VARIABLE] = message.header.token
    env[PAYLOAD_VARIABLE] = message.serialized_payload()
    return env


def message_from_environment(payload_type: Type[P], environ: Optional[Mapping[str, str]] = None) -> Message[P]:
    """Reverse of `worker_environment` as seen from inside a worker container."""
    source = os.environ if environ is None else environ
    header = MessageHeader(
        trace_id=source.get(TRACE_ID_VARIABLE, ""),
        ort_run_id=int(source.get(RUN_ID_VARIABLE, "0") or 0),
        token=source.get(TOKEN_VARIABLE, ""),
    )
    return Message(header=header, payload=decode_payload(source[PAYLOAD_VARIABLE], payload_type))
