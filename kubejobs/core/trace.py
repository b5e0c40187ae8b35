from __future__ import annotations

import contextlib
import contextvars
import logging
import uuid
from typing import Iterator, Optional

_TRACE_ID: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("kubejobs.trace_id", default=None)
_ORT_RUN_ID: contextvars.ContextVar[Optional[int]] = contextvars.ContextVar("kubejobs.ort_run_id", default=None)


def new_trace_id() -> str:
    return uuid.uuid4().hex


def current_trace_id(default: Optional[str] = None) -> Optional[str]:
    trace_id = _TRACE_ID.get()
    return trace_id if trace_id else default


def current_ort_run_id() -> Optional[int]:
    return _ORT_RUN_ID.get()


def resolve_trace_id(trace_id: Optional[str] = None) -> str:
    """Return the given trace id if it is not blank, otherwise a freshly generated one."""
    if trace_id and str(trace_id).strip():
        return str(trace_id)
    return new_trace_id()


@contextlib.contextmanager
def trace_context(trace_id: Optional[str], ort_run_id: Optional[int] = None) -> Iterator[Optional[str]]:
    """
    Bind a trace id (and optionally an ORT run id) to the current context, so that
    log records emitted inside the block carry them.
    """
    t_token = _TRACE_ID.set(str(trace_id) if trace_id else None)
    r_token = _ORT_RUN_ID.set(ort_run_id)
    try:
        yield current_trace_id()
    finally:
        _ORT_RUN_ID.reset(r_token)
        _TRACE_ID.reset(t_token)


class TraceContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = current_trace_id("unknown")
        run_id = current_ort_run_id()
        record.ort_run_id = str(run_id) if run_id is not None else "unknown"
        return True
