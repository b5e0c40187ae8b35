from __future__ import annotations

from typing import Dict, List, Mapping, Optional

from kubejobs.core.workers import Endpoint

WORKER_LABEL = "ort-worker"
RUN_ID_LABEL = "run-id"
TRACE_LABEL_PREFIX = "trace-id-"
JOB_NAME_LABEL = "job-name"

# Label values are limited to 63 characters.
TRACE_CHUNK_SIZE = 60
MAX_NAME_LENGTH = 64


def chunk_trace_id(trace_id: str, size: int = TRACE_CHUNK_SIZE) -> List[str]:
    if size < 1:
        raise ValueError("chunk size must be positive")
    return [trace_id[i : i + size] for i in range(0, len(trace_id), size)]


def trace_id_labels(trace_id: str, size: int = TRACE_CHUNK_SIZE) -> Dict[str, str]:
    return {f"{TRACE_LABEL_PREFIX}{i}": chunk for i, chunk in enumerate(chunk_trace_id(trace_id, size))}


def trace_id_from_labels(labels: Optional[Mapping[str, str]]) -> str:
    """
    Reassemble a trace id from its `trace-id-<n>` chunks in index order.

    Returns an empty string if there are no chunks or the indices have a gap,
    since a partial id cannot be attributed reliably.
    """
    chunks: Dict[int, str] = {}
    for key, value in (labels or {}).items():
        if not key.startswith(TRACE_LABEL_PREFIX):
            continue
        suffix = key[len(TRACE_LABEL_PREFIX) :]
        if not suffix.isdigit():
            continue
        chunks[int(suffix)] = value or ""
    if not chunks or sorted(chunks) != list(range(len(chunks))):
        return ""
    return "".join(chunks[i] for i in range(len(chunks)))


def ort_run_id_from_labels(labels: Optional[Mapping[str, str]]) -> Optional[int]:
    raw = (labels or {}).get(RUN_ID_LABEL)
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def job_name(endpoint: Endpoint, trace_id: str) -> str:
    return f"{Endpoint(endpoint).value}-{trace_id}"[:MAX_NAME_LENGTH]


def job_labels(endpoint: Endpoint, trace_id: str, ort_run_id: int) -> Dict[str, str]:
    labels = trace_id_labels(trace_id)
    labels[RUN_ID_LABEL] = str(ort_run_id)
    labels[WORKER_LABEL] = Endpoint(endpoint).value
    return labels


# ---- label selectors ----
def worker_selector(endpoint: Endpoint) -> str:
    return f"{WORKER_LABEL}={Endpoint(endpoint).value}"


def known_workers_selector() -> str:
    names = ",".join(sorted(e.value for e in Endpoint))
    return f"{WORKER_LABEL} in ({names})"


def job_pods_selector(name: str) -> str:
    return f"{JOB_NAME_LABEL}={name}"
