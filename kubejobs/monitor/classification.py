from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from kubernetes.client import V1Job

from kubejobs.core.timeutil import as_utc
from kubejobs.transport.labels import ort_run_id_from_labels, trace_id_from_labels

FAILED_CONDITION = "Failed"
COMPLETE_CONDITION = "Complete"


def _condition_types(job: V1Job) -> List[str]:
    status = job.status
    if status is None or not status.conditions:
        return []
    return [c.type for c in status.conditions if c is not None]


def _labels(job: V1Job):
    return job.metadata.labels if job.metadata is not None else None


def job_name_of(job: V1Job) -> Optional[str]:
    return job.metadata.name if job.metadata is not None else None


def is_failed(job: V1Job) -> bool:
    return FAILED_CONDITION in _condition_types(job)


def is_completed(job: V1Job) -> bool:
    if job.status is not None and job.status.completion_time is not None:
        return True
    types = _condition_types(job)
    return FAILED_CONDITION in types or COMPLETE_CONDITION in types


def is_timeout(job: V1Job, threshold: datetime) -> bool:
    if is_completed(job):
        return False
    started = as_utc(job.status.start_time) if job.status is not None else None
    return started is not None and started < as_utc(threshold)


def completed_before(job: V1Job, time: datetime) -> bool:
    """
    Failed jobs may never get a completion time; a completed job without one
    is always treated as old enough.
    """
    if not is_completed(job):
        return False
    completion = as_utc(job.status.completion_time) if job.status is not None else None
    return completion is None or completion < as_utc(time)


def trace_id_of(job: V1Job) -> str:
    return trace_id_from_labels(_labels(job))


def ort_run_id_of(job: V1Job) -> Optional[int]:
    return ort_run_id_from_labels(_labels(job))
