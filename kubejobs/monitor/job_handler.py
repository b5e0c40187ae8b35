from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import List

from kubernetes.client import V1Job

from kubejobs.core.events import NullEventLogger
from kubejobs.core.trace import current_trace_id, trace_context
from kubejobs.core.workers import Endpoint
from kubejobs.monitor.classification import completed_before, is_failed, job_name_of, ort_run_id_of, trace_id_of
from kubejobs.monitor.notifier import FailedJobNotifier
from kubejobs.monitor.recent_jobs import RecentJobsGuard
from kubejobs.transport.gateway import ClusterJobGateway
from kubejobs.transport.labels import job_pods_selector, known_workers_selector, worker_selector

logger = logging.getLogger("kubejobs.monitor.job_handler")


class JobHandler:
    """Queries and cleanup over cluster jobs, shared by all reconciliation tasks."""

    def __init__(
        self,
        *,
        gateway: ClusterJobGateway,
        notifier: FailedJobNotifier,
        guard: RecentJobsGuard,
        pod_delete_workers: int = 4,
        event_logger=None,
    ):
        self.gateway = gateway
        self.notifier = notifier
        self.guard = guard
        self.pod_delete_workers = max(1, int(pod_delete_workers))
        self.event_logger = event_logger or NullEventLogger()

    def find_jobs_completed_before(self, time: datetime) -> List[V1Job]:
        jobs = self.gateway.list_jobs(known_workers_selector())
        return [j for j in jobs if completed_before(j, time)]

    def find_jobs_for_worker(self, endpoint: Endpoint) -> List[V1Job]:
        return self.gateway.list_jobs(worker_selector(endpoint))

    def delete_and_notify_if_failed(self, job: V1Job) -> bool:
        """
        Delete a completed job, reporting it first if it failed.

        A failed job is only deleted after the notification went out; otherwise it
        stays for a later sweep. Returns True if the job was deleted.
        """
        name = job_name_of(job)
        if not name:
            return False
        if not self.guard.can_process(name):
            logger.debug(f"Job '{name}' was processed recently, skipping.")
            return False

        with trace_context(trace_id_of(job) or None, ort_run_id_of(job)):
            if is_failed(job):
                try:
                    self.notifier.send_failed_job_notification(job)
                except Exception as e:  # noqa: BLE001
                    logger.error(f"Could not send failure notification for job '{name}', keeping it: {e}")
                    return False
            self.delete_job(name)
            return True

    def delete_job(self, name: str) -> None:
        """Best-effort removal of a job and its pods. Errors are logged, never raised."""
        logger.info(f"Deleting job '{name}'.")
        try:
            if not self.gateway.delete_job(name):
                logger.debug(f"Job '{name}' was already gone.")
        except Exception as e:  # noqa: BLE001
            logger.error(f"Could not delete job '{name}': {e}")

        try:
            pods = self.gateway.list_pods(job_pods_selector(name))
        except Exception as e:  # noqa: BLE001
            logger.error(f"Could not list pods of job '{name}': {e}")
            return

        pod_names = [p.metadata.name for p in pods if p.metadata is not None and p.metadata.name]
        if len(pod_names) <= 1:
            for pod in pod_names:
                self._delete_pod(pod)
        else:
            with ThreadPoolExecutor(max_workers=min(self.pod_delete_workers, len(pod_names)), thread_name_prefix="pod-delete") as ex:
                list(ex.map(self._delete_pod, pod_names))
        try:
            self.event_logger.log(current_trace_id(""), "job.deleted", {"job": name, "pods": pod_names})
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Could not record deletion of job '{name}': {e}")

    def _delete_pod(self, name: str) -> None:
        try:
            self.gateway.delete_pod(name)
        except Exception as e:  # noqa: BLE001
            logger.error(f"Could not delete pod '{name}': {e}")
