from __future__ import annotations

import logging
from datetime import datetime
from typing import Mapping, Set

from kubejobs.core.config.models import MonitorConfig
from kubejobs.core.errors import ConfigError
from kubejobs.core.persistence import OrtRunRepository, WorkerJobRepository
from kubejobs.core.timeutil import Clock, as_utc, utc_now
from kubejobs.core.trace import trace_context
from kubejobs.core.workers import CLUSTER_ONLY_WORKER_ENDPOINTS, TRACKED_WORKER_ENDPOINTS, Endpoint
from kubejobs.monitor.classification import ort_run_id_of
from kubejobs.monitor.job_handler import JobHandler
from kubejobs.monitor.notifier import FailedJobNotifier
from kubejobs.monitor.sweep import SweepResult

logger = logging.getLogger("kubejobs.monitor.lost_jobs")


class LostJobsFinder:
    """
    Compares jobs the database considers active with the jobs in the cluster.

    A persisted active job without a cluster job is reported as lost. An active
    run without any job at all, persisted or in the cluster, is reported as a
    lost schedule. Only records older than `lost_jobs_min_age` are considered,
    so that jobs still being dispatched are not reported.
    """

    name = "lost_jobs"

    def __init__(
        self,
        *,
        handler: JobHandler,
        notifier: FailedJobNotifier,
        config: MonitorConfig,
        job_repositories: Mapping[Endpoint, WorkerJobRepository],
        run_repository: OrtRunRepository,
        clock: Clock = utc_now,
    ):
        missing = [e.value for e in TRACKED_WORKER_ENDPOINTS if e not in job_repositories]
        if missing:
            raise ConfigError("Job repositories missing for workers.", missing=missing)
        self.handler = handler
        self.notifier = notifier
        self.config = config
        self.job_repositories = dict(job_repositories)
        self.run_repository = run_repository
        self._clock = clock

    def execute(self) -> SweepResult:
        result = SweepResult(task=self.name)
        before = self._clock() - self.config.lost_jobs_min_age
        logger.info(f"Looking for lost jobs started before {before.isoformat()}.")

        runs_with_jobs: Set[int] = set()
        for endpoint in TRACKED_WORKER_ENDPOINTS:
            runs_with_jobs |= self._check_endpoint(endpoint, before, result)

        # Cluster-only workers have no persisted record; only the cluster knows about them.
        for endpoint in CLUSTER_ONLY_WORKER_ENDPOINTS:
            runs_with_jobs |= self._cluster_run_ids(endpoint)

        self._check_schedules(runs_with_jobs, before, result)
        return result

    def _cluster_run_ids(self, endpoint: Endpoint) -> Set[int]:
        ids = (ort_run_id_of(j) for j in self.handler.find_jobs_for_worker(endpoint))
        return {i for i in ids if i is not None}

    def _check_endpoint(self, endpoint: Endpoint, before: datetime, result: SweepResult) -> Set[int]:
        cluster_ids = self._cluster_run_ids(endpoint)
        active = self.job_repositories[endpoint].list_active(before)
        result.examined += len(active)

        for job in active:
            if job.ort_run_id in cluster_ids:
                continue
            run = self.run_repository.get(job.ort_run_id)
            with trace_context(run.trace_id if run else None, job.ort_run_id):
                logger.warning(f"Found lost job of worker '{endpoint.value}' for run {job.ort_run_id}.")
                try:
                    self.notifier.send_lost_job_notification(job.ort_run_id, endpoint)
                    result.notified += 1
                except Exception as e:  # noqa: BLE001
                    logger.error(f"Could not report lost job of worker '{endpoint.value}': {e}")
                    result.failed += 1

        return cluster_ids | {job.ort_run_id for job in active}

    def _check_schedules(self, runs_with_jobs: Set[int], before: datetime, result: SweepResult) -> None:
        for run in self.run_repository.list_active_runs():
            if run.run_id in runs_with_jobs or as_utc(run.created_at) > as_utc(before):
                continue
            with trace_context(run.trace_id or None, run.run_id):
                logger.warning(f"Run {run.run_id} is active but has no jobs.")
                try:
                    self.notifier.send_lost_schedule_notification(run)
                    result.notified += 1
                except Exception as e:  # noqa: BLE001
                    logger.error(f"Could not report lost schedule of run {run.run_id}: {e}")
                    result.failed += 1
