from __future__ import annotations

import logging

from kubejobs.core.config.models import MonitorConfig
from kubejobs.core.timeutil import Clock, utc_now
from kubejobs.core.workers import WORKER_ENDPOINTS
from kubejobs.monitor.classification import is_timeout, job_name_of
from kubejobs.monitor.job_handler import JobHandler
from kubejobs.monitor.sweep import SweepResult

logger = logging.getLogger("kubejobs.monitor.long_running")


class LongRunningJobsFinder:
    """
    Deletes jobs that exceeded their worker type's timeout.

    No notification is sent; the lost jobs finder reports the missing job on a
    later run.
    """

    name = "long_running_jobs"

    def __init__(self, *, handler: JobHandler, config: MonitorConfig, clock: Clock = utc_now):
        self.handler = handler
        self.config = config
        self._clock = clock

    def execute(self) -> SweepResult:
        result = SweepResult(task=self.name)
        now = self._clock()
        for endpoint in WORKER_ENDPOINTS:
            threshold = now - self.config.timeouts.for_endpoint(endpoint)
            try:
                jobs = self.handler.find_jobs_for_worker(endpoint)
            except Exception as e:  # noqa: BLE001
                logger.error(f"Could not list jobs of worker '{endpoint.value}': {e}")
                result.failed += 1
                continue

            for job in jobs:
                result.examined += 1
                name = job_name_of(job)
                if name and is_timeout(job, threshold):
                    logger.warning(f"Job '{name}' of worker '{endpoint.value}' started before {threshold.isoformat()}, deleting it.")
                    self.handler.delete_job(name)
                    result.deleted += 1
        return result
