from __future__ import annotations

import logging

from kubejobs.core.config.models import MonitorConfig
from kubejobs.core.timeutil import Clock, utc_now
from kubejobs.monitor.job_handler import JobHandler
from kubejobs.monitor.sweep import SweepResult

logger = logging.getLogger("kubejobs.monitor.reaper")


class Reaper:
    """Deletes completed jobs older than the configured maximum age, reporting failed ones first."""

    name = "reaper"

    def __init__(self, *, handler: JobHandler, config: MonitorConfig, clock: Clock = utc_now):
        self.handler = handler
        self.config = config
        self._clock = clock

    def execute(self) -> SweepResult:
        result = SweepResult(task=self.name)
        threshold = self._clock() - self.config.reaper_max_age
        logger.info(f"Reaper run, removing jobs completed before {threshold.isoformat()}.")

        for job in self.handler.find_jobs_completed_before(threshold):
            result.examined += 1
            if self.handler.delete_and_notify_if_failed(job):
                result.deleted += 1
        return result
