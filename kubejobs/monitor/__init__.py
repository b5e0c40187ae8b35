"""
Job monitor.

Keeps the cluster in line with the orchestrator's database: completed jobs are
reaped (failures reported first), jobs missing from the cluster and runs without
any job are reported, and jobs exceeding their timeout are removed.
"""

from kubejobs.monitor.component import MonitorComponent
from kubejobs.monitor.job_handler import JobHandler
from kubejobs.monitor.long_running import LongRunningJobsFinder
from kubejobs.monitor.lost_jobs import LostJobsFinder
from kubejobs.monitor.notifier import FailedJobNotifier
from kubejobs.monitor.reaper import Reaper
from kubejobs.monitor.recent_jobs import RecentJobsGuard
from kubejobs.monitor.sweep import SweepResult

__all__ = [
    "MonitorComponent",
    "JobHandler",
    "LongRunningJobsFinder",
    "LostJobsFinder",
    "FailedJobNotifier",
    "Reaper",
    "RecentJobsGuard",
    "SweepResult",
]
