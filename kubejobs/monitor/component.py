from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from kubejobs.core.config.models import AppConfig
from kubejobs.core.events import EventLogger, NullEventLogger
from kubejobs.core.persistence import SqliteJobStore
from kubejobs.core.timeutil import Clock, utc_now
from kubejobs.core.workers import Endpoint
from kubejobs.monitor.job_handler import JobHandler
from kubejobs.monitor.long_running import LongRunningJobsFinder
from kubejobs.monitor.lost_jobs import LostJobsFinder
from kubejobs.monitor.notifier import FailedJobNotifier
from kubejobs.monitor.reaper import Reaper
from kubejobs.monitor.recent_jobs import RecentJobsGuard
from kubejobs.monitor.scheduler import Scheduler
from kubejobs.monitor.watcher import JobMonitor, JobWatchHelper
from kubejobs.transport.gateway import ClusterJobGateway, create_gateway
from kubejobs.transport.sender import MessageSender, create_sender

logger = logging.getLogger("kubejobs.monitor")


@dataclass
class MonitorParts:
    handler: JobHandler
    notifier: FailedJobNotifier
    reaper: Reaper
    lost_jobs: LostJobsFinder
    long_running: LongRunningJobsFinder
    watcher: JobMonitor
    started: List[str] = field(default_factory=list)


class MonitorComponent:
    """
    Wires gateway, orchestrator sender, repositories and tasks from configuration
    and starts the tasks enabled there.
    """

    def __init__(
        self,
        cfg: AppConfig,
        *,
        gateway: Optional[ClusterJobGateway] = None,
        sender: Optional[MessageSender] = None,
        store: Any = None,
        event_logger: Any = None,
        clock: Clock = utc_now,
    ):
        self.cfg = cfg
        self._gateway = gateway
        self._sender = sender
        self._store = store
        self._event_logger = event_logger
        self._clock = clock
        self.scheduler = Scheduler()
        self._parts: Optional[MonitorParts] = None

    def build(self) -> MonitorParts:
        if self._parts is not None:
            return self._parts
        mon = self.cfg.monitor
        gateway = self._gateway or create_gateway(mon.namespace, request_timeout=mon.request_timeout_seconds)
        sender = self._sender or create_sender(Endpoint.ORCHESTRATOR, self.cfg.transport.sender_for(Endpoint.ORCHESTRATOR))
        store = self._store or SqliteJobStore(path=self.cfg.persistence.sqlite_path)
        events = self._event_logger or (EventLogger(self.cfg.logging.events_path) if self.cfg.logging.events_path else NullEventLogger())

        notifier = FailedJobNotifier(sender, event_logger=events)
        handler = JobHandler(
            gateway=gateway,
            notifier=notifier,
            guard=RecentJobsGuard(mon.recently_processed_interval, clock=self._clock),
            pod_delete_workers=mon.pod_delete_workers,
            event_logger=events,
        )
        self._parts = MonitorParts(
            handler=handler,
            notifier=notifier,
            reaper=Reaper(handler=handler, config=mon, clock=self._clock),
            lost_jobs=LostJobsFinder(
                handler=handler,
                notifier=notifier,
                config=mon,
                job_repositories=store.job_repositories(),
                run_repository=store,
                clock=self._clock,
            ),
            long_running=LongRunningJobsFinder(handler=handler, config=mon, clock=self._clock),
            watcher=JobMonitor(handler=handler, helper=JobWatchHelper(gateway, timeout_seconds=mon.watch_timeout_seconds)),
        )
        return self._parts

    def start(self) -> List[str]:
        """Start every enabled task; returns the names of the started tasks."""
        parts = self.build()
        mon = self.cfg.monitor
        if mon.enable_watching:
            parts.watcher.start()
            parts.started.append(parts.watcher.name)
        if mon.enable_reaper:
            self.scheduler.schedule(parts.reaper.name, mon.reaper_interval, parts.reaper.execute)
            parts.started.append(parts.reaper.name)
        if mon.enable_lost_jobs:
            self.scheduler.schedule(parts.lost_jobs.name, mon.lost_jobs_interval, parts.lost_jobs.execute)
            parts.started.append(parts.lost_jobs.name)
        if mon.enable_long_running_jobs:
            self.scheduler.schedule(parts.long_running.name, mon.long_running_jobs_interval, parts.long_running.execute)
            parts.started.append(parts.long_running.name)
        if not parts.started:
            logger.warning("All monitor tasks are disabled.")
        else:
            logger.info(f"Monitor started in namespace '{mon.namespace}': {', '.join(parts.started)}.")
        return list(parts.started)

    def run_once(self) -> Dict[str, Any]:
        """Run each enabled sweep a single time (watching excluded)."""
        parts = self.build()
        mon = self.cfg.monitor
        out: Dict[str, Any] = {}
        for enabled, task in (
            (mon.enable_reaper, parts.reaper),
            (mon.enable_lost_jobs, parts.lost_jobs),
            (mon.enable_long_running_jobs, parts.long_running),
        ):
            if enabled:
                result = self.scheduler.run_once(task.name, task.execute)
                out[task.name] = result.to_dict() if result is not None else None
        return out

    def stop(self) -> None:
        if self._parts is not None:
            self._parts.watcher.stop()
        self.scheduler.stop()
        logger.info("Monitor stopped.")
