from __future__ import annotations

import logging
import threading
from typing import Any, Iterator, Optional

from kubernetes.client import V1Job

from kubejobs.core.errors import ClusterApiError
from kubejobs.monitor.classification import is_completed, job_name_of
from kubejobs.monitor.job_handler import JobHandler
from kubejobs.transport.gateway import ClusterJobGateway

logger = logging.getLogger("kubejobs.monitor.watcher")

MODIFIED = "MODIFIED"
ERROR = "ERROR"
GONE = 410


def _resource_version(obj: Any) -> Optional[str]:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return (obj.get("metadata") or {}).get("resourceVersion")
    meta = getattr(obj, "metadata", None)
    return getattr(meta, "resource_version", None) if meta is not None else None


class JobWatchHelper:
    """
    Turns the job watch API into an endless stream of MODIFIED jobs.

    The helper keeps the latest resource version (bookmarks included) and
    reopens the watch from there when it terminates or fails. Without a usable
    resource version, or when a watch ends without delivering a relevant event,
    the current version is obtained by listing jobs.
    """

    def __init__(
        self,
        gateway: ClusterJobGateway,
        *,
        resource_version: Optional[str] = None,
        timeout_seconds: int = 300,
        retry_delay_seconds: float = 1.0,
    ):
        self.gateway = gateway
        self.resource_version = resource_version
        self.timeout_seconds = int(timeout_seconds)
        self.retry_delay_seconds = float(retry_delay_seconds)

    def relist(self) -> None:
        _, version = self.gateway.list_jobs_with_version()
        logger.debug(f"Listed jobs, resource version is now {version}.")
        self.resource_version = version

    def watch(self, stop_event: Optional[threading.Event] = None) -> Iterator[V1Job]:
        stop = stop_event or threading.Event()
        while not stop.is_set():
            try:
                if not self.resource_version:
                    self.relist()
                relevant = False
                for job in self._stream_once():
                    relevant = True
                    yield job
                    if stop.is_set():
                        return
                if not relevant:
                    logger.debug("Watch ended without relevant events, listing jobs again.")
                    self.resource_version = None
            except ClusterApiError as e:
                if e.context.get("status") == GONE:
                    logger.info("Resource version expired, listing jobs again.")
                    self.resource_version = None
                else:
                    logger.warning(f"Job watch failed, resuming from {self.resource_version}: {e}")
                    stop.wait(self.retry_delay_seconds)
            except Exception as e:  # noqa: BLE001
                logger.warning(f"Job watch failed, resuming from {self.resource_version}: {e}")
                stop.wait(self.retry_delay_seconds)

    def _stream_once(self) -> Iterator[V1Job]:
        events = self.gateway.watch_jobs(resource_version=self.resource_version, timeout_seconds=self.timeout_seconds)
        for event in events:
            kind = event.get("type")
            obj = event.get("object")
            if kind == ERROR:
                code = obj.get("code") if isinstance(obj, dict) else getattr(obj, "code", None)
                if code == GONE:
                    raise ClusterApiError("Watch resource version expired.", status=GONE)
                raise ClusterApiError(f"Watch returned an error event: {obj}", status=code)
            version = _resource_version(obj)
            if version:
                self.resource_version = version
            if kind == MODIFIED:
                yield obj


class JobMonitor:
    """Deletes completed jobs as soon as the watch reports them."""

    name = "watcher"

    def __init__(self, *, handler: JobHandler, helper: JobWatchHelper):
        self.handler = handler
        self.helper = helper
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def watch(self) -> None:
        logger.info("Starting job watch.")
        for job in self.helper.watch(self._stop):
            self.handle(job)

    def handle(self, job: V1Job) -> None:
        if not is_completed(job):
            return
        try:
            self.handler.delete_and_notify_if_failed(job)
        except Exception as e:  # noqa: BLE001
            logger.error(f"Could not handle completed job '{job_name_of(job)}': {e}")

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(target=self.watch, name="job-watch", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
