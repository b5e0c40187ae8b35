from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from kubejobs.core.trace import new_trace_id, trace_context

logger = logging.getLogger("kubejobs.monitor.scheduler")


class Scheduler:
    """
    Runs actions periodically, each on its own daemon thread.

    An action runs immediately and then once per interval. Exceptions are
    logged and the action is tried again on the next tick.
    """

    def __init__(self, *, stop_event: Optional[threading.Event] = None):
        self._stop = stop_event or threading.Event()
        self._threads: List[threading.Thread] = []
        self._runs: Dict[str, int] = {}
        self._lock = threading.Lock()

    def schedule(self, name: str, interval: timedelta, action: Callable[[], Any]) -> threading.Thread:
        seconds = max(0.01, float(interval.total_seconds()))
        t = threading.Thread(target=self._loop, args=(name, seconds, action), name=f"task-{name}", daemon=True)
        with self._lock:
            self._threads.append(t)
            self._runs.setdefault(name, 0)
        t.start()
        logger.info(f"Scheduled task '{name}' every {seconds:g}s.")
        return t

    def run_once(self, name: str, action: Callable[[], Any]) -> Any:
        with trace_context(f"{name}-{new_trace_id()[:12]}"):
            try:
                result = action()
            except Exception as e:  # noqa: BLE001
                logger.exception(f"Task '{name}' failed: {e}")
                result = None
        with self._lock:
            self._runs[name] = self._runs.get(name, 0) + 1
        if result is not None:
            logger.info(f"Task '{name}' finished: {result}")
        return result

    def runs(self, name: str) -> int:
        with self._lock:
            return self._runs.get(name, 0)

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        with self._lock:
            threads = list(self._threads)
        for t in threads:
            t.join(timeout=timeout)

    def _loop(self, name: str, seconds: float, action: Callable[[], Any]) -> None:
        while not self._stop.is_set():
            self.run_once(name, action)
            if self._stop.wait(seconds):
                break
