from __future__ import annotations

import threading
from collections import deque
from datetime import datetime, timedelta
from typing import Deque, Set, Tuple

from kubejobs.core.timeutil import Clock, utc_now


class RecentJobsGuard:
    """
    Remembers job names processed within a recency window so that overlapping
    sweeps handle each job only once.
    """

    def __init__(self, window: timedelta, *, clock: Clock = utc_now):
        self.window = window
        self._clock = clock
        self._lock = threading.Lock()
        self._order: Deque[Tuple[datetime, str]] = deque()
        self._names: Set[str] = set()

    def can_process(self, name: str) -> bool:
        """Record `name` and return True unless it was already recorded within the window."""
        now = self._clock()
        with self._lock:
            self._evict_locked(now - self.window)
            if name in self._names:
                return False
            self._names.add(name)
            self._order.append((now, name))
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._names)

    def _evict_locked(self, cutoff: datetime) -> None:
        while self._order and self._order[0][0] < cutoff:
            _, name = self._order.popleft()
            self._names.discard(name)
