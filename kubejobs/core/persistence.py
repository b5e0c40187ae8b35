from __future__ import annotations

import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol

from kubejobs.core.workers import TRACKED_WORKER_ENDPOINTS, Endpoint


@dataclass(frozen=True)
class WorkerJob:
    id: int
    ort_run_id: int
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.started_at is not None and self.completed_at is None


@dataclass(frozen=True)
class ActiveOrtRun:
    run_id: int
    created_at: datetime
    trace_id: str = ""


@dataclass(frozen=True)
class OrtRun:
    id: int
    created_at: datetime
    trace_id: Optional[str] = None
    status: str = "ACTIVE"


class WorkerJobRepository(Protocol):
    def list_active(self, before: Optional[datetime] = None) -> List[WorkerJob]:
        """Active jobs (started, not completed) that were started at or before `before`."""
        ...


class OrtRunRepository(Protocol):
    def get(self, run_id: int) -> Optional[OrtRun]:
        ...

    def list_active_runs(self) -> List[ActiveOrtRun]:
        ...


def _to_ts(value: Optional[datetime]) -> Optional[float]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def _from_ts(value: Optional[float]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


class SqliteJobStore:
    """
    Minimal SQLite-backed job state, enough for the monitor to run standalone.
    The orchestrator owns the real schema; this store only mirrors the fields read here.
    """

    def __init__(self, *, path: str):
        self.path = path
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._init()

    def _conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path)
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        return conn

    def _init(self) -> None:
        with self._conn() as c:
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS ort_runs (
                  id INTEGER PRIMARY KEY,
                  created_at REAL NOT NULL,
                  trace_id TEXT,
                  status TEXT NOT NULL
                )
                """
            )
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS worker_jobs (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  endpoint TEXT NOT NULL,
                  ort_run_id INTEGER NOT NULL,
                  started_at REAL,
                  completed_at REAL
                )
                """
            )
            c.execute("CREATE INDEX IF NOT EXISTS idx_worker_jobs_endpoint ON worker_jobs(endpoint, started_at);")
            c.execute("CREATE INDEX IF NOT EXISTS idx_ort_runs_status ON ort_runs(status);")

    # ---- writes (used by the orchestrator side and by tests) ----
    def add_run(self, run_id: int, *, created_at: datetime, trace_id: Optional[str] = None, status: str = "ACTIVE") -> None:
        with self._conn() as c:
            c.execute(
                "INSERT OR REPLACE INTO ort_runs(id, created_at, trace_id, status) VALUES (?, ?, ?, ?)",
                (int(run_id), _to_ts(created_at), trace_id, str(status)),
            )

    def add_worker_job(
        self,
        endpoint: Endpoint,
        ort_run_id: int,
        *,
        started_at: Optional[datetime] = None,
        completed_at: Optional[datetime] = None,
    ) -> int:
        with self._conn() as c:
            cur = c.execute(
                "INSERT INTO worker_jobs(endpoint, ort_run_id, started_at, completed_at) VALUES (?, ?, ?, ?)",
                (Endpoint(endpoint).value, int(ort_run_id), _to_ts(started_at), _to_ts(completed_at)),
            )
            return int(cur.lastrowid)

    # ---- reads ----
    def get(self, run_id: int) -> Optional[OrtRun]:
        with self._conn() as c:
            row = c.execute("SELECT id, created_at, trace_id, status FROM ort_runs WHERE id = ?", (int(run_id),)).fetchone()
        if row is None:
            return None
        return OrtRun(id=int(row[0]), created_at=_from_ts(row[1]), trace_id=row[2], status=str(row[3]))

    def list_active_runs(self) -> List[ActiveOrtRun]:
        with self._conn() as c:
            rows = c.execute("SELECT id, created_at, trace_id FROM ort_runs WHERE status = 'ACTIVE' ORDER BY id").fetchall()
        return [ActiveOrtRun(run_id=int(r[0]), created_at=_from_ts(r[1]), trace_id=r[2] or "") for r in rows]

    def list_active_jobs(self, endpoint: Endpoint, before: Optional[datetime] = None) -> List[WorkerJob]:
        sql = "SELECT id, ort_run_id, started_at, completed_at FROM worker_jobs WHERE endpoint = ? AND started_at IS NOT NULL AND completed_at IS NULL"
        params: list = [Endpoint(endpoint).value]
        if before is not None:
            sql += " AND started_at <= ?"
            params.append(_to_ts(before))
        with self._conn() as c:
            rows = c.execute(sql + " ORDER BY id", params).fetchall()
        return [WorkerJob(id=int(r[0]), ort_run_id=int(r[1]), started_at=_from_ts(r[2]), completed_at=_from_ts(r[3])) for r in rows]

    def job_repository(self, endpoint: Endpoint) -> "SqliteWorkerJobRepository":
        return SqliteWorkerJobRepository(store=self, endpoint=Endpoint(endpoint))

    def job_repositories(self) -> Dict[Endpoint, "SqliteWorkerJobRepository"]:
        return {e: self.job_repository(e) for e in TRACKED_WORKER_ENDPOINTS}


@dataclass(frozen=True)
class SqliteWorkerJobRepository:
    store: SqliteJobStore
    endpoint: Endpoint

    def list_active(self, before: Optional[datetime] = None) -> List[WorkerJob]:
        return self.store.list_active_jobs(self.endpoint, before)
