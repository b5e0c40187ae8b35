from __future__ import annotations

import threading
from datetime import timedelta

from kubernetes.client import V1Job, V1ObjectMeta

from kubejobs.core.errors import ClusterApiError
from kubejobs.core.workers import Endpoint
from kubejobs.monitor.job_handler import JobHandler
from kubejobs.monitor.notifier import FailedJobNotifier
from kubejobs.monitor.recent_jobs import RecentJobsGuard
from kubejobs.monitor.watcher import JobMonitor, JobWatchHelper

from .helpers.fakes import FakeClock, FakeGateway, RecordingSender, worker_job


def _with_version(job, version):
    job.metadata.resource_version = version
    return job


def _bookmark(version):
    return {"type": "BOOKMARK", "object": V1Job(metadata=V1ObjectMeta(resource_version=version))}


def _take(helper, n):
    stop = threading.Event()
    out = []
    for job in helper.watch(stop):
        out.append(job)
        if len(out) >= n:
            stop.set()
    return out


def test_only_modified_events_are_returned():
    j1 = _with_version(worker_job(Endpoint.ANALYZER, "a", 1), "11")
    j2 = _with_version(worker_job(Endpoint.ANALYZER, "b", 2), "12")
    gateway = FakeGateway(
        watch_streams=[
            [
                {"type": "ADDED", "object": _with_version(worker_job(Endpoint.SCANNER, "c", 3), "10")},
                {"type": "MODIFIED", "object": j1},
                {"type": "DELETED", "object": _with_version(worker_job(Endpoint.SCANNER, "d", 4), "13")},
                {"type": "MODIFIED", "object": j2},
            ]
        ]
    )
    helper = JobWatchHelper(gateway, resource_version="5")

    assert [j.metadata.name for j in _take(helper, 2)] == ["analyzer-a", "analyzer-b"]
    assert gateway.watch_calls == ["5"]


def test_missing_resource_version_is_listed_first():
    job = _with_version(worker_job(Endpoint.ANALYZER, "a", 1), "101")
    gateway = FakeGateway(resource_version="100", watch_streams=[[{"type": "MODIFIED", "object": job}]])
    helper = JobWatchHelper(gateway)

    _take(helper, 1)

    assert gateway.relists == 1
    assert gateway.watch_calls == ["100"]


def test_watch_resumes_at_last_bookmark_after_failure():
    job = _with_version(worker_job(Endpoint.ANALYZER, "a", 1), "30")

    def broken_stream():
        yield _bookmark("20")
        raise ConnectionError("connection reset")

    gateway = FakeGateway(watch_streams=[broken_stream(), [{"type": "MODIFIED", "object": job}]])
    helper = JobWatchHelper(gateway, resource_version="10", retry_delay_seconds=0)

    _take(helper, 1)

    assert gateway.watch_calls == ["10", "20"]
    assert gateway.relists == 0


def test_stalled_watch_triggers_relist():
    job = _with_version(worker_job(Endpoint.ANALYZER, "a", 1), "60")
    gateway = FakeGateway(
        resource_version="50",
        watch_streams=[[_bookmark("40")], [{"type": "MODIFIED", "object": job}]],
    )
    helper = JobWatchHelper(gateway, resource_version="10")

    _take(helper, 1)

    assert gateway.watch_calls == ["10", "50"]
    assert gateway.relists == 1


def test_expired_resource_version_triggers_relist():
    job = _with_version(worker_job(Endpoint.ANALYZER, "a", 1), "80")
    gateway = FakeGateway(
        resource_version="70",
        watch_streams=[ClusterApiError("gone", status=410), [{"type": "MODIFIED", "object": job}]],
    )
    helper = JobWatchHelper(gateway, resource_version="10")

    _take(helper, 1)

    assert gateway.watch_calls == ["10", "70"]


def test_error_event_with_gone_status_triggers_relist():
    job = _with_version(worker_job(Endpoint.ANALYZER, "a", 1), "80")
    gateway = FakeGateway(
        resource_version="70",
        watch_streams=[[{"type": "ERROR", "object": {"code": 410}}], [{"type": "MODIFIED", "object": job}]],
    )
    helper = JobWatchHelper(gateway, resource_version="10")

    _take(helper, 1)

    assert gateway.watch_calls == ["10", "70"]


def test_monitor_deletes_completed_jobs_only():
    failed = worker_job(Endpoint.ANALYZER, "failed", 1, conditions=["Failed"])
    running = worker_job(Endpoint.ANALYZER, "running", 2)
    gateway = FakeGateway(jobs=[failed, running])
    sender = RecordingSender()
    handler = JobHandler(
        gateway=gateway,
        notifier=FailedJobNotifier(sender),
        guard=RecentJobsGuard(timedelta(seconds=60), clock=FakeClock()),
    )
    monitor = JobMonitor(handler=handler, helper=JobWatchHelper(gateway))

    monitor.handle(running)
    monitor.handle(failed)

    assert gateway.deleted_jobs == ["analyzer-failed"]
    assert len(sender.messages) == 1
