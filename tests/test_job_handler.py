from __future__ import annotations

from datetime import timedelta

from kubejobs.core.messages import WorkerError
from kubejobs.core.workers import Endpoint
from kubejobs.monitor.job_handler import JobHandler
from kubejobs.monitor.notifier import FailedJobNotifier
from kubejobs.monitor.recent_jobs import RecentJobsGuard

from .helpers.fakes import BrokenEventLogger, FakeClock, FakeGateway, RecordingSender, make_job, make_pod, worker_job


def _handler(gateway, sender=None, clock=None):
    sender = sender or RecordingSender()
    clock = clock or FakeClock()
    return JobHandler(
        gateway=gateway,
        notifier=FailedJobNotifier(sender),
        guard=RecentJobsGuard(timedelta(seconds=60), clock=clock),
        pod_delete_workers=3,
    )


def _failed_analyzer_job():
    return make_job(
        "analyzer-abc123",
        labels={"trace-id-0": "abc1", "trace-id-1": "23", "run-id": "42", "ort-worker": "analyzer"},
        conditions=["Failed"],
    )


def test_failed_job_is_reported_then_deleted():
    job = _failed_analyzer_job()
    gateway = FakeGateway(jobs=[job], pods=[make_pod("analyzer-abc123-x1", "analyzer-abc123")])
    sender = RecordingSender()

    assert _handler(gateway, sender).delete_and_notify_if_failed(job)

    assert [m.payload for m in sender.messages] == [WorkerError(endpoint_name="analyzer")]
    assert sender.messages[0].header.trace_id == "abc123"
    assert sender.messages[0].header.ort_run_id == 42
    assert gateway.deleted_jobs == ["analyzer-abc123"]
    assert gateway.deleted_pods == ["analyzer-abc123-x1"]


def test_failed_job_is_kept_when_notification_fails():
    job = _failed_analyzer_job()
    gateway = FakeGateway(jobs=[job])

    assert not _handler(gateway, RecordingSender(fail=True)).delete_and_notify_if_failed(job)
    assert gateway.deleted_jobs == []


def test_successful_job_is_deleted_without_notification():
    job = worker_job(Endpoint.SCANNER, "t1", 3, conditions=["Complete"])
    gateway = FakeGateway(jobs=[job])
    sender = RecordingSender()

    assert _handler(gateway, sender).delete_and_notify_if_failed(job)
    assert sender.messages == []
    assert gateway.deleted_jobs == ["scanner-t1"]


def test_recently_processed_job_is_skipped():
    job = _failed_analyzer_job()
    gateway = FakeGateway(jobs=[job])
    sender = RecordingSender()
    clock = FakeClock()
    handler = _handler(gateway, sender, clock)

    assert handler.delete_and_notify_if_failed(job)
    assert not handler.delete_and_notify_if_failed(job)
    assert len(sender.messages) == 1

    clock.advance(61)
    assert handler.delete_and_notify_if_failed(job)
    assert len(sender.messages) == 2


def test_job_without_name_is_ignored():
    job = make_job("", conditions=["Failed"])
    gateway = FakeGateway(jobs=[job])
    assert not _handler(gateway).delete_and_notify_if_failed(job)
    assert gateway.deleted_jobs == []


def test_find_jobs_completed_before():
    clock = FakeClock()
    now = clock()
    old = worker_job(Endpoint.ANALYZER, "old", 1, conditions=["Complete"], completion_time=now - timedelta(minutes=20))
    recent = worker_job(Endpoint.ANALYZER, "new", 2, conditions=["Complete"], completion_time=now - timedelta(minutes=1))
    failed = worker_job(Endpoint.ADVISOR, "failed", 3, conditions=["Failed"])
    running = worker_job(Endpoint.SCANNER, "running", 4, start_time=now - timedelta(hours=1))
    foreign = make_job("other", labels={"app": "x"}, conditions=["Complete"], completion_time=now - timedelta(days=1))
    gateway = FakeGateway(jobs=[old, recent, failed, running, foreign])

    found = _handler(gateway).find_jobs_completed_before(now - timedelta(minutes=10))

    assert sorted(j.metadata.name for j in found) == ["advisor-failed", "analyzer-old"]
    assert gateway.list_selectors[-1].startswith("ort-worker in (")


def test_find_jobs_for_worker():
    gateway = FakeGateway(jobs=[worker_job(Endpoint.ANALYZER, "a", 1), worker_job(Endpoint.SCANNER, "s", 1)])
    found = _handler(gateway).find_jobs_for_worker(Endpoint.SCANNER)
    assert [j.metadata.name for j in found] == ["scanner-s"]


def test_pod_failure_does_not_stop_sibling_deletions():
    pods = [make_pod(f"analyzer-t-{i}", "analyzer-t") for i in range(4)]
    gateway = FakeGateway(jobs=[worker_job(Endpoint.ANALYZER, "t", 1)], pods=pods, fail_pods=["analyzer-t-1"])

    _handler(gateway).delete_job("analyzer-t")

    assert sorted(gateway.deleted_pods) == [p.metadata.name for p in pods]


def test_delete_job_never_raises():
    gateway = FakeGateway(fail_delete_job=True, fail_list_pods=True)
    _handler(gateway).delete_job("analyzer-gone")
    assert gateway.deleted_jobs == ["analyzer-gone"]


def test_pods_are_deleted_even_if_job_is_already_gone():
    gateway = FakeGateway(pods=[make_pod("scanner-x-1", "scanner-x"), make_pod("other-1", "other")])
    _handler(gateway).delete_job("scanner-x")
    assert gateway.deleted_pods == ["scanner-x-1"]


def test_delete_job_survives_event_log_failure():
    gateway = FakeGateway(jobs=[worker_job(Endpoint.ANALYZER, "t", 1)], pods=[make_pod("analyzer-t-p1", "analyzer-t")])
    handler = JobHandler(
        gateway=gateway,
        notifier=FailedJobNotifier(RecordingSender()),
        guard=RecentJobsGuard(timedelta(seconds=60), clock=FakeClock()),
        event_logger=BrokenEventLogger(),
    )

    handler.delete_job("analyzer-t")

    assert gateway.deleted_jobs == ["analyzer-t"]
    assert gateway.deleted_pods == ["analyzer-t-p1"]


def test_failed_job_is_deleted_when_only_the_event_log_fails():
    job = _failed_analyzer_job()
    gateway = FakeGateway(jobs=[job])
    sender = RecordingSender()
    events = BrokenEventLogger()
    handler = JobHandler(
        gateway=gateway,
        notifier=FailedJobNotifier(sender, event_logger=events),
        guard=RecentJobsGuard(timedelta(seconds=60), clock=FakeClock()),
        event_logger=events,
    )

    assert handler.delete_and_notify_if_failed(job)

    assert sender.payloads() == [WorkerError(endpoint_name="analyzer")]
    assert gateway.deleted_jobs == ["analyzer-abc123"]
