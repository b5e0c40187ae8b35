from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from kubejobs.monitor.classification import (
    completed_before,
    is_completed,
    is_failed,
    is_timeout,
    ort_run_id_of,
    trace_id_of,
)

from .helpers.fakes import make_job

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_failed_condition():
    assert is_failed(make_job("a", conditions=["Failed"]))
    assert not is_failed(make_job("a", conditions=["Complete"]))
    assert not is_failed(make_job("a"))


def test_completed_by_condition_or_timestamp():
    assert is_completed(make_job("a", conditions=["Complete"]))
    assert is_completed(make_job("a", conditions=["Failed"]))
    assert is_completed(make_job("a", completion_time=NOW))
    assert not is_completed(make_job("a", start_time=NOW))


@pytest.mark.parametrize("t", [NOW - timedelta(days=365), NOW, NOW + timedelta(days=365)])
def test_running_job_is_never_completed_before(t):
    assert not completed_before(make_job("a", start_time=NOW), t)


@pytest.mark.parametrize("t", [NOW - timedelta(days=365), NOW, NOW + timedelta(days=365)])
def test_failed_job_without_completion_time_is_always_completed_before(t):
    assert completed_before(make_job("a", conditions=["Failed"]), t)


def test_completed_before_compares_completion_time():
    job = make_job("a", conditions=["Complete"], completion_time=NOW)
    assert completed_before(job, NOW + timedelta(seconds=1))
    assert not completed_before(job, NOW)
    assert not completed_before(job, NOW - timedelta(minutes=5))


def test_timeout():
    job = make_job("a", start_time=NOW - timedelta(minutes=61))
    assert is_timeout(job, NOW - timedelta(minutes=60))
    assert not is_timeout(job, NOW - timedelta(minutes=120))


def test_completed_or_unstarted_job_never_times_out():
    threshold = NOW
    assert not is_timeout(make_job("a", conditions=["Complete"], start_time=NOW - timedelta(days=1)), threshold)
    assert not is_timeout(make_job("a"), threshold)


def test_naive_timestamps_are_treated_as_utc():
    job = make_job("a", start_time=datetime(2024, 1, 1, 10, 0))
    assert is_timeout(job, NOW)


def test_failed_analyzer_job_metadata():
    job = make_job(
        "analyzer-abc123",
        labels={"trace-id-0": "abc1", "trace-id-1": "23", "run-id": "42"},
        conditions=["Failed"],
    )
    assert trace_id_of(job) == "abc123"
    assert ort_run_id_of(job) == 42


def test_job_without_labels():
    job = make_job("x")
    assert trace_id_of(job) == ""
    assert ort_run_id_of(job) is None
