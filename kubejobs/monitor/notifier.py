from __future__ import annotations

import logging

from kubernetes.client import V1Job

from kubejobs.core.events import NullEventLogger
from kubejobs.core.messages import LostSchedule, Message, MessageHeader, WorkerError
from kubejobs.core.persistence import ActiveOrtRun
from kubejobs.core.trace import trace_context
from kubejobs.core.workers import Endpoint, worker_type_of_job_name
from kubejobs.monitor.classification import job_name_of, ort_run_id_of, trace_id_of
from kubejobs.transport.sender import MessageSender

logger = logging.getLogger("kubejobs.monitor.notifier")


class FailedJobNotifier:
    """Reports failed and lost work to the orchestrator through its configured sender."""

    def __init__(self, sender: MessageSender, *, event_logger=None):
        self.sender = sender
        self.event_logger = event_logger or NullEventLogger()

    def send_failed_job_notification(self, job: V1Job) -> None:
        name = job_name_of(job)
        trace_id = trace_id_of(job)
        run_id = ort_run_id_of(job)
        if not name or not trace_id or run_id is None:
            logger.debug(f"Not notifying about job '{name}': name, trace id or run id missing.")
            return

        endpoint_name = worker_type_of_job_name(name)
        with trace_context(trace_id, run_id):
            logger.info(f"Sending failure notification for job '{name}' of worker '{endpoint_name}'.")
            self._send(MessageHeader(trace_id=trace_id, ort_run_id=run_id), WorkerError(endpoint_name=endpoint_name))
            self._record(trace_id, "notification.worker_error", {"job": name, "endpoint": endpoint_name, "run_id": run_id})

    def send_lost_job_notification(self, ort_run_id: int, endpoint: Endpoint) -> None:
        endpoint = Endpoint(endpoint)
        with trace_context(None, ort_run_id):
            logger.info(f"Sending notification about a lost job of worker '{endpoint.value}'.")
            self._send(MessageHeader(trace_id="", ort_run_id=ort_run_id), WorkerError(endpoint_name=endpoint.value))
            self._record("", "notification.lost_job", {"endpoint": endpoint.value, "run_id": ort_run_id})

    def send_lost_schedule_notification(self, run: ActiveOrtRun) -> None:
        with trace_context(run.trace_id, run.run_id):
            logger.info("Sending notification about a run without any jobs.")
            self._send(MessageHeader(trace_id=run.trace_id, ort_run_id=run.run_id), LostSchedule(ort_run_id=run.run_id))
            self._record(run.trace_id, "notification.lost_schedule", {"run_id": run.run_id})

    def _send(self, header: MessageHeader, payload) -> None:
        self.sender.send(Message(header=header, payload=payload))

    def _record(self, trace_id: str, event_type: str, details) -> None:
        # Runs after a successful send. Event write failures only warn.
        try:
            self.event_logger.log(trace_id, event_type, details)
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Could not record {event_type}: {e}")
