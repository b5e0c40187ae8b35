from __future__ import annotations

from enum import Enum
from typing import Iterable, Tuple

from kubejobs.core.errors import ConfigError


class Endpoint(str, Enum):
    """Logical endpoints that exchange messages. All but the orchestrator run as cluster jobs."""

    ORCHESTRATOR = "orchestrator"
    CONFIG = "config"
    ANALYZER = "analyzer"
    ADVISOR = "advisor"
    SCANNER = "scanner"
    EVALUATOR = "evaluator"
    REPORTER = "reporter"
    NOTIFIER = "notifier"

    @property
    def env_prefix(self) -> str:
        return self.value.upper()


WORKER_ENDPOINTS: Tuple[Endpoint, ...] = tuple(e for e in Endpoint if e is not Endpoint.ORCHESTRATOR)

# Workers whose jobs are tracked in the job repository.
TRACKED_WORKER_ENDPOINTS: Tuple[Endpoint, ...] = (
    Endpoint.ANALYZER,
    Endpoint.ADVISOR,
    Endpoint.SCANNER,
    Endpoint.EVALUATOR,
    Endpoint.REPORTER,
    Endpoint.NOTIFIER,
)

# Workers known only from their cluster jobs. Config worker jobs run before any
# worker job record exists.
CLUSTER_ONLY_WORKER_ENDPOINTS: Tuple[Endpoint, ...] = (Endpoint.CONFIG,)


def check_worker_coverage(
    tracked: Iterable[Endpoint] = TRACKED_WORKER_ENDPOINTS,
    cluster_only: Iterable[Endpoint] = CLUSTER_ONLY_WORKER_ENDPOINTS,
    workers: Iterable[Endpoint] = WORKER_ENDPOINTS,
) -> None:
    """Every worker is either tracked in a repository or cluster-only, never both."""
    tracked, cluster_only, workers = set(tracked), set(cluster_only), set(workers)
    both = tracked & cluster_only
    covered = tracked | cluster_only
    if both or covered != workers:
        raise ConfigError(
            "Worker types are not assigned to exactly one job source.",
            missing=sorted(e.value for e in workers - covered),
            unexpected=sorted(e.value for e in covered - workers),
            duplicated=sorted(e.value for e in both),
        )


check_worker_coverage()


def worker_type_of_job_name(job_name: str) -> str:
    """Job names start with the worker type followed by a dash."""
    return str(job_name).split("-", 1)[0]
