from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from kubernetes import client, config, watch
from kubernetes.client.rest import ApiException

from kubejobs.core.errors import ClusterApiError

logger = logging.getLogger("kubejobs.transport.gateway")


def load_cluster_config() -> None:
    """In-cluster service account first, local kubeconfig as fallback."""
    try:
        config.load_incluster_config()
        logger.info("Using in-cluster Kubernetes configuration.")
    except config.ConfigException:
        config.load_kube_config()
        logger.info("Using local kubeconfig.")


def _api_error(e: ApiException, action: str, **ctx: Any) -> ClusterApiError:
    return ClusterApiError(f"Cluster API call '{action}' failed: {e.status} {e.reason}", status=e.status, action=action, **ctx)


class ClusterJobGateway:
    """
    Typed facade over the batch and core APIs for one namespace.

    Every call carries an explicit request timeout. API failures are raised as
    `ClusterApiError`; deleting an object that no longer exists counts as success.
    """

    def __init__(
        self,
        *,
        batch_api: client.BatchV1Api,
        core_api: client.CoreV1Api,
        namespace: str,
        request_timeout: float = 30,
        watch_factory: Callable[[], watch.Watch] = watch.Watch,
    ):
        self.batch_api = batch_api
        self.core_api = core_api
        self.namespace = namespace
        self.request_timeout = request_timeout
        self._watch_factory = watch_factory

    # ---- jobs ----
    def create_job(self, job: client.V1Job) -> client.V1Job:
        try:
            return self.batch_api.create_namespaced_job(
                namespace=self.namespace, body=job, _request_timeout=self.request_timeout
            )
        except ApiException as e:
            raise _api_error(e, "create_job", name=job.metadata.name if job.metadata else None) from e

    def list_jobs(self, label_selector: Optional[str] = None) -> List[client.V1Job]:
        return self.list_jobs_with_version(label_selector)[0]

    def list_jobs_with_version(self, label_selector: Optional[str] = None) -> Tuple[List[client.V1Job], Optional[str]]:
        kwargs: Dict[str, Any] = {"_request_timeout": self.request_timeout}
        if label_selector:
            kwargs["label_selector"] = label_selector
        try:
            res = self.batch_api.list_namespaced_job(self.namespace, **kwargs)
        except ApiException as e:
            raise _api_error(e, "list_jobs", selector=label_selector) from e
        version = res.metadata.resource_version if res.metadata else None
        return list(res.items or []), version

    def delete_job(self, name: str) -> bool:
        """Returns False if the job was already gone."""
        try:
            self.batch_api.delete_namespaced_job(name=name, namespace=self.namespace, _request_timeout=self.request_timeout)
            return True
        except ApiException as e:
            if e.status == 404:
                return False
            raise _api_error(e, "delete_job", name=name) from e

    def watch_jobs(self, *, resource_version: Optional[str], timeout_seconds: int) -> Iterator[Dict[str, Any]]:
        """Raw watch events (`{"type": ..., "object": V1Job}`), bookmarks included."""
        w = self._watch_factory()
        kwargs: Dict[str, Any] = {
            "namespace": self.namespace,
            "allow_watch_bookmarks": True,
            "timeout_seconds": timeout_seconds,
        }
        if resource_version:
            kwargs["resource_version"] = resource_version
        try:
            yield from w.stream(self.batch_api.list_namespaced_job, **kwargs)
        except ApiException as e:
            raise _api_error(e, "watch_jobs", resource_version=resource_version) from e
        finally:
            w.stop()

    # ---- pods ----
    def list_pods(self, label_selector: str) -> List[client.V1Pod]:
        try:
            res = self.core_api.list_namespaced_pod(
                self.namespace, label_selector=label_selector, _request_timeout=self.request_timeout
            )
        except ApiException as e:
            raise _api_error(e, "list_pods", selector=label_selector) from e
        return list(res.items or [])

    def delete_pod(self, name: str) -> bool:
        try:
            self.core_api.delete_namespaced_pod(name=name, namespace=self.namespace, _request_timeout=self.request_timeout)
            return True
        except ApiException as e:
            if e.status == 404:
                return False
            raise _api_error(e, "delete_pod", name=name) from e


def create_gateway(namespace: str, *, request_timeout: float = 30) -> ClusterJobGateway:
    load_cluster_config()
    return ClusterJobGateway(
        batch_api=client.BatchV1Api(),
        core_api=client.CoreV1Api(),
        namespace=namespace,
        request_timeout=request_timeout,
    )
