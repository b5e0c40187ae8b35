from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, List, Mapping, Optional

from kubernetes import client
from pydantic import ValidationError

from kubejobs.core.errors import ConfigError, TransportError
from kubejobs.core.events import NullEventLogger
from kubejobs.core.messages import Message
from kubejobs.core.trace import trace_context
from kubejobs.core.workers import Endpoint
from kubejobs.transport.environment import worker_environment
from kubejobs.transport.gateway import ClusterJobGateway, create_gateway
from kubejobs.transport.kubernetes_config import KubernetesSenderConfig, interpolate
from kubejobs.transport.labels import job_labels, job_name

logger = logging.getLogger("kubejobs.transport.kubernetes")


class KubernetesMessageSender:
    """
    Delivers a message by creating a Job that runs the endpoint's worker image.

    Each send creates a new Job; nothing is deduplicated here.
    """

    def __init__(
        self,
        *,
        gateway: ClusterJobGateway,
        config: KubernetesSenderConfig,
        endpoint: Endpoint,
        environ: Optional[Mapping[str, str]] = None,
        event_logger=None,
    ):
        self.gateway = gateway
        self.config = config
        self.endpoint = Endpoint(endpoint)
        self._environ = environ
        self.event_logger = event_logger or NullEventLogger()

    @classmethod
    def create(
        cls,
        endpoint: Endpoint,
        options: Mapping[str, Any],
        *,
        gateway: Optional[ClusterJobGateway] = None,
    ) -> "KubernetesMessageSender":
        try:
            cfg = KubernetesSenderConfig.model_validate(dict(options))
        except ValidationError as e:
            raise ConfigError("Invalid Kubernetes sender configuration.", endpoint=Endpoint(endpoint).value, error=str(e)) from e
        return cls(gateway=gateway or create_gateway(cfg.namespace), config=cfg, endpoint=endpoint)

    def send(self, message: Message) -> None:
        msg = replace(message, header=message.header.with_resolved_trace_id())
        job = self.build_job(msg)
        name = job.metadata.name
        with trace_context(msg.header.trace_id, msg.header.ort_run_id):
            if self.config.enable_debug_logging:
                logger.info(f"Job specification for '{name}': {self._describe(job)}")
            try:
                self.gateway.create_job(job)
            except Exception as e:  # noqa: BLE001
                logger.error(f"Could not create job '{name}' for endpoint '{self.endpoint.value}': {e}")
                raise TransportError(
                    "Could not create job.", endpoint=self.endpoint.value, job=name, error=str(e)
                ) from e
            logger.info(f"Created job '{name}' for endpoint '{self.endpoint.value}'.")
            self.event_logger.log(msg.header.trace_id, "job.created", {"job": name, "endpoint": self.endpoint.value})

    def build_job(self, message: Message) -> client.V1Job:
        """Job for a message whose trace id is already resolved."""
        header = message.header
        cfg = self.config
        name = job_name(self.endpoint, header.trace_id)
        labels = job_labels(self.endpoint, header.trace_id, header.ort_run_id)

        env = worker_environment(self.endpoint, message, self._environ)
        env_vars = [client.V1EnvVar(name=k, value=v) for k, v in env.items()]

        volumes: List[client.V1Volume] = []
        mounts: List[client.V1VolumeMount] = []
        for i, secret in enumerate(cfg.mount_secrets, start=1):
            volume_name = f"secret-volume-{i}"
            volumes.append(client.V1Volume(name=volume_name, secret=client.V1SecretVolumeSource(secret_name=secret.secret)))
            mounts.append(client.V1VolumeMount(name=volume_name, mount_path=secret.mount_path, read_only=True))
        for i, pvc in enumerate(cfg.mount_pvcs, start=1):
            volume_name = f"pvc-volume-{i}"
            volumes.append(
                client.V1Volume(
                    name=volume_name,
                    persistent_volume_claim=client.V1PersistentVolumeClaimVolumeSource(
                        claim_name=pvc.claim_name, read_only=pvc.read_only
                    ),
                )
            )
            mounts.append(client.V1VolumeMount(name=volume_name, mount_path=pvc.mount_path, read_only=pvc.read_only))

        resources = cfg.resources()
        container = client.V1Container(
            name=name,
            image=interpolate(cfg.image_name, header),
            image_pull_policy=cfg.image_pull_policy,
            command=[interpolate(c, header) for c in cfg.commands],
            args=[interpolate(a, header) for a in cfg.args],
            env=env_vars,
            volume_mounts=mounts,
            resources=client.V1ResourceRequirements(**resources) if resources else None,
        )

        pull_secrets = [client.V1LocalObjectReference(name=cfg.image_pull_secret)] if cfg.image_pull_secret else None
        pod_spec = client.V1PodSpec(
            containers=[container],
            restart_policy=cfg.restart_policy,
            image_pull_secrets=pull_secrets,
            security_context=client.V1PodSecurityContext(run_as_user=cfg.user_id),
            service_account_name=cfg.service_account_name,
            volumes=volumes,
        )
        template = client.V1PodTemplateSpec(
            metadata=client.V1ObjectMeta(labels=dict(labels), annotations=cfg.annotations(self._environ)),
            spec=pod_spec,
        )
        return client.V1Job(
            api_version="batch/v1",
            kind="Job",
            metadata=client.V1ObjectMeta(name=name, labels=dict(labels)),
            spec=client.V1JobSpec(backoff_limit=cfg.backoff_limit, template=template),
        )

    @staticmethod
    def _describe(job: client.V1Job) -> Dict[str, Any]:
        container = job.spec.template.spec.containers[0]
        return {
            "name": job.metadata.name,
            "labels": job.metadata.labels,
            "annotations": job.spec.template.metadata.annotations,
            "image": container.image,
            "command": container.command,
            "args": container.args,
            "volumes": [v.name for v in job.spec.template.spec.volumes or []],
        }
