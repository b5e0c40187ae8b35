"""
Job transport.

A message addressed to a worker endpoint is delivered by creating a Kubernetes
Job whose labels and environment carry the message header and payload.
"""

from kubejobs.transport.gateway import ClusterJobGateway, create_gateway
from kubejobs.transport.kubernetes_config import KubernetesSenderConfig
from kubejobs.transport.kubernetes_sender import KubernetesMessageSender
from kubejobs.transport.sender import MessageSender, create_sender, register_transport

__all__ = [
    "ClusterJobGateway",
    "create_gateway",
    "KubernetesSenderConfig",
    "KubernetesMessageSender",
    "MessageSender",
    "create_sender",
    "register_transport",
]
