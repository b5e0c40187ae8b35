from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Mapping, Protocol

from kubejobs.core.config.models import SenderConfig
from kubejobs.core.errors import UnknownTransportError
from kubejobs.core.messages import Message
from kubejobs.core.workers import Endpoint


class MessageSender(Protocol):
    endpoint: Endpoint

    def send(self, message: Message) -> None:
        ...


SenderFactory = Callable[[Endpoint, Mapping[str, Any]], MessageSender]

_FACTORIES: Dict[str, SenderFactory] = {}
_LOCK = threading.Lock()


def register_transport(transport_type: str, factory: SenderFactory) -> None:
    with _LOCK:
        _FACTORIES[str(transport_type).strip().lower()] = factory


def unregister_transport(transport_type: str) -> None:
    with _LOCK:
        _FACTORIES.pop(str(transport_type).strip().lower(), None)


def _ensure_builtin() -> None:
    from kubejobs.transport.kubernetes_config import TRANSPORT_NAME
    from kubejobs.transport.kubernetes_sender import KubernetesMessageSender

    with _LOCK:
        _FACTORIES.setdefault(TRANSPORT_NAME, KubernetesMessageSender.create)


def create_sender(endpoint: Endpoint, sender_config: SenderConfig) -> MessageSender:
    """Create the sender for `endpoint` using the transport named in its configuration."""
    _ensure_builtin()
    key = sender_config.transport_type.strip().lower()
    with _LOCK:
        factory = _FACTORIES.get(key)
        known = sorted(_FACTORIES)
    if factory is None:
        raise UnknownTransportError(
            f"Unknown transport type '{sender_config.transport_type}'.",
            endpoint=Endpoint(endpoint).value,
            known=known,
        )
    return factory(Endpoint(endpoint), dict(sender_config.options))
