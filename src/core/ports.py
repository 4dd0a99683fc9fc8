"""Ports (interfaces) used by the core loops.

Ports define the minimal contracts for storage, chat transport, Alertmanager,
templating and metrics adapters so that the core can be reused with different
backends and tested with plain fakes.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Protocol, Tuple

from core.models import Alert, AlertmanagerStatus, ParseMode, Silence


class KeyValueStorePort(Protocol):
    """Byte-valued key-value store; raises StoreUnavailable on failure."""

    def list(self, prefix: str) -> List[Tuple[str, bytes]]:
        ...

    def put(self, key: str, value: bytes) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class ChatTransportPort(Protocol):
    """Chat delivery operations; raises TransportError on failure."""

    @property
    def username(self) -> str:
        ...

    async def send_message(self, chat_id: int, text: str, parse_mode: ParseMode = ParseMode.PLAIN) -> None:
        ...

    async def send_typing(self, chat_id: int) -> None:
        ...


class AlertmanagerPort(Protocol):
    """Read-only Alertmanager queries; raises UpstreamError on failure."""

    async def get_status(self) -> AlertmanagerStatus:
        ...

    async def list_alerts(self) -> List[Alert]:
        ...

    async def list_silences(self) -> List[Silence]:
        ...


class TemplateRendererPort(Protocol):
    """Message rendering; raises TemplateError on failure."""

    def render(self, template_name: str, data: Mapping[str, Any]) -> str:
        ...


class MetricsPort(Protocol):
    """Command counters keyed by command name, "dropped" and "incomprehensible"."""

    def initialize(self, names: Iterable[str]) -> None:
        ...

    def increment(self, name: str) -> None:
        ...
