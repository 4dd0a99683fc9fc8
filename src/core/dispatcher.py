"""Notification dispatch loop.

This module is integration-agnostic. For every inbound alert event it enforces
a strict order:
1) Enumerate subscribers from the registry (failure drops the event)
2) Render the event once and fit it to the transport size limit
3) Filter each subscriber against the event's common labels
4) Deliver to admitted subscribers, isolating per-recipient failures

Delivery is at-most-once and best effort; nothing is buffered or retried.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, Optional

from core.channels import receive
from core.config import DispatchConfig
from core.errors import AlertgramError, TemplateError
from core.filters import admits
from core.messages import truncate_message
from core.models import Alert, AlertEvent, ParseMode, Subscriber
from core.ports import ChatTransportPort, TemplateRendererPort
from core.registry import SubscriptionRegistry

LOGGER = logging.getLogger(__name__)


def build_template_data(event: AlertEvent) -> Dict[str, Any]:
    """Expose an event to templates under the names Alertmanager uses."""

    return {
        "receiver": event.receiver,
        "status": event.status,
        "alerts": list(event.alerts),
        "group_labels": event.group_labels,
        "common_labels": event.common_labels,
        "common_annotations": event.common_annotations,
        "external_url": event.external_url,
    }


def build_alerts_template_data(alerts: Iterable[Alert], receiver: str = "default") -> Dict[str, Any]:
    """Template data for an ad-hoc alert listing (no webhook grouping)."""

    alerts = list(alerts)
    status = "firing" if any(alert.status == "firing" for alert in alerts) else "resolved"
    return build_template_data(
        AlertEvent(
            receiver=receiver,
            status=status,
            alerts=tuple(alerts),
            group_labels={},
            common_labels={},
            common_annotations={},
            external_url="",
        )
    )


class NotificationDispatcher:
    """Fans alert events out to subscribed chats."""

    def __init__(
        self,
        registry: SubscriptionRegistry,
        transport: ChatTransportPort,
        renderer: TemplateRendererPort,
        config: Optional[DispatchConfig] = None,
    ) -> None:
        self._registry = registry
        self._transport = transport
        self._renderer = renderer
        self._config = config or DispatchConfig()

    async def run(self, events: "asyncio.Queue[AlertEvent]", stop: asyncio.Event) -> None:
        """Consume events one at a time, in arrival order, until ``stop`` is set."""

        LOGGER.info("Notification dispatcher started")
        while True:
            event = await receive(events, stop)
            if event is None:
                break
            try:
                await self.dispatch(event)
            except Exception:
                LOGGER.exception("Error while dispatching alert event")
        LOGGER.info("Notification dispatcher stopped")

    async def dispatch(self, event: AlertEvent) -> int:
        """Run one dispatch cycle and return the number of chats reached."""

        try:
            subscribers = await self._registry.list()
        except AlertgramError as exc:
            LOGGER.error("Failed to get chat list from store: %s", exc)
            return 0

        try:
            rendered = self._renderer.render(self._config.template_name, build_template_data(event))
        except TemplateError as exc:
            LOGGER.warning("Failed to template alerts: %s", exc)
            return 0
        message = truncate_message(rendered, self._config.max_message_bytes)

        recipients = []
        for subscriber in subscribers:
            if not admits(subscriber.filter_rules, event.common_labels):
                LOGGER.debug("Event for %s ignored by filter of chat %s", event.receiver, subscriber.chat_id)
                continue
            recipients.append(subscriber)

        results = await asyncio.gather(
            *(self._deliver(subscriber, message) for subscriber in recipients),
            return_exceptions=True,
        )
        delivered = 0
        for subscriber, result in zip(recipients, results):
            if isinstance(result, BaseException):
                LOGGER.error("Unexpected error sending to chat %s: %r", subscriber.chat_id, result)
            elif result:
                delivered += 1
        LOGGER.info(
            "Dispatched %s alert(s) (%s) to %s/%s chat(s)",
            len(event.alerts),
            event.status,
            delivered,
            len(subscribers),
        )
        return delivered

    async def _deliver(self, subscriber: Subscriber, message: str) -> bool:
        try:
            await self._transport.send_message(subscriber.chat_id, message, ParseMode.HTML)
        except AlertgramError as exc:
            LOGGER.warning("Failed to send message to subscribed chat %s: %s", subscriber.chat_id, exc)
            return False
        return True
