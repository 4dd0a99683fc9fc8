"""Chat command supervisor.

Each inbound chat message goes through:
1) Skip service messages
2) Authorize the sender against the admin list
3) Show a typing indicator
4) Parse the command token (bot-name suffix stripped)
5) Dispatch to the handler registered for the command

A failure while handling one message is logged and never stops the loop.
"""

from __future__ import annotations

import asyncio
import bisect
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Tuple

from core.channels import receive
from core.config import CommandConfig
from core.dispatcher import build_alerts_template_data
from core.errors import AlertgramError, TemplateError, Unauthorized, UpstreamError
from core.filters import describe_filters, parse_filters
from core.messages import (
    RESPONSE_ADD_FAILED,
    RESPONSE_CHATS_HEADER,
    RESPONSE_FILTERS,
    RESPONSE_FILTERS_FAILED,
    RESPONSE_HELP,
    RESPONSE_INCOMPREHENSIBLE,
    RESPONSE_LIST_FAILED,
    RESPONSE_NO_ALERTS,
    RESPONSE_NO_SILENCES,
    RESPONSE_REMOVE_FAILED,
    RESPONSE_START,
    RESPONSE_STOP,
    truncate_message,
)
from core.models import IncomingMessage, ParseMode, Subscriber
from core.ports import AlertmanagerPort, ChatTransportPort, MetricsPort, TemplateRendererPort
from core.registry import SubscriptionRegistry

LOGGER = logging.getLogger(__name__)

DROPPED = "dropped"
INCOMPREHENSIBLE = "incomprehensible"


class Command(Enum):
    START = "/start"
    STOP = "/stop"
    HELP = "/help"
    CHATS = "/chats"
    STATUS = "/status"
    ALERTS = "/alerts"
    SILENCES = "/silences"
    FILTERS = "/filters"


def parse_command(text: str, bot_username: str = "") -> Tuple[str, str]:
    """Split message text into (command token, arguments).

    ``/help@MyBot foo`` becomes ``("/help", "foo")``.
    """

    if bot_username:
        text = text.replace(f"@{bot_username}", "")
    parts = text.strip().split(None, 1)
    if not parts:
        return "", ""
    arguments = parts[1] if len(parts) > 1 else ""
    return parts[0], arguments


class CommandSupervisor:
    """Authorizes, parses and dispatches chat commands."""

    def __init__(
        self,
        registry: SubscriptionRegistry,
        transport: ChatTransportPort,
        alertmanager: AlertmanagerPort,
        renderer: TemplateRendererPort,
        metrics: MetricsPort,
        config: CommandConfig,
    ) -> None:
        self._registry = registry
        self._transport = transport
        self._alertmanager = alertmanager
        self._renderer = renderer
        self._metrics = metrics
        self._config = config
        self._admins = sorted(config.admins)
        self._handlers: Dict[Command, Callable[[IncomingMessage, str], Awaitable[None]]] = {
            Command.START: self._handle_start,
            Command.STOP: self._handle_stop,
            Command.HELP: self._handle_help,
            Command.CHATS: self._handle_chats,
            Command.STATUS: self._handle_status,
            Command.ALERTS: self._handle_alerts,
            Command.SILENCES: self._handle_silences,
            Command.FILTERS: self._handle_filters,
        }
        self._metrics.initialize(command.value for command in self._handlers)

    def is_admin(self, user_id: int) -> bool:
        index = bisect.bisect_left(self._admins, user_id)
        return index < len(self._admins) and self._admins[index] == user_id

    async def run(self, messages: "asyncio.Queue[IncomingMessage]", stop: asyncio.Event) -> None:
        """Process messages one at a time, in arrival order, until ``stop`` is set."""

        LOGGER.info("Command supervisor started")
        while True:
            message = await receive(messages, stop)
            if message is None:
                break
            try:
                await self.process(message)
            except AlertgramError as exc:
                LOGGER.info(
                    "Failed to process message from %s (@%s): %s",
                    message.sender_id,
                    message.sender_username,
                    exc,
                )
            except Exception:
                LOGGER.exception("Error while processing message")
        LOGGER.info("Command supervisor stopped")

    async def process(self, message: IncomingMessage) -> None:
        """Handle one inbound chat message."""

        if message.is_service:
            return

        if not self.is_admin(message.sender_id):
            self._metrics.increment(DROPPED)
            raise Unauthorized("dropped message from forbidden sender")

        await self._transport.send_typing(message.chat_id)

        token, arguments = parse_command(message.text, self._transport.username)
        LOGGER.debug("Message received: %s", token)

        try:
            command = Command(token)
        except ValueError:
            self._metrics.increment(INCOMPREHENSIBLE)
            await self._reply(message, RESPONSE_INCOMPREHENSIBLE)
            return

        self._metrics.increment(command.value)
        await self._handlers[command](message, arguments)

    async def _reply(self, message: IncomingMessage, text: str, parse_mode: ParseMode = ParseMode.PLAIN) -> None:
        await self._transport.send_message(message.chat_id, text, parse_mode)

    async def _handle_start(self, message: IncomingMessage, arguments: str) -> None:
        subscriber = Subscriber(
            chat_id=message.chat_id,
            display_name=message.chat_display_name,
            filter_rules=parse_filters(arguments),
        )
        try:
            await self._registry.add(subscriber)
        except AlertgramError as exc:
            LOGGER.warning("Failed to add chat to chat store: %s", exc)
            await self._reply(message, RESPONSE_ADD_FAILED)
            return

        filters = describe_filters(subscriber.filter_rules)
        await self._reply(message, RESPONSE_START.format(name=message.sender_first_name, filters=filters))
        LOGGER.info("User subscribed: @%s (%s) filters=%s", message.sender_username, message.sender_id, filters)

    async def _handle_stop(self, message: IncomingMessage, arguments: str) -> None:
        try:
            await self._registry.remove(message.chat_id)
        except AlertgramError as exc:
            LOGGER.warning("Failed to remove chat from chat store: %s", exc)
            await self._reply(message, RESPONSE_REMOVE_FAILED)
            return

        await self._reply(message, RESPONSE_STOP.format(name=message.sender_first_name))
        LOGGER.info("User unsubscribed: @%s (%s)", message.sender_username, message.sender_id)

    async def _handle_help(self, message: IncomingMessage, arguments: str) -> None:
        await self._reply(message, RESPONSE_HELP)

    async def _handle_chats(self, message: IncomingMessage, arguments: str) -> None:
        try:
            subscribers = await self._registry.list()
        except AlertgramError as exc:
            LOGGER.warning("Failed to list chats from chat store: %s", exc)
            await self._reply(message, RESPONSE_LIST_FAILED)
            return

        lines = [
            f"[{index}] @{subscriber.display_name} - {describe_filters(subscriber.filter_rules)}\n\n"
            for index, subscriber in enumerate(subscribers, start=1)
        ]
        await self._reply(message, RESPONSE_CHATS_HEADER + "".join(lines))

    async def _handle_filters(self, message: IncomingMessage, arguments: str) -> None:
        current = ""
        try:
            subscriber: Optional[Subscriber] = await self._registry.get(message.chat_id)
        except AlertgramError as exc:
            LOGGER.warning("Failed to read filters from chat store: %s", exc)
            current = RESPONSE_FILTERS_FAILED
        else:
            if subscriber is not None:
                current = "Currently applied filters:\n" + describe_filters(subscriber.filter_rules)

        await self._reply(message, current + "\n" + RESPONSE_FILTERS)

    async def _handle_status(self, message: IncomingMessage, arguments: str) -> None:
        try:
            status = await self._alertmanager.get_status()
        except UpstreamError as exc:
            LOGGER.warning("Failed to get status: %s", exc)
            await self._reply(message, f"failed to get status... {exc}")
            return

        now = datetime.now(timezone.utc)
        data = {
            "alertmanager": {"version": status.version, "uptime": now - status.uptime_since},
            "bot": {"version": self._config.revision, "uptime": now - self._config.started_at},
        }
        text = self._render("status.md", data)
        if text is not None:
            await self._reply(message, text, ParseMode.MARKDOWN)

    async def _handle_alerts(self, message: IncomingMessage, arguments: str) -> None:
        try:
            alerts = await self._alertmanager.list_alerts()
        except UpstreamError as exc:
            await self._reply(message, f"failed to list alerts... {exc}")
            return

        if not alerts:
            await self._reply(message, RESPONSE_NO_ALERTS)
            return

        text = self._render("default.html", build_alerts_template_data(alerts))
        if text is not None:
            await self._reply(message, truncate_message(text), ParseMode.HTML)

    async def _handle_silences(self, message: IncomingMessage, arguments: str) -> None:
        try:
            silences = await self._alertmanager.list_silences()
        except UpstreamError as exc:
            await self._reply(message, f"failed to list silences... {exc}")
            return

        if not silences:
            await self._reply(message, RESPONSE_NO_SILENCES)
            return

        text = self._render("silences.md", {"silences": silences})
        if text is not None:
            await self._reply(message, text, ParseMode.MARKDOWN)

    def _render(self, template_name: str, data) -> Optional[str]:
        try:
            return self._renderer.render(template_name, data)
        except TemplateError as exc:
            LOGGER.warning("Failed to render %s: %s", template_name, exc)
            return None
