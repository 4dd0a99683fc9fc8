"""Telegram chat transport adapter.

Wraps a Telethon bot client behind the core ChatTransportPort and feeds
inbound messages into the command queue.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from telethon import TelegramClient, errors, events, functions, types

from adapters.telegram_mapper import build_incoming_message
from core.errors import TransportError
from core.models import IncomingMessage, ParseMode

LOGGER = logging.getLogger(__name__)

_PARSE_MODES = {
    ParseMode.PLAIN: None,
    ParseMode.MARKDOWN: "md",
    ParseMode.HTML: "html",
}


class TelegramTransport:
    """Send and receive chat messages through a Telethon bot session."""

    def __init__(self, client: TelegramClient) -> None:
        self._client = client
        self._username: Optional[str] = None

    @property
    def username(self) -> str:
        return self._username or ""

    async def start(self, bot_token: str) -> None:
        """Log in as the bot and remember its identity for suffix stripping."""

        await self._client.start(bot_token=bot_token)
        me = await self._client.get_me()
        self._username = getattr(me, "username", None) or ""
        LOGGER.info("Logged in to Telegram as @%s", self._username)

    def listen(self, messages: "asyncio.Queue[IncomingMessage]") -> None:
        """Push every incoming message onto ``messages``.

        The queue is bounded, so a slow command loop makes the update handler
        wait instead of growing memory.
        """

        @self._client.on(events.NewMessage(incoming=True))
        async def handler(event) -> None:
            try:
                message = await build_incoming_message(event)
            except Exception:
                LOGGER.exception("Error while mapping incoming message")
                return
            await messages.put(message)

    async def send_message(self, chat_id: int, text: str, parse_mode: ParseMode = ParseMode.PLAIN) -> None:
        try:
            await self._client.send_message(
                chat_id,
                text,
                parse_mode=_PARSE_MODES[parse_mode],
                link_preview=False,
            )
        except (errors.RPCError, ValueError, ConnectionError) as exc:
            raise TransportError(f"send to {chat_id} failed: {exc}") from exc

    async def send_typing(self, chat_id: int) -> None:
        try:
            await self._client(
                functions.messages.SetTypingRequest(
                    peer=chat_id,
                    action=types.SendMessageTypingAction(),
                )
            )
        except (errors.RPCError, ValueError, ConnectionError) as exc:
            raise TransportError(f"typing indicator for {chat_id} failed: {exc}") from exc

    async def disconnect(self) -> None:
        await self._client.disconnect()
