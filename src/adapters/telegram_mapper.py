"""Telegram-to-core message mapping adapter.

This keeps Telethon-specific details out of the command supervisor.
"""

from __future__ import annotations

from core.models import IncomingMessage


def _display_title(chat) -> str:
    title = getattr(chat, "title", None)
    if title:
        return str(title)
    username = getattr(chat, "username", None)
    if username:
        return str(username)
    first = getattr(chat, "first_name", None)
    last = getattr(chat, "last_name", None)
    if first or last:
        return " ".join(part for part in [first, last] if part)
    return str(getattr(chat, "id", "unknown"))


async def build_incoming_message(event) -> IncomingMessage:
    """Build a core IncomingMessage from a Telethon NewMessage event."""

    message = event.message
    sender = await event.get_sender()
    chat = await event.get_chat()

    # Service messages (joins, pins, title changes) carry an action and no command.
    is_service = getattr(message, "action", None) is not None
    # Channels behave like groups here: they are listed by title.
    is_group = bool(getattr(event, "is_group", False) or getattr(event, "is_channel", False))

    return IncomingMessage(
        chat_id=event.chat_id,
        chat_title=_display_title(chat),
        is_group=is_group,
        sender_id=event.sender_id or 0,
        sender_username=getattr(sender, "username", None) or "",
        sender_first_name=getattr(sender, "first_name", None) or getattr(sender, "title", None) or "",
        text=getattr(message, "raw_text", None) or "",
        is_service=is_service,
    )
