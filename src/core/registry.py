"""Subscription registry backed by a key-value store port.

Each subscriber is one JSON record under ``telegram/chats/<chat_id>``. There is
no cache: every call goes to the store, which is the single source of truth.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List

from core.errors import EncodingError
from core.filters import LabelRule
from core.models import Subscriber
from core.ports import KeyValueStorePort

LOGGER = logging.getLogger(__name__)

CHATS_PREFIX = "telegram/chats"


def chat_key(chat_id: int) -> str:
    return f"{CHATS_PREFIX}/{chat_id}"


def encode_subscriber(subscriber: Subscriber) -> bytes:
    """Serialize a subscriber record to the stored byte payload."""

    try:
        payload = {
            "chat_id": int(subscriber.chat_id),
            "display_name": subscriber.display_name,
            "filter_rules": {
                label: {
                    "allowed": sorted(rule.allowed),
                    "denied": sorted(rule.denied),
                    "allow_any": rule.allow_any,
                    "allow_omitted": rule.allow_omitted,
                }
                for label, rule in subscriber.filter_rules.items()
            },
        }
        return json.dumps(payload, sort_keys=True).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise EncodingError(f"cannot encode subscriber {subscriber.chat_id!r}: {exc}") from exc


def _decode_rule(raw: Dict[str, Any]) -> LabelRule:
    return LabelRule(
        allowed=frozenset(str(value) for value in raw.get("allowed", [])),
        denied=frozenset(str(value) for value in raw.get("denied", [])),
        allow_any=bool(raw.get("allow_any", False)),
        allow_omitted=bool(raw.get("allow_omitted", False)),
    )


def decode_subscriber(value: bytes) -> Subscriber:
    """Deserialize a stored byte payload into a subscriber record."""

    try:
        payload = json.loads(value.decode("utf-8"))
        rules = {str(label): _decode_rule(raw) for label, raw in (payload.get("filter_rules") or {}).items()}
        return Subscriber(
            chat_id=int(payload["chat_id"]),
            display_name=str(payload.get("display_name", "")),
            filter_rules=rules,
        )
    except (UnicodeDecodeError, ValueError, KeyError, TypeError, AttributeError) as exc:
        raise EncodingError(f"cannot decode subscriber record: {exc}") from exc


class SubscriptionRegistry:
    """List, add and remove subscribers, one store key per chat."""

    def __init__(self, store: KeyValueStorePort) -> None:
        self._store = store

    async def list(self) -> List[Subscriber]:
        """Return every stored subscriber in store order."""

        pairs = await asyncio.to_thread(self._store.list, CHATS_PREFIX + "/")
        return [decode_subscriber(value) for _, value in pairs]

    async def add(self, subscriber: Subscriber) -> None:
        """Insert or fully replace the record for ``subscriber.chat_id``."""

        value = encode_subscriber(subscriber)
        await asyncio.to_thread(self._store.put, chat_key(subscriber.chat_id), value)
        LOGGER.debug("Stored subscriber %s", subscriber.chat_id)

    async def remove(self, chat_id: int) -> None:
        """Delete the record for ``chat_id``; absent keys are not an error."""

        await asyncio.to_thread(self._store.delete, chat_key(chat_id))
        LOGGER.debug("Removed subscriber %s", chat_id)

    async def get(self, chat_id: int):
        """Return the subscriber for ``chat_id`` or None."""

        for subscriber in await self.list():
            if subscriber.chat_id == chat_id:
                return subscriber
        return None
