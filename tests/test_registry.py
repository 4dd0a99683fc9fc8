from __future__ import annotations

import asyncio

import pytest

from adapters.sqlite_storage import SQLiteKeyValueStore
from core.errors import EncodingError, StoreUnavailable
from core.filters import parse_filters
from core.models import Subscriber
from core.registry import SubscriptionRegistry, chat_key, decode_subscriber, encode_subscriber
from fakes import MemoryStore


def _subscriber(chat_id: int = 42, filters: str = "severity=critical env=!x=*=_") -> Subscriber:
    return Subscriber(chat_id=chat_id, display_name="ops", filter_rules=parse_filters(filters))


def test_add_then_list_preserves_filter_rules() -> None:
    registry = SubscriptionRegistry(MemoryStore())
    subscriber = _subscriber()

    asyncio.run(registry.add(subscriber))
    stored = asyncio.run(registry.list())

    assert stored == [subscriber]
    assert stored[0].filter_rules == subscriber.filter_rules


def test_add_replaces_existing_record() -> None:
    registry = SubscriptionRegistry(MemoryStore())
    asyncio.run(registry.add(_subscriber(filters="severity=critical")))
    asyncio.run(registry.add(_subscriber(filters="team=db")))

    stored = asyncio.run(registry.list())

    assert len(stored) == 1
    assert set(stored[0].filter_rules) == {"team"}


def test_remove_excludes_chat() -> None:
    registry = SubscriptionRegistry(MemoryStore())
    asyncio.run(registry.add(_subscriber(chat_id=1)))
    asyncio.run(registry.add(_subscriber(chat_id=2)))

    asyncio.run(registry.remove(1))

    assert [s.chat_id for s in asyncio.run(registry.list())] == [2]


def test_remove_unknown_chat_is_not_an_error() -> None:
    registry = SubscriptionRegistry(MemoryStore())
    asyncio.run(registry.remove(999))
    assert asyncio.run(registry.list()) == []


def test_records_use_one_key_per_chat() -> None:
    store = MemoryStore()
    registry = SubscriptionRegistry(store)
    asyncio.run(registry.add(_subscriber(chat_id=-100123)))
    assert list(store.data) == [chat_key(-100123)] == ["telegram/chats/-100123"]


def test_store_failure_is_reported() -> None:
    store = MemoryStore()
    store.available = False
    registry = SubscriptionRegistry(store)

    with pytest.raises(StoreUnavailable):
        asyncio.run(registry.list())
    with pytest.raises(StoreUnavailable):
        asyncio.run(registry.add(_subscriber()))


def test_corrupt_record_raises_encoding_error() -> None:
    store = MemoryStore()
    store.data[chat_key(1)] = b"{not json"
    registry = SubscriptionRegistry(store)

    with pytest.raises(EncodingError):
        asyncio.run(registry.list())


def test_encode_decode_open_subscription() -> None:
    subscriber = Subscriber(chat_id=7, display_name="alice")
    assert decode_subscriber(encode_subscriber(subscriber)) == subscriber


def test_get_returns_matching_subscriber() -> None:
    registry = SubscriptionRegistry(MemoryStore())
    asyncio.run(registry.add(_subscriber(chat_id=5)))
    assert asyncio.run(registry.get(5)).chat_id == 5
    assert asyncio.run(registry.get(6)) is None


def test_sqlite_store_backs_the_registry(tmp_path) -> None:
    store = SQLiteKeyValueStore(str(tmp_path / "alertgram.db"))
    store.init_db()
    registry = SubscriptionRegistry(store)
    subscriber = _subscriber(chat_id=10)

    asyncio.run(registry.add(subscriber))
    asyncio.run(registry.add(_subscriber(chat_id=11, filters="")))
    asyncio.run(registry.remove(11))
    asyncio.run(registry.remove(12))

    assert asyncio.run(registry.list()) == [subscriber]
