from __future__ import annotations

import asyncio
from typing import Dict

from core.dispatcher import NotificationDispatcher, build_alerts_template_data
from core.filters import parse_filters
from core.messages import SNIP_MARKER
from core.models import Alert, AlertEvent, ParseMode, Subscriber
from core.registry import SubscriptionRegistry
from fakes import FakeRenderer, FakeTransport, MemoryStore


def _event(common_labels: Dict[str, str]) -> AlertEvent:
    alert = Alert(status="firing", labels=dict(common_labels, alertname="DiskFull"), annotations={})
    return AlertEvent(
        receiver="telegram",
        status="firing",
        alerts=(alert,),
        group_labels={"alertname": "DiskFull"},
        common_labels=common_labels,
        common_annotations={},
        external_url="http://alertmanager:9093",
    )


def _setup(*subscribers: Subscriber, transport=None, renderer=None):
    store = MemoryStore()
    registry = SubscriptionRegistry(store)
    for subscriber in subscribers:
        asyncio.run(registry.add(subscriber))
    transport = transport or FakeTransport()
    renderer = renderer or FakeRenderer("<b>DiskFull</b>")
    return NotificationDispatcher(registry, transport, renderer), transport, store


def test_events_reach_only_admitting_subscribers() -> None:
    critical_only = Subscriber(chat_id=1, display_name="a", filter_rules=parse_filters("severity=critical"))
    everything = Subscriber(chat_id=2, display_name="b")
    dispatcher, transport, _ = _setup(critical_only, everything)

    asyncio.run(dispatcher.dispatch(_event({"severity": "warning"})))
    asyncio.run(dispatcher.dispatch(_event({"severity": "critical"})))

    assert len(transport.texts_for(1)) == 1
    assert len(transport.texts_for(2)) == 2
    assert all(mode is ParseMode.HTML for _, _, mode in transport.sent)


def test_renders_once_per_event_with_event_data() -> None:
    renderer = FakeRenderer("hello")
    dispatcher, _, _ = _setup(
        Subscriber(chat_id=1, display_name="a"),
        Subscriber(chat_id=2, display_name="b"),
        renderer=renderer,
    )

    asyncio.run(dispatcher.dispatch(_event({"severity": "critical"})))

    assert len(renderer.calls) == 1
    name, data = renderer.calls[0]
    assert name == "default.html"
    assert data["common_labels"] == {"severity": "critical"}
    assert data["alerts"][0].labels["alertname"] == "DiskFull"


def test_delivery_failure_does_not_abort_fan_out() -> None:
    transport = FakeTransport(failing_chats={1})
    dispatcher, _, _ = _setup(
        Subscriber(chat_id=1, display_name="a"),
        Subscriber(chat_id=2, display_name="b"),
        transport=transport,
    )

    delivered = asyncio.run(dispatcher.dispatch(_event({})))

    assert delivered == 1
    assert transport.texts_for(2) == ["<b>DiskFull</b>"]


def test_registry_failure_drops_event() -> None:
    dispatcher, transport, store = _setup(Subscriber(chat_id=1, display_name="a"))
    store.available = False

    assert asyncio.run(dispatcher.dispatch(_event({}))) == 0
    assert transport.sent == []


def test_template_failure_drops_event() -> None:
    dispatcher, transport, _ = _setup(
        Subscriber(chat_id=1, display_name="a"),
        renderer=FakeRenderer(fail=True),
    )
    assert asyncio.run(dispatcher.dispatch(_event({}))) == 0
    assert transport.sent == []


def test_oversized_message_is_truncated_before_sending() -> None:
    paragraphs = "\n\n".join(["<b>alert</b> " + "x" * 500] * 20)
    dispatcher, transport, _ = _setup(
        Subscriber(chat_id=1, display_name="a"),
        renderer=FakeRenderer(paragraphs),
    )

    asyncio.run(dispatcher.dispatch(_event({})))

    (text,) = transport.texts_for(1)
    assert text.endswith(SNIP_MARKER)
    assert len(text.encode("utf-8")) <= 4096


def test_run_processes_queue_until_stopped() -> None:
    dispatcher, transport, _ = _setup(Subscriber(chat_id=1, display_name="a"))

    async def scenario() -> None:
        events: asyncio.Queue = asyncio.Queue(maxsize=10)
        stop = asyncio.Event()
        task = asyncio.create_task(dispatcher.run(events, stop))
        await events.put(_event({"n": "1"}))
        await events.put(_event({"n": "2"}))
        await events.join()
        stop.set()
        await asyncio.wait_for(task, timeout=1)

    asyncio.run(scenario())

    assert len(transport.texts_for(1)) == 2


def test_alerts_template_data_status() -> None:
    firing = Alert(status="firing", labels={}, annotations={})
    resolved = Alert(status="resolved", labels={}, annotations={})
    assert build_alerts_template_data([resolved, firing])["status"] == "firing"
    assert build_alerts_template_data([resolved])["status"] == "resolved"
