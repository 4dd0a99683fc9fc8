from __future__ import annotations

import asyncio

import pytest

from core.commands import CommandSupervisor
from core.config import CommandConfig
from core.dispatcher import NotificationDispatcher
from core.models import AlertEvent
from core.registry import SubscriptionRegistry
from core.supervisor import run_supervised
from fakes import FakeAlertmanager, FakeMetrics, FakeRenderer, FakeTransport, MemoryStore, make_message


def _components():
    registry = SubscriptionRegistry(MemoryStore())
    transport = FakeTransport()
    renderer = FakeRenderer("<b>alert</b>")
    dispatcher = NotificationDispatcher(registry, transport, renderer)
    commands = CommandSupervisor(
        registry=registry,
        transport=transport,
        alertmanager=FakeAlertmanager(),
        renderer=renderer,
        metrics=FakeMetrics(),
        config=CommandConfig.build([1]),
    )
    return dispatcher, commands, transport


async def _wait_until(predicate, timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        assert loop.time() < deadline, "condition not reached in time"
        await asyncio.sleep(0.01)


def _event() -> AlertEvent:
    return AlertEvent(
        receiver="telegram",
        status="firing",
        alerts=(),
        group_labels={},
        common_labels={"severity": "critical"},
        common_annotations={},
        external_url="",
    )


def test_both_loops_share_the_registry_and_stop_together() -> None:
    dispatcher, commands, transport = _components()

    async def scenario() -> None:
        events: asyncio.Queue = asyncio.Queue(maxsize=10)
        messages: asyncio.Queue = asyncio.Queue(maxsize=10)
        stop = asyncio.Event()
        supervised = asyncio.create_task(run_supervised(dispatcher, commands, events, messages, stop))

        await messages.put(make_message("/start severity=critical", chat_id=100, sender_id=1))
        await _wait_until(lambda: len(transport.texts_for(100)) == 1)
        await events.put(_event())
        await _wait_until(lambda: len(transport.texts_for(100)) == 2)
        stop.set()
        await asyncio.wait_for(supervised, timeout=1)

    asyncio.run(scenario())

    assert "<b>alert</b>" in transport.texts_for(100)


def test_failing_loop_stops_the_other_and_propagates() -> None:
    dispatcher, commands, _ = _components()
    stopped = {}

    class Broken(Exception):
        pass

    async def broken_run(events, stop) -> None:
        raise Broken("dispatcher crashed")

    original_run = commands.run

    async def tracking_run(messages, stop) -> None:
        await original_run(messages, stop)
        stopped["commands"] = stop.is_set()

    dispatcher.run = broken_run
    commands.run = tracking_run

    async def scenario() -> None:
        stop = asyncio.Event()
        await run_supervised(dispatcher, commands, asyncio.Queue(), asyncio.Queue(), stop)

    with pytest.raises(Broken):
        asyncio.run(scenario())
    assert stopped == {"commands": True}
