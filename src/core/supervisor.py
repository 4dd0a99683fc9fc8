"""Structured supervision of the dispatch and command loops."""

from __future__ import annotations

import asyncio
import logging

from core.commands import CommandSupervisor
from core.dispatcher import NotificationDispatcher
from core.models import AlertEvent, IncomingMessage

LOGGER = logging.getLogger(__name__)


async def run_supervised(
    dispatcher: NotificationDispatcher,
    commands: CommandSupervisor,
    events: "asyncio.Queue[AlertEvent]",
    messages: "asyncio.Queue[IncomingMessage]",
    stop: asyncio.Event,
) -> None:
    """Run both loops until ``stop`` is set or either loop terminates.

    Whichever happens first, the stop signal is raised so the other loop
    finishes its current item and exits; both tasks are joined before
    returning. An exception from either loop is re-raised afterwards.
    """

    tasks = [
        asyncio.create_task(dispatcher.run(events, stop), name="notification-dispatcher"),
        asyncio.create_task(commands.run(messages, stop), name="command-supervisor"),
    ]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            if not stop.is_set():
                LOGGER.warning("%s terminated, stopping the other loop", task.get_name())
    finally:
        stop.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

    for task, result in zip(tasks, results):
        if isinstance(result, BaseException) and not isinstance(result, asyncio.CancelledError):
            LOGGER.error("%s failed: %r", task.get_name(), result)
            raise result
