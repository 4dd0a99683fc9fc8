"""Helpers for consuming bounded inbound queues under a stop signal."""

from __future__ import annotations

import asyncio
from typing import Optional, TypeVar

T = TypeVar("T")


async def receive(queue: "asyncio.Queue[T]", stop: asyncio.Event) -> Optional[T]:
    """Wait for the next queued item, or return None once ``stop`` is set."""

    if stop.is_set():
        return None

    getter = asyncio.ensure_future(queue.get())
    stopper = asyncio.ensure_future(stop.wait())
    try:
        done, _ = await asyncio.wait({getter, stopper}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for future in (getter, stopper):
            if not future.done():
                future.cancel()

    if getter in done:
        queue.task_done()
        return getter.result()
    return None
