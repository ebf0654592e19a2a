"""Observer channel port and an in-process queue implementation."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Protocol


class ObserverChannel(Protocol):
    """Fire-and-forget outbound message channel to one observer."""

    def post_message(self, message: Mapping[str, Any]) -> None: ...


class QueueChannel:
    """Observer channel delivering into an ``asyncio.Queue``.

    Useful for in-process observers. A bounded queue that is full makes
    ``post_message`` raise ``asyncio.QueueFull``; the broadcaster treats that
    like any other delivery failure.
    """

    def __init__(self, maxsize: int = 0):
        self._queue: asyncio.Queue[Mapping[str, Any]] = asyncio.Queue(maxsize=maxsize)

    def post_message(self, message: Mapping[str, Any]) -> None:
        self._queue.put_nowait(message)

    async def receive(self) -> Mapping[str, Any]:
        return await self._queue.get()

    def drain(self) -> list[Mapping[str, Any]]:
        """Return and remove every message currently queued."""
        messages: list[Mapping[str, Any]] = []
        while not self._queue.empty():
            messages.append(self._queue.get_nowait())
        return messages
