"""Per-auction realtime subscription backed by an asyncio queue."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

_CLOSED = object()


class QueueSubscription:
    """Ordered stream of raw event payloads for one auction.

    Payloads are delivered in the order ``push`` was called. Iteration ends
    once ``close`` has been called and the already-queued payloads are drained.
    """

    def __init__(
        self,
        auction_id: str,
        on_close: Callable[["QueueSubscription"], None] | None = None,
    ) -> None:
        self.auction_id = auction_id
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, payload: dict[str, Any]) -> None:
        if not self._closed:
            self._queue.put_nowait(payload)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            self._on_close(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "QueueSubscription":
        return self

    async def __anext__(self) -> dict[str, Any]:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item
