"""Per-key de-duplication of concurrent async calls.

Concurrent callers asking for the same key share one in-flight call instead
of each issuing their own. Late arrivals attach to the pending task and all of
them receive the same result (or exception).

The shared task is cancelled only when every waiter has gone away, so one
client disconnecting does not abort a lookup that others are still waiting on.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _Call(Generic[T]):
    task: asyncio.Task[T]
    waiters: int = 0


class SingleFlight(Generic[T]):
    """Group of keyed in-flight calls. Not thread-safe: use from one event loop."""

    def __init__(self) -> None:
        self._calls: dict[str, _Call[T]] = {}
        self._shared = 0

    def __len__(self) -> int:
        return len(self._calls)

    def stats(self) -> dict[str, int]:
        return {"in_flight": len(self._calls), "shared": self._shared}

    def _forget(self, key: str, call: _Call[T]) -> None:
        if self._calls.get(key) is call:
            del self._calls[key]

    async def do(self, key: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` for ``key`` unless a call for the same key is in flight.

        Args:
            key: De-duplication key (e.g. canonical mobile number).
            fn: Zero-argument coroutine factory performing the work.

        Returns:
            The result of the shared call.
        """
        call = self._calls.get(key)
        if call is None:
            call = _Call(task=asyncio.ensure_future(fn()))
            self._calls[key] = call
            call.task.add_done_callback(lambda _task, c=call: self._forget(key, c))
        else:
            self._shared += 1
            logger.debug("single_flight.joined", extra={"waiters": call.waiters + 1})

        call.waiters += 1
        try:
            return await asyncio.shield(call.task)
        finally:
            call.waiters -= 1
            if call.waiters == 0 and not call.task.done():
                # Late arrivals must start a fresh call, not join a cancelling one
                self._forget(key, call)
                call.task.cancel()
