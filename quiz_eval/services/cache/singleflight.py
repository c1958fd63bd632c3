"""
Keyed single-flight for asyncio.

Concurrent callers asking for the same key share one in-flight computation
instead of each running it. Unrelated keys never wait on each other.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Hashable, Tuple, TypeVar

T = TypeVar("T")


class SingleFlight:
    def __init__(self):
        self._calls: Dict[Hashable, "asyncio.Task[Any]"] = {}

    def in_flight(self, key: Hashable) -> bool:
        return key in self._calls

    async def do(self, key: Hashable, fn: Callable[[], Awaitable[T]]) -> Tuple[T, bool]:
        """
        Run fn once per key at a time.

        Returns (result, shared) where shared is True for callers that joined
        a computation started by someone else. Exceptions reach every caller.
        Cancelling one caller does not cancel the shared computation.
        """
        task = self._calls.get(key)
        shared = task is not None
        if task is None:
            task = asyncio.ensure_future(fn())
            self._calls[key] = task
            task.add_done_callback(lambda t: self._forget(key, t))
        result = await asyncio.shield(task)
        return result, shared

    def _forget(self, key: Hashable, task: "asyncio.Task[Any]") -> None:
        if self._calls.get(key) is task:
            del self._calls[key]
        if not task.cancelled():
            # Mark the exception retrieved when every caller was cancelled
            task.exception()
