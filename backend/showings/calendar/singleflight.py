"""Keyed coalescing of concurrent identical async work.

While a call for a key is running, every other caller asking for the same
key waits on the first call's result instead of starting its own. If the
leading caller is cancelled, its waiters start the call again themselves.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LeaderCancelledError(Exception):
    """The call a waiter joined was cancelled before it produced a result."""


class SingleFlight(Generic[T]):
    """Map from key to the in-flight future computing that key's value."""

    def __init__(self) -> None:
        self._inflight: dict[Hashable, asyncio.Future[T]] = {}

    def in_flight(self, key: Hashable) -> bool:
        return key in self._inflight

    async def do(self, key: Hashable, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` for ``key`` unless a call for ``key`` is already running."""
        while True:
            pending = self._inflight.get(key)
            if pending is None:
                break
            logger.debug("Joining in-flight call for %r", key)
            try:
                return await asyncio.shield(pending)
            except LeaderCancelledError:
                logger.debug("Leading call for %r was cancelled; retrying", key)

        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = await fn()
        except asyncio.CancelledError:
            if not future.done():
                future.set_exception(LeaderCancelledError(key))
                future.exception()
            raise
        except Exception as exc:
            if not future.done():
                future.set_exception(exc)
                # Mark the exception as retrieved when nobody else was waiting.
                future.exception()
            raise
        else:
            if not future.done():
                future.set_result(result)
            return result
        finally:
            if self._inflight.get(key) is future:
                del self._inflight[key]

    def clear(self) -> None:
        """Cancel waiters of every in-flight call and forget them."""
        for future in self._inflight.values():
            if not future.done():
                future.cancel()
        self._inflight.clear()
