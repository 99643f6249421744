"""
RateLimitedQueue — serialises every outbound provider call.

This is a pure asyncio concurrency primitive with no network dependencies.
"""
from __future__ import annotations

import asyncio
import collections
import logging
import time
from typing import Any, Awaitable, Callable

from .const import MIN_REQUEST_DELAY

_LOGGER = logging.getLogger(__name__)


class RateLimitedQueue:
    """
    Runs submitted jobs one at a time, in submission order.

    Consecutive dispatches are spaced by at least min_delay seconds,
    measured from the start of the previous dispatch. The spacing is
    global: it does not matter how many callers submit concurrently.
    A single drain task runs while there is work and exits when the queue
    is empty; the next submission starts a new one.
    """

    def __init__(self, min_delay: float = MIN_REQUEST_DELAY) -> None:
        self.min_delay = min_delay
        # (coro_factory, Future) pairs waiting for dispatch
        self._pending: collections.deque[tuple[Callable[[], Awaitable[Any]], asyncio.Future]] = collections.deque()
        self._drain_task: asyncio.Task | None = None
        self._last_dispatch: float = float("-inf")
        self.dispatched: int = 0

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def is_draining(self) -> bool:
        return self._drain_task is not None

    async def submit(self, coro_factory: Callable[[], Awaitable[Any]]) -> asyncio.Future:
        """
        Schedule coro_factory() behind every job already submitted.

        Returns a Future resolved with the job's result, or failing with the
        job's own exception. Cancelling the Future before the job is
        dispatched removes the job; once dispatched it runs to completion.
        """
        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending.append((coro_factory, fut))
        if self._drain_task is None:
            self._drain_task = asyncio.ensure_future(self._drain())
        return fut

    async def shutdown(self) -> None:
        """Cancel the drain task and fail every job not yet dispatched."""
        task = self._drain_task
        if task is not None:
            task.cancel()
            results = await asyncio.gather(task, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception) and not isinstance(result, asyncio.CancelledError):
                    _LOGGER.debug("RateLimitedQueue drain error during shutdown: %s", result)
        self._drain_task = None
        while self._pending:
            _, fut = self._pending.popleft()
            if not fut.done():
                fut.cancel()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _drain(self) -> None:
        """Dispatch jobs until the queue is empty."""
        try:
            while self._pending:
                if self._pending[0][1].cancelled():
                    self._pending.popleft()
                    continue

                # Honour the minimum inter-dispatch delay
                wait = self.min_delay - (time.monotonic() - self._last_dispatch)
                if wait > 0:
                    await asyncio.sleep(wait)

                coro_factory, fut = self._pending.popleft()
                if fut.cancelled():
                    continue

                self._last_dispatch = time.monotonic()
                self.dispatched += 1
                try:
                    result = await coro_factory()
                except asyncio.CancelledError:
                    fut.cancel()
                    raise
                except Exception as exc:  # noqa: BLE001
                    if not fut.done():
                        fut.set_exception(exc)
                else:
                    if not fut.done():
                        fut.set_result(result)
        finally:
            self._drain_task = None
