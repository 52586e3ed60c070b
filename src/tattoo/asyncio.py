"""asyncio utility classes for tattoo."""

from __future__ import annotations

import asyncio
from asyncio import Future, Task
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

__all__ = ["RateLimiter"]


@dataclass
class _Request[T]:
    """A task factory waiting for admission and the future it resolves."""

    factory: Callable[[], Awaitable[T]]
    future: Future[T]


class RateLimiter:
    """Admit asynchronous tasks with bounded concurrency and pacing.

    Tasks are admitted in the order they were scheduled. A task is started
    only when fewer than ``max_concurrent`` tasks are running and at least
    ``min_delay`` has passed since the previous task was started. A task
    finishing frees its slot immediately, but the next task still waits
    out the delay.

    Failure of a task is delivered through its own future and has no
    effect on other tasks. There is no retry; callers that want one must
    schedule the task again.

    Parameters
    ----------
    max_concurrent
        Maximum number of tasks running at once.
    min_delay
        Minimum time between starting two tasks.
    """

    def __init__(self, max_concurrent: int, min_delay: timedelta) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._max_concurrent = max_concurrent
        self._min_delay = min_delay.total_seconds()
        self._queue: deque[_Request[Any]] = deque()
        self._in_flight = 0
        self._last_start: float | None = None
        self._slot_freed = asyncio.Event()
        self._dispatcher: Task[None] | None = None
        self._running: set[Task[None]] = set()

    @property
    def in_flight(self) -> int:
        """Number of tasks currently running."""
        return self._in_flight

    @property
    def pending(self) -> int:
        """Number of tasks waiting to be started."""
        return len(self._queue)

    def schedule[T](self, factory: Callable[[], Awaitable[T]]) -> Future[T]:
        """Queue a task for admission.

        Parameters
        ----------
        factory
            Zero-argument callable returning the awaitable to run. It is
            not called until the task is admitted.

        Returns
        -------
        asyncio.Future
            Future resolved with the result or exception of the task.
        """
        loop = asyncio.get_running_loop()
        future: Future[T] = loop.create_future()
        self._queue.append(_Request(factory=factory, future=future))
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.create_task(self._dispatch())
        return future

    async def run[T](self, factory: Callable[[], Awaitable[T]]) -> T:
        """Schedule a task and wait for its result."""
        return await self.schedule(factory)

    async def _dispatch(self) -> None:
        loop = asyncio.get_running_loop()
        while self._queue:
            while self._in_flight >= self._max_concurrent:
                self._slot_freed.clear()
                await self._slot_freed.wait()
            if self._last_start is not None:
                wait = self._last_start + self._min_delay - loop.time()
                if wait > 0:
                    await asyncio.sleep(wait)

            request = self._queue.popleft()
            if request.future.cancelled():
                continue
            self._last_start = loop.time()
            self._in_flight += 1
            task = asyncio.create_task(self._execute(request))
            self._running.add(task)
            task.add_done_callback(self._running.discard)

    async def _execute(self, request: _Request[Any]) -> None:
        try:
            result = await request.factory()
        except asyncio.CancelledError:
            request.future.cancel()
            raise
        except Exception as e:
            if not request.future.done():
                request.future.set_exception(e)
        else:
            if not request.future.done():
                request.future.set_result(result)
        finally:
            self._in_flight -= 1
            self._slot_freed.set()
