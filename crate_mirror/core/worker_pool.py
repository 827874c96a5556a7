"""
A fixed-size pool of asyncio workers draining a shared queue.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")

_STOP = object()


class WorkerPool(Generic[T]):
    """
    Runs ``handler`` over submitted items with ``size`` concurrent workers.

    Handlers are expected to deal with per-item failures themselves. An
    exception escaping a handler is treated as fatal: it is stored, the
    remaining items are drained unprocessed so producers never block, and
    ``join()`` re-raises it. A pool of size one serializes all handling, which
    is how catalog writes are funneled through a single writer.
    """

    def __init__(
        self,
        name: str,
        handler: Callable[[T], Awaitable[Any]],
        size: int,
        maxsize: int = 0,
    ):
        if size < 1:
            raise ValueError("A worker pool needs at least one worker.")
        self.name = name
        self.handler = handler
        self.size = size
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._workers: list[asyncio.Task] = []
        self._error: Optional[BaseException] = None
        self._closed = False

    def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"{self.name}-{i}")
            for i in range(self.size)
        ]
        log.debug(f"Started {self.size} '{self.name}' workers")

    async def _worker(self, index: int) -> None:
        while True:
            item = await self._queue.get()
            try:
                if item is _STOP:
                    return
                if self._error is not None:
                    continue
                try:
                    await self.handler(item)
                except Exception as e:
                    log.debug(f"{self.name}-{index} stopped on {e!r}")
                    self._error = e
            finally:
                self._queue.task_done()

    async def submit(self, item: T) -> None:
        """
        Queues an item, waiting for room when the queue is bounded.

        Raises:
            RuntimeError: If the pool has already been joined.
            Exception: The fatal error of an earlier item, if any.
        """
        if self._closed:
            raise RuntimeError(f"Worker pool '{self.name}' is closed.")
        if self._error is not None:
            raise self._error
        await self._queue.put(item)

    async def join(self) -> None:
        """Waits for every queued item, stops the workers and re-raises a fatal error."""
        if not self._closed:
            self._closed = True
            self.start()
            for _ in self._workers:
                await self._queue.put(_STOP)
            await asyncio.gather(*self._workers)
        if self._error is not None:
            raise self._error

    async def cancel(self) -> None:
        self._closed = True
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)

    async def __aenter__(self) -> "WorkerPool[T]":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is None:
            await self.join()
        else:
            await self.cancel()
