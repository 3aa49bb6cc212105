"""
Async worker pool draining a bounded task queue.

Every benchmark and the upload/download commands run their requests
through a WorkerPool. The queue holds at most ``concurrency`` pending
tasks, so a producer calling ``submit`` is held back while the workers
are saturated.

A pool stops in one of two ways:

- ``close()`` queues one sentinel per worker; each worker exits after
  draining everything queued before its sentinel.
- The stop event is set (a deadline fired, or a worker hit a fatal
  error). Workers finish the call they are making, take nothing further
  from the queue and exit; blocked ``submit`` calls return False.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

_STOP = object()


class WorkerPool:
    """Fixed-size set of async workers fed from a bounded queue."""

    def __init__(
        self,
        concurrency: int,
        handler: Callable[[Any], Awaitable[None]],
        name: str = "pool",
        stop_event: Optional[asyncio.Event] = None,
    ):
        """Initialize the worker pool.

        Args:
            concurrency: Number of workers (values below 1 are treated as 1)
            handler: Coroutine function run once per task
            name: Label used in log messages
            stop_event: Broadcast stop signal; pools of one run may share it
        """
        self.concurrency = max(1, concurrency)
        self.handler = handler
        self.name = name
        self.stop_event = stop_event or asyncio.Event()
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=self.concurrency)

        self.worker_tasks: List[asyncio.Task] = []
        self.error: Optional[BaseException] = None
        self.in_flight = 0
        self.processed = 0

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()

    def start(self) -> "WorkerPool":
        """Launch the workers."""
        if self.worker_tasks:
            raise RuntimeError(f"{self.name} pool already started")
        for worker_id in range(self.concurrency):
            self.worker_tasks.append(asyncio.create_task(self._worker_task(worker_id)))
        logger.debug(f"Started {self.concurrency} {self.name} workers")
        return self

    async def submit(self, item: Any) -> bool:
        """Queue one task, waiting while the queue is full.

        Returns:
            True once queued, False if the pool was stopped first
        """
        if self.stopped:
            return False
        try:
            self.queue.put_nowait(item)
            return True
        except asyncio.QueueFull:
            pass
        queued, _ = await self._until_stopped(self.queue.put(item))
        return queued

    async def close(self) -> None:
        """Signal the workers to exit once the queued tasks are done."""
        for _ in self.worker_tasks:
            if not await self.submit(_STOP):
                break

    def stop(self) -> None:
        """Set the stop signal; queued tasks are abandoned."""
        self.stop_event.set()

    async def wait(self) -> None:
        """Block until every worker has exited.

        Raises:
            Exception: The first error a task handler raised, if any
        """
        if self.worker_tasks:
            await asyncio.gather(*self.worker_tasks)
        if self.error is not None:
            raise self.error

    async def _until_stopped(self, coro: Awaitable) -> Tuple[bool, Any]:
        """Await coro unless the stop event fires first."""
        operation = asyncio.ensure_future(coro)
        stopper = asyncio.ensure_future(self.stop_event.wait())
        try:
            await asyncio.wait({operation, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopper.cancel()
            if not operation.done():
                operation.cancel()
        if operation.done() and not operation.cancelled():
            return True, operation.result()
        return False, None

    async def _next_item(self) -> Tuple[bool, Any]:
        try:
            return True, self.queue.get_nowait()
        except asyncio.QueueEmpty:
            return await self._until_stopped(self.queue.get())

    async def _worker_task(self, worker_id: int):
        """Take tasks until a sentinel arrives or the stop event is set."""
        while not self.stopped:
            received, item = await self._next_item()
            if not received or item is _STOP or self.stopped:
                break

            self.in_flight += 1
            try:
                await self.handler(item)
            except Exception as e:
                self._fail(worker_id, e)
                break
            finally:
                self.in_flight -= 1
                self.processed += 1

    def _fail(self, worker_id: int, error: Exception) -> None:
        if self.error is None:
            self.error = error
        logger.debug(f"{self.name} worker {worker_id} stopping the run: {error}")
        self.stop_event.set()
