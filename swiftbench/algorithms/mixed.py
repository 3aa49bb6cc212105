"""
Time-bounded mixed workload: bench-mixed.

Every operation kind with a non-zero ratio gets its own WorkerPool of
``concurrency * ratio`` workers and its own producer. The producers only
hand out indices that are safe given the *completed* counts:

- PUT: a free-running cursor from 0.
- DELETE: index ``i`` once at least ``i + delete_margin`` PUTs completed
  (and always fewer than ``i`` PUTs outstanding).
- GET/HEAD/POST: indices in ``[deletes + 2 * delete_workers,
  puts - 2 * put_workers]``; past the top the cursor wraps to the bottom.
  ``deletes`` includes DELETEs that failed without a response.

When no index is safe a producer waits on the done event for one poll
interval. A timer sets the done event after the configured time span;
producers, workers and the reporter all stop on it, and requests already
in flight complete normally.
"""

import asyncio
import logging
import time
from typing import Dict, List, Optional, Tuple

from swiftbench.algorithms.base import BenchmarkDriver, BenchmarkResult, per_second
from swiftbench.common import OperationKind, Task, WorkerPool
from swiftbench.configuration import MIXED_POST_META_HEADER

logger = logging.getLogger(__name__)

READER_KINDS = (OperationKind.GET, OperationKind.HEAD, OperationKind.POST)


def delete_index_ready(index: int, puts_completed: int, margin: int) -> bool:
    """True when index may be deleted given the completed PUT count."""
    return index < puts_completed and index <= puts_completed - margin


def reader_index(cursor: int, deletes_completed: int, puts_completed: int,
                 delete_workers: int, put_workers: int) -> Tuple[int, bool]:
    """Clamp a GET/HEAD/POST cursor into the safe window.

    deletes_completed should also count DELETEs that ended without a
    response, since the server may have applied them.

    Returns:
        The adjusted cursor and whether it may be dispatched now
    """
    lo = deletes_completed + 2 * delete_workers
    hi = puts_completed - 2 * max(1, put_workers)
    if cursor < lo:
        cursor = lo
    if cursor > hi:
        cursor = lo
    return cursor, cursor <= hi


class MixedBenchmark(BenchmarkDriver):
    """Per-kind pools sharing one RateCounter and one done event."""

    with_method_column = True

    def __init__(self, storage, config, **kwargs):
        super().__init__(storage, config, **kwargs)
        self.done = asyncio.Event()
        self.pools: Dict[OperationKind, WorkerPool] = {}
        self.start_time = 0.0

    @property
    def kinds(self) -> List[OperationKind]:
        return OperationKind.ordered()

    def header(self) -> str:
        config = self.config
        if config.containers == 1:
            where = "into 1 container"
        else:
            where = f"distributed across {config.containers} containers"
        return (f"Bench-Mixed for {config.timespan}, each object is {config.size} bytes, "
                f"{where}, at {config.concurrency} concurrency...")

    def request_headers(self, task: Task) -> Dict[str, str]:
        headers = self.config.header_dict
        if task.kind is OperationKind.POST:
            headers[MIXED_POST_META_HEADER] = str(task.index)
        return headers

    def next_index(self, kind: OperationKind, cursor: int) -> Tuple[int, bool]:
        """Return the cursor to use for kind and whether it is safe right now."""
        if kind is OperationKind.PUT:
            return cursor, True
        puts = self.counter.get(OperationKind.PUT)
        if kind is OperationKind.DELETE:
            return cursor, delete_index_ready(cursor, puts, self.config.delete_margin)
        return reader_index(
            cursor,
            self.counter.get(OperationKind.DELETE) + self.unanswered.get(OperationKind.DELETE),
            puts,
            self.config.workers_for(OperationKind.DELETE),
            self.config.workers_for(OperationKind.PUT),
        )

    async def _pause(self) -> None:
        try:
            await asyncio.wait_for(self.done.wait(), timeout=self.config.poll_interval)
        except asyncio.TimeoutError:
            pass

    async def _produce(self, kind: OperationKind, pool: WorkerPool) -> None:
        cursor = 0
        while not self.done.is_set():
            cursor, ready = self.next_index(kind, cursor)
            if not ready:
                await self._pause()
                continue
            if not await pool.submit(Task(kind, cursor)):
                break
            cursor += 1
        logger.debug(f"{kind.value} producer stopped at index {cursor}")

    def _tick(self) -> None:
        snapshot = self.counter.snapshot()
        total = sum(snapshot.values())
        elapsed = time.monotonic() - self.start_time
        self.emit(f"\n{elapsed:.05f}s for {total} requests so far, "
                  f"{per_second(total, elapsed):.05f} requests per second...")
        self.record_throughput(snapshot)

    async def _execute(self) -> BenchmarkResult:
        await self.ensure_containers()
        self.emit(self.header())

        for kind in OperationKind.ordered():
            workers = self.config.workers_for(kind)
            if workers > 0:
                self.pools[kind] = WorkerPool(workers, self.perform, name=kind.value.lower(),
                                              stop_event=self.done).start()

        loop = asyncio.get_running_loop()
        self.start_time = time.monotonic()
        timer = loop.call_later(self.config.timespan_seconds, self.done.set)
        reporter = asyncio.create_task(self.report_until(self.done, self._tick))
        producers = [asyncio.create_task(self._produce(kind, pool)) for kind, pool in self.pools.items()]
        error: Optional[BaseException] = None
        try:
            await asyncio.gather(*producers)
            for pool in self.pools.values():
                try:
                    await pool.wait()
                except Exception as e:
                    if error is None:
                        error = e
        finally:
            timer.cancel()
            self.done.set()
            await reporter
        if error is not None:
            raise error

        elapsed = time.monotonic() - self.start_time
        self.emit("\n")
        snapshot = self.counter.snapshot()
        total = sum(snapshot.values())
        self.emit(f"{elapsed:.05f}s for {total} requests, {per_second(total, elapsed):.05f} requests per second.\n")
        self.record_throughput(snapshot)
        return BenchmarkResult(self.kinds, elapsed, snapshot, self.failures)
