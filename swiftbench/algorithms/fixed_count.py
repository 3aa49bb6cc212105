"""
Fixed-count benchmarks: bench-delete, bench-get, bench-head, bench-post and bench-put.

One producer feeds indices ``0..count-1`` (``iterations`` times over for
GET and HEAD) into a WorkerPool, then closes it. A reporter task prints a
running rate every report interval until the pool has drained.
"""

import asyncio
import logging
import time
from typing import List

from swiftbench.algorithms.base import BenchmarkDriver, BenchmarkResult, per_second
from swiftbench.common import OperationKind, Task, WorkerPool
from swiftbench.common.tasks import container_names

logger = logging.getLogger(__name__)

ITERATED_KINDS = (OperationKind.GET, OperationKind.HEAD)


class FixedCountBenchmark(BenchmarkDriver):
    """Issue ``count`` operations of one kind at the configured concurrency."""

    def __init__(self, storage, config, kind: OperationKind, **kwargs):
        super().__init__(storage, config, **kwargs)
        self.kind = kind
        self.iterations = config.iterations if kind in ITERATED_KINDS else 1
        self.dispatched = 0
        self.start_time = 0.0

    @property
    def kinds(self) -> List[OperationKind]:
        return [self.kind]

    @property
    def label(self) -> str:
        return f"{self.kind.value}s"

    def header(self) -> str:
        config = self.config
        kind = self.kind.value
        if config.containers == 1:
            where = "from 1 container" if self.kind is not OperationKind.PUT else "into 1 container"
        else:
            where = f"distributed across {config.containers} containers"
        if self.kind in ITERATED_KINDS:
            return (f"Bench-{kind} of {self.iterations * config.count} ({config.count} distinct) "
                    f"objects, {where}, at {config.concurrency} concurrency...")
        if self.kind is OperationKind.PUT:
            size = f"{config.size}"
            if config.max_size > config.size:
                size = f"{config.size}-{config.max_size}"
            return (f"Bench-PUT of {config.count} objects, each {size} bytes, {where}, "
                    f"at {config.concurrency} concurrency...")
        if self.kind is OperationKind.POST and config.containers == 1:
            where = "in 1 container"
        if config.containers == 1:
            return f"Bench-{kind} of {config.count} objects {where}, at {config.concurrency} concurrency..."
        return f"Bench-{kind} of {config.count} objects, {where}, at {config.concurrency} concurrency..."

    def _tick(self) -> None:
        # In-flight tasks are estimated as the concurrency level, so this can go negative.
        so_far = self.dispatched - self.config.concurrency
        elapsed = time.monotonic() - self.start_time
        self.emit(f"\n{elapsed:.05f}s for {so_far} {self.label} so far, "
                  f"{per_second(so_far, elapsed):.05f} {self.label} per second...")
        self.record_throughput({self.kind: so_far})

    async def _produce(self, pool: WorkerPool) -> None:
        for _ in range(self.iterations):
            for index in range(self.config.count):
                if not await pool.submit(Task(self.kind, index)):
                    return
                self.dispatched += 1
        await pool.close()

    async def _execute(self) -> BenchmarkResult:
        if self.kind is OperationKind.PUT:
            await self.ensure_containers()
        self.emit(self.header())

        pool = WorkerPool(self.config.concurrency, self.perform, name=self.kind.value.lower()).start()
        finished = asyncio.Event()
        self.start_time = time.monotonic()
        reporter = asyncio.create_task(self.report_until(finished, self._tick))
        try:
            await self._produce(pool)
            await pool.wait()
        finally:
            finished.set()
            await reporter
        elapsed = time.monotonic() - self.start_time
        self.emit("\n")

        if self.kind is OperationKind.DELETE:
            await self.delete_containers()
            self.emit("\n")

        total = self.counter.get(self.kind)
        self.emit(f"{elapsed:.05f}s total time, {per_second(total, elapsed):.05f} {self.label} per second.\n")
        self.record_throughput({self.kind: total})
        return BenchmarkResult(self.kinds, elapsed, self.counter.snapshot(), self.failures)

    async def delete_containers(self) -> None:
        """Remove the emptied containers; failures are only warnings."""
        names = container_names(self.config.container, self.config.containers)
        if len(names) == 1:
            self.emit("Attempting to delete container...")
        else:
            self.emit(f"Attempting to delete the {len(names)} containers...")
        for name in names:
            logger.debug(f"DELETE {name}")
            async with await self.storage.delete_container(name, self.config.header_dict) as response:
                body = await response.text()
            if not response.ok:
                logger.warning(f"DELETE {name} - {response.status} {response.reason} - {body}")
