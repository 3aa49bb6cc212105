"""
Shared scaffolding for the benchmark drivers.

A driver owns one run: its RateCounter, its optional timing and
throughput sinks, and the per-request logic (issue the call, drain and
close the body, count it, record it, then apply the failure policy).
Subclasses supply the task stream and the progress report.
"""

import asyncio
import logging
import sys
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, TextIO, Tuple

import aiohttp

from swiftbench.common import OperationKind, RandomSource, RateCounter, Task
from swiftbench.common.tasks import container_names
from swiftbench.configuration import (
    DEFAULT_CONTAINERS,
    DEFAULT_COUNT,
    DEFAULT_ITERATIONS,
    DEFAULT_MAX_OBJECT_SIZE,
    DEFAULT_MIXED_RATIOS,
    DEFAULT_MIXED_TIME,
    DEFAULT_OBJECT_PREFIX,
    DEFAULT_OBJECT_SIZE,
    DELETE_SAFETY_MARGIN,
    NANOSECONDS_PER_SECOND,
    PRODUCER_POLL_SECONDS,
    REPORT_INTERVAL_SECONDS,
    parse_duration,
)
from swiftbench.errors import ConfigurationError, OperationError, TransferError, handle_failure
from swiftbench.persistence import ThroughputSample, ThroughputSink, TimingRecord, TimingSink, summarize_timing_csv
from swiftbench.systems.base import ObjectStorageSystem, StorageResponse

logger = logging.getLogger(__name__)


def parse_ratios(text: str) -> Tuple[int, ...]:
    """Parse a ``delete,get,head,post,put`` ratio string.

    Raises:
        ConfigurationError: Unless there are five non-negative integers with at least one above zero
    """
    parts = [part.strip() for part in (text or "").split(",")]
    if len(parts) != len(OperationKind):
        raise ConfigurationError(f"ratios needs {len(OperationKind)} comma separated values, got {text!r}")
    try:
        ratios = tuple(int(part) for part in parts)
    except ValueError:
        raise ConfigurationError(f"invalid ratios {text!r}") from None
    if any(ratio < 0 for ratio in ratios):
        raise ConfigurationError(f"ratios cannot be negative: {text!r}")
    if not any(ratios):
        raise ConfigurationError(f"at least one ratio must be above zero: {text!r}")
    return ratios


@dataclass(frozen=True)
class BenchmarkConfig:
    """Immutable settings for one benchmark run.

    Out-of-range values are replaced with the defaults the CLI documents.
    """

    container: str
    prefix: str = DEFAULT_OBJECT_PREFIX
    containers: int = DEFAULT_CONTAINERS
    count: int = DEFAULT_COUNT
    iterations: int = DEFAULT_ITERATIONS
    timespan: str = DEFAULT_MIXED_TIME
    concurrency: int = 1
    size: int = DEFAULT_OBJECT_SIZE
    max_size: int = DEFAULT_MAX_OBJECT_SIZE
    ratios: Tuple[int, ...] = field(default_factory=lambda: parse_ratios(DEFAULT_MIXED_RATIOS))
    csv_path: str = ""
    csvot_path: str = ""
    continue_on_error: bool = False
    headers: Tuple[Tuple[str, str], ...] = ()
    report_interval: float = REPORT_INTERVAL_SECONDS
    delete_margin: int = DELETE_SAFETY_MARGIN
    poll_interval: float = PRODUCER_POLL_SECONDS

    def __post_init__(self):
        if not self.container:
            raise ConfigurationError("a container name is required")
        fixes = {
            'prefix': self.prefix or DEFAULT_OBJECT_PREFIX,
            'containers': max(1, self.containers),
            'count': self.count if self.count >= 1 else DEFAULT_COUNT,
            'iterations': max(1, self.iterations),
            'concurrency': max(1, self.concurrency),
            'size': self.size if self.size >= 0 else DEFAULT_OBJECT_SIZE,
            'delete_margin': max(0, self.delete_margin),
        }
        fixes['max_size'] = max(self.max_size, fixes['size'])
        if isinstance(self.ratios, str):
            fixes['ratios'] = parse_ratios(self.ratios)
        else:
            fixes['ratios'] = parse_ratios(",".join(str(ratio) for ratio in self.ratios))
        if isinstance(self.headers, dict):
            fixes['headers'] = tuple(self.headers.items())
        for name, value in fixes.items():
            object.__setattr__(self, name, value)
        parse_duration(self.timespan)

    @property
    def timespan_seconds(self) -> float:
        return parse_duration(self.timespan)

    @property
    def header_dict(self) -> Dict[str, str]:
        return dict(self.headers)

    def ratio(self, kind: OperationKind) -> int:
        return self.ratios[OperationKind.ordered().index(kind)]

    def workers_for(self, kind: OperationKind) -> int:
        return self.concurrency * self.ratio(kind)


@dataclass
class BenchmarkResult:
    """Outcome of a finished run."""

    kinds: List[OperationKind]
    elapsed_seconds: float
    counts: Dict[OperationKind, int]
    failures: int = 0
    latency: Dict[str, Dict[str, float]] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.counts.get(kind, 0) for kind in self.kinds)

    @property
    def requests_per_second(self) -> float:
        return per_second(self.total, self.elapsed_seconds)


def per_second(count: int, elapsed_seconds: float) -> float:
    if elapsed_seconds <= 0:
        return 0.0
    return count / elapsed_seconds


class BenchmarkDriver:
    """Base class for one benchmark run against a storage system."""

    with_method_column = False

    def __init__(
        self,
        storage: ObjectStorageSystem,
        config: BenchmarkConfig,
        exporter=None,
        out: Optional[TextIO] = None,
        random_source: Optional[RandomSource] = None,
    ):
        """Initialize the driver.

        Args:
            storage: Authenticated storage system
            config: Settings for this run
            exporter: Optional PrometheusExporter fed with every request
            out: Stream for progress and report lines (default: stdout)
            random_source: Source of PUT sizes and bodies
        """
        self.storage = storage
        self.config = config
        self.exporter = exporter
        self.out = out or sys.stdout
        self.random = random_source or RandomSource()
        self.counter = RateCounter()
        # Requests that ended without any response, per kind
        self.unanswered = RateCounter()
        self.failures = 0

        self.timing_sink: Optional[TimingSink] = None
        self.throughput_sink: Optional[ThroughputSink] = None
        self.last_snapshot: Dict[OperationKind, int] = {kind: 0 for kind in OperationKind}

    @property
    def kinds(self) -> List[OperationKind]:
        raise NotImplementedError

    def emit(self, text: str) -> None:
        self.out.write(text)
        self.out.flush()

    async def run(self) -> BenchmarkResult:
        """Execute the benchmark and print its report.

        Raises:
            OperationError: A request failed and continue-on-error is off
            TransferError: A transfer or CSV write failed and continue-on-error is off
        """
        self._open_sinks()
        try:
            result = await self._execute()
        finally:
            self._close_sinks()
        if self.config.csv_path:
            result.latency = summarize_timing_csv(self.config.csv_path)
        return result

    async def _execute(self) -> BenchmarkResult:
        raise NotImplementedError

    def _open_sinks(self) -> None:
        if self.config.csv_path:
            self.timing_sink = TimingSink(
                self.config.csv_path,
                with_method=self.with_method_column,
                with_headers_elapsed=self._with_headers_elapsed(),
            )
        if self.config.csvot_path:
            self.throughput_sink = ThroughputSink(self.config.csvot_path, kinds=self.kinds)

    def _close_sinks(self) -> None:
        for sink in (self.timing_sink, self.throughput_sink):
            if sink is not None:
                sink.close()

    def _with_headers_elapsed(self) -> bool:
        return not self.with_method_column and set(self.kinds) <= {OperationKind.GET, OperationKind.HEAD}

    def _flush_sinks(self) -> None:
        for sink in (self.timing_sink, self.throughput_sink):
            if sink is not None:
                sink.flush()

    def record_throughput(self, current: Dict[OperationKind, int]) -> None:
        """Append the per-kind deltas since the previous sample."""
        if self.throughput_sink is not None:
            self.throughput_sink.record(ThroughputSample.between(self.last_snapshot, current))
        self.last_snapshot = dict(current)

    async def report_until(self, finished: asyncio.Event, tick) -> None:
        """Call tick every report interval until finished is set."""
        while not finished.is_set():
            try:
                await asyncio.wait_for(finished.wait(), timeout=self.config.report_interval)
            except asyncio.TimeoutError:
                tick()
                self._flush_sinks()

    async def ensure_containers(self) -> None:
        """PUT every container the run writes into."""
        names = container_names(self.config.container, self.config.containers)
        if len(names) == 1:
            self.emit("Ensuring container exists...")
        else:
            self.emit(f"Ensuring {len(names)} containers exist...")
        for name in names:
            logger.debug(f"PUT {name}")
            async with await self.storage.put_container(name, self.config.header_dict) as response:
                body = await response.text()
            if not response.ok:
                handle_failure(OperationError("PUT", name, response.status, body), self.config.continue_on_error)
        self.emit("\n")

    def request_headers(self, task: Task) -> Dict[str, str]:
        return self.config.header_dict

    async def _call(self, task: Task, container: str, obj: str, headers: Dict[str, str]) -> StorageResponse:
        kind = task.kind
        if kind is OperationKind.DELETE:
            return await self.storage.delete_object(container, obj, headers)
        if kind is OperationKind.GET:
            return await self.storage.get_object(container, obj, headers)
        if kind is OperationKind.HEAD:
            return await self.storage.head_object(container, obj, headers)
        if kind is OperationKind.POST:
            return await self.storage.post_object(container, obj, headers)
        size = self.random.size_between(self.config.size, self.config.max_size)
        headers = dict(headers)
        headers["Content-Length"] = str(size)
        return await self.storage.put_object(container, obj, headers, self.random.body(size))

    async def perform(self, task: Task) -> None:
        """Run one task: call, drain, count, record, then classify."""
        container, obj = task.names(self.config.container, self.config.prefix, self.config.containers)
        method = task.kind.value
        logger.debug(f"{method} {container}/{obj}")

        if self.exporter is not None:
            self.exporter.request_started()
        start = time.perf_counter_ns()
        try:
            response = await self._call(task, container, obj, self.request_headers(task))
            headers_elapsed = time.perf_counter_ns() - start
            async with response:
                if response.ok:
                    await response.drain()
                    body = ""
                else:
                    body = await response.text()
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
            if self.exporter is not None:
                self.exporter.record_request(method, 0, (time.perf_counter_ns() - start) / NANOSECONDS_PER_SECOND)
            self.unanswered.increment(task.kind)
            self.failures += 1
            handle_failure(TransferError(f"{method} {container}/{obj} - {e}"), self.config.continue_on_error)
            return
        elapsed = time.perf_counter_ns() - start

        self.counter.increment(task.kind)
        if self.exporter is not None:
            self.exporter.record_request(method, response.status, elapsed / NANOSECONDS_PER_SECOND)
        if self.timing_sink is not None:
            self.timing_sink.record(TimingRecord(
                f"{container}/{obj}",
                response.trans_id,
                response.status,
                elapsed,
                headers_elapsed_ns=headers_elapsed,
                method=method,
            ))
        if not response.ok:
            self.failures += 1
            handle_failure(
                OperationError(method, f"{container}/{obj}", response.status, body),
                self.config.continue_on_error,
            )
