"""
Append-only CSV sinks for timing records and throughput samples.

Rows are batched in memory under a lock. Full batches are handed to a
single persistence thread that appends them with pandas, so the event
loop never waits on disk while requests are being timed. The header row
is written when the sink is opened, so a run that fails early still
leaves a well-formed file behind.
"""

import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import List, Optional

import pandas as pd

from swiftbench.common.rate_counter import OperationKind
from swiftbench.configuration import DEFAULT_PERSISTENCE_BATCH_SIZE
from swiftbench.errors import TransferError
from swiftbench.persistence.record import ThroughputSample, TimingRecord

logger = logging.getLogger(__name__)


class CsvSink:
    """Thread-safe batched CSV writer."""

    def __init__(self, path: str, columns: List[str], batch_size: int = None):
        """Create the file and write its header.

        Args:
            path: Output CSV path; an existing file is truncated
            columns: Header row
            batch_size: Rows to hold before appending (default: from configuration)

        Raises:
            TransferError: If the file cannot be created
        """
        self.path = path
        self.columns = columns
        self.batch_size = batch_size or DEFAULT_PERSISTENCE_BATCH_SIZE
        self.rows: List[List] = []
        self.rows_written = 0
        self.lock = threading.Lock()
        self.closed = False

        directory = os.path.dirname(path)
        try:
            if directory:
                os.makedirs(directory, exist_ok=True)
            pd.DataFrame(columns=columns).to_csv(path, index=False)
        except OSError as e:
            raise TransferError(f"could not create {path}: {e}") from e

        # One thread keeps batches in submission order
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="persistence")
        self._pending: List[Future] = []

    def append(self, row: List) -> None:
        with self.lock:
            if self.closed:
                return
            self.rows.append(row)
            if len(self.rows) >= self.batch_size:
                self._submit_locked()

    def flush(self) -> None:
        """Hand the current batch to the persistence thread.

        Raises:
            TransferError: If an earlier batch could not be written
        """
        with self.lock:
            self._submit_locked()
        self._check_pending(wait=False)

    def drain(self) -> None:
        """Flush and block until every batch handed over so far is on disk."""
        with self.lock:
            self._submit_locked()
        self._check_pending(wait=True)

    def close(self) -> None:
        with self.lock:
            if self.closed:
                return
            self._submit_locked()
            self.closed = True
        try:
            self._check_pending(wait=True)
        finally:
            self._executor.shutdown(wait=True)
        logger.debug(f"Wrote {self.rows_written} rows to {self.path}")

    def _submit_locked(self) -> None:
        if not self.rows:
            return
        batch, self.rows = self.rows, []
        self._pending.append(self._executor.submit(self._write_batch, batch))

    def _check_pending(self, wait: bool) -> None:
        with self.lock:
            pending = list(self._pending)
        done = [future for future in pending if wait or future.done()]
        with self.lock:
            self._pending = [future for future in self._pending if future not in done]
        for future in done:
            future.result()

    def _write_batch(self, batch: List[List]) -> None:
        """Append one batch; runs on the persistence thread."""
        try:
            pd.DataFrame(batch, columns=self.columns).to_csv(
                self.path, mode="a", header=False, index=False
            )
        except OSError as e:
            raise TransferError(f"could not write {self.path}: {e}") from e
        self.rows_written += len(batch)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class TimingSink(CsvSink):
    """Per-operation timing log."""

    def __init__(self, path: str, with_method: bool = False, with_headers_elapsed: bool = False,
                 batch_size: int = None):
        self.with_method = with_method
        self.with_headers_elapsed = with_headers_elapsed
        columns = ["completion_time_unix_nano"]
        if with_method:
            columns.append("method")
        columns.extend(["object_name", "transaction_id", "status"])
        if with_headers_elapsed:
            columns.append("headers_elapsed_nanoseconds")
        columns.append("elapsed_nanoseconds")
        super().__init__(path, columns, batch_size)

    def record(self, record: TimingRecord) -> None:
        self.append(record.to_row(self.with_method, self.with_headers_elapsed))


class ThroughputSink(CsvSink):
    """Per-interval throughput log.

    A single-kind sink writes ``time_unix_nano,count_since_last_time``; a
    sink given several kinds writes one count column per kind. The zero
    baseline row is recorded on open.
    """

    def __init__(self, path: str, kinds: Optional[List[OperationKind]] = None,
                 start_time_ns: int = None, batch_size: int = None):
        self.kinds = kinds or [OperationKind.GET]
        if len(self.kinds) == 1:
            columns = ["time_unix_nano", "count_since_last_time"]
        else:
            columns = ["time_unix_nano"] + [kind.value for kind in self.kinds]
        super().__init__(path, columns, batch_size)
        self.record(ThroughputSample({kind: 0 for kind in self.kinds}, start_time_ns))

    def record(self, sample: ThroughputSample) -> None:
        self.append([sample.time_ns] + [sample.count(kind) for kind in self.kinds])
