"""
Basic data structures for benchmark timing and throughput output.
"""

import time
from typing import Dict, List, Optional

from swiftbench.common.rate_counter import OperationKind


class TimingRecord:
    """One completed storage operation."""

    def __init__(self, object_name: str, transaction_id: str, status: int, elapsed_ns: int,
                 headers_elapsed_ns: Optional[int] = None, method: str = "",
                 completion_time_ns: int = None):
        self.completion_time_ns = completion_time_ns or time.time_ns()
        self.method = method
        self.object_name = object_name
        self.transaction_id = transaction_id
        self.status = status
        self.headers_elapsed_ns = headers_elapsed_ns
        self.elapsed_ns = elapsed_ns

    def to_row(self, with_method: bool = False, with_headers_elapsed: bool = False) -> List:
        row = [self.completion_time_ns]
        if with_method:
            row.append(self.method)
        row.extend([self.object_name, self.transaction_id, self.status])
        if with_headers_elapsed:
            row.append(self.headers_elapsed_ns if self.headers_elapsed_ns is not None else 0)
        row.append(self.elapsed_ns)
        return row


class ThroughputSample:
    """Per-kind completion deltas since the previous sample."""

    def __init__(self, deltas: Dict[OperationKind, int], time_ns: int = None):
        self.time_ns = time_ns or time.time_ns()
        self.deltas = deltas

    @classmethod
    def between(cls, previous: Dict[OperationKind, int], current: Dict[OperationKind, int],
                time_ns: int = None) -> "ThroughputSample":
        return cls({kind: current[kind] - previous.get(kind, 0) for kind in current}, time_ns)

    def count(self, kind: OperationKind) -> int:
        return self.deltas.get(kind, 0)
