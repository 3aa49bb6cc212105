"""
Per-operation completion counters shared by every worker of a run.
"""

import enum
import threading
from typing import Dict


class OperationKind(enum.Enum):
    """Object operation kinds; definition order indexes the mixed ratio table."""

    DELETE = "DELETE"
    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"

    @classmethod
    def ordered(cls):
        return list(cls)


class RateCounter:
    """Monotonic completion counters, one per operation kind.

    Each counter only increases. A snapshot reads every counter, but the
    values are not taken atomically together.
    """

    def __init__(self):
        self._counts: Dict[OperationKind, int] = {kind: 0 for kind in OperationKind}
        self._lock = threading.Lock()

    def increment(self, kind: OperationKind, amount: int = 1) -> int:
        """Add to the counter for kind and return the new value."""
        if amount < 0:
            raise ValueError("counters only increase")
        with self._lock:
            self._counts[kind] += amount
            return self._counts[kind]

    def get(self, kind: OperationKind) -> int:
        with self._lock:
            return self._counts[kind]

    def snapshot(self) -> Dict[OperationKind, int]:
        return {kind: self.get(kind) for kind in OperationKind}

    def total(self) -> int:
        return sum(self.snapshot().values())

    def __repr__(self) -> str:
        counts = ", ".join(f"{kind.value}={count}" for kind, count in self.snapshot().items())
        return f"RateCounter({counts})"
