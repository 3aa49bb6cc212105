"""
Common utilities for the Swift benchmark.
"""

from .rate_counter import OperationKind, RateCounter
from .random_source import RandomSource
from .tasks import Task, resolve_names
from .worker_pool import WorkerPool

__all__ = ['OperationKind', 'RateCounter', 'RandomSource', 'Task', 'resolve_names', 'WorkerPool']
