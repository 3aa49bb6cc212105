"""
Benchmark task description and container/object name resolution.
"""

from dataclasses import dataclass
from typing import Tuple

from swiftbench.common.rate_counter import OperationKind


def resolve_names(container: str, prefix: str, index: int, containers: int = 1) -> Tuple[str, str]:
    """Map a task index to its (container, object) names.

    With more than one container the container name gets the suffix
    ``index % containers``; the object name is always ``prefix + index``.
    """
    if containers > 1:
        container = f"{container}{index % containers}"
    return container, f"{prefix}{index}"


def container_names(container: str, containers: int = 1):
    """All container names a run with the given container count touches."""
    if containers > 1:
        return [f"{container}{x}" for x in range(containers)]
    return [container]


@dataclass(frozen=True)
class Task:
    """One generated operation: a kind and an object index."""

    kind: OperationKind
    index: int

    def names(self, container: str, prefix: str, containers: int = 1) -> Tuple[str, str]:
        return resolve_names(container, prefix, self.index, containers)
