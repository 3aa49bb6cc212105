"""
Tests for counters, task naming and the shared random source.
"""

import asyncio
import os
import sys
import threading
import unittest

# Add the parent directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from swiftbench.common import OperationKind, RandomSource, RateCounter, Task, resolve_names
from swiftbench.common.tasks import container_names


class TestRateCounter(unittest.TestCase):
    """Test cases for RateCounter."""

    def test_counters_start_at_zero(self):
        counter = RateCounter()
        self.assertEqual(counter.snapshot(), {kind: 0 for kind in OperationKind})
        self.assertEqual(counter.total(), 0)

    def test_increment_returns_new_value(self):
        counter = RateCounter()
        self.assertEqual(counter.increment(OperationKind.PUT), 1)
        self.assertEqual(counter.increment(OperationKind.PUT, 4), 5)
        self.assertEqual(counter.get(OperationKind.PUT), 5)
        self.assertEqual(counter.get(OperationKind.GET), 0)
        self.assertEqual(counter.total(), 5)

    def test_negative_increment_rejected(self):
        counter = RateCounter()
        with self.assertRaises(ValueError):
            counter.increment(OperationKind.GET, -1)

    def test_concurrent_increments(self):
        """Increments from many threads are not lost."""
        counter = RateCounter()

        def work():
            for _ in range(1000):
                counter.increment(OperationKind.HEAD)

        threads = [threading.Thread(target=work) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        self.assertEqual(counter.get(OperationKind.HEAD), 8000)

    def test_ordered_kinds(self):
        self.assertEqual(
            [kind.value for kind in OperationKind.ordered()],
            ["DELETE", "GET", "HEAD", "POST", "PUT"],
        )


class TestNaming(unittest.TestCase):
    """Test cases for container and object name resolution."""

    def test_single_container(self):
        self.assertEqual(resolve_names("bench", "bench-", 7), ("bench", "bench-7"))
        self.assertEqual(resolve_names("bench", "bench-", 7, containers=1), ("bench", "bench-7"))

    def test_multiple_containers(self):
        self.assertEqual(resolve_names("bench", "obj", 7, containers=3), ("bench1", "obj7"))
        self.assertEqual(resolve_names("bench", "obj", 9, containers=3), ("bench0", "obj9"))

    def test_resolution_is_pure(self):
        first = resolve_names("c", "p", 12345, 10)
        second = resolve_names("c", "p", 12345, 10)
        self.assertEqual(first, second)

    def test_task_names(self):
        task = Task(OperationKind.GET, 4)
        self.assertEqual(task.names("bench", "bench-", 2), ("bench0", "bench-4"))

    def test_container_names(self):
        self.assertEqual(container_names("bench"), ["bench"])
        self.assertEqual(container_names("bench", 3), ["bench0", "bench1", "bench2"])


class TestRandomSource(unittest.TestCase):
    """Test cases for RandomSource."""

    def test_size_between(self):
        source = RandomSource(seed=1)
        sizes = [source.size_between(100, 200) for _ in range(500)]
        self.assertTrue(all(100 <= size < 200 for size in sizes))
        self.assertEqual(source.size_between(100, 100), 100)
        self.assertEqual(source.size_between(100, 0), 100)

    def test_read_length(self):
        source = RandomSource(seed=1)
        self.assertEqual(len(source.read(1000)), 1000)
        self.assertEqual(source.read(0), b"")

    def test_body_streams_exact_length(self):
        source = RandomSource(seed=2)

        async def collect():
            return [chunk async for chunk in source.body(10000, chunk_size=4096)]

        chunks = asyncio.run(collect())
        self.assertEqual([len(chunk) for chunk in chunks], [4096, 4096, 1808])


if __name__ == '__main__':
    unittest.main()
