"""
Tests for the mixed workload driver and its index windows.
"""

import asyncio
import io
import os
import sys
import tempfile
import unittest

import pandas as pd

# Add the parent directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fakes import FakeStorage
from swiftbench.algorithms import BenchmarkConfig, MixedBenchmark, delete_index_ready, reader_index
from swiftbench.algorithms.mixed import READER_KINDS
from swiftbench.common import OperationKind, Task
from swiftbench.configuration import MIXED_POST_META_HEADER
from swiftbench.errors import OperationError


def make_config(**overrides):
    settings = dict(container="bench", timespan="300ms", concurrency=1, size=16,
                    delete_margin=3, poll_interval=0.01, report_interval=60.0)
    settings.update(overrides)
    return BenchmarkConfig(**settings)


def object_index(obj):
    return int(obj[len("bench-"):])


class TestIndexWindows(unittest.TestCase):
    """Test cases for the DELETE and reader index windows."""

    def test_delete_waits_for_margin(self):
        self.assertFalse(delete_index_ready(0, 0, 0))
        self.assertTrue(delete_index_ready(0, 1, 0))
        self.assertFalse(delete_index_ready(0, 9, 10))
        self.assertTrue(delete_index_ready(0, 10, 10))
        self.assertTrue(delete_index_ready(5, 15, 10))
        self.assertFalse(delete_index_ready(6, 15, 10))

    def test_delete_never_passes_completed_puts(self):
        for puts in range(0, 20):
            for index in range(0, 25):
                if delete_index_ready(index, puts, 0):
                    self.assertLess(index, puts)

    def test_reader_inside_window(self):
        self.assertEqual(reader_index(5, 0, 20, 1, 2), (5, True))

    def test_reader_clamped_up_to_lower_bound(self):
        # lower bound is deletes + 2 * delete workers
        self.assertEqual(reader_index(0, 3, 20, 1, 2), (5, True))

    def test_reader_wraps_past_upper_bound(self):
        # upper bound is puts - 2 * put workers
        self.assertEqual(reader_index(17, 0, 20, 1, 2), (2, True))
        self.assertEqual(reader_index(16, 0, 20, 1, 2), (16, True))

    def test_reader_not_ready_when_window_empty(self):
        cursor, ready = reader_index(0, 0, 3, 1, 2)
        self.assertFalse(ready)
        self.assertEqual(cursor, 2)

    def test_reader_without_put_workers_keeps_margin(self):
        self.assertEqual(reader_index(0, 0, 2, 0, 0), (0, True))
        self.assertFalse(reader_index(0, 0, 1, 0, 0)[1])


class TestMixedBenchmark(unittest.IsolatedAsyncioTestCase):
    """Test cases for MixedBenchmark."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.storage = FakeStorage(delay=0.001)
        self.out = io.StringIO()
        self.violations = []

    def tearDown(self):
        self.tmp.cleanup()

    def watch(self, bench):
        """Record reader dispatches outside [completed DELETEs, completed PUTs)
        and object requests at or past the completed PUT count."""

        def on_call(method, container, obj):
            if not obj or method == "PUT":
                return
            puts = bench.counter.get(OperationKind.PUT)
            if object_index(obj) >= puts:
                self.violations.append((method, obj, puts))

        choose = bench.next_index

        def next_index(kind, cursor):
            cursor, ready = choose(kind, cursor)
            if ready and kind in READER_KINDS:
                deletes = bench.counter.get(OperationKind.DELETE)
                puts = bench.counter.get(OperationKind.PUT)
                if not deletes <= cursor < puts:
                    self.violations.append((kind.value, cursor, deletes, puts))
            return cursor, ready

        self.storage.on_call = on_call
        bench.next_index = next_index

    async def test_put_and_delete_only(self):
        config = make_config(ratios="1,0,0,0,1")
        bench = MixedBenchmark(self.storage, config, out=self.out)
        self.watch(bench)

        result = await asyncio.wait_for(bench.run(), timeout=10)

        self.assertEqual(self.violations, [])
        self.assertGreater(result.counts[OperationKind.PUT], 0)
        for kind in (OperationKind.GET, OperationKind.HEAD, OperationKind.POST):
            self.assertEqual(result.counts[kind], 0)
        self.assertEqual(self.storage.calls_for("GET"), [])
        deleted = [object_index(call[2]) for call in self.storage.calls_for("DELETE")]
        self.assertEqual(sorted(deleted), list(range(len(deleted))))

    async def test_default_ratios(self):
        """Every kind runs, readers stay below completed PUTs and the run ends on time."""
        csv_path = os.path.join(self.tmp.name, "mixed.csv")
        csvot_path = os.path.join(self.tmp.name, "mixed-throughput.csv")
        config = make_config(continue_on_error=True, csv_path=csv_path, csvot_path=csvot_path)
        bench = MixedBenchmark(self.storage, config, out=self.out)
        self.watch(bench)

        result = await asyncio.wait_for(bench.run(), timeout=10)

        self.assertEqual(self.violations, [])
        self.assertGreater(result.total, 0)
        self.assertEqual(result.total, sum(result.counts.values()))

        for (method, container, obj), headers in zip(self.storage.calls, self.storage.headers_seen):
            if method == "POST" and obj:
                self.assertEqual(headers[MIXED_POST_META_HEADER], str(object_index(obj)))

        data = pd.read_csv(csv_path)
        self.assertEqual(list(data.columns)[:3], ["completion_time_unix_nano", "method", "object_name"])
        self.assertEqual(len(data), result.total)
        self.assertTrue(set(data["method"]) <= {"DELETE", "GET", "HEAD", "POST", "PUT"})

        throughput = pd.read_csv(csvot_path)
        self.assertEqual(list(throughput.columns), ["time_unix_nano", "DELETE", "GET", "HEAD", "POST", "PUT"])
        self.assertEqual(throughput["PUT"].sum(), result.counts[OperationKind.PUT])

        output = self.out.getvalue()
        self.assertIn("Bench-Mixed for 300ms, each object is 16 bytes, into 1 container, at 1 concurrency...",
                      output)
        self.assertIn("requests per second.", output)

    async def test_default_ratios_at_higher_concurrency(self):
        config = make_config(concurrency=6, delete_margin=0, continue_on_error=True)
        bench = MixedBenchmark(self.storage, config, out=self.out)
        self.watch(bench)

        result = await asyncio.wait_for(bench.run(), timeout=10)

        self.assertEqual(self.violations, [])
        self.assertGreater(result.counts[OperationKind.DELETE], 0)
        self.assertGreater(sum(result.counts[kind] for kind in READER_KINDS), 0)
        self.assertIn("at 6 concurrency...", self.out.getvalue())

    async def test_unanswered_delete_counts_toward_reader_floor(self):
        self.storage.add_objects("bench", ["bench-0"])
        self.storage.broken.add(("DELETE", "bench", "bench-0"))
        bench = MixedBenchmark(self.storage, make_config(continue_on_error=True), out=self.out)

        with self.assertLogs('swiftbench.errors', level='ERROR'):
            await bench.perform(Task(OperationKind.DELETE, 0))

        self.assertEqual(bench.counter.get(OperationKind.DELETE), 0)
        self.assertEqual(bench.unanswered.get(OperationKind.DELETE), 1)
        bench.counter.increment(OperationKind.PUT, 100)
        # one unanswered DELETE plus 2 * 1 delete worker
        self.assertEqual(bench.next_index(OperationKind.GET, 0), (3, True))

    async def test_multiple_containers(self):
        config = make_config(containers=3, ratios="0,0,0,0,1")
        bench = MixedBenchmark(self.storage, config, out=self.out)

        await asyncio.wait_for(bench.run(), timeout=10)

        self.assertEqual(sorted(self.storage.containers), ["bench0", "bench1", "bench2"])
        self.assertIn("distributed across 3 containers", self.out.getvalue())

    async def test_failure_stops_the_run(self):
        self.storage.fail[("PUT", "bench", "bench-2")] = 500
        config = make_config(timespan="10s", ratios="0,0,0,0,1")
        bench = MixedBenchmark(self.storage, config, out=self.out)

        with self.assertRaises(OperationError) as ctx:
            await asyncio.wait_for(bench.run(), timeout=5)

        self.assertEqual(ctx.exception.status, 500)
        self.assertTrue(bench.done.is_set())

    async def test_progress_report(self):
        config = make_config(timespan="200ms", ratios="0,0,0,0,1", report_interval=0.05)
        bench = MixedBenchmark(self.storage, config, out=self.out)

        await asyncio.wait_for(bench.run(), timeout=10)

        self.assertIn("requests so far", self.out.getvalue())


if __name__ == '__main__':
    unittest.main()
