"""
Tests for the Prometheus exporter and its use by the benchmark drivers.
"""

import io
import os
import sys
import unittest
from unittest.mock import patch

from prometheus_client import CollectorRegistry

# Add the parent directory to Python path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fakes import FakeStorage
from swiftbench.algorithms import BenchmarkConfig, FixedCountBenchmark
from swiftbench.common import OperationKind
from swiftbench.observability import PrometheusExporter


class TestPrometheusExporter(unittest.TestCase):
    """Test cases for PrometheusExporter."""

    def setUp(self):
        self.registry = CollectorRegistry()
        self.exporter = PrometheusExporter(port=9999, registry=self.registry)

    def sample(self, name, labels=None):
        return self.registry.get_sample_value(name, labels or {})

    def test_record_request(self):
        self.exporter.request_started()
        self.assertEqual(self.sample('swiftbench_requests_in_flight'), 1.0)
        self.exporter.record_request("GET", 200, 0.25)

        self.assertEqual(self.sample('swiftbench_requests_in_flight'), 0.0)
        self.assertEqual(self.sample('swiftbench_requests_total', {'method': 'GET', 'status': '200'}), 1.0)
        self.assertEqual(self.sample('swiftbench_request_duration_seconds_count', {'method': 'GET'}), 1.0)
        self.assertAlmostEqual(self.sample('swiftbench_request_duration_seconds_sum', {'method': 'GET'}), 0.25)

    def test_start_server_once(self):
        with patch('swiftbench.observability.prom.start_http_server') as mock_start:
            self.exporter.start_server()
            self.exporter.start_server()
        mock_start.assert_called_once_with(9999, registry=self.registry)
        self.assertTrue(self.exporter.server_started)

    def test_start_server_failure_is_logged(self):
        with patch('swiftbench.observability.prom.start_http_server', side_effect=OSError("in use")):
            with self.assertLogs('swiftbench.observability.prom', level='ERROR'):
                self.exporter.start_server()
        self.assertFalse(self.exporter.server_started)

    def test_separate_registries(self):
        """Two exporters never collide on metric names."""
        other = PrometheusExporter(port=9998)
        other.request_started()
        other.record_request("PUT", 201, 0.1)
        self.assertIsNone(self.sample('swiftbench_requests_total', {'method': 'PUT', 'status': '201'}))


class TestDriverMetrics(unittest.IsolatedAsyncioTestCase):
    """The drivers feed every request to the exporter."""

    async def test_fixed_count_records_each_request(self):
        registry = CollectorRegistry()
        exporter = PrometheusExporter(registry=registry)
        storage = FakeStorage()
        storage.add_objects("bench", ["bench-0", "bench-1"])
        config = BenchmarkConfig(container="bench", count=3, continue_on_error=True)
        bench = FixedCountBenchmark(storage, config, OperationKind.HEAD, exporter=exporter, out=io.StringIO())

        with self.assertLogs('swiftbench.errors', level='ERROR'):
            await bench.run()

        self.assertEqual(registry.get_sample_value('swiftbench_requests_total',
                                                   {'method': 'HEAD', 'status': '200'}), 2.0)
        self.assertEqual(registry.get_sample_value('swiftbench_requests_total',
                                                   {'method': 'HEAD', 'status': '404'}), 1.0)
        self.assertEqual(registry.get_sample_value('swiftbench_requests_in_flight'), 0.0)


if __name__ == '__main__':
    unittest.main()
