"""
Simple Prometheus metrics exporter for benchmark runs.
"""

import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)


class PrometheusExporter:
    """Request counters and latency histograms served over HTTP."""

    def __init__(self, port: int = 9100, registry: Optional[CollectorRegistry] = None):
        self.port = port
        self.server_started = False
        self.registry = registry or CollectorRegistry()

        self.requests_total = Counter(
            'swiftbench_requests_total', 'Total storage requests', ['method', 'status'],
            registry=self.registry,
        )
        self.request_duration = Histogram(
            'swiftbench_request_duration_seconds', 'Storage request duration', ['method'],
            registry=self.registry,
        )
        self.in_flight = Gauge(
            'swiftbench_requests_in_flight', 'Storage requests currently in flight',
            registry=self.registry,
        )

    def start_server(self):
        """Start the Prometheus HTTP server."""
        if not self.server_started:
            try:
                start_http_server(self.port, registry=self.registry)
                self.server_started = True
                logger.info(f"Prometheus server started on port {self.port}")
            except OSError as e:
                logger.error(f"Failed to start Prometheus server: {e}")

    def request_started(self):
        self.in_flight.inc()

    def record_request(self, method: str, status: int, duration_seconds: float):
        """Record one completed request."""
        self.in_flight.dec()
        self.requests_total.labels(method=method, status=str(status)).inc()
        self.request_duration.labels(method=method).observe(duration_seconds)
