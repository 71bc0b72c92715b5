"""
Simple Prometheus metrics exporter for the KV benchmark client.
"""

import logging
from prometheus_client import start_http_server, CollectorRegistry, Counter, Histogram, Gauge

logger = logging.getLogger(__name__)


class ClientMetricsExporter:
    """Live request/response metrics for one client, on its own registry."""

    def __init__(self, port: int, client_id: int = 0):
        self.port = port
        self.client_id = client_id
        self.server_started = False
        self.registry = CollectorRegistry()

        # Define metrics
        self.requests_total = Counter('kvbench_requests_total', 'Total requests issued', ['kind'],
                                      registry=self.registry)
        self.responses_total = Counter('kvbench_responses_total', 'Total responses received',
                                       registry=self.registry)
        self.request_latency = Histogram('kvbench_request_latency_seconds', 'Request round-trip latency',
                                         registry=self.registry)
        self.phase = Gauge('kvbench_phase_index', 'Index of the current workload phase',
                           registry=self.registry)
        self.in_flight = Gauge('kvbench_in_flight_requests', 'Requests awaiting a response',
                               registry=self.registry)

    def start_server(self):
        """Start the Prometheus HTTP server."""
        if not self.server_started:
            try:
                start_http_server(self.port, registry=self.registry)
                self.server_started = True
                logger.info(f"Prometheus server started on port {self.port}")
            except Exception as e:
                logger.error(f"Failed to start Prometheus server: {e}")

    def record_request(self, is_write: bool):
        """Record an issued request."""
        try:
            self.requests_total.labels(kind='write' if is_write else 'read').inc()
            self.in_flight.inc()
        except Exception as e:
            logger.error(f"Failed to record request metric: {e}")

    def record_response(self, latency_ms: int):
        """Record a received response."""
        try:
            self.responses_total.inc()
            self.request_latency.observe(latency_ms / 1000.0)
            self.in_flight.dec()
        except Exception as e:
            logger.error(f"Failed to record response metric: {e}")

    def update_phase(self, phase_index: int):
        """Update current phase metric."""
        try:
            self.phase.set(phase_index)
        except Exception as e:
            logger.error(f"Failed to update phase metric: {e}")
