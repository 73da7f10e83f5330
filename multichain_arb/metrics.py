"""
Prometheus metrics for the scan loops.

Every network reports under its own ``network`` label. Metrics live on a
dedicated CollectorRegistry so several instances (and tests) never collide.
"""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    generate_latest,
)

from .types import ExecutionOutcome


class ScannerMetrics:
    """
    Scan loop metrics collection and exposure

    Provides Prometheus-compatible metrics for:
    - Iterations and their outcome
    - Transport failures and endpoint rotations
    - Failed pool readings
    - Opportunities and strikes
    """

    content_type = CONTENT_TYPE_LATEST

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        self.iterations_total = Counter(
            "arb_scan_iterations_total",
            "Scan iterations by result",
            ["network", "result"],
            registry=self.registry,
        )
        self.transport_failures_total = Counter(
            "arb_transport_failures_total",
            "Transport failures by reason",
            ["network", "reason"],
            registry=self.registry,
        )
        self.rotations_total = Counter(
            "arb_endpoint_rotations_total",
            "RPC endpoint rotations",
            ["network"],
            registry=self.registry,
        )
        self.failed_readings_total = Counter(
            "arb_failed_pool_readings_total",
            "Pool readings that reverted or could not be decoded",
            ["network"],
            registry=self.registry,
        )
        self.opportunities_total = Counter(
            "arb_opportunities_total",
            "Opportunities above the profit threshold",
            ["network", "comparison"],
            registry=self.registry,
        )
        self.strikes_total = Counter(
            "arb_strikes_total",
            "Strike submissions by outcome",
            ["network", "outcome"],
            registry=self.registry,
        )
        self.best_profit = Gauge(
            "arb_best_profit_wei",
            "Best net profit seen in the last iteration",
            ["network"],
            registry=self.registry,
        )
        self.endpoint_index = Gauge(
            "arb_endpoint_index",
            "Index of the currently bound RPC endpoint",
            ["network"],
            registry=self.registry,
        )

    def record_iteration(self, network: str, result: str) -> None:
        self.iterations_total.labels(network=network, result=result).inc()

    def record_transport_failure(self, network: str, reason: str) -> None:
        self.transport_failures_total.labels(network=network, reason=reason).inc()

    def record_rotation(self, network: str, index: int) -> None:
        self.rotations_total.labels(network=network).inc()
        self.endpoint_index.labels(network=network).set(index)

    def record_failed_readings(self, network: str, count: int) -> None:
        if count:
            self.failed_readings_total.labels(network=network).inc(count)

    def record_best_profit(self, network: str, profit: int) -> None:
        self.best_profit.labels(network=network).set(profit)

    def record_opportunity(self, network: str, comparison: str) -> None:
        self.opportunities_total.labels(network=network, comparison=comparison).inc()

    def record_strike(self, network: str, outcome: ExecutionOutcome) -> None:
        label = "success" if outcome.success else outcome.reason.value
        self.strikes_total.labels(network=network, outcome=label).inc()

    def render(self) -> bytes:
        """Prometheus text exposition of this registry."""
        return generate_latest(self.registry)
