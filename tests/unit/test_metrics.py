"""
Unit tests for Prometheus metrics
"""

import pytest
from prometheus_client import CollectorRegistry

from multichain_arb.metrics import ScannerMetrics
from multichain_arb.types import ExecutionOutcome, FailureReason


@pytest.fixture
def metrics():
    """Create ScannerMetrics instance with test registry"""
    return ScannerMetrics(CollectorRegistry())


def value(metrics, name, **labels):
    return metrics.registry.get_sample_value(name, labels)


class TestScannerMetrics:
    def test_instances_do_not_collide(self):
        ScannerMetrics(CollectorRegistry())
        ScannerMetrics(CollectorRegistry())

    def test_iterations_by_result(self, metrics):
        metrics.record_iteration("base", "idle")
        metrics.record_iteration("base", "idle")
        metrics.record_iteration("arbitrum", "struck")

        assert value(metrics, "arb_scan_iterations_total", network="base", result="idle") == 2
        assert (
            value(metrics, "arb_scan_iterations_total", network="arbitrum", result="struck")
            == 1
        )

    def test_rotation_updates_index(self, metrics):
        metrics.record_rotation("base", 1)
        metrics.record_rotation("base", 2)

        assert value(metrics, "arb_endpoint_rotations_total", network="base") == 2
        assert value(metrics, "arb_endpoint_index", network="base") == 2

    def test_zero_failed_readings_not_recorded(self, metrics):
        metrics.record_failed_readings("base", 0)
        assert value(metrics, "arb_failed_pool_readings_total", network="base") is None

        metrics.record_failed_readings("base", 3)
        assert value(metrics, "arb_failed_pool_readings_total", network="base") == 3

    def test_strike_outcomes(self, metrics):
        metrics.record_strike("base", ExecutionOutcome(success=True))
        metrics.record_strike(
            "base", ExecutionOutcome(success=False, reason=FailureReason.GAS)
        )

        assert value(metrics, "arb_strikes_total", network="base", outcome="success") == 1
        assert value(metrics, "arb_strikes_total", network="base", outcome="gas") == 1

    def test_render(self, metrics):
        metrics.record_best_profit("base", 77469)
        assert b'arb_best_profit_wei{network="base"} 77469.0' in metrics.render()
