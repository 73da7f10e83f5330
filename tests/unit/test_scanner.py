"""
Unit tests for the per-network scan loop.

Tests cover:
- FETCH -> EVALUATE -> DECIDE on the two-venue scenario
- Rotation on transport failures and none on request errors
- Trade sizing from balance and moat
- Strike cooldown after a failed strike
- Loop survival and clean cancellation
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
from prometheus_client import CollectorRegistry

from multichain_arb.config import ComparisonConfig, LegConfig
from multichain_arb.exceptions import (
    ConfigurationError,
    RequestConstructionError,
    TransportError,
)
from multichain_arb.metrics import ScannerMetrics
from multichain_arb.rotator import EndpointRotator
from multichain_arb.scanner import NetworkScanner, ScanResult
from multichain_arb.types import ExecutionOutcome, FailureReason, PoolReading
from tests.helpers import (
    ENDPOINTS,
    POOL_A,
    POOL_B,
    POOL_C,
    READING_A,
    READING_B,
    ROUTER_SUSHI,
    ROUTER_UNI,
    USDC,
    WETH,
    FakeReader,
    fake_client,
    make_network,
)

WALLET = "0x" + "77" * 20
GOOD_READINGS = {POOL_A: READING_A, POOL_B: READING_B}


def make_executor(outcome=None):
    executor = Mock()
    executor.execute = AsyncMock(return_value=outcome or ExecutionOutcome(success=True))
    executor.attempted = 0
    executor.succeeded = 0
    return executor


def make_scanner(network=None, script=None, outcome=None, wallet=None, balance=0):
    network = network or make_network()
    clients = []

    def factory(url, chain_id):
        client = fake_client(url, chain_id, balance=balance)
        clients.append(client)
        return client

    rotator = EndpointRotator(list(network.rpc_urls), network.chain_id, factory, "base")
    script = script if script is not None else [GOOD_READINGS]
    scanner = NetworkScanner(
        network,
        rotator,
        make_executor(outcome),
        wallet_address=wallet,
        metrics=ScannerMetrics(CollectorRegistry()),
        reader_factory=lambda client, aggregator, timeout: FakeReader(client, script),
    )
    return scanner, clients


def sample(scanner, name, **labels):
    return scanner.metrics.registry.get_sample_value(name, labels)


class TestScanOnce:
    """Single iterations."""

    @pytest.mark.asyncio
    async def test_profitable_route_is_struck(self):
        scanner, _ = make_scanner()

        result = await scanner.scan_once()

        assert result == ScanResult.STRUCK
        scanner.executor.execute.assert_awaited_once_with(
            router_a=ROUTER_UNI,
            router_b=ROUTER_SUSHI,
            token_a=WETH,
            token_b=USDC,
            amount=10_000,
            value=0,
        )
        assert sample(scanner, "arb_best_profit_wei", network="base") == 77469
        assert (
            sample(scanner, "arb_opportunities_total", network="base", comparison="weth-usdc")
            == 1
        )

    @pytest.mark.asyncio
    async def test_high_threshold_stays_idle(self):
        scanner, _ = make_scanner(make_network(min_profit_wei=1_000_000))

        assert await scanner.scan_once() == ScanResult.IDLE
        scanner.executor.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_pool_read_means_no_strike(self):
        readings = {POOL_A: READING_A, POOL_B: PoolReading.failed(POOL_B)}
        scanner, _ = make_scanner(script=[readings])

        assert await scanner.scan_once() == ScanResult.IDLE
        scanner.executor.execute.assert_not_awaited()
        assert sample(scanner, "arb_failed_pool_readings_total", network="base") == 1

    @pytest.mark.asyncio
    async def test_chain_is_verified_on_every_fetch(self):
        scanner, clients = make_scanner()
        await scanner.scan_once()
        clients[0].verify_chain.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cycle_is_reported_not_struck(self):
        cycle = ComparisonConfig(
            name="tri",
            kind="cycle",
            legs=(
                LegConfig(pool=POOL_A, zero_for_one=True),
                LegConfig(pool=POOL_B, zero_for_one=False),
            ),
        )
        scanner, _ = make_scanner(make_network(comparisons=(cycle,)))

        assert await scanner.scan_once() == ScanResult.REPORTED
        scanner.executor.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_strike_value_is_forwarded(self):
        scanner, _ = make_scanner(make_network(strike_value_wei=123))
        await scanner.scan_once()
        assert scanner.executor.execute.await_args.kwargs["value"] == 123


class TestFetchFailures:
    """Transport failures rotate; request errors do not."""

    @pytest.mark.asyncio
    async def test_transport_failure_rotates_and_closes_retired_client(self):
        scanner, clients = make_scanner(
            script=[TransportError("HTTP 429", reason="http_status"), GOOD_READINGS]
        )

        assert await scanner.scan_once() == ScanResult.TRANSPORT_FAILURE
        assert scanner.rotator.index == 1
        assert scanner.rotator.endpoint == ENDPOINTS[1]
        clients[0].close.assert_awaited_once()
        assert sample(scanner, "arb_endpoint_rotations_total", network="base") == 1
        assert (
            sample(scanner, "arb_transport_failures_total", network="base", reason="http_status")
            == 1
        )

        # next iteration runs against the new endpoint
        assert await scanner.scan_once() == ScanResult.STRUCK
        assert scanner.rotator.client is clients[1]

    @pytest.mark.asyncio
    async def test_repeated_failures_wrap_around(self):
        scanner, _ = make_scanner(script=[TransportError("down")] * 3 + [GOOD_READINGS])

        for _ in range(3):
            await scanner.scan_once()

        assert scanner.rotator.index == 0
        assert scanner.rotator.rotations == 3

    @pytest.mark.asyncio
    async def test_wrong_chain_rotates(self):
        scanner, clients = make_scanner()
        scanner.rotator.client.verify_chain.side_effect = TransportError(
            "wrong chain", reason="wrong_chain"
        )

        assert await scanner.scan_once() == ScanResult.TRANSPORT_FAILURE
        assert scanner.rotator.index == 1

    @pytest.mark.asyncio
    async def test_request_error_keeps_endpoint(self):
        scanner, clients = make_scanner(
            script=[RequestConstructionError("bad address"), GOOD_READINGS]
        )

        assert await scanner.scan_once() == ScanResult.REQUEST_ERROR
        assert scanner.rotator.index == 0
        clients[0].close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_balance_failure_rotates(self):
        scanner, clients = make_scanner(
            make_network(trade_size_wei=None), wallet=WALLET, balance=10**18
        )
        scanner.rotator.client.get_balance.side_effect = TransportError("reset")

        assert await scanner.scan_once() == ScanResult.TRANSPORT_FAILURE
        assert scanner.rotator.index == 1


class TestTradeSizing:
    """Balance minus moat, bounded below by the minimum trade."""

    def test_fixed_size_wins(self):
        scanner, _ = make_scanner(make_network(trade_size_wei=5_000), wallet=WALLET)
        assert scanner.trade_size(10**18) == 5_000

    def test_balance_minus_moat(self):
        scanner, _ = make_scanner(make_network(trade_size_wei=None), wallet=WALLET)
        assert scanner.trade_size(10**17) == 10**17 - 10**16
        assert scanner.trade_size(10**15) == 0

    @pytest.mark.asyncio
    async def test_balance_sizes_the_trial(self):
        network = make_network(trade_size_wei=None, min_trade_wei=10**15)
        scanner, clients = make_scanner(network, wallet=WALLET, balance=11 * 10**15)

        # a 0.001 ether trial against these shallow pools loses money
        assert await scanner.scan_once() == ScanResult.IDLE
        clients[0].get_balance.assert_awaited_once_with(WALLET)

    @pytest.mark.asyncio
    async def test_thin_balance_is_unfunded(self):
        network = make_network(trade_size_wei=None, min_trade_wei=10**15)
        scanner, _ = make_scanner(network, wallet=WALLET, balance=10**16 + 10**14)

        assert await scanner.scan_once() == ScanResult.UNFUNDED
        scanner.executor.execute.assert_not_awaited()

    def test_no_wallet_and_no_fixed_size_rejected(self):
        with pytest.raises(ConfigurationError):
            make_scanner(make_network(trade_size_wei=None))


class TestCooldown:
    """A failed strike benches its comparison for the configured iterations."""

    @pytest.mark.asyncio
    async def test_failed_strike_cools_down_one_iteration(self):
        failure = ExecutionOutcome(
            success=False, reason=FailureReason.INSUFFICIENT_OUTPUT, detail="K"
        )
        scanner, _ = make_scanner(outcome=failure)

        results = [await scanner.scan_once() for _ in range(3)]

        assert results == [
            ScanResult.STRIKE_FAILED,
            ScanResult.COOLDOWN,
            ScanResult.STRIKE_FAILED,
        ]
        assert scanner.executor.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_zero_cooldown_retries_immediately(self):
        failure = ExecutionOutcome(success=False, reason=FailureReason.REVERTED)
        scanner, _ = make_scanner(
            make_network(strike_cooldown_iterations=0), outcome=failure
        )

        for _ in range(3):
            assert await scanner.scan_once() == ScanResult.STRIKE_FAILED
        assert scanner.executor.execute.await_count == 3

    @pytest.mark.asyncio
    async def test_cooldown_falls_through_to_next_comparison(self):
        failure = ExecutionOutcome(success=False, reason=FailureReason.REVERTED)
        second = ComparisonConfig(
            name="weth-usdc-alt",
            kind="cross_venue",
            legs=(
                LegConfig(pool=POOL_A, venue="uniswap"),
                LegConfig(pool=POOL_C, venue="sushi"),
            ),
            token_in="WETH",
            token_out="USDC",
        )
        network = make_network(comparisons=(make_network().comparisons[0], second))
        readings = dict(GOOD_READINGS)
        readings[POOL_C] = PoolReading(pool=POOL_C, reserve0=4_000_000, reserve1=1_000_000)
        scanner, _ = make_scanner(network, script=[readings], outcome=failure)

        await scanner.scan_once()
        assert await scanner.scan_once() == ScanResult.STRIKE_FAILED

        # the better route failed first; the other one is tried while it cools down
        assert scanner.executor.execute.await_count == 2
        assert set(scanner._cooldown_until) == {"weth-usdc", "weth-usdc-alt"}


class TestRunLoop:
    """Loop-level behaviour."""

    @pytest.mark.asyncio
    async def test_once_runs_single_iteration_and_closes(self):
        scanner, clients = make_scanner()

        await scanner.run(once=True)

        assert scanner.iterations == 1
        assert scanner.last_result == ScanResult.STRUCK
        clients[0].close.assert_awaited_once()
        assert (
            sample(scanner, "arb_scan_iterations_total", network="base", result="struck") == 1
        )

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_stop_the_loop(self):
        scanner, _ = make_scanner()
        calls = []

        def flaky(pools):
            calls.append(len(calls))
            if len(calls) == 1:
                raise RuntimeError("unexpected")
            if len(calls) == 3:
                scanner.stop()
            return [GOOD_READINGS[pool] for pool in pools]

        scanner.reader_factory = lambda client, aggregator, timeout: FakeReader(client, [flaky])

        await asyncio.wait_for(scanner.run(), timeout=5)

        assert scanner.iterations == 3
        assert sample(scanner, "arb_scan_iterations_total", network="base", result="error") == 1
        assert scanner.last_result == ScanResult.STRUCK

    @pytest.mark.asyncio
    async def test_cancellation_propagates_and_closes_client(self):
        scanner, clients = make_scanner(make_network(poll_sec=10))

        task = asyncio.create_task(scanner.run())
        while scanner.iterations == 0:
            await asyncio.sleep(0)
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        clients[0].close.assert_awaited_once()
