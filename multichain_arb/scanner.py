"""
Per-network scan loop.

Each iteration walks FETCH -> EVALUATE -> DECIDE and then sleeps a fixed
delay. A transport failure during FETCH rotates the endpoint and ends the
iteration early; the loop itself only stops when cancelled or told to stop.
"""

import asyncio
import time
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from .batch_reader import BatchReader
from .client import ChainClient
from .config import ComparisonConfig, NetworkConfig
from .evaluator import OpportunityEvaluator
from .exceptions import ConfigurationError, RequestConstructionError, TransportError
from .metrics import ScannerMetrics
from .rotator import EndpointRotator
from .strike import StrikeExecutor
from .types import PoolReading, TradeOpportunity
from .utils import format_ether, get_logger

logger = get_logger(__name__)

ReaderFactory = Callable[[ChainClient, str, float], BatchReader]


class ScanResult(Enum):
    """How a single iteration ended."""

    IDLE = "idle"
    UNFUNDED = "unfunded"
    REPORTED = "reported"
    COOLDOWN = "cooldown"
    STRUCK = "struck"
    STRIKE_FAILED = "strike_failed"
    TRANSPORT_FAILURE = "transport_failure"
    REQUEST_ERROR = "request_error"
    ERROR = "error"


class NetworkScanner:
    """
    Observation loop for one network.

    Owns the network's endpoint rotator and evaluator state; nothing here is
    shared with other networks.

    Args:
        config: Immutable network configuration
        rotator: Endpoint rotator bound to this network's RPC list
        executor: Strike executor for this network
        wallet_address: Account whose native balance sizes the trial input
        evaluator: Opportunity evaluator (built from config when omitted)
        metrics: Shared metrics sink
        reader_factory: Builds a BatchReader for the bound client
    """

    def __init__(
        self,
        config: NetworkConfig,
        rotator: EndpointRotator,
        executor: StrikeExecutor,
        wallet_address: Optional[str] = None,
        evaluator: Optional[OpportunityEvaluator] = None,
        metrics: Optional[ScannerMetrics] = None,
        reader_factory: ReaderFactory = BatchReader,
    ):
        if wallet_address is None and config.trade_size_wei is None:
            raise ConfigurationError(
                f"[{config.name}] Either a wallet (private key) or trade_size_wei "
                f"is required to size trades",
                network=config.name,
            )

        self.config = config
        self.name = config.name
        self.rotator = rotator
        self.executor = executor
        self.wallet_address = wallet_address
        self.evaluator = evaluator or OpportunityEvaluator(
            min_profit=config.min_profit_wei, fee_bps=config.fee_bps
        )
        self.metrics = metrics or ScannerMetrics()
        self.reader_factory = reader_factory
        self.pools = config.pools

        self.iterations = 0
        self.last_result: Optional[ScanResult] = None
        self.last_iteration_at: Optional[float] = None
        self._reader: Optional[BatchReader] = None
        self._cooldown_until: Dict[str, int] = {}
        self._stopped = False

    def _reader_for(self, client: ChainClient) -> BatchReader:
        if self._reader is None or self._reader.client is not client:
            self._reader = self.reader_factory(
                client, self.config.aggregator, self.config.call_timeout_sec
            )
        return self._reader

    async def _fetch_balance(self, client: ChainClient) -> Optional[int]:
        if self.wallet_address is None:
            return None
        try:
            return await asyncio.wait_for(
                client.get_balance(self.wallet_address),
                timeout=self.config.call_timeout_sec,
            )
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"Balance query timed out after {self.config.call_timeout_sec}s",
                endpoint=client.url,
                reason="timeout",
            ) from e

    async def fetch(self) -> Tuple[Optional[int], List[PoolReading]]:
        """
        Balance and batched pool state, queried together.

        Raises:
            TransportError: If either query failed at the transport level
            RequestConstructionError: If a request could not be built
        """
        client = self.rotator.client
        await client.verify_chain()
        reader = self._reader_for(client)

        results = await asyncio.gather(
            self._fetch_balance(client),
            reader.read_reserves(self.pools),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        balance, readings = results
        return balance, readings

    def trade_size(self, balance: Optional[int]) -> int:
        """Trial input: fixed size when configured, else balance minus the moat."""
        if self.config.trade_size_wei is not None:
            return self.config.trade_size_wei
        return max((balance or 0) - self.config.reserve_moat_wei, 0)

    def _cooling_down(self, comparison: ComparisonConfig) -> bool:
        return self.iterations <= self._cooldown_until.get(comparison.name, 0)

    async def _handle_fetch_failure(self, exc: Exception) -> ScanResult:
        if isinstance(exc, TransportError):
            self.metrics.record_transport_failure(self.name, exc.reason)
        retired = self.rotator.handle_failure(exc)
        if not self.rotator.is_qualifying(exc):
            return ScanResult.REQUEST_ERROR
        self.metrics.record_rotation(self.name, self.rotator.index)
        if retired is not None:
            await retired.close()
        return ScanResult.TRANSPORT_FAILURE

    async def strike(
        self, comparison: ComparisonConfig, opportunity: TradeOpportunity
    ) -> ScanResult:
        """Hand an actionable cross-venue opportunity to the executor."""
        buy_leg, sell_leg = comparison.legs
        outcome = await self.executor.execute(
            router_a=self.config.routers[buy_leg.venue],
            router_b=self.config.routers[sell_leg.venue],
            token_a=self.config.tokens[comparison.token_in],
            token_b=self.config.tokens[comparison.token_out],
            amount=opportunity.amount_in,
            value=self.config.strike_value_wei,
        )
        self.metrics.record_strike(self.name, outcome)

        if outcome.success:
            return ScanResult.STRUCK

        logger.warning(
            f"[{self.name}] Strike on {comparison.name} failed "
            f"({outcome.reason.value}): {outcome.detail}"
        )
        self._cooldown_until[comparison.name] = (
            self.iterations + self.config.strike_cooldown_iterations
        )
        return ScanResult.STRIKE_FAILED

    async def scan_once(self) -> ScanResult:
        """
        Run one FETCH -> EVALUATE -> DECIDE pass.

        Transport and request-construction failures are absorbed here;
        anything else propagates to run().
        """
        self.iterations += 1
        self.last_iteration_at = time.time()

        try:
            balance, readings = await self.fetch()
        except (TransportError, RequestConstructionError) as e:
            return await self._handle_fetch_failure(e)

        failed = sum(1 for reading in readings if not reading.success)
        self.metrics.record_failed_readings(self.name, failed)
        if failed:
            logger.debug(f"[{self.name}] {failed}/{len(readings)} pool reads failed")

        amount_in = self.trade_size(balance)
        if amount_in < self.config.min_trade_wei:
            logger.debug(
                f"[{self.name}] Trade size {format_ether(amount_in)} below minimum "
                f"{format_ether(self.config.min_trade_wei)}"
            )
            return ScanResult.UNFUNDED

        by_pool = {reading.pool: reading for reading in readings}
        priced = self.evaluator.evaluate_all(self.config.comparisons, by_pool, amount_in)
        if priced:
            best_profit = max(opportunity.profit for _, opportunity in priced)
            self.metrics.record_best_profit(self.name, best_profit)

        actionable = [
            (comparison, opportunity)
            for comparison, opportunity in priced
            if self.evaluator.is_actionable(opportunity)
        ]
        if not actionable:
            logger.debug(
                f"[{self.name}] · idle ({len(priced)}/{len(self.config.comparisons)} priced)"
            )
            return ScanResult.IDLE

        for comparison, opportunity in actionable:
            self.metrics.record_opportunity(self.name, comparison.name)
            logger.info(
                f"[{self.name}] 💰 Arb found on {comparison.name}: "
                f"net profit {format_ether(opportunity.profit)} "
                f"on {format_ether(opportunity.amount_in)} in"
            )

        candidates = [
            (comparison, opportunity)
            for comparison, opportunity in actionable
            if comparison.strikeable and not self._cooling_down(comparison)
        ]
        if not candidates:
            if any(comparison.strikeable for comparison, _ in actionable):
                logger.info(f"[{self.name}] Opportunity suppressed by strike cooldown")
                return ScanResult.COOLDOWN
            return ScanResult.REPORTED

        comparison, opportunity = max(candidates, key=lambda item: item[1].profit)
        return await self.strike(comparison, opportunity)

    def stop(self) -> None:
        """Finish the current iteration and leave run()."""
        self._stopped = True

    async def run(self, once: bool = False) -> None:
        """
        Main loop: scan, record, sleep.

        Never returns on error; cancellation closes the bound client and
        propagates.
        """
        logger.info(
            f"[{self.name}] Worker engaged: {len(self.pools)} pools, "
            f"{len(self.config.comparisons)} comparisons, "
            f"{len(self.rotator.endpoints)} endpoints"
        )
        try:
            while not self._stopped:
                try:
                    result = await self.scan_once()
                except Exception as e:
                    logger.error(
                        f"[{self.name}] Scan {self.iterations} failed: {e}", exc_info=True
                    )
                    result = ScanResult.ERROR

                self.last_result = result
                self.metrics.record_iteration(self.name, result.value)

                if once:
                    break
                await asyncio.sleep(self.config.poll_sec)
        finally:
            await self.rotator.close()
            logger.info(f"[{self.name}] Worker stopped after {self.iterations} scans")
