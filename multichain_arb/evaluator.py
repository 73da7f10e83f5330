"""
Opportunity evaluation over decoded pool readings.

Two shapes are supported:

- cross_venue: buy the intermediate asset on venue A, sell it back on venue B.
  The sell leg trades the pool in the opposite direction of the buy leg.
- cycle: push the starting asset through every leg in order and back.

A comparison is only priced when every pool it needs was read successfully
and has non-empty reserves; otherwise it yields no opportunity.
"""

from typing import Dict, Iterable, List, Optional, Tuple

from .config import ComparisonConfig
from .swap_math import DEFAULT_FEE_BPS, path_amounts
from .types import PoolReading, TradeOpportunity
from .utils import get_logger

logger = get_logger(__name__)


class OpportunityEvaluator:
    """
    Prices comparisons with exact V2 integer math.

    Args:
        min_profit: Net profit must strictly exceed this to be actionable
        fee_bps: Pool fee in basis points
    """

    def __init__(self, min_profit: int = 0, fee_bps: int = DEFAULT_FEE_BPS):
        self.min_profit = min_profit
        self.fee_bps = fee_bps

    def _hops(
        self, comparison: ComparisonConfig, readings: Dict[str, PoolReading]
    ) -> Optional[List[Tuple[int, int]]]:
        needed = [readings.get(pool) for pool in comparison.pools]
        if any(reading is None or not reading.usable for reading in needed):
            return None

        if comparison.kind == "cross_venue":
            if len(needed) != 2:
                return None
            buy_leg, sell_leg = comparison.legs
            return [
                needed[0].oriented(buy_leg.zero_for_one),
                # selling the acquired asset back is the mirror of buying it
                needed[1].oriented(not sell_leg.zero_for_one),
            ]

        if len(needed) < 2:
            return None
        return [
            reading.oriented(leg.zero_for_one)
            for reading, leg in zip(needed, comparison.legs)
        ]

    def evaluate(
        self,
        comparison: ComparisonConfig,
        readings: Dict[str, PoolReading],
        amount_in: int,
    ) -> Optional[TradeOpportunity]:
        """
        Simulate ``amount_in`` through a comparison.

        Args:
            comparison: Comparison set to price
            readings: Pool address -> latest reading
            amount_in: Trial input in the starting asset's smallest unit

        Returns:
            TradeOpportunity (profit may be negative), or None when the
            readings are insufficient or the input is not positive
        """
        if amount_in <= 0:
            return None
        hops = self._hops(comparison, readings)
        if hops is None:
            return None

        amounts = path_amounts(amount_in, hops, self.fee_bps)
        return TradeOpportunity(
            comparison=comparison.name,
            amount_in=amount_in,
            amount_out=amounts[-1],
            amounts=amounts,
        )

    def is_actionable(self, opportunity: Optional[TradeOpportunity]) -> bool:
        """Profit strictly above the configured minimum."""
        return opportunity is not None and opportunity.profit > self.min_profit

    def evaluate_all(
        self,
        comparisons: Iterable[ComparisonConfig],
        readings: Dict[str, PoolReading],
        amount_in: int,
    ) -> List[Tuple[ComparisonConfig, TradeOpportunity]]:
        """Every comparison that could be priced, in configuration order."""
        priced = []
        for comparison in comparisons:
            opportunity = self.evaluate(comparison, readings, amount_in)
            if opportunity is None:
                logger.debug(f"{comparison.name}: insufficient readings")
                continue
            priced.append((comparison, opportunity))
        return priced

    def best_opportunity(
        self,
        comparisons: Iterable[ComparisonConfig],
        readings: Dict[str, PoolReading],
        amount_in: int,
    ) -> Optional[Tuple[ComparisonConfig, TradeOpportunity]]:
        """Most profitable actionable comparison, or None."""
        actionable = [
            (comparison, opportunity)
            for comparison, opportunity in self.evaluate_all(
                comparisons, readings, amount_in
            )
            if self.is_actionable(opportunity)
        ]
        if not actionable:
            return None
        return max(actionable, key=lambda item: item[1].profit)
