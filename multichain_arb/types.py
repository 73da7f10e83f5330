"""
Core data types for multi-chain pool scanning.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class CallResult:
    """One entry of an aggregated call: success flag plus raw return bytes."""

    success: bool
    data: bytes = b""


@dataclass(frozen=True)
class BatchResult:
    """
    Decoded aggregator response.

    Attributes:
        block_number: Block the aggregate call was executed against
        results: Per-call outcomes, same order as the request
    """

    block_number: int
    results: List[CallResult]


@dataclass(frozen=True)
class PoolReading:
    """
    Reserves of one V2 pool as read in a batch.

    Attributes:
        pool: Checksum address of the pair contract
        reserve0: Reserve of token0 (native integer units)
        reserve1: Reserve of token1 (native integer units)
        timestamp: blockTimestampLast reported by the pair
        success: False when the read reverted or could not be decoded
    """

    pool: str
    reserve0: int = 0
    reserve1: int = 0
    timestamp: int = 0
    success: bool = True

    @classmethod
    def failed(cls, pool: str) -> "PoolReading":
        return cls(pool=pool, success=False)

    @property
    def usable(self) -> bool:
        """True when the reading can be priced (succeeded, both sides non-empty)."""
        return self.success and self.reserve0 > 0 and self.reserve1 > 0

    def oriented(self, zero_for_one: bool) -> Tuple[int, int]:
        """(reserve_in, reserve_out) for a swap selling token0 when zero_for_one."""
        if zero_for_one:
            return self.reserve0, self.reserve1
        return self.reserve1, self.reserve0


@dataclass(frozen=True)
class TradeOpportunity:
    """
    Result of simulating one comparison at one trial size.

    Attributes:
        comparison: Name of the comparison set that produced it
        amount_in: Trial input (smallest unit of the starting asset)
        amount_out: Amount of the starting asset after the last hop
        amounts: Amount after every hop, starting with amount_in
        profit: amount_out - amount_in (signed)
    """

    comparison: str
    amount_in: int
    amount_out: int
    amounts: List[int] = field(default_factory=list)

    @property
    def profit(self) -> int:
        return self.amount_out - self.amount_in


class FailureReason(Enum):
    """Classification of a strike that did not land."""

    NONE = "none"
    INSUFFICIENT_OUTPUT = "insufficient_output"
    GAS = "gas"
    REVERTED = "reverted"
    REJECTED = "rejected"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ExecutionOutcome:
    """
    Result of a strike submission.

    Attributes:
        success: Transaction mined with status 1 (or dry run)
        tx_hash: Transaction hash when one was broadcast
        reason: Failure classification (NONE on success)
        detail: Raw error text for logging
    """

    success: bool
    tx_hash: Optional[str] = None
    reason: FailureReason = FailureReason.NONE
    detail: str = ""
