"""
Batched pool reads through Multicall3.

Every read request of an iteration travels in a single tryBlockAndAggregate
eth_call. The aggregator is told not to require success, so a reverting pool
only flips its own entry to success=False.
"""

import asyncio
from typing import List, Sequence, Tuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError

from .abi import (
    GET_RESERVES_OUTPUTS,
    GET_RESERVES_SELECTOR,
    TRY_BLOCK_AND_AGGREGATE_INPUTS,
    TRY_BLOCK_AND_AGGREGATE_OUTPUTS,
    TRY_BLOCK_AND_AGGREGATE_SELECTOR,
)
from .client import ChainClient, checksum
from .exceptions import DecodeError, TransportError
from .types import BatchResult, CallResult, PoolReading
from .utils import get_logger, short_address

logger = get_logger(__name__)

# getReserves() returns three 32-byte words
RESERVES_PAYLOAD_SIZE = 96


def encode_aggregate(calls: Sequence[Tuple[str, bytes]]) -> bytes:
    """Calldata for tryBlockAndAggregate(false, calls)."""
    return TRY_BLOCK_AND_AGGREGATE_SELECTOR + encode(
        TRY_BLOCK_AND_AGGREGATE_INPUTS, [False, [(t, d) for t, d in calls]]
    )


def decode_aggregate(raw: bytes) -> BatchResult:
    """Split the aggregate return envelope into per-call results."""
    block_number, _block_hash, entries = decode(TRY_BLOCK_AND_AGGREGATE_OUTPUTS, raw)
    return BatchResult(
        block_number=block_number,
        results=[CallResult(success=bool(ok), data=bytes(data)) for ok, data in entries],
    )


def decode_reserves(pool: str, result: CallResult) -> PoolReading:
    """
    Decode one getReserves() result.

    Raises:
        DecodeError: If the call failed or the payload is empty or truncated
    """
    if not result.success:
        raise DecodeError("call reverted", target=pool)
    if len(result.data) < RESERVES_PAYLOAD_SIZE:
        raise DecodeError(
            f"payload too short ({len(result.data)} bytes)", target=pool
        )
    try:
        reserve0, reserve1, timestamp = decode(GET_RESERVES_OUTPUTS, result.data)
    except (DecodingError, ValueError) as e:
        raise DecodeError(str(e), target=pool) from e
    return PoolReading(
        pool=pool, reserve0=reserve0, reserve1=reserve1, timestamp=timestamp
    )


class BatchReader:
    """
    Aggregator client for one network.

    Args:
        client: Bound chain client used for the eth_call
        aggregator: Multicall3 contract address
        timeout: Hard wall-clock limit for the whole batch, in seconds
    """

    def __init__(self, client: ChainClient, aggregator: str, timeout: float = 5.0):
        self.client = client
        self.aggregator = checksum(aggregator)
        self.timeout = timeout

    async def read_all(self, calls: Sequence[Tuple[str, bytes]]) -> BatchResult:
        """
        Execute every (target, calldata) pair in one round trip.

        Returns:
            BatchResult whose results line up one-to-one with ``calls``

        Raises:
            RequestConstructionError: If a target address is malformed
            TransportError: On transport failure, timeout or a garbled envelope
        """
        if not calls:
            return BatchResult(block_number=0, results=[])

        prepared = [(checksum(target), bytes(data)) for target, data in calls]
        tx = {"to": self.aggregator, "data": encode_aggregate(prepared)}

        try:
            raw = await asyncio.wait_for(self.client.call(tx), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"Batch of {len(prepared)} calls timed out after {self.timeout}s",
                endpoint=self.client.url,
                reason="timeout",
            ) from e

        try:
            batch = decode_aggregate(raw)
        except (DecodingError, ValueError) as e:
            raise TransportError(
                f"Malformed aggregate response: {e}",
                endpoint=self.client.url,
                reason="malformed_response",
            ) from e

        if len(batch.results) != len(prepared):
            raise TransportError(
                f"Aggregate returned {len(batch.results)} results for {len(prepared)} calls",
                endpoint=self.client.url,
                reason="malformed_response",
            )
        return batch

    async def read_reserves(self, pools: Sequence[str]) -> List[PoolReading]:
        """
        Read getReserves() for every pool in one batch.

        Always returns len(pools) readings in request order; a pool whose
        entry reverted or could not be decoded comes back unsuccessful.
        """
        batch = await self.read_all([(pool, GET_RESERVES_SELECTOR) for pool in pools])

        readings = []
        for pool, result in zip(pools, batch.results):
            try:
                readings.append(decode_reserves(pool, result))
            except DecodeError as e:
                logger.debug(f"Pool {short_address(pool)} unreadable: {e}")
                readings.append(PoolReading.failed(pool))
        return readings
