"""
Strike execution: one signed call to the on-chain arbitrage executor.

Handles:
- Calldata encoding for executeArbitrage(routerA, routerB, tokenA, tokenB, amount)
- Signing with the network's local account and raw broadcast
- Receipt wait with a bounded timeout
- Failure classification for logging

Submissions are fire-and-report: a failed strike is never retried here.
"""

import asyncio
import time
from typing import Callable, Dict, Optional

import aiohttp
from eth_abi import encode
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.exceptions import TimeExhausted, Web3Exception

from .abi import EXECUTE_ARBITRAGE_INPUTS, EXECUTE_ARBITRAGE_SELECTOR
from .client import ChainClient, checksum
from .exceptions import ExecutionError, RequestConstructionError, TransportError
from .types import ExecutionOutcome, FailureReason
from .utils import get_logger, short_address

logger = get_logger(__name__)

# Lower-cased substrings of node / revert messages, checked in order
FAILURE_PATTERNS = (
    (
        FailureReason.INSUFFICIENT_OUTPUT,
        (
            "insufficient_output_amount",
            "insufficient output",
            "slippage",
            "uniswapv2: k",
            "too little received",
        ),
    ),
    (
        FailureReason.REJECTED,
        (
            "nonce too low",
            "replacement transaction underpriced",
            "already known",
            "insufficient funds",
        ),
    ),
    (
        FailureReason.GAS,
        (
            "out of gas",
            "intrinsic gas",
            "gas required exceeds",
            "max fee per gas",
            "gas too low",
            "underpriced",
        ),
    ),
)


def classify_failure(message: str) -> FailureReason:
    """Map a node or revert message onto a FailureReason."""
    text = (message or "").lower()
    for reason, needles in FAILURE_PATTERNS:
        if any(needle in text for needle in needles):
            return reason
    if "revert" in text:
        return FailureReason.REVERTED
    return FailureReason.UNKNOWN


def encode_strike(
    router_a: str, router_b: str, token_a: str, token_b: str, amount: int
) -> bytes:
    """Calldata for executeArbitrage."""
    return EXECUTE_ARBITRAGE_SELECTOR + encode(
        EXECUTE_ARBITRAGE_INPUTS,
        [
            checksum(router_a),
            checksum(router_b),
            checksum(token_a),
            checksum(token_b),
            amount,
        ],
    )


class StrikeExecutor:
    """
    Submits strikes for one network.

    Args:
        client_provider: Returns the currently bound chain client
        account: Local signing account (None in dry-run mode)
        executor_address: Arbitrage executor contract
        dry_run: If True, log the strike but never sign or broadcast
        gas_limit: Gas limit attached to every strike
        receipt_timeout: Seconds to wait for the receipt
        network: Network name for log lines
    """

    def __init__(
        self,
        client_provider: Callable[[], ChainClient],
        account: Optional[LocalAccount] = None,
        executor_address: Optional[str] = None,
        dry_run: bool = True,
        gas_limit: int = 500_000,
        receipt_timeout: float = 60.0,
        network: str = "",
    ):
        self.client_provider = client_provider
        self.account = account
        self.executor_address = executor_address
        self.dry_run = dry_run
        self.gas_limit = gas_limit
        self.receipt_timeout = receipt_timeout
        self.network = network

        self.attempted = 0
        self.succeeded = 0

    async def _gas_price(self, client: ChainClient) -> int:
        return int(await client.w3.eth.gas_price)

    async def _build_transaction(
        self, client: ChainClient, data: bytes, value: int
    ) -> Dict:
        if self.account is None or self.executor_address is None:
            raise ExecutionError(
                "No account or executor address loaded", network=self.network
            )
        w3 = client.w3
        nonce = await w3.eth.get_transaction_count(self.account.address)
        return {
            "from": self.account.address,
            "to": checksum(self.executor_address),
            "value": value,
            "data": data,
            "gas": self.gas_limit,
            "gasPrice": await self._gas_price(client),
            "nonce": nonce,
            "chainId": client.chain_id,
        }

    async def execute(
        self,
        router_a: str,
        router_b: str,
        token_a: str,
        token_b: str,
        amount: int,
        value: int = 0,
    ) -> ExecutionOutcome:
        """
        Submit one strike and report how it ended.

        Args:
            router_a: Router to buy on
            router_b: Router to sell on
            token_a: Starting asset
            token_b: Intermediate asset
            amount: Input amount in token_a's smallest unit
            value: Native value attached to the call

        Returns:
            ExecutionOutcome; never raises for transport or chain failures
        """
        self.attempted += 1
        start_time = time.time()

        try:
            data = encode_strike(router_a, router_b, token_a, token_b, amount)
        except RequestConstructionError as e:
            return ExecutionOutcome(
                success=False, reason=FailureReason.REJECTED, detail=str(e)
            )

        if self.dry_run:
            logger.info(
                f"[{self.network}] [DRY RUN] Would strike "
                f"{short_address(router_a)} -> {short_address(router_b)} "
                f"amount={amount}"
            )
            self.succeeded += 1
            return ExecutionOutcome(success=True, detail="dry_run")

        client = self.client_provider()
        tx_hash_hex = None
        try:
            tx = await self._build_transaction(client, data, value)
            signed = self.account.sign_transaction(tx)
            tx_hash = await client.w3.eth.send_raw_transaction(signed.raw_transaction)
            tx_hash_hex = Web3.to_hex(tx_hash)
            logger.info(f"[{self.network}] Strike submitted: {tx_hash_hex}")

            receipt = await client.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.receipt_timeout
            )
        except ExecutionError as e:
            logger.error(f"[{self.network}] Strike not sent: {e}")
            return ExecutionOutcome(
                success=False, reason=FailureReason.REJECTED, detail=str(e)
            )
        except (TimeExhausted, asyncio.TimeoutError) as e:
            logger.error(f"[{self.network}] Strike receipt timed out: {e}")
            return ExecutionOutcome(
                success=False,
                tx_hash=tx_hash_hex,
                reason=FailureReason.TIMEOUT,
                detail=str(e),
            )
        except (
            Web3Exception,
            ValueError,
            aiohttp.ClientError,
            OSError,
            TransportError,
        ) as e:
            reason = classify_failure(str(e))
            logger.error(
                f"[{self.network}] Strike failed ({reason.value}) after "
                f"{(time.time() - start_time) * 1000:.0f}ms: {e}"
            )
            return ExecutionOutcome(success=False, reason=reason, detail=str(e))

        if receipt["status"] != 1:
            logger.error(f"[{self.network}] Strike reverted on-chain: {tx_hash_hex}")
            return ExecutionOutcome(
                success=False,
                tx_hash=tx_hash_hex,
                reason=FailureReason.REVERTED,
                detail="status 0",
            )

        self.succeeded += 1
        logger.info(
            f"[{self.network}] ✓ Strike mined in block {receipt['blockNumber']} "
            f"(gas {receipt['gasUsed']}, {(time.time() - start_time) * 1000:.0f}ms)"
        )
        return ExecutionOutcome(success=True, tx_hash=tx_hash_hex)
