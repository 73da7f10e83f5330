"""
Chain client bound to a single RPC endpoint.

Wraps AsyncWeb3 so that every raw transport exception leaves this module as a
TransportError (rotate) or a RequestConstructionError (don't rotate).
"""

import asyncio
from typing import Any, Awaitable, Dict, Optional, TypeVar

import aiohttp
from web3 import AsyncWeb3, Web3
from web3.exceptions import (
    ContractLogicError,
    InvalidAddress,
    Web3Exception,
    Web3ValidationError,
)

from .exceptions import RequestConstructionError, TransportError
from .utils import get_logger, mask_url

logger = get_logger(__name__)

T = TypeVar("T")

CHAIN_NAMES = {
    1: "Ethereum Mainnet",
    8453: "Base",
    42161: "Arbitrum",
    10: "Optimism",
    137: "Polygon",
    56: "BSC",
}


def checksum(address: str) -> str:
    """Checksum an address or raise RequestConstructionError."""
    if not isinstance(address, str) or not Web3.is_address(address):
        raise RequestConstructionError(f"Invalid address: {address!r}", target=address)
    return Web3.to_checksum_address(address)


class ChainClient:
    """
    AsyncWeb3 client for one endpoint and one declared chain.

    Attributes:
        url: RPC endpoint URL
        chain_id: Chain id this client must serve
        timeout: Per-request HTTP timeout in seconds
        w3: Underlying AsyncWeb3 instance
    """

    def __init__(self, url: str, chain_id: int, timeout: float = 5.0):
        self.url = url
        self.chain_id = chain_id
        self.timeout = timeout
        self.verified = False
        self.w3 = AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(
                url, request_kwargs={"timeout": aiohttp.ClientTimeout(total=timeout)}
            )
        )

    def __repr__(self) -> str:
        return f"ChainClient({mask_url(self.url)}, chain_id={self.chain_id})"

    def _transport_error(self, exc: BaseException, reason: str = "transport") -> TransportError:
        status_code = getattr(exc, "status", None)
        if isinstance(exc, aiohttp.ClientResponseError):
            reason = "http_status"
        elif isinstance(exc, asyncio.TimeoutError):
            reason = "timeout"
        return TransportError(
            f"{mask_url(self.url)}: {type(exc).__name__}: {exc}",
            endpoint=self.url,
            status_code=status_code,
            reason=reason,
        )

    async def _guarded(self, awaitable: Awaitable[T]) -> T:
        """Await an RPC coroutine, translating its failures into the error taxonomy."""
        try:
            return await awaitable
        except (ContractLogicError, InvalidAddress, Web3ValidationError) as e:
            raise RequestConstructionError(str(e)) from e
        except (
            aiohttp.ClientError,
            asyncio.TimeoutError,
            OSError,
            Web3Exception,
            ValueError,
        ) as e:
            raise self._transport_error(e) from e

    async def verify_chain(self) -> None:
        """
        Confirm the endpoint serves the declared chain (checked once per client).

        Raises:
            TransportError: If the endpoint is unreachable or on another chain
        """
        if self.verified:
            return
        served = await self._guarded(self.w3.eth.chain_id)
        if served != self.chain_id:
            raise TransportError(
                f"{mask_url(self.url)} serves chain {served}, expected {self.chain_id}",
                endpoint=self.url,
                reason="wrong_chain",
            )
        self.verified = True
        logger.info(
            f"✓ Bound {mask_url(self.url)} "
            f"({CHAIN_NAMES.get(served, f'Chain {served}')})"
        )

    async def call(self, tx: Dict[str, Any], block: Optional[int] = None) -> bytes:
        """eth_call returning raw bytes."""
        if block is None:
            result = await self._guarded(self.w3.eth.call(tx))
        else:
            result = await self._guarded(self.w3.eth.call(tx, block))
        return bytes(result)

    async def get_balance(self, address: str) -> int:
        """Native balance of ``address`` in wei."""
        return int(await self._guarded(self.w3.eth.get_balance(checksum(address))))

    async def close(self) -> None:
        """Release the provider's HTTP session."""
        disconnect = getattr(self.w3.provider, "disconnect", None)
        if disconnect is None:
            return
        try:
            await disconnect()
        except (aiohttp.ClientError, OSError, RuntimeError) as e:
            logger.debug(f"Closing {mask_url(self.url)} failed: {e}")


def make_chain_client(url: str, chain_id: int, timeout: float = 5.0) -> ChainClient:
    """Default factory used by the rotator."""
    return ChainClient(url, chain_id, timeout)
