"""
Per-network RPC endpoint failover.

The rotator is always bound to exactly one endpoint. A qualifying (transport)
failure moves it to the next endpoint in the list, wrapping around after the
last one; anything else leaves it where it is.
"""

from typing import Callable, List, Optional

from .client import ChainClient, make_chain_client
from .exceptions import ConfigurationError, TransportError
from .utils import get_logger, mask_url

logger = get_logger(__name__)

ClientFactory = Callable[[str, int], ChainClient]


class EndpointRotator:
    """
    Ordered endpoint list plus the client bound to the current one.

    Args:
        endpoints: Candidate RPC URLs in priority order
        chain_id: Chain every endpoint must serve
        factory: Builds a fresh client for (url, chain_id)
        network: Network name for log lines
    """

    def __init__(
        self,
        endpoints: List[str],
        chain_id: int,
        factory: Optional[ClientFactory] = None,
        network: str = "",
    ):
        if not endpoints:
            raise ConfigurationError(
                "At least one RPC endpoint is required", network=network
            )
        self.endpoints = list(endpoints)
        self.chain_id = chain_id
        self.factory = factory or make_chain_client
        self.network = network
        self.index = 0
        self.rotations = 0
        self._client: Optional[ChainClient] = None

    @property
    def endpoint(self) -> str:
        return self.endpoints[self.index]

    @property
    def client(self) -> ChainClient:
        """Client bound to the current endpoint (built on first use)."""
        if self._client is None:
            self._client = self.factory(self.endpoint, self.chain_id)
        return self._client

    @staticmethod
    def is_qualifying(exc: BaseException) -> bool:
        """Transport-level failures justify a rotation; nothing else does."""
        return isinstance(exc, TransportError)

    def rotate(self) -> Optional[ChainClient]:
        """
        Bind the next endpoint (mod N) with a freshly built client.

        Returns:
            The retired client, if one had been built, so the caller can close it
        """
        retired = self._client
        self.index = (self.index + 1) % len(self.endpoints)
        self.rotations += 1
        self._client = self.factory(self.endpoint, self.chain_id)
        logger.warning(
            f"[{self.network}] 🔄 Switching to RPC "
            f"[{self.index + 1}/{len(self.endpoints)}] {mask_url(self.endpoint)}"
        )
        return retired

    async def close(self) -> None:
        """Close the bound client, if one was built."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    def handle_failure(self, exc: BaseException) -> Optional[ChainClient]:
        """
        Rotate on a qualifying failure, ignore anything else.

        Returns:
            The retired client when a rotation happened, else None
        """
        if not self.is_qualifying(exc):
            logger.warning(
                f"[{self.network}] Non-transport failure, keeping "
                f"{mask_url(self.endpoint)}: {exc}"
            )
            return None
        logger.warning(f"[{self.network}] Transport failure: {exc}")
        return self.rotate()
