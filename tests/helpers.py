"""
Test doubles and builders shared across the unit tests.
"""

from unittest.mock import AsyncMock, Mock

from eth_abi import encode

from multichain_arb.abi import (
    GET_RESERVES_OUTPUTS,
    MULTICALL3_ADDRESS,
    TRY_BLOCK_AND_AGGREGATE_OUTPUTS,
)
from multichain_arb.config import ComparisonConfig, LegConfig, NetworkConfig
from multichain_arb.types import PoolReading

POOL_A = "0x" + "aa" * 20
POOL_B = "0x" + "bb" * 20
POOL_C = "0x" + "cc" * 20
ROUTER_UNI = "0x" + "01" * 20
ROUTER_SUSHI = "0x" + "02" * 20
WETH = "0x" + "0e" * 20
USDC = "0x" + "0c" * 20
ENDPOINTS = (
    "https://rpc-0.example.org",
    "https://rpc-1.example.org",
    "https://rpc-2.example.org",
)

# Buy on A at 1:3, sell back on B at 3.05:1
READING_A = PoolReading(pool=POOL_A, reserve0=1_000_000, reserve1=3_000_000)
READING_B = PoolReading(pool=POOL_B, reserve0=3_050_000, reserve1=1_000_000)


def reserves_payload(reserve0: int, reserve1: int, timestamp: int = 1_700_000_000) -> bytes:
    return encode(GET_RESERVES_OUTPUTS, [reserve0, reserve1, timestamp])


def aggregate_response(entries, block_number: int = 19_000_000) -> bytes:
    """Encoded tryBlockAndAggregate return value for (success, data) entries."""
    return encode(
        TRY_BLOCK_AND_AGGREGATE_OUTPUTS, [block_number, b"\x00" * 32, list(entries)]
    )


def cross_venue_comparison(name: str = "weth-usdc") -> ComparisonConfig:
    return ComparisonConfig(
        name=name,
        kind="cross_venue",
        legs=(
            LegConfig(pool=POOL_A, zero_for_one=True, venue="uniswap"),
            LegConfig(pool=POOL_B, zero_for_one=True, venue="sushi"),
        ),
        token_in="WETH",
        token_out="USDC",
    )


def make_network(**overrides) -> NetworkConfig:
    values = dict(
        name="base",
        chain_id=8453,
        rpc_urls=ENDPOINTS,
        aggregator=MULTICALL3_ADDRESS,
        routers={"uniswap": ROUTER_UNI, "sushi": ROUTER_SUSHI},
        tokens={"WETH": WETH, "USDC": USDC},
        comparisons=(cross_venue_comparison(),),
        min_profit_wei=50,
        poll_sec=0.01,
        call_timeout_sec=1.0,
        trade_size_wei=10_000,
        min_trade_wei=0,
        dry_run=True,
    )
    values.update(overrides)
    return NetworkConfig(**values)


def fake_client(url: str, chain_id: int = 8453, balance: int = 0) -> Mock:
    client = Mock()
    client.url = url
    client.chain_id = chain_id
    client.verify_chain = AsyncMock(return_value=None)
    client.get_balance = AsyncMock(return_value=balance)
    client.call = AsyncMock()
    client.close = AsyncMock()
    return client


class FakeReader:
    """BatchReader stand-in whose read_reserves follows a script of outcomes."""

    def __init__(self, client, script):
        self.client = client
        self.script = script

    async def read_reserves(self, pools):
        outcome = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return outcome(pools)
        return [outcome[pool] for pool in pools]


