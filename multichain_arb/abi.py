"""
Contract signatures, ABI type lists and precomputed selectors.
"""

from web3 import Web3

# Multicall3 (same address on every major EVM chain)
MULTICALL3_ADDRESS = "0xcA11bde05977b3631167028862bE2a173976CA11"

TRY_BLOCK_AND_AGGREGATE_SIGNATURE = "tryBlockAndAggregate(bool,(address,bytes)[])"
TRY_BLOCK_AND_AGGREGATE_INPUTS = ["bool", "(address,bytes)[]"]
TRY_BLOCK_AND_AGGREGATE_OUTPUTS = ["uint256", "bytes32", "(bool,bytes)[]"]

# Uniswap V2 pair
GET_RESERVES_SIGNATURE = "getReserves()"
GET_RESERVES_OUTPUTS = ["uint112", "uint112", "uint32"]

# Arbitrage executor contract (two-router strike)
EXECUTE_ARBITRAGE_SIGNATURE = "executeArbitrage(address,address,address,address,uint256)"
EXECUTE_ARBITRAGE_INPUTS = ["address", "address", "address", "address", "uint256"]


def selector(signature: str) -> bytes:
    """4-byte function selector for a canonical signature."""
    return bytes(Web3.keccak(text=signature)[:4])


TRY_BLOCK_AND_AGGREGATE_SELECTOR = selector(TRY_BLOCK_AND_AGGREGATE_SIGNATURE)
GET_RESERVES_SELECTOR = selector(GET_RESERVES_SIGNATURE)
EXECUTE_ARBITRAGE_SELECTOR = selector(EXECUTE_ARBITRAGE_SIGNATURE)
