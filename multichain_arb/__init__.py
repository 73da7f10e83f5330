"""
Multi-chain AMM arbitrage scanner.

Watches constant-product pools on several EVM networks at once, prices
cross-venue and cyclic routes with exact integer math, and hands profitable
routes to an on-chain executor contract.
"""

from multichain_arb.version import __version__

PROJECT_NAME = "multichain-arb"
VERSION = __version__

from multichain_arb.config import AppConfig, NetworkConfig, load_config
from multichain_arb.evaluator import OpportunityEvaluator
from multichain_arb.rotator import EndpointRotator
from multichain_arb.scanner import NetworkScanner, ScanResult
from multichain_arb.strike import StrikeExecutor

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "AppConfig",
    "NetworkConfig",
    "load_config",
    "OpportunityEvaluator",
    "EndpointRotator",
    "NetworkScanner",
    "ScanResult",
    "StrikeExecutor",
]
