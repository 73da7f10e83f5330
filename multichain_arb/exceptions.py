"""
Exception hierarchy for the multi-chain arbitrage scanner.

Provides specific exception types for each failure category so the scan loop
can decide whether to rotate endpoints, skip a reading, or refuse to start.
"""

from typing import Any, Dict, Optional


class ArbitrageError(Exception):
    """Base exception for all scanner related errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(ArbitrageError):
    """Raised when configuration or credentials are missing or invalid."""

    def __init__(
        self,
        message: str,
        network: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.network = network


class RequestConstructionError(ArbitrageError):
    """
    Raised when a request cannot be built locally (e.g. malformed address).

    Never a reason to rotate endpoints: a different node would reject the
    same request.
    """

    def __init__(
        self,
        message: str,
        target: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.target = target


class TransportError(ArbitrageError):
    """Raised on connection, DNS, HTTP status, timeout or wrong-chain failures."""

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        reason: str = "transport",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status_code = status_code
        self.reason = reason


class DecodeError(ArbitrageError):
    """Raised when a single call result cannot be decoded."""

    def __init__(
        self,
        message: str,
        target: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.target = target


class ExecutionError(ArbitrageError):
    """Raised when building or submitting a strike transaction fails."""

    def __init__(
        self,
        message: str,
        network: Optional[str] = None,
        tx_hash: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.network = network
        self.tx_hash = tx_hash
