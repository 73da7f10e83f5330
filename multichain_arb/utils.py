"""
Common helpers for the scanner: structured loggers and small formatters.
"""

import logging
from typing import Any, Dict, Optional, Union

WEI_PER_ETHER = 10**18


def get_logger(
    name: str,
    level: Union[str, int] = logging.INFO,
    extra: Optional[Dict[str, Any]] = None,
    minimal: bool = False,
) -> logging.Logger:
    """
    Get a structured logger with consistent formatting and extra context.

    Args:
        name: Logger name (typically __name__)
        level: Logging level
        extra: Additional context fields to include in all log messages
        minimal: If True, use simplified format (time + message only)

    Returns:
        Configured logger with structured output
    """
    logger = logging.getLogger(name)

    if logger.level == logging.NOTSET:
        logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()

        if minimal:
            format_str = "%(asctime)s | %(message)s"
        else:
            format_str = (
                "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | " "%(message)s"
            )

        if extra:
            extra_fields = " | ".join([f"{k}=%(extra_{k})s" for k in extra.keys()])
            format_str = format_str.replace(
                " | %(message)s", f" | {extra_fields} | %(message)s"
            )

        formatter = logging.Formatter(format_str, datefmt="%H:%M:%S")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

        if extra:
            logger = logging.LoggerAdapter(
                logger, {"extra_" + k: v for k, v in extra.items()}
            )

    return logger


def format_ether(wei: int, places: int = 6) -> str:
    """Format an integer wei amount as an ether string without float rounding."""
    sign = "-" if wei < 0 else ""
    whole, frac = divmod(abs(wei), WEI_PER_ETHER)
    frac_str = str(frac).rjust(18, "0")[:places]
    return f"{sign}{whole}.{frac_str}"


def short_address(address: str) -> str:
    """Shorten a hex address for log lines (0x1234…abcd)."""
    if not address or len(address) < 12:
        return address
    return f"{address[:6]}…{address[-4:]}"


def mask_url(url: str) -> str:
    """Hide API keys embedded in RPC URLs before logging them."""
    if "://" not in url:
        return url
    scheme, rest = url.split("://", 1)
    host = rest.split("/", 1)[0]
    return f"{scheme}://{host}/…" if "/" in rest else f"{scheme}://{host}"
