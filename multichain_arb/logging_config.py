"""
Logging configuration for cleaner output.

Usage:
    from multichain_arb import logging_config
    logging_config.setup()
"""

import logging
import sys


def setup(level=logging.INFO):
    """
    Configure logging for cleaner, more readable output.

    - Suppresses verbose HTTP request logs from uvicorn and web3 providers
    - Uses shorter timestamp format (HH:MM:SS instead of full datetime)
    """
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-7s | %(message)s", datefmt="%H:%M:%S"
    )
    console.setFormatter(formatter)
    root.addHandler(console)

    # Suppress noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("web3").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    # Module loggers from get_logger() carry their own handler; let root print instead
    for name, existing in logging.root.manager.loggerDict.items():
        if name.startswith("multichain_arb") and isinstance(existing, logging.Logger):
            existing.handlers.clear()
            existing.setLevel(level)

    logging.getLogger("multichain_arb").setLevel(level)


def setup_debug():
    """
    Verbose logging for debugging.
    Shows every idle pulse and provider request.
    """
    setup(level=logging.DEBUG)
    logging.getLogger("web3").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
