#!/usr/bin/env python3
"""
Multi-chain arbitrage scanner CLI.

Usage:
    python3 run_scanner.py --config configs/networks.yaml
    python3 run_scanner.py --config configs/networks.yaml --network base --once
    python3 run_scanner.py --dry-run --health-port 8080
"""

import sys

from multichain_arb.runner import main

if __name__ == "__main__":
    sys.exit(main())
