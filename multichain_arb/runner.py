"""
Process runner: one scan loop per configured network.

Boot resolves credentials per network; a network whose configuration or
credentials are invalid is reported once and left out, the rest start.
"""

import argparse
import asyncio
import dataclasses
import logging
import sys
from typing import Dict, List, Mapping, Optional

import uvicorn
from dotenv import load_dotenv
from eth_account import Account

from . import logging_config
from .client import make_chain_client
from .config import AppConfig, NetworkConfig, load_config, resolve_credentials
from .exceptions import ConfigurationError
from .health import create_app
from .metrics import ScannerMetrics
from .rotator import EndpointRotator
from .scanner import NetworkScanner
from .strike import StrikeExecutor
from .utils import get_logger

logger = get_logger(__name__)


def build_scanner(
    network: NetworkConfig,
    metrics: Optional[ScannerMetrics] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> NetworkScanner:
    """
    Wire rotator, executor and scan loop for one network.

    Raises:
        ConfigurationError: If credentials are missing or unusable
    """
    credentials = resolve_credentials(network, environ)

    account = None
    if credentials.private_key:
        try:
            account = Account.from_key(credentials.private_key)
        except ValueError as e:
            raise ConfigurationError(
                f"[{network.name}] Private key in {network.private_key_env} is invalid",
                network=network.name,
            ) from e

    def client_factory(url: str, chain_id: int):
        return make_chain_client(url, chain_id, timeout=network.call_timeout_sec)

    rotator = EndpointRotator(
        list(network.rpc_urls),
        network.chain_id,
        factory=client_factory,
        network=network.name,
    )
    executor = StrikeExecutor(
        lambda: rotator.client,
        account=account,
        executor_address=credentials.executor_address,
        dry_run=network.dry_run,
        gas_limit=network.gas_limit,
        receipt_timeout=network.receipt_timeout_sec,
        network=network.name,
    )
    return NetworkScanner(
        network,
        rotator,
        executor,
        wallet_address=account.address if account is not None else None,
        metrics=metrics,
    )


class ScannerRunner:
    """
    Owns the per-network scanners and the optional liveness server.

    Args:
        app_config: Parsed configuration
        metrics: Metrics shared by every scanner and the /metrics endpoint
        health_port: Serve /health and /metrics on this port when set
        environ: Environment used for credential lookup (os.environ by default)
    """

    def __init__(
        self,
        app_config: AppConfig,
        metrics: Optional[ScannerMetrics] = None,
        health_port: Optional[int] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.app_config = app_config
        self.metrics = metrics or ScannerMetrics()
        self.health_port = health_port
        self.environ = environ
        self.scanners: Dict[str, NetworkScanner] = {}
        self.failed: Dict[str, ConfigurationError] = {}

    def build(self) -> Dict[str, NetworkScanner]:
        for name, network in self.app_config.networks.items():
            try:
                self.scanners[name] = build_scanner(network, self.metrics, self.environ)
            except ConfigurationError as e:
                self.failed[name] = e
                logger.error(f"[{name}] ❌ Not starting: {e}")
                continue
            mode = "DRY RUN" if network.dry_run else "LIVE"
            logger.info(f"[{name}] ✓ Scanner ready (chain {network.chain_id}, {mode})")
        return self.scanners

    def stop(self) -> None:
        for scanner in self.scanners.values():
            scanner.stop()

    async def run(self, once: bool = False) -> None:
        """Run every scanner concurrently until they all finish or are cancelled."""
        if not self.scanners:
            self.build()

        server = None
        server_task = None
        if self.health_port and not once:
            app = create_app(self.scanners, self.metrics)
            server = uvicorn.Server(
                uvicorn.Config(
                    app, host="0.0.0.0", port=self.health_port, log_level="warning"
                )
            )
            server_task = asyncio.create_task(server.serve())
            logger.info(f"Health endpoint on http://0.0.0.0:{self.health_port}/health")

        try:
            await asyncio.gather(*(scanner.run(once=once) for scanner in self.scanners.values()))
        finally:
            if server is not None:
                server.should_exit = True
                await server_task


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Multi-chain AMM arbitrage scanner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Scan every configured network
  python3 run_scanner.py --config configs/networks.example.yaml

  # One network, single iteration, never sign
  python3 run_scanner.py --network base --once --dry-run

  # Expose /health and /metrics
  python3 run_scanner.py --health-port 8080
        """,
    )

    parser.add_argument(
        "--config",
        default="configs/networks.yaml",
        help="Path to config YAML file (default: configs/networks.yaml)",
    )
    parser.add_argument(
        "--network",
        action="append",
        default=[],
        help="Only scan this network (repeatable)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single iteration per network and exit",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Force dry-run on every network (never sign or broadcast)",
    )
    parser.add_argument(
        "--health-port",
        type=int,
        default=None,
        help="Serve /health and /metrics on this port (overrides config)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )

    return parser.parse_args(argv)


def select_networks(
    app_config: AppConfig, names: List[str], force_dry_run: bool = False
) -> AppConfig:
    """
    Apply the --network filter and --dry-run override.

    Raises:
        ConfigurationError: If a requested network is not configured
    """
    networks = dict(app_config.networks)
    if names:
        unknown = [name for name in names if name not in networks]
        if unknown:
            raise ConfigurationError(
                f"Unknown or invalid network(s): {', '.join(unknown)}. "
                f"Available: {', '.join(networks) or 'none'}"
            )
        networks = {name: networks[name] for name in names}
    if force_dry_run:
        networks = {
            name: dataclasses.replace(network, dry_run=True)
            for name, network in networks.items()
        }
    return dataclasses.replace(app_config, networks=networks)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for configuration error)
    """
    args = parse_args(argv)
    load_dotenv()
    if args.log_level == "DEBUG":
        logging_config.setup_debug()
    else:
        logging_config.setup(getattr(logging, args.log_level))

    try:
        app_config, errors = load_config(args.config)
        for name, error in errors.items():
            if not args.network or name in args.network:
                logger.error(f"[{name}] ❌ Config error: {error}")
        requested = [name for name in args.network if name not in errors]
        if args.network and not requested:
            raise ConfigurationError("None of the requested networks is valid")
        app_config = select_networks(app_config, requested, force_dry_run=args.dry_run)
    except ConfigurationError as e:
        print(f"❌ Config error: {e}", file=sys.stderr)
        return 1

    runner = ScannerRunner(
        app_config,
        health_port=args.health_port or app_config.health_port,
    )
    if not runner.build():
        print("❌ No network could be started", file=sys.stderr)
        return 1

    try:
        asyncio.run(runner.run(once=args.once))
    except KeyboardInterrupt:
        print("\n\n⏸ Stopped by user")

    return 0


if __name__ == "__main__":
    sys.exit(main())
