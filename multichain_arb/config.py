"""
Configuration loading and validation for the multi-chain scanner.

A single YAML file describes every network. Values under ``defaults`` apply to
each network unless the network overrides them. Parsed configs are frozen and
handed to each network's loop explicitly.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml
from web3 import Web3

from .abi import MULTICALL3_ADDRESS
from .exceptions import ConfigurationError

DEFAULT_POLL_SEC = 2.0
DEFAULT_CALL_TIMEOUT_SEC = 5.0

DEFAULTS: Dict[str, Any] = {
    "aggregator": MULTICALL3_ADDRESS,
    "poll_sec": DEFAULT_POLL_SEC,
    "call_timeout_sec": DEFAULT_CALL_TIMEOUT_SEC,
    "min_profit_wei": 0,
    "reserve_moat_wei": "0.01 ether",
    "min_trade_wei": "0.001 ether",
    "trade_size_wei": None,
    "strike_cooldown_iterations": 1,
    "strike_value_wei": 0,
    "fee_bps": 30,
    "gas_limit": 500_000,
    "receipt_timeout_sec": 60.0,
    "dry_run": True,
    "private_key_env": "PRIVATE_KEY",
    "executor_address_env": "EXECUTOR_ADDRESS",
}

COMPARISON_KINDS = ("cross_venue", "cycle")


@dataclass(frozen=True)
class LegConfig:
    """One hop: the pool to trade in and which side is sold."""

    pool: str
    zero_for_one: bool = True
    venue: Optional[str] = None


@dataclass(frozen=True)
class ComparisonConfig:
    """
    A set of pools compared against each other.

    Attributes:
        name: Label used in logs and cooldown bookkeeping
        kind: "cross_venue" (buy on legs[0], sell on legs[1]) or "cycle"
        legs: Ordered hops
        token_in: Symbol of the starting asset
        token_out: Symbol of the intermediate asset (cross_venue)
    """

    name: str
    kind: str
    legs: Tuple[LegConfig, ...]
    token_in: Optional[str] = None
    token_out: Optional[str] = None

    @property
    def pools(self) -> List[str]:
        return [leg.pool for leg in self.legs]

    @property
    def strikeable(self) -> bool:
        """The executor contract only supports two-router strikes."""
        return self.kind == "cross_venue"


@dataclass(frozen=True)
class NetworkConfig:
    """
    Immutable per-network settings.

    Attributes:
        name: Network label (e.g. "base")
        chain_id: Declared chain id every endpoint must serve
        rpc_urls: Candidate endpoints in priority order
        aggregator: Multicall3 address
        routers: Venue name -> router address
        tokens: Symbol -> token address
        comparisons: Pool comparison sets to evaluate each iteration
        min_profit_wei: Profit must strictly exceed this to strike
        poll_sec: Fixed delay between iterations
        call_timeout_sec: Wall-clock bound for the batched read
        trade_size_wei: Fixed trial input; when None, balance minus moat is used
        reserve_moat_wei: Balance kept back from the trial input
        min_trade_wei: Skip evaluation when the trial input is below this
        strike_cooldown_iterations: Iterations a comparison sits out after a failed strike
        strike_value_wei: Native value attached to the strike call
        fee_bps: Pool fee applied by the swap math
        dry_run: Never sign or broadcast when True
    """

    name: str
    chain_id: int
    rpc_urls: Tuple[str, ...]
    aggregator: str
    routers: Mapping[str, str] = field(default_factory=dict)
    tokens: Mapping[str, str] = field(default_factory=dict)
    comparisons: Tuple[ComparisonConfig, ...] = ()
    min_profit_wei: int = 0
    poll_sec: float = DEFAULT_POLL_SEC
    call_timeout_sec: float = DEFAULT_CALL_TIMEOUT_SEC
    trade_size_wei: Optional[int] = None
    reserve_moat_wei: int = 10**16
    min_trade_wei: int = 10**15
    strike_cooldown_iterations: int = 1
    strike_value_wei: int = 0
    fee_bps: int = 30
    gas_limit: int = 500_000
    receipt_timeout_sec: float = 60.0
    dry_run: bool = True
    private_key_env: str = "PRIVATE_KEY"
    executor_address_env: str = "EXECUTOR_ADDRESS"
    executor_address: Optional[str] = None

    @property
    def pools(self) -> List[str]:
        """Every pool referenced by a comparison, deduplicated, first-seen order."""
        seen: Dict[str, None] = {}
        for comparison in self.comparisons:
            for pool in comparison.pools:
                seen.setdefault(pool, None)
        return list(seen)


@dataclass(frozen=True)
class AppConfig:
    """Whole-file configuration: one NetworkConfig per network."""

    networks: Mapping[str, NetworkConfig]
    health_port: Optional[int] = None


@dataclass(frozen=True)
class Credentials:
    """Signing material resolved from the environment at boot."""

    private_key: Optional[str]
    executor_address: Optional[str]


def parse_amount(value: Any, key: str = "amount") -> int:
    """
    Parse an integer wei amount.

    Accepts ints, digit strings, and "<number> <unit>" strings such as
    "0.01 ether" or "5 gwei".
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"Config field '{key}' must be an amount, got bool")
    if isinstance(value, int):
        if value < 0:
            raise ConfigurationError(f"Config field '{key}' must not be negative")
        return value
    if isinstance(value, str):
        parts = value.split()
        try:
            if len(parts) == 1:
                amount = int(parts[0].replace("_", ""))
            elif len(parts) == 2:
                amount = int(Web3.to_wei(Decimal(parts[0]), parts[1].lower()))
            else:
                raise ValueError(value)
        except (ValueError, InvalidOperation) as e:
            raise ConfigurationError(
                f"Config field '{key}' is not a valid amount: {value!r}"
            ) from e
        if amount < 0:
            raise ConfigurationError(f"Config field '{key}' must not be negative")
        return amount
    raise ConfigurationError(
        f"Config field '{key}' must be int or str, got {type(value).__name__}"
    )


def _get_required(d: Mapping, key: str, expected_type: type, network: str) -> Any:
    """Get required config field with type validation."""
    if key not in d or d[key] is None:
        raise ConfigurationError(
            f"[{network}] Missing required config field: {key}", network=network
        )
    val = d[key]
    if not isinstance(val, expected_type):
        raise ConfigurationError(
            f"[{network}] Config field '{key}' must be {expected_type.__name__}, "
            f"got {type(val).__name__}",
            network=network,
        )
    return val


def _number(d: Mapping, key: str, kind: type, network: str) -> Any:
    """Convert a numeric config field, reporting bad values against the network."""
    value = d[key]
    try:
        if isinstance(value, bool):
            raise TypeError(key)
        return kind(value)
    except (ValueError, TypeError) as e:
        raise ConfigurationError(
            f"[{network}] Config field '{key}' must be a {kind.__name__}, got {value!r}",
            network=network,
        ) from e


def _flag(value: Any, key: str, network: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(
            f"[{network}] Config field '{key}' must be true or false, got {value!r}",
            network=network,
        )
    return value


def _address(value: Any, where: str, network: str) -> str:
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ConfigurationError(
            f"[{network}] {where} is not a valid address: {value!r}", network=network
        )
    return Web3.to_checksum_address(value)


def _parse_address_table(raw: Any, key: str, network: str) -> Dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"[{network}] '{key}' must be a mapping", network=network)
    return {name: _address(addr, f"{key}.{name}", network) for name, addr in raw.items()}


def _parse_rpc_urls(raw: Dict[str, Any], network: str) -> Tuple[str, ...]:
    urls = raw.get("rpc_urls") or []
    if isinstance(urls, str):
        urls = [urls]
    if not isinstance(urls, list):
        raise ConfigurationError(f"[{network}] 'rpc_urls' must be a list", network=network)

    env_name = raw.get("rpc_url_env")
    if env_name and os.getenv(env_name):
        urls = [os.getenv(env_name)] + urls

    cleaned = []
    for url in urls:
        if not isinstance(url, str) or not url.strip():
            continue
        url = url.strip()
        if not url.startswith(("http://", "https://")):
            raise ConfigurationError(
                f"[{network}] Invalid RPC URL format: {url}", network=network
            )
        if url not in cleaned:
            cleaned.append(url)

    if not cleaned:
        raise ConfigurationError(
            f"[{network}] No RPC endpoints configured (rpc_urls / rpc_url_env)",
            network=network,
        )
    return tuple(cleaned)


def _parse_comparisons(
    raw: Any, routers: Mapping[str, str], tokens: Mapping[str, str], network: str
) -> Tuple[ComparisonConfig, ...]:
    if not isinstance(raw, list) or not raw:
        raise ConfigurationError(
            f"[{network}] 'comparisons' must be a non-empty list", network=network
        )

    comparisons = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ConfigurationError(
                f"[{network}] Comparison {i} must be a dict", network=network
            )
        name = entry.get("name") or f"comparison-{i}"
        kind = entry.get("kind", "cross_venue")
        if kind not in COMPARISON_KINDS:
            raise ConfigurationError(
                f"[{network}] Comparison '{name}' has invalid kind '{kind}' "
                f"(must be one of {', '.join(COMPARISON_KINDS)})",
                network=network,
            )

        legs_raw = entry.get("legs", [])
        if not isinstance(legs_raw, list):
            raise ConfigurationError(
                f"[{network}] Comparison '{name}' legs must be a list", network=network
            )
        legs = []
        for j, leg in enumerate(legs_raw):
            if not isinstance(leg, dict) or "pool" not in leg:
                raise ConfigurationError(
                    f"[{network}] Comparison '{name}' leg {j} missing 'pool'",
                    network=network,
                )
            venue = leg.get("venue")
            if venue is not None and venue not in routers:
                raise ConfigurationError(
                    f"[{network}] Comparison '{name}' leg {j} uses unknown venue '{venue}'",
                    network=network,
                )
            legs.append(
                LegConfig(
                    pool=_address(leg["pool"], f"{name}.legs[{j}].pool", network),
                    zero_for_one=_flag(
                        leg.get("zero_for_one", True), f"{name}.legs[{j}].zero_for_one", network
                    ),
                    venue=venue,
                )
            )

        if kind == "cross_venue" and len(legs) != 2:
            raise ConfigurationError(
                f"[{network}] Cross-venue comparison '{name}' needs exactly 2 legs, "
                f"got {len(legs)}",
                network=network,
            )
        if kind == "cycle" and len(legs) < 2:
            raise ConfigurationError(
                f"[{network}] Cycle '{name}' needs at least 2 legs, got {len(legs)}",
                network=network,
            )

        token_in = entry.get("token_in")
        token_out = entry.get("token_out")
        if kind == "cross_venue":
            for symbol in (token_in, token_out):
                if symbol not in tokens:
                    raise ConfigurationError(
                        f"[{network}] Comparison '{name}' token '{symbol}' "
                        f"not found in tokens config",
                        network=network,
                    )
            if any(leg.venue is None for leg in legs):
                raise ConfigurationError(
                    f"[{network}] Cross-venue comparison '{name}' needs a venue on every leg",
                    network=network,
                )

        comparisons.append(
            ComparisonConfig(
                name=name,
                kind=kind,
                legs=tuple(legs),
                token_in=token_in,
                token_out=token_out,
            )
        )
    return tuple(comparisons)


def parse_network(
    name: str, raw: Dict[str, Any], defaults: Optional[Dict[str, Any]] = None
) -> NetworkConfig:
    """
    Parse and validate one network entry.

    Args:
        name: Network label
        raw: The network's mapping from the YAML file
        defaults: File-level defaults merged under ``raw``

    Raises:
        ConfigurationError: If required fields are missing or invalid
    """
    if not isinstance(raw, dict):
        raise ConfigurationError(f"[{name}] Network config must be a dict", network=name)

    merged = {**DEFAULTS, **(defaults or {}), **raw}

    chain_id = _get_required(merged, "chain_id", int, name)
    rpc_urls = _parse_rpc_urls(merged, name)
    aggregator = _address(_get_required(merged, "aggregator", str, name), "aggregator", name)
    routers = _parse_address_table(merged.get("routers"), "routers", name)
    tokens = _parse_address_table(merged.get("tokens"), "tokens", name)
    comparisons = _parse_comparisons(merged.get("comparisons"), routers, tokens, name)

    poll_sec = _number(merged, "poll_sec", float, name)
    call_timeout_sec = _number(merged, "call_timeout_sec", float, name)
    if poll_sec <= 0 or call_timeout_sec <= 0:
        raise ConfigurationError(
            f"[{name}] poll_sec and call_timeout_sec must be positive", network=name
        )

    strike_cooldown_iterations = _number(merged, "strike_cooldown_iterations", int, name)
    if strike_cooldown_iterations < 0:
        raise ConfigurationError(
            f"[{name}] strike_cooldown_iterations must not be negative", network=name
        )
    fee_bps = _number(merged, "fee_bps", int, name)
    if not 0 <= fee_bps < 10_000:
        raise ConfigurationError(
            f"[{name}] fee_bps must be in [0, 10000), got {fee_bps}", network=name
        )

    trade_size = merged.get("trade_size_wei")
    executor_address = merged.get("executor_address")

    return NetworkConfig(
        name=name,
        chain_id=chain_id,
        rpc_urls=rpc_urls,
        aggregator=aggregator,
        routers=routers,
        tokens=tokens,
        comparisons=comparisons,
        min_profit_wei=parse_amount(merged["min_profit_wei"], "min_profit_wei"),
        poll_sec=poll_sec,
        call_timeout_sec=call_timeout_sec,
        trade_size_wei=(
            None if trade_size is None else parse_amount(trade_size, "trade_size_wei")
        ),
        reserve_moat_wei=parse_amount(merged["reserve_moat_wei"], "reserve_moat_wei"),
        min_trade_wei=parse_amount(merged["min_trade_wei"], "min_trade_wei"),
        strike_cooldown_iterations=strike_cooldown_iterations,
        strike_value_wei=parse_amount(merged["strike_value_wei"], "strike_value_wei"),
        fee_bps=fee_bps,
        gas_limit=_number(merged, "gas_limit", int, name),
        receipt_timeout_sec=_number(merged, "receipt_timeout_sec", float, name),
        dry_run=_flag(merged["dry_run"], "dry_run", name),
        private_key_env=str(merged["private_key_env"]),
        executor_address_env=str(merged["executor_address_env"]),
        executor_address=(
            None
            if executor_address is None
            else _address(executor_address, "executor_address", name)
        ),
    )


def parse_config(
    config_dict: Dict[str, Any],
) -> Tuple[AppConfig, Dict[str, ConfigurationError]]:
    """
    Parse every network, collecting per-network failures instead of aborting.

    Returns:
        (AppConfig with the valid networks, {network: error} for the rest)

    Raises:
        ConfigurationError: If the file-level structure is invalid
    """
    if not isinstance(config_dict, dict):
        raise ConfigurationError("Config file must contain a YAML dictionary")

    networks_raw = config_dict.get("networks")
    if not isinstance(networks_raw, dict) or not networks_raw:
        raise ConfigurationError("Config must define at least one network under 'networks'")

    defaults = config_dict.get("defaults") or {}
    if not isinstance(defaults, dict):
        raise ConfigurationError("'defaults' must be a mapping")

    networks: Dict[str, NetworkConfig] = {}
    errors: Dict[str, ConfigurationError] = {}
    for name, raw in networks_raw.items():
        try:
            networks[name] = parse_network(name, raw, defaults)
        except ConfigurationError as e:
            errors[name] = e

    health_port = config_dict.get("health_port")
    return AppConfig(networks=networks, health_port=health_port), errors


def load_config(
    config_path: str,
) -> Tuple[AppConfig, Dict[str, ConfigurationError]]:
    """
    Load and validate config from a YAML file.

    Raises:
        ConfigurationError: If the file is missing, unparsable or structurally invalid
    """
    if not os.path.exists(config_path):
        raise ConfigurationError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML: {e}") from e

    return parse_config(config_dict)


def resolve_credentials(
    network: NetworkConfig, environ: Optional[Mapping[str, str]] = None
) -> Credentials:
    """
    Read the signing key and executor address for a network.

    Raises:
        ConfigurationError: If live mode is requested and either is missing
    """
    env = os.environ if environ is None else environ
    private_key = env.get(network.private_key_env) or None
    executor_address = network.executor_address or env.get(network.executor_address_env)

    if executor_address:
        executor_address = _address(executor_address, "executor address", network.name)

    if not network.dry_run:
        if not private_key:
            raise ConfigurationError(
                f"[{network.name}] Private key environment variable "
                f"{network.private_key_env} not set",
                network=network.name,
            )
        if not executor_address:
            raise ConfigurationError(
                f"[{network.name}] Executor address not configured "
                f"(executor_address or {network.executor_address_env})",
                network=network.name,
            )

    return Credentials(private_key=private_key, executor_address=executor_address)
