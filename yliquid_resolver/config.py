"""Load config.yaml, interpolate env vars and validate addresses."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from eth_utils import is_address, to_checksum_address

from .models import ZERO_ADDRESS, Venue

logger = logging.getLogger(__name__)

DEFAULT_YEARN_APR_ORACLE = "0x1981AD9F44F2EA9aDd2dC4AD7D075c102C70aF92"
DEFAULT_LIDO_WITHDRAWAL_QUEUE = "0x889edC2eDab5f40e902b864aD4d7AdE8E412F9B1"
DEFAULT_ETHERFI_WITHDRAW_REQUEST_NFT = "0x7d5706f6ef3F89B3951E23e557CDFBC3239D4E2c"
DEFAULT_MORPHO_WSTETH_MARKET_ID = (
    "0xb8fc70e82bc5bb53e773626fcc6a23f7eefa036918d7ef216ecfb1950a94a85e"
)
DEFAULT_MORPHO_WEETH_MARKET_ID = (
    "0x37e7484d642d90f14451f1910ba4b7b8e4c3ccdd0ec28f8b2bdb35479e472ba7"
)
DEFAULT_TRACKED_IDS_SLOT = "yliquid_tracked_token_ids"

_BYTES32_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChainConfig:
    chain_id: int = 1
    rpc_endpoints: tuple[str, ...] = ()
    rpc_timeout: int = 30

    @property
    def explorer_url(self) -> str:
        if self.chain_id == 11155111:
            return "https://sepolia.etherscan.io"
        return "https://etherscan.io"


@dataclass(frozen=True)
class ContractsConfig:
    yearn_vault: str | None = None
    yearn_apr_oracle: str | None = None
    yliquid_market: str | None = None
    position_nft: str | None = None
    wsteth_adapter: str | None = None
    weeth_adapter: str | None = None
    aave_receiver: str | None = None
    morpho_receiver: str | None = None
    aave_pool: str | None = None
    aave_data_provider: str | None = None
    morpho: str | None = None
    lido_withdrawal_queue: str | None = None
    etherfi_withdraw_request_nft: str | None = None


@dataclass(frozen=True)
class TokensConfig:
    weth: str | None = None
    wsteth: str | None = None
    weeth: str | None = None
    awsteth: str | None = None


@dataclass(frozen=True)
class RouteConfig:
    id: str = ""
    label: str = ""
    venue: Venue = Venue.AAVE
    adapter: str | None = None
    receiver: str | None = None
    collateral_asset: str | None = None
    collateral_symbol: str = ""
    morpho_market_id: str | None = None


@dataclass(frozen=True)
class ScannerConfig:
    initial_chunk_blocks: int = 250_000
    min_chunk_blocks: int = 2_000


@dataclass(frozen=True)
class YieldConfig:
    history_window_days: int = 7

    @property
    def history_window_seconds(self) -> int:
        return self.history_window_days * 24 * 60 * 60


@dataclass(frozen=True)
class StorageConfig:
    tracked_ids_path: str = "~/.yliquid/tracked_ids.json"
    slot: str = DEFAULT_TRACKED_IDS_SLOT


@dataclass(frozen=True)
class AppConfig:
    chain: ChainConfig = field(default_factory=ChainConfig)
    contracts: ContractsConfig = field(default_factory=ContractsConfig)
    tokens: TokensConfig = field(default_factory=TokensConfig)
    routes: tuple[RouteConfig, ...] = ()
    scanner: ScannerConfig = field(default_factory=ScannerConfig)
    yield_: YieldConfig = field(default_factory=YieldConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    wallet: str | None = None

    def route(self, route_id: str) -> RouteConfig | None:
        for route in self.routes:
            if route.id == route_id:
                return route
        return None


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# Value normalization
# ---------------------------------------------------------------------------


def to_optional_address(value: Any) -> str | None:
    """Checksum an address; empty, zero and malformed values mean "not set"."""
    if not value or not isinstance(value, str):
        return None
    normalized = value.strip()
    if normalized.lower() == ZERO_ADDRESS:
        return None
    if not is_address(normalized.lower()):
        logger.warning("Ignoring malformed address in config: %s", normalized)
        return None
    return to_checksum_address(normalized.lower())


def to_optional_bytes32(value: Any) -> str | None:
    if not value or not isinstance(value, str):
        return None
    normalized = value.strip()
    if not _BYTES32_RE.match(normalized):
        logger.warning("Ignoring malformed bytes32 in config: %s", normalized)
        return None
    return normalized.lower()


def _to_chain_id(value: Any) -> int:
    try:
        chain_id = int(value)
    except (TypeError, ValueError):
        return 1
    return chain_id if chain_id > 0 else 1


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_chain(raw: dict[str, Any]) -> ChainConfig:
    return ChainConfig(
        chain_id=_to_chain_id(raw.get("chain_id", 1)),
        rpc_endpoints=tuple(e for e in raw.get("rpc_endpoints", []) if e),
        rpc_timeout=int(raw.get("rpc_timeout", 30)),
    )


def _build_contracts(raw: dict[str, Any]) -> ContractsConfig:
    def addr(key: str, default: str | None = None) -> str | None:
        return to_optional_address(raw.get(key)) or to_optional_address(default)

    return ContractsConfig(
        yearn_vault=addr("yearn_vault"),
        yearn_apr_oracle=addr("yearn_apr_oracle", DEFAULT_YEARN_APR_ORACLE),
        yliquid_market=addr("yliquid_market"),
        position_nft=addr("position_nft"),
        wsteth_adapter=addr("wsteth_adapter"),
        weeth_adapter=addr("weeth_adapter"),
        aave_receiver=addr("aave_receiver"),
        morpho_receiver=addr("morpho_receiver"),
        aave_pool=addr("aave_pool"),
        aave_data_provider=addr("aave_data_provider"),
        morpho=addr("morpho"),
        lido_withdrawal_queue=addr(
            "lido_withdrawal_queue", DEFAULT_LIDO_WITHDRAWAL_QUEUE
        ),
        etherfi_withdraw_request_nft=addr(
            "etherfi_withdraw_request_nft", DEFAULT_ETHERFI_WITHDRAW_REQUEST_NFT
        ),
    )


def _build_tokens(raw: dict[str, Any]) -> TokensConfig:
    return TokensConfig(
        weth=to_optional_address(raw.get("weth")),
        wsteth=to_optional_address(raw.get("wsteth")),
        weeth=to_optional_address(raw.get("weeth")),
        awsteth=to_optional_address(raw.get("awsteth")),
    )


def _default_routes(
    contracts: ContractsConfig,
    tokens: TokensConfig,
    markets: dict[str, Any],
) -> tuple[RouteConfig, ...]:
    wsteth_market = to_optional_bytes32(
        markets.get("wsteth")
    ) or to_optional_bytes32(DEFAULT_MORPHO_WSTETH_MARKET_ID)
    weeth_market = to_optional_bytes32(
        markets.get("weeth")
    ) or to_optional_bytes32(DEFAULT_MORPHO_WEETH_MARKET_ID)
    return (
        RouteConfig(
            id="aave-wsteth",
            label="Aave Position -> wstETH Unwind",
            venue=Venue.AAVE,
            adapter=contracts.wsteth_adapter,
            receiver=contracts.aave_receiver,
            collateral_asset=tokens.wsteth,
            collateral_symbol="wstETH",
        ),
        RouteConfig(
            id="aave-weeth",
            label="Aave Position -> weETH Unwind",
            venue=Venue.AAVE,
            adapter=contracts.weeth_adapter,
            receiver=contracts.aave_receiver,
            collateral_asset=tokens.weeth,
            collateral_symbol="weETH",
        ),
        RouteConfig(
            id="morpho-wsteth",
            label="Morpho Position -> wstETH Unwind",
            venue=Venue.MORPHO,
            adapter=contracts.wsteth_adapter,
            receiver=contracts.morpho_receiver,
            collateral_asset=tokens.wsteth,
            collateral_symbol="wstETH",
            morpho_market_id=wsteth_market,
        ),
        RouteConfig(
            id="morpho-weeth",
            label="Morpho Position -> weETH Unwind",
            venue=Venue.MORPHO,
            adapter=contracts.weeth_adapter,
            receiver=contracts.morpho_receiver,
            collateral_asset=tokens.weeth,
            collateral_symbol="weETH",
            morpho_market_id=weeth_market,
        ),
    )


def _build_routes(raw: list[dict[str, Any]]) -> tuple[RouteConfig, ...]:
    routes: list[RouteConfig] = []
    for r in raw:
        venue_raw = str(r.get("venue", "")).lower()
        try:
            venue = Venue(venue_raw)
        except ValueError:
            raise ValueError(
                f"Route '{r.get('id', '')}' has unknown venue '{venue_raw}'"
            ) from None
        routes.append(
            RouteConfig(
                id=r.get("id", ""),
                label=r.get("label", r.get("id", "")),
                venue=venue,
                adapter=to_optional_address(r.get("adapter")),
                receiver=to_optional_address(r.get("receiver")),
                collateral_asset=to_optional_address(r.get("collateral_asset")),
                collateral_symbol=r.get("collateral_symbol", ""),
                morpho_market_id=to_optional_bytes32(r.get("morpho_market_id")),
            )
        )
    return tuple(routes)


def _build_scanner(raw: dict[str, Any]) -> ScannerConfig:
    return ScannerConfig(
        initial_chunk_blocks=int(raw.get("initial_chunk_blocks", 250_000)),
        min_chunk_blocks=int(raw.get("min_chunk_blocks", 2_000)),
    )


def _build_yield(raw: dict[str, Any]) -> YieldConfig:
    return YieldConfig(history_window_days=int(raw.get("history_window_days", 7)))


def _build_storage(raw: dict[str, Any]) -> StorageConfig:
    return StorageConfig(
        tracked_ids_path=raw.get("tracked_ids_path", StorageConfig.tracked_ids_path),
        slot=raw.get("slot", DEFAULT_TRACKED_IDS_SLOT),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def build_config(raw: dict[str, Any]) -> AppConfig:
    """Build an AppConfig from an already-parsed (and interpolated) mapping."""
    contracts = _build_contracts(raw.get("contracts") or {})
    tokens = _build_tokens(raw.get("tokens") or {})

    if raw.get("routes"):
        routes = _build_routes(raw["routes"])
    else:
        routes = _default_routes(contracts, tokens, raw.get("morpho_markets") or {})

    cfg = AppConfig(
        chain=_build_chain(raw.get("chain") or {}),
        contracts=contracts,
        tokens=tokens,
        routes=routes,
        scanner=_build_scanner(raw.get("scanner") or {}),
        yield_=_build_yield(raw.get("yield") or {}),
        storage=_build_storage(raw.get("storage") or {}),
        wallet=to_optional_address(raw.get("wallet")),
    )
    _validate(cfg)
    return cfg


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    cfg = build_config(_interpolate_env(raw))
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration.

    Missing contract addresses are not errors: features that need them report
    themselves as unconfigured.
    """
    if not cfg.chain.rpc_endpoints:
        raise ValueError("At least one RPC endpoint must be configured")
    if cfg.chain.rpc_timeout <= 0:
        raise ValueError("rpc_timeout must be positive")

    scanner = cfg.scanner
    if scanner.initial_chunk_blocks <= 0 or scanner.min_chunk_blocks <= 0:
        raise ValueError("Scanner chunk sizes must be positive")
    if scanner.min_chunk_blocks > scanner.initial_chunk_blocks:
        raise ValueError("min_chunk_blocks cannot exceed initial_chunk_blocks")

    if cfg.yield_.history_window_days <= 0:
        raise ValueError("history_window_days must be positive")

    seen: set[str] = set()
    for route in cfg.routes:
        if not route.id:
            raise ValueError("Every route needs an id")
        if route.id in seen:
            raise ValueError(f"Duplicate route id '{route.id}'")
        seen.add(route.id)
