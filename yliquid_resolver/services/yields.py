"""Vault yield: spot strategy APR, lending base rate, blended estimate, 7D history."""
from __future__ import annotations

import asyncio
import logging

from ..abi import (
    APR_ORACLE_STRATEGY_APR,
    ERC20_BALANCE_OF,
    ERC20_DECIMALS,
    ERC20_SYMBOL,
    MARKET_RATE_MODEL,
    MARKET_TOTAL_PRINCIPAL_ACTIVE,
    RATE_MODEL_BASE_RATE_BPS,
    VAULT_ASSET,
    VAULT_CONVERT_TO_ASSETS,
    VAULT_DEFAULT_QUEUE,
    VAULT_MAX_WITHDRAW,
    VAULT_STRATEGIES,
)
from ..config import AppConfig
from ..fixed_point import blended_apr, bps_to_wad
from ..interfaces.chain import ChainClient
from ..models import Unconfigured, VaultHoldings, YieldSummary
from ..reads import ReadTracker
from .block_locator import HistoricalAprResolver

logger = logging.getLogger(__name__)


class YieldReconciler:
    def __init__(self, chain_client: ChainClient, config: AppConfig) -> None:
        self._client = chain_client
        self._config = config
        self._historical = HistoricalAprResolver(
            chain_client, config.yield_.history_window_seconds
        )

    async def resolve(self, wallet: str | None = None) -> YieldSummary | Unconfigured:
        contracts = self._config.contracts
        vault = contracts.yearn_vault
        if vault is None:
            return Unconfigured(feature="Vault yield", missing=("contracts.yearn_vault",))

        reads = ReadTracker(self._client)
        market = contracts.yliquid_market

        async def base_rate_bps() -> int | None:
            rate_model = await reads.read("rate_model", market, MARKET_RATE_MODEL)
            return await reads.read("base_rate_bps", rate_model, RATE_MODEL_BASE_RATE_BPS)

        async def strategy_allocation() -> int | None:
            # Only the first strategy in the default queue is weighted.
            strategy = await reads.read(
                "default_strategy", vault, VAULT_DEFAULT_QUEUE, [0]
            )
            params = await reads.read(
                "strategy_allocation", vault if strategy else None, VAULT_STRATEGIES, [strategy]
            )
            return params[2] if params is not None else None

        async def asset_metadata() -> tuple[str | None, int | None]:
            asset = await reads.read("vault_asset", vault, VAULT_ASSET)
            symbol, decimals = await asyncio.gather(
                reads.read("asset_symbol", asset, ERC20_SYMBOL),
                reads.read("asset_decimals", asset, ERC20_DECIMALS),
            )
            return symbol, decimals

        (
            strategy_apr,
            base_bps,
            allocation,
            principal,
            historical,
            (symbol, decimals),
            holdings,
        ) = await asyncio.gather(
            reads.read(
                "strategy_apr",
                contracts.yearn_apr_oracle,
                APR_ORACLE_STRATEGY_APR,
                [vault, 0],
            ),
            base_rate_bps(),
            strategy_allocation(),
            reads.read("total_principal_active", market, MARKET_TOTAL_PRINCIPAL_ACTIVE),
            self._historical.resolve(vault),
            asset_metadata(),
            self._holdings(reads, vault, wallet),
        )

        base_rate_apr = bps_to_wad(base_bps)
        estimated = blended_apr(strategy_apr, allocation, base_rate_apr, principal)
        logger.debug(
            "Yield for %s: strategy=%s base=%s estimated=%s historical=%s",
            vault,
            strategy_apr,
            base_rate_apr,
            estimated,
            historical.apr_wad,
        )

        return YieldSummary(
            asset_symbol=symbol or "Asset",
            asset_decimals=decimals if decimals is not None else 18,
            strategy_apr_wad=strategy_apr,
            base_rate_apr_wad=base_rate_apr,
            estimated_apr_wad=estimated,
            historical=historical,
            strategy_allocation=allocation,
            total_principal_active=principal,
            holdings=holdings,
            unavailable=tuple(reads.unavailable),
        )

    async def _holdings(
        self, reads: ReadTracker, vault: str, wallet: str | None
    ) -> VaultHoldings | None:
        if wallet is None:
            return None
        shares, max_withdraw = await asyncio.gather(
            reads.read("share_balance", vault, ERC20_BALANCE_OF, [wallet]),
            reads.read("max_withdraw", vault, VAULT_MAX_WITHDRAW, [wallet]),
        )
        assets = None
        if shares is not None:
            assets = await reads.read(
                "share_value", vault, VAULT_CONVERT_TO_ASSETS, [shares]
            )
        return VaultHoldings(share_balance=shares, assets=assets, max_withdraw=max_withdraw)
