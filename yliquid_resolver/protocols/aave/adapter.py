"""Aave V3 venue reader: aToken collateral and variable debt for a route."""
from __future__ import annotations

import asyncio
import logging

from ...abi import (
    AAVE_GET_POOL_DATA_PROVIDER,
    AAVE_GET_RESERVE_TOKENS,
    AAVE_POOL_ADDRESSES_PROVIDER,
    ERC20_ALLOWANCE,
    ERC20_BALANCE_OF,
    ERC20_DECIMALS,
)
from ...config import ContractsConfig, RouteConfig, TokensConfig
from ...interfaces.chain import ChainClient
from ...models import AaveAccount, Venue, VenueRouteState
from ...reads import ReadTracker
from . import parser

logger = logging.getLogger(__name__)

ISSUE_INVALID_COLLATERAL_TOKEN = "Aave collateral token address is invalid."


class AaveAdapter:
    """Resolve the aToken and variable debt token for a route, then read balances."""

    def __init__(
        self,
        chain_client: ChainClient,
        contracts: ContractsConfig,
        tokens: TokensConfig,
    ) -> None:
        self._client = chain_client
        self._contracts = contracts
        self._tokens = tokens

    @property
    def venue(self) -> Venue:
        return Venue.AAVE

    async def _data_provider(self, reads: ReadTracker) -> str | None:
        if self._contracts.aave_data_provider:
            return self._contracts.aave_data_provider
        provider = await reads.read(
            "aave_addresses_provider",
            self._contracts.aave_pool,
            AAVE_POOL_ADDRESSES_PROVIDER,
        )
        return await reads.read(
            "aave_data_provider", provider, AAVE_GET_POOL_DATA_PROVIDER
        )

    async def read_route(self, route: RouteConfig, wallet: str | None) -> VenueRouteState:
        reads = ReadTracker(self._client)
        data_provider = await self._data_provider(reads)

        collateral_reserve, weth_reserve = await asyncio.gather(
            reads.read(
                "aave_collateral_reserve",
                data_provider,
                AAVE_GET_RESERVE_TOKENS,
                [route.collateral_asset],
            ),
            reads.read(
                "aave_weth_reserve",
                data_provider,
                AAVE_GET_RESERVE_TOKENS,
                [self._tokens.weth],
            ),
        )
        reserve_a_token, _, _ = parser.parse_reserve_tokens(collateral_reserve)
        _, _, variable_debt_token = parser.parse_reserve_tokens(weth_reserve)
        a_token = parser.select_collateral_token(
            route.collateral_asset,
            reserve_a_token,
            self._tokens.wsteth,
            self._tokens.awsteth,
        )

        issues: list[str] = []
        if a_token is None:
            issues.append(ISSUE_INVALID_COLLATERAL_TOKEN)

        if wallet is None:
            decimals = await reads.read("collateral_decimals", a_token, ERC20_DECIMALS)
            return VenueRouteState(
                venue=Venue.AAVE,
                collateral_decimals=decimals,
                collateral_token=a_token,
                route_issues=tuple(issues),
                unavailable=tuple(reads.unavailable),
            )

        a_balance, debt_balance, decimals, allowance = await asyncio.gather(
            reads.read("collateral_balance", a_token, ERC20_BALANCE_OF, [wallet]),
            reads.read("debt_balance", variable_debt_token, ERC20_BALANCE_OF, [wallet]),
            reads.read("collateral_decimals", a_token, ERC20_DECIMALS),
            reads.read(
                "collateral_allowance",
                a_token if route.receiver else None,
                ERC20_ALLOWANCE,
                [wallet, route.receiver],
            ),
        )

        position = None
        if a_balance is not None and debt_balance is not None:
            position = parser.normalize_aave(
                AaveAccount(a_token_balance=a_balance, variable_debt_balance=debt_balance)
            )
        logger.debug("Aave route %s: position=%s issues=%s", route.id, position, issues)

        return VenueRouteState(
            venue=Venue.AAVE,
            position=position,
            collateral_decimals=decimals,
            collateral_token=a_token,
            allowance=allowance,
            route_issues=tuple(issues),
            unavailable=tuple(reads.unavailable),
        )
