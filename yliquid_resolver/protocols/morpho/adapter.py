"""Morpho Blue venue reader: share-based borrow position for a route."""
from __future__ import annotations

import asyncio
import logging

from eth_utils import decode_hex

from ...abi import (
    ERC20_DECIMALS,
    MORPHO_ID_TO_MARKET_PARAMS,
    MORPHO_IS_AUTHORIZED,
    MORPHO_MARKET,
    MORPHO_POSITION,
)
from ...config import ContractsConfig, RouteConfig, TokensConfig
from ...interfaces.chain import ChainClient
from ...models import Venue, VenueRouteState
from ...reads import ReadTracker
from . import parser

logger = logging.getLogger(__name__)


class MorphoAdapter:
    """Read a wallet's position in the Morpho market a route points at."""

    def __init__(
        self,
        chain_client: ChainClient,
        contracts: ContractsConfig,
        tokens: TokensConfig,
    ) -> None:
        self._client = chain_client
        self._morpho = contracts.morpho
        self._tokens = tokens

    @property
    def venue(self) -> Venue:
        return Venue.MORPHO

    async def read_route(self, route: RouteConfig, wallet: str | None) -> VenueRouteState:
        if route.morpho_market_id is None:
            return VenueRouteState(
                venue=Venue.MORPHO,
                route_issues=(parser.ISSUE_INVALID_MARKET_ID,),
            )

        market_id = decode_hex(route.morpho_market_id)
        reads = ReadTracker(self._client)

        params = parser.parse_market_params(
            await reads.read(
                "morpho_market_params",
                self._morpho,
                MORPHO_ID_TO_MARKET_PARAMS,
                [market_id],
            )
        )
        issues = parser.market_issues(params, self._tokens.weth, route.collateral_asset)
        collateral_token = params.collateral_token if params else route.collateral_asset

        if wallet is None:
            decimals = await reads.read(
                "collateral_decimals", collateral_token, ERC20_DECIMALS
            )
            return VenueRouteState(
                venue=Venue.MORPHO,
                collateral_decimals=decimals,
                collateral_token=collateral_token,
                market_params=params,
                route_issues=tuple(issues),
                unavailable=tuple(reads.unavailable),
            )

        raw_position, raw_market, authorized, decimals = await asyncio.gather(
            reads.read("morpho_position", self._morpho, MORPHO_POSITION, [market_id, wallet]),
            reads.read("morpho_market", self._morpho, MORPHO_MARKET, [market_id]),
            reads.read(
                "receiver_authorization",
                self._morpho if route.receiver else None,
                MORPHO_IS_AUTHORIZED,
                [wallet, route.receiver],
            ),
            reads.read("collateral_decimals", collateral_token, ERC20_DECIMALS),
        )

        account = parser.parse_account(raw_position, raw_market)
        position = parser.normalize_morpho(account) if account else None
        logger.debug("Morpho route %s: position=%s issues=%s", route.id, position, issues)

        return VenueRouteState(
            venue=Venue.MORPHO,
            position=position,
            collateral_decimals=decimals,
            collateral_token=collateral_token,
            authorized=authorized,
            market_params=params,
            route_issues=tuple(issues),
            unavailable=tuple(reads.unavailable),
        )
