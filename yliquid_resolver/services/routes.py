"""Route reconciliation: market rates, venue position, suggested amounts, open gate."""
from __future__ import annotations

import asyncio
import logging

from ..abi import (
    ERC20_DECIMALS,
    MARKET_ADAPTER_RISK_PREMIUM_BPS,
    MARKET_AVAILABLE_LIQUIDITY,
    MARKET_RATE_MODEL,
    MARKET_TOTAL_PRINCIPAL_ACTIVE,
    RATE_MODEL_BASE_RATE_BPS,
)
from ..config import AppConfig, RouteConfig
from ..fixed_point import apply_bps
from ..gate import cap_principal, evaluate_open_gate
from ..interfaces.chain import ChainClient
from ..interfaces.venue import VenueReader
from ..models import (
    MarketRateState,
    RouteResolution,
    Unconfigured,
    Venue,
    VenueRouteState,
)
from ..protocols import AaveAdapter, MorphoAdapter
from ..reads import ReadTracker

logger = logging.getLogger(__name__)

# Receivers pull slightly less than the full balance to leave room for
# interest accrued between the read and the transaction.
COLLATERAL_USAGE_BPS = 9_990


async def read_market_rates(
    reads: ReadTracker, market: str | None, adapter: str | None
) -> MarketRateState:
    """Liquidity, base rate, adapter premium and active principal of the market."""

    async def base_rate() -> int | None:
        rate_model = await reads.read("rate_model", market, MARKET_RATE_MODEL)
        return await reads.read("base_rate_bps", rate_model, RATE_MODEL_BASE_RATE_BPS)

    async def premium() -> int | None:
        if adapter is None:
            return None
        return await reads.read(
            "adapter_risk_premium_bps", market, MARKET_ADAPTER_RISK_PREMIUM_BPS, [adapter]
        )

    liquidity, base_rate_bps, premium_bps, principal = await asyncio.gather(
        reads.read("available_liquidity", market, MARKET_AVAILABLE_LIQUIDITY),
        base_rate(),
        premium(),
        reads.read("total_principal_active", market, MARKET_TOTAL_PRINCIPAL_ACTIVE),
    )
    return MarketRateState(
        base_rate_bps=base_rate_bps,
        adapter_risk_premium_bps=premium_bps,
        total_principal_active=principal,
        available_liquidity=liquidity,
    )


def missing_route_config(config: AppConfig, route: RouteConfig) -> tuple[str, ...]:
    """Config keys a route needs before any of its reads make sense."""
    contracts = config.contracts
    missing: list[str] = []
    if contracts.yliquid_market is None:
        missing.append("contracts.yliquid_market")
    if route.adapter is None:
        missing.append(f"routes[{route.id}].adapter")
    if route.receiver is None:
        missing.append(f"routes[{route.id}].receiver")
    if route.collateral_asset is None:
        missing.append(f"routes[{route.id}].collateral_asset")
    if config.tokens.weth is None:
        missing.append("tokens.weth")
    if route.venue is Venue.AAVE:
        if contracts.aave_pool is None and contracts.aave_data_provider is None:
            missing.append("contracts.aave_pool")
    elif contracts.morpho is None:
        missing.append("contracts.morpho")
    return tuple(missing)


class RouteReconciler:
    """Combine a venue position with market state into an actionable route view."""

    def __init__(self, chain_client: ChainClient, config: AppConfig) -> None:
        self._client = chain_client
        self._config = config
        self._venues: dict[Venue, VenueReader] = {
            Venue.AAVE: AaveAdapter(chain_client, config.contracts, config.tokens),
            Venue.MORPHO: MorphoAdapter(chain_client, config.contracts, config.tokens),
        }

    async def resolve(
        self,
        route: RouteConfig,
        wallet: str | None,
        principal: int | None = None,
        collateral: int | None = None,
    ) -> RouteResolution | Unconfigured:
        """Resolve ``route`` for ``wallet``.

        ``principal`` / ``collateral`` override the suggested amounts; they are
        raw token units and still pass through the liquidity cap and the gate.
        """
        missing = missing_route_config(self._config, route)
        if missing:
            return Unconfigured(feature=route.label or route.id, missing=missing)

        reads = ReadTracker(self._client)
        rates, venue_state, loan_decimals = await asyncio.gather(
            read_market_rates(reads, self._config.contracts.yliquid_market, route.adapter),
            self._venues[route.venue].read_route(route, wallet),
            reads.read("loan_decimals", self._config.tokens.weth, ERC20_DECIMALS),
        )
        return self._reconcile(
            route, rates, venue_state, loan_decimals, principal, collateral, reads
        )

    def _reconcile(
        self,
        route: RouteConfig,
        rates: MarketRateState,
        venue_state: VenueRouteState,
        loan_decimals: int | None,
        principal: int | None,
        collateral: int | None,
        reads: ReadTracker,
    ) -> RouteResolution:
        liquidity = rates.available_liquidity or 0
        position = venue_state.position

        suggested_collateral = 0
        suggested_principal = 0
        if position is not None:
            suggested_collateral = apply_bps(
                position.collateral_balance, COLLATERAL_USAGE_BPS
            )
            suggested_principal = cap_principal(position.debt_balance, liquidity)

        requested_principal = suggested_principal if principal is None else principal
        requested_collateral = suggested_collateral if collateral is None else collateral

        gate = evaluate_open_gate(
            requested_principal,
            requested_collateral,
            liquidity,
            venue_state.authorizes(requested_collateral),
            route_issues=venue_state.route_issues,
        )
        if gate.capped:
            logger.info(
                "Route %s principal capped from %d to available liquidity %d",
                route.id,
                gate.requested_principal,
                gate.effective_principal,
            )

        unavailable = list(reads.unavailable)
        unavailable.extend(f for f in venue_state.unavailable if f not in unavailable)

        return RouteResolution(
            route_id=route.id,
            venue=route.venue,
            rates=rates,
            position=position,
            collateral_decimals=(
                venue_state.collateral_decimals
                if venue_state.collateral_decimals is not None
                else 18
            ),
            loan_decimals=loan_decimals if loan_decimals is not None else 18,
            suggested_principal=suggested_principal,
            suggested_collateral=suggested_collateral,
            gate=gate,
            collateral_token=venue_state.collateral_token,
            allowance=venue_state.allowance,
            authorized=venue_state.authorized,
            route_issues=venue_state.route_issues,
            unavailable=tuple(unavailable),
        )
