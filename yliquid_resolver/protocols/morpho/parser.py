"""Pure parsing functions for Morpho Blue reads, no I/O."""
from __future__ import annotations

from typing import Any

from ...fixed_point import to_assets_up
from ...models import (
    ZERO_ADDRESS,
    MorphoAccount,
    MorphoMarketParams,
    Venue,
    VenuePosition,
    same_address,
)

ISSUE_INVALID_MARKET_ID = "Morpho market ID must be a valid bytes32 value."
ISSUE_MISSING_MARKET_PARAMS = (
    "Could not load Morpho market params for the configured market ID."
)
ISSUE_LOAN_TOKEN_MISMATCH = "Morpho market loan token does not match WETH."
ISSUE_COLLATERAL_TOKEN_MISMATCH = (
    "Morpho market collateral token does not match this route."
)


def parse_market_params(raw: Any) -> MorphoMarketParams | None:
    """``idToMarketParams`` of an unknown id is all zeros; treat it as missing."""
    if raw is None:
        return None
    loan_token, collateral_token, oracle, irm, lltv = raw
    if same_address(loan_token, ZERO_ADDRESS):
        return None
    return MorphoMarketParams(
        loan_token=loan_token,
        collateral_token=collateral_token,
        oracle=oracle,
        irm=irm,
        lltv=lltv,
    )


def parse_account(position: Any, market: Any) -> MorphoAccount | None:
    """Combine ``position(id, user)`` and ``market(id)`` into share accounting.

    position: (supplyShares, borrowShares, collateral)
    market:   (totalSupplyAssets, totalSupplyShares, totalBorrowAssets,
               totalBorrowShares, lastUpdate, fee)
    """
    if position is None or market is None:
        return None
    supply_shares, borrow_shares, collateral = position
    return MorphoAccount(
        supply_shares=supply_shares,
        borrow_shares=borrow_shares,
        collateral=collateral,
        total_borrow_assets=market[2],
        total_borrow_shares=market[3],
    )


def market_issues(
    params: MorphoMarketParams | None,
    weth: str | None,
    collateral_asset: str | None,
) -> list[str]:
    if params is None:
        return [ISSUE_MISSING_MARKET_PARAMS]
    issues: list[str] = []
    if not same_address(params.loan_token, weth):
        issues.append(ISSUE_LOAN_TOKEN_MISMATCH)
    if not same_address(params.collateral_token, collateral_asset):
        issues.append(ISSUE_COLLATERAL_TOKEN_MISMATCH)
    return issues


def normalize_morpho(account: MorphoAccount) -> VenuePosition:
    """Debt owed to Morpho rounds up, matching ``SharesMathLib.toAssetsUp``."""
    return VenuePosition(
        venue=Venue.MORPHO,
        collateral_balance=account.collateral,
        debt_balance=to_assets_up(
            account.borrow_shares,
            account.total_borrow_assets,
            account.total_borrow_shares,
        ),
    )
