"""Pure parsing functions for Aave V3 reads, no I/O."""
from __future__ import annotations

from typing import Any

from ...models import ZERO_ADDRESS, AaveAccount, Venue, VenuePosition, same_address


def _non_zero(address: str | None) -> str | None:
    if not address or same_address(address, ZERO_ADDRESS):
        return None
    return address


def parse_reserve_tokens(raw: Any) -> tuple[str | None, str | None, str | None]:
    """Split ``getReserveTokensAddresses`` into (aToken, stableDebt, variableDebt).

    An unlisted reserve returns zero addresses, which map to None.
    """
    if raw is None:
        return None, None, None
    a_token, stable_debt, variable_debt = raw
    return _non_zero(a_token), _non_zero(stable_debt), _non_zero(variable_debt)


def select_collateral_token(
    collateral_asset: str,
    reserve_a_token: str | None,
    wsteth: str | None,
    awsteth_override: str | None,
) -> str | None:
    """The aToken the receiver pulls. A configured aWstETH wins for wstETH."""
    if awsteth_override and same_address(collateral_asset, wsteth):
        return awsteth_override
    return reserve_a_token


def normalize_aave(account: AaveAccount) -> VenuePosition:
    """aToken balance is the collateral; the variable debt token balance is the debt.

    Both already accrue interest on-chain, so no share math is needed.
    """
    return VenuePosition(
        venue=Venue.AAVE,
        collateral_balance=account.a_token_balance,
        debt_balance=account.variable_debt_balance,
    )
