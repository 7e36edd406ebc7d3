"""Fixed-point helpers for WAD and bps figures and share accounting. No I/O."""
from __future__ import annotations

import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, localcontext

from .errors import InvalidInputError

WAD = 10**18
BPS = 10_000
BPS_TO_WAD = 10**14
SECONDS_PER_DAY = 24 * 60 * 60
SECONDS_PER_YEAR = 365 * SECONDS_PER_DAY

# Share-accounting offsets used by Morpho Blue (SharesMathLib).
VIRTUAL_SHARES = 10**6
VIRTUAL_ASSETS = 1

_AMOUNT_RE = re.compile(r"^\d*(\.\d*)?$")


# ---------------------------------------------------------------------------
# Integer arithmetic
# ---------------------------------------------------------------------------


def div_up(numerator: int, denominator: int) -> int:
    """Ceiling division for non-negative integers."""
    if numerator == 0:
        return 0
    return (numerator - 1) // denominator + 1


def div_trunc(numerator: int, denominator: int) -> int:
    """Signed division truncating toward zero.

    Python's ``//`` floors, which differs for negative quotients:
        div_trunc(-7, 2) == -3   while   -7 // 2 == -4
    """
    quotient = abs(numerator) // abs(denominator)
    if (numerator < 0) != (denominator < 0):
        return -quotient
    return quotient


def mul_div_down(x: int, y: int, denominator: int) -> int:
    return (x * y) // denominator


def mul_div_up(x: int, y: int, denominator: int) -> int:
    return div_up(x * y, denominator)


def apply_bps(amount: int, bps: int) -> int:
    """Scale ``amount`` by ``bps / 10_000``, rounding down."""
    return (amount * bps) // BPS


def bps_to_wad(bps: int | None) -> int | None:
    if bps is None:
        return None
    return bps * BPS_TO_WAD


# ---------------------------------------------------------------------------
# Virtual share conversions
# ---------------------------------------------------------------------------


def to_assets_down(shares: int, total_assets: int, total_shares: int) -> int:
    """Shares → assets rounding down (amounts flowing to the user)."""
    return mul_div_down(
        shares, total_assets + VIRTUAL_ASSETS, total_shares + VIRTUAL_SHARES
    )


def to_assets_up(shares: int, total_assets: int, total_shares: int) -> int:
    """Shares → assets rounding up (amounts owed to the protocol)."""
    return mul_div_up(
        shares, total_assets + VIRTUAL_ASSETS, total_shares + VIRTUAL_SHARES
    )


def to_shares_down(assets: int, total_assets: int, total_shares: int) -> int:
    return mul_div_down(
        assets, total_shares + VIRTUAL_SHARES, total_assets + VIRTUAL_ASSETS
    )


def to_shares_up(assets: int, total_assets: int, total_shares: int) -> int:
    return mul_div_up(
        assets, total_shares + VIRTUAL_SHARES, total_assets + VIRTUAL_ASSETS
    )


# ---------------------------------------------------------------------------
# Yield math
# ---------------------------------------------------------------------------


def annualized_apr(
    current_pps: int, historical_pps: int, window_seconds: int
) -> int:
    """Annualize a price-per-share change over ``window_seconds`` as a WAD.

    Callers must not pass ``historical_pps == 0``; that case means the vault
    was not live and is handled before reaching here.
    """
    period_return = div_trunc((current_pps - historical_pps) * WAD, historical_pps)
    return div_trunc(period_return * SECONDS_PER_YEAR, window_seconds)


def blended_apr(
    strategy_apr_wad: int | None,
    strategy_allocation: int | None,
    base_rate_apr_wad: int | None,
    total_principal_active: int | None,
) -> int | None:
    """Capital-weighted APR of the idle strategy and the lending book.

    Returns None when any input is unavailable or there is no capital to
    weight by.
    """
    if (
        strategy_apr_wad is None
        or strategy_allocation is None
        or base_rate_apr_wad is None
        or total_principal_active is None
    ):
        return None
    total_weight = strategy_allocation + total_principal_active
    if total_weight == 0:
        return None
    weighted = (
        strategy_apr_wad * strategy_allocation
        + base_rate_apr_wad * total_principal_active
    )
    return weighted // total_weight


# ---------------------------------------------------------------------------
# Formatting / parsing
# ---------------------------------------------------------------------------


def format_percent(wad: int | None) -> str:
    """Render a WAD ratio as a percent with two decimals.

    Examples:
        format_percent(5 * 10**16)  → "5.00%"
        format_percent(-123 * 10**14) → "-1.23%"
        format_percent(None) → "N/A"
    """
    if wad is None:
        return "N/A"
    sign = "-" if wad < 0 else ""
    hundredths = (abs(wad) * BPS) // WAD
    return f"{sign}{hundredths // 100}.{hundredths % 100:02d}%"


def format_bps_percent(bps: int | None) -> str:
    if bps is None or bps < 0:
        return "N/A"
    return f"{bps // 100}.{bps % 100:02d}% APR"


def format_amount(
    value: int | None, decimals: int = 18, fraction_digits: int = 4
) -> str:
    """Render a raw token amount, truncating (never rounding up) the fraction."""
    if value is None:
        return "-"
    sign = "-" if value < 0 else ""
    whole, fraction = divmod(abs(value), 10**decimals)
    if decimals == 0 or fraction_digits == 0:
        return f"{sign}{whole}"
    fraction_str = str(fraction).rjust(decimals, "0").rstrip("0")
    if not fraction_str:
        return f"{sign}{whole}"
    return f"{sign}{whole}.{fraction_str[:fraction_digits]}"


def parse_amount(text: str, decimals: int) -> int:
    """Parse a decimal amount string into raw token units.

    An empty string is zero; anything malformed is rejected.
    """
    normalized = text.strip()
    if not normalized:
        return 0
    if not _AMOUNT_RE.match(normalized) or normalized == ".":
        raise InvalidInputError(f"Amount '{text}' is not a valid decimal number")
    with localcontext() as ctx:
        ctx.prec = 120
        try:
            value = Decimal(normalized)
        except InvalidOperation as e:
            raise InvalidInputError(
                f"Amount '{text}' is not a valid decimal number"
            ) from e
        scaled = value.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise InvalidInputError(
            f"Amount '{text}' has more than {decimals} decimal places"
        )
    return int(scaled)


def format_timestamp(unix_seconds: int | None) -> str:
    if unix_seconds is None or unix_seconds <= 0:
        return "-"
    return datetime.fromtimestamp(unix_seconds, tz=timezone.utc).strftime(
        "%Y-%m-%d %H:%M:%S UTC"
    )


def short_address(address: str | None) -> str:
    if not address:
        return "Not set"
    return f"{address[:6]}...{address[-4:]}"
