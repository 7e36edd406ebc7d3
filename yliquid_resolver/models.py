"""Frozen records for chain reads, positions, routes and yield."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def same_address(left: str | None, right: str | None) -> bool:
    """Case-insensitive address equality; an absent side never matches."""
    if not left or not right:
        return False
    return left.lower() == right.lower()


# ---------------------------------------------------------------------------
# Lifecycle enums
# ---------------------------------------------------------------------------


class MarketState(IntEnum):
    """Market-level position lifecycle (``positions(tokenId).state``)."""

    NONE = 0
    ACTIVE = 1
    READY = 2
    CLOSED = 3
    DEFAULTED = 4

    @classmethod
    def label_for(cls, raw: int | None) -> str:
        if raw is None:
            return "Unknown"
        try:
            member = cls(raw)
        except ValueError:
            return f"State {raw}"
        if member is cls.NONE:
            return f"State {raw}"
        return member.name.capitalize()


class AdapterStatus(IntEnum):
    """Adapter-level position lifecycle (``positionView(tokenId).status``)."""

    NONE = 0
    OPEN = 1
    CLOSED = 2

    @classmethod
    def label_for(cls, raw: int | None) -> str:
        if raw is None:
            return "Unknown"
        try:
            member = cls(raw)
        except ValueError:
            return f"Status {raw}"
        if member is cls.NONE:
            return f"Status {raw}"
        return member.name.capitalize()


class Venue(str, Enum):
    AAVE = "aave"
    MORPHO = "morpho"


# ---------------------------------------------------------------------------
# Chain primitives
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BlockRef:
    number: int
    timestamp: int


@dataclass(frozen=True)
class LogEntry:
    address: str
    topics: tuple[str, ...]
    data: str = "0x"
    block_number: int = 0
    transaction_hash: str = ""
    log_index: int = 0


# ---------------------------------------------------------------------------
# Position reads
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PositionSnapshot:
    """Adapter ``positionView`` result. Re-fetched on every pass."""

    token_id: int
    owner: str
    proxy_address: str
    loan_asset: str
    collateral_asset: str
    principal: int
    collateral_amount: int
    expected_unlock_time: int
    external_reference_id: int
    lifecycle_status: int


@dataclass(frozen=True)
class MarketPosition:
    """Market-level ``positions(tokenId)`` record."""

    owner: str
    adapter: str
    receiver: str
    principal: int
    opened_at: int
    expected_unlock_time: int
    state: int
    rate_bps: int


@dataclass(frozen=True)
class MarketRateState:
    base_rate_bps: int | None = None
    adapter_risk_premium_bps: int | None = None
    total_principal_active: int | None = None
    available_liquidity: int | None = None

    @property
    def borrow_rate_bps(self) -> int | None:
        if self.base_rate_bps is None:
            return None
        return self.base_rate_bps + (self.adapter_risk_premium_bps or 0)


@dataclass(frozen=True)
class VenuePosition:
    """Venue-agnostic borrow position, in raw token units."""

    venue: Venue
    collateral_balance: int
    debt_balance: int


@dataclass(frozen=True)
class AaveAccount:
    """Raw Aave balances: aToken collateral and variable-debt-token debt."""

    a_token_balance: int
    variable_debt_balance: int


@dataclass(frozen=True)
class MorphoAccount:
    """Raw Morpho Blue share accounting for one market."""

    supply_shares: int
    borrow_shares: int
    collateral: int
    total_borrow_assets: int
    total_borrow_shares: int


@dataclass(frozen=True)
class MorphoMarketParams:
    loan_token: str
    collateral_token: str
    oracle: str
    irm: str
    lltv: int


@dataclass(frozen=True)
class WithdrawalQueueTicket:
    """Polled state of an external withdrawal request.

    ``is_finalized`` / ``is_claimed`` are None when the read failed.
    """

    queue: str
    reference_id: int
    is_finalized: bool | None = None
    is_claimed: bool | None = None
    timestamp: int | None = None

    @property
    def ready(self) -> bool | None:
        if self.is_finalized is None:
            return None
        return self.is_finalized and not self.is_claimed

    @property
    def label(self) -> str:
        if self.reference_id == 0:
            return "-"
        if self.is_finalized is None:
            return "Unknown"
        if self.ready:
            return "Claimable"
        if self.is_claimed:
            return "Claimed"
        return "Pending Finalization"


# ---------------------------------------------------------------------------
# Derived results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScanStatus:
    found: int
    expected: int
    complete: bool
    error: str | None = None

    @property
    def shortfall(self) -> int:
        return max(0, self.expected - self.found)

    @property
    def message(self) -> str:
        if self.error:
            return self.error
        if not self.complete:
            return (
                f"Found {self.found}/{self.expected} position IDs. "
                "Your RPC may be limiting historical log queries."
            )
        return ""


@dataclass(frozen=True)
class GateDecision:
    requested_principal: int
    effective_principal: int
    capped: bool = False
    blocking_reasons: tuple[str, ...] = ()

    @property
    def actionable(self) -> bool:
        return not self.blocking_reasons


@dataclass(frozen=True)
class Unconfigured:
    """A feature whose required contracts are not set."""

    feature: str
    missing: tuple[str, ...]

    @property
    def instruction(self) -> str:
        keys = ", ".join(self.missing)
        return f"{self.feature} is not configured. Set {keys} in config.yaml."


class HistoryStatus(str, Enum):
    FOUND = "found"
    INSUFFICIENT_HISTORY = "insufficient_history"
    NOT_LIVE = "not_live"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class HistoricalApr:
    apr_wad: int | None
    status: HistoryStatus = HistoryStatus.FOUND
    note: str = ""
    block: BlockRef | None = None


@dataclass(frozen=True)
class VaultHoldings:
    share_balance: int | None
    assets: int | None
    max_withdraw: int | None


@dataclass(frozen=True)
class YieldSummary:
    asset_symbol: str
    asset_decimals: int
    strategy_apr_wad: int | None
    base_rate_apr_wad: int | None
    estimated_apr_wad: int | None
    historical: HistoricalApr
    strategy_allocation: int | None = None
    total_principal_active: int | None = None
    holdings: VaultHoldings | None = None
    unavailable: tuple[str, ...] = ()


@dataclass(frozen=True)
class PositionResolution:
    token_id: int
    market_state: int | None
    adapter_status: int | None
    owner: str | None
    debt: int | None
    snapshot: PositionSnapshot | None
    unlock_time: int | None
    ticket: WithdrawalQueueTicket | None
    settlement: GateDecision
    loan_symbol: str = "Loan"
    loan_decimals: int = 18
    collateral_symbol: str = "Collateral"
    collateral_decimals: int = 18
    unavailable: tuple[str, ...] = ()


@dataclass(frozen=True)
class RouteResolution:
    route_id: str
    venue: Venue
    rates: MarketRateState
    position: VenuePosition | None
    collateral_decimals: int
    loan_decimals: int
    suggested_principal: int
    suggested_collateral: int
    gate: GateDecision
    collateral_token: str | None = None
    allowance: int | None = None
    authorized: bool | None = None
    route_issues: tuple[str, ...] = ()
    unavailable: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class VenueRouteState:
    """What one lending venue reports for a route and wallet."""

    venue: Venue
    position: VenuePosition | None = None
    collateral_decimals: int | None = None
    collateral_token: str | None = None
    allowance: int | None = None
    authorized: bool | None = None
    market_params: MorphoMarketParams | None = None
    route_issues: tuple[str, ...] = ()
    unavailable: tuple[str, ...] = ()

    def authorizes(self, collateral_amount: int) -> bool:
        """Whether the receiver may pull ``collateral_amount`` right now.

        Aave receivers pull aTokens through an ERC20 allowance; Morpho
        receivers act through ``setAuthorization``. Unknown state never
        authorizes.
        """
        if self.venue is Venue.AAVE:
            if collateral_amount == 0:
                return True
            return self.allowance is not None and self.allowance >= collateral_amount
        return self.authorized is True
