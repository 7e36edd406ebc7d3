"""Liquidity capping and action gating. Pure decision logic, no I/O.

Blocking reasons are always reported in a fixed priority order so the
presentation layer can show the most fundamental blocker first.
"""
from __future__ import annotations

from typing import Sequence

from .models import (
    AdapterStatus,
    GateDecision,
    MarketState,
    WithdrawalQueueTicket,
    same_address,
)

REASON_NO_LIQUIDITY = "Market liquidity is currently zero."
REASON_NOT_AUTHORIZED = (
    "Collateral approval or receiver authorization is missing."
)
REASON_ZERO_AMOUNT = "Enter a non-zero principal and collateral amount."
REASON_QUEUE_PENDING = "Withdrawal request is still waiting for finalization."
REASON_QUEUE_CLAIMED = "Withdrawal request has already been claimed."
REASON_QUEUE_UNKNOWN = "Withdrawal request status is unavailable."
REASON_NOT_OWNER = "Position is not owned by this wallet."


def cap_principal(requested: int, available_liquidity: int) -> int:
    return min(requested, available_liquidity)


def evaluate_open_gate(
    requested_principal: int,
    requested_collateral: int,
    available_liquidity: int,
    authorized: bool,
    route_issues: Sequence[str] = (),
) -> GateDecision:
    """Decide whether a position may be opened.

    Priority: zero liquidity > missing approval/authorization > unresolved
    route parameters (a zero amount first, then venue issues). A new position
    has no withdrawal request yet; queue readiness is checked at settlement.
    Principal above the available liquidity is capped and disclosed, not
    blocked.
    """
    reasons: list[str] = []
    if available_liquidity == 0:
        reasons.append(REASON_NO_LIQUIDITY)
    if not authorized:
        reasons.append(REASON_NOT_AUTHORIZED)
    if requested_principal == 0 or requested_collateral == 0:
        reasons.append(REASON_ZERO_AMOUNT)
    reasons.extend(route_issues)

    effective = cap_principal(requested_principal, available_liquidity)
    return GateDecision(
        requested_principal=requested_principal,
        effective_principal=effective,
        capped=effective < requested_principal,
        blocking_reasons=tuple(reasons),
    )


def settlement_queue_reason(ticket: WithdrawalQueueTicket | None) -> str | None:
    """Blocking reason for an external withdrawal request, if any."""
    if ticket is None or ticket.reference_id == 0:
        return None
    if ticket.is_finalized is None:
        return REASON_QUEUE_UNKNOWN
    if ticket.is_claimed:
        return REASON_QUEUE_CLAIMED
    if not ticket.is_finalized:
        return REASON_QUEUE_PENDING
    return None


def evaluate_settlement_gate(
    market_state: int | None,
    adapter_status: int | None,
    owner: str | None,
    wallet: str | None,
    ticket: WithdrawalQueueTicket | None,
    debt: int = 0,
) -> GateDecision:
    """Decide whether a position may be settled.

    Both lifecycle layers must agree: the market record Active and the
    adapter record Open. Priority: ownership > lifecycle > withdrawal queue.
    """
    reasons: list[str] = []
    if not same_address(owner, wallet):
        reasons.append(REASON_NOT_OWNER)

    if market_state != MarketState.ACTIVE or adapter_status != AdapterStatus.OPEN:
        reasons.append(
            "Position is not open for settlement "
            f"(market: {MarketState.label_for(market_state)}, "
            f"adapter: {AdapterStatus.label_for(adapter_status)})."
        )

    queue_reason = settlement_queue_reason(ticket)
    if queue_reason:
        reasons.append(queue_reason)

    return GateDecision(
        requested_principal=debt,
        effective_principal=debt,
        capped=False,
        blocking_reasons=tuple(reasons),
    )
