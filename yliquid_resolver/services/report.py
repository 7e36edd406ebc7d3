"""Plain-text rendering of resolution results for the CLI."""
from __future__ import annotations

from ..fixed_point import (
    format_amount,
    format_bps_percent,
    format_percent,
    format_timestamp,
    short_address,
)
from ..models import (
    AdapterStatus,
    GateDecision,
    MarketState,
    PositionResolution,
    RouteResolution,
    Unconfigured,
    YieldSummary,
)
from .resolver import SettlementResult, WalletPositions


def _gate_lines(gate: GateDecision, action: str) -> list[str]:
    if gate.actionable:
        return [f"✅ {action}: ready"]
    lines = [f"⛔ {action}: blocked"]
    lines.extend(f"  - {reason}" for reason in gate.blocking_reasons)
    return lines


def _unavailable_line(fields: tuple[str, ...]) -> list[str]:
    if not fields:
        return []
    return [f"Unavailable: {', '.join(fields)}"]


def render_unconfigured(result: Unconfigured) -> str:
    return f"⚙️ {result.instruction}"


def render_position(position: PositionResolution) -> str:
    snapshot = position.snapshot
    loan = position.loan_symbol
    collateral = position.collateral_symbol
    ticket = position.ticket

    lines = [
        f"Position #{position.token_id} · "
        f"{MarketState.label_for(position.market_state)} / "
        f"{AdapterStatus.label_for(position.adapter_status)}",
        f"  Owner: {short_address(position.owner)}",
        f"  Proxy: {short_address(snapshot.proxy_address if snapshot else None)}",
        f"  Principal: "
        f"{format_amount(snapshot.principal if snapshot else None, position.loan_decimals, 6)} {loan}",
        f"  Collateral: "
        f"{format_amount(snapshot.collateral_amount if snapshot else None, position.collateral_decimals, 6)} "
        f"{collateral}",
        f"  Debt Quote: {format_amount(position.debt, position.loan_decimals, 6)} {loan}",
        f"  Expected Finalization: {format_timestamp(position.unlock_time)}",
    ]
    if ticket is not None:
        lines.append(
            f"  {ticket.queue.capitalize()} Request #{ticket.reference_id}: {ticket.label}"
        )
    lines.extend("  " + line for line in _gate_lines(position.settlement, "Settle"))
    lines.extend("  " + line for line in _unavailable_line(position.unavailable))
    return "\n".join(lines)


def render_wallet_positions(result: WalletPositions | Unconfigured) -> str:
    if isinstance(result, Unconfigured):
        return render_unconfigured(result)

    header = f"━━ Positions for {short_address(result.wallet)} ━━"
    sections = [header]
    if result.scan.message:
        sections.append(f"⚠️ {result.scan.message}")
    if result.manual_ids:
        sections.append(
            "Tracked manually: " + ", ".join(f"#{tid}" for tid in result.manual_ids)
        )
    if not result.positions:
        sections.append("No positions found.")
    sections.extend(render_position(p) for p in result.positions)
    return "\n\n".join(sections)


def render_yield(summary: YieldSummary | Unconfigured) -> str:
    if isinstance(summary, Unconfigured):
        return render_unconfigured(summary)

    historical = summary.historical
    historical_text = format_percent(historical.apr_wad)
    if historical.note:
        historical_text = historical.note

    lines = [
        f"━━ Vault Yield ({summary.asset_symbol}) ━━",
        f"Strategy APR: {format_percent(summary.strategy_apr_wad)}",
        f"Base Rate APR: {format_percent(summary.base_rate_apr_wad)}",
        f"Estimated APR: {format_percent(summary.estimated_apr_wad)}",
        f"Historical APR: {historical_text}",
    ]
    holdings = summary.holdings
    if holdings is not None:
        decimals = summary.asset_decimals
        lines.extend(
            [
                f"Shares: {format_amount(holdings.share_balance, decimals)}",
                f"Value: {format_amount(holdings.assets, decimals)} {summary.asset_symbol}",
                f"Max Withdraw: "
                f"{format_amount(holdings.max_withdraw, decimals)} {summary.asset_symbol}",
            ]
        )
    lines.extend(_unavailable_line(summary.unavailable))
    return "\n".join(lines)


def render_route(result: RouteResolution | Unconfigured, label: str = "") -> str:
    if isinstance(result, Unconfigured):
        return render_unconfigured(result)

    rates = result.rates
    position = result.position
    gate = result.gate
    lines = [
        f"━━ {label or result.route_id} ({result.venue.value}) ━━",
        f"Borrow Rate: {format_bps_percent(rates.borrow_rate_bps)}",
        f"Available Liquidity: "
        f"{format_amount(rates.available_liquidity, result.loan_decimals)} WETH",
        f"Collateral Token: {short_address(result.collateral_token)}",
    ]
    if position is not None:
        lines.extend(
            [
                f"Venue Collateral: "
                f"{format_amount(position.collateral_balance, result.collateral_decimals)}",
                f"Venue Debt: {format_amount(position.debt_balance, result.loan_decimals)} WETH",
            ]
        )
    lines.extend(
        [
            f"Suggested Collateral: "
            f"{format_amount(result.suggested_collateral, result.collateral_decimals)}",
            f"Suggested Principal: "
            f"{format_amount(result.suggested_principal, result.loan_decimals)} WETH",
        ]
    )
    if gate.capped:
        lines.append(
            f"Principal capped to available liquidity: "
            f"{format_amount(gate.effective_principal, result.loan_decimals)} WETH"
        )
    lines.extend(_gate_lines(gate, "Open"))
    lines.extend(_unavailable_line(result.unavailable))
    return "\n".join(lines)


def render_settlement(result: SettlementResult | Unconfigured, explorer_url: str) -> str:
    if isinstance(result, Unconfigured):
        return render_unconfigured(result)
    if result.submitted:
        return (
            f"✅ Settlement of #{result.token_id} submitted\n"
            f"{explorer_url}/tx/{result.tx_hash}"
        )
    return "\n".join(_gate_lines(result.decision, f"Settle #{result.token_id}"))
