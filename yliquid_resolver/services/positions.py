"""Per-position reconciliation: market record, adapter view, debt, queue ticket."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..abi import (
    ADAPTER_POSITION_VIEW,
    ERC20_DECIMALS,
    ERC20_SYMBOL,
    MARKET_POSITION_NFT,
    MARKET_POSITIONS,
    MARKET_QUOTE_DEBT,
    POSITION_NFT_OWNER_OF,
)
from ..config import AppConfig, ContractsConfig
from ..gate import evaluate_settlement_gate
from ..interfaces.chain import ChainClient
from ..models import (
    ZERO_ADDRESS,
    MarketPosition,
    PositionResolution,
    PositionSnapshot,
    same_address,
)
from ..protocols.withdrawal_queues import read_ticket, reader_for_collateral
from ..reads import ReadTracker

logger = logging.getLogger(__name__)


def parse_market_position(raw: Any) -> MarketPosition | None:
    if raw is None:
        return None
    owner, adapter, receiver, principal, opened_at, unlock, state, rate_bps = raw
    return MarketPosition(
        owner=owner,
        adapter=adapter,
        receiver=receiver,
        principal=principal,
        opened_at=opened_at,
        expected_unlock_time=unlock,
        state=state,
        rate_bps=rate_bps,
    )


def parse_position_view(token_id: int, raw: Any) -> PositionSnapshot | None:
    if raw is None:
        return None
    (
        owner,
        proxy,
        loan_asset,
        collateral_asset,
        principal,
        collateral_amount,
        unlock,
        reference_id,
        status,
    ) = raw
    return PositionSnapshot(
        token_id=token_id,
        owner=owner,
        proxy_address=proxy,
        loan_asset=loan_asset,
        collateral_asset=collateral_asset,
        principal=principal,
        collateral_amount=collateral_amount,
        expected_unlock_time=unlock,
        external_reference_id=reference_id,
        lifecycle_status=status,
    )


def _present(address: str | None) -> str | None:
    if not address or same_address(address, ZERO_ADDRESS):
        return None
    return address


async def position_nft_address(
    reads: ReadTracker, contracts: ContractsConfig
) -> str | None:
    """Configured position NFT, else the one the market reports."""
    if contracts.position_nft:
        return contracts.position_nft
    return await reads.read(
        "position_nft", contracts.yliquid_market, MARKET_POSITION_NFT
    )


class PositionReconciler:
    """Assemble one position from the market, the NFT, the adapter and the queue.

    Reads that do not depend on each other run concurrently; the adapter view
    needs the adapter address from the market record, and the token metadata
    and queue ticket need the adapter view.
    """

    def __init__(self, chain_client: ChainClient, config: AppConfig) -> None:
        self._client = chain_client
        self._config = config

    async def resolve(
        self,
        token_id: int,
        wallet: str | None,
        adapter_hint: str | None = None,
    ) -> PositionResolution:
        contracts = self._config.contracts
        reads = ReadTracker(self._client)

        async def nft_owner_of() -> str | None:
            nft = await position_nft_address(reads, contracts)
            return await reads.read("owner", nft, POSITION_NFT_OWNER_OF, [token_id])

        raw_position, debt, nft_owner = await asyncio.gather(
            reads.read("market_position", contracts.yliquid_market, MARKET_POSITIONS, [token_id]),
            reads.read("debt", contracts.yliquid_market, MARKET_QUOTE_DEBT, [token_id]),
            nft_owner_of(),
        )
        market_position = parse_market_position(raw_position)

        adapter = _present(market_position.adapter if market_position else None)
        adapter = adapter or adapter_hint
        snapshot = parse_position_view(
            token_id,
            await reads.read("position_view", adapter, ADAPTER_POSITION_VIEW, [token_id]),
        )

        loan_asset = _present(snapshot.loan_asset) if snapshot else None
        collateral_asset = _present(snapshot.collateral_asset) if snapshot else None
        queue_reader = reader_for_collateral(
            self._client, collateral_asset, contracts, self._config.tokens
        )
        reference_id = snapshot.external_reference_id if snapshot else 0

        (
            loan_symbol,
            loan_decimals,
            collateral_symbol,
            collateral_decimals,
            ticket,
        ) = await asyncio.gather(
            reads.read("loan_symbol", loan_asset, ERC20_SYMBOL),
            reads.read("loan_decimals", loan_asset, ERC20_DECIMALS),
            reads.read("collateral_symbol", collateral_asset, ERC20_SYMBOL),
            reads.read("collateral_decimals", collateral_asset, ERC20_DECIMALS),
            read_ticket(queue_reader, reference_id),
        )

        owner = nft_owner or (snapshot.owner if snapshot else None)
        market_state = market_position.state if market_position else None
        adapter_status = snapshot.lifecycle_status if snapshot else None
        unlock_time = None
        if snapshot and snapshot.expected_unlock_time:
            unlock_time = snapshot.expected_unlock_time
        elif market_position:
            unlock_time = market_position.expected_unlock_time

        settlement = evaluate_settlement_gate(
            market_state, adapter_status, owner, wallet, ticket, debt or 0
        )
        if reads.unavailable:
            logger.info(
                "Position #%d resolved with unavailable fields: %s",
                token_id,
                ", ".join(reads.unavailable),
            )

        return PositionResolution(
            token_id=token_id,
            market_state=market_state,
            adapter_status=adapter_status,
            owner=owner,
            debt=debt,
            snapshot=snapshot,
            unlock_time=unlock_time,
            ticket=ticket,
            settlement=settlement,
            loan_symbol=loan_symbol or "Loan",
            loan_decimals=loan_decimals if loan_decimals is not None else 18,
            collateral_symbol=collateral_symbol or "Collateral",
            collateral_decimals=(
                collateral_decimals if collateral_decimals is not None else 18
            ),
            unavailable=tuple(reads.unavailable),
        )
