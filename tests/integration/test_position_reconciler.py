"""Integration tests for per-position reconciliation and the settlement gate."""
from __future__ import annotations

from dataclasses import replace

import pytest

from yliquid_resolver.abi import (
    ADAPTER_POSITION_VIEW,
    ERC20_DECIMALS,
    ERC20_SYMBOL,
    ETHERFI_IS_FINALIZED,
    LIDO_GET_WITHDRAWAL_STATUS,
    MARKET_POSITION_NFT,
    MARKET_POSITIONS,
    MARKET_QUOTE_DEBT,
    POSITION_NFT_OWNER_OF,
)
from yliquid_resolver.errors import RpcError
from yliquid_resolver.gate import (
    REASON_NOT_OWNER,
    REASON_QUEUE_CLAIMED,
    REASON_QUEUE_PENDING,
    REASON_QUEUE_UNKNOWN,
)
from yliquid_resolver.models import AdapterStatus, MarketState
from yliquid_resolver.services.positions import (
    PositionReconciler,
    parse_market_position,
    parse_position_view,
)

TOKEN_ID = 42
REQUEST_ID = 77
DEBT = 1_010_000_000_000_000_000
LIDO_REQUESTER = "0x" + "cd" * 20


def _market_position(addrs, state=MarketState.ACTIVE, adapter=None, unlock=2_000):
    return (
        addrs.wallet,
        adapter or addrs.wsteth_adapter,
        addrs.aave_receiver,
        10**18,
        1_000,
        unlock,
        int(state),
        450,
    )


def _view(addrs, collateral=None, unlock=3_000, reference_id=REQUEST_ID, status=1):
    return (
        addrs.wallet,
        addrs.proxy,
        addrs.weth,
        collateral or addrs.wsteth,
        10**18,
        2 * 10**18,
        unlock,
        reference_id,
        status,
    )


def _lido_status(finalized: bool, claimed: bool):
    return [(10**18, 9 * 10**17, LIDO_REQUESTER, 1_700_000_000, finalized, claimed)]


@pytest.fixture()
def chain(fake_chain, addrs):
    """An active, open, wstETH-backed position with a claimable Lido request."""
    fake_chain.set_read(addrs.market, MARKET_POSITIONS, [TOKEN_ID], _market_position(addrs))
    fake_chain.set_read(addrs.market, MARKET_QUOTE_DEBT, [TOKEN_ID], DEBT)
    fake_chain.set_read(addrs.nft, POSITION_NFT_OWNER_OF, [TOKEN_ID], addrs.wallet)
    fake_chain.set_read(addrs.wsteth_adapter, ADAPTER_POSITION_VIEW, [TOKEN_ID], _view(addrs))
    fake_chain.set_read(addrs.weth, ERC20_SYMBOL, (), "WETH")
    fake_chain.set_read(addrs.weth, ERC20_DECIMALS, (), 18)
    fake_chain.set_read(addrs.wsteth, ERC20_SYMBOL, (), "wstETH")
    fake_chain.set_read(addrs.wsteth, ERC20_DECIMALS, (), 18)
    fake_chain.set_read(
        addrs.lido_queue,
        LIDO_GET_WITHDRAWAL_STATUS,
        [[REQUEST_ID]],
        _lido_status(finalized=True, claimed=False),
    )
    return fake_chain


@pytest.fixture()
def reconciler(chain, app_config) -> PositionReconciler:
    return PositionReconciler(chain, app_config)


class TestParsers:
    def test_parse_market_position(self, addrs) -> None:
        position = parse_market_position(_market_position(addrs))
        assert position.adapter == addrs.wsteth_adapter
        assert position.expected_unlock_time == 2_000
        assert position.state == MarketState.ACTIVE
        assert position.rate_bps == 450

    def test_parse_position_view(self, addrs) -> None:
        snapshot = parse_position_view(TOKEN_ID, _view(addrs))
        assert snapshot.token_id == TOKEN_ID
        assert snapshot.proxy_address == addrs.proxy
        assert snapshot.collateral_amount == 2 * 10**18
        assert snapshot.external_reference_id == REQUEST_ID
        assert snapshot.lifecycle_status == AdapterStatus.OPEN

    def test_missing_reads_parse_to_none(self) -> None:
        assert parse_market_position(None) is None
        assert parse_position_view(TOKEN_ID, None) is None


class TestPositionReconciler:
    @pytest.mark.asyncio
    async def test_settleable_position(self, reconciler, addrs) -> None:
        result = await reconciler.resolve(TOKEN_ID, addrs.wallet)

        assert result.market_state == MarketState.ACTIVE
        assert result.adapter_status == AdapterStatus.OPEN
        assert result.owner == addrs.wallet
        assert result.debt == DEBT
        assert result.unlock_time == 3_000
        assert result.loan_symbol == "WETH"
        assert result.collateral_symbol == "wstETH"
        assert result.ticket.queue == "lido"
        assert result.ticket.label == "Claimable"
        assert result.settlement.actionable is True
        assert result.settlement.effective_principal == DEBT
        assert result.unavailable == ()

    @pytest.mark.asyncio
    async def test_pending_withdrawal_blocks(self, reconciler, chain, addrs) -> None:
        chain.set_read(
            addrs.lido_queue,
            LIDO_GET_WITHDRAWAL_STATUS,
            [[REQUEST_ID]],
            _lido_status(finalized=False, claimed=False),
        )

        result = await reconciler.resolve(TOKEN_ID, addrs.wallet)

        assert result.settlement.blocking_reasons == (REASON_QUEUE_PENDING,)
        assert result.ticket.label == "Pending Finalization"

    @pytest.mark.asyncio
    async def test_claimed_withdrawal_blocks(self, reconciler, chain, addrs) -> None:
        chain.set_read(
            addrs.lido_queue,
            LIDO_GET_WITHDRAWAL_STATUS,
            [[REQUEST_ID]],
            _lido_status(finalized=True, claimed=True),
        )

        result = await reconciler.resolve(TOKEN_ID, addrs.wallet)

        assert result.settlement.blocking_reasons == (REASON_QUEUE_CLAIMED,)

    @pytest.mark.asyncio
    async def test_unreadable_queue_blocks_with_distinct_reason(
        self, reconciler, chain, addrs
    ) -> None:
        chain.set_read(
            addrs.lido_queue,
            LIDO_GET_WITHDRAWAL_STATUS,
            [[REQUEST_ID]],
            RpcError("upstream timeout"),
        )

        result = await reconciler.resolve(TOKEN_ID, addrs.wallet)

        assert result.ticket.is_finalized is None
        assert result.ticket.label == "Unknown"
        assert result.settlement.blocking_reasons == (REASON_QUEUE_UNKNOWN,)

    @pytest.mark.asyncio
    async def test_other_wallet_is_blocked_first(self, reconciler, chain, addrs) -> None:
        chain.set_read(
            addrs.market,
            MARKET_POSITIONS,
            [TOKEN_ID],
            _market_position(addrs, state=MarketState.CLOSED),
        )

        result = await reconciler.resolve(TOKEN_ID, addrs.other)

        reasons = result.settlement.blocking_reasons
        assert reasons[0] == REASON_NOT_OWNER
        assert "market: Closed" in reasons[1]
        assert len(reasons) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "state,status",
        [
            (MarketState.READY, 1),
            (MarketState.DEFAULTED, 1),
            (MarketState.ACTIVE, 2),
            (MarketState.ACTIVE, 0),
        ],
    )
    async def test_both_lifecycles_must_agree(
        self, reconciler, chain, addrs, state, status
    ) -> None:
        chain.set_read(
            addrs.market, MARKET_POSITIONS, [TOKEN_ID], _market_position(addrs, state=state)
        )
        chain.set_read(
            addrs.wsteth_adapter, ADAPTER_POSITION_VIEW, [TOKEN_ID], _view(addrs, status=status)
        )

        result = await reconciler.resolve(TOKEN_ID, addrs.wallet)

        assert result.settlement.actionable is False
        assert result.settlement.blocking_reasons[0].startswith(
            "Position is not open for settlement"
        )

    @pytest.mark.asyncio
    async def test_owner_falls_back_to_adapter_view(self, reconciler, chain, addrs) -> None:
        chain.set_read(
            addrs.nft, POSITION_NFT_OWNER_OF, [TOKEN_ID], RpcError("ownerOf failed")
        )

        result = await reconciler.resolve(TOKEN_ID, addrs.wallet)

        assert result.owner == addrs.wallet
        assert result.unavailable == ("owner",)
        assert result.settlement.actionable is True

    @pytest.mark.asyncio
    async def test_owner_read_from_market_reported_nft(
        self, chain, app_config, addrs
    ) -> None:
        config = replace(app_config, contracts=replace(app_config.contracts, position_nft=None))
        chain.set_read(addrs.market, MARKET_POSITION_NFT, (), addrs.nft)
        chain.set_read(addrs.nft, POSITION_NFT_OWNER_OF, [TOKEN_ID], addrs.other)

        result = await PositionReconciler(chain, config).resolve(TOKEN_ID, addrs.wallet)

        assert result.owner == addrs.other
        assert result.settlement.blocking_reasons == (REASON_NOT_OWNER,)

    @pytest.mark.asyncio
    async def test_unresolvable_nft_marks_owner_unavailable(
        self, chain, app_config, addrs
    ) -> None:
        config = replace(app_config, contracts=replace(app_config.contracts, position_nft=None))

        result = await PositionReconciler(chain, config).resolve(TOKEN_ID, addrs.wallet)

        assert "position_nft" in result.unavailable
        assert "owner" in result.unavailable
        assert result.owner == addrs.wallet

    @pytest.mark.asyncio
    async def test_unlock_falls_back_to_market_record(
        self, reconciler, chain, addrs
    ) -> None:
        chain.set_read(
            addrs.wsteth_adapter, ADAPTER_POSITION_VIEW, [TOKEN_ID], _view(addrs, unlock=0)
        )

        result = await reconciler.resolve(TOKEN_ID, addrs.wallet)

        assert result.unlock_time == 2_000

    @pytest.mark.asyncio
    async def test_adapter_hint_used_without_market_record(
        self, fake_chain, app_config, addrs
    ) -> None:
        fake_chain.set_read(addrs.nft, POSITION_NFT_OWNER_OF, [TOKEN_ID], addrs.wallet)
        fake_chain.set_read(
            addrs.weeth_adapter,
            ADAPTER_POSITION_VIEW,
            [TOKEN_ID],
            _view(addrs, collateral=addrs.weeth, reference_id=0),
        )

        result = await PositionReconciler(fake_chain, app_config).resolve(
            TOKEN_ID, addrs.wallet, adapter_hint=addrs.weeth_adapter
        )

        assert result.snapshot is not None
        assert result.market_state is None
        assert result.unlock_time == 3_000
        assert result.ticket is None
        assert "market_position" in result.unavailable
        assert "debt" in result.unavailable
        assert result.settlement.actionable is False

    @pytest.mark.asyncio
    async def test_etherfi_queue_for_weeth_collateral(
        self, reconciler, chain, addrs
    ) -> None:
        chain.set_read(
            addrs.wsteth_adapter,
            ADAPTER_POSITION_VIEW,
            [TOKEN_ID],
            _view(addrs, collateral=addrs.weeth),
        )
        chain.set_read(addrs.etherfi_nft, ETHERFI_IS_FINALIZED, [REQUEST_ID], False)

        result = await reconciler.resolve(TOKEN_ID, addrs.wallet)

        assert result.ticket.queue == "etherfi"
        assert result.settlement.blocking_reasons == (REASON_QUEUE_PENDING,)
        # weETH metadata was never registered.
        assert result.collateral_symbol == "Collateral"
        assert result.collateral_decimals == 18
        assert "collateral_symbol" in result.unavailable

    @pytest.mark.asyncio
    async def test_zero_reference_id_has_no_ticket(self, reconciler, chain, addrs) -> None:
        chain.set_read(
            addrs.wsteth_adapter,
            ADAPTER_POSITION_VIEW,
            [TOKEN_ID],
            _view(addrs, reference_id=0),
        )

        result = await reconciler.resolve(TOKEN_ID, addrs.wallet)

        assert result.ticket is None
        assert (addrs.lido_queue, "getWithdrawalStatus") not in chain.read_requests
        assert result.settlement.actionable is True

    @pytest.mark.asyncio
    async def test_nothing_readable(self, fake_chain, app_config, addrs) -> None:
        result = await PositionReconciler(fake_chain, app_config).resolve(
            TOKEN_ID, addrs.wallet
        )

        assert result.snapshot is None
        assert result.owner is None
        assert result.debt is None
        assert result.loan_symbol == "Loan"
        assert result.settlement.effective_principal == 0
        assert result.settlement.blocking_reasons[0] == REASON_NOT_OWNER
