"""External withdrawal queues that gate settlement of LST-backed positions."""
from __future__ import annotations

import logging
from typing import Protocol

from ..abi import ETHERFI_IS_FINALIZED, LIDO_GET_WITHDRAWAL_STATUS
from ..config import ContractsConfig, TokensConfig
from ..errors import ResolverError
from ..interfaces.chain import ChainClient
from ..models import WithdrawalQueueTicket, same_address

logger = logging.getLogger(__name__)


class WithdrawalQueueReader(Protocol):
    queue: str

    async def read_ticket(self, reference_id: int) -> WithdrawalQueueTicket: ...


class LidoWithdrawalQueueReader:
    """Lido ``WithdrawalQueueERC721`` request status."""

    queue = "lido"

    def __init__(self, chain_client: ChainClient, address: str) -> None:
        self._client = chain_client
        self._address = address

    async def read_ticket(self, reference_id: int) -> WithdrawalQueueTicket:
        try:
            statuses = await self._client.read_contract(
                self._address, LIDO_GET_WITHDRAWAL_STATUS, [[reference_id]]
            )
        except ResolverError as e:
            logger.warning("Lido request %d status unavailable: %s", reference_id, e)
            return WithdrawalQueueTicket(queue=self.queue, reference_id=reference_id)

        if not statuses:
            logger.warning("Lido returned no status for request %d", reference_id)
            return WithdrawalQueueTicket(queue=self.queue, reference_id=reference_id)

        _, _, _, timestamp, is_finalized, is_claimed = statuses[0]
        return WithdrawalQueueTicket(
            queue=self.queue,
            reference_id=reference_id,
            is_finalized=bool(is_finalized),
            is_claimed=bool(is_claimed),
            timestamp=timestamp,
        )


class EtherFiWithdrawRequestReader:
    """EtherFi ``WithdrawRequestNFT``; exposes finalization only."""

    queue = "etherfi"

    def __init__(self, chain_client: ChainClient, address: str) -> None:
        self._client = chain_client
        self._address = address

    async def read_ticket(self, reference_id: int) -> WithdrawalQueueTicket:
        try:
            finalized = await self._client.read_contract(
                self._address, ETHERFI_IS_FINALIZED, [reference_id]
            )
        except ResolverError as e:
            logger.warning("EtherFi request %d status unavailable: %s", reference_id, e)
            return WithdrawalQueueTicket(queue=self.queue, reference_id=reference_id)

        return WithdrawalQueueTicket(
            queue=self.queue,
            reference_id=reference_id,
            is_finalized=bool(finalized),
        )


def reader_for_collateral(
    chain_client: ChainClient,
    collateral_asset: str | None,
    contracts: ContractsConfig,
    tokens: TokensConfig,
) -> WithdrawalQueueReader | None:
    """Pick the queue that unwinds ``collateral_asset``: Lido for wstETH, EtherFi for weETH."""
    if same_address(collateral_asset, tokens.wsteth) and contracts.lido_withdrawal_queue:
        return LidoWithdrawalQueueReader(chain_client, contracts.lido_withdrawal_queue)
    if (
        same_address(collateral_asset, tokens.weeth)
        and contracts.etherfi_withdraw_request_nft
    ):
        return EtherFiWithdrawRequestReader(
            chain_client, contracts.etherfi_withdraw_request_nft
        )
    return None


async def read_ticket(
    reader: WithdrawalQueueReader | None, reference_id: int
) -> WithdrawalQueueTicket | None:
    """No queue, or reference id 0, means nothing is pending."""
    if reader is None or reference_id == 0:
        return None
    return await reader.read_ticket(reference_id)
