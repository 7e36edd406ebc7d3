"""Discover the position NFT ids a wallet holds from Transfer logs."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from ..abi import POSITION_NFT_OWNER_OF, TRANSFER_TOPIC, address_topic, topic_to_int
from ..errors import LogScanError, ResolverError, RpcError
from ..interfaces.chain import ChainClient
from ..models import LogEntry, ScanStatus, same_address

logger = logging.getLogger(__name__)

SCAN_FAILED_MESSAGE = "Could not load position IDs from logs. Try another RPC endpoint."


@dataclass(frozen=True)
class OwnershipScanResult:
    token_ids: tuple[int, ...]
    status: ScanStatus


class OwnershipLogScanner:
    """Walk Transfer logs backward from the chain head in adaptive windows.

    A log only proves the wallet received a token at some point, so every
    candidate id is confirmed with a point ``ownerOf`` read before it counts.
    When the provider rejects a window the chunk is halved and the same upper
    boundary retried, down to ``min_chunk``.
    """

    def __init__(
        self,
        client: ChainClient,
        nft_address: str,
        initial_chunk: int = 250_000,
        min_chunk: int = 2_000,
    ) -> None:
        self._client = client
        self._nft = nft_address
        self.initial_chunk = initial_chunk
        self.min_chunk = min_chunk

    async def scan(
        self, owner: str, expected: int, latest_block: int | None = None
    ) -> OwnershipScanResult:
        if expected <= 0:
            return OwnershipScanResult(
                token_ids=(), status=ScanStatus(found=0, expected=0, complete=True)
            )

        try:
            owned = await self._scan(owner, expected, latest_block)
        except (LogScanError, RpcError) as e:
            logger.error("Position id scan for %s failed: %s", owner, e)
            return OwnershipScanResult(
                token_ids=(),
                status=ScanStatus(
                    found=0,
                    expected=expected,
                    complete=False,
                    error=SCAN_FAILED_MESSAGE,
                ),
            )

        token_ids = tuple(sorted(owned, reverse=True))
        status = ScanStatus(
            found=len(token_ids),
            expected=expected,
            complete=len(token_ids) >= expected,
        )
        if not status.complete:
            logger.warning(status.message)
        return OwnershipScanResult(token_ids=token_ids, status=status)

    async def _scan(
        self, owner: str, expected: int, latest_block: int | None
    ) -> set[int]:
        if latest_block is None:
            latest_block = await self._client.get_latest_block_number()

        topics = [TRANSFER_TOPIC, None, address_topic(owner)]
        owned: set[int] = set()
        seen: set[int] = set()
        chunk = self.initial_chunk
        to_block = latest_block

        while to_block >= 0 and len(owned) < expected:
            from_block = max(0, to_block - chunk + 1)
            try:
                logs = await self._client.get_logs(self._nft, topics, from_block, to_block)
            except RpcError as e:
                if chunk > self.min_chunk:
                    chunk = max(self.min_chunk, chunk // 2)
                    logger.info(
                        "Log query %d-%d rejected (%s), retrying with %d blocks",
                        from_block,
                        to_block,
                        e,
                        chunk,
                    )
                    continue
                raise LogScanError(
                    f"Log query {from_block}-{to_block} failed at minimum chunk "
                    f"{self.min_chunk}: {e}"
                ) from e

            candidates = [tid for tid in _token_ids(logs) if tid not in seen]
            seen.update(candidates)
            if candidates:
                confirmed = await asyncio.gather(
                    *(self._owned_by(tid, owner) for tid in candidates)
                )
                owned.update(tid for tid, ok in zip(candidates, confirmed) if ok)

            logger.debug(
                "Scanned %d-%d: %d candidates, %d/%d owned",
                from_block,
                to_block,
                len(candidates),
                len(owned),
                expected,
            )
            if from_block == 0:
                break
            to_block = from_block - 1

        return owned

    async def _owned_by(self, token_id: int, owner: str) -> bool:
        try:
            current = await self._client.read_contract(
                self._nft, POSITION_NFT_OWNER_OF, [token_id]
            )
        except ResolverError as e:
            logger.debug("ownerOf(%d) failed, skipping: %s", token_id, e)
            return False
        return same_address(current, owner)


def _token_ids(logs: list[LogEntry]) -> list[int]:
    ids: list[int] = []
    for log in logs:
        if len(log.topics) < 4:
            continue
        token_id = topic_to_int(log.topics[3])
        if token_id not in ids:
            ids.append(token_id)
    return ids
