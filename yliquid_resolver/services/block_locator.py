"""Historical block lookup by timestamp, and the trailing-window vault APR."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from ..abi import VAULT_PRICE_PER_SHARE
from ..errors import ResolverError
from ..fixed_point import SECONDS_PER_DAY, annualized_apr
from ..interfaces.chain import ChainClient
from ..models import BlockRef, HistoricalApr, HistoryStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlockSearchResult:
    status: HistoryStatus
    block: BlockRef | None = None
    target_timestamp: int | None = None
    probes: int = 0


class HistoricalBlockLocator:
    """Find the latest block whose timestamp is at or before a target age."""

    def __init__(self, client: ChainClient) -> None:
        self._client = client

    async def locate(self, window_seconds: int, latest: BlockRef) -> BlockSearchResult:
        """Binary-search block numbers in ``[0, latest.number]``.

        Among blocks sharing a timestamp the highest number wins. Each probe
        depends on the previous bound update, so probes run sequentially.
        """
        if latest.timestamp <= window_seconds:
            return BlockSearchResult(status=HistoryStatus.INSUFFICIENT_HISTORY)

        target_timestamp = latest.timestamp - window_seconds
        low, high = 0, latest.number
        best = BlockRef(number=0, timestamp=0)
        found = False
        probes = 0

        while low <= high:
            middle = (low + high) // 2
            block = await self._client.get_block(middle)
            probes += 1

            if block.timestamp <= target_timestamp:
                best = block
                found = True
                low = middle + 1
            else:
                high = middle - 1

        if not found:
            # Even genesis is newer than the target; fall back to block 0 and
            # let the deployment check decide.
            best = await self._client.get_block(0)
            probes += 1

        logger.debug(
            "Located block %d (ts=%d) for target %d in %d probes",
            best.number,
            best.timestamp,
            target_timestamp,
            probes,
        )
        return BlockSearchResult(
            status=HistoryStatus.FOUND,
            block=best,
            target_timestamp=target_timestamp,
            probes=probes,
        )


class HistoricalAprResolver:
    """Trailing-window APR from the vault's price-per-share history."""

    def __init__(self, client: ChainClient, window_seconds: int) -> None:
        self._client = client
        self._locator = HistoricalBlockLocator(client)
        self.window_seconds = window_seconds

    @property
    def _window_label(self) -> str:
        days, rest = divmod(self.window_seconds, SECONDS_PER_DAY)
        if rest:
            return f"{self.window_seconds} seconds"
        return f"{days} day" if days == 1 else f"{days} days"

    @property
    def _window_tag(self) -> str:
        days, rest = divmod(self.window_seconds, SECONDS_PER_DAY)
        return f"{self.window_seconds}s" if rest else f"{days}D"

    async def resolve(self, vault: str) -> HistoricalApr:
        try:
            return await self._resolve(vault)
        except ResolverError as e:
            logger.warning("Historical APR unavailable for %s: %s", vault, e)
            return HistoricalApr(
                apr_wad=None,
                status=HistoryStatus.UNAVAILABLE,
                note=f"N/A: unable to read {self._window_tag} PPS history from RPC.",
            )

    async def _resolve(self, vault: str) -> HistoricalApr:
        latest_number = await self._client.get_latest_block_number()
        latest = await self._client.get_block(latest_number)

        search = await self._locator.locate(self.window_seconds, latest)
        if search.status is HistoryStatus.INSUFFICIENT_HISTORY:
            return HistoricalApr(
                apr_wad=None,
                status=HistoryStatus.INSUFFICIENT_HISTORY,
                note=f"N/A: vault has less than {self._window_label} of chain history.",
            )

        block = search.block
        not_live = HistoricalApr(
            apr_wad=None,
            status=HistoryStatus.NOT_LIVE,
            note=f"N/A: vault has not been live for {self._window_label} yet.",
            block=block,
        )

        code = await self._client.get_code(vault, block.number)
        if not code:
            return not_live

        current_pps, historical_pps = await asyncio.gather(
            self._client.read_contract(vault, VAULT_PRICE_PER_SHARE),
            self._client.read_contract(
                vault, VAULT_PRICE_PER_SHARE, block_number=block.number
            ),
        )
        if historical_pps == 0:
            return not_live

        return HistoricalApr(
            apr_wad=annualized_apr(current_pps, historical_pps, self.window_seconds),
            status=HistoryStatus.FOUND,
            block=block,
        )
