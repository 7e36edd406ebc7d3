"""Resolution orchestrator: input validation, wallet passes, tracked ids, settlement."""
from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, replace

from eth_utils import is_address, to_checksum_address

from ..abi import MARKET_SETTLE_AND_REPAY, POSITION_NFT_BALANCE_OF
from ..chains.evm import EvmClient
from ..config import AppConfig, RouteConfig
from ..errors import InvalidInputError
from ..fixed_point import parse_amount
from ..interfaces.chain import ChainClient
from ..interfaces.tracked_ids import TrackedIdRepository
from ..models import (
    ZERO_ADDRESS,
    GateDecision,
    PositionResolution,
    RouteResolution,
    ScanStatus,
    Unconfigured,
    YieldSummary,
)
from ..reads import ReadTracker
from ..storage import JsonTrackedIdRepository, add_tracked, manual_only, remove_tracked
from .generation import GenerationCounter
from .log_scanner import OwnershipLogScanner
from .positions import PositionReconciler, position_nft_address
from .routes import RouteReconciler
from .yields import YieldReconciler

logger = logging.getLogger(__name__)

_BYTES32_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")

# WETH and every supported collateral token (wstETH, weETH and their aTokens)
# use 18 decimals.
AMOUNT_DECIMALS = 18


def parse_address(text: str | None) -> str:
    value = (text or "").strip()
    if not value:
        raise InvalidInputError("Address is required")
    if not is_address(value.lower()):
        raise InvalidInputError(f"'{value}' is not a valid address")
    if value.lower() == ZERO_ADDRESS:
        raise InvalidInputError("The zero address is not a valid wallet")
    return to_checksum_address(value.lower())


def parse_market_id(text: str | None) -> str:
    value = (text or "").strip()
    if not _BYTES32_RE.match(value):
        raise InvalidInputError("Morpho market ID must be a valid bytes32 value.")
    return value.lower()


def parse_token_id(text: str | int) -> int:
    if isinstance(text, bool):
        raise InvalidInputError(f"'{text}' is not a valid position id")
    if isinstance(text, int):
        token_id = text
    else:
        value = text.strip().lstrip("#")
        if not value.isdigit():
            raise InvalidInputError(f"'{text}' is not a valid position id")
        token_id = int(value)
    if token_id <= 0:
        raise InvalidInputError("Position id must be a positive integer")
    return token_id


@dataclass(frozen=True)
class WalletPositions:
    wallet: str
    owned_ids: tuple[int, ...]
    manual_ids: tuple[int, ...]
    scan: ScanStatus
    positions: tuple[PositionResolution, ...]


@dataclass(frozen=True)
class WalletView:
    generation: int
    positions: WalletPositions | Unconfigured
    yields: YieldSummary | Unconfigured


@dataclass(frozen=True)
class SettlementResult:
    token_id: int
    decision: GateDecision
    tx_hash: str | None = None

    @property
    def submitted(self) -> bool:
        return self.tx_hash is not None


class Resolver:
    """Entry point that ties the reconcilers, scanner and tracked ids together."""

    def __init__(
        self,
        config: AppConfig,
        chain_client: ChainClient | None = None,
        repository: TrackedIdRepository | None = None,
    ) -> None:
        self._config = config
        self._client = chain_client or EvmClient(config.chain)
        self._repository = repository or JsonTrackedIdRepository(
            config.storage.tracked_ids_path, config.storage.slot
        )
        self._positions = PositionReconciler(self._client, config)
        self._routes = RouteReconciler(self._client, config)
        self._yields = YieldReconciler(self._client, config)
        self._generation = GenerationCounter()
        self._task: asyncio.Task | None = None
        self.latest: WalletView | None = None

    def _wallet(self, wallet: str | None) -> str:
        return parse_address(wallet or self._config.wallet)

    def _optional_wallet(self, wallet: str | None) -> str | None:
        if not wallet and not self._config.wallet:
            return None
        return self._wallet(wallet)

    # ------------------------------------------------------------------
    # Tracked ids
    # ------------------------------------------------------------------

    def tracked_ids(self) -> list[int]:
        return self._repository.load()

    def track(self, token_id: str | int) -> list[int]:
        ids = add_tracked(self._repository.load(), parse_token_id(token_id))
        self._repository.save(ids)
        return ids

    def untrack(self, token_id: str | int) -> list[int]:
        ids = remove_tracked(self._repository.load(), parse_token_id(token_id))
        self._repository.save(ids)
        return ids

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def position(
        self, token_id: str | int, wallet: str | None = None
    ) -> PositionResolution | Unconfigured:
        parsed_id = parse_token_id(token_id)
        owner = self._optional_wallet(wallet)
        if self._config.contracts.yliquid_market is None:
            return Unconfigured("Positions", ("contracts.yliquid_market",))
        return await self._positions.resolve(parsed_id, owner)

    async def wallet_positions(
        self, wallet: str | None = None
    ) -> WalletPositions | Unconfigured:
        owner = self._wallet(wallet)
        if self._config.contracts.yliquid_market is None:
            return Unconfigured("Positions", ("contracts.yliquid_market",))

        reads = ReadTracker(self._client)
        nft = await position_nft_address(reads, self._config.contracts)
        if nft is None:
            return Unconfigured("Positions", ("contracts.position_nft",))

        tracked = self._repository.load()
        balance = await reads.read("position_balance", nft, POSITION_NFT_BALANCE_OF, [owner])
        scanner = OwnershipLogScanner(
            self._client,
            nft,
            initial_chunk=self._config.scanner.initial_chunk_blocks,
            min_chunk=self._config.scanner.min_chunk_blocks,
        )
        if balance is None:
            scan = ScanStatus(
                found=0,
                expected=0,
                complete=False,
                error="Could not read the position NFT balance for this wallet.",
            )
            owned_ids: tuple[int, ...] = ()
        else:
            result = await scanner.scan(owner, balance)
            scan, owned_ids = result.status, result.token_ids

        manual_ids = tuple(manual_only(tracked, owned_ids))
        positions = await asyncio.gather(
            *(self._positions.resolve(tid, owner) for tid in (*owned_ids, *manual_ids))
        )
        return WalletPositions(
            wallet=owner,
            owned_ids=owned_ids,
            manual_ids=manual_ids,
            scan=scan,
            positions=tuple(positions),
        )

    async def yield_summary(self, wallet: str | None = None) -> YieldSummary | Unconfigured:
        owner = self._optional_wallet(wallet)
        return await self._yields.resolve(owner)

    def _route(self, route_id: str) -> RouteConfig:
        route = self._config.route(route_id)
        if route is None:
            known = ", ".join(r.id for r in self._config.routes)
            raise InvalidInputError(f"Unknown route '{route_id}'. Known routes: {known}")
        return route

    async def route(
        self,
        route_id: str,
        wallet: str | None = None,
        principal: str | None = None,
        collateral: str | None = None,
        market_id: str | None = None,
    ) -> RouteResolution | Unconfigured:
        """Resolve a route. Amounts are decimal strings in whole tokens."""
        route = self._route(route_id)
        if market_id is not None:
            route = replace(route, morpho_market_id=parse_market_id(market_id))
        owner = self._optional_wallet(wallet)
        principal_raw = parse_amount(principal, AMOUNT_DECIMALS) if principal else None
        collateral_raw = (
            parse_amount(collateral, AMOUNT_DECIMALS) if collateral else None
        )
        return await self._routes.resolve(route, owner, principal_raw, collateral_raw)

    # ------------------------------------------------------------------
    # Generation-tagged passes
    # ------------------------------------------------------------------

    def start_refresh(self, wallet: str | None = None) -> asyncio.Task:
        """Begin a wallet pass, cancelling any pass still in flight."""
        owner = self._wallet(wallet)
        if self._task is not None and not self._task.done():
            self._task.cancel()
        generation = self._generation.advance()
        self._task = asyncio.create_task(self._refresh(generation, owner))
        return self._task

    async def refresh(self, wallet: str | None = None) -> WalletView | None:
        """Run a pass to completion; None if a newer pass superseded it."""
        task = self.start_refresh(wallet)
        await asyncio.wait({task})
        if task.cancelled():
            return None
        return task.result()

    async def _refresh(self, generation: int, wallet: str) -> WalletView | None:
        positions, yields = await asyncio.gather(
            self.wallet_positions(wallet), self.yield_summary(wallet)
        )
        if not self._generation.is_current(generation):
            logger.debug("Discarding results of superseded pass %d", generation)
            return None
        view = WalletView(generation=generation, positions=positions, yields=yields)
        self.latest = view
        return view

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    async def settle(
        self, token_id: str | int, wallet: str | None = None
    ) -> SettlementResult | Unconfigured:
        """Re-check the settlement gate against fresh reads, then submit."""
        parsed_id = parse_token_id(token_id)
        owner = self._wallet(wallet)
        market = self._config.contracts.yliquid_market
        if market is None:
            return Unconfigured("Settlement", ("contracts.yliquid_market",))

        position = await self._positions.resolve(parsed_id, owner)
        if not position.settlement.actionable:
            logger.info(
                "Settlement of #%d blocked: %s",
                parsed_id,
                "; ".join(position.settlement.blocking_reasons),
            )
            return SettlementResult(token_id=parsed_id, decision=position.settlement)

        tx_hash = await self._client.submit_transaction(
            owner, market, MARKET_SETTLE_AND_REPAY, [parsed_id, ZERO_ADDRESS, b""]
        )
        return SettlementResult(
            token_id=parsed_id, decision=position.settlement, tx_hash=tx_hash
        )
