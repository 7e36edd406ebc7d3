"""Shared test fixtures: an in-memory chain and a fully configured AppConfig."""
from __future__ import annotations

import textwrap
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

import pytest

from yliquid_resolver.abi import TRANSFER_TOPIC, ContractFunction, address_topic
from yliquid_resolver.config import (
    AppConfig,
    ChainConfig,
    ContractsConfig,
    RouteConfig,
    StorageConfig,
    TokensConfig,
)
from yliquid_resolver.errors import ContractReadError, RpcError, RpcResponseError
from yliquid_resolver.models import ZERO_ADDRESS, BlockRef, LogEntry, Venue


def _addr(byte: str) -> str:
    return "0x" + byte * 20


@dataclass(frozen=True)
class Addresses:
    wallet: str = _addr("aa")
    other: str = _addr("bb")
    vault: str = _addr("01")
    apr_oracle: str = _addr("02")
    market: str = _addr("03")
    nft: str = _addr("04")
    wsteth_adapter: str = _addr("05")
    weeth_adapter: str = _addr("06")
    aave_receiver: str = _addr("07")
    morpho_receiver: str = _addr("08")
    aave_pool: str = _addr("09")
    aave_provider: str = _addr("0a")
    aave_data_provider: str = _addr("0b")
    morpho: str = _addr("0c")
    lido_queue: str = _addr("0d")
    etherfi_nft: str = _addr("0e")
    weth: str = _addr("11")
    wsteth: str = _addr("12")
    weeth: str = _addr("13")
    awsteth: str = _addr("14")
    rate_model: str = _addr("15")
    proxy: str = _addr("16")
    a_weeth: str = _addr("17")
    variable_debt_weth: str = _addr("18")
    strategy: str = _addr("19")


MORPHO_MARKET_ID = "0x" + "ab" * 32


def _key_arg(value: Any) -> Any:
    if isinstance(value, str):
        return value.lower()
    if isinstance(value, (list, tuple)):
        return tuple(_key_arg(v) for v in value)
    return value


class FakeChain:
    """In-memory ChainClient.

    Blocks are a list of timestamps indexed by number. Contract reads are
    looked up by (address, signature, args, block); anything unregistered
    reverts. ``max_log_range`` makes wider log queries fail like a provider
    range limit.
    """

    def __init__(self) -> None:
        self.timestamps: list[int] = [0]
        self.logs: list[LogEntry] = []
        self.reads: dict[tuple, Any] = {}
        self.deployed_at: dict[str, int] = {}
        self.max_log_range: int | None = None
        self.block_requests: list[int] = []
        self.log_requests: list[tuple[int, int]] = []
        self.read_requests: list[tuple[str, str]] = []
        self.submitted: list[tuple[str, str, str, tuple]] = []

    # -- setup helpers -------------------------------------------------

    def set_read(
        self,
        address: str,
        function: ContractFunction,
        args: Sequence[Any] = (),
        value: Any = None,
        block_number: int | None = None,
    ) -> None:
        key = (address.lower(), function.signature, _key_arg(args), block_number)
        self.reads[key] = value

    def add_transfer(
        self, nft: str, to: str, token_id: int, block: int, sender: str = ZERO_ADDRESS
    ) -> None:
        self.logs.append(
            LogEntry(
                address=nft,
                topics=(
                    TRANSFER_TOPIC,
                    address_topic(sender),
                    address_topic(to),
                    "0x" + format(token_id, "064x"),
                ),
                block_number=block,
            )
        )

    # -- ChainClient ---------------------------------------------------

    async def get_latest_block_number(self) -> int:
        return len(self.timestamps) - 1

    async def get_block(self, number: int) -> BlockRef:
        self.block_requests.append(number)
        if number < 0 or number >= len(self.timestamps):
            raise RpcError(f"Block {number} not found")
        return BlockRef(number=number, timestamp=self.timestamps[number])

    async def get_code(self, address: str, block_number: int | None = None) -> bytes:
        deployed = self.deployed_at.get(address.lower())
        if deployed is None:
            return b""
        if block_number is not None and block_number < deployed:
            return b""
        return b"\x60\x80\x60\x40"

    async def get_logs(
        self,
        address: str,
        topics: Sequence[str | None],
        from_block: int,
        to_block: int,
    ) -> list[LogEntry]:
        self.log_requests.append((from_block, to_block))
        if self.max_log_range is not None and to_block - from_block + 1 > self.max_log_range:
            raise RpcResponseError(-32005, "query exceeds max block range")
        matched = []
        for log in self.logs:
            if log.address.lower() != address.lower():
                continue
            if not from_block <= log.block_number <= to_block:
                continue
            if all(
                want is None or (i < len(log.topics) and log.topics[i].lower() == want.lower())
                for i, want in enumerate(topics)
            ):
                matched.append(log)
        return matched

    async def read_contract(
        self,
        address: str,
        function: ContractFunction,
        args: Sequence[Any] = (),
        block_number: int | None = None,
    ) -> Any:
        self.read_requests.append((address.lower(), function.name))
        base = (address.lower(), function.signature, _key_arg(args))
        if (*base, block_number) in self.reads:
            value = self.reads[(*base, block_number)]
        elif (*base, None) in self.reads:
            value = self.reads[(*base, None)]
        else:
            raise ContractReadError(f"{function.signature} on {address} reverted")
        if isinstance(value, Exception):
            raise value
        return value

    async def submit_transaction(
        self,
        sender: str,
        address: str,
        function: ContractFunction,
        args: Sequence[Any] = (),
    ) -> str:
        self.submitted.append((sender, address, function.name, tuple(args)))
        return "0x" + "ab" * 32


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def addrs() -> Addresses:
    return Addresses()


@pytest.fixture()
def fake_chain() -> FakeChain:
    return FakeChain()


@pytest.fixture()
def sample_chain_config() -> ChainConfig:
    return ChainConfig(
        chain_id=1,
        rpc_endpoints=("https://rpc1.example.com", "https://rpc2.example.com"),
        rpc_timeout=10,
    )


@pytest.fixture()
def app_config(
    addrs: Addresses, sample_chain_config: ChainConfig, tmp_path: Path
) -> AppConfig:
    contracts = ContractsConfig(
        yearn_vault=addrs.vault,
        yearn_apr_oracle=addrs.apr_oracle,
        yliquid_market=addrs.market,
        position_nft=addrs.nft,
        wsteth_adapter=addrs.wsteth_adapter,
        weeth_adapter=addrs.weeth_adapter,
        aave_receiver=addrs.aave_receiver,
        morpho_receiver=addrs.morpho_receiver,
        aave_pool=addrs.aave_pool,
        morpho=addrs.morpho,
        lido_withdrawal_queue=addrs.lido_queue,
        etherfi_withdraw_request_nft=addrs.etherfi_nft,
    )
    routes = (
        RouteConfig(
            id="aave-wsteth",
            label="Aave Position -> wstETH Unwind",
            venue=Venue.AAVE,
            adapter=addrs.wsteth_adapter,
            receiver=addrs.aave_receiver,
            collateral_asset=addrs.wsteth,
            collateral_symbol="wstETH",
        ),
        RouteConfig(
            id="aave-weeth",
            label="Aave Position -> weETH Unwind",
            venue=Venue.AAVE,
            adapter=addrs.weeth_adapter,
            receiver=addrs.aave_receiver,
            collateral_asset=addrs.weeth,
            collateral_symbol="weETH",
        ),
        RouteConfig(
            id="morpho-wsteth",
            label="Morpho Position -> wstETH Unwind",
            venue=Venue.MORPHO,
            adapter=addrs.wsteth_adapter,
            receiver=addrs.morpho_receiver,
            collateral_asset=addrs.wsteth,
            collateral_symbol="wstETH",
            morpho_market_id=MORPHO_MARKET_ID,
        ),
    )
    return AppConfig(
        chain=sample_chain_config,
        contracts=contracts,
        tokens=TokensConfig(
            weth=addrs.weth,
            wsteth=addrs.wsteth,
            weeth=addrs.weeth,
            awsteth=addrs.awsteth,
        ),
        routes=routes,
        storage=StorageConfig(tracked_ids_path=str(tmp_path / "tracked_ids.json")),
        wallet=addrs.wallet,
    )


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    chain:
      chain_id: 1
      rpc_endpoints: ["https://rpc.example.com"]
      rpc_timeout: 10
    wallet: "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
    contracts:
      yearn_vault: "0x0101010101010101010101010101010101010101"
      yliquid_market: "0x0303030303030303030303030303030303030303"
      wsteth_adapter: "0x0505050505050505050505050505050505050505"
      weeth_adapter: ""
      aave_receiver: "0x0707070707070707070707070707070707070707"
      morpho: "0x0000000000000000000000000000000000000000"
    tokens:
      weth: "0x1111111111111111111111111111111111111111"
      wsteth: "0x1212121212121212121212121212121212121212"
    scanner:
      initial_chunk_blocks: 100000
      min_chunk_blocks: 1000
    yield:
      history_window_days: 7
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file
