"""Chain client protocol: the EVM JSON-RPC calls the resolver makes."""
from typing import Any, Protocol, Sequence

from ..abi import ContractFunction
from ..models import BlockRef, LogEntry


class ChainClient(Protocol):
    """Read (and minimal write) access to an EVM node."""

    async def get_latest_block_number(self) -> int: ...

    async def get_block(self, number: int) -> BlockRef: ...

    async def get_code(self, address: str, block_number: int | None = None) -> bytes: ...

    async def get_logs(
        self,
        address: str,
        topics: Sequence[str | None],
        from_block: int,
        to_block: int,
    ) -> list[LogEntry]: ...

    async def read_contract(
        self,
        address: str,
        function: ContractFunction,
        args: Sequence[Any] = (),
        block_number: int | None = None,
    ) -> Any: ...

    async def submit_transaction(
        self,
        sender: str,
        address: str,
        function: ContractFunction,
        args: Sequence[Any] = (),
    ) -> str: ...
