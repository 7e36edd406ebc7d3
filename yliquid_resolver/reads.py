"""Contract reads that degrade to None instead of raising."""
from __future__ import annotations

import logging
from typing import Any, Sequence

from .abi import ContractFunction
from .errors import ResolverError
from .interfaces.chain import ChainClient

logger = logging.getLogger(__name__)


class ReadTracker:
    """Wraps a chain client for one resolution pass.

    A failed read returns None and records the field name in ``unavailable``,
    so one bad call only blanks the figures that depend on it.
    """

    def __init__(self, client: ChainClient) -> None:
        self._client = client
        self.unavailable: list[str] = []

    async def read(
        self,
        field: str,
        address: str | None,
        function: ContractFunction,
        args: Sequence[Any] = (),
        block_number: int | None = None,
    ) -> Any | None:
        if address is None:
            self._mark(field)
            return None
        try:
            return await self._client.read_contract(
                address, function, args, block_number=block_number
            )
        except ResolverError as e:
            logger.warning("%s unavailable (%s on %s): %s", field, function.name, address, e)
            self._mark(field)
            return None

    def _mark(self, field: str) -> None:
        if field not in self.unavailable:
            self.unavailable.append(field)
