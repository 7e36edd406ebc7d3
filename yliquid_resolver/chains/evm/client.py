"""EVM JSON-RPC client with fallback support."""
from __future__ import annotations

import logging
import ssl
from typing import Any, Sequence

import aiohttp
import certifi
from eth_utils import decode_hex, encode_hex

from ...abi import ContractFunction
from ...config import ChainConfig
from ...errors import ContractReadError, RpcError, RpcResponseError
from ...models import BlockRef, LogEntry

logger = logging.getLogger(__name__)


def _block_tag(block_number: int | None) -> str:
    return "latest" if block_number is None else hex(block_number)


class EvmClient:
    """EVM node RPC client with automatic endpoint fallback.

    Transport failures move on to the next endpoint. A JSON-RPC error payload
    means the node answered, so it is raised straight away.
    """

    def __init__(self, config: ChainConfig) -> None:
        self.endpoints = list(config.rpc_endpoints)
        self.timeout = config.rpc_timeout
        self.current_rpc_index = 0
        self._request_id = 0

    async def rpc_call(self, method: str, params: list[Any]) -> Any:
        """Make RPC call with fallback to alternative endpoints."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }

        ssl_context = ssl.create_default_context(cafile=certifi.where())

        last_error: Exception | None = None
        for attempt in range(len(self.endpoints)):
            rpc_index = (self.current_rpc_index + attempt) % len(self.endpoints)
            rpc_url = self.endpoints[rpc_index]

            try:
                connector = aiohttp.TCPConnector(ssl=ssl_context)
                async with aiohttp.ClientSession(connector=connector) as session:
                    async with session.post(
                        rpc_url,
                        json=payload,
                        timeout=aiohttp.ClientTimeout(total=self.timeout),
                    ) as response:
                        result = await response.json()
            except Exception as e:
                last_error = e
                logger.warning("RPC endpoint %s failed: %s", rpc_url, e)
                if attempt < len(self.endpoints) - 1:
                    logger.info("Trying next endpoint...")
                continue

            if rpc_index != self.current_rpc_index:
                logger.info("Switched to RPC endpoint: %s", rpc_url)
                self.current_rpc_index = rpc_index

            if "error" in result:
                error = result["error"] or {}
                raise RpcResponseError(error.get("code"), str(error.get("message", error)))
            return result.get("result")

        raise RpcError(f"All RPC endpoints failed. Last error: {last_error}")

    async def get_latest_block_number(self) -> int:
        result = await self.rpc_call("eth_blockNumber", [])
        return int(result, 16)

    async def get_block(self, number: int) -> BlockRef:
        result = await self.rpc_call("eth_getBlockByNumber", [hex(number), False])
        if not result:
            raise RpcError(f"Block {number} not found")
        return BlockRef(
            number=int(result["number"], 16),
            timestamp=int(result["timestamp"], 16),
        )

    async def get_code(self, address: str, block_number: int | None = None) -> bytes:
        result = await self.rpc_call("eth_getCode", [address, _block_tag(block_number)])
        return decode_hex(result or "0x")

    async def get_logs(
        self,
        address: str,
        topics: Sequence[str | None],
        from_block: int,
        to_block: int,
    ) -> list[LogEntry]:
        """Fetch logs for one pinned block window."""
        result = await self.rpc_call(
            "eth_getLogs",
            [
                {
                    "address": address,
                    "topics": list(topics),
                    "fromBlock": hex(from_block),
                    "toBlock": hex(to_block),
                }
            ],
        )
        return [
            LogEntry(
                address=item.get("address", ""),
                topics=tuple(item.get("topics", [])),
                data=item.get("data", "0x"),
                block_number=int(item.get("blockNumber", "0x0"), 16),
                transaction_hash=item.get("transactionHash", ""),
                log_index=int(item.get("logIndex", "0x0"), 16),
            )
            for item in result or []
        ]

    async def read_contract(
        self,
        address: str,
        function: ContractFunction,
        args: Sequence[Any] = (),
        block_number: int | None = None,
    ) -> Any:
        """``eth_call`` a view function and decode its result.

        Raises:
            ContractReadError: revert, no code at ``address``, or bad return data.
            RpcError: every endpoint failed at the transport level.
        """
        call = {"to": address, "data": encode_hex(function.encode_call(args))}
        try:
            result = await self.rpc_call("eth_call", [call, _block_tag(block_number)])
        except RpcResponseError as e:
            raise ContractReadError(
                f"{function.signature} on {address} reverted: {e.message}"
            ) from e
        return function.decode_result(decode_hex(result or "0x"))

    async def submit_transaction(
        self,
        sender: str,
        address: str,
        function: ContractFunction,
        args: Sequence[Any] = (),
    ) -> str:
        """Hand a call to the node's account manager; returns the tx hash."""
        tx = {
            "from": sender,
            "to": address,
            "data": encode_hex(function.encode_call(args)),
        }
        tx_hash = await self.rpc_call("eth_sendTransaction", [tx])
        logger.info("Submitted %s to %s: %s", function.name, address, tx_hash)
        return tx_hash
