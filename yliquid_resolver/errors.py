"""Exception hierarchy for the resolver."""
from __future__ import annotations


class ResolverError(Exception):
    """Base class for resolver failures."""


class RpcError(ResolverError, RuntimeError):
    """Transport or provider failure talking to the node."""


class RpcResponseError(RpcError):
    """The node answered with a JSON-RPC error payload."""

    def __init__(self, code: int | None, message: str) -> None:
        super().__init__(f"RPC Error {code}: {message}")
        self.code = code
        self.message = message


class ContractReadError(ResolverError):
    """A single contract read reverted, hit no code, or failed to decode."""


class InvalidInputError(ResolverError, ValueError):
    """User input rejected before any RPC call."""


class LogScanError(ResolverError):
    """Log scan could not make progress above the minimum chunk size."""
