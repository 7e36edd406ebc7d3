"""Resolve yLiquid lending positions, rates and yields from an EVM node."""

__version__ = "0.1.0"
