"""Lending venue readers and external withdrawal queues."""
from .aave import AaveAdapter
from .morpho import MorphoAdapter

__all__ = ["AaveAdapter", "MorphoAdapter"]
