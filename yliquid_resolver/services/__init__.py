"""Service modules"""
from .block_locator import HistoricalAprResolver, HistoricalBlockLocator
from .generation import GenerationCounter
from .log_scanner import OwnershipLogScanner
from .positions import PositionReconciler
from .resolver import Resolver
from .routes import RouteReconciler
from .yields import YieldReconciler

__all__ = [
    "GenerationCounter",
    "HistoricalAprResolver",
    "HistoricalBlockLocator",
    "OwnershipLogScanner",
    "PositionReconciler",
    "Resolver",
    "RouteReconciler",
    "YieldReconciler",
]
