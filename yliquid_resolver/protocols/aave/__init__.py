from .adapter import AaveAdapter

__all__ = ["AaveAdapter"]
