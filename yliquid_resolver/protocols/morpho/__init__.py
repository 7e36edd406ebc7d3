from .adapter import MorphoAdapter

__all__ = ["MorphoAdapter"]
