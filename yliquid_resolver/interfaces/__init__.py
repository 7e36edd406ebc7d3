"""Protocol interfaces for the resolver."""
from .chain import ChainClient
from .tracked_ids import TrackedIdRepository
from .venue import VenueReader

__all__ = ["ChainClient", "TrackedIdRepository", "VenueReader"]
