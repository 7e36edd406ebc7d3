from .tracked_ids import (
    JsonTrackedIdRepository,
    add_tracked,
    manual_only,
    remove_tracked,
)

__all__ = ["JsonTrackedIdRepository", "add_tracked", "manual_only", "remove_tracked"]
