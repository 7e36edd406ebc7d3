"""Per-venue borrow position reads."""
from typing import Protocol

from ..config import RouteConfig
from ..models import VenueRouteState


class VenueReader(Protocol):
    """Reads a wallet's borrow position on one lending venue."""

    async def read_route(self, route: RouteConfig, wallet: str | None) -> VenueRouteState: ...
