"""Durable list of user-pinned position token ids."""
from typing import Protocol


class TrackedIdRepository(Protocol):
    def load(self) -> list[int]: ...

    def save(self, ids: list[int]) -> None: ...
