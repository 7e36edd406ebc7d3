"""Pass tokens so a superseded resolution pass never overwrites a newer one."""
from __future__ import annotations


class GenerationCounter:
    def __init__(self) -> None:
        self._current = 0

    @property
    def current(self) -> int:
        return self._current

    def advance(self) -> int:
        """Start a new pass; every earlier token becomes stale."""
        self._current += 1
        return self._current

    def is_current(self, generation: int) -> bool:
        return generation == self._current
