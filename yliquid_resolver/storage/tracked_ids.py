"""JSON-file store for the token ids a user pinned by hand."""
from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Iterable

from ..config import DEFAULT_TRACKED_IDS_SLOT

logger = logging.getLogger(__name__)


def _valid_ids(values: Iterable[Any]) -> list[int]:
    ids: list[int] = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            continue
        if value not in ids:
            ids.append(value)
    return ids


class JsonTrackedIdRepository:
    """Stores ``{slot: [ids]}`` in a JSON file, newest id first.

    Unreadable or malformed content loads as an empty list; it is logged, not
    raised. Other slots in the same file are left alone on save.
    """

    def __init__(self, path: str | Path, slot: str = DEFAULT_TRACKED_IDS_SLOT) -> None:
        self.path = Path(path).expanduser()
        self.slot = slot

    def _read_document(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path) as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable tracked ids file %s: %s", self.path, e)
            return {}
        if not isinstance(document, dict):
            logger.warning("Ignoring tracked ids file %s: not a JSON object", self.path)
            return {}
        return document

    def load(self) -> list[int]:
        stored = self._read_document().get(self.slot, [])
        if not isinstance(stored, list):
            logger.warning("Tracked ids slot '%s' is not a list, ignoring", self.slot)
            return []
        return _valid_ids(stored)

    def save(self, ids: list[int]) -> None:
        document = self._read_document()
        document[self.slot] = _valid_ids(ids)
        self._atomic_write(document)
        logger.debug("Saved %d tracked ids to %s", len(document[self.slot]), self.path)

    def _atomic_write(self, document: dict[str, Any]) -> None:
        """Write tmp, fsync, replace."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(document, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


def add_tracked(ids: list[int], token_id: int) -> list[int]:
    """Prepend ``token_id`` unless it is already tracked."""
    if token_id in ids:
        return list(ids)
    return [token_id, *ids]


def remove_tracked(ids: list[int], token_id: int) -> list[int]:
    return [i for i in ids if i != token_id]


def manual_only(tracked: list[int], wallet_owned: Iterable[int]) -> list[int]:
    """Tracked ids that the wallet scan did not already surface."""
    owned = set(wallet_owned)
    return [i for i in tracked if i not in owned]
