"""Generation cache for mdlayer.

Tracks compiled documents keyed by absolute source path, fingerprinted by
modification time, so that unchanged files are never recompiled.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from mdlayer.exceptions import CacheError

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

__all__ = [
    "CACHE_SCHEMA_VERSION",
    "Cache",
    "CacheEntry",
    "compute_fingerprint",
]

logger = logging.getLogger(__name__)

CACHE_SCHEMA_VERSION = "1"


@dataclass(frozen=True)
class CacheEntry:
    """Immutable record of one compiled document."""

    hash: str
    type: str
    document: dict[str, Any] = field(default_factory=dict)


def compute_fingerprint(path: Path) -> str:
    """Return the change fingerprint of a file (its mtime in nanoseconds)."""
    return str(path.stat().st_mtime_ns)


class Cache:
    """Persistent path → CacheEntry store shared by every generation pass.

    ``load`` and ``save`` bracket a full pass; in between the mapping is
    mutated in place. Not safe for concurrent passes, callers serialize.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._items: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __getitem__(self, path: str) -> CacheEntry:
        return self._items[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def get(self, path: str) -> CacheEntry | None:
        return self._items.get(path)

    def set(self, path: str, entry: CacheEntry) -> None:
        """Add or replace the entry for a path."""
        self._items[path] = entry

    def invalidate(self, path: str) -> bool:
        """Drop the entry for a path. Returns True if one was present."""
        if path in self._items:
            del self._items[path]
            logger.debug("Invalidated cache entry for %s", path)
            return True
        return False

    def is_fresh(self, path: str, fingerprint: str, doc_type: str) -> bool:
        """Check whether ``path`` has an entry with this fingerprint and type."""
        entry = self._items.get(path)
        return entry is not None and entry.hash == fingerprint and entry.type == doc_type

    def entries_for_type(self, doc_type: str) -> list[CacheEntry]:
        return [e for e in self._items.values() if e.type == doc_type]

    def load(self) -> None:
        """Replace in-memory entries with the persisted store.

        A missing file yields an empty cache; a cache written by a
        different schema version is discarded.
        """
        self._items = {}
        if not self.path.exists():
            logger.debug("No cache at %s, starting empty", self.path)
            return

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Failed to load cache from %s: %s", self.path, e)
            raise CacheError(f"Failed to load cache from {self.path}: {e}") from e

        if not isinstance(data, dict) or data.get("schema_version") != CACHE_SCHEMA_VERSION:
            logger.warning("Discarding cache at %s (incompatible schema version)", self.path)
            return

        for key, raw in data.get("items", {}).items():
            self._items[key] = _entry_from_dict(key, raw)

        logger.info("Loaded cache from %s (%d entries)", self.path, len(self._items))

    def save(self) -> None:
        """Persist all entries to disk."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "schema_version": CACHE_SCHEMA_VERSION,
            "items": {key: _entry_to_dict(entry) for key, entry in self._items.items()},
        }
        try:
            self.path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
            logger.debug("Saved cache to %s (%d entries)", self.path, len(self._items))
        except OSError as e:
            logger.error("Failed to save cache to %s: %s", self.path, e)
            raise CacheError(f"Failed to save cache to {self.path}: {e}") from e


def _entry_to_dict(entry: CacheEntry) -> dict[str, object]:
    return {"hash": entry.hash, "type": entry.type, "document": entry.document}


def _entry_from_dict(key: str, data: object) -> CacheEntry:
    if not isinstance(data, dict):
        raise CacheError(f"Cache entry for {key} is not an object")
    missing = [k for k in ("hash", "type", "document") if k not in data]
    if missing:
        raise CacheError(f"Cache entry for {key} missing required fields: {missing}")
    return CacheEntry(hash=str(data["hash"]), type=str(data["type"]), document=data["document"])
