"""Local index: profile URL -> last known remote row.

The index is loaded once when constructed and consulted from memory
afterwards; every upsert rewrites the whole document.  An entry exists only
after a successful write for that profile URL, and its presence is the only
signal used to pick ``update`` over ``append``.  Entries are never deleted.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from .models import IndexEntry, utc_now_iso
from .state import JsonStore, Store

logger = logging.getLogger(__name__)

INDEX_VERSION = 1


def _empty_index() -> dict:
    return {"version": INDEX_VERSION, "entries": {}}


class LocalIndex:
    """Persistent mapping from record identity to remote identity.

    Args:
        store: Persistence backend holding the index document.
    """

    def __init__(self, store: Store[dict]) -> None:
        self._store = store
        self._lock = threading.Lock()
        document = store.load()
        self._entries: dict[str, IndexEntry] = {
            key: IndexEntry.model_validate(raw)
            for key, raw in document.get("entries", {}).items()
        }
        logger.debug("Loaded %d index entries", len(self._entries))

    @classmethod
    def open(cls, state_dir: Path) -> LocalIndex:
        """Open the index stored as ``index.json`` in *state_dir*."""
        return cls(JsonStore(state_dir, "index", _empty_index))

    def lookup(self, key: str) -> IndexEntry | None:
        """Return the entry for *key*, or ``None`` if never synced."""
        with self._lock:
            return self._entries.get(key)

    def upsert_entry(
        self,
        key: str,
        remote_id: str | None,
        timestamp: str | None = None,
    ) -> IndexEntry:
        """Record a successful write for *key*, overwriting any prior entry.

        Args:
            key: Profile URL.
            remote_id: Row reference returned by the remote endpoint.
            timestamp: ISO 8601 sync time; defaults to now.

        Returns:
            The stored entry.
        """
        entry = IndexEntry(
            profile_url=key,
            remote_id=remote_id,
            last_synced=timestamp or utc_now_iso(),
        )
        with self._lock:
            self._entries[key] = entry
            self._store.save(self._document())
        return entry

    def entries(self) -> list[IndexEntry]:
        """Snapshot of all entries."""
        with self._lock:
            return list(self._entries.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def _document(self) -> dict:
        return {
            "version": INDEX_VERSION,
            "entries": {
                key: entry.model_dump(mode="json")
                for key, entry in self._entries.items()
            },
        }
