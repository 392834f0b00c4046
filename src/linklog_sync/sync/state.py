"""Persisted state layer.

Each durable collection (the local index, the offline queue) is one named
JSON document in the state directory (``.linklog/`` by default).  A
document is loaded wholesale and rewritten wholesale; there is no partial
update on disk.

Key design choices:

* **Atomic writes** -- ``save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
* **Serialised read-modify-write** -- ``update()`` runs load, mutate and
  save under one ``threading.RLock`` so an immediate write and a drain pass
  cannot interleave on the same document.
* **Plain JSON values** -- documents are dicts and lists; the typed
  wrappers (``LocalIndex``, ``DurableQueue``) convert to and from models.
"""

from __future__ import annotations

import json
import os
import tempfile
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Generic, Protocol, TypeVar

T = TypeVar("T")


class Store(Protocol[T]):
    """Persistence interface for one whole collection."""

    def load(self) -> T: ...

    def save(self, value: T) -> None: ...

    def update(self, mutate: Callable[[T], T]) -> T: ...


class JsonStore(Generic[T]):
    """Load, save, and atomically update one JSON document.

    Args:
        state_dir: Directory where the document is stored.
        name: Document name; the file is ``{name}.json``.
        default: Factory for the value returned when the file is absent.
    """

    def __init__(
        self,
        state_dir: Path,
        name: str,
        default: Callable[[], T],
    ) -> None:
        self._state_dir = Path(state_dir)
        self._name = name
        self._default = default
        self._lock = threading.RLock()

    @property
    def path(self) -> Path:
        """Path to the backing file."""
        return self._state_dir / f"{self._name}.json"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> T:
        """Load the document from disk.

        Returns:
            The stored value, or ``default()`` if the file does not exist.
        """
        with self._lock:
            if not self.path.exists():
                return self._default()
            with open(self.path, encoding="utf-8") as fh:
                return json.load(fh)

    def save(self, value: T) -> None:
        """Persist the document atomically.

        Writes to a temporary file in the same directory then atomically
        replaces the target.  Creates ``state_dir`` if it does not exist.
        """
        with self._lock:
            self._state_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self._state_dir), suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(value, fh, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
                raise

    def update(self, mutate: Callable[[T], T]) -> T:
        """Load, apply *mutate*, and save as one serialised step.

        Args:
            mutate: Receives the current value and returns the value to
                persist.  Must not block on I/O other than the store's own.

        Returns:
            The value that was saved.
        """
        with self._lock:
            value = mutate(self.load())
            self.save(value)
            return value

