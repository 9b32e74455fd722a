"""
Ledger stores: whole-document persistence for the auction collections.

A store holds named collections (``users``, ``items``, ``auction``,
``results``). Each one is loaded and saved as a complete document; there are
no field-level updates. ``commit`` writes several collections as one unit.
"""

import copy
import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from errors import StoreError
from logger import get_logger

logger = get_logger("storage")


class LedgerStore(ABC):
    """Key-value store of whole collections."""

    @abstractmethod
    def load(self, key: str, default: Any = None) -> Any:
        """Return a private copy of collection ``key`` or ``default``."""

    def save(self, key: str, value: Any) -> None:
        self.commit({key: value})

    @abstractmethod
    def commit(self, changes: Mapping[str, Any]) -> None:
        """Persist every collection in ``changes`` together."""


class MemoryStore(LedgerStore):
    """In-process store, used by tests and throwaway servers."""

    def __init__(self, initial: Optional[Mapping[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(dict(initial or {}))

    def load(self, key, default=None):
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def commit(self, changes):
        self._data.update(copy.deepcopy(dict(changes)))


class JsonFileStore(LedgerStore):
    """
    All collections in one JSON document on disk.

    Every commit rewrites the document into a temporary file in the same
    directory and swaps it in with ``os.replace``, so readers never observe a
    half-written ledger and a multi-collection commit lands all or nothing.
    """

    def __init__(self, path):
        self.path = Path(path)
        self._io_lock = threading.Lock()
        logger.info(f"JsonFileStore using {self.path}")

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as fh:
                doc = json.load(fh)
        except (OSError, ValueError) as e:
            logger.error(f"Cannot read ledger {self.path}: {e}")
            raise StoreError(f"Ledger {self.path} is unreadable.") from e
        if not isinstance(doc, dict):
            raise StoreError(f"Ledger {self.path} is not a JSON object.")
        return doc

    def load(self, key, default=None):
        with self._io_lock:
            doc = self._read()
        return doc.get(key, default)

    def commit(self, changes):
        with self._io_lock:
            doc = self._read()
            doc.update(changes)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".ledger-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(doc, fh, indent=2)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp, self.path)
            except OSError as e:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                logger.error(f"Cannot write ledger {self.path}: {e}")
                raise StoreError(f"Ledger {self.path} could not be written.") from e
        logger.debug(f"Committed {', '.join(sorted(changes))}")
