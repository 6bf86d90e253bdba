"""
storage/documents.py -- Named JSON documents with per-document critical sections.

Every piece of mutable state in CareShop (users, sessions, inventory, cart,
appointments) is a whole JSON document. Writes are whole-document
replacements, so two request handlers that each "read, change, write back"
the same document would silently lose one of the updates if their cycles
interleaved. DocumentStore.edit() makes each cycle one critical section:

    with store.edit("cart", {"items": []}) as cart:
        cart["items"].append(line)

The lock is a threading.Lock per document name. FastAPI runs the (sync)
route handlers that touch documents in its worker thread pool, so this
serializes same-document cycles across requests while cycles on different
documents run in parallel. Cross-process access to the same backing store is
out of scope.

Failure semantics:
  - A missing document reads as a deep copy of the caller's default.
  - Undecodable stored data raises StorageIOError instead of falling back to
    the default -- edit() would otherwise write the default back and wipe the
    document.
  - A failed save raises StorageIOError; the backend guarantees the previous
    content is still in place.
  - If the body of an edit() block raises, nothing is written.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Protocol

from sqlalchemy.exc import SQLAlchemyError

from core.errors import StorageIOError
from storage.backends import FileBackend, SqlBackend

logger = logging.getLogger("careshop.storage")


class Backend(Protocol):
    def load(self, name: str) -> str | None: ...

    def save(self, name: str, text: str) -> None: ...

    def ping(self) -> None: ...

    def close(self) -> None: ...


class DocumentStore:
    """Read/modify/write access to named JSON documents.

    Usage:
        store = DocumentStore(FileBackend("data"))
        users = store.read("users", [])
        with store.edit("sessions", {}) as sessions:
            sessions.pop(token, None)
        store.close()
    """

    def __init__(self, backend: Backend) -> None:
        self.backend = backend
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, name: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(name)
            if lock is None:
                lock = self._locks[name] = threading.Lock()
            return lock

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def read(self, name: str, default: Any = None) -> Any:
        """Return the current value of a document, or a copy of default if absent.

        The returned value is private to the caller; mutating it does not
        change the stored document.
        """
        return self._load(name, default)

    def write(self, name: str, value: Any) -> None:
        """Replace the whole document. Raises StorageIOError on failure."""
        with self._lock_for(name):
            self._save(name, value)

    @contextmanager
    def edit(self, name: str, default: Any = None) -> Iterator[Any]:
        """Hold the document's lock across a read-modify-write cycle.

        Yields the current value (or a copy of default). Mutate it in place;
        it is written back when the block exits normally. Values that must be
        replaced wholesale (e.g. filtering a list) should use slice or
        .clear()/.update() assignment so the yielded object is the one saved.
        """
        with self._lock_for(name):
            value = self._load(name, default)
            yield value
            self._save(name, value)

    def ping(self) -> None:
        try:
            self.backend.ping()
        except (OSError, SQLAlchemyError) as exc:
            raise StorageIOError("<ping>", str(exc)) from exc

    def close(self) -> None:
        self.backend.close()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load(self, name: str, default: Any) -> Any:
        try:
            text = self.backend.load(name)
        except (OSError, SQLAlchemyError) as exc:
            raise StorageIOError(name, f"read failed: {exc}") from exc
        if text is None:
            return copy.deepcopy(default)
        try:
            return json.loads(text)
        except ValueError as exc:
            raise StorageIOError(name, f"stored data is not valid JSON: {exc}") from exc

    def _save(self, name: str, value: Any) -> None:
        # Serialize first: an unserializable value must fail before storage is touched
        text = json.dumps(value, indent=2, ensure_ascii=False)
        try:
            self.backend.save(name, text)
        except (OSError, SQLAlchemyError) as exc:
            raise StorageIOError(name, f"write failed: {exc}") from exc
        logger.debug("Saved document %s (%d bytes)", name, len(text))


def create_document_store(data_dir: Path | str, database_url: str = "") -> DocumentStore:
    """Build the DocumentStore selected by configuration.

    database_url wins when set; otherwise documents are JSON files in data_dir.
    """
    if database_url:
        logger.info("Document store: SQL backend")
        return DocumentStore(SqlBackend(database_url))
    logger.info("Document store: JSON files in %s", data_dir)
    return DocumentStore(FileBackend(data_dir))
