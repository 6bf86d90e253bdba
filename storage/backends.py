"""
storage/backends.py -- Raw byte-level backends for the document store.

A backend knows how to load and save the serialized text of one named
document. It knows nothing about JSON, locking, or defaults -- that is
DocumentStore's job. Both backends raise their native errors (OSError,
SQLAlchemyError); DocumentStore translates them into StorageIOError.

FileBackend: one <name>.json file per document in a directory. This is the
    default and keeps the on-disk shape of users.json / sessions.json etc.
    Saves are atomic: the text goes to a temp file in the same directory,
    is fsynced, then os.replace()d over the target. A reader (or a crash, or
    a cancelled request) sees either the old file or the new one, never a
    truncated mix.

SqlBackend: one row per document in a `documents` table via SQLAlchemy Core.
    Selected when DATABASE_URL is set. Each save runs in its own transaction.

Document names are restricted to [A-Za-z0-9_-] so a name can never escape the
data directory.
"""

from __future__ import annotations

import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine

_NAME_RE = re.compile(r"^[A-Za-z0-9_-]{1,100}$")


def _check_name(name: str) -> str:
    if not _NAME_RE.match(name):
        raise ValueError(f"Invalid document name: {name!r}")
    return name


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# JSON files
# ---------------------------------------------------------------------------


class FileBackend:
    """Stores each document as <directory>/<name>.json."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def _path(self, name: str) -> Path:
        return self.directory / f"{_check_name(name)}.json"

    def load(self, name: str) -> str | None:
        """Return the document text, or None if the document has never been written."""
        try:
            return self._path(name).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def save(self, name: str, text: str) -> None:
        target = self._path(name)
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=str(self.directory))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                tmp.write(text)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, target)
        except BaseException:
            # BaseException: an interrupted save must not leave its temp file behind
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def ping(self) -> None:
        """Raise OSError if the data directory cannot be created or written."""
        self.directory.mkdir(parents=True, exist_ok=True)
        if not os.access(self.directory, os.W_OK):
            raise PermissionError(f"{self.directory} is not writable")

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# SQL table
# ---------------------------------------------------------------------------

_metadata = MetaData()

_documents = Table(
    "documents",
    _metadata,
    Column("name", String(100), primary_key=True),
    Column("body", Text, nullable=False),
    Column("updated_at", String(32), nullable=False),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block on a concurrent save.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


class SqlBackend:
    """Stores each document as one row of the `documents` table.

    Usage:
        backend = SqlBackend("sqlite:///careshop.db")
        backend = SqlBackend("postgresql://user:pw@host/db")
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def load(self, name: str) -> str | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(_documents.c.body).where(_documents.c.name == _check_name(name))).fetchone()
        return row.body if row is not None else None

    def save(self, name: str, text: str) -> None:
        """Upsert the document body in a single transaction.

        UPDATE-then-INSERT rather than a dialect-specific upsert keeps this
        portable. Two first-time saves of the same name cannot race because
        DocumentStore holds the per-name lock around every save.
        """
        _check_name(name)
        with self.engine.begin() as conn:
            result = conn.execute(
                _documents.update().where(_documents.c.name == name).values(body=text, updated_at=_now_iso())
            )
            if result.rowcount == 0:
                conn.execute(_documents.insert().values(name=name, body=text, updated_at=_now_iso()))

    def ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(select(1))

    def close(self) -> None:
        self.engine.dispose()
