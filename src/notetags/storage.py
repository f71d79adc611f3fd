"""Storage collaborators: read-only file access and the durable key/value slot.

The tag subsystem never writes through :class:`FileStore`; it only lists and
reads.  Paths are ``/``-separated and relative to the store root, with ``""``
meaning the root itself.

:class:`DuckDBKeyValueStore` keeps the serialized index in a single DuckDB
table so a session can resume without a rescan::

    with DuckDBKeyValueStore("~/.notetags/state.duckdb") as kv:
        kv.set_item("editorTagIndex", payload)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Protocol, runtime_checkable

import duckdb

from notetags.errors import StorageError

EntryKind = Literal["file", "directory", "symlink"]


@dataclass(frozen=True)
class DirEntry:
    """One child of a listed directory."""

    name: str
    kind: EntryKind


@dataclass(frozen=True)
class ExistsResult:
    exists: bool
    kind: EntryKind | None = None


def join_path(base: str, name: str) -> str:
    """Join a store-relative *base* and a child *name* (``""`` is the root)."""
    return f"{base}/{name}" if base else name


# ---------------------------------------------------------------------------
# File store
# ---------------------------------------------------------------------------


@runtime_checkable
class FileStore(Protocol):
    """Read-only access to a directory tree (notes or journal)."""

    def exists(self, path: str) -> ExistsResult:
        """Report whether *path* exists and whether it is a file or directory."""
        ...

    def list_directory(self, path: str) -> list[DirEntry]:
        """Return the children of the directory at *path*."""
        ...

    def read_file(self, path: str) -> str:
        """Return the text content of the file at *path*."""
        ...


class LocalFileStore:
    """:class:`FileStore` over a directory on the local filesystem."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).expanduser().resolve()

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve() if path else self.root
        if target != self.root and not target.is_relative_to(self.root):
            raise StorageError(path, "path escapes the store root")
        return target

    def exists(self, path: str) -> ExistsResult:
        target = self._resolve(path)
        if target.is_dir():
            return ExistsResult(True, "directory")
        if target.is_file():
            return ExistsResult(True, "file")
        return ExistsResult(False)

    def list_directory(self, path: str) -> list[DirEntry]:
        target = self._resolve(path)
        entries: list[DirEntry] = []
        for child in sorted(target.iterdir(), key=lambda p: p.name):
            if child.is_symlink() and child.is_dir():
                # Directory links are never walked: they can cycle back into the tree
                entries.append(DirEntry(child.name, "symlink"))
            elif child.is_dir():
                entries.append(DirEntry(child.name, "directory"))
            elif child.is_file():
                entries.append(DirEntry(child.name, "file"))
        return entries

    def read_file(self, path: str) -> str:
        return self._resolve(path).read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# Key/value store
# ---------------------------------------------------------------------------


@runtime_checkable
class KeyValueStore(Protocol):
    """Durable string slots keyed by name."""

    def set_item(self, key: str, value: str) -> None: ...

    def get_item(self, key: str) -> str | None: ...

    def remove_item(self, key: str) -> None: ...


class DuckDBKeyValueStore:
    """:class:`KeyValueStore` backed by a DuckDB table (in-memory by default)."""

    _TABLE = "kv_store"

    def __init__(self, db_path: Path | str = ":memory:") -> None:
        self._db_path = str(db_path)
        if self._db_path != ":memory:":
            Path(self._db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
            self._db_path = str(Path(self._db_path).expanduser())
        self.conn: duckdb.DuckDBPyConnection = duckdb.connect(self._db_path)
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        self.conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {self._TABLE} (
                slot       VARCHAR PRIMARY KEY,
                value      TEXT    NOT NULL,
                updated_at TIMESTAMPTZ DEFAULT now()
            )
        """)

    def set_item(self, key: str, value: str) -> None:
        self.conn.execute(
            f"""
            INSERT INTO {self._TABLE} (slot, value, updated_at)
            VALUES (?, ?, now())
            ON CONFLICT (slot) DO UPDATE SET
                value      = excluded.value,
                updated_at = now();
            """,
            [key, value],
        )

    def get_item(self, key: str) -> str | None:
        row = self.conn.execute(
            f"SELECT value FROM {self._TABLE} WHERE slot = ?",
            [key],
        ).fetchone()
        return None if row is None else row[0]

    def remove_item(self, key: str) -> None:
        self.conn.execute(f"DELETE FROM {self._TABLE} WHERE slot = ?", [key])

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "DuckDBKeyValueStore":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
