"""Generic directory traversal over a :class:`~notetags.storage.FileStore`.

Traversal uses an explicit ``(path, depth)`` worklist instead of recursion,
so deep trees never grow the call stack.  A listing failure at one path is
reported through ``on_error`` and the walk carries on with the remaining
paths.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

from notetags.storage import DirEntry, join_path

if TYPE_CHECKING:
    from notetags.storage import FileStore

logger = logging.getLogger(__name__)

EntryFilter = Callable[[DirEntry, str], bool]
ErrorHandler = Callable[[str, Exception], None]


def _log_scan_error(path: str, exc: Exception) -> None:
    logger.warning("Error scanning directory %r: %s", path, exc)


@dataclass
class ScanOptions:
    """Options for :func:`scan_directory`.

    Parameters
    ----------
    filter:
        Inclusion predicate ``(entry, path) -> bool``.  Excluded directories
        are still descended into.
    skip_hidden:
        Drop entries whose name starts with ``.``, from results and recursion.
    max_depth:
        ``0`` lists the base only, ``-1`` is unlimited.
    directories_only / files_only:
        Restrict the kind of entry returned (mutually exclusive).
    on_error:
        Called with ``(path, exc)`` when a directory cannot be listed.
    """

    filter: EntryFilter | None = None
    skip_hidden: bool = True
    max_depth: int = -1
    directories_only: bool = False
    files_only: bool = False
    on_error: ErrorHandler = _log_scan_error

    def __post_init__(self) -> None:
        if self.directories_only and self.files_only:
            raise ValueError("directories_only and files_only are mutually exclusive")

    def includes(self, entry: DirEntry, path: str) -> bool:
        if self.directories_only and entry.kind != "directory":
            return False
        if self.files_only and entry.kind != "file":
            return False
        return self.filter is None or self.filter(entry, path)


def iter_directory(
    store: "FileStore",
    base_path: str = "",
    options: ScanOptions | None = None,
) -> Iterator[tuple[str, DirEntry]]:
    """Yield ``(relative_path, entry)`` for every entry accepted by *options*."""
    opts = options or ScanOptions()
    worklist: list[tuple[str, int]] = [(base_path, 0)]

    while worklist:
        current, depth = worklist.pop()
        if opts.max_depth != -1 and depth > opts.max_depth:
            continue
        try:
            entries = store.list_directory(current)
        except Exception as exc:  # noqa: BLE001
            opts.on_error(current, exc)
            continue

        subdirs: list[str] = []
        for entry in entries:
            if opts.skip_hidden and entry.name.startswith("."):
                continue
            path = join_path(current, entry.name)
            if opts.includes(entry, path):
                yield path, entry
            if entry.kind == "directory":
                subdirs.append(path)

        # Reversed so siblings are popped in listing order
        worklist.extend((d, depth + 1) for d in reversed(subdirs))


def scan_directory(
    store: "FileStore",
    base_path: str = "",
    options: ScanOptions | None = None,
) -> list[str]:
    """Return the relative paths of every entry under *base_path* accepted by *options*."""
    return [path for path, _ in iter_directory(store, base_path, options)]


def is_markdown_file(entry: DirEntry, path: str) -> bool:  # noqa: ARG001
    return entry.kind == "file" and entry.name.endswith(".md")


def iter_markdown_files(store: "FileStore", base_path: str = "") -> Iterator[str]:
    """Yield every non-hidden ``.md`` file path under *base_path*."""
    for path, _ in iter_directory(store, base_path, ScanOptions(filter=is_markdown_file)):
        yield path
