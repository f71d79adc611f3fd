"""Journal tag adapter.

Journal entries live in ``<root>/YYYY/MM/YYYY-MM-DD.yaml`` day files::

    version: 2
    entries:
      - id: 3f0c...
        text: Standup notes
        tags: [work, daily]
        order: 0
        createdAt: 2025-01-15T09:00:00Z
        updatedAt: 2025-01-15T09:00:00Z

A single day file holds many tag owners, so each entry is indexed under a
composite source key ``journal:<YYYY-MM-DD>#<entryId>`` that can never clash
with a relative note path.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

import yaml

from notetags.frontmatter import classify_tag_value, normalize_tags
from notetags.storage import DirEntry, join_path

if TYPE_CHECKING:
    from notetags.scanner import ErrorHandler
    from notetags.storage import FileStore

logger = logging.getLogger(__name__)

JOURNAL_PREFIX = "journal:"
JOURNAL_DATA_VERSION = 2

_YEAR_RE = re.compile(r"^\d{4}$")
_MONTH_RE = re.compile(r"^\d{2}$")
_DATE_FILENAME_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})\.(yaml|md)$")
_SOURCE_KEY_RE = re.compile(r"^journal:(\d{4}-\d{2}-\d{2})#(.+)$")

JournalExtension = Literal["yaml", "md", "both"]


# ---------------------------------------------------------------------------
# Source keys
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JournalSource:
    date: str
    entry_id: str


def journal_source_key(date: str, entry_id: str) -> str:
    return f"{JOURNAL_PREFIX}{date}#{entry_id}"


def is_journal_source(key: str) -> bool:
    return key.startswith(JOURNAL_PREFIX)


def parse_journal_source(key: str) -> JournalSource | None:
    """Split a composite key into date and entry id; ``None`` for note paths."""
    m = _SOURCE_KEY_RE.match(key)
    if not m:
        return None
    return JournalSource(m.group(1), m.group(2))


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


def _int_or_default(value: Any, default: int) -> int:
    """Coerce a loosely typed YAML field, falling back to *default*."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class JournalEntry:
    id: str
    text: str = ""
    tags: list[str] = field(default_factory=list)
    order: int = 0
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JournalEntry":
        return cls(
            id=str(data["id"]),
            text=str(data.get("text") or ""),
            tags=normalize_tags(classify_tag_value(data.get("tags"))),
            order=_int_or_default(data.get("order"), 0),
            created_at=str(data.get("createdAt") or ""),
            updated_at=str(data.get("updatedAt") or ""),
        )


@dataclass
class JournalDocument:
    entries: list[JournalEntry] = field(default_factory=list)
    version: int = JOURNAL_DATA_VERSION

    @classmethod
    def from_yaml(cls, text: str) -> "JournalDocument":
        """Decode a day file; raises ``ValueError`` when it is not a journal document."""
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValueError(f"invalid YAML: {exc}") from exc
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError("journal document must be a mapping")
        raw_entries = data.get("entries") or []
        if not isinstance(raw_entries, list):
            raise ValueError("'entries' must be a list")
        entries = [
            JournalEntry.from_dict(e)
            for e in raw_entries
            if isinstance(e, dict) and e.get("id") is not None
        ]
        return cls(entries=entries, version=_int_or_default(data.get("version"), JOURNAL_DATA_VERSION))


@dataclass(frozen=True)
class JournalFileInfo:
    date: str
    path: str
    extension: Literal["yaml", "md"]
    year: str
    month: str


def extract_date_from_filename(filename: str) -> str | None:
    m = _DATE_FILENAME_RE.match(filename)
    return m.group(1) if m else None


def is_year_folder(entry: DirEntry) -> bool:
    return entry.kind == "directory" and bool(_YEAR_RE.match(entry.name))


def is_month_folder(entry: DirEntry) -> bool:
    return entry.kind == "directory" and bool(_MONTH_RE.match(entry.name))


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


def _log_journal_error(path: str, exc: Exception) -> None:
    logger.warning("Error scanning journal directory %r: %s", path, exc)


def _list(store: "FileStore", path: str, on_error: "ErrorHandler") -> list[DirEntry]:
    try:
        return store.list_directory(path)
    except Exception as exc:  # noqa: BLE001
        on_error(path, exc)
        return []


def iter_journal_files(
    store: "FileStore",
    root: str,
    *,
    extension: JournalExtension = "yaml",
    on_error: "ErrorHandler" = _log_journal_error,
) -> Iterator[JournalFileInfo]:
    """Yield every day file under ``root/YYYY/MM``; non-matching names are skipped."""
    try:
        if not store.exists(root).exists:
            return
    except Exception as exc:  # noqa: BLE001
        on_error(root, exc)
        return

    for year in _list(store, root, on_error):
        if not is_year_folder(year):
            continue
        year_path = join_path(root, year.name)
        for month in _list(store, year_path, on_error):
            if not is_month_folder(month):
                continue
            month_path = join_path(year_path, month.name)
            for entry in _list(store, month_path, on_error):
                if entry.kind != "file":
                    continue
                date = extract_date_from_filename(entry.name)
                if date is None:
                    continue
                ext = "yaml" if entry.name.endswith(".yaml") else "md"
                if extension != "both" and ext != extension:
                    continue
                yield JournalFileInfo(
                    date=date,
                    path=join_path(month_path, entry.name),
                    extension=ext,
                    year=year.name,
                    month=month.name,
                )


def collect_journal_dates(
    store: "FileStore",
    root: str,
    extension: JournalExtension = "yaml",
) -> set[str]:
    """Return every ``YYYY-MM-DD`` that has a journal file."""
    return {info.date for info in iter_journal_files(store, root, extension=extension)}


def scan_journal_for_tags(store: "FileStore", root: str) -> Iterator[tuple[str, list[str]]]:
    """Yield ``(source_key, tags)`` for each tagged entry in the journal tree.

    A day file that cannot be read or decoded is logged and skipped.
    """
    for info in iter_journal_files(store, root):
        try:
            document = JournalDocument.from_yaml(store.read_file(info.path))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Error reading journal file %r: %s", info.path, exc)
            continue
        for entry in document.entries:
            if entry.tags:
                yield journal_source_key(info.date, entry.id), entry.tags
