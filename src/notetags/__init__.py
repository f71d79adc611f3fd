"""notetags: tag index and fuzzy tag search for a notes vault."""

from notetags.config import NotetagsConfig, configure_logging
from notetags.events import (
    TAGS_REINDEX,
    EventBus,
    FullReindex,
    IndexMeta,
    ReindexEvent,
    RemoveReindex,
    RenameReindex,
    UpdateReindex,
)
from notetags.frontmatter import extract_tags, parse_frontmatter
from notetags.fuzzy import FuzzyMatcher, TagMatch
from notetags.index import TagEntry, TagIndex
from notetags.persistence import IndexStore
from notetags.scanner import ScanOptions, scan_directory
from notetags.session import TagSession, open_session
from notetags.storage import DuckDBKeyValueStore, LocalFileStore
from notetags.vocabulary import TagVocabulary

__all__ = [
    "TAGS_REINDEX",
    "DuckDBKeyValueStore",
    "EventBus",
    "FullReindex",
    "FuzzyMatcher",
    "IndexMeta",
    "IndexStore",
    "LocalFileStore",
    "NotetagsConfig",
    "ReindexEvent",
    "RemoveReindex",
    "RenameReindex",
    "ScanOptions",
    "TagEntry",
    "TagIndex",
    "TagMatch",
    "TagSession",
    "TagVocabulary",
    "UpdateReindex",
    "configure_logging",
    "extract_tags",
    "open_session",
    "parse_frontmatter",
    "scan_directory",
]
