"""TagSession: the tag subsystem for one open vault.

A session is created when a vault is opened and dropped when it is closed.
It owns the :class:`TagIndex`, the fuzzy matcher built over it, the
persistence slot and the event bus, and exposes the entry points the host
application calls on build/save/rename/delete.

No entry point lets an exception escape: failures are logged and the call
degrades to "index unchanged" or an empty result.

Usage::

    session = open_session(NotetagsConfig.from_env())
    if not session.load_from_storage() or session.is_stale():
        await session.build_tag_index()
    session.update_file_in_index("projects/plan.md", text)
    session.search_tags("proj")
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

import polars as pl

from notetags.config import DEFAULT_JOURNAL_ROOT, DEFAULT_STALE_AFTER_MS, NotetagsConfig
from notetags.errors import PersistenceError
from notetags.events import TAGS_REINDEX, EventBus, IndexMeta, ReindexEvent
from notetags.frontmatter import FRONTMATTER_READ_LIMIT
from notetags.fuzzy import DEFAULT_THRESHOLD, FuzzyMatcher, TagMatch
from notetags.index import TagEntry, TagIndex, now_ms
from notetags.journal import collect_journal_dates, journal_source_key
from notetags.persistence import IndexStore
from notetags.storage import DuckDBKeyValueStore, LocalFileStore
from notetags.vocabulary import TagVocabulary, load_vocabulary

if TYPE_CHECKING:
    from notetags.storage import FileStore

logger = logging.getLogger(__name__)

# Entries processed between cooperative yields during a full build
BUILD_YIELD_EVERY = 25

IndexOp = Callable[[TagIndex], "ReindexEvent | None"]


class TagSession:
    """Tag index, matcher, persistence and events for one vault."""

    def __init__(
        self,
        store: "FileStore",
        *,
        index_store: IndexStore | None = None,
        bus: EventBus | None = None,
        journal_root: str = DEFAULT_JOURNAL_ROOT,
        fuzzy_threshold: float = DEFAULT_THRESHOLD,
        read_limit: int = FRONTMATTER_READ_LIMIT,
        stale_after_ms: int = DEFAULT_STALE_AFTER_MS,
    ) -> None:
        self.store = store
        self.index_store = index_store
        self.bus = bus or EventBus()
        self.journal_root = journal_root
        self.fuzzy_threshold = fuzzy_threshold
        self.read_limit = read_limit
        self.stale_after_ms = stale_after_ms

        self.index = TagIndex()
        self.is_indexing = False
        self.last_save_error: PersistenceError | None = None
        self._matcher: FuzzyMatcher | None = None
        self._pending: list[IndexOp] = []

    @property
    def meta(self) -> IndexMeta:
        return self.index.meta()

    # ------------------------------------------------------------------
    # Finalization
    # ------------------------------------------------------------------

    def _rebuild_matcher(self) -> None:
        self._matcher = FuzzyMatcher(self.index.all_tags, threshold=self.fuzzy_threshold)

    def _persist(self) -> None:
        if self.index_store is None:
            return
        try:
            self.index_store.save(self.index)
            self.last_save_error = None
        except PersistenceError as exc:
            # The in-memory index stays authoritative; the caller may retry
            logger.error("%s", exc)
            self.last_save_error = exc

    def _apply(self, op: IndexOp) -> ReindexEvent | None:
        """Run *op* on the live index; during a build, queue it for the new index too."""
        event = op(self.index)
        if self.is_indexing:
            self._pending.append(op)
        return event

    def _finalize(self, event: ReindexEvent) -> ReindexEvent:
        self.index.touch()
        self._rebuild_matcher()
        self._persist()
        event = event.with_meta(self.index.meta())
        self.bus.emit(TAGS_REINDEX, event)
        return event

    # ------------------------------------------------------------------
    # Full build
    # ------------------------------------------------------------------

    async def build_tag_index(self, journal_root: str | None = None) -> TagIndex | None:
        """Rescan notes and journal, replacing the index when the scan completes.

        Suspends every :data:`BUILD_YIELD_EVERY` entries so the event loop
        stays responsive.  Returns ``None`` if a build is already running or
        the build fails; the previous index is kept in both cases.  There is
        no cancellation.
        """
        if self.is_indexing:
            logger.warning("Tag index build already in progress; ignoring request")
            return None

        root = self.journal_root if journal_root is None else journal_root
        self.is_indexing = True
        try:
            fresh = TagIndex()
            for step, _ in enumerate(fresh.build_steps(self.store, root, read_limit=self.read_limit), 1):
                if step % BUILD_YIELD_EVERY == 0:
                    await asyncio.sleep(0)
            # Edits saved while the scan was suspended
            for op in self._pending:
                op(fresh)
            self.index = fresh
            event = self._finalize(fresh.full_event())
            logger.info(
                "Tag index built: %d sources, %d tags",
                event.meta.file_count,
                event.meta.tag_count,
            )
            return self.index
        except Exception:  # noqa: BLE001
            logger.exception("Tag index build failed")
            return None
        finally:
            self._pending.clear()
            self.is_indexing = False

    # ------------------------------------------------------------------
    # Incremental operations
    # ------------------------------------------------------------------

    def update_file_in_index(self, path: str, content: str) -> ReindexEvent | None:
        """Re-extract the tags of a saved note."""
        try:
            event = self._apply(lambda index: index.update_file(path, content))
            logger.debug("Updated %r: +%s -%s", path, event.tags_added, event.tags_removed)
            return self._finalize(event)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to update %r in tag index", path)
            return None

    def remove_file_from_index(self, path: str) -> ReindexEvent | None:
        """Forget a deleted note; unknown paths are ignored."""
        try:
            event = self._apply(lambda index: index.remove_file(path))
            if event is None:
                return None
            logger.debug("Removed %r from tag index", path)
            return self._finalize(event)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to remove %r from tag index", path)
            return None

    def rename_file_in_index(self, old_path: str, new_path: str) -> ReindexEvent | None:
        try:
            event = self._apply(lambda index: index.rename_file(old_path, new_path))
            if event is None:
                return None
            logger.debug("Renamed %r -> %r in tag index", old_path, new_path)
            return self._finalize(event)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to rename %r in tag index", old_path)
            return None

    def update_journal_entry_in_index(
        self, date: str, entry_id: str, tags: list[str] | str
    ) -> ReindexEvent | None:
        key = journal_source_key(date, entry_id)
        try:
            return self._finalize(self._apply(lambda index: index.update_tags(key, tags)))
        except Exception:  # noqa: BLE001
            logger.exception("Failed to update journal entry %r in tag index", key)
            return None

    def remove_journal_entry_from_index(self, date: str, entry_id: str) -> ReindexEvent | None:
        return self.remove_file_from_index(journal_source_key(date, entry_id))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def search_tags(self, query: str) -> list[TagMatch]:
        """Fuzzy-search tag names; empty before the index is built or loaded."""
        if not query or self._matcher is None:
            return []
        try:
            return self._matcher.search(query)
        except Exception:  # noqa: BLE001
            logger.exception("Tag search failed for %r", query)
            return []

    def get_all_tags(self) -> list[TagEntry]:
        """All tags with counts, most used first."""
        return self.index.sorted_tags()

    def get_files_for_tag(self, tag: str) -> list[str]:
        return self.index.files_for_tag(tag)

    def tag_frame(self) -> pl.DataFrame:
        return self.index.tag_frame()

    def journal_dates(self) -> set[str]:
        """Dates that have a journal day file (YAML or Markdown)."""
        return collect_journal_dates(self.store, self.journal_root, extension="both")

    def vocabulary(self) -> TagVocabulary:
        """Autocomplete vocabulary from ``.editor-tags.yaml`` or the index."""
        return load_vocabulary(self.store, self.index)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load_from_storage(self) -> bool:
        """Rehydrate from the persistence slot without rescanning.

        Returns ``True`` when an index was loaded; the matcher is rebuilt from
        it before returning.
        """
        if self.index_store is None:
            return False
        loaded = self.index_store.load()
        if loaded is None:
            return False
        self.index = loaded.index
        self._rebuild_matcher()
        logger.info(
            "Loaded cached tag index: %d sources, %d tags",
            loaded.meta.file_count,
            loaded.meta.tag_count,
        )
        return True

    def clear_storage(self) -> None:
        if self.index_store is not None:
            self.index_store.clear()

    def is_stale(self, max_age_ms: int | None = None) -> bool:
        """``True`` when the index was never finalized or is older than *max_age_ms*."""
        if not self.index.last_indexed:
            return True
        limit = self.stale_after_ms if max_age_ms is None else max_age_ms
        return now_ms() - self.index.last_indexed > limit

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self.bus.clear()
        kv = self.index_store.kv if self.index_store is not None else None
        if isinstance(kv, DuckDBKeyValueStore):
            kv.close()

    def __enter__(self) -> "TagSession":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


def open_session(config: NotetagsConfig) -> TagSession:
    """Create a session over a local vault with a DuckDB-backed index cache."""
    kv = DuckDBKeyValueStore(config.db_path)
    return TagSession(
        LocalFileStore(config.vault_dir),
        index_store=IndexStore(kv, key=config.storage_key),
        journal_root=config.journal_root,
        fuzzy_threshold=config.fuzzy_threshold,
        read_limit=config.frontmatter_read_limit,
        stale_after_ms=config.stale_after_ms,
    )
