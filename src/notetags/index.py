"""TagIndex: bidirectional tag index over notes and journal entries.

``files`` maps a source key (relative note path or
``journal:<date>#<entryId>``) to its tags; ``tags`` maps each tag back to the
source keys carrying it.  ``all_tags`` is derived from ``tags`` and rebuilt
lazily on first read after a mutation.

Every mutating method keeps the two maps mirror images of each other: a key
appears in ``tags[t]`` exactly once iff ``t`` is in ``files[key]``, and
neither map ever holds an empty list.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import polars as pl

from notetags.events import (
    FullReindex,
    IndexMeta,
    RemoveReindex,
    RenameReindex,
    UpdateReindex,
)
from notetags.frontmatter import (
    FRONTMATTER_READ_LIMIT,
    ListValue,
    classify_tag_value,
    extract_tags,
    normalize_tags,
)
from notetags.journal import scan_journal_for_tags
from notetags.scanner import iter_markdown_files

if TYPE_CHECKING:
    from notetags.storage import FileStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TagEntry:
    tag: str
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"tag": self.tag, "count": self.count}


def _clean(tags: Iterable[str] | str) -> list[str]:
    if isinstance(tags, str):
        return normalize_tags(classify_tag_value(tags))
    return normalize_tags(ListValue(tuple(str(t) for t in tags)))


def now_ms() -> int:
    return int(time.time() * 1000)


class TagIndex:
    """Forward and reverse tag maps for one open note collection."""

    def __init__(self) -> None:
        self.files: dict[str, list[str]] = {}
        self.tags: dict[str, list[str]] = {}
        self.last_indexed: int = 0
        self._all_tags: list[TagEntry] | None = []

    # ------------------------------------------------------------------
    # Derived data
    # ------------------------------------------------------------------

    @property
    def all_tags(self) -> list[TagEntry]:
        """``(tag, count)`` per live tag, in ``tags`` order."""
        if self._all_tags is None:
            self._all_tags = [TagEntry(tag, len(keys)) for tag, keys in self.tags.items()]
        return self._all_tags

    def _invalidate(self) -> None:
        self._all_tags = None

    def meta(self) -> IndexMeta:
        return IndexMeta(
            file_count=len(self.files),
            tag_count=len(self.tags),
            last_indexed=self.last_indexed,
        )

    def touch(self) -> None:
        """Stamp the index as finalized now."""
        self.last_indexed = now_ms()

    # ------------------------------------------------------------------
    # Reverse-reference bookkeeping
    # ------------------------------------------------------------------

    def _remove_references(self, key: str) -> None:
        for tag in self.files.get(key, []):
            keys = self.tags.get(tag)
            if keys is None:
                continue
            if key in keys:
                keys.remove(key)
            if not keys:
                del self.tags[tag]

    def _add_references(self, key: str, tags: list[str]) -> None:
        for tag in tags:
            keys = self.tags.setdefault(tag, [])
            if key not in keys:
                keys.append(key)

    def _assign(self, key: str, tags: list[str]) -> None:
        self._remove_references(key)
        if tags:
            self.files[key] = tags
            self._add_references(key, tags)
        else:
            self.files.pop(key, None)
        self._invalidate()

    # ------------------------------------------------------------------
    # Full build
    # ------------------------------------------------------------------

    def reset(self) -> None:
        self.files = {}
        self.tags = {}
        self.last_indexed = 0
        self._all_tags = []

    def build_steps(
        self,
        store: "FileStore",
        journal_root: str | None = None,
        *,
        read_limit: int = FRONTMATTER_READ_LIMIT,
    ) -> Iterator[str]:
        """Reset, then ingest notes and journal entries one at a time.

        Yields each processed source key so a caller can suspend between
        steps.  Markdown files anywhere in the store are indexed by path;
        journal ``.yaml`` day files only by the journal pass.
        """
        self.reset()

        for path in iter_markdown_files(store):
            try:
                head = store.read_file(path)[:read_limit]
            except Exception as exc:  # noqa: BLE001
                logger.error("Error reading file %r: %s", path, exc)
                continue
            tags = extract_tags(head)
            if tags:
                self._assign(path, tags)
            yield path

        if journal_root:
            for key, tags in scan_journal_for_tags(store, journal_root):
                self._assign(key, _clean(tags))
                yield key

        self._canonicalize()

    def _canonicalize(self) -> None:
        """Order both maps by source key so a rebuild never depends on listing order."""
        self.files = dict(sorted(self.files.items()))
        self.tags = {}
        for key, tags in self.files.items():
            self._add_references(key, tags)
        self._invalidate()

    def build(
        self,
        store: "FileStore",
        journal_root: str | None = None,
        *,
        read_limit: int = FRONTMATTER_READ_LIMIT,
    ) -> FullReindex:
        """(Re-)scan the note tree and the journal tree."""
        for _ in self.build_steps(store, journal_root, read_limit=read_limit):
            pass
        return self.full_event()

    def full_event(self) -> FullReindex:
        return FullReindex(
            files_added=tuple(self.files),
            tags_added=tuple(self.tags),
            meta=self.meta(),
        )

    # ------------------------------------------------------------------
    # Incremental operations
    # ------------------------------------------------------------------

    def update_tags(self, key: str, tags: Iterable[str] | str) -> UpdateReindex:
        """Replace the tags of *key*.

        Only tags absent from the whole index beforehand are reported as
        added; only tags whose member list empties are reported as removed.
        """
        old_tags = self.files.get(key, [])
        existing = set(self.tags)
        new_tags = _clean(tags)

        self._assign(key, new_tags)

        added = [t for t in new_tags if t not in existing]
        removed = [t for t in old_tags if t not in self.tags]
        return UpdateReindex(
            files_added=(key,) if new_tags else (),
            files_removed=(key,) if old_tags and not new_tags else (),
            tags_added=tuple(added),
            tags_removed=tuple(removed),
            meta=self.meta(),
        )

    def update_file(self, key: str, content: str) -> UpdateReindex:
        return self.update_tags(key, extract_tags(content))

    def remove_file(self, key: str) -> RemoveReindex | None:
        """Drop *key*; ``None`` (and nothing changes) when it is not indexed."""
        old_tags = self.files.get(key)
        if old_tags is None:
            return None
        self._assign(key, [])
        return RemoveReindex(
            files_removed=(key,),
            tags_removed=tuple(t for t in old_tags if t not in self.tags),
            meta=self.meta(),
        )

    def rename_file(self, old_key: str, new_key: str) -> RenameReindex | None:
        """Move *old_key*'s tags to *new_key*, keeping each reverse-list position."""
        tags = self.files.get(old_key)
        if tags is None or old_key == new_key:
            return None

        # Renaming over an indexed key replaces it
        displaced = self.files.get(new_key, [])
        if displaced:
            self._assign(new_key, [])

        self.files[new_key] = self.files.pop(old_key)
        for tag in tags:
            keys = self.tags.get(tag)
            if keys and old_key in keys:
                keys[keys.index(old_key)] = new_key
        self._invalidate()

        return RenameReindex(
            files_added=(new_key,),
            files_removed=(old_key,),
            tags_removed=tuple(t for t in displaced if t not in self.tags),
            meta=self.meta(),
        )

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    def files_for_tag(self, tag: str) -> list[str]:
        return list(self.tags.get(tag, []))

    def sorted_tags(self) -> list[TagEntry]:
        """``all_tags`` by count, highest first (ties keep index order)."""
        return sorted(self.all_tags, key=lambda e: -e.count)

    def tag_frame(self) -> pl.DataFrame:
        """Return a tag → count table sorted by frequency."""
        return pl.DataFrame(
            {
                "tag": [e.tag for e in self.all_tags],
                "count": [e.count for e in self.all_tags],
            },
            schema={"tag": pl.Utf8, "count": pl.Int64},
        ).sort(["count", "tag"], descending=[True, False])

    # ------------------------------------------------------------------
    # Consistency / serialization
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """Raise ``ValueError`` describing the first broken invariant, if any."""
        for key, tags in self.files.items():
            if not tags:
                raise ValueError(f"source {key!r} has an empty tag list")
            for tag in tags:
                if self.tags.get(tag, []).count(key) != 1:
                    raise ValueError(f"tag {tag!r} does not list {key!r} exactly once")
        for tag, keys in self.tags.items():
            if not keys:
                raise ValueError(f"tag {tag!r} has no sources")
            for key in keys:
                if tag not in self.files.get(key, []):
                    raise ValueError(f"source {key!r} does not carry tag {tag!r}")

    def to_dict(self) -> dict[str, Any]:
        return {"files": self.files, "tags": self.tags}

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, last_indexed: int = 0) -> "TagIndex":
        """Rehydrate an index; raises ``ValueError`` on malformed or inconsistent data."""
        files = data.get("files")
        tags = data.get("tags")
        if not isinstance(files, dict) or not isinstance(tags, dict):
            raise ValueError("'files' and 'tags' must be mappings")
        index = cls()
        for name, mapping, target in (("files", files, index.files), ("tags", tags, index.tags)):
            for key, values in mapping.items():
                if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
                    raise ValueError(f"{name}[{key!r}] must be a list of strings")
                target[str(key)] = list(values)
        index.validate()
        index.last_indexed = last_indexed
        index._invalidate()
        return index
