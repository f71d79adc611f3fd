"""Tag vocabulary for autocomplete.

The vocabulary lives in ``.editor-tags.yaml`` at the vault root::

    version: 1
    tags:
      - name: project
        count: 10
      - name: meeting
        count: 4

It can drift from the index (tags typed but never saved, for example), so it
is kept as its own list and re-synchronised from the index on demand.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import yaml

if TYPE_CHECKING:
    from notetags.index import TagIndex
    from notetags.storage import FileStore

logger = logging.getLogger(__name__)

VOCABULARY_FILENAME = ".editor-tags.yaml"
TAG_VOCABULARY_VERSION = 1


@dataclass
class VocabularyTag:
    name: str
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "count": self.count}


@dataclass
class TagVocabulary:
    """Known tags, always sorted by count descending then name."""

    tags: list[VocabularyTag] = field(default_factory=list)

    def _sort(self) -> None:
        self.tags.sort(key=lambda t: (-t.count, t.name))

    def get(self, name: str) -> VocabularyTag | None:
        return next((t for t in self.tags if t.name == name), None)

    def has(self, name: str) -> bool:
        return self.get(name) is not None

    def add_tag(self, name: str) -> None:
        """Add *name* (trimmed, lower-cased) or bump its count if already known."""
        normalized = name.strip().lower()
        if not normalized:
            return
        existing = self.get(normalized)
        if existing:
            existing.count += 1
        else:
            self.tags.append(VocabularyTag(normalized, 1))
        self._sort()

    def increment(self, name: str) -> None:
        tag = self.get(name)
        if tag:
            tag.count += 1
            self._sort()

    def decrement(self, name: str) -> None:
        """Lower the count of *name*; the tag is dropped when it reaches zero."""
        tag = self.get(name)
        if tag is None:
            return
        tag.count -= 1
        if tag.count <= 0:
            self.tags.remove(tag)
        else:
            self._sort()

    # ------------------------------------------------------------------
    # Index synchronisation
    # ------------------------------------------------------------------

    @classmethod
    def from_index(cls, index: "TagIndex") -> "TagVocabulary":
        vocab = cls([VocabularyTag(e.tag, e.count) for e in index.all_tags])
        vocab._sort()
        return vocab

    def merge_from_index(self, index: "TagIndex") -> None:
        """Take counts from *index* for every tag it knows; keep the rest."""
        for entry in index.all_tags:
            existing = self.get(entry.tag)
            if existing:
                existing.count = entry.count
            else:
                self.tags.append(VocabularyTag(entry.tag, entry.count))
        self._sort()

    # ------------------------------------------------------------------
    # YAML
    # ------------------------------------------------------------------

    def to_yaml(self) -> str:
        data = {
            "version": TAG_VOCABULARY_VERSION,
            "tags": [t.to_dict() for t in self.tags],
        }
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True, width=float("inf"))

    @classmethod
    def from_yaml(cls, text: str) -> "TagVocabulary | None":
        """Parse a vocabulary document; ``None`` when it is not one."""
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError:
            return None
        if not isinstance(data, dict) or not isinstance(data.get("tags"), list):
            return None
        tags: list[VocabularyTag] = []
        for item in data["tags"]:
            if not isinstance(item, dict) or not item.get("name"):
                continue
            try:
                tags.append(VocabularyTag(str(item["name"]), int(item.get("count") or 0)))
            except (TypeError, ValueError):
                continue
        vocab = cls(tags)
        vocab._sort()
        return vocab


def load_vocabulary(store: "FileStore", index: "TagIndex") -> TagVocabulary:
    """Read ``.editor-tags.yaml`` from *store*, falling back to *index*."""
    try:
        if store.exists(VOCABULARY_FILENAME).exists:
            vocab = TagVocabulary.from_yaml(store.read_file(VOCABULARY_FILENAME))
            if vocab is not None:
                return vocab
            logger.warning("Invalid %s, rebuilding from the tag index", VOCABULARY_FILENAME)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Error reading tag vocabulary: %s", exc)
    return TagVocabulary.from_index(index)
