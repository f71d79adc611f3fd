"""Index persistence: serialize a :class:`TagIndex` into one key/value slot.

Only the two maps and the metadata are stored; ``all_tags`` and the fuzzy
matcher are derived again after loading.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from notetags.errors import PersistenceError
from notetags.events import IndexMeta
from notetags.index import TagIndex

if TYPE_CHECKING:
    from notetags.storage import KeyValueStore

logger = logging.getLogger(__name__)

STORAGE_KEY = "editorTagIndex"
FORMAT_VERSION = 1


@dataclass
class LoadedIndex:
    index: TagIndex
    meta: IndexMeta


class IndexStore:
    """Save/load a tag index through a :class:`~notetags.storage.KeyValueStore`."""

    def __init__(self, kv: "KeyValueStore", key: str = STORAGE_KEY) -> None:
        self.kv = kv
        self.key = key

    def save(self, index: TagIndex) -> None:
        payload = json.dumps(
            {
                "version": FORMAT_VERSION,
                "index": index.to_dict(),
                "meta": index.meta().to_dict(),
            },
            ensure_ascii=False,
        )
        try:
            self.kv.set_item(self.key, payload)
        except Exception as exc:  # noqa: BLE001
            raise PersistenceError(f"failed to save tag index: {exc}") from exc

    def load(self) -> LoadedIndex | None:
        """Return the stored index, or ``None`` when absent or unusable."""
        try:
            raw = self.kv.get_item(self.key)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to read tag index from storage: %s", exc)
            return None
        if not raw:
            return None

        try:
            data = json.loads(raw)
            if not isinstance(data, dict) or data.get("version") != FORMAT_VERSION:
                raise ValueError("unsupported tag index format")
            meta = IndexMeta.from_dict(data["meta"])
            index = TagIndex.from_dict(data["index"], last_indexed=meta.last_indexed)
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.error("Discarding stored tag index: %s", exc)
            return None
        return LoadedIndex(index=index, meta=index.meta())

    def clear(self) -> None:
        try:
            self.kv.remove_item(self.key)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to clear stored tag index: %s", exc)
