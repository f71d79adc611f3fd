"""Reindex events and the in-process event bus.

Every index mutation publishes one :data:`ReindexEvent` on
:data:`TAGS_REINDEX`.  The payload says exactly which source keys and tags
came and went, so observers can update incrementally instead of re-reading
the whole index.  Subscribers can match exhaustively on the four variants::

    def on_reindex(event: ReindexEvent) -> None:
        match event:
            case FullReindex():
                ...
            case UpdateReindex(tags_added=added):
                ...
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Literal, Union

logger = logging.getLogger(__name__)

TAGS_REINDEX = "tags:reindex"


@dataclass(frozen=True)
class IndexMeta:
    """Snapshot of index size; ``last_indexed`` is epoch milliseconds (0 = never)."""

    file_count: int = 0
    tag_count: int = 0
    last_indexed: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "IndexMeta":
        return cls(
            file_count=int(data.get("file_count", 0)),
            tag_count=int(data.get("tag_count", 0)),
            last_indexed=int(data.get("last_indexed", 0)),
        )


# ---------------------------------------------------------------------------
# Event variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _ReindexBase:
    files_added: tuple[str, ...] = ()
    files_removed: tuple[str, ...] = ()
    tags_added: tuple[str, ...] = ()
    tags_removed: tuple[str, ...] = ()
    meta: IndexMeta = field(default_factory=IndexMeta)

    def with_meta(self, meta: IndexMeta) -> "ReindexEvent":
        return type(self)(
            files_added=self.files_added,
            files_removed=self.files_removed,
            tags_added=self.tags_added,
            tags_removed=self.tags_removed,
            meta=meta,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.kind}
        for name in ("files_added", "files_removed", "tags_added", "tags_removed"):
            value = getattr(self, name)
            if value:
                data[name] = list(value)
        data["meta"] = self.meta.to_dict()
        return data


@dataclass(frozen=True)
class FullReindex(_ReindexBase):
    kind: ClassVar[Literal["full"]] = "full"


@dataclass(frozen=True)
class UpdateReindex(_ReindexBase):
    kind: ClassVar[Literal["update"]] = "update"


@dataclass(frozen=True)
class RemoveReindex(_ReindexBase):
    kind: ClassVar[Literal["remove"]] = "remove"


@dataclass(frozen=True)
class RenameReindex(_ReindexBase):
    kind: ClassVar[Literal["rename"]] = "rename"


ReindexEvent = Union[FullReindex, UpdateReindex, RemoveReindex, RenameReindex]


# ---------------------------------------------------------------------------
# Bus
# ---------------------------------------------------------------------------

Handler = Callable[[Any], None]


class EventBus:
    """Minimal pub/sub channel owned by a session."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Handler]] = {}

    def on(self, event: str, handler: Handler) -> Callable[[], None]:
        """Subscribe *handler*; returns a callable that unsubscribes it."""
        handlers = self._listeners.setdefault(event, [])
        if handler not in handlers:
            handlers.append(handler)
        return lambda: self.off(event, handler)

    subscribe = on

    def off(self, event: str, handler: Handler) -> None:
        handlers = self._listeners.get(event)
        if not handlers:
            return
        if handler in handlers:
            handlers.remove(handler)
        if not handlers:
            del self._listeners[event]

    def emit(self, event: str, payload: Any) -> None:
        """Deliver *payload* to every handler; a failing handler does not stop the rest."""
        for handler in list(self._listeners.get(event, ())):
            try:
                handler(payload)
            except Exception:  # noqa: BLE001
                logger.exception("Error in event listener for %r", event)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))

    def clear(self) -> None:
        self._listeners.clear()
