"""Approximate tag matching over the flat ``(tag, count)`` list.

Scores follow the usual fuzzy-finder convention: ``0.0`` is a perfect match
and ``1.0`` shares nothing.  A tag is scored against the whole query and
against every query-length window of the tag, so typing a prefix or a
fragment ("proj", "ject") still finds ``project``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from difflib import SequenceMatcher
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from notetags.index import TagEntry

DEFAULT_THRESHOLD = 0.4
WINDOW_WEIGHT = 0.9


@dataclass(frozen=True)
class TagMatch:
    tag: str
    count: int
    score: float

    def to_dict(self) -> dict[str, object]:
        return {"tag": self.tag, "count": self.count, "score": self.score}


def similarity(query: str, candidate: str) -> float:
    """Blend of the best query-length window ratio and the whole-string ratio.

    The window term lets fragments match; the whole-string term ranks
    ``work`` ahead of ``workshop`` for the query "work".
    """
    q = query.lower()
    c = candidate.lower()
    if not q or not c:
        return 0.0
    matcher = SequenceMatcher(None, q, c, autojunk=False)
    whole = matcher.ratio()
    best = whole
    width = len(q)
    for start in range(len(c) - width + 1):
        if best == 1.0:
            break
        matcher.set_seq2(c[start : start + width])
        best = max(best, matcher.ratio())
    return best - (1.0 - WINDOW_WEIGHT) * (best - whole)


class FuzzyMatcher:
    """Immutable search structure; rebuild it whenever the tag list changes."""

    def __init__(self, entries: Iterable["TagEntry"], threshold: float = DEFAULT_THRESHOLD) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {threshold}")
        self.threshold = threshold
        self._entries: list[tuple[str, int]] = [(e.tag, e.count) for e in entries]

    def __len__(self) -> int:
        return len(self._entries)

    def search(self, query: str, limit: int | None = None) -> list[TagMatch]:
        """Return matches with ``score <= threshold``, best first.

        Ties on score are broken by higher usage count, then alphabetically.
        """
        if not query or not query.strip():
            return []
        q = query.strip()
        matches: list[TagMatch] = []
        for tag, count in self._entries:
            score = round(1.0 - similarity(q, tag), 6)
            if score <= self.threshold:
                matches.append(TagMatch(tag, count, score))
        matches.sort(key=lambda m: (m.score, -m.count, m.tag))
        return matches if limit is None else matches[:limit]
