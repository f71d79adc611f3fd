"""YAML-frontmatter parsing and tag extraction.

The ``tags`` field arrives in several shapes (a YAML list, a single scalar, a
comma-joined string).  It is resolved once, here, into a plain ordered
``list[str]`` so the index never sees the ambiguity.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Union

import yaml

# Only the head of a note is inspected during a full build
FRONTMATTER_READ_LIMIT = 2048

# YAML front-matter block; the closing fence is the next "---"
_FRONTMATTER_RE = re.compile(r"\A---(.*?)---", re.DOTALL)
_BOM = "\ufeff"


# ---------------------------------------------------------------------------
# Tag value union
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Absent:
    pass


@dataclass(frozen=True)
class Scalar:
    value: str


@dataclass(frozen=True)
class ListValue:
    values: tuple[str, ...]


TagValue = Union[Absent, Scalar, ListValue]


def classify_tag_value(raw: Any) -> TagValue:
    """Map a raw YAML ``tags`` value onto :data:`TagValue`."""
    if raw is None:
        return Absent()
    if isinstance(raw, (list, tuple)):
        return ListValue(tuple(str(v) for v in raw if v is not None))
    if isinstance(raw, dict):
        return Absent()
    return Scalar(str(raw))


def normalize_tags(value: TagValue) -> list[str]:
    """Resolve a :data:`TagValue` to a de-duplicated, ordered tag list."""
    if isinstance(value, ListValue):
        candidates = list(value.values)
    elif isinstance(value, Scalar):
        candidates = value.value.split(",") if "," in value.value else [value.value]
    else:
        candidates = []
    stripped = (t.strip() for t in candidates)
    return list(dict.fromkeys(t for t in stripped if t))


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_frontmatter(content: str | None) -> tuple[dict[str, Any], str]:
    """Split YAML front-matter from body text.

    Returns ``(metadata_dict, body)``; ``metadata_dict`` is empty when there
    is no front-matter block or it does not parse to a mapping.
    """
    if not content:
        return {}, ""
    text = content[1:] if content.startswith(_BOM) else content
    match = _FRONTMATTER_RE.match(text)
    if not match:
        return {}, content
    body = text[match.end() :].lstrip("\n")
    try:
        meta = yaml.safe_load(match.group(1))
    except (yaml.YAMLError, ValueError):
        return {}, body
    if not isinstance(meta, dict):
        return {}, body
    return meta, body


def extract_tags(content: str | None) -> list[str]:
    """Return the frontmatter ``tags`` of *content* as a list; never raises."""
    meta, _ = parse_frontmatter(content)
    return normalize_tags(classify_tag_value(meta.get("tags")))
