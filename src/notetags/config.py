"""Runtime configuration and logging setup.

Environment variables (all optional; direct kwargs take precedence):
    NOTETAGS_VAULT_DIR          – root of the note collection (default: cwd)
    NOTETAGS_JOURNAL_ROOT       – journal folder inside the vault
                                  (default: ``zzz_Daily Notes``)
    NOTETAGS_DB_PATH            – DuckDB file for the cached index
                                  (default: ``:memory:``)
    NOTETAGS_FUZZY_THRESHOLD    – 0.0 (exact) .. 1.0 (anything), default 0.4
    NOTETAGS_READ_LIMIT         – characters read per note for frontmatter
    NOTETAGS_STORAGE_KEY        – key/value slot holding the index
    NOTETAGS_STALE_AFTER_MS     – cached index age treated as stale
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from notetags.frontmatter import FRONTMATTER_READ_LIMIT
from notetags.fuzzy import DEFAULT_THRESHOLD
from notetags.persistence import STORAGE_KEY

DEFAULT_JOURNAL_ROOT = "zzz_Daily Notes"
DEFAULT_STALE_AFTER_MS = 24 * 60 * 60 * 1000

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class NotetagsConfig:
    vault_dir: Path
    journal_root: str = DEFAULT_JOURNAL_ROOT
    db_path: str = ":memory:"
    fuzzy_threshold: float = DEFAULT_THRESHOLD
    frontmatter_read_limit: int = FRONTMATTER_READ_LIMIT
    storage_key: str = STORAGE_KEY
    stale_after_ms: int = DEFAULT_STALE_AFTER_MS

    def __post_init__(self) -> None:
        if not 0.0 <= self.fuzzy_threshold <= 1.0:
            raise ValueError(f"fuzzy_threshold must be within [0, 1], got {self.fuzzy_threshold}")
        if self.frontmatter_read_limit <= 0:
            raise ValueError("frontmatter_read_limit must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> "NotetagsConfig":
        """Build a config from ``NOTETAGS_*`` variables; *overrides* win."""
        env = os.environ
        values: dict[str, Any] = {
            "vault_dir": Path(env.get("NOTETAGS_VAULT_DIR", ".")).expanduser(),
            "journal_root": env.get("NOTETAGS_JOURNAL_ROOT", DEFAULT_JOURNAL_ROOT),
            "db_path": env.get("NOTETAGS_DB_PATH", ":memory:"),
            "fuzzy_threshold": float(env.get("NOTETAGS_FUZZY_THRESHOLD", DEFAULT_THRESHOLD)),
            "frontmatter_read_limit": int(env.get("NOTETAGS_READ_LIMIT", FRONTMATTER_READ_LIMIT)),
            "storage_key": env.get("NOTETAGS_STORAGE_KEY", STORAGE_KEY),
            "stale_after_ms": int(env.get("NOTETAGS_STALE_AFTER_MS", DEFAULT_STALE_AFTER_MS)),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        values["vault_dir"] = Path(values["vault_dir"])
        return cls(**values)


def configure_logging(level: int | str = logging.INFO) -> None:
    """Send ``notetags`` log records to stderr at *level*."""
    pkg_logger = logging.getLogger("notetags")
    pkg_logger.setLevel(level)
    if not any(
        isinstance(h, logging.StreamHandler) and h.stream is sys.stderr for h in pkg_logger.handlers
    ):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
        pkg_logger.addHandler(handler)
