"""Shared fixtures: a small on-disk vault with notes and a journal tree."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest
import yaml

from notetags.storage import DirEntry, LocalFileStore

JOURNAL_ROOT = "zzz_Daily Notes"


def write_note(root: Path, rel_path: str, content: str) -> Path:
    path = root / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


def write_journal_day(root: Path, date: str, entries: list[dict], journal_root: str = JOURNAL_ROOT) -> Path:
    year, month, _ = date.split("-")
    path = root / journal_root / year / month / f"{date}.yaml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump({"version": 2, "entries": entries}), encoding="utf-8")
    return path


class FlakyFileStore(LocalFileStore):
    """LocalFileStore whose listing/reading fails for chosen paths."""

    def __init__(self, root: Path, *, bad_dirs: set[str] = frozenset(), bad_files: set[str] = frozenset()) -> None:
        super().__init__(root)
        self.bad_dirs = set(bad_dirs)
        self.bad_files = set(bad_files)

    def list_directory(self, path: str) -> list[DirEntry]:
        if path in self.bad_dirs:
            raise PermissionError(f"cannot list {path}")
        return super().list_directory(path)

    def read_file(self, path: str) -> str:
        if path in self.bad_files:
            raise PermissionError(f"cannot read {path}")
        return super().read_file(path)


@pytest.fixture()
def vault_dir(tmp_path: Path) -> Path:
    """Notes a.md→[work], b.md→[work, home], plus untagged and hidden files."""
    write_note(tmp_path, "a.md", """\
        ---
        tags: [work]
        ---
        Alpha.
    """)
    write_note(tmp_path, "b.md", """\
        ---
        title: Beta
        tags:
          - work
          - home
        ---
        Beta.
    """)
    write_note(tmp_path, "plain.md", "# No frontmatter\n")
    write_note(tmp_path, "readme.txt", "---\ntags: [ignored]\n---\n")
    write_note(tmp_path, ".obsidian/hidden.md", "---\ntags: [secret]\n---\n")
    return tmp_path


@pytest.fixture()
def store(vault_dir: Path) -> LocalFileStore:
    return LocalFileStore(vault_dir)
