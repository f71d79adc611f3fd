"""Unit tests for notetags.index.TagIndex."""

import os
import shutil
from pathlib import Path

import polars as pl
import pytest

from conftest import JOURNAL_ROOT, FlakyFileStore, write_journal_day, write_note
from notetags.events import FullReindex, RemoveReindex, RenameReindex, UpdateReindex
from notetags.index import TagEntry, TagIndex
from notetags.storage import LocalFileStore


@pytest.fixture()
def index(store: LocalFileStore) -> TagIndex:
    idx = TagIndex()
    idx.build(store, JOURNAL_ROOT)
    return idx


def _note(*tags: str) -> str:
    return "---\ntags: [" + ", ".join(tags) + "]\n---\nbody\n"


# ---------------------------------------------------------------------------
# Full build
# ---------------------------------------------------------------------------


class TestTagIndexBuild:
    def test_scenario_maps(self, index: TagIndex):
        assert index.files == {"a.md": ["work"], "b.md": ["work", "home"]}
        assert index.tags == {"work": ["a.md", "b.md"], "home": ["b.md"]}

    def test_scenario_all_tags(self, index: TagIndex):
        assert index.all_tags == [TagEntry("work", 2), TagEntry("home", 1)]

    def test_hidden_and_non_markdown_ignored(self, index: TagIndex):
        assert "secret" not in index.tags
        assert "ignored" not in index.tags

    def test_untagged_files_not_indexed(self, index: TagIndex):
        assert "plain.md" not in index.files

    def test_invariants_hold(self, index: TagIndex):
        index.validate()

    def test_build_event(self, store: LocalFileStore):
        event = TagIndex().build(store, JOURNAL_ROOT)
        assert isinstance(event, FullReindex)
        assert event.kind == "full"
        assert set(event.files_added) == {"a.md", "b.md"}
        assert set(event.tags_added) == {"work", "home"}
        assert event.meta.file_count == 2
        assert event.meta.tag_count == 2

    def test_rebuild_is_idempotent(self, store: LocalFileStore, index: TagIndex):
        again = TagIndex()
        again.build(store, JOURNAL_ROOT)
        assert again.to_dict() == index.to_dict()
        assert list(again.tags) == list(index.tags)

    def test_build_independent_of_listing_order(self, tmp_path: Path):
        write_note(tmp_path, "z.md", _note("shared", "z"))
        write_note(tmp_path, "m/a.md", _note("shared"))
        first = TagIndex()
        first.build(LocalFileStore(tmp_path))

        class ReversedStore(LocalFileStore):
            def list_directory(self, path):
                return list(reversed(super().list_directory(path)))

        second = TagIndex()
        second.build(ReversedStore(tmp_path))
        assert first.to_dict() == second.to_dict()

    def test_build_resets_previous_state(self, store: LocalFileStore, index: TagIndex):
        index.update_file("ghost.md", _note("ghost"))
        index.build(store, JOURNAL_ROOT)
        assert "ghost" not in index.tags

    def test_unreadable_file_skipped(self, vault_dir: Path):
        idx = TagIndex()
        idx.build(FlakyFileStore(vault_dir, bad_files={"a.md"}))
        assert idx.files == {"b.md": ["work", "home"]}

    def test_only_head_of_file_is_read(self, tmp_path: Path):
        write_note(tmp_path, "late.md", "---\nsummary: " + "x" * 3000 + "\ntags: [late]\n---\n")
        write_note(tmp_path, "long.md", _note("early") + "y" * 10_000)
        idx = TagIndex()
        idx.build(LocalFileStore(tmp_path))
        assert idx.files == {"long.md": ["early"]}

    def test_duplicate_frontmatter_tags_indexed_once(self, tmp_path: Path):
        write_note(tmp_path, "dup.md", _note("a", "a", "b"))
        idx = TagIndex()
        idx.build(LocalFileStore(tmp_path))
        assert idx.tags == {"a": ["dup.md"], "b": ["dup.md"]}
        idx.validate()

    def test_empty_vault(self, tmp_path: Path):
        idx = TagIndex()
        event = idx.build(LocalFileStore(tmp_path), JOURNAL_ROOT)
        assert idx.files == {} and idx.tags == {} and idx.all_tags == []
        assert event.files_added == ()

    def test_directory_symlink_cycle_indexed_once(self, vault_dir: Path):
        os.symlink(vault_dir, vault_dir / "loop", target_is_directory=True)
        idx = TagIndex()
        idx.build(LocalFileStore(vault_dir))
        assert idx.files == {"a.md": ["work"], "b.md": ["work", "home"]}


# ---------------------------------------------------------------------------
# Journal merge
# ---------------------------------------------------------------------------


class TestTagIndexJournal:
    def test_journal_entries_share_tag_map(self, vault_dir: Path):
        write_journal_day(vault_dir, "2025-01-15", [
            {"id": "e1", "text": "standup", "tags": ["daily"]},
            {"id": "e2", "text": "desk", "tags": ["work"]},
        ])
        idx = TagIndex()
        idx.build(LocalFileStore(vault_dir), JOURNAL_ROOT)
        assert idx.files["journal:2025-01-15#e1"] == ["daily"]
        assert idx.tags["daily"] == ["journal:2025-01-15#e1"]
        assert idx.tags["work"] == ["a.md", "b.md", "journal:2025-01-15#e2"]
        idx.validate()

    def test_journal_key_never_clashes_with_note_path(self, vault_dir: Path):
        write_note(vault_dir, "journal/2025-01-15.md", _note("daily"))
        write_journal_day(vault_dir, "2025-01-15", [{"id": "e1", "tags": ["daily"]}])
        idx = TagIndex()
        idx.build(LocalFileStore(vault_dir), JOURNAL_ROOT)
        assert sorted(idx.tags["daily"]) == ["journal/2025-01-15.md", "journal:2025-01-15#e1"]

    def test_no_journal_root(self, store: LocalFileStore):
        idx = TagIndex()
        idx.build(store, None)
        assert not any(k.startswith("journal:") for k in idx.files)


# ---------------------------------------------------------------------------
# update
# ---------------------------------------------------------------------------


class TestTagIndexUpdate:
    def test_new_file(self, index: TagIndex):
        event = index.update_file("c.md", _note("work", "fresh"))
        assert isinstance(event, UpdateReindex)
        assert event.files_added == ("c.md",)
        assert event.tags_added == ("fresh",)
        assert event.tags_removed == ()
        assert index.tags["work"] == ["a.md", "b.md", "c.md"]
        index.validate()

    def test_existing_tag_gaining_member_not_reported_added(self, index: TagIndex):
        event = index.update_file("c.md", _note("home"))
        assert event.tags_added == ()
        assert index.tags["home"] == ["b.md", "c.md"]

    def test_ab_to_bc(self):
        idx = TagIndex()
        idx.update_file("f.md", _note("a", "b"))
        event = idx.update_file("f.md", _note("b", "c"))
        assert event.tags_removed == ("a",)
        assert event.tags_added == ("c",)
        assert "b" not in event.tags_added + event.tags_removed
        assert idx.files == {"f.md": ["b", "c"]}
        assert "a" not in idx.tags
        idx.validate()

    def test_removed_tag_kept_when_other_file_has_it(self, index: TagIndex):
        event = index.update_file("a.md", _note("other"))
        assert event.tags_removed == ()
        assert index.tags["work"] == ["b.md"]

    def test_update_to_no_tags_drops_forward_entry(self, index: TagIndex):
        event = index.update_file("b.md", "# no frontmatter")
        assert "b.md" not in index.files
        assert "home" not in index.tags
        assert event.files_removed == ("b.md",)
        assert event.files_added == ()
        assert event.tags_removed == ("home",)
        index.validate()

    def test_untagged_new_file_is_noop_on_maps(self, index: TagIndex):
        before = index.to_dict()
        event = index.update_file("plain.md", "nothing")
        assert index.to_dict() == before
        assert event.files_added == () and event.files_removed == ()

    def test_all_tags_rebuilt_after_update(self, index: TagIndex):
        index.update_file("c.md", _note("work"))
        assert TagEntry("work", 3) in index.all_tags

    def test_update_tags_normalizes(self):
        idx = TagIndex()
        idx.update_tags("journal:2025-01-15#e1", ["x", " x ", "", "y"])
        assert idx.files == {"journal:2025-01-15#e1": ["x", "y"]}


# ---------------------------------------------------------------------------
# remove
# ---------------------------------------------------------------------------


class TestTagIndexRemove:
    def test_delete_cascades(self, index: TagIndex):
        event = index.remove_file("b.md")
        assert isinstance(event, RemoveReindex)
        assert index.tags == {"work": ["a.md"]}
        assert "home" not in [e.tag for e in index.all_tags]
        assert event.files_removed == ("b.md",)
        assert event.tags_removed == ("home",)
        index.validate()

    def test_remove_last_carrier(self, index: TagIndex):
        index.remove_file("a.md")
        index.remove_file("b.md")
        assert index.tags == {} and index.files == {} and index.all_tags == []

    def test_remove_unknown_is_noop(self, index: TagIndex):
        before = index.to_dict()
        assert index.remove_file("missing.md") is None
        assert index.to_dict() == before

    def test_remove_twice(self, index: TagIndex):
        assert index.remove_file("a.md") is not None
        assert index.remove_file("a.md") is None


# ---------------------------------------------------------------------------
# rename
# ---------------------------------------------------------------------------


class TestTagIndexRename:
    def test_rename_moves_key_in_place(self, index: TagIndex):
        event = index.rename_file("a.md", "archive/a.md")
        assert isinstance(event, RenameReindex)
        assert index.files == {"b.md": ["work", "home"], "archive/a.md": ["work"]}
        assert index.tags["work"] == ["archive/a.md", "b.md"]
        assert event.files_added == ("archive/a.md",)
        assert event.files_removed == ("a.md",)
        assert event.tags_added == () and event.tags_removed == ()
        index.validate()

    def test_rename_preserves_counts(self, index: TagIndex):
        counts = {e.tag: e.count for e in index.all_tags}
        index.rename_file("b.md", "c.md")
        assert {e.tag: e.count for e in index.all_tags} == counts

    def test_rename_unknown_is_noop(self, index: TagIndex):
        before = index.to_dict()
        assert index.rename_file("missing.md", "x.md") is None
        assert index.to_dict() == before

    def test_rename_onto_indexed_key_replaces_it(self, index: TagIndex):
        event = index.rename_file("a.md", "b.md")
        assert index.files == {"b.md": ["work"]}
        assert index.tags == {"work": ["b.md"]}
        assert event.tags_removed == ("home",)
        index.validate()


# ---------------------------------------------------------------------------
# Queries / serialization
# ---------------------------------------------------------------------------


class TestTagIndexQueries:
    def test_files_for_tag(self, index: TagIndex):
        assert index.files_for_tag("work") == ["a.md", "b.md"]
        assert index.files_for_tag("nope") == []

    def test_files_for_tag_returns_copy(self, index: TagIndex):
        index.files_for_tag("work").append("x.md")
        assert index.tags["work"] == ["a.md", "b.md"]

    def test_sorted_tags(self, index: TagIndex):
        index.update_file("c.md", _note("home"))
        index.update_file("d.md", _note("home"))
        assert [e.tag for e in index.sorted_tags()] == ["home", "work"]

    def test_tag_frame(self, index: TagIndex):
        df = index.tag_frame()
        assert isinstance(df, pl.DataFrame)
        assert df.to_dicts() == [{"tag": "work", "count": 2}, {"tag": "home", "count": 1}]

    def test_empty_tag_frame(self):
        assert TagIndex().tag_frame().height == 0

    def test_meta(self, index: TagIndex):
        meta = index.meta()
        assert (meta.file_count, meta.tag_count) == (2, 2)

    def test_round_trip(self, index: TagIndex):
        restored = TagIndex.from_dict(index.to_dict())
        assert restored.to_dict() == index.to_dict()
        assert restored.all_tags == index.all_tags

    @pytest.mark.parametrize(
        "data",
        [
            {"files": {"a.md": ["x"]}, "tags": {}},
            {"files": {}, "tags": {"x": ["a.md"]}},
            {"files": {"a.md": []}, "tags": {}},
            {"files": {"a.md": ["x"]}, "tags": {"x": ["a.md", "a.md"]}},
            {"files": [], "tags": {}},
            {"files": {"a.md": "x"}, "tags": {}},
        ],
    )
    def test_from_dict_rejects_inconsistent_data(self, data):
        with pytest.raises(ValueError):
            TagIndex.from_dict(data)


# ---------------------------------------------------------------------------
# Sequences
# ---------------------------------------------------------------------------


class TestTagIndexInvariants:
    def test_invariants_after_each_operation(self, vault_dir: Path):
        idx = TagIndex()
        idx.build(LocalFileStore(vault_dir), JOURNAL_ROOT)
        ops = [
            lambda: idx.update_file("c.md", _note("x", "work")),
            lambda: idx.update_file("a.md", _note("x")),
            lambda: idx.rename_file("c.md", "dir/c.md"),
            lambda: idx.update_tags("journal:2025-01-01#e", ["x", "daily"]),
            lambda: idx.remove_file("b.md"),
            lambda: idx.rename_file("dir/c.md", "a.md"),
            lambda: idx.update_file("a.md", ""),
            lambda: idx.remove_file("journal:2025-01-01#e"),
        ]
        for op in ops:
            op()
            idx.validate()
            assert all(e.count == len(idx.tags[e.tag]) for e in idx.all_tags)
        assert idx.files == {} and idx.tags == {}

    def test_rebuild_after_deleting_files(self, vault_dir: Path):
        (vault_dir / "b.md").unlink()
        shutil.rmtree(vault_dir / ".obsidian")
        idx = TagIndex()
        idx.build(LocalFileStore(vault_dir))
        assert idx.tags == {"work": ["a.md"]}
