"""Unit tests for directory snapshots."""

import hashlib
import os
from pathlib import Path

import pytest

from gitobj.core.snapshot import (
    DirectoryChild,
    SnapshotBuilder,
    SnapshotError,
    list_directory,
    snapshot_directory,
)
from gitobj.storage import EntryMode, ObjectKind, ObjectStore, decode_tree

HELLO_BLOB = "ce013625030ba8dba906f756967f9e9ca394464e"
EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"


def _entries(store: ObjectStore, address):
    kind, payload = store.read_object(address)
    assert kind is ObjectKind.TREE
    return {entry.name: entry for entry in decode_tree(payload)}


class TestListDirectory:
    """Test the default directory lister."""

    def test_lists_files_and_dirs(self, workspace: Path) -> None:
        children = {child.name: child for child in list_directory(workspace)}
        assert set(children) == {"hello.txt", "README", "src"}
        assert children["src"].is_dir
        assert not children["hello.txt"].is_dir
        assert children["README"].path == workspace / "README"

    def test_skips_symlinks(self, workspace: Path) -> None:
        if not hasattr(os, "symlink"):
            pytest.skip("symlinks unsupported")
        (workspace / "link").symlink_to(workspace / "hello.txt")
        names = [child.name for child in list_directory(workspace)]
        assert "link" not in names


class TestSnapshot:
    """Test building trees from a directory."""

    def test_snapshot_structure(self, store: ObjectStore, workspace: Path) -> None:
        root = snapshot_directory(store, workspace)
        entries = _entries(store, root)

        assert list(entries) == ["README", "hello.txt", "src"]
        assert entries["hello.txt"].mode is EntryMode.FILE
        assert entries["hello.txt"].address.hex == HELLO_BLOB
        assert entries["src"].mode is EntryMode.DIRECTORY

        sub_entries = _entries(store, entries["src"].address)
        assert list(sub_entries) == ["main.py"]

    def test_empty_directories_skipped(self, store: ObjectStore, workspace: Path) -> None:
        root = snapshot_directory(store, workspace)
        sub_entries = _entries(store, _entries(store, root)["src"].address)
        assert "empty" not in sub_entries

    def test_empty_root_gives_empty_tree(self, store: ObjectStore, tmp_path: Path) -> None:
        empty = tmp_path / "empty"
        empty.mkdir()
        assert snapshot_directory(store, empty).hex == EMPTY_TREE

    def test_git_dir_ignored(self, store: ObjectStore, workspace: Path) -> None:
        (workspace / ".git").mkdir()
        (workspace / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
        entries = _entries(store, snapshot_directory(store, workspace))
        assert ".git" not in entries

    def test_custom_ignore(self, store: ObjectStore, workspace: Path) -> None:
        (workspace / "scratch.tmp").write_text("junk")
        root = SnapshotBuilder(store, ignore=[".git", "*.tmp", "README"]).snapshot(workspace)
        assert set(_entries(store, root)) == {"hello.txt", "src"}

    def test_snapshot_is_deterministic(self, store: ObjectStore, workspace: Path) -> None:
        assert snapshot_directory(store, workspace) == snapshot_directory(store, workspace)

    def test_content_change_changes_root(self, store: ObjectStore, workspace: Path) -> None:
        before = snapshot_directory(store, workspace)
        (workspace / "src" / "main.py").write_text("print('bye')\n")
        assert snapshot_directory(store, workspace) != before

    def test_tree_hash_matches_git_layout(self, store: ObjectStore, tmp_path: Path) -> None:
        root_dir = tmp_path / "one"
        root_dir.mkdir()
        (root_dir / "hello.txt").write_bytes(b"hello\n")

        address = snapshot_directory(store, root_dir)

        payload = b"100644 hello.txt\0" + bytes.fromhex(HELLO_BLOB)
        assert address.hex == hashlib.sha1(b"tree %d\0" % len(payload) + payload).hexdigest()

    def test_not_a_directory(self, store: ObjectStore, workspace: Path) -> None:
        with pytest.raises(SnapshotError, match="Not a directory"):
            snapshot_directory(store, workspace / "hello.txt")

    def test_custom_lister(self, store: ObjectStore, tmp_path: Path) -> None:
        """Test that the directory listing collaborator can be swapped."""
        data = tmp_path / "data.txt"
        data.write_bytes(b"hello\n")

        def lister(path: Path):
            assert path == tmp_path
            yield DirectoryChild("renamed.txt", False, data)

        root = SnapshotBuilder(store, lister=lister).snapshot(tmp_path)
        entries = _entries(store, root)
        assert entries["renamed.txt"].address.hex == HELLO_BLOB

    def test_non_utf8_name(self, store: ObjectStore, tmp_path: Path) -> None:
        def lister(path: Path):
            yield DirectoryChild("caf\udce9", False, tmp_path / "x")

        with pytest.raises(SnapshotError, match="UTF-8"):
            SnapshotBuilder(store, lister=lister).snapshot(tmp_path)
