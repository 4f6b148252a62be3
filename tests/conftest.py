"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from gitobj.storage import ObjectStore


@pytest.fixture
def objects_dir(tmp_path: Path) -> Path:
    """Create a temporary objects directory."""
    objects = tmp_path / ".git" / "objects"
    objects.mkdir(parents=True)
    return objects


@pytest.fixture
def store(objects_dir: Path) -> ObjectStore:
    """Create an ObjectStore instance."""
    return ObjectStore(objects_dir)


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a small working directory to snapshot."""
    root = tmp_path / "workspace"
    root.mkdir()
    (root / "hello.txt").write_bytes(b"hello\n")
    (root / "README").write_text("A sample project\n")
    src = root / "src"
    src.mkdir()
    (src / "main.py").write_text("print('hi')\n")
    (src / "empty").mkdir()
    return root
