"""Snapshot a working directory into tree objects.

Files become blobs, subdirectories become subtrees, and each directory's
entries are written as one tree. Directories with nothing to record are
left out, as Git does.
"""

import fnmatch
import logging
import os
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, NamedTuple, Optional

from gitobj.constants import DEFAULT_SNAPSHOT_IGNORE
from gitobj.errors import GitObjError
from gitobj.storage import EntryMode, ObjectAddress, ObjectKind, ObjectStore, TreeEntry
from gitobj.storage.tree_codec import write_tree

logger = logging.getLogger(__name__)


class SnapshotError(GitObjError):
    """Exception raised while snapshotting a directory."""


class DirectoryChild(NamedTuple):
    """One item of a directory listing."""

    name: str
    is_dir: bool
    path: Path


DirectoryLister = Callable[[Path], Iterable[DirectoryChild]]


def list_directory(path: Path) -> Iterator[DirectoryChild]:
    """List regular files and directories directly under ``path``.

    Symlinks and special files are skipped.
    """
    with os.scandir(path) as entries:
        for entry in entries:
            if entry.is_symlink():
                continue
            if entry.is_dir():
                yield DirectoryChild(entry.name, True, Path(entry.path))
            elif entry.is_file():
                yield DirectoryChild(entry.name, False, Path(entry.path))


class SnapshotBuilder:
    """Writes a directory tree into an object store.

    Attributes:
        object_store: Destination for blobs and trees
        ignore: Glob patterns matched against entry names
    """

    def __init__(
        self,
        object_store: ObjectStore,
        ignore: Iterable[str] = DEFAULT_SNAPSHOT_IGNORE,
        lister: DirectoryLister = list_directory,
    ) -> None:
        self.object_store = object_store
        self.ignore = list(ignore)
        self._lister = lister

    def snapshot(self, root: Path) -> ObjectAddress:
        """Write ``root`` and everything below it.

        Args:
            root: Directory to snapshot

        Returns:
            Address of the root tree (the empty tree if nothing was found)

        Raises:
            SnapshotError: If ``root`` isn't a directory or a name isn't
                valid UTF-8
            OSError: If a file or directory can't be read
        """
        root = Path(root)
        if not root.is_dir():
            raise SnapshotError(f"Not a directory: {root}")

        address = self._snapshot_directory(root)
        if address is None:
            address = write_tree(self.object_store, [])
        return address

    def _snapshot_directory(self, directory: Path) -> Optional[ObjectAddress]:
        entries: List[TreeEntry] = []
        for child in self._lister(directory):
            if self._should_ignore(child.name):
                logger.debug("ignoring %s", child.path)
                continue
            self._check_name(child)

            if child.is_dir:
                subtree = self._snapshot_directory(child.path)
                if subtree is None:
                    continue
                entries.append(TreeEntry(EntryMode.DIRECTORY, child.name, subtree))
            else:
                blob = self.object_store.write_file(child.path, ObjectKind.BLOB)
                entries.append(TreeEntry(EntryMode.FILE, child.name, blob))

        if not entries:
            return None
        address = write_tree(self.object_store, entries)
        logger.debug("snapshot of %s -> %s", directory, address)
        return address

    def _should_ignore(self, name: str) -> bool:
        return any(fnmatch.fnmatchcase(name, pattern) for pattern in self.ignore)

    @staticmethod
    def _check_name(child: DirectoryChild) -> None:
        try:
            child.name.encode("utf-8")
        except UnicodeEncodeError:
            raise SnapshotError(
                f"File name must be valid UTF-8: {os.fsencode(child.path)!r}"
            ) from None


def snapshot_directory(
    object_store: ObjectStore,
    root: Path,
    ignore: Iterable[str] = DEFAULT_SNAPSHOT_IGNORE,
) -> ObjectAddress:
    """Convenience wrapper around :class:`SnapshotBuilder`."""
    return SnapshotBuilder(object_store, ignore).snapshot(root)
