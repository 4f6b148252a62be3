"""Core engine layer for gitobj.

This module provides the operations built on the object store: snapshotting
a working directory into trees and supplying identities for commits.
"""

from gitobj.core.identity import default_signature
from gitobj.core.snapshot import SnapshotBuilder, SnapshotError, snapshot_directory

__all__ = [
    "SnapshotBuilder",
    "SnapshotError",
    "snapshot_directory",
    "default_signature",
]
