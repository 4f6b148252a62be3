"""Storage layer for gitobj.

This module provides object addressing, framing, the loose object store,
and the tree and commit codecs built on top of it.
"""

from gitobj.storage.address import InvalidAddressError, ObjectAddress, parse_address
from gitobj.storage.commit_builder import (
    Commit,
    CommitBuilder,
    CommitBuilderError,
    CommitFormatError,
    Signature,
)
from gitobj.storage.framing import (
    MalformedHeaderError,
    ObjectKind,
    TruncatedObjectError,
)
from gitobj.storage.object_store import (
    ObjectLengthMismatchError,
    ObjectNotFoundError,
    ObjectStore,
    ObjectStream,
    StoreWriteError,
)
from gitobj.storage.tree_codec import (
    EntryMode,
    InvalidTreeEntryError,
    TreeEntry,
    TreeFormatError,
    decode_tree,
    encode_tree,
    write_tree,
)

__all__ = [
    "ObjectAddress",
    "parse_address",
    "InvalidAddressError",
    "ObjectKind",
    "MalformedHeaderError",
    "TruncatedObjectError",
    "ObjectStore",
    "ObjectStream",
    "ObjectNotFoundError",
    "ObjectLengthMismatchError",
    "StoreWriteError",
    "EntryMode",
    "TreeEntry",
    "TreeFormatError",
    "InvalidTreeEntryError",
    "encode_tree",
    "decode_tree",
    "write_tree",
    "Commit",
    "CommitBuilder",
    "CommitBuilderError",
    "CommitFormatError",
    "Signature",
]
