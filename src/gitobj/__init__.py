"""gitobj - Git-compatible content-addressable object store.

gitobj stores blobs, trees and commits as zlib-compressed, SHA-1 addressed
loose objects, byte-for-byte compatible with Git's object database.
"""

__version__ = "0.1.0"
__author__ = "gitobj Contributors"

__all__ = ["__version__", "__author__"]
