"""Base exception for gitobj.

Each module defines its own exception classes; they all derive from
``GitObjError`` so the command layer can report any of them uniformly.
"""


class GitObjError(Exception):
    """Base class for all gitobj errors."""


class ObjectCorruptedError(GitObjError):
    """Raised when a stored object does not match the on-disk format."""
