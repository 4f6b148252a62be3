"""Commit object builder and serializer.

This module handles the creation and serialization of commit objects, which
tie a tree snapshot to its parent commits and author metadata. The payload
is plain text::

    tree <hex>
    parent <hex>            (zero or more)
    author <name> <<email>> <epoch seconds> <+HHMM>
    committer <name> <<email>> <epoch seconds> <+HHMM>

    <message>

The header of an object states its length before the payload, so the
payload length is computed field by field before anything is written.
"""

import io
import logging
import re
from typing import Iterable, Iterator, List, Optional, Sequence, Union

from gitobj.errors import GitObjError, ObjectCorruptedError
from gitobj.storage.address import InvalidAddressError, ObjectAddress, parse_address
from gitobj.storage.framing import ObjectKind
from gitobj.storage.object_store import ObjectNotFoundError, ObjectStore

logger = logging.getLogger(__name__)

AddressLike = Union[str, ObjectAddress]

_OFFSET_PATTERN = re.compile(r"^[+-]\d{4}$")
_SIGNATURE_PATTERN = re.compile(rb"^(.*) <(.*)> (\d+) ([+-]\d{4})$")


class CommitBuilderError(GitObjError):
    """Exception raised during commit building."""


class CommitFormatError(ObjectCorruptedError):
    """Exception raised when a stored commit payload can't be parsed."""


class Signature:
    """Author or committer identity with a point in time.

    Attributes:
        name: Display name
        email: Email address, written inside angle brackets
        timestamp: Seconds since the Unix epoch
        offset: UTC offset as ``+HHMM`` or ``-HHMM``
    """

    __slots__ = ("name", "email", "timestamp", "offset")

    def __init__(self, name: str, email: str, timestamp: int, offset: str = "+0000"):
        for label, value in (("name", name), ("email", email)):
            if any(char in value for char in "<>\n\0"):
                raise CommitBuilderError(
                    f"Signature {label} must not contain '<', '>', newline or NUL: {value!r}"
                )
        if timestamp < 0:
            raise CommitBuilderError(f"Timestamp must be non-negative, got {timestamp}")
        if not _OFFSET_PATTERN.match(offset):
            raise CommitBuilderError(f"UTC offset must look like +HHMM, got {offset!r}")
        self.name = name
        self.email = email
        self.timestamp = int(timestamp)
        self.offset = offset

    @property
    def encoded_size(self) -> int:
        """Byte width of ``name <email> timestamp offset``."""
        return (
            len(self.name.encode("utf-8"))
            + len(" <")
            + len(self.email.encode("utf-8"))
            + len("> ")
            + len(str(self.timestamp))
            + len(" ")
            + len(self.offset)
        )

    def encode(self) -> bytes:
        return f"{self.name} <{self.email}> {self.timestamp} {self.offset}".encode("utf-8")

    @classmethod
    def decode(cls, raw: bytes) -> "Signature":
        """Parse ``name <email> timestamp offset``.

        Raises:
            CommitFormatError: If ``raw`` doesn't match that shape
        """
        match = _SIGNATURE_PATTERN.match(raw)
        if match is None:
            raise CommitFormatError(f"Malformed signature: {raw!r}")
        name, email, timestamp, offset = match.groups()
        try:
            return cls(
                name.decode("utf-8"),
                email.decode("utf-8"),
                int(timestamp),
                offset.decode("ascii"),
            )
        except (UnicodeDecodeError, CommitBuilderError) as e:
            raise CommitFormatError(f"Malformed signature: {raw!r}") from e

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Signature):
            return NotImplemented
        return self.encode() == other.encode()

    def __hash__(self) -> int:
        return hash(self.encode())

    def __repr__(self) -> str:
        return f"Signature({self.encode().decode('utf-8')!r})"


class Commit:
    """Parsed commit payload."""

    def __init__(
        self,
        tree: ObjectAddress,
        parents: List[ObjectAddress],
        author: Signature,
        committer: Signature,
        message: str,
    ):
        self.tree = tree
        self.parents = parents
        self.author = author
        self.committer = committer
        self.message = message


def _header_line(key: str, value: bytes) -> bytes:
    return key.encode("ascii") + b" " + value + b"\n"


def _iter_commit_fields(
    tree: ObjectAddress,
    parents: Sequence[ObjectAddress],
    author: Signature,
    committer: Signature,
    message: str,
) -> Iterator[bytes]:
    yield _header_line("tree", tree.hex.encode("ascii"))
    for parent in parents:
        yield _header_line("parent", parent.hex.encode("ascii"))
    yield _header_line("author", author.encode())
    yield _header_line("committer", committer.encode())
    yield b"\n"
    yield message.encode("utf-8") + b"\n"


def commit_payload_length(
    tree: ObjectAddress,
    parents: Sequence[ObjectAddress],
    author: Signature,
    committer: Signature,
    message: str,
) -> int:
    """Compute the exact payload length without serializing.

    Each header line is ``<key> <value>\\n``; hex addresses are always 40
    bytes wide.
    """
    length = len("tree ") + len(tree.hex) + 1
    length += len(parents) * (len("parent ") + len(tree.hex) + 1)
    length += len("author ") + author.encoded_size + 1
    length += len("committer ") + committer.encoded_size + 1
    length += 1  # blank line
    length += len(message.encode("utf-8")) + 1
    return length


def serialize_commit(
    tree: ObjectAddress,
    parents: Sequence[ObjectAddress],
    author: Signature,
    committer: Signature,
    message: str,
) -> bytes:
    return b"".join(_iter_commit_fields(tree, parents, author, committer, message))


def parse_commit(payload: bytes) -> Commit:
    """Parse a commit payload.

    Unknown header keys (``gpgsig``, ``encoding`` and the like) are skipped.

    Raises:
        CommitFormatError: If tree, author or committer is missing or
            malformed, or the blank line before the message is absent
    """
    headers, sep, body = payload.partition(b"\n\n")
    if not sep:
        raise CommitFormatError("Commit has no blank line before its message")

    tree: Optional[ObjectAddress] = None
    parents: List[ObjectAddress] = []
    author: Optional[Signature] = None
    committer: Optional[Signature] = None

    for line in headers.split(b"\n"):
        if line.startswith(b" "):
            continue  # continuation of a multi-line header
        key, _, value = line.partition(b" ")
        try:
            if key == b"tree":
                tree = parse_address(value.decode("ascii"))
            elif key == b"parent":
                parents.append(parse_address(value.decode("ascii")))
            elif key == b"author":
                author = Signature.decode(value)
            elif key == b"committer":
                committer = Signature.decode(value)
        except (UnicodeDecodeError, InvalidAddressError) as e:
            raise CommitFormatError(f"Malformed commit header line: {line!r}") from e

    if tree is None or author is None or committer is None:
        raise CommitFormatError("Commit is missing its tree, author or committer")

    message = body[:-1] if body.endswith(b"\n") else body
    try:
        text = message.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CommitFormatError("Commit message is not valid UTF-8") from e
    return Commit(tree, parents, author, committer, text)


class CommitBuilder:
    """Builder for creating and persisting commit objects.

    Attributes:
        object_store: ObjectStore the commit and its references live in
    """

    def __init__(self, object_store: ObjectStore):
        """Initialize CommitBuilder.

        Args:
            object_store: ObjectStore for commit storage
        """
        self.object_store = object_store

    def build_commit(
        self,
        tree: AddressLike,
        parents: Iterable[AddressLike],
        author: Signature,
        committer: Optional[Signature] = None,
        message: str = "",
        verify: bool = True,
    ) -> ObjectAddress:
        """Create a new commit object.

        Args:
            tree: Address of the root tree
            parents: Addresses of parent commits; empty for a root commit
            author: Who wrote the change
            committer: Who recorded it (defaults to ``author``)
            message: Commit message; a newline is appended
            verify: Check that the tree and parents exist with the right kinds

        Returns:
            Commit address

        Raises:
            CommitBuilderError: If an address is invalid or, with ``verify``,
                a referenced object is missing or of the wrong kind
        """
        committer = committer or author
        try:
            tree = parse_address(tree)
            parents = [parse_address(parent) for parent in parents]
        except InvalidAddressError as e:
            raise CommitBuilderError(f"Failed to create commit: {e}") from e

        if verify:
            self._check_kind(tree, ObjectKind.TREE)
            for parent in parents:
                self._check_kind(parent, ObjectKind.COMMIT)

        length = commit_payload_length(tree, parents, author, committer, message)
        payload = serialize_commit(tree, parents, author, committer, message)
        address = self.object_store.write_object(
            ObjectKind.COMMIT, io.BytesIO(payload), length
        )
        logger.debug("wrote commit %s (tree %s, %d parents)", address, tree, len(parents))
        return address

    def read_commit(self, address: AddressLike) -> Commit:
        """Read and parse a stored commit.

        Raises:
            CommitBuilderError: If the object isn't a commit
            ObjectNotFoundError: If the object doesn't exist
            CommitFormatError: If the payload can't be parsed
        """
        kind, payload = self.object_store.read_object(address)
        if kind is not ObjectKind.COMMIT:
            raise CommitBuilderError(f"Object {address} is a {kind.value}, not a commit")
        return parse_commit(payload)

    def _check_kind(self, address: ObjectAddress, expected: ObjectKind) -> None:
        try:
            kind = self.object_store.read_kind(address)
        except ObjectNotFoundError as e:
            raise CommitBuilderError(f"Failed to create commit: {e}") from e
        if kind is not expected:
            raise CommitBuilderError(
                f"Failed to create commit: {address} is a {kind.value}, not a {expected.value}"
            )
