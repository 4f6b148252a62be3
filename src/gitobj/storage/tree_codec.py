"""Tree object encoding and decoding.

A tree payload is a concatenation of entries, each laid out as::

    <mode ASCII> <name>\\0<20-byte raw SHA-1>

There is no separator between one entry's digest and the next entry's mode,
and the digest may itself contain spaces or NULs, so a payload can't be
split on delimiters. Decoding walks the stream with three reads per entry:
up to a space, up to a NUL, then exactly 20 bytes.
"""

import enum
import io
import logging
import stat
from typing import BinaryIO, Iterable, Iterator, List, Optional, Tuple, Union

from gitobj.constants import (
    DIGEST_SIZE,
    DIRECTORY_MODE,
    EXECUTABLE_MODE,
    FILE_MODE,
    GITLINK_MODE,
    SYMLINK_MODE,
)
from gitobj.errors import GitObjError, ObjectCorruptedError
from gitobj.storage.address import ObjectAddress
from gitobj.storage.framing import ObjectKind
from gitobj.storage.object_store import ObjectStore

logger = logging.getLogger(__name__)

# Six octal digits plus the terminating space
_MAX_MODE_FIELD = len(FILE_MODE) + 1


class InvalidTreeEntryError(GitObjError, ValueError):
    """Raised when an entry can't be represented in a tree."""


class TreeFormatError(ObjectCorruptedError):
    """Raised when a tree payload doesn't follow the entry grammar."""


class EntryMode(enum.Enum):
    """Tree entry modes.

    Directories are written as ``40000`` without a leading zero while other
    modes keep all six digits; Git writes them this way and hashes depend on
    it. Snapshots only produce FILE and DIRECTORY; the rest appear in trees
    written by Git.
    """

    FILE = FILE_MODE
    EXECUTABLE = EXECUTABLE_MODE
    SYMLINK = SYMLINK_MODE
    GITLINK = GITLINK_MODE
    DIRECTORY = DIRECTORY_MODE

    @property
    def kind(self) -> ObjectKind:
        """Kind of object an entry with this mode points to."""
        if self is EntryMode.DIRECTORY:
            return ObjectKind.TREE
        if self is EntryMode.GITLINK:
            return ObjectKind.COMMIT
        return ObjectKind.BLOB

    @classmethod
    def parse(cls, raw: bytes) -> "EntryMode":
        """Read a mode field from a stored tree.

        Any octal mode is accepted. Modes Git doesn't write are folded onto
        the closest one the way Git canonicalizes them when walking a tree
        (``100664`` reads as a plain file, ``040000`` as a directory).

        Raises:
            TreeFormatError: If the field is empty or not octal
        """
        if not raw or raw.strip(b"01234567"):
            raise TreeFormatError(f"Malformed tree entry mode: {raw!r}")
        text = raw.decode("ascii")
        try:
            return cls(text)
        except ValueError:
            pass

        value = int(text, 8)
        if stat.S_ISDIR(value):
            return cls.DIRECTORY
        if stat.S_ISLNK(value):
            return cls.SYMLINK
        if stat.S_ISREG(value):
            return cls.EXECUTABLE if value & 0o111 else cls.FILE
        return cls.GITLINK


class TreeEntry:
    """One (mode, name, address) row of a tree.

    Attributes:
        mode: Entry mode
        name: Entry name, a single path component
        address: Address of the blob or subtree
    """

    __slots__ = ("mode", "name", "address")

    def __init__(self, mode: EntryMode, name: str, address: ObjectAddress) -> None:
        if not name:
            raise InvalidTreeEntryError("Tree entry name must not be empty")
        if "\0" in name:
            raise InvalidTreeEntryError(f"Tree entry name contains NUL: {name!r}")
        if "/" in name:
            raise InvalidTreeEntryError(f"Tree entry name contains '/': {name!r}")
        self.mode = mode
        self.name = name
        self.address = address

    @property
    def name_bytes(self) -> bytes:
        return self.name.encode("utf-8")

    @property
    def encoded_size(self) -> int:
        """Number of bytes this entry occupies in a tree payload."""
        return len(self.mode.value) + 1 + len(self.name_bytes) + 1 + DIGEST_SIZE

    def encode(self) -> bytes:
        return b"%s %s\0%s" % (
            self.mode.value.encode("ascii"),
            self.name_bytes,
            self.address.digest,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TreeEntry):
            return NotImplemented
        return (self.mode, self.name, self.address) == (
            other.mode,
            other.name,
            other.address,
        )

    def __hash__(self) -> int:
        return hash((self.mode, self.name, self.address))

    def __repr__(self) -> str:
        return f"TreeEntry({self.mode.value} {self.name!r} {self.address})"


def _sort_key(entry: TreeEntry) -> bytes:
    # Directories compare as if their name ended in "/"
    if entry.mode is EntryMode.DIRECTORY:
        return entry.name_bytes + b"/"
    return entry.name_bytes


def sort_entries(entries: Iterable[TreeEntry]) -> List[TreeEntry]:
    """Order entries the way Git does.

    Names compare byte by byte, with a directory's name treated as ending in
    ``/``, so a file ``foo.txt`` comes before a directory ``foo``.

    Raises:
        InvalidTreeEntryError: If two entries share a name
    """
    entries = list(entries)
    seen = set()
    for entry in entries:
        if entry.name in seen:
            raise InvalidTreeEntryError(f"Duplicate tree entry name: {entry.name!r}")
        seen.add(entry.name)
    return sorted(entries, key=_sort_key)


def tree_payload_length(entries: Iterable[TreeEntry]) -> int:
    return sum(entry.encoded_size for entry in entries)


def encode_tree(entries: Iterable[TreeEntry]) -> bytes:
    """Serialize entries into a tree payload, sorting them first."""
    return b"".join(entry.encode() for entry in sort_entries(entries))


def write_tree(store: ObjectStore, entries: Iterable[TreeEntry]) -> ObjectAddress:
    """Encode entries and store them as a tree object.

    Args:
        store: Destination object store
        entries: Tree entries in any order

    Returns:
        Address of the tree
    """
    ordered = sort_entries(entries)
    length = tree_payload_length(ordered)
    payload = io.BytesIO(b"".join(entry.encode() for entry in ordered))
    address = store.write_object(ObjectKind.TREE, payload, length)
    logger.debug("wrote tree %s with %d entries", address, len(ordered))
    return address


def _read_until(
    stream: BinaryIO,
    delimiter: bytes,
    limit: Optional[int] = None,
) -> Tuple[bytes, bool]:
    """Read bytes up to and including ``delimiter``.

    Returns:
        Tuple of (bytes before the delimiter, whether it was found)
    """
    data = bytearray()
    while limit is None or len(data) < limit:
        byte = stream.read(1)
        if not byte:
            return bytes(data), False
        if byte == delimiter:
            return bytes(data), True
        data += byte
    return bytes(data), False


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = bytearray()
    while len(data) < size:
        chunk = stream.read(size - len(data))
        if not chunk:
            break
        data += chunk
    return bytes(data)


def iter_tree_entries(stream: BinaryIO) -> Iterator[TreeEntry]:
    """Yield entries from a tree payload stream, in stored order.

    The stream should be buffered; names are read a byte at a time.

    Raises:
        TreeFormatError: If the payload ends mid-entry, or holds a malformed
            mode, a name that isn't UTF-8, or an empty name
    """
    while True:
        mode_raw, found = _read_until(stream, b" ", _MAX_MODE_FIELD)
        if not found:
            if not mode_raw:
                return
            raise TreeFormatError(f"Tree entry truncated in mode field: {mode_raw!r}")
        mode = EntryMode.parse(mode_raw)

        name_raw, found = _read_until(stream, b"\0")
        if not found:
            raise TreeFormatError(f"Tree entry truncated in name field: {name_raw!r}")
        try:
            name = name_raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise TreeFormatError(f"Tree entry name is not valid UTF-8: {name_raw!r}") from e

        digest = _read_exact(stream, DIGEST_SIZE)
        if len(digest) != DIGEST_SIZE:
            raise TreeFormatError(
                f"Tree entry {name!r} truncated: {len(digest)} of {DIGEST_SIZE} hash bytes"
            )

        try:
            entry = TreeEntry(mode, name, ObjectAddress.from_digest(digest))
        except InvalidTreeEntryError as e:
            raise TreeFormatError(str(e)) from e
        yield entry


def decode_tree(source: Union[bytes, BinaryIO]) -> List[TreeEntry]:
    """Parse a whole tree payload, given as bytes or a stream."""
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)
    return list(iter_tree_entries(source))


def escape_name(name: Union[str, bytes]) -> str:
    """Render a name for display, octal-escaping non-printable bytes.

    Bytes outside printable ASCII become a backslash and three octal digits,
    as ``git ls-tree`` shows them (``\\xe9`` -> ``\\351``).
    """
    raw = name.encode("utf-8") if isinstance(name, str) else name
    return "".join(
        chr(byte) if 0x20 <= byte < 0x7F else f"\\{byte:03o}" for byte in raw
    )


def format_tree_entry(entry: TreeEntry) -> str:
    """Format an entry as one ``ls-tree`` line.

    The mode is zero-padded to six digits for display only, and the kind
    comes from the mode, so the child object needn't exist.
    """
    return (
        f"{entry.mode.value:0>6} {entry.mode.kind.value} {entry.address}"
        f"\t{escape_name(entry.name)}"
    )
