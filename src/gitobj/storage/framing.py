"""Object framing shared by every object kind.

A stored object decompresses to::

    <kind> <payload length>\\0<payload>

This module produces and parses that header, and provides the two stream
adapters the reader stacks on top of an object file: an incremental zlib
decompressor and a reader bounded to the declared payload length.
"""

import enum
import io
import zlib
from typing import BinaryIO, Tuple

from gitobj.constants import COPY_CHUNK_SIZE, MAX_HEADER_SIZE
from gitobj.errors import ObjectCorruptedError


class ObjectKind(enum.Enum):
    """The closed set of object kinds."""

    BLOB = "blob"
    TREE = "tree"
    COMMIT = "commit"

    @classmethod
    def from_name(cls, name: str) -> "ObjectKind":
        """Look up a kind by its ASCII name.

        Raises:
            ValueError: If ``name`` is not blob, tree or commit
        """
        try:
            return cls(name)
        except ValueError:
            raise ValueError(f"Unknown object kind: {name}") from None

    def __str__(self) -> str:
        return self.value


class TruncatedObjectError(ObjectCorruptedError):
    """Raised when an object ends before its declared length."""


class MalformedHeaderError(ObjectCorruptedError):
    """Raised when an object header does not follow ``<kind> <len>\\0``.

    Attributes:
        header: The raw header bytes that failed to parse
    """

    def __init__(self, message: str, header: bytes) -> None:
        super().__init__(f"{message} (header: {header!r})")
        self.header = header


class MissingTerminatorError(MalformedHeaderError):
    """No NUL byte within the first MAX_HEADER_SIZE bytes."""


class MissingSeparatorError(MalformedHeaderError):
    """No space between kind and length."""


class UnknownKindError(MalformedHeaderError):
    """Kind is not blob, tree or commit."""


class InvalidLengthError(MalformedHeaderError):
    """Length is not an unsigned decimal integer."""


def write_header(kind: ObjectKind, payload_length: int) -> bytes:
    """Serialize the header for a payload of ``payload_length`` bytes."""
    if payload_length < 0:
        raise ValueError(f"Payload length must be non-negative, got {payload_length}")
    return f"{kind.value} {payload_length}\0".encode("ascii")


def parse_header(data: bytes) -> Tuple[ObjectKind, int]:
    """Parse a header from the start of ``data``.

    Only the bytes up to the first NUL are examined; anything after it is
    payload and ignored here.

    Args:
        data: Decompressed object prefix

    Returns:
        Tuple of (kind, payload length)

    Raises:
        MalformedHeaderError: One of its subclasses, depending on which part
            of the grammar is violated
    """
    end = data.find(b"\0", 0, MAX_HEADER_SIZE)
    if end < 0:
        raise MissingTerminatorError(
            f"No header terminator within {MAX_HEADER_SIZE} bytes",
            data[:MAX_HEADER_SIZE],
        )
    header = data[:end]

    kind_raw, sep, length_raw = header.partition(b" ")
    if not sep:
        raise MissingSeparatorError("Missing space in object header", header)

    try:
        kind = ObjectKind.from_name(kind_raw.decode("ascii"))
    except (UnicodeDecodeError, ValueError):
        raise UnknownKindError(
            f"Unknown object kind: {kind_raw.decode('ascii', 'backslashreplace')}",
            header,
        ) from None

    # bytes.isdigit() only accepts ASCII 0-9, so signs and spaces fail here
    if not length_raw or not length_raw.isdigit():
        raise InvalidLengthError("Object length is not a decimal integer", header)

    return kind, int(length_raw)


def read_header(stream: BinaryIO) -> Tuple[ObjectKind, int]:
    """Consume and parse the header from the front of ``stream``.

    Reads one byte at a time so that the stream is left positioned at the
    first payload byte; wrap unbuffered sources in ``io.BufferedReader``.
    """
    header = bytearray()
    while len(header) < MAX_HEADER_SIZE:
        byte = stream.read(1)
        if not byte:
            if not header:
                raise TruncatedObjectError("Object is empty")
            raise MissingTerminatorError(
                "Object ended inside its header", bytes(header)
            )
        header += byte
        if byte == b"\0":
            return parse_header(bytes(header))
    raise MissingTerminatorError(
        f"No header terminator within {MAX_HEADER_SIZE} bytes", bytes(header)
    )


class ZlibReader(io.RawIOBase):
    """Readable stream that inflates a zlib stream on demand.

    Each read inflates at most as many bytes as were requested, so the
    amount of decompressed data held in memory is bounded by the caller's
    buffer, not by the compression ratio.
    """

    def __init__(self, raw: BinaryIO, chunk_size: int = COPY_CHUNK_SIZE) -> None:
        self._raw = raw
        self._chunk_size = chunk_size
        self._decompressor = zlib.decompressobj()
        self._pending = b""

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        size = len(buffer)
        while size and not self._decompressor.eof:
            exhausted = False
            if not self._pending:
                self._pending = self._raw.read(self._chunk_size)
                exhausted = not self._pending
            try:
                data = self._decompressor.decompress(self._pending, size)
            except zlib.error as e:
                raise ObjectCorruptedError(f"Corrupt compressed stream: {e}") from e
            self._pending = self._decompressor.unconsumed_tail
            if data:
                buffer[: len(data)] = data
                return len(data)
            if exhausted:
                raise TruncatedObjectError("Compressed stream ended unexpectedly")
        return 0

    def close(self) -> None:
        if not self.closed:
            self._raw.close()
        super().close()


class BoundedReader(io.RawIOBase):
    """Readable stream that yields exactly ``limit`` bytes of ``raw``.

    Reads stop at the limit whatever the underlying stream could still
    produce. If the underlying stream runs dry first, the object is shorter
    than its header claims and ``TruncatedObjectError`` is raised.
    """

    def __init__(self, raw: BinaryIO, limit: int) -> None:
        self._raw = raw
        self._limit = limit
        self._remaining = limit

    @property
    def remaining(self) -> int:
        return self._remaining

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self._remaining == 0 or not len(buffer):
            return 0
        data = self._raw.read(min(len(buffer), self._remaining))
        if not data:
            raise TruncatedObjectError(
                f"Object payload ended after {self._limit - self._remaining} "
                f"of {self._limit} declared bytes"
            )
        buffer[: len(data)] = data
        self._remaining -= len(data)
        return len(data)

    def close(self) -> None:
        if not self.closed:
            self._raw.close()
        super().close()
