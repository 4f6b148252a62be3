"""Content-addressable object storage for gitobj.

This module implements Git's loose object store. Every object is framed as
``<kind> <length>\\0<payload>``, identified by the SHA-1 of that framing,
compressed with zlib and stored under ``objects/<hash[:2]>/<hash[2:]>``.

Writes make a single pass over the payload: each chunk is fed to the hasher
and the compressor together, the compressed bytes land in a unique temporary
file, and the file is atomically renamed once the hash is known. Reads
inflate lazily and never return more than the declared payload length.
"""

import hashlib
import io
import logging
import os
import tempfile
import zlib
from pathlib import Path
from typing import BinaryIO, Callable, Tuple, Union

from gitobj.constants import (
    COMPRESSION_LEVEL,
    COPY_CHUNK_SIZE,
    HASH_ALGORITHM,
    OBJECT_FILE_MODE,
)
from gitobj.errors import GitObjError, ObjectCorruptedError
from gitobj.storage.address import ObjectAddress, parse_address
from gitobj.storage.framing import (
    BoundedReader,
    ObjectKind,
    ZlibReader,
    read_header,
    write_header,
)

logger = logging.getLogger(__name__)

AddressLike = Union[str, ObjectAddress]


class ObjectNotFoundError(GitObjError):
    """Raised when no object file exists for an address."""


class ObjectLengthMismatchError(GitObjError):
    """Raised when a payload source does not hold its declared length."""


class StoreWriteError(GitObjError):
    """Raised when the store cannot create or publish an object file."""


class HashingWriter:
    """Write sink that hashes and compresses in the same pass.

    Every byte written goes into a running SHA-1 and through a zlib
    compressor whose output is written to ``out``.
    """

    def __init__(self, out: BinaryIO, level: int = COMPRESSION_LEVEL) -> None:
        self._out = out
        self._hasher = hashlib.new(HASH_ALGORITHM)
        self._compressor = zlib.compressobj(level)
        self.bytes_written = 0

    def write(self, data: bytes) -> int:
        self._hasher.update(data)
        self._out.write(self._compressor.compress(data))
        self.bytes_written += len(data)
        return len(data)

    def finish(self) -> ObjectAddress:
        """Flush the compressor and return the address of what was written."""
        self._out.write(self._compressor.flush())
        return ObjectAddress.from_digest(self._hasher.digest())


class ObjectStream(io.BufferedReader):
    """Buffered reader over one object's payload.

    The stream is bounded to the length declared in the object header, so
    callers cannot read past the payload however much the compressed data
    would inflate to.

    Attributes:
        kind: The object's kind
        size: Declared payload length in bytes
        address: The object's address
    """

    def __init__(
        self,
        raw: BoundedReader,
        kind: ObjectKind,
        size: int,
        address: ObjectAddress,
    ) -> None:
        super().__init__(raw)
        self.kind = kind
        self.size = size
        self.address = address


def _copy_exact(
    source: BinaryIO,
    write: Callable[[bytes], object],
    length: int,
) -> None:
    """Copy exactly ``length`` bytes from ``source`` into ``write``.

    Raises:
        ObjectLengthMismatchError: If ``source`` is shorter or longer
    """
    remaining = length
    while remaining:
        chunk = source.read(min(COPY_CHUNK_SIZE, remaining))
        if not chunk:
            raise ObjectLengthMismatchError(
                f"Source ended after {length - remaining} of {length} declared bytes"
            )
        write(chunk)
        remaining -= len(chunk)
    if source.read(1):
        raise ObjectLengthMismatchError(
            f"Source holds more than its {length} declared bytes"
        )


class ObjectStore:
    """Loose object storage rooted at an ``objects`` directory.

    Storage layout:
        <objects_dir>/<hash[:2]>/<hash[2:]>    # zlib-compressed object

    Attributes:
        objects_dir: Path to the objects directory

    Example:
        >>> store = ObjectStore(Path(".git/objects"))
        >>> address = store.write_bytes(ObjectKind.BLOB, b"hello\\n")
        >>> str(address)
        'ce013625030ba8dba906f756967f9e9ca394464e'
        >>> store.read_object(address)
        (<ObjectKind.BLOB: 'blob'>, b'hello\\n')
    """

    def __init__(self, objects_dir: Path) -> None:
        """Initialize the object store.

        Args:
            objects_dir: Path to the objects directory

        Raises:
            ValueError: If objects_dir doesn't exist
        """
        self.objects_dir = Path(objects_dir)

        if not self.objects_dir.is_dir():
            raise ValueError(f"Objects directory not found: {objects_dir}")

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def write_object(
        self,
        kind: ObjectKind,
        source: BinaryIO,
        length: int,
    ) -> ObjectAddress:
        """Stream a payload into the store.

        The header is written first, so ``length`` must be known up front.
        Writing an object that already exists replaces the file with
        identical bytes.

        Args:
            kind: Object kind
            source: Readable binary stream holding exactly ``length`` bytes
            length: Payload length in bytes

        Returns:
            Address of the stored object

        Raises:
            ObjectLengthMismatchError: If source doesn't hold ``length`` bytes
            StoreWriteError: If the temporary file or destination can't be
                created or renamed
            OSError: If reading ``source`` fails
        """
        header = write_header(kind, length)

        try:
            tmp_fd, tmp_path = tempfile.mkstemp(
                dir=self.objects_dir,
                prefix=".tmp_",
                suffix=".obj",
            )
        except OSError as e:
            raise StoreWriteError(
                f"Failed to create temporary file in {self.objects_dir}: {e}"
            ) from e

        try:
            with os.fdopen(tmp_fd, "wb") as f:
                sink = HashingWriter(f)
                sink.write(header)
                _copy_exact(source, sink.write, length)
                address = sink.finish()
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, OBJECT_FILE_MODE)

            object_path = address.to_storage_path(self.objects_dir)
            try:
                object_path.parent.mkdir(exist_ok=True)
            except OSError as e:
                raise StoreWriteError(
                    f"Failed to create directory {object_path.parent}: {e}"
                ) from e
            try:
                os.replace(tmp_path, object_path)
            except OSError as e:
                raise StoreWriteError(
                    f"Failed to move object into place at {object_path}: {e}"
                ) from e

        except BaseException:
            # Clean up temp file on error or interrupt
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.debug("wrote %s %s (%d bytes)", kind.value, address, length)
        return address

    def write_bytes(self, kind: ObjectKind, data: bytes) -> ObjectAddress:
        """Store an in-memory payload."""
        return self.write_object(kind, io.BytesIO(data), len(data))

    def write_file(
        self,
        path: Path,
        kind: ObjectKind = ObjectKind.BLOB,
    ) -> ObjectAddress:
        """Store the contents of a file.

        The payload length comes from the file's metadata, so the file is
        only read once, while it is being hashed and compressed.

        Raises:
            OSError: If the file can't be stat'ed or opened
        """
        length = os.stat(path).st_size
        with open(path, "rb") as f:
            return self.write_object(kind, f, length)

    # ------------------------------------------------------------------
    # Hashing without storing
    # ------------------------------------------------------------------

    @staticmethod
    def hash_object(kind: ObjectKind, source: BinaryIO, length: int) -> ObjectAddress:
        """Compute the address a payload would get, without storing it."""
        hasher = hashlib.new(HASH_ALGORITHM, write_header(kind, length))
        _copy_exact(source, hasher.update, length)
        return ObjectAddress.from_digest(hasher.digest())

    @classmethod
    def hash_bytes(cls, kind: ObjectKind, data: bytes) -> ObjectAddress:
        return cls.hash_object(kind, io.BytesIO(data), len(data))

    @classmethod
    def hash_file(
        cls,
        path: Path,
        kind: ObjectKind = ObjectKind.BLOB,
    ) -> ObjectAddress:
        length = os.stat(path).st_size
        with open(path, "rb") as f:
            return cls.hash_object(kind, f, length)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def open_object(self, address: AddressLike) -> ObjectStream:
        """Open a stored object for streaming.

        Args:
            address: Object address, as an ObjectAddress or hex text

        Returns:
            Payload stream tagged with the object's kind; use it as a
            context manager so the underlying file is closed

        Raises:
            InvalidAddressError: If ``address`` is not 40 hex digits
            ObjectNotFoundError: If no object is stored at ``address``
            ObjectCorruptedError: If the object can't be inflated or its
                header is malformed
        """
        address = parse_address(address)
        object_path = self.get_object_path(address)

        try:
            f = open(object_path, "rb")
        except FileNotFoundError:
            raise ObjectNotFoundError(
                f"Object not found: {address} (tried {object_path})"
            ) from None

        inflated = io.BufferedReader(ZlibReader(f))
        try:
            kind, size = read_header(inflated)
        except Exception:
            inflated.close()
            raise

        logger.debug("opened %s %s (%d bytes)", kind.value, address, size)
        return ObjectStream(BoundedReader(inflated, size), kind, size, address)

    def read_object(
        self,
        address: AddressLike,
        verify_hash: bool = False,
    ) -> Tuple[ObjectKind, bytes]:
        """Read a whole object into memory.

        Args:
            address: Object address
            verify_hash: Recompute the SHA-1 and compare it to ``address``

        Returns:
            Tuple of (kind, payload)

        Raises:
            ObjectNotFoundError: If the object doesn't exist
            ObjectCorruptedError: If the object is malformed, or if
                ``verify_hash`` is set and the content doesn't match
        """
        with self.open_object(address) as stream:
            payload = stream.read()
            kind = stream.kind
            address = stream.address

        if verify_hash:
            actual = self.hash_bytes(kind, payload)
            if actual != address:
                raise ObjectCorruptedError(
                    f"Object corrupted: expected {address}, got {actual}"
                )

        return kind, payload

    def read_kind(self, address: AddressLike) -> ObjectKind:
        """Return an object's kind without reading its payload."""
        with self.open_object(address) as stream:
            return stream.kind

    def read_size(self, address: AddressLike) -> int:
        """Return an object's declared payload length."""
        with self.open_object(address) as stream:
            return stream.size

    def object_exists(self, address: AddressLike) -> bool:
        """Check if an object is stored at ``address``.

        Malformed addresses are reported as absent rather than raising.
        """
        try:
            address = parse_address(address)
        except ValueError:
            return False
        return self.get_object_path(address).is_file()

    def get_object_path(self, address: AddressLike) -> Path:
        """Get the filesystem path for an object.

        Example:
            >>> store.get_object_path("ce013625030ba8dba906f756967f9e9ca394464e")
            PosixPath('.git/objects/ce/013625030ba8dba906f756967f9e9ca394464e')
        """
        return parse_address(address).to_storage_path(self.objects_dir)
