"""Object addresses: SHA-1 digests in their hex and on-disk forms.

An address is the 40-character lowercase hexadecimal SHA-1 of an object's
serialized bytes. It doubles as the object's location in the store, using
Git's fan-out layout::

    objects/<hex[:2]>/<hex[2:]>
"""

from pathlib import Path
from typing import Union

from gitobj.constants import DIGEST_SIZE, HASH_LENGTH
from gitobj.errors import GitObjError

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


class InvalidAddressError(GitObjError, ValueError):
    """Raised when text is not a well-formed object address."""


class ObjectAddress:
    """Immutable 40-character lowercase hex object identifier.

    Build one with :meth:`from_digest` for freshly hashed content, or with
    :func:`parse_address` for text supplied by a user or read from a tree.

    Example:
        >>> addr = parse_address("ce013625030ba8dba906f756967f9e9ca394464e")
        >>> addr.to_storage_path(Path(".git/objects"))
        PosixPath('.git/objects/ce/013625030ba8dba906f756967f9e9ca394464e')
    """

    __slots__ = ("_hex",)

    def __init__(self, hex_digest: str) -> None:
        # Callers go through parse_address() or from_digest(); both
        # guarantee a validated lowercase string here.
        self._hex = hex_digest

    @classmethod
    def from_digest(cls, digest: bytes) -> "ObjectAddress":
        """Create an address from a raw 20-byte digest."""
        if len(digest) != DIGEST_SIZE:
            raise InvalidAddressError(
                f"Digest must be {DIGEST_SIZE} bytes, got {len(digest)}"
            )
        return cls(digest.hex())

    @property
    def hex(self) -> str:
        return self._hex

    @property
    def digest(self) -> bytes:
        """The raw 20-byte digest, as stored inside tree entries."""
        return bytes.fromhex(self._hex)

    def to_storage_path(self, objects_dir: Path) -> Path:
        return to_storage_path(self, objects_dir)

    def __str__(self) -> str:
        return self._hex

    def __repr__(self) -> str:
        return f"ObjectAddress({self._hex!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ObjectAddress):
            return self._hex == other._hex
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._hex)


def parse_address(text: Union[str, "ObjectAddress"]) -> ObjectAddress:
    """Validate user-supplied text as an object address.

    Args:
        text: Candidate hex string (case-insensitive)

    Returns:
        The normalised address

    Raises:
        InvalidAddressError: If a character is not a hex digit or the
            length is not exactly 40
    """
    if isinstance(text, ObjectAddress):
        return text
    if not isinstance(text, str):
        raise InvalidAddressError(f"Hash must be string, got {type(text)}")

    for char in text:
        if char not in _HEX_DIGITS:
            raise InvalidAddressError(
                f"Not a valid object name {text}: {char!r} is not an ASCII hex digit"
            )
    if len(text) != HASH_LENGTH:
        raise InvalidAddressError(
            f"Not a valid object name {text}: wrong hash length {len(text)}"
        )
    return ObjectAddress(text.lower())


def to_storage_path(address: ObjectAddress, objects_dir: Path) -> Path:
    """Map an address to its fan-out path under ``objects_dir``."""
    hex_digest = address.hex
    return Path(objects_dir) / hex_digest[:2] / hex_digest[2:]
