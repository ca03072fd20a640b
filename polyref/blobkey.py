"""Content-addressed blob keys: a SHA-256 digest with a canonical lowercase hex form."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

BLOB_KEY_HEX_LEN = 64
"""Length of the canonical hex form, in characters."""

BLOB_KEY_DIGEST_LEN = 32
"""Length of the raw digest, in bytes."""

_HEX_DIGITS = frozenset(b"0123456789abcdef")


class BlobKeyError(ValueError):
    """A string could not be parsed as a blob key.

    Exactly one of ``length`` (wrong length) or ``char`` (a byte that is
    not lowercase hex) is set.
    """

    def __init__(self, message: str, *, length: int | None = None, char: str | None = None):
        super().__init__(message)
        self.length = length
        self.char = char


@dataclass(frozen=True, order=True)
class BlobKey:
    """SHA-256 digest identifying a blob by its content."""

    digest: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.digest, bytes) or len(self.digest) != BLOB_KEY_DIGEST_LEN:
            raise BlobKeyError(
                f"blob key digest must be {BLOB_KEY_DIGEST_LEN} bytes",
                length=len(self.digest) * 2 if isinstance(self.digest, bytes) else None,
            )

    @classmethod
    def from_bytes(cls, content: bytes) -> BlobKey:
        """Hash ``content`` with SHA-256 and wrap the digest."""
        return cls(hashlib.sha256(bytes(content)).digest())

    @classmethod
    def parse(cls, s: str) -> BlobKey:
        """Parse a 64-character lowercase hex string.

        Uppercase hex is rejected so that one content has exactly one key.
        """
        raw = s.encode("utf-8")
        if len(raw) != BLOB_KEY_HEX_LEN:
            raise BlobKeyError(
                f"blob key has wrong length: {len(raw)} (expected {BLOB_KEY_HEX_LEN})",
                length=len(raw),
            )
        for byte in raw:
            if byte not in _HEX_DIGITS:
                bad = chr(byte)
                raise BlobKeyError(
                    f"blob key contains non-lowercase-hex byte: {bad!r}", char=bad
                )
        return cls(bytes.fromhex(s))

    def to_hex(self) -> str:
        """The canonical 64-character lowercase hex form."""
        return self.digest.hex()

    def as_bytes(self) -> bytes:
        """The raw 32-byte digest."""
        return self.digest

    def shard(self) -> str:
        """First two hex characters, used as a directory shard."""
        return self.digest[:1].hex()

    def __str__(self) -> str:
        return self.to_hex()