"""Content-addressed blob store laid out as ``<root>/blobs/sha256/<hash[:2]>/<hash>``."""

from __future__ import annotations

import abc
import os
import tempfile
from pathlib import Path

from polyref.blobkey import BlobKey, BlobKeyError
from polyref.cache_stats import CacheCounters, CacheStats

BLOBS_PREFIX = Path("blobs", "sha256")
"""Subdirectory layout under the cache root."""


class BlobStoreError(Exception):
    """A blob could not be read or written, or a key was invalid."""


class BlobStore(abc.ABC):
    """Persistent content-addressed blob store."""

    @abc.abstractmethod
    def put(self, content: bytes) -> BlobKey:
        """Store ``content`` and return its key; storing the same content twice is a no-op."""

    @abc.abstractmethod
    def get(self, key: BlobKey | str) -> bytes | None:
        """Return the blob for ``key``, or ``None`` if it is absent."""

    @abc.abstractmethod
    def has(self, key: BlobKey | str) -> bool:
        """Cheap existence probe that does not touch the counters."""

    @abc.abstractmethod
    def stats(self) -> CacheStats:
        """Snapshot of the hit, miss and write counters."""


def _coerce_key(key: BlobKey | str) -> BlobKey:
    if isinstance(key, BlobKey):
        return key
    try:
        return BlobKey.parse(key)
    except BlobKeyError as error:
        raise BlobStoreError(f"blobstore key error: {error}") from error


class FsBlobStore(BlobStore):
    """Filesystem-backed blob store with atomic, no-clobber writes."""

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = Path(root)
        self._counters = CacheCounters()

    @classmethod
    def open(cls, root: str | os.PathLike[str]) -> FsBlobStore:
        """Open or create a store rooted at ``root``, creating ``blobs/sha256/``."""
        store = cls(root)
        try:
            (store.root / BLOBS_PREFIX).mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise BlobStoreError(f"blobstore io error: {error}") from error
        return store

    def shard_dir(self, key: BlobKey | str) -> Path:
        """Directory holding blobs whose digest starts with the key's shard."""
        return self.root / BLOBS_PREFIX / _coerce_key(key).shard()

    def path_for(self, key: BlobKey | str) -> Path:
        """Final path of the blob with the given key."""
        key = _coerce_key(key)
        return self.shard_dir(key) / key.to_hex()

    def put(self, content: bytes) -> BlobKey:
        content = bytes(content)
        key = BlobKey.from_bytes(content)
        target = self.path_for(key)
        if target.exists():
            return key

        shard = self.shard_dir(key)
        try:
            shard.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=shard, prefix=".tmp")
        except OSError as error:
            raise BlobStoreError(f"blobstore io error: {error}") from error

        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(content)
                handle.flush()
            written = self._persist_noclobber(tmp_path, target)
        except OSError as error:
            raise BlobStoreError(f"blobstore io error: {error}") from error
        finally:
            try:
                tmp_path.unlink()
            except FileNotFoundError:
                pass
            except OSError:
                pass

        if written:
            self._counters.record_write()
        return key

    @staticmethod
    def _persist_noclobber(tmp_path: Path, target: Path) -> bool:
        """Move ``tmp_path`` into place without overwriting; report whether this call wrote it."""
        try:
            os.link(tmp_path, target)
            return True
        except FileExistsError:
            return False
        except OSError:
            if target.exists():
                return False
            # Filesystem without hard links: fall back to an atomic rename.
            os.replace(tmp_path, target)
            return True

    def get(self, key: BlobKey | str) -> bytes | None:
        target = self.path_for(key)
        try:
            content = target.read_bytes()
        except FileNotFoundError:
            self._counters.record_miss()
            return None
        except OSError as error:
            raise BlobStoreError(f"blobstore io error: {error}") from error
        self._counters.record_hit()
        return content

    def has(self, key: BlobKey | str) -> bool:
        target = self.path_for(key)
        try:
            target.stat()
        except FileNotFoundError:
            return False
        except OSError as error:
            raise BlobStoreError(f"blobstore io error: {error}") from error
        return True

    def stats(self) -> CacheStats:
        return self._counters.snapshot()