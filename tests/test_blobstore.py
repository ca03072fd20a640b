import threading

import pytest

from polyref.blobkey import BlobKey
from polyref.blobstore import BLOBS_PREFIX, BlobStoreError, FsBlobStore
from polyref.cache_stats import CacheStats

EMPTY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


@pytest.fixture
def store(tmp_path):
    return FsBlobStore.open(tmp_path)


def test_open_creates_root_layout(tmp_path):
    store = FsBlobStore.open(tmp_path)
    assert (tmp_path / BLOBS_PREFIX).is_dir()
    assert store.stats() == CacheStats.zero()


def test_put_get_round_trip(store):
    key = store.put(b"hello")
    assert store.get(key) == b"hello"


def test_put_is_idempotent_does_not_double_write(store):
    k1 = store.put(b"hello")
    k2 = store.put(b"hello")
    assert k1 == k2
    assert store.stats().blobs_written == 1


def test_distinct_content_distinct_keys_distinct_files(store):
    k1 = store.put(b"hello")
    k2 = store.put(b"world")
    assert k1 != k2
    assert store.path_for(k1) != store.path_for(k2)
    assert store.stats().blobs_written == 2


def test_get_missing_returns_none_increments_misses(store):
    key = BlobKey.from_bytes(b"never written")
    assert store.get(key) is None
    stats = store.stats()
    assert stats.misses == 1
    assert stats.hits == 0


def test_get_hit_increments_hits(store):
    key = store.put(b"hello")
    assert store.get(key) == b"hello"
    assert store.get(key) == b"hello"
    stats = store.stats()
    assert stats.hits == 2
    assert stats.misses == 0


def test_has_does_not_bump_counters(store):
    key = store.put(b"hello")
    assert store.has(key) is True
    assert store.has(BlobKey.from_bytes(b"missing")) is False
    stats = store.stats()
    assert stats.hits == 0
    assert stats.misses == 0


def test_layout_matches_spec(tmp_path):
    store = FsBlobStore.open(tmp_path)
    key = store.put(b"layout fixture")
    expected = tmp_path / BLOBS_PREFIX / key.shard() / key.to_hex()
    assert expected.is_file()
    assert store.path_for(key) == expected
    assert store.shard_dir(key) == expected.parent


def test_empty_content_is_storable(store):
    key = store.put(b"")
    assert store.get(key) == b""
    assert key.to_hex() == EMPTY_SHA256


def test_put_leaves_no_temp_files(store):
    key = store.put(b"clean shard")
    assert [p.name for p in store.shard_dir(key).iterdir()] == [key.to_hex()]


def test_string_key_is_accepted(store):
    key = store.put(b"hello")
    assert store.get(key.to_hex()) == b"hello"
    assert store.has(key.to_hex()) is True


def test_invalid_string_key_raises_blobstore_error(store):
    with pytest.raises(BlobStoreError):
        store.get("NOT A VALID HEX KEY")


def test_open_on_file_root_raises(tmp_path):
    root = tmp_path / "not-a-dir"
    root.write_bytes(b"x")
    with pytest.raises(BlobStoreError):
        FsBlobStore.open(root)


def test_put_into_blocked_shard_raises(store):
    key = BlobKey.from_bytes(b"blocked")
    store.shard_dir(key).parent.mkdir(parents=True, exist_ok=True)
    store.shard_dir(key).write_bytes(b"in the way")
    with pytest.raises(BlobStoreError):
        store.put(b"blocked")


def test_concurrent_puts_write_once(store):
    barrier = threading.Barrier(8)
    keys = []
    lock = threading.Lock()

    def worker():
        barrier.wait()
        key = store.put(b"shared content")
        with lock:
            keys.append(key)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(set(keys)) == 1
    assert store.stats().blobs_written == 1
    assert store.get(keys[0]) == b"shared content"