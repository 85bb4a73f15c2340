import os

import pytest

from subtranslate.core.cache_store import FileCacheStore, MemoryCacheStore
from subtranslate.utils.exceptions import InvalidIdentifier, WriteFailed


@pytest.fixture
def store(tmp_path):
    store = FileCacheStore(tmp_path / "subs", suffix="_he.srt")
    store.ensure_directory()
    return store


def test_miss_then_hit(store):
    assert store.get("tt0111161") is None
    assert not store.exists("tt0111161")

    entry = store.put("tt0111161", "1\n00:00:01,000 --> 00:00:02,000\nשלום\n")

    assert entry.filename == "tt0111161_he.srt"
    assert entry.path == store.directory / "tt0111161_he.srt"
    hit = store.get("tt0111161")
    assert hit.size_bytes == entry.size_bytes == len("1\n00:00:01,000 --> 00:00:02,000\nשלום\n".encode('utf-8'))
    assert store.exists("tt0111161")


def test_put_twice_keeps_single_entry_with_second_content(store):
    store.put("tt0111161", "first version")
    store.put("tt0111161", "second version")

    files = sorted(os.listdir(store.directory))
    assert files == ["tt0111161_he.srt"]
    assert store.read("tt0111161") == b"second version"


def test_keys_are_sanitized(store):
    entry = store.put("tt0111161:1:2/../x", "content")

    assert entry.filename == "tt0111161_1_2_.._x_he.srt"
    assert entry.path.parent == store.directory


@pytest.mark.parametrize("key", ["", "..", "."])
def test_unusable_keys_are_rejected(store, key):
    with pytest.raises(InvalidIdentifier):
        store.put(key, "content")
    assert store.get(key) is None


def test_empty_file_is_a_miss(store):
    (store.directory / "tt0000001_he.srt").write_bytes(b"")
    assert store.get("tt0000001") is None


def test_no_temp_files_left_behind(store):
    store.put("tt0111161", "content")
    assert not [name for name in os.listdir(store.directory) if name.startswith(".tmp-")]


def test_unwritable_directory_raises_write_failed(tmp_path):
    store = FileCacheStore(tmp_path / "missing", suffix="_he.srt")
    with pytest.raises(WriteFailed):
        store.put("tt0111161", "content")


def test_ensure_directory_fails_when_path_is_a_file(tmp_path):
    blocker = tmp_path / "subs"
    blocker.write_text("not a directory")

    store = FileCacheStore(blocker)

    with pytest.raises(WriteFailed):
        store.ensure_directory()
    assert not store.is_writable()


def test_resolve_filename(store):
    store.put("tt0111161", "content")

    assert store.resolve_filename("tt0111161_he.srt") == store.directory / "tt0111161_he.srt"
    assert store.resolve_filename("tt0000001_he.srt") is None
    assert store.resolve_filename("../tt0111161_he.srt") is None
    assert store.resolve_filename("tt0111161_he.txt") is None


def test_memory_store_has_same_semantics():
    store = MemoryCacheStore(suffix="_he.srt")

    assert store.get("tt0111161") is None
    store.put("tt0111161", "first")
    store.put("tt0111161", "second")

    assert len(store) == 1
    assert store.read("tt0111161") == b"second"
    assert store.get("tt0111161").filename == "tt0111161_he.srt"
    with pytest.raises(InvalidIdentifier):
        store.put("..", "content")
