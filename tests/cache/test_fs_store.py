from __future__ import annotations

import multiprocessing
import os
import time
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

import pytest
from filelock import Timeout

from fetchcache.cache.fs_store import FilesystemCacheStore
from fetchcache.exceptions import CacheEntryExpiredError

if TYPE_CHECKING:
    from pathlib import Path


def _populate(store: FilesystemCacheStore, key: str, data: bytes) -> None:
    with store.open(key, 0) as entry:
        entry.write(data)


def _age(store: FilesystemCacheStore, key: str, seconds: float) -> None:
    path = store.path_for(key)
    then = time.time() - seconds
    os.utime(path, (then, then))


def _try_open(root: Path, key: str, lock_timeout: float, results: multiprocessing.Queue) -> None:
    store = FilesystemCacheStore(root, lock_timeout=lock_timeout)
    try:
        with store.open(key, -1) as entry:
            results.put(entry.read())
    except Timeout:
        results.put("timeout")


class TestFilesystemCacheStoreOpen:
    def test_creates_nested_file_under_root(self, tmp_path: Path) -> None:
        store = FilesystemCacheStore(tmp_path)
        with store.open("a/b/c", 3600):
            pass
        assert (tmp_path / "a" / "b" / "c").is_file()

    def test_new_file_has_owner_only_permissions(self, tmp_path: Path) -> None:
        store = FilesystemCacheStore(tmp_path)
        with store.open("k", 3600):
            pass
        assert (tmp_path / "k").stat().st_mode & 0o777 == 0o600

    def test_zero_ttl_is_never_valid(self, tmp_path: Path) -> None:
        store = FilesystemCacheStore(tmp_path)
        _populate(store, "k", b"data")
        with store.open("k", 0) as entry:
            assert entry.valid is False

    def test_negative_ttl_is_valid_for_old_entry(self, tmp_path: Path) -> None:
        store = FilesystemCacheStore(tmp_path)
        _populate(store, "k", b"data")
        _age(store, "k", 10 * 365 * 86400)
        with store.open("k", -1) as entry:
            assert entry.valid is True
            assert entry.read() == b"data"

    def test_negative_ttl_is_valid_for_just_created_entry(self, tmp_path: Path) -> None:
        store = FilesystemCacheStore(tmp_path)
        with store.open("k", -1) as entry:
            assert entry.valid is True
            assert entry.read() == b""

    def test_positive_ttl_valid_within_window(self, tmp_path: Path) -> None:
        store = FilesystemCacheStore(tmp_path)
        _populate(store, "k", b"data")
        _age(store, "k", 60)
        with store.open("k", 3600) as entry:
            assert entry.valid is True
            assert entry.read() == b"data"

    def test_positive_ttl_invalid_after_window(self, tmp_path: Path) -> None:
        store = FilesystemCacheStore(tmp_path)
        _populate(store, "k", b"data")
        _age(store, "k", 7200)
        with store.open("k", 3600) as entry:
            assert entry.valid is False

    def test_positive_ttl_invalid_for_empty_file(self, tmp_path: Path) -> None:
        store = FilesystemCacheStore(tmp_path)
        with store.open("k", 10 * 365 * 86400) as entry:
            assert entry.valid is False

    def test_clock_controls_staleness(self, tmp_path: Path) -> None:
        now = time.time()
        store = FilesystemCacheStore(tmp_path, clock=lambda: now)
        _populate(store, "k", b"data")

        later = FilesystemCacheStore(tmp_path, clock=lambda: now + 120)
        with later.open("k", 60) as entry:
            assert entry.valid is False
        with later.open("k", 600) as entry:
            assert entry.valid is True


class TestFilesystemCacheEntry:
    def test_read_of_invalid_entry_raises_expired(self, tmp_path: Path) -> None:
        store = FilesystemCacheStore(tmp_path)
        _populate(store, "k", b"data")
        with store.open("k", 0) as entry, pytest.raises(CacheEntryExpiredError):
            entry.read()

    def test_write_close_reopen_round_trip(self, tmp_path: Path) -> None:
        store = FilesystemCacheStore(tmp_path)
        with store.open("k", 3600) as entry:
            entry.write(b"\x00\x01 binary \xff")
        with store.open("k", 3600) as entry:
            assert entry.read() == b"\x00\x01 binary \xff"

    def test_writes_within_session_append(self, tmp_path: Path) -> None:
        store = FilesystemCacheStore(tmp_path)
        with store.open("k", 3600) as entry:
            entry.write(b"hello ")
            entry.write(b"world")
        with store.open("k", 3600) as entry:
            assert entry.read() == b"hello world"

    def test_new_session_overwrites_longer_content(self, tmp_path: Path) -> None:
        store = FilesystemCacheStore(tmp_path)
        _populate(store, "k", b"a much longer previous payload")
        with store.open("k", -1) as entry:
            assert entry.read(6) == b"a much"
            entry.write(b"short")
        with store.open("k", -1) as entry:
            assert entry.read() == b"short"

    def test_write_returns_byte_count(self, tmp_path: Path) -> None:
        store = FilesystemCacheStore(tmp_path)
        with store.open("k", 0) as entry:
            assert entry.write(b"12345") == 5

    def test_close_is_idempotent(self, tmp_path: Path) -> None:
        store = FilesystemCacheStore(tmp_path)
        entry = store.open("k", 0)
        entry.close()
        entry.close()


class TestFilesystemCacheStoreLocking:
    @pytest.mark.skipif("fork" not in multiprocessing.get_all_start_methods(), reason="needs fork")
    def test_other_process_blocks_until_entry_is_closed(self, tmp_path: Path) -> None:
        ctx = multiprocessing.get_context("fork")
        results = ctx.Queue()
        store = FilesystemCacheStore(tmp_path)

        with store.open("k", 0) as entry:
            entry.write(b"from parent")
            blocked = ctx.Process(target=_try_open, args=(tmp_path, "k", 0.2, results))
            blocked.start()
            blocked.join(timeout=10)
            assert results.get(timeout=5) == "timeout"

        waiting = ctx.Process(target=_try_open, args=(tmp_path, "k", 10, results))
        waiting.start()
        waiting.join(timeout=15)
        assert results.get(timeout=5) == b"from parent"
        assert waiting.exitcode == 0

    def test_second_opener_blocks_while_entry_is_open(self, tmp_path: Path) -> None:
        store = FilesystemCacheStore(tmp_path)
        contender = FilesystemCacheStore(tmp_path, lock_timeout=0.1)
        with store.open("k", 3600), ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(contender.open, "k", 3600)
            with pytest.raises(Timeout):
                future.result(timeout=5)

    def test_waiting_opener_sees_data_written_by_holder(self, tmp_path: Path) -> None:
        store = FilesystemCacheStore(tmp_path)

        def read_after_lock() -> bytes:
            with store.open("k", 3600) as entry:
                return entry.read() if entry.valid else b""

        with ThreadPoolExecutor(max_workers=1) as pool:
            with store.open("k", 3600) as entry:
                future = pool.submit(read_after_lock)
                time.sleep(0.05)
                assert not future.done()
                entry.write(b"fresh")
            assert future.result(timeout=5) == b"fresh"

    def test_lock_released_after_close(self, tmp_path: Path) -> None:
        store = FilesystemCacheStore(tmp_path, lock_timeout=0.1)
        with store.open("k", 0) as entry:
            entry.write(b"one")
        with store.open("k", -1) as entry:
            assert entry.read() == b"one"

    def test_lock_released_when_open_fails(self, tmp_path: Path) -> None:
        store = FilesystemCacheStore(tmp_path, lock_timeout=0.1)
        (tmp_path / "dir").mkdir()
        with pytest.raises(IsADirectoryError):
            store.open("dir", 0)
        # a leaked lock would surface as filelock.Timeout here
        with pytest.raises(IsADirectoryError):
            store.open("dir", 0)


class TestFilesystemCacheStoreDelete:
    def test_delete_removes_file(self, tmp_path: Path) -> None:
        store = FilesystemCacheStore(tmp_path)
        _populate(store, "a/b", b"data")
        store.delete("a/b")
        assert not (tmp_path / "a" / "b").exists()

    def test_delete_missing_raises(self, tmp_path: Path) -> None:
        store = FilesystemCacheStore(tmp_path)
        with pytest.raises(FileNotFoundError):
            store.delete("missing")
