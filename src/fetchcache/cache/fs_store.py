from __future__ import annotations

import logging
import os
import time
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, BinaryIO

from filelock import FileLock

from fetchcache.cache.protocol import BaseCacheEntry
from fetchcache.exceptions import CacheEntryExpiredError

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

_LOCK_SUFFIX = ".lock"


class FilesystemCacheEntry(BaseCacheEntry):
    """An open, locked cache file.

    The lock is held from ``open`` until ``close`` so that the
    check-validity / recompute / write sequence is atomic against every
    other opener of the same path, in this process or another.
    """

    def __init__(self, path: Path, file: BinaryIO, lock: FileLock, *, valid: bool) -> None:
        self._path = path
        self._file = file
        self._lock = lock
        self._valid = valid
        self._reset = False
        self._closed = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def valid(self) -> bool:
        return self._valid

    def read(self, size: int = -1) -> bytes:
        if not self._valid:
            raise CacheEntryExpiredError(f"cache file expired: {self._path}")
        return self._file.read(size)

    def write(self, data: bytes) -> int:
        if not self._reset:
            self._file.seek(0)
            self._file.truncate(0)
            self._reset = True
        return self._file.write(data)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._file.close()
        finally:
            self._lock.release()


class FilesystemCacheStore:
    def __init__(
        self,
        root: Path,
        lock_timeout: float = -1,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._root = Path(root)
        self._lock_timeout = lock_timeout
        self._clock = clock

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        """Resolve a slash-separated key to an absolute path under the root."""
        return (self._root / PurePosixPath(key.lstrip("/"))).absolute()

    def open(self, key: str, ttl_seconds: float) -> FilesystemCacheEntry:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        lock = FileLock(str(path) + _LOCK_SUFFIX, timeout=self._lock_timeout)
        lock.acquire()
        try:
            fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o600)
            file = os.fdopen(fd, "r+b")
        except BaseException:
            lock.release()
            raise
        try:
            valid = self._is_valid(file, ttl_seconds)
        except BaseException:
            file.close()
            lock.release()
            raise
        logger.debug("Opened %s (ttl=%s, valid=%s)", path, ttl_seconds, valid)
        return FilesystemCacheEntry(path, file, lock, valid=valid)

    def delete(self, key: str) -> None:
        self.path_for(key).unlink()

    def _is_valid(self, file: BinaryIO, ttl_seconds: float) -> bool:
        if ttl_seconds == 0:
            return False
        if ttl_seconds < 0:
            return True
        st = os.fstat(file.fileno())
        if st.st_size == 0:
            return False
        return st.st_mtime > self._clock() - ttl_seconds
