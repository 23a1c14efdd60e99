from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, Self

if TYPE_CHECKING:
    from types import TracebackType

    import httpx


class CacheEntry(Protocol):
    @property
    def valid(self) -> bool: ...

    def read(self, size: int = -1) -> bytes: ...

    def write(self, data: bytes) -> int: ...

    def close(self) -> None: ...

    def __enter__(self) -> Self: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...


class CacheStore(Protocol):
    def open(self, key: str, ttl_seconds: float) -> CacheEntry: ...

    def delete(self, key: str) -> None: ...


class HTTPClient(Protocol):
    def send(self, request: httpx.Request) -> httpx.Response: ...


class BaseCacheEntry:
    """Context-manager plumbing shared by the store entries.

    Subclasses implement ``close``; leaving the ``with`` block always closes
    the entry, and a close failure is only raised when the block itself
    succeeded.
    """

    def close(self) -> None:
        raise NotImplementedError

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc is None:
            self.close()
            return
        try:
            self.close()
        except Exception as close_exc:
            exc.add_note(f"error closing cache entry: {close_exc}")
