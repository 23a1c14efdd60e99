"""Read-through / write-through cache engine.

The engine sits between a caller and something expensive: a producer
function or an HTTP call. Each operation opens one entry in the configured
``CacheStore``, returns the stored value when the entry is still valid for
the requested TTL, and otherwise computes the value and writes it back.

TTL regimes (``ttl_seconds``):
    0   always recompute; the result is still written.
    < 0 never stale once an entry exists.
    > 0 stale once the entry is older than the TTL.

With a negative TTL an empty entry counts as a miss, since stores may report
a freshly created, never-written slot as valid. A producer that really
returns ``b""`` is therefore recomputed on every call at ``ttl < 0``; at
other TTLs the empty value is served from the cache like any other.

Failures reading back a hit (unreadable entry, undecodable JSON, truncated
HTTP response) are soft misses: they are logged and the value is recomputed.
Producer and transport errors propagate with nothing written. A failure
writing back a freshly computed value raises ``CacheWriteError`` carrying
the value in ``data``.

Usage:
    cache = Cache(FilesystemCacheStore(Path("~/.cache/fetchcache").expanduser()), httpx.Client())
    body = cache.cache_url_data("https://example.com/feed.xml", ttl_seconds=3600)
    repos = cache.cache_url_json("https://api.github.com/users/x/repos", ttl_seconds=600)
"""

from __future__ import annotations

import hashlib
import logging
from typing import TYPE_CHECKING, Any, TypeVar

import httpx

from fetchcache.cache.serialization import JsonSerializer
from fetchcache.cache.wire import dump_response, parse_response
from fetchcache.exceptions import CacheWriteError, NotJSONDataError, ResponseParseError

if TYPE_CHECKING:
    from collections.abc import Callable

    from fetchcache.cache.protocol import CacheEntry, CacheStore, HTTPClient
    from fetchcache.cache.serialization import Serializer

logger = logging.getLogger(__name__)

T = TypeVar("T")

JSON_CONTENT_TYPES = frozenset({"application/json", "text/json", "application/javascript"})


def request_key(request: httpx.Request) -> str:
    """Return the store key for a request: ``sha1("<METHOD> <URL>")`` split as ``hh/hh/rest``."""
    digest = hashlib.sha1(f"{request.method} {request.url}".encode()).hexdigest()
    return f"{digest[:2]}/{digest[2:4]}/{digest[4:]}"


def media_type(response: httpx.Response) -> str:
    """Return the lower-cased content type of a response without parameters."""
    return response.headers.get("content-type", "").split(";")[0].strip().lower()


class Cache:
    """Cache engine over one store and one HTTP client.

    Args:
        store: Where entries live.
        client: Transport for live requests. An ``httpx.Client`` is created
            when omitted and is then closed by ``close``.
        close_client: Also close an injected client on ``close``.
    """

    def __init__(self, store: CacheStore, client: HTTPClient | None = None, *, close_client: bool = False) -> None:
        self._store = store
        self._owns_client = client is None or close_client
        self._client: HTTPClient = client if client is not None else httpx.Client()

    def __enter__(self) -> Cache:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @property
    def store(self) -> CacheStore:
        return self._store

    def close(self) -> None:
        if self._owns_client and isinstance(self._client, httpx.Client):
            self._client.close()

    def cache_func(self, producer: Callable[[], bytes], name: str, ttl_seconds: float) -> bytes:
        """Return the bytes cached under ``name``, calling ``producer`` on a miss."""
        with self._store.open(name, ttl_seconds) as entry:
            cached = self._read_hit(entry, name, ttl_seconds)
            if cached is not None:
                logger.debug("Cache hit for %s", name)
                return cached
            data = producer()
            self._write_back(entry, name, data, data)
            return data

    def cache_func_json(
        self,
        producer: Callable[[], T],
        name: str,
        ttl_seconds: float,
        serializer: Serializer[T] | None = None,
    ) -> T:
        """Like ``cache_func`` but stores the JSON encoding of the produced value."""
        codec: Serializer[Any] = serializer if serializer is not None else JsonSerializer()
        with self._store.open(name, ttl_seconds) as entry:
            cached = self._read_hit(entry, name, ttl_seconds)
            if cached is not None:
                try:
                    value = codec.deserialize(cached.decode("utf-8"))
                    logger.debug("Cache hit for %s", name)
                    return value
                except Exception as e:
                    logger.warning("Failed to decode cached %s: %s", name, e)
            value = producer()
            payload = codec.serialize(value).encode("utf-8")
            self._write_back(entry, name, payload, value)
            return value

    def cache_request(self, request: httpx.Request, ttl_seconds: float) -> httpx.Response:
        """Return the cached response for ``request`` or perform it.

        Only ``GET`` requests answered with ``200`` are written to the store.
        """
        key = request_key(request)
        with self._store.open(key, ttl_seconds) as entry:
            cached = self._read_hit(entry, key, ttl_seconds)
            if cached is not None:
                try:
                    response = parse_response(cached, request)
                    logger.debug("Cache hit for %s %s", request.method, request.url)
                    return response
                except ResponseParseError as e:
                    logger.warning("Failed to parse cached response for %s %s: %s", request.method, request.url, e)

            response = self._client.send(request)
            if request.method == "GET" and response.status_code == httpx.codes.OK:
                try:
                    payload = dump_response(response)
                except Exception as e:
                    raise CacheWriteError(key, response) from e
                self._write_back(entry, key, payload, response)
            return response

    def cache_url(self, url: str, ttl_seconds: float) -> httpx.Response:
        return self.cache_request(httpx.Request("GET", url), ttl_seconds)

    def cache_request_data(self, request: httpx.Request, ttl_seconds: float) -> bytes:
        """Return only the body of the (possibly cached) response."""
        try:
            response = self.cache_request(request, ttl_seconds)
        except CacheWriteError as e:
            e.data = _read_and_close(e.data)
            raise
        return _read_and_close(response)

    def cache_url_data(self, url: str, ttl_seconds: float) -> bytes:
        return self.cache_request_data(httpx.Request("GET", url), ttl_seconds)

    def cache_request_json(
        self,
        request: httpx.Request,
        ttl_seconds: float,
        serializer: Serializer[T] | None = None,
    ) -> T:
        """Return the decoded JSON body of the (possibly cached) response.

        Raises:
            NotJSONDataError: the response content type is not a JSON type.
        """
        codec: Serializer[Any] = serializer if serializer is not None else JsonSerializer()
        try:
            response = self.cache_request(request, ttl_seconds)
        except CacheWriteError as e:
            e.data = self._decode_json(e.data, codec)
            raise
        return self._decode_json(response, codec)

    def cache_url_json(self, url: str, ttl_seconds: float, serializer: Serializer[T] | None = None) -> T:
        return self.cache_request_json(httpx.Request("GET", url), ttl_seconds, serializer)

    def delete(self, name: str) -> None:
        self._store.delete(name)

    def delete_request(self, request: httpx.Request) -> None:
        self._store.delete(request_key(request))

    def _read_hit(self, entry: CacheEntry, name: str, ttl_seconds: float) -> bytes | None:
        if not entry.valid:
            logger.debug("Cache miss for %s", name)
            return None
        try:
            data = entry.read()
        except Exception as e:
            logger.warning("Failed to read cached %s: %s", name, e)
            return None
        if not data and ttl_seconds < 0:
            # A never-expiring entry can be a placeholder left by an open that was never written.
            logger.debug("Cached %s is empty, treating as a miss", name)
            return None
        return data

    def _write_back(self, entry: CacheEntry, name: str, payload: bytes, data: object) -> None:
        # Closing flushes the write; object stores upload at this point.
        try:
            entry.write(payload)
            entry.close()
        except Exception as e:
            raise CacheWriteError(name, data) from e
        logger.debug("Cached %s (%d bytes)", name, len(payload))

    def _decode_json(self, response: httpx.Response, codec: Serializer[Any]) -> Any:
        try:
            if media_type(response) not in JSON_CONTENT_TYPES:
                raise NotJSONDataError(response.headers.get("content-type", ""))
            response.read()
            return codec.deserialize(response.text)
        finally:
            response.close()


def _read_and_close(response: httpx.Response) -> bytes:
    try:
        return response.read()
    finally:
        response.close()
