from __future__ import annotations

import gzip
import io
import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from fetchcache.cache.protocol import BaseCacheEntry
from fetchcache.exceptions import CacheEntryExpiredError

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
CONTENT_ENCODING = "gzip"

# Error codes that mean "nothing usable cached", as opposed to a failure
# talking to the service.
_MISS_CODES = frozenset({"NoSuchKey", "404", "NotFound", "304", "NotModified", "412", "PreconditionFailed"})


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ObjectCacheEntry(BaseCacheEntry):
    """A cache slot backed by one remote object.

    Reads stream the object fetched at open time. Writes are gzip-compressed
    into memory and uploaded as a whole on ``close``.
    """

    def __init__(self, client: Any, bucket: str, key: str, obj: dict[str, Any] | None) -> None:
        self._client = client
        self._bucket = bucket
        self._key = key
        self._obj = obj
        self._reader: Any | None = None
        self._out: io.BytesIO | None = None
        self._writer: gzip.GzipFile | None = None
        self._closed = False

    @property
    def valid(self) -> bool:
        return self._obj is not None

    def read(self, size: int = -1) -> bytes:
        if self._obj is None:
            raise CacheEntryExpiredError(f"cache object expired: s3://{self._bucket}/{self._key}")
        if self._reader is None:
            body = self._obj["Body"]
            if self._obj.get("ContentEncoding") == CONTENT_ENCODING:
                self._reader = gzip.GzipFile(fileobj=body, mode="rb")
            else:
                self._reader = body
        if size is None or size < 0:
            return self._reader.read()
        return self._reader.read(size)

    def write(self, data: bytes) -> int:
        if self._writer is None:
            self._out = io.BytesIO()
            self._writer = gzip.GzipFile(fileobj=self._out, mode="wb")
        return self._writer.write(data)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._obj is not None:
            if self._reader is not None and self._reader is not self._obj["Body"]:
                self._reader.close()
            self._obj["Body"].close()
        if self._writer is None or self._out is None:
            return
        self._writer.close()
        payload = self._out.getvalue()
        self._client.put_object(
            Bucket=self._bucket,
            Key=self._key,
            Body=payload,
            ContentEncoding=CONTENT_ENCODING,
        )
        logger.debug("Uploaded s3://%s/%s (%d compressed bytes)", self._bucket, self._key, len(payload))


class ObjectCacheStore:
    """Cache store backed by an S3-compatible object service.

    Freshness is delegated to the service through a conditional
    ``IfModifiedSince`` fetch, so no metadata round trip is needed. There is
    no coordination between concurrent writers: the last upload wins.

    Args:
        bucket: Bucket holding the cache objects.
        client: A boto3 S3 client. Built from ``region`` when omitted.
        region: Region used to build the default client.
        clock: Returns the current UTC time; used to compute the freshness cutoff.
    """

    def __init__(
        self,
        bucket: str,
        client: Any | None = None,
        region: str = DEFAULT_REGION,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._bucket = bucket
        self._region = region
        self._client = client if client is not None else boto3.client("s3", region_name=region)
        self._clock = clock

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def region(self) -> str:
        return self._region

    def open(self, key: str, ttl_seconds: float) -> ObjectCacheEntry:
        params: dict[str, Any] = {"Bucket": self._bucket, "Key": key}
        if ttl_seconds >= 0:
            params["IfModifiedSince"] = self._clock() - timedelta(seconds=ttl_seconds)
        obj: dict[str, Any] | None = None
        try:
            obj = self._client.get_object(**params)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _MISS_CODES:
                logger.debug("No fresh object for s3://%s/%s (%s)", self._bucket, key, code)
            else:
                logger.warning("Treating s3://%s/%s as a miss after error: %s", self._bucket, key, e)
        except BotoCoreError as e:
            logger.warning("Treating s3://%s/%s as a miss after error: %s", self._bucket, key, e)
        return ObjectCacheEntry(self._client, self._bucket, key, obj)

    def delete(self, key: str) -> None:
        self._client.delete_object(Bucket=self._bucket, Key=key)
