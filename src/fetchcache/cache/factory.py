from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from fetchcache.cache.engine import Cache
from fetchcache.cache.fs_store import FilesystemCacheStore
from fetchcache.cache.s3_store import ObjectCacheStore
from fetchcache.exceptions import CacheConfigError

if TYPE_CHECKING:
    from fetchcache.cache.protocol import CacheStore
    from fetchcache.config import AppConfig


def _resolve(config: AppConfig | None) -> AppConfig:
    if config is None:
        from fetchcache.config import create_config

        config = create_config()
    return config


def create_cache_store(config: AppConfig | None = None) -> CacheStore:
    """Build the store selected by ``cache.backend`` (``"fs"`` or ``"s3"``)."""
    config = _resolve(config)
    backend = str(config["cache.backend"]).lower()
    if backend == "fs":
        root = Path(str(config["cache.root"])).expanduser()
        return FilesystemCacheStore(root, lock_timeout=float(str(config["cache.lock_timeout"])))
    if backend == "s3":
        bucket = str(config["s3.bucket"])
        if not bucket:
            raise CacheConfigError("s3 backend requires s3.bucket")
        return ObjectCacheStore(bucket, region=str(config["s3.region"]))
    raise CacheConfigError(f"unknown cache backend: {backend!r}")


def create_http_client(config: AppConfig | None = None) -> httpx.Client:
    """Build the HTTP transport with the configured ``http.timeout``."""
    config = _resolve(config)
    timeout = float(str(config["http.timeout"]))
    return httpx.Client(timeout=httpx.Timeout(timeout, connect=min(timeout, 10.0)), follow_redirects=True)


def create_cache(config: AppConfig | None = None) -> Cache:
    config = _resolve(config)
    return Cache(create_cache_store(config), create_http_client(config), close_client=True)
