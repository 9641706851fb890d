"""
Optional Redis response cache.

Built from REDIS_URL (Upstash exposes a rediss:// endpoint). When the URL is
unset or the server is unreachable the cache is disabled and every call is a
no-op: reads return None, writes return False. Redis errors are logged and
never propagate to the request.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

import redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class RedisCache:
    def __init__(self, url: str | None, default_ttl: int = 300, prefix: str = "stride:"):
        self.url = (url or "").strip()
        self.default_ttl = default_ttl
        self.prefix = prefix
        self._client: redis.Redis | None = None
        self._available = False
        if self.url:
            try:
                self._client = redis.Redis.from_url(
                    self.url,
                    socket_timeout=5,
                    socket_connect_timeout=5,
                    decode_responses=True,
                )
                self._client.ping()
                self._available = True
                logger.info("Redis cache connected")
            except RedisError as e:
                logger.warning("Redis unavailable, caching disabled: %s", e)
                self._client = None

    @property
    def is_available(self) -> bool:
        return self._available and self._client is not None

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get_json(self, key: str) -> Any | None:
        if not self.is_available:
            return None
        try:
            raw = self._client.get(self._key(key))  # type: ignore[union-attr]
            if raw is None:
                return None
            return json.loads(raw)
        except (RedisError, json.JSONDecodeError) as e:
            logger.error("Cache get error for %s: %s", key, e)
            return None

    def set_json(self, key: str, value: Any, ttl: int | None = None) -> bool:
        if not self.is_available:
            return False
        try:
            self._client.set(self._key(key), json.dumps(value, default=str), ex=ttl or self.default_ttl)  # type: ignore[union-attr]
            return True
        except (RedisError, TypeError) as e:
            logger.error("Cache set error for %s: %s", key, e)
            return False

    def delete(self, key: str) -> bool:
        if not self.is_available:
            return False
        try:
            return bool(self._client.delete(self._key(key)))  # type: ignore[union-attr]
        except RedisError as e:
            logger.error("Cache delete error for %s: %s", key, e)
            return False

    def delete_pattern(self, pattern: str) -> int:
        if not self.is_available:
            return 0
        try:
            keys = list(self._client.scan_iter(match=self._key(pattern), count=100))  # type: ignore[union-attr]
            if not keys:
                return 0
            return int(self._client.delete(*keys))  # type: ignore[union-attr]
        except RedisError as e:
            logger.error("Cache delete pattern error for %s: %s", pattern, e)
            return 0

    def cached_json(self, key: str, producer: Callable[[], Any], ttl: int | None = None) -> Any:
        """Return the cached value for key, or compute it with producer and store it."""
        hit = self.get_json(key)
        if hit is not None:
            return hit
        value = producer()
        self.set_json(key, value, ttl)
        return value


def init_cache(app) -> RedisCache:
    cache = RedisCache(app.config.get("REDIS_URL"), default_ttl=int(app.config.get("CACHE_TTL_SECONDS") or 300))
    app.extensions["redis_cache"] = cache
    return cache


def get_cache() -> RedisCache:
    from flask import current_app

    return current_app.extensions["redis_cache"]
