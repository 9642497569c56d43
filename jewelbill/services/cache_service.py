"""
Redis Cache Service.
Shared key/value cache with graceful degradation when Redis is unreachable.
"""

import logging
import json
from typing import Any, Optional, Dict
from datetime import datetime, date
from decimal import Decimal

import redis
from redis.exceptions import RedisError, ConnectionError, TimeoutError
from flask import Flask

logger = logging.getLogger(__name__)


class CacheService:
    """
    Redis-based cache.

    Keys pattern: {prefix}:{module}:{key}
    """

    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self._enabled: bool = False
        self._prefix: str = ""

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Initialize Redis client from Flask app config."""
        self._enabled = app.config.get('CACHE_ENABLED', True)
        self._prefix = app.config.get('CACHE_KEY_PREFIX', 'jewelbill')
        redis_url = app.config.get('REDIS_URL', 'redis://redis:6379/0')

        if not self._enabled:
            logger.info("[CACHE] Cache is DISABLED via config")
            return

        try:
            self.client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=3,
                socket_timeout=3,
                retry_on_timeout=True,
                health_check_interval=30
            )
            self.client.ping()
            logger.info(f"[CACHE] Redis connected: {redis_url}")
        except (ConnectionError, TimeoutError, RedisError) as e:
            logger.warning(f"[CACHE] Redis connection failed: {e}. Cache DISABLED.")
            self._enabled = False
            self.client = None

    def is_available(self) -> bool:
        return self._enabled and self.client is not None

    def _build_key(self, module: str, key: str) -> str:
        return f"{self._prefix}:{module}:{key}"

    def _serialize(self, value: Any) -> str:
        """JSON with Decimals kept as strings so no precision is lost."""
        def default_handler(obj: Any) -> Any:
            if isinstance(obj, (datetime, date)):
                return obj.isoformat()
            elif isinstance(obj, Decimal):
                return {"__decimal__": str(obj)}
            raise TypeError(f"Object of type {type(obj)} is not JSON serializable")
        return json.dumps(value, default=default_handler)

    def _deserialize(self, value: str) -> Any:
        def object_hook(dct: Dict[str, Any]) -> Any:
            if "__decimal__" in dct:
                return Decimal(dct["__decimal__"])
            return dct
        return json.loads(value, object_hook=object_hook)

    def get(self, module: str, key: str) -> Optional[Any]:
        """Get value from cache (None on miss or when Redis is down)."""
        if not self.is_available():
            return None
        try:
            value = self.client.get(self._build_key(module, key))
            if value is None:
                return None
            return self._deserialize(value)
        except (RedisError, json.JSONDecodeError) as e:
            logger.warning(f"[CACHE] Get error: {e}")
            return None

    def set(self, module: str, key: str, value: Any, ttl: int = 60) -> bool:
        """Set value in cache with TTL (seconds)."""
        if not self.is_available():
            return False
        try:
            self.client.setex(self._build_key(module, key), ttl, self._serialize(value))
            return True
        except (RedisError, TypeError) as e:
            logger.warning(f"[CACHE] Set error: {e}")
            return False

    def incr(self, module: str, key: str) -> Optional[int]:
        """Atomically increment a counter key (no TTL). None when Redis is down."""
        if not self.is_available():
            return None
        try:
            return int(self.client.incr(self._build_key(module, key)))
        except RedisError as e:
            logger.warning(f"[CACHE] Incr error: {e}")
            return None

    def invalidate_module(self, module: str) -> int:
        """Delete every key of a module."""
        if not self.is_available():
            return 0
        try:
            full_pattern = self._build_key(module, '*')
            deleted_count = 0
            cursor = 0
            while True:
                cursor, keys = self.client.scan(cursor, match=full_pattern, count=100)
                if keys:
                    self.client.delete(*keys)
                    deleted_count += len(keys)
                if cursor == 0:
                    break
            if deleted_count > 0:
                logger.info(f"[CACHE] INVALIDATE: {full_pattern} ({deleted_count} keys)")
            return deleted_count
        except RedisError as e:
            logger.warning(f"[CACHE] Invalidate error: {e}")
            return 0


_cache_service: Optional[CacheService] = None


def init_cache(app: Flask) -> None:
    """Initialize cache service singleton."""
    global _cache_service
    _cache_service = CacheService(app)
    app.extensions['cache'] = _cache_service


def get_cache() -> Optional[CacheService]:
    """Cache service instance, or None before init_cache()."""
    return _cache_service
