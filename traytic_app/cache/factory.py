"""
Factory for the site lookup cache, one instance per process.
"""

import logging
from enum import Enum

import redis
from redis.exceptions import RedisError

from .strategies import MemorySiteCache, NullSiteCache, RedisSiteCache, SiteCache
from traytic_app.config import settings


logger = logging.getLogger(__name__)


class CacheBackend(Enum):
    REDIS = "redis"
    MEMORY = "memory"
    NULL = "null"


class SiteCacheFactory:
    """
    Builds the configured SiteCache once and hands out the same instance.

    An unreachable Redis degrades to the in-memory cache rather than
    failing startup; collection keeps working, per process.
    """

    _instance: SiteCache = None

    @classmethod
    def create(cls, backend: CacheBackend) -> SiteCache:
        if cls._instance is None:
            cls._instance = cls._build(backend)
        return cls._instance

    @classmethod
    def _build(cls, backend: CacheBackend) -> SiteCache:
        if backend == CacheBackend.REDIS:
            return cls._connect_redis()
        if backend == CacheBackend.MEMORY:
            logger.info("✅ In-memory site cache initialized")
            return MemorySiteCache(max_entries=settings.cache_max_entries)
        if backend == CacheBackend.NULL:
            logger.info("✅ Site cache disabled")
            return NullSiteCache()
        raise ValueError(f"Unknown cache backend: {backend}")

    @staticmethod
    def _connect_redis() -> SiteCache:
        try:
            client = redis.from_url(
                settings.redis_url,
                socket_connect_timeout=2,
                socket_timeout=0.5,  # lookups sit on the collect path
            )
            client.ping()
        except RedisError as e:
            logger.warning("⚠️  Redis unavailable (%s), using in-memory site cache", e)
            return MemorySiteCache(max_entries=settings.cache_max_entries)

        logger.info("✅ Redis site cache initialized")
        return RedisSiteCache(client)

    @classmethod
    def clear_instance(cls):
        """Forget the built instance (tests)"""
        cls._instance = None
