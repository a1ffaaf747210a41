"""
Domain -> site id lookup cache.
"""

from .strategies import SiteCache, RedisSiteCache, MemorySiteCache, NullSiteCache, UNKNOWN_SITE
from .factory import SiteCacheFactory, CacheBackend

__all__ = [
    "SiteCache",
    "RedisSiteCache",
    "MemorySiteCache",
    "NullSiteCache",
    "UNKNOWN_SITE",
    "SiteCacheFactory",
    "CacheBackend",
]
