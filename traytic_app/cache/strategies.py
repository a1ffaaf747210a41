"""
Domain -> site id lookup caches, one strategy per backend.

The collect path resolves a site from its domain on every request that
doesn't carry a siteId. Unknown domains are cached too (as UNKNOWN_SITE),
so traffic for domains nobody registered doesn't reach the database either.
"""

import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Optional, Tuple

from redis.exceptions import RedisError


logger = logging.getLogger(__name__)

# Stored value for "looked up, no such site"
UNKNOWN_SITE = ""


class SiteCache(ABC):
    """
    Cache of domain lookups.

    lookup() returns the cached site id, UNKNOWN_SITE for a cached miss, or
    None when the domain isn't cached. Backend failures behave like a cache
    that holds nothing; they are never raised to the caller.
    """

    @abstractmethod
    async def lookup(self, domain: str) -> Optional[str]:
        pass

    @abstractmethod
    async def remember(self, domain: str, site_id: Optional[str], ttl: int) -> bool:
        """Cache a lookup result; site_id None records an unknown domain"""

    @abstractmethod
    async def forget(self, domain: str) -> bool:
        pass


class RedisSiteCache(SiteCache):
    """Shared by every API process; a re-pointed domain is seen once its TTL passes"""

    def __init__(self, redis_client, prefix: str = "site:domain:"):
        self.redis = redis_client
        self.prefix = prefix

    def _key(self, domain: str) -> str:
        return f"{self.prefix}{domain}"

    async def lookup(self, domain: str) -> Optional[str]:
        try:
            value = self.redis.get(self._key(domain))
        except RedisError as e:
            logger.warning("Redis lookup failed for %s: %s", domain, e)
            return None
        return None if value is None else value.decode("utf-8")

    async def remember(self, domain: str, site_id: Optional[str], ttl: int) -> bool:
        try:
            return bool(self.redis.setex(self._key(domain), ttl, site_id or UNKNOWN_SITE))
        except RedisError as e:
            logger.warning("Redis write failed for %s: %s", domain, e)
            return False

    async def forget(self, domain: str) -> bool:
        try:
            return bool(self.redis.delete(self._key(domain)))
        except RedisError as e:
            logger.warning("Redis delete failed for %s: %s", domain, e)
            return False


class MemorySiteCache(SiteCache):
    """
    Per-process cache with a hard entry cap.

    Domains come from untrusted request bodies, so the oldest entries are
    evicted once max_entries is reached.
    """

    def __init__(self, max_entries: int = 10000, clock=time.monotonic):
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[str, float]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    async def lookup(self, domain: str) -> Optional[str]:
        entry = self._entries.get(domain)
        if entry is None:
            return None
        site_id, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[domain]
            return None
        return site_id

    async def remember(self, domain: str, site_id: Optional[str], ttl: int) -> bool:
        self._entries.pop(domain, None)
        while len(self._entries) >= self.max_entries:
            self._entries.popitem(last=False)
        self._entries[domain] = (site_id or UNKNOWN_SITE, self._clock() + ttl)
        return True

    async def forget(self, domain: str) -> bool:
        return self._entries.pop(domain, None) is not None


class NullSiteCache(SiteCache):
    """Caches nothing: every lookup goes to the database"""

    async def lookup(self, domain: str) -> Optional[str]:
        return None

    async def remember(self, domain: str, site_id: Optional[str], ttl: int) -> bool:
        return True

    async def forget(self, domain: str) -> bool:
        return False
