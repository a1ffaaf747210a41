"""
FastAPI dependencies for dependency injection.

This module provides the process-wide singletons (cache, analytics store,
insert queue, rate limiter, live stream, insert worker) and the
per-request services built on top of them.

Pattern: Dependency Injection
- Components are owned here, not hidden in module globals
- Tests override any of them via app.dependency_overrides
- Implementations are picked by config
"""

from functools import lru_cache

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from traytic_app.auth.session import AuthUser, get_current_user
from traytic_app.cache.factory import CacheBackend, SiteCacheFactory
from traytic_app.cache.strategies import SiteCache
from traytic_app.config import settings
from traytic_app.database.connection import get_db
from traytic_app.queue.strategies import InMemoryQueue, QueueStrategy
from traytic_app.ratelimit.limiter import FixedWindowRateLimiter
from traytic_app.storage.factory import AnalyticsStoreFactory, StoreBackend
from traytic_app.storage.strategies import AnalyticsStore
from traytic_app.stream.live import LiveStream
from traytic_app.workers.insert_worker import InsertWorker


@lru_cache()
def get_cache() -> SiteCache:
    """
    Get the site lookup cache (singleton).

    Factory gets config from settings internally.
    """
    backend = CacheBackend(settings.cache_backend)
    return SiteCacheFactory.create(backend)


@lru_cache()
def get_store() -> AnalyticsStore:
    """Get analytics store instance (singleton)"""
    backend = StoreBackend(settings.store_backend)
    return AnalyticsStoreFactory.create(backend)


@lru_cache()
def get_queue() -> QueueStrategy:
    """Get insert queue instance (singleton)"""
    return InMemoryQueue(max_batches=settings.insert_queue_max_batches)


@lru_cache()
def get_rate_limiter() -> FixedWindowRateLimiter:
    """Get the per-process collect rate limiter (singleton)"""
    return FixedWindowRateLimiter(
        max_requests=settings.rate_limit_max,
        window_seconds=settings.rate_limit_window_seconds,
        sweep_interval_seconds=settings.rate_limit_sweep_seconds,
    )


@lru_cache()
def get_live_stream() -> LiveStream:
    """Get the live update bus (singleton)"""
    return LiveStream(max_queue_size=settings.stream_subscriber_queue_size)


@lru_cache()
def get_insert_worker() -> InsertWorker:
    """Get the background insert worker (singleton)"""
    return InsertWorker(
        queue=get_queue(),
        store=get_store(),
        batch_size=settings.insert_batch_size,
        flush_interval=settings.insert_flush_interval,
    )


def get_sites_registry(
    db: Session = Depends(get_db),
    cache: SiteCache = Depends(get_cache)
):
    """Get SitesRegistry bound to this request's database session"""
    from traytic_app.services.sites import SitesRegistry
    return SitesRegistry(db=db, cache=cache)


def get_collect_service(
    sites=Depends(get_sites_registry),
    rate_limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
    queue: QueueStrategy = Depends(get_queue),
    stream: LiveStream = Depends(get_live_stream)
):
    """
    Get CollectService with all dependencies injected.

    The controller depends on one service; the service depends on the
    infrastructure (registry, limiter, queue, stream).
    """
    from traytic_app.services.collect_service import CollectService
    return CollectService(
        sites=sites,
        rate_limiter=rate_limiter,
        queue=queue,
        stream=stream,
        max_events=settings.max_events_per_request,
        max_body_bytes=settings.max_body_bytes,
        placeholder_host=settings.placeholder_host,
        extra_bot_patterns=settings.extra_bot_patterns,
    )


def get_query_service(store: AnalyticsStore = Depends(get_store)):
    """Get QueryService over the analytics store"""
    from traytic_app.services.query_service import QueryService
    return QueryService(store=store)


def get_owned_site_id(
    site_id: str,
    user: AuthUser = Depends(get_current_user),
    sites=Depends(get_sites_registry)
) -> str:
    """
    Path dependency: the requested site id, if the caller may read it.

    Unknown sites and sites of other organizations look the same (404).
    """
    if not sites.user_owns_site(user.id, site_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Site not found"
        )
    return site_id
