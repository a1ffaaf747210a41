"""
Factory for the analytics store, one instance per process.
"""

import logging
from enum import Enum
from .strategies import AnalyticsStore, SQLiteAnalyticsStore, ClickHouseAnalyticsStore
from traytic_app.config import settings


logger = logging.getLogger(__name__)


class StoreBackend(Enum):
    SQLITE = "sqlite"
    CLICKHOUSE = "clickhouse"


class AnalyticsStoreFactory:
    """
    Builds the configured AnalyticsStore once and hands out the same instance.

    Construction never talks to ClickHouse; the schema is created from the
    app lifespan, where a failure is logged instead of blocking startup.
    """

    _instance: AnalyticsStore = None

    @classmethod
    def create(cls, backend: StoreBackend) -> AnalyticsStore:
        if cls._instance is not None:
            return cls._instance

        if backend == StoreBackend.SQLITE:
            cls._instance = SQLiteAnalyticsStore(
                db_path=settings.store_sqlite_path,
                timeout=settings.store_timeout
            )
        elif backend == StoreBackend.CLICKHOUSE:
            cls._instance = ClickHouseAnalyticsStore(
                url=settings.clickhouse_url,
                database=settings.clickhouse_database,
                user=settings.clickhouse_user,
                password=settings.clickhouse_password,
                timeout=settings.store_timeout,
                pool_size=settings.clickhouse_pool_size
            )
            logger.info("✅ ClickHouse analytics store configured (%s)", settings.clickhouse_url)
        else:
            raise ValueError(f"Unknown store backend: {backend}")

        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Forget the built instance (tests)"""
        cls._instance = None
