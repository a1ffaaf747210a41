"""
Analytics store module.

This module implements the Strategy Pattern for pluggable analytics storage.
Separates transactional data (site registry) from analytical data (events).
"""

from .strategies import (
    AnalyticsStore,
    SQLiteAnalyticsStore,
    ClickHouseAnalyticsStore,
    StorageError,
    EVENTS_TABLE,
)
from .factory import AnalyticsStoreFactory, StoreBackend

__all__ = [
    "AnalyticsStore",
    "SQLiteAnalyticsStore",
    "ClickHouseAnalyticsStore",
    "StorageError",
    "EVENTS_TABLE",
    "AnalyticsStoreFactory",
    "StoreBackend",
]
