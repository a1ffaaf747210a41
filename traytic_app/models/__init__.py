"""
Database models for the site registry.

Note: Analytics events are stored in a separate column-oriented store
(ClickHouse/SQLite), not in SQLAlchemy models.
"""

from .site import Site, SiteMember

__all__ = ["Site", "SiteMember"]
