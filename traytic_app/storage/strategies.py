"""
Analytics store strategies using Strategy Pattern.

Allows switching between analytics databases:
- SQLite: Development/testing
- ClickHouse: Production (columnar, built for COUNT / uniq / GROUP BY / quantile)

Writes are best-effort: insert() logs and returns False instead of raising,
because a lost analytics row is a quality-of-service problem, never a
reason to fail a request. Reads raise StorageError so the dashboard API
can report the failure.
"""

import asyncio
import json
import logging
import math
import sqlite3
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

import requests
from requests.adapters import HTTPAdapter

from traytic_app.schemas.events import NormalizedRow
from traytic_app.storage.dialects import ClickHouseDialect, SQLDialect, SQLiteDialect


logger = logging.getLogger(__name__)

EVENTS_TABLE = "events"
EVENT_COLUMNS = tuple(NormalizedRow.model_fields)


class StorageError(Exception):
    """Raised when an analytics query fails or times out"""


class AnalyticsStore(ABC):
    """
    Abstract base class for analytics stores.

    Rows are plain dicts shaped like NormalizedRow. Blocking I/O runs in a
    worker thread and is abandoned after `timeout` seconds, so a slow store
    can never stall its caller.
    """

    dialect: SQLDialect

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout

    @abstractmethod
    def init_schema(self):
        """Create the events table if it doesn't exist"""

    @abstractmethod
    def _insert_sync(self, table: str, rows: List[Dict[str, Any]]):
        pass

    @abstractmethod
    def _query_sync(self, sql: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        pass

    async def insert(self, table: str, rows: Sequence[Dict[str, Any]]) -> bool:
        """
        Insert rows in one batch.

        Returns:
            True if the store accepted the batch, False on failure or timeout
        """
        if not rows:
            return True
        if table != EVENTS_TABLE:
            raise ValueError(f"Unknown table: {table}")

        try:
            await asyncio.wait_for(
                asyncio.to_thread(self._insert_sync, table, list(rows)),
                timeout=self.timeout
            )
            return True
        except asyncio.TimeoutError:
            logger.error("Analytics insert timed out after %ss, dropped %d rows", self.timeout, len(rows))
            return False
        except Exception:
            logger.exception("Analytics insert failed, dropped %d rows", len(rows))
            return False

    async def query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Run an aggregate query and return its rows as dicts"""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._query_sync, sql, dict(params or {})),
                timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise StorageError(f"Query timed out after {self.timeout}s") from e
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Query failed: {e}") from e

    async def query_one(self, sql: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """Run a query expected to return a single row"""
        rows = await self.query(sql, params)
        return rows[0] if rows else None


class _Quantile:
    """SQLite aggregate: quantile(value, level) with linear interpolation"""

    def __init__(self):
        self.values: List[float] = []
        self.level = 0.5

    def step(self, value, level):
        if value is not None:
            self.values.append(float(value))
            self.level = float(level)

    def finalize(self):
        if not self.values:
            return None
        values = sorted(self.values)
        position = (len(values) - 1) * self.level
        lower = math.floor(position)
        upper = math.ceil(position)
        if lower == upper:
            return values[lower]
        return values[lower] + (values[upper] - values[lower]) * (position - lower)


class SQLiteAnalyticsStore(AnalyticsStore):
    """
    SQLite implementation of the analytics store.

    Pros:
    - Zero configuration (no external services)
    - Good for development, demos and tests

    Cons:
    - Row-oriented, slow on large aggregations
    - Single file, not distributed
    """

    dialect = SQLiteDialect()

    def __init__(self, db_path: str = "analytics.db", timeout: float = 5.0):
        super().__init__(timeout)
        self.db_path = db_path
        self.init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        conn.create_aggregate("quantile", 2, _Quantile)
        return conn

    def init_schema(self):
        """Create events table and indexes if they don't exist"""
        columns = []
        for name, field in NormalizedRow.model_fields.items():
            if field.annotation is int:
                columns.append(f"{name} INTEGER NOT NULL DEFAULT 0")
            elif field.annotation is float:
                columns.append(f"{name} REAL NOT NULL DEFAULT 0")
            else:
                columns.append(f"{name} TEXT NOT NULL DEFAULT ''")

        conn = self._connect()
        try:
            conn.execute(f"CREATE TABLE IF NOT EXISTS {EVENTS_TABLE} ({', '.join(columns)})")
            conn.execute(f"CREATE INDEX IF NOT EXISTS idx_events_site_ts ON {EVENTS_TABLE} (site_id, ts)")
            conn.commit()
        finally:
            conn.close()
        logger.info("✅ SQLite analytics store ready at %s", self.db_path)

    def _insert_sync(self, table: str, rows: List[Dict[str, Any]]):
        placeholders = ", ".join("?" for _ in EVENT_COLUMNS)
        data = [
            tuple(
                json.dumps(row.get(column) or {}) if column == "meta" else row.get(column)
                for column in EVENT_COLUMNS
            )
            for row in rows
        ]

        conn = self._connect()
        try:
            conn.executemany(
                f"INSERT INTO {table} ({', '.join(EVENT_COLUMNS)}) VALUES ({placeholders})",
                data
            )
            conn.commit()
        finally:
            conn.close()

    def _query_sync(self, sql: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        conn = self._connect()
        try:
            return [dict(row) for row in conn.execute(sql, params).fetchall()]
        finally:
            conn.close()


class ClickHouseAnalyticsStore(AnalyticsStore):
    """
    ClickHouse implementation over the HTTP interface.

    - Inserts use JSONEachRow with async_insert, so the server acknowledges
      before the data is merged (throughput over durability).
    - Queries bind parameters server-side ({name:Type} + param_<name>).
    - The connection pool is bounded, which bounds in-flight requests.
    """

    dialect = ClickHouseDialect()

    def __init__(
        self,
        url: str = "http://localhost:8123",
        database: str = "traytic",
        user: str = "default",
        password: str = "",
        timeout: float = 5.0,
        pool_size: int = 10
    ):
        super().__init__(timeout)
        self.url = url.rstrip("/") + "/"
        self.database = database
        self.session = requests.Session()
        adapter = HTTPAdapter(pool_connections=1, pool_maxsize=pool_size)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        self.session.headers.update({
            "X-ClickHouse-User": user,
            "X-ClickHouse-Key": password,
        })

    def _post(self, body: str, params: Optional[Dict[str, Any]] = None, database: bool = True) -> str:
        query_params = dict(params or {})
        if database:
            query_params["database"] = self.database
        response = self.session.post(
            self.url,
            params=query_params,
            data=body.encode("utf-8"),
            timeout=self.timeout
        )
        if response.status_code != 200:
            raise StorageError(f"ClickHouse HTTP {response.status_code}: {response.text[:500]}")
        return response.text

    def init_schema(self):
        """
        Create database and events table if they don't exist.

        Table design:
        - MergeTree partitioned by month for cheap time pruning
        - Ordered by (site_id, type, ts): every query filters on site and time
        """
        self._post(f"CREATE DATABASE IF NOT EXISTS {self.database}", database=False)
        self._post(f"""
            CREATE TABLE IF NOT EXISTS {EVENTS_TABLE} (
                site_id          String,
                type             LowCardinality(String),
                url              String,
                path             String,
                hostname         String,
                referrer         String,
                referrer_source  LowCardinality(String),
                utm_source       String,
                utm_medium       String,
                utm_campaign     String,
                utm_content      String,
                utm_term         String,
                country          LowCardinality(String),
                region           String,
                city             String,
                browser          LowCardinality(String),
                browser_version  String,
                os               LowCardinality(String),
                os_version       String,
                device_type      LowCardinality(String),
                visitor_id       String,
                session_id       String,
                duration_ms      UInt32,
                is_bounce        UInt8,
                is_new           UInt8,
                vital_name       LowCardinality(String),
                vital_value      Float64,
                vital_rating     LowCardinality(String),
                event_name       String,
                meta             Map(String, String),
                error_message    String,
                error_stack      String,
                ts               DateTime('UTC')
            )
            ENGINE = MergeTree()
            PARTITION BY toYYYYMM(ts)
            ORDER BY (site_id, type, ts)
        """)
        logger.info("✅ ClickHouse analytics store ready (%s)", self.database)

    def _insert_sync(self, table: str, rows: List[Dict[str, Any]]):
        self._post(
            "\n".join(json.dumps(row, separators=(",", ":")) for row in rows),
            params={
                "query": f"INSERT INTO {table} FORMAT JSONEachRow",
                "async_insert": 1,
                "wait_for_async_insert": 0,
            }
        )

    def _query_sync(self, sql: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        text = self._post(
            f"{sql}\nFORMAT JSONEachRow",
            params={f"param_{name}": value for name, value in params.items()}
        )
        return [json.loads(line) for line in text.splitlines() if line.strip()]
