"""
Query Service - dashboard aggregates over the analytics store.

Every query is built through _scope(), which always applies the site filter
and a bounded time predicate. There is no way to build a query that spans
sites or scans unbounded history.
"""

import math
from enum import Enum
from typing import Any, Dict, List, Tuple

from traytic_app.schemas.collect import EventType
from traytic_app.schemas.stats import (
    CountryStat,
    DeviceStat,
    LiveVisitors,
    OverviewStats,
    PageStat,
    SourceStat,
    TimeseriesPoint,
    VitalStat,
)
from traytic_app.storage.strategies import AnalyticsStore, EVENTS_TABLE


class Period(str, Enum):
    """Dashboard lookback periods"""
    DAY = "24h"
    WEEK = "7d"
    MONTH = "30d"
    QUARTER = "90d"


PERIOD_LOOKBACK: Dict[Period, Tuple[int, str]] = {
    Period.DAY: (1, "DAY"),
    Period.WEEK: (7, "DAY"),
    Period.MONTH: (30, "DAY"),
    Period.QUARTER: (90, "DAY"),
}
LIVE_WINDOW = (5, "MINUTE")

DEFAULT_LIMIT = 20
MAX_LIMIT = 1000
COUNTRY_LIMIT = 50

IS_PAGEVIEW = f"type = '{EventType.PAGEVIEW}'"
IS_VITAL = f"type = '{EventType.VITAL}'"


def _number(value: Any) -> float:
    """Coerce a store value to float; NULL and NaN become 0"""
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(number) else number


def _period(period) -> Period:
    # Raises ValueError for anything outside the enum
    return period if isinstance(period, Period) else Period(period)


class QueryService:
    """
    Stateless translation of dashboard requests into aggregate queries.

    All queries are one of four shapes the store is built for: COUNT,
    COUNT DISTINCT, GROUP BY and quantiles over a time-bounded predicate.
    """

    def __init__(self, store: AnalyticsStore):
        self.store = store
        self.dialect = store.dialect

    def _scope(self, site_id: str, window: Tuple[int, str], *conditions: str) -> Tuple[str, Dict[str, Any]]:
        """
        Build the FROM/WHERE part shared by every query.

        Returns:
            (sql fragment, bound params)
        """
        if not isinstance(site_id, str) or not site_id.strip():
            raise ValueError("site_id is required")

        d = self.dialect
        clauses = [
            f"site_id = {d.param('site_id', 'String')}",
            f"ts >= {d.since(*window)}",
            *conditions,
        ]
        sql = f"FROM {EVENTS_TABLE}\nWHERE " + "\n  AND ".join(clauses)
        return sql, {"site_id": site_id}

    def _window(self, period) -> Tuple[int, str]:
        return PERIOD_LOOKBACK[_period(period)]

    @staticmethod
    def _limit(limit: int) -> int:
        limit = int(limit)
        if limit < 1:
            raise ValueError("limit must be positive")
        return min(limit, MAX_LIMIT)

    async def overview(self, site_id: str, period=Period.MONTH) -> OverviewStats:
        """Unique visitors, pageviews, average duration, bounce rate"""
        d = self.dialect
        scope, params = self._scope(site_id, self._window(period))
        row = await self.store.query_one(
            f"""
            SELECT
                {d.uniq('visitor_id')} AS visitors,
                {d.count_if(IS_PAGEVIEW)} AS pageviews,
                {d.avg_if('duration_ms', IS_PAGEVIEW)} AS avg_duration_ms,
                {d.avg_if('is_bounce', IS_PAGEVIEW)} AS bounce_ratio
            {scope}
            """,
            params
        ) or {}

        return OverviewStats(
            visitors=int(_number(row.get("visitors"))),
            pageviews=int(_number(row.get("pageviews"))),
            avg_duration_ms=round(_number(row.get("avg_duration_ms"))),
            bounce_rate=round(_number(row.get("bounce_ratio")) * 100, 1),
        )

    async def timeseries(self, site_id: str, period=Period.MONTH) -> List[TimeseriesPoint]:
        """Visitors and pageviews per hour (24h) or per day, oldest first"""
        d = self.dialect
        period = _period(period)
        bucket = d.hour_bucket("ts") if period is Period.DAY else d.day_bucket("ts")
        scope, params = self._scope(site_id, self._window(period))
        rows = await self.store.query(
            f"""
            SELECT
                {bucket} AS date,
                {d.uniq('visitor_id')} AS visitors,
                {d.count_if(IS_PAGEVIEW)} AS pageviews
            {scope}
            GROUP BY date
            ORDER BY date ASC
            """,
            params
        )
        return [
            TimeseriesPoint(
                date=str(row["date"]),
                visitors=int(_number(row["visitors"])),
                pageviews=int(_number(row["pageviews"])),
            )
            for row in rows
        ]

    async def top_pages(self, site_id: str, period=Period.MONTH, limit: int = DEFAULT_LIMIT) -> List[PageStat]:
        d = self.dialect
        scope, params = self._scope(site_id, self._window(period), IS_PAGEVIEW)
        params["limit"] = self._limit(limit)
        rows = await self.store.query(
            f"""
            SELECT
                path,
                COUNT(*) AS pageviews,
                {d.uniq('visitor_id')} AS visitors
            {scope}
            GROUP BY path
            ORDER BY visitors DESC
            LIMIT {d.param('limit', 'UInt32')}
            """,
            params
        )
        return [PageStat(**row) for row in rows]

    async def top_sources(self, site_id: str, period=Period.MONTH, limit: int = DEFAULT_LIMIT) -> List[SourceStat]:
        d = self.dialect
        scope, params = self._scope(site_id, self._window(period), IS_PAGEVIEW)
        params["limit"] = self._limit(limit)
        rows = await self.store.query(
            f"""
            SELECT
                referrer_source AS source,
                {d.uniq('visitor_id')} AS visitors
            {scope}
            GROUP BY source
            ORDER BY visitors DESC
            LIMIT {d.param('limit', 'UInt32')}
            """,
            params
        )
        return [SourceStat(**row) for row in rows]

    async def countries(self, site_id: str, period=Period.MONTH) -> List[CountryStat]:
        d = self.dialect
        scope, params = self._scope(site_id, self._window(period), IS_PAGEVIEW, "country != ''")
        rows = await self.store.query(
            f"""
            SELECT
                country,
                {d.uniq('visitor_id')} AS visitors
            {scope}
            GROUP BY country
            ORDER BY visitors DESC
            LIMIT {COUNTRY_LIMIT}
            """,
            params
        )
        return [CountryStat(**row) for row in rows]

    async def devices(self, site_id: str, period=Period.MONTH) -> List[DeviceStat]:
        d = self.dialect
        scope, params = self._scope(site_id, self._window(period), IS_PAGEVIEW)
        rows = await self.store.query(
            f"""
            SELECT
                device_type,
                {d.uniq('visitor_id')} AS visitors
            {scope}
            GROUP BY device_type
            ORDER BY visitors DESC
            """,
            params
        )
        return [DeviceStat(**row) for row in rows]

    async def web_vitals(self, site_id: str, period=Period.MONTH) -> List[VitalStat]:
        """p75/p95 and share of samples rated good, per vital"""
        d = self.dialect
        scope, params = self._scope(site_id, self._window(period), IS_VITAL, "vital_name != ''")
        rows = await self.store.query(
            f"""
            SELECT
                vital_name,
                {d.quantile(0.75, 'vital_value')} AS p75,
                {d.quantile(0.95, 'vital_value')} AS p95,
                {d.count_if("vital_rating = 'good'")} AS good,
                COUNT(*) AS samples
            {scope}
            GROUP BY vital_name
            ORDER BY vital_name
            """,
            params
        )

        stats = []
        for row in rows:
            samples = _number(row["samples"])
            good_pct = _number(row["good"]) / samples * 100 if samples else 0.0
            stats.append(VitalStat(
                vital_name=row["vital_name"],
                p75=_number(row["p75"]),
                p95=_number(row["p95"]),
                good_pct=round(good_pct, 1),
            ))
        return stats

    async def live_visitors(self, site_id: str) -> LiveVisitors:
        """Unique visitors in the trailing five minutes"""
        d = self.dialect
        scope, params = self._scope(site_id, LIVE_WINDOW)
        row = await self.store.query_one(
            f"SELECT {d.uniq('visitor_id')} AS count\n{scope}",
            params
        ) or {}
        return LiveVisitors(count=int(_number(row.get("count"))))
