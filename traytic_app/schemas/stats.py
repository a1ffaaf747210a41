"""
Response schemas for the dashboard query API.

ClickHouse returns 64-bit integers as JSON strings; these models coerce
them back to numbers so both store backends serialize the same way.
"""

from pydantic import BaseModel


class OverviewStats(BaseModel):
    visitors: int = 0
    pageviews: int = 0
    avg_duration_ms: int = 0
    bounce_rate: float = 0.0


class TimeseriesPoint(BaseModel):
    date: str
    visitors: int
    pageviews: int


class PageStat(BaseModel):
    path: str
    pageviews: int
    visitors: int


class SourceStat(BaseModel):
    source: str
    visitors: int


class CountryStat(BaseModel):
    country: str
    visitors: int


class DeviceStat(BaseModel):
    device_type: str
    visitors: int


class VitalStat(BaseModel):
    vital_name: str
    p75: float
    p95: float
    good_pct: float


class LiveVisitors(BaseModel):
    count: int
