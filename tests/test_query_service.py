"""
Tests for dashboard aggregates over the SQLite store.
"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from traytic_app.services.query_service import Period, QueryService
from traytic_app.storage.strategies import EVENTS_TABLE


def ts(delta: timedelta = timedelta(0)) -> str:
    return (datetime.now(timezone.utc) - delta).strftime("%Y-%m-%d %H:%M:%S")


def row(**fields):
    base = {
        "site_id": "s1",
        "type": "pageview",
        "url": "https://acme.com/",
        "path": "/",
        "hostname": "acme.com",
        "visitor_id": "v1",
        "session_id": "x1",
        "ts": ts(timedelta(minutes=1)),
    }
    base.update(fields)
    return base


@pytest.fixture
def service(store):
    return QueryService(store=store)


def seed(store, *rows):
    assert asyncio.run(store.insert(EVENTS_TABLE, list(rows)))


class TestQueryService:
    """Test aggregate shapes and scoping"""

    def test_empty_site(self, service):
        overview = asyncio.run(service.overview("s1", Period.WEEK))
        assert overview.visitors == 0
        assert overview.pageviews == 0
        assert overview.avg_duration_ms == 0
        assert overview.bounce_rate == 0.0

        assert asyncio.run(service.timeseries("s1", Period.WEEK)) == []
        assert asyncio.run(service.web_vitals("s1")) == []
        assert asyncio.run(service.live_visitors("s1")).count == 0

    def test_invalid_period(self, service):
        with pytest.raises(ValueError):
            asyncio.run(service.overview("s1", "1y"))

    def test_blank_site(self, service):
        with pytest.raises(ValueError):
            asyncio.run(service.overview("  ", Period.DAY))

    def test_overview(self, service, store):
        seed(
            store,
            row(visitor_id="v1", duration_ms=1000, is_bounce=1),
            row(visitor_id="v1", duration_ms=3000, is_bounce=0),
            row(visitor_id="v2", duration_ms=2000, is_bounce=1),
            row(visitor_id="v3", type="custom", event_name="signup"),
        )
        overview = asyncio.run(service.overview("s1", "7d"))

        assert overview.visitors == 3
        assert overview.pageviews == 3
        assert overview.avg_duration_ms == 2000
        assert overview.bounce_rate == pytest.approx(66.7)

    def test_site_isolation(self, service, store):
        seed(store, row(site_id="s1"), row(site_id="s2", visitor_id="other"), row(site_id="s2", visitor_id="other2"))

        assert asyncio.run(service.overview("s1")).visitors == 1
        assert asyncio.run(service.overview("s2")).visitors == 2

    def test_period_bounds(self, service, store):
        seed(store, row(visitor_id="recent"), row(visitor_id="old", ts=ts(timedelta(days=10))))

        assert asyncio.run(service.overview("s1", Period.WEEK)).visitors == 1
        assert asyncio.run(service.overview("s1", Period.MONTH)).visitors == 2

    def test_empty_timeseries_for_24h(self, service, store):
        seed(store, row(site_id="s2"))
        assert asyncio.run(service.timeseries("s1", Period.DAY)) == []

    def test_timeseries_daily(self, service, store):
        seed(
            store,
            row(visitor_id="a", ts=ts(timedelta(days=2))),
            row(visitor_id="b"),
            row(visitor_id="b"),
        )
        points = asyncio.run(service.timeseries("s1", Period.WEEK))

        assert len(points) == 2
        assert points[0].date < points[1].date
        assert (points[1].visitors, points[1].pageviews) == (1, 2)

    def test_timeseries_hourly_for_24h(self, service, store):
        seed(store, row())
        points = asyncio.run(service.timeseries("s1", Period.DAY))
        assert len(points) == 1
        assert ":" in points[0].date

    def test_top_pages_and_sources(self, service, store):
        seed(
            store,
            row(path="/a", visitor_id="v1", referrer_source="Google"),
            row(path="/a", visitor_id="v2", referrer_source="Google"),
            row(path="/b", visitor_id="v1", referrer_source="Direct"),
            row(path="/b", visitor_id="v1", referrer_source="Direct"),
            row(path="/b", visitor_id="v1", referrer_source="Direct"),
        )

        pages = asyncio.run(service.top_pages("s1", limit=10))
        assert [(p.path, p.visitors, p.pageviews) for p in pages] == [("/a", 2, 2), ("/b", 1, 3)]
        assert len(asyncio.run(service.top_pages("s1", limit=1))) == 1

        sources = asyncio.run(service.top_sources("s1"))
        assert [(s.source, s.visitors) for s in sources] == [("Google", 2), ("Direct", 1)]

    def test_countries_skip_unknown(self, service, store):
        seed(store, row(country="NL"), row(country="", visitor_id="v2"))
        countries = asyncio.run(service.countries("s1"))
        assert [(c.country, c.visitors) for c in countries] == [("NL", 1)]

    def test_devices(self, service, store):
        seed(store, row(device_type="mobile", visitor_id="v1"), row(device_type="desktop", visitor_id="v2"), row(device_type="desktop", visitor_id="v3"))
        devices = asyncio.run(service.devices("s1"))
        assert devices[0].device_type == "desktop"
        assert devices[0].visitors == 2

    def test_web_vitals(self, service, store):
        seed(store, *[
            row(type="vital", vital_name="LCP", vital_value=float(value), vital_rating="good" if value <= 2500 else "poor")
            for value in (1000, 2000, 3000, 4000)
        ])
        (lcp,) = asyncio.run(service.web_vitals("s1"))

        assert lcp.vital_name == "LCP"
        assert lcp.p75 == pytest.approx(3250.0)
        assert lcp.p95 == pytest.approx(3850.0)
        assert lcp.good_pct == 50.0

    def test_live_visitors(self, service, store):
        seed(
            store,
            row(visitor_id="now1"),
            row(visitor_id="now2", type="custom"),
            row(visitor_id="earlier", ts=ts(timedelta(minutes=30))),
        )
        assert asyncio.run(service.live_visitors("s1")).count == 2


class RecordingStore:
    """Captures SQL instead of running it"""

    def __init__(self, dialect):
        self.dialect = dialect
        self.calls = []

    async def query(self, sql, params=None):
        self.calls.append((sql, params))
        return []

    async def query_one(self, sql, params=None):
        self.calls.append((sql, params))
        return None


class TestQueryScoping:
    """Every query is bound to one site and a bounded window"""

    def test_every_query_has_site_and_time_filter(self, store):
        recorder = RecordingStore(store.dialect)
        service = QueryService(store=recorder)

        async def run_all():
            await service.overview("s1")
            await service.timeseries("s1", Period.DAY)
            await service.top_pages("s1")
            await service.top_sources("s1")
            await service.countries("s1")
            await service.devices("s1")
            await service.web_vitals("s1")
            await service.live_visitors("s1")

        asyncio.run(run_all())

        assert len(recorder.calls) == 8
        for sql, params in recorder.calls:
            assert "site_id = :site_id" in sql
            assert "ts >= datetime('now'" in sql
            assert params["site_id"] == "s1"

    def test_limit_is_capped(self, store):
        recorder = RecordingStore(store.dialect)
        service = QueryService(store=recorder)
        asyncio.run(service.top_pages("s1", limit=5000))
        assert recorder.calls[0][1]["limit"] == 1000
