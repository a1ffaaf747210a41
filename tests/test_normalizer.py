"""
Tests for event normalization.
"""
from datetime import datetime, timezone

from traytic_app.schemas.collect import CollectPayload
from traytic_app.services.identity import Identity
from traytic_app.services.normalizer import (
    CollectContext,
    GeoLocation,
    normalize_events,
    split_event_url,
)
from traytic_app.services.user_agent import classify_user_agent
from tests.conftest import CHROME_UA


FIXED_NOW = datetime(2026, 10, 17, 9, 30, 15, 123456, tzinfo=timezone.utc)


def make_context(**overrides):
    context = dict(
        site_id="s1",
        identity=Identity(visitor_id="a" * 16, session_id="b" * 16),
        user_agent=classify_user_agent(CHROME_UA),
        clock=lambda: FIXED_NOW,
    )
    context.update(overrides)
    return CollectContext(**context)


def events(*raw):
    return CollectPayload.model_validate({"siteId": "s1", "events": list(raw)}).events


class TestSplitEventUrl:
    """Test path/hostname extraction"""

    def test_bare_path_gets_placeholder_host(self):
        path, hostname = split_event_url("/pricing")
        assert path == "/pricing"
        assert hostname

    def test_absolute_url(self):
        assert split_event_url("https://example.com/a?x=1") == ("/a", "example.com")

    def test_empty_path_is_root(self):
        assert split_event_url("https://example.com") == ("/", "example.com")

    def test_relative_path_without_slash(self):
        assert split_event_url("docs/intro", "placeholder.test") == ("/docs/intro", "placeholder.test")

    def test_unparseable(self):
        assert split_event_url("http://[::1") is None
        assert split_event_url("httpnothing") is None


class TestNormalizeEvents:
    """Test row shaping and zero-value defaults"""

    def test_pageview_row(self):
        rows = normalize_events(
            events({
                "type": "pageview",
                "url": "https://acme.com/",
                "referrer": "https://www.google.com/",
                "utm_source": "newsletter",
                "duration_ms": 1200,
            }),
            make_context(),
        )

        assert len(rows) == 1
        row = rows[0]
        assert row.site_id == "s1"
        assert row.type == "pageview"
        assert row.path == "/"
        assert row.hostname == "acme.com"
        assert row.referrer_source == "Google"
        assert row.utm_source == "newsletter"
        assert row.utm_medium == ""
        assert row.browser == "Chrome"
        assert row.device_type == "desktop"
        assert row.visitor_id == "a" * 16
        assert row.session_id == "b" * 16
        assert row.duration_ms == 1200
        assert row.is_bounce == 0 and row.is_new == 0
        assert row.vital_name == "" and row.vital_value == 0.0
        assert row.meta == {}
        assert row.ts == "2026-10-17 09:30:15"

    def test_missing_referrer_is_direct(self):
        row = normalize_events(events({"type": "pageview", "url": "/"}), make_context())[0]
        assert row.referrer == ""
        assert row.referrer_source == "Direct"

    def test_vital_fields(self):
        row = normalize_events(
            events({"type": "vital", "url": "/", "vital_name": "LCP", "vital_value": 2100.5, "vital_rating": "good"}),
            make_context(),
        )[0]
        assert (row.vital_name, row.vital_value, row.vital_rating) == ("LCP", 2100.5, "good")

    def test_custom_fields(self):
        row = normalize_events(
            events({"type": "custom", "url": "/", "event_name": "signup", "meta": {"plan": "pro"}}),
            make_context(),
        )[0]
        assert row.event_name == "signup"
        assert row.meta == {"plan": "pro"}

    def test_error_fields(self):
        row = normalize_events(
            events({"type": "error", "url": "/", "error_message": "TypeError: x is undefined"}),
            make_context(),
        )[0]
        assert row.error_message == "TypeError: x is undefined"
        assert row.error_stack == ""

    def test_fields_of_other_kinds_are_ignored(self):
        # A pageview carrying vital fields keeps them zeroed
        row = normalize_events(
            events({"type": "pageview", "url": "/", "vital_name": "LCP", "vital_value": 9}),
            make_context(),
        )[0]
        assert row.vital_name == ""
        assert row.vital_value == 0.0

    def test_bad_url_drops_only_that_event(self):
        rows = normalize_events(
            events(
                {"type": "pageview", "url": "/one"},
                {"type": "pageview", "url": "http://[::1"},
                {"type": "pageview", "url": "/three"},
            ),
            make_context(),
        )
        assert [row.path for row in rows] == ["/one", "/three"]

    def test_order_is_preserved(self):
        rows = normalize_events(
            events(
                {"type": "custom", "url": "/a", "event_name": "x"},
                {"type": "pageview", "url": "/b"},
                {"type": "vital", "url": "/c", "vital_name": "CLS"},
            ),
            make_context(),
        )
        assert [row.type for row in rows] == ["custom", "pageview", "vital"]

    def test_geo_is_copied(self):
        row = normalize_events(
            events({"type": "pageview", "url": "/"}),
            make_context(geo=GeoLocation(country="NL", region="NH", city="Amsterdam")),
        )[0]
        assert (row.country, row.region, row.city) == ("NL", "NH", "Amsterdam")

    def test_long_values_are_clipped(self):
        row = normalize_events(
            events({"type": "pageview", "url": "/" + "a" * 5000}),
            make_context(),
        )[0]
        assert len(row.url) == 2048
