"""
Tests for visitor/session pseudonyms.
"""
import re
from datetime import datetime, timezone

from traytic_app.services.identity import (
    day_bucket,
    derive_identity,
    hour_bucket,
    identity_hash,
)


HEX16 = re.compile(r"^[0-9a-f]{16}$")


class TestIdentityHash:
    """Test the one-way truncated hash"""

    def test_token_is_16_hex_chars(self):
        token = identity_hash("s1", "203.0.113.9", "UA", "2026-10-17")
        assert HEX16.match(token)

    def test_deterministic(self):
        args = ("s1", "203.0.113.9", "UA", "2026-10-17")
        assert identity_hash(*args) == identity_hash(*args)

    def test_every_input_changes_the_token(self):
        base = identity_hash("s1", "203.0.113.9", "UA", "2026-10-17")
        assert identity_hash("s2", "203.0.113.9", "UA", "2026-10-17") != base
        assert identity_hash("s1", "203.0.113.10", "UA", "2026-10-17") != base
        assert identity_hash("s1", "203.0.113.9", "UA2", "2026-10-17") != base
        assert identity_hash("s1", "203.0.113.9", "UA", "2026-10-18") != base

    def test_raw_inputs_not_in_token(self):
        token = identity_hash("s1", "203.0.113.9", "UA", "2026-10-17")
        assert "203" not in token


class TestDeriveIdentity:
    """Test visitor (daily) and session (hourly) rotation"""

    def test_buckets_use_utc(self):
        moment = datetime(2026, 10, 17, 9, 30, tzinfo=timezone.utc)
        assert day_bucket(moment) == "2026-10-17"
        assert hour_bucket(moment) == "2026-10-17T09"

    def test_visitor_stable_within_day(self):
        morning = derive_identity("s1", "1.2.3.4", "UA", datetime(2026, 10, 17, 0, 5, tzinfo=timezone.utc))
        evening = derive_identity("s1", "1.2.3.4", "UA", datetime(2026, 10, 17, 23, 55, tzinfo=timezone.utc))
        assert morning.visitor_id == evening.visitor_id

    def test_visitor_rotates_on_new_day(self):
        today = derive_identity("s1", "1.2.3.4", "UA", datetime(2026, 10, 17, 23, 59, tzinfo=timezone.utc))
        tomorrow = derive_identity("s1", "1.2.3.4", "UA", datetime(2026, 10, 18, 0, 0, tzinfo=timezone.utc))
        assert today.visitor_id != tomorrow.visitor_id

    def test_session_stable_within_hour(self):
        first = derive_identity("s1", "1.2.3.4", "UA", datetime(2026, 10, 17, 9, 0, tzinfo=timezone.utc))
        last = derive_identity("s1", "1.2.3.4", "UA", datetime(2026, 10, 17, 9, 59, 59, tzinfo=timezone.utc))
        assert first.session_id == last.session_id

    def test_session_rotates_on_the_hour(self):
        before = derive_identity("s1", "1.2.3.4", "UA", datetime(2026, 10, 17, 9, 59, tzinfo=timezone.utc))
        after = derive_identity("s1", "1.2.3.4", "UA", datetime(2026, 10, 17, 10, 0, tzinfo=timezone.utc))
        assert before.session_id != after.session_id
        # Same day, so the visitor is unchanged
        assert before.visitor_id == after.visitor_id

    def test_defaults_to_now(self):
        identity = derive_identity("s1", "1.2.3.4", "UA")
        assert HEX16.match(identity.visitor_id)
        assert HEX16.match(identity.session_id)
