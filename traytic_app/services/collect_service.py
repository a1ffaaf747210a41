"""
Collect Service - the ingestion pipeline behind POST /collect.

Every request ends in exactly one CollectOutcome. Rejections are outcomes,
not exceptions, and the HTTP layer answers 204 whichever one it is, so a
scraper can't tell a malformed, rate-limited or unknown-site request from
an accepted one.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence

from pydantic import ValidationError

from traytic_app.queue.models import RowBatch
from traytic_app.queue.strategies import QueueStrategy
from traytic_app.ratelimit.limiter import FixedWindowRateLimiter
from traytic_app.schemas.collect import CollectPayload, EventType
from traytic_app.schemas.events import LivePageview, NormalizedRow
from traytic_app.services.identity import derive_identity
from traytic_app.services.normalizer import (
    DEFAULT_PLACEHOLDER_HOST,
    CollectContext,
    GeoLocation,
    normalize_events,
)
from traytic_app.services.sites import SitesRegistry
from traytic_app.services.user_agent import classify_user_agent
from traytic_app.stream.live import LiveStream


logger = logging.getLogger(__name__)


class CollectOutcome(Enum):
    """Terminal state of one collect request"""
    ACCEPTED = "accepted"
    MALFORMED = "malformed"
    UNKNOWN_SITE = "unknown_site"
    RATE_LIMITED = "rate_limited"
    BOT = "bot"
    NO_EVENTS = "no_events"  # every event had an unusable url


@dataclass
class CollectResult:
    outcome: CollectOutcome
    site_id: Optional[str] = None
    rows: List[NormalizedRow] = field(default_factory=list)
    published: bool = False

    @property
    def accepted(self) -> bool:
        return self.outcome is CollectOutcome.ACCEPTED


def client_ip_from_headers(forwarded_for: Optional[str], peer: Optional[str]) -> str:
    """First X-Forwarded-For entry, falling back to the transport peer"""
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return peer or ""


class CollectService:
    """
    Orchestrates one collect request.

    Steps:
    1. Validate the payload shape
    2. Resolve the site (siteId, or domain via the sites registry)
    3. Rate-limit per site
    4. Drop bot traffic
    5. Derive identity, classify UA, once per request
    6. Normalize events into rows
    7. Hand rows to the insert queue (never waits on the store)
    8. Publish the first pageview to live subscribers
    """

    def __init__(
        self,
        sites: SitesRegistry,
        rate_limiter: FixedWindowRateLimiter,
        queue: QueueStrategy,
        stream: LiveStream,
        max_events: int = 100,
        max_body_bytes: int = 1_048_576,
        placeholder_host: str = DEFAULT_PLACEHOLDER_HOST,
        extra_bot_patterns: Sequence[str] = (),
        geo_lookup: Optional[Callable[[str], GeoLocation]] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)
    ):
        self.sites = sites
        self.rate_limiter = rate_limiter
        self.queue = queue
        self.stream = stream
        self.max_events = max_events
        self.max_body_bytes = max_body_bytes
        self.placeholder_host = placeholder_host
        self.extra_bot_patterns = tuple(extra_bot_patterns)
        self.geo_lookup = geo_lookup
        self.clock = clock

    def parse_payload(self, body: Any) -> Optional[CollectPayload]:
        """
        Validate a raw body (bytes, str or decoded JSON).

        Returns:
            CollectPayload, or None if the body is malformed
        """
        if isinstance(body, (bytes, str)):
            if len(body) > self.max_body_bytes:
                return None
            try:
                body = json.loads(body)
            except (ValueError, RecursionError):
                # RecursionError: pathologically nested arrays or objects
                return None
        if not isinstance(body, dict):
            return None

        try:
            payload = CollectPayload.model_validate(body)
        except ValidationError:
            return None

        if len(payload.events) > self.max_events:
            return None
        return payload

    async def resolve_site(self, payload: CollectPayload) -> Optional[str]:
        if payload.site_id:
            return payload.site_id
        return await self.sites.resolve_site_by_domain(payload.domain or "")

    def _drop(self, outcome: CollectOutcome, site_id: Optional[str] = None) -> CollectResult:
        logger.debug("Collect dropped: %s (site=%s)", outcome.value, site_id)
        return CollectResult(outcome=outcome, site_id=site_id)

    async def process(self, body: Any, client_ip: str, user_agent: str) -> CollectResult:
        """
        Run one submission through the pipeline.

        Args:
            body: Raw request body
            client_ip: Resolved client address (used only for hashing)
            user_agent: Raw User-Agent header

        Returns:
            CollectResult with the outcome and the rows that were queued
        """
        payload = self.parse_payload(body)
        if payload is None:
            return self._drop(CollectOutcome.MALFORMED)

        site_id = await self.resolve_site(payload)
        if not site_id:
            return self._drop(CollectOutcome.UNKNOWN_SITE)

        if not self.rate_limiter.admit(site_id):
            return self._drop(CollectOutcome.RATE_LIMITED, site_id)

        ua = classify_user_agent(user_agent, self.extra_bot_patterns)
        if ua.is_bot:
            return self._drop(CollectOutcome.BOT, site_id)

        now = self.clock()
        context = CollectContext(
            site_id=site_id,
            identity=derive_identity(site_id, client_ip, user_agent, now),
            user_agent=ua,
            geo=self.geo_lookup(client_ip) if self.geo_lookup else GeoLocation(),
            placeholder_host=self.placeholder_host,
            clock=lambda: now,
        )
        rows = normalize_events(payload.events, context)
        if not rows:
            return self._drop(CollectOutcome.NO_EVENTS, site_id)

        self.queue.publish(RowBatch(site_id=site_id, rows=rows))
        published = self._publish_live(site_id, rows, now)

        return CollectResult(
            outcome=CollectOutcome.ACCEPTED,
            site_id=site_id,
            rows=rows,
            published=published,
        )

    def _publish_live(self, site_id: str, rows: List[NormalizedRow], now: datetime) -> bool:
        """Publish the first pageview of the batch, if there is one"""
        first = next((row for row in rows if row.type == EventType.PAGEVIEW), None)
        if first is None:
            return False

        message = LivePageview(
            path=first.path,
            country=first.country,
            browser=first.browser,
            device_type=first.device_type,
            ts=int(now.timestamp() * 1000),
        )
        self.stream.publish(site_id, message.model_dump())
        return True
