"""
Event normalization: reshape one submission into flat analytics rows.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urlsplit

from traytic_app.schemas.collect import CustomEvent, ErrorEvent, VitalEvent
from traytic_app.schemas.events import NormalizedRow
from traytic_app.services.identity import Identity
from traytic_app.services.referrer import resolve_referrer
from traytic_app.services.user_agent import UserAgentInfo


logger = logging.getLogger(__name__)

MAX_URL_LENGTH = 2048
MAX_TEXT_LENGTH = 512
MAX_ERROR_LENGTH = 4096
MAX_META_ENTRIES = 32
MAX_META_KEY_LENGTH = 128
DEFAULT_PLACEHOLDER_HOST = "x.com"


@dataclass(frozen=True)
class GeoLocation:
    """Filled in by a GeoIP collaborator when one is deployed"""
    country: str = ""
    region: str = ""
    city: str = ""


@dataclass
class CollectContext:
    """Everything the events of one request share: one site, one IP, one UA"""
    site_id: str
    identity: Identity
    user_agent: UserAgentInfo
    geo: GeoLocation = field(default_factory=GeoLocation)
    placeholder_host: str = DEFAULT_PLACEHOLDER_HOST
    clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)


def _clip(value: Optional[str], limit: int = MAX_TEXT_LENGTH) -> str:
    return (value or "")[:limit]


def _clip_meta(meta: Optional[Dict[str, str]]) -> Dict[str, str]:
    """First MAX_META_ENTRIES pairs, keys and values clipped"""
    clipped: Dict[str, str] = {}
    for key, value in (meta or {}).items():
        if len(clipped) >= MAX_META_ENTRIES:
            break
        clipped[_clip(key, MAX_META_KEY_LENGTH)] = _clip(value)
    return clipped


def split_event_url(url: str, placeholder_host: str = DEFAULT_PLACEHOLDER_HOST) -> Optional[Tuple[str, str]]:
    """
    Extract (path, hostname) from an event URL.

    Bare paths ("/pricing") get a synthetic https://<placeholder_host> so
    extraction works the same way for every event.

    Returns:
        (path, hostname), or None if the URL can't be interpreted
    """
    candidate = url.strip()
    if not candidate.startswith("http"):
        if not candidate.startswith("/"):
            candidate = "/" + candidate
        candidate = f"https://{placeholder_host}{candidate}"

    try:
        parts = urlsplit(candidate)
        hostname = parts.hostname
    except ValueError:
        return None

    if not hostname:
        return None
    return parts.path or "/", hostname


def format_ts(moment: datetime) -> str:
    """Second-precision UTC timestamp in the store's DateTime format"""
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def normalize_events(events: Sequence, context: CollectContext) -> List[NormalizedRow]:
    """
    Turn the raw events of one submission into storage rows.

    The timestamp is taken here, at ingestion, not from the client.
    An event whose URL can't be parsed is dropped on its own; the rest of
    the batch still goes through. Output order follows input order.
    """
    ts = format_ts(context.clock())
    ua = context.user_agent
    rows: List[NormalizedRow] = []

    for event in events:
        parsed = split_event_url(event.url, context.placeholder_host)
        if parsed is None:
            logger.debug("Dropping event with unparseable url for site %s", context.site_id)
            continue
        path, hostname = parsed

        referrer = _clip(event.referrer, MAX_URL_LENGTH)
        row = NormalizedRow(
            site_id=context.site_id,
            type=event.type,
            url=_clip(event.url, MAX_URL_LENGTH),
            path=_clip(path, MAX_URL_LENGTH),
            hostname=hostname,
            referrer=referrer,
            referrer_source=resolve_referrer(referrer),
            utm_source=_clip(event.utm_source),
            utm_medium=_clip(event.utm_medium),
            utm_campaign=_clip(event.utm_campaign),
            utm_content=_clip(event.utm_content),
            utm_term=_clip(event.utm_term),
            country=context.geo.country,
            region=context.geo.region,
            city=context.geo.city,
            browser=ua.browser,
            browser_version=ua.browser_version,
            os=ua.os,
            os_version=ua.os_version,
            device_type=ua.device_type,
            visitor_id=context.identity.visitor_id,
            session_id=context.identity.session_id,
            duration_ms=event.duration_ms or 0,
            ts=ts,
        )

        # Kind-specific fields; anything irrelevant to the kind stays zero
        if isinstance(event, VitalEvent):
            row.vital_name = _clip(event.vital_name)
            row.vital_value = event.vital_value or 0.0
            row.vital_rating = _clip(event.vital_rating)
        elif isinstance(event, CustomEvent):
            row.event_name = _clip(event.event_name)
            row.meta = _clip_meta(event.meta)
        elif isinstance(event, ErrorEvent):
            row.error_message = _clip(event.error_message, MAX_ERROR_LENGTH)
            row.error_stack = _clip(event.error_stack, MAX_ERROR_LENGTH)

        rows.append(row)

    return rows
