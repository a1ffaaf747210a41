"""
Privacy-preserving visitor and session identifiers.

Nothing identifying is stored. A visitor is a truncated SHA-256 of
(site, ip, user agent, UTC day); a session is the same with the UTC hour.
The pseudonyms rotate by themselves when the bucket changes and cannot be
reversed to the inputs.
"""

import hashlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


TOKEN_LENGTH = 16  # hex chars, ~64 bits


@dataclass(frozen=True)
class Identity:
    visitor_id: str
    session_id: str


def identity_hash(site_id: str, client_ip: str, user_agent: str, bucket: str) -> str:
    """One-way hash of the identity tuple, truncated to 16 hex characters"""
    raw = f"{site_id}:{client_ip}:{user_agent}:{bucket}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:TOKEN_LENGTH]


def day_bucket(now: datetime) -> str:
    """ISO calendar day in UTC, e.g. 2026-10-17"""
    return now.astimezone(timezone.utc).strftime("%Y-%m-%d")


def hour_bucket(now: datetime) -> str:
    """ISO calendar hour in UTC, e.g. 2026-10-17T09"""
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H")


def derive_identity(
    site_id: str,
    client_ip: str,
    user_agent: str,
    now: Optional[datetime] = None
) -> Identity:
    """
    Derive the visitor and session pseudonyms for one request.

    Args:
        site_id: Resolved site identifier
        client_ip: Client address (forwarded-for or peer)
        user_agent: Raw user agent header
        now: Evaluation time (defaults to current UTC time)

    Returns:
        Identity with visitor_id (daily) and session_id (hourly)
    """
    now = now or datetime.now(timezone.utc)
    return Identity(
        visitor_id=identity_hash(site_id, client_ip, user_agent, day_bucket(now)),
        session_id=identity_hash(site_id, client_ip, user_agent, hour_bucket(now)),
    )
