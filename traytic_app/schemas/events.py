"""
Normalized analytics row and live-stream message models.
"""

from typing import Dict

from pydantic import BaseModel, Field


class NormalizedRow(BaseModel):
    """
    One row of the `events` table.

    Every column has a typed zero default; the table has no nullable
    columns and every row can be read without joining anything else.
    """

    site_id: str
    type: str
    url: str
    path: str
    hostname: str
    referrer: str = ""
    referrer_source: str = "Direct"

    utm_source: str = ""
    utm_medium: str = ""
    utm_campaign: str = ""
    utm_content: str = ""
    utm_term: str = ""

    # Populated by GeoIP upstream of the core; empty otherwise
    country: str = ""
    region: str = ""
    city: str = ""

    browser: str = "Unknown"
    browser_version: str = ""
    os: str = "Unknown"
    os_version: str = ""
    device_type: str = "desktop"

    visitor_id: str
    session_id: str

    duration_ms: int = 0
    is_bounce: int = 0
    is_new: int = 0

    vital_name: str = ""
    vital_value: float = 0.0
    vital_rating: str = ""

    event_name: str = ""
    meta: Dict[str, str] = Field(default_factory=dict)

    error_message: str = ""
    error_stack: str = ""

    ts: str = Field(..., description="UTC, 'YYYY-MM-DD HH:MM:SS'")


class LivePageview(BaseModel):
    """Message pushed to dashboard subscribers for a fresh pageview"""

    type: str = "pageview"
    path: str
    country: str
    browser: str
    device_type: str
    ts: int = Field(..., description="Epoch milliseconds")
