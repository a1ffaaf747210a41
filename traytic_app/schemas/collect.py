"""
Wire contract of the browser SDK.

The collect endpoint is public, so these models are the only thing standing
between untrusted JSON and the analytics store. Unknown fields are ignored
(the SDK may be newer than the server); wrong types and unknown event types
reject the whole submission.
"""

from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


# Largest value the duration_ms column holds
UINT32_MAX = 4_294_967_295


class EventType:
    """Event type tags used on the wire and in the `type` column"""
    PAGEVIEW = "pageview"
    CUSTOM = "custom"
    VITAL = "vital"
    ERROR = "error"


class BaseEvent(BaseModel):
    """Fields shared by every event kind"""

    url: str = Field(..., description="Page URL, absolute or a bare path")
    referrer: Optional[str] = Field(None, description="document.referrer")
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_content: Optional[str] = None
    utm_term: Optional[str] = None
    duration_ms: Optional[int] = Field(None, ge=0, le=UINT32_MAX, description="Time on page")

    model_config = ConfigDict(extra="ignore")


class PageviewEvent(BaseEvent):
    type: Literal["pageview"]


class CustomEvent(BaseEvent):
    type: Literal["custom"]
    event_name: Optional[str] = None
    meta: Optional[Dict[str, str]] = None


class VitalEvent(BaseEvent):
    type: Literal["vital"]
    vital_name: Optional[str] = Field(None, description="LCP, CLS, INP, FCP, TTFB")
    vital_value: Optional[float] = Field(None, allow_inf_nan=False)
    vital_rating: Optional[str] = Field(None, description="good, needs-improvement, poor")


class ErrorEvent(BaseEvent):
    type: Literal["error"]
    error_message: Optional[str] = None
    error_stack: Optional[str] = None


RawEvent = Annotated[
    Union[PageviewEvent, CustomEvent, VitalEvent, ErrorEvent],
    Field(discriminator="type"),
]


class CollectPayload(BaseModel):
    """
    One submission from the SDK: a site plus a batch of events.

    Either siteId or domain must be present; domain is resolved through
    the sites registry.
    """

    site_id: Optional[str] = Field(None, alias="siteId", min_length=1, max_length=64)
    domain: Optional[str] = Field(None, min_length=1, max_length=253)
    events: List[RawEvent] = Field(..., min_length=1)

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "siteId": "site_AbC123xYz890",
                "events": [
                    {
                        "type": "pageview",
                        "url": "https://acme.com/pricing",
                        "referrer": "https://www.google.com/",
                        "duration_ms": 5400
                    }
                ]
            }
        },
    )

    @model_validator(mode="after")
    def require_site_reference(self):
        if not self.site_id and not self.domain:
            raise ValueError("siteId or domain is required")
        return self
