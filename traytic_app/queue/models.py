"""
Data models for queue messages.
"""

from pydantic import BaseModel, Field
from datetime import datetime, timezone
from typing import List
from traytic_app.schemas.events import NormalizedRow


class RowBatch(BaseModel):
    """
    Normalized rows from one collect request, waiting to be inserted.

    Published by the collect service, consumed by the insert worker.
    """
    
    site_id: str = Field(..., description="Site the rows belong to")
    rows: List[NormalizedRow] = Field(default_factory=list)
    enqueued_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the batch was accepted"
    )
