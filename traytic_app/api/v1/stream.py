import asyncio
import json
from typing import AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from traytic_app.config import settings
from traytic_app.dependencies import get_live_stream, get_owned_site_id
from traytic_app.stream.live import LiveStream

router = APIRouter(prefix="/stream", tags=["stream"])


async def sse_events(
    stream: LiveStream,
    site_id: str,
    is_disconnected: Callable[[], Awaitable[bool]],
    heartbeat_seconds: float = 15.0
) -> AsyncIterator[str]:
    """
    Server-sent events for one dashboard connection.

    Subscribes when iteration starts and unsubscribes when the client goes
    away (disconnect check or generator cancellation). Idle connections
    get a comment line every heartbeat so proxies keep them open.
    """
    async with stream.subscribe(site_id) as subscription:
        yield ": connected\n\n"
        while not await is_disconnected():
            try:
                payload = await asyncio.wait_for(subscription.get(), timeout=heartbeat_seconds)
            except asyncio.TimeoutError:
                yield ": ping\n\n"
                continue
            yield f"data: {json.dumps(payload)}\n\n"


@router.get("/{site_id}")
async def stream_site(
    request: Request,
    site_id: str = Depends(get_owned_site_id),
    stream: LiveStream = Depends(get_live_stream)
):
    """
    Real-time pageviews for a site (SSE).

    Only events published after the connection opens are delivered.
    """
    return StreamingResponse(
        sse_events(stream, site_id, request.is_disconnected, settings.stream_heartbeat_seconds),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
