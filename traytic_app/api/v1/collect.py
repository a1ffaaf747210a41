import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status

from traytic_app.dependencies import get_collect_service
from traytic_app.services.collect_service import CollectService, client_ip_from_headers


logger = logging.getLogger(__name__)

router = APIRouter(tags=["collect"])


async def read_body(request: Request, limit: int) -> Optional[bytes]:
    """
    Read the request body, giving up past `limit` bytes.

    Returns:
        The body, or None if it is (or claims to be) larger than limit
    """
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        return None

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            return None
    return bytes(body)


@router.post(
    "/collect",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def collect(
    request: Request,
    collect_service: CollectService = Depends(get_collect_service)
):
    """
    Public ingestion endpoint for the browser SDK.

    Always answers 204, whatever happened to the events: malformed,
    oversized, unknown-site, rate-limited, bot and accepted requests look
    identical from outside. The store insert happens later in the insert
    worker, so the SDK never waits on storage.
    """
    body = await read_body(request, collect_service.max_body_bytes)
    client_ip = client_ip_from_headers(
        request.headers.get("x-forwarded-for"),
        request.client.host if request.client else None,
    )

    try:
        # An oversized body arrives as None and is dropped as malformed
        await collect_service.process(body, client_ip, request.headers.get("user-agent", ""))
    except Exception:
        # Never surface collect errors to the SDK
        logger.exception("Unexpected error while processing collect request")

    return Response(status_code=status.HTTP_204_NO_CONTENT)
