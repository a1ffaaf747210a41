"""
Boundary to the external auth provider.

The API never issues or checks credentials itself. It forwards the caller's
cookie/authorization headers to the provider's session endpoint and trusts
the user it returns.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import requests
from fastapi import HTTPException, Request, status

from traytic_app.config import settings


logger = logging.getLogger(__name__)

FORWARDED_HEADERS = ("cookie", "authorization")


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: Optional[str] = None


def fetch_session_user(headers: dict) -> Optional[AuthUser]:
    """
    Ask the auth provider who the caller is.

    Returns:
        AuthUser, or None if there is no valid session
    """
    if not headers:
        return None

    try:
        response = requests.get(
            f"{settings.auth_url.rstrip('/')}{settings.auth_session_path}",
            headers=headers,
            timeout=settings.auth_timeout
        )
    except requests.RequestException as e:
        logger.warning("Auth provider unreachable: %s", e)
        return None

    if response.status_code != 200:
        return None

    try:
        data = response.json() or {}
    except ValueError:
        return None

    user = data.get("user") if isinstance(data, dict) else None
    if not isinstance(user, dict) or not user.get("id"):
        return None
    return AuthUser(id=str(user["id"]), email=user.get("email"))


def get_current_user(request: Request) -> AuthUser:
    """FastAPI dependency: the authenticated user, or 401"""
    headers = {
        name: request.headers[name]
        for name in FORWARDED_HEADERS
        if name in request.headers
    }
    user = fetch_session_user(headers)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    return user
