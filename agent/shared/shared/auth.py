"""Request authentication for the tracker service.

The auth collaborator (API gateway or orchestrator) verifies the end user and
forwards requests with two headers:

- ``Authorization: Bearer <SERVICE_AUTH_TOKEN>`` proving the request came
  through a trusted service, and
- ``X-User-Id: <uuid>`` naming the verified user.

Usage in a FastAPI route::

    from shared.auth import get_request_user_id

    @app.post("/predict")
    async def predict(user_id: str = Depends(get_request_user_id)):
        ...
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import Depends, HTTPException, Request

from shared.config import get_settings

logger = structlog.get_logger()


class AuthenticationError(Exception):
    """The caller's identity is missing or cannot be verified."""


def parse_user_id(user_id: str | None) -> uuid.UUID:
    """Return ``user_id`` as a UUID, or raise AuthenticationError."""
    if not user_id:
        raise AuthenticationError("No authenticated user")
    try:
        return uuid.UUID(str(user_id))
    except (ValueError, AttributeError):
        raise AuthenticationError("Invalid user id") from None


async def require_service_auth(request: Request) -> None:
    """FastAPI dependency that validates the inter-service auth token.

    Raises 401 if the token is missing or incorrect.
    Skips validation when ``service_auth_token`` is empty (dev mode).
    """
    settings = get_settings()
    expected = settings.service_auth_token
    if not expected:
        logger.warning(
            "service_auth_disabled",
            path=request.url.path,
            hint="Set SERVICE_AUTH_TOKEN in .env for production",
        )
        return

    auth_header = request.headers.get("authorization", "")
    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing service auth token")

    token = auth_header[7:]
    if token != expected:
        logger.warning(
            "service_auth_failed",
            path=request.url.path,
            remote=request.client.host if request.client else "unknown",
        )
        raise HTTPException(status_code=401, detail="Invalid service auth token")


async def get_request_user_id(
    request: Request,
    _=Depends(require_service_auth),
) -> str:
    """FastAPI dependency returning the verified user id from ``X-User-Id``."""
    return str(parse_user_id(request.headers.get("x-user-id")))
