"""
Authorization dependency applied to the whole app.

Requests must carry `Authorization: Bearer <API_TOKEN>` unless the matched
route is marked public (see `common.public`). With `API_TOKEN` unset,
authorization is disabled.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import Header, HTTPException, Request, status

from common.public import public_routes, route_name
from core import config

logger = logging.getLogger(__name__)


def _extract_bearer_token(authorization: str | None) -> str:
    raw = (authorization or "").strip()
    if not raw:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header.",
        )

    parts = raw.split(" ", 1)
    if len(parts) != 2:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header format.",
        )

    scheme, token = parts[0].strip().lower(), parts[1].strip()
    if scheme != "bearer" or not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization must be: Bearer <token>.",
        )
    return token


async def authorize_request(
    request: Request,
    authorization: str | None = Header(default=None),
) -> None:
    if public_routes.is_public(route_name(request)):
        return None

    expected = config.api_token()
    if not expected:
        return None

    token = _extract_bearer_token(authorization)
    if not secrets.compare_digest(token.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("rejected_token method=%s path=%s", request.method, request.url.path)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid access token.",
        )
    return None
