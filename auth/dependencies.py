"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Protected routes declare `username: str = Depends(require_session)`. The
dependency runs before any handler logic:

  1. Read "Authorization: Bearer <token>". Missing or malformed header ->
     Unauthorized("Authentication required").
  2. AuthService.validate(token). Unknown, expired or logged-out token ->
     Unauthorized("Invalid or expired token").
  3. Attach the resolved username (and the raw token, needed by logout) to
     request.state and return the username.

The service is read from request.app.state.auth_service, which the lifespan
builds around the configured credential store.

Layer rule: no imports from api/ or game/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.errors import Unauthorized
from auth.service import AuthService
from auth.tokens import parse_bearer


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


async def require_session(request: Request) -> str:
    """Require a valid bearer session. Raises Unauthorized otherwise."""
    token = parse_bearer(request.headers.get("Authorization"))
    if token is None:
        raise Unauthorized("Authentication required")

    username = await get_auth_service(request).validate(token)
    if username is None:
        raise Unauthorized("Invalid or expired token")

    request.state.username = username
    request.state.token = token
    return username
