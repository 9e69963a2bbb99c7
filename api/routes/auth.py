"""
api/routes/auth.py -- Account and session REST endpoints.

Routes:
  POST /api/auth/register  -- create an account (public)
  POST /api/auth/login     -- exchange credentials for a session token (public)
  POST /api/auth/logout    -- revoke the presented session (requires auth)

Security:
  register and login are rate-limited per client IP (Settings.login_rate_limit).
  login returns the same 401 for unknown user and wrong password.
  Cache-Control: no-store on login responses so tokens never land in caches.

Failures are raised as auth.errors exceptions and rendered by the handlers in
api/main.py as {"success": false, "message": ...}.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import credentials_limit, limiter
from api.models import CredentialsRequest, LoginResponse, MessageResponse
from auth.dependencies import get_auth_service, require_session


# Auth policy:
# - POST /api/auth/register: public -- rate limited
# - POST /api/auth/login:    public -- rate limited
# - POST /api/auth/logout:   requires auth (require_session)
# @router.post must stay above @limiter.limit: the router has to register the
# rate-limited wrapper, not the bare handler.
router = APIRouter()


@router.post("/auth/register", response_model=MessageResponse, status_code=201)
@limiter.limit(credentials_limit)
async def register(request: Request, body: CredentialsRequest) -> MessageResponse:
    """Create an account. 400 on invalid input, 409 if the username is taken."""
    user = await get_auth_service(request).register(body.username, body.password)
    return MessageResponse(success=True, message=f"User {user.username} registered successfully")


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(credentials_limit)
async def login(request: Request, body: CredentialsRequest) -> JSONResponse:
    """Authenticate with username and password; return a bearer token.

    Every successful call issues a new session. Tokens from earlier logins
    remain valid until they expire or are logged out.
    """
    session = await get_auth_service(request).login(body.username, body.password)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            token=session.token,
            username=session.username,
            expires_at=session.expires_at.isoformat(),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
async def logout(request: Request, username: str = Depends(require_session)) -> MessageResponse:
    """Revoke the session whose token authenticated this request."""
    await get_auth_service(request).logout(request.state.token)
    return MessageResponse(success=True, message="Logout successful")
