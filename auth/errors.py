"""
auth/errors.py -- Error taxonomy for the authentication layer.

Every error carries the HTTP status and the public message the boundary
should return. The boundary (api/main.py exception handlers and the WebSocket
gate) converts them into {"success": false, "message": ...} payloads; nothing
in auth/ knows about responses.

StoreUnavailable keeps its internal detail on the exception (for server-side
logging) and exposes only a generic public message.
"""

from __future__ import annotations

from http import HTTPStatus


class AuthError(Exception):
    """Base class for expected, client-facing authentication failures."""

    status: HTTPStatus = HTTPStatus.BAD_REQUEST
    message: str = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "message": self.message}


class InvalidInput(AuthError):
    status = HTTPStatus.BAD_REQUEST
    message = "Invalid input"


class UsernameTaken(AuthError):
    status = HTTPStatus.CONFLICT
    message = "Username already exists"


class InvalidCredentials(AuthError):
    # Same outcome for unknown user and wrong password.
    status = HTTPStatus.UNAUTHORIZED
    message = "Invalid username or password"


class Unauthorized(AuthError):
    status = HTTPStatus.UNAUTHORIZED
    message = "Authentication required"


class PayloadTooLarge(AuthError):
    status = HTTPStatus.REQUEST_ENTITY_TOO_LARGE
    message = "Payload too large"


class StoreUnavailable(AuthError):
    """The configured credential backend could not be reached in time.

    Distinct from "not found": callers must never treat it as a missing user
    or session.
    """

    status = HTTPStatus.SERVICE_UNAVAILABLE
    message = "Service temporarily unavailable"

    def __init__(self, detail: str = "") -> None:
        super().__init__()
        self.detail = detail

    def __str__(self) -> str:
        return self.detail or self.message
