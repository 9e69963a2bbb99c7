"""
API request and response models for the GeekCraft REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Credential fields carry no length or charset constraints here: the auth
service owns those rules, so a bad username produces the service's
{"success": false, "message": ...} answer rather than a schema error.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CredentialsRequest(BaseModel):
    """Request body for POST /api/auth/register and POST /api/auth/login."""

    model_config = ConfigDict(extra="ignore")

    username: str
    password: str

    def __repr__(self) -> str:
        return f"CredentialsRequest(username={self.username!r})"


class SubmitCodeRequest(BaseModel):
    """Request body for POST /api/submit. Size is bounded by the body-limit middleware."""

    code: str


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    success: bool
    message: str


class LoginResponse(BaseModel):
    success: bool = True
    message: str = "Login successful"
    token: str
    username: str
    expires_at: Optional[str] = None


class PlayersResponse(BaseModel):
    players: list[str]


class GameStateResponse(BaseModel):
    tick: int
    players: list[str]


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str]
