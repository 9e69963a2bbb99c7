"""
api/websocket.py -- WebSocket endpoint and per-connection auth gate.

Protocol (JSON text frames, one object per frame, discriminated by "type"):

  server -> client on connect:
    {"type": "welcome", "message": ..., "version": ...}

  unauthenticated:
    {"type": "auth", "token": T}   -> {"type": "authResponse", "success": true, "username": U}
                                      {"type": "authResponse", "success": false, "message": ...}
    anything else                  -> {"type": "error", "message": "Authentication required"}

  authenticated:
    {"type": "getPlayers"}         -> {"type": "playersResponse", "players": [...]}
    {"type": "getGameState"}       -> {"type": "gameStateResponse", "tick": N, "players": [...]}
    {"type": "auth", ...}          -> {"type": "error", "message": "Already authenticated"}
    unknown types are logged and ignored.

A connection that fails auth max_auth_failures times in a row is closed with
1008 (policy violation). The token is checked once; the socket keeps that
identity until it closes.

AuthGate holds no socket. It maps one decoded message to one optional reply,
which keeps the state machine testable without a transport.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Optional

from starlette.websockets import WebSocket, WebSocketDisconnect

from auth.errors import StoreUnavailable
from auth.service import AuthService
from core.config import VERSION
from game.world import World

logger = logging.getLogger("geekcraft.ws")

POLICY_VIOLATION = 1008


class GateState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


def _error(message: str) -> dict[str, Any]:
    return {"type": "error", "message": message}


def _decode(text: Optional[str]) -> Any:
    """Parse a text frame. Binary frames and invalid JSON decode to None."""
    if text is None:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


class AuthGate:
    """Per-connection state machine in front of every gameplay command."""

    def __init__(self, auth_service: AuthService, world: World, max_auth_failures: int = 5) -> None:
        self.auth_service = auth_service
        self.world = world
        self.max_auth_failures = max_auth_failures
        self.state = GateState.UNAUTHENTICATED
        self.username: Optional[str] = None
        self.failures = 0

    @property
    def authenticated(self) -> bool:
        return self.state is GateState.AUTHENTICATED

    @property
    def exhausted(self) -> bool:
        """True once consecutive auth failures reach the limit (0 disables)."""
        return self.max_auth_failures > 0 and self.failures >= self.max_auth_failures

    async def handle(self, message: Any) -> Optional[dict[str, Any]]:
        """Return the reply for one decoded client message, or None for no reply."""
        if not isinstance(message, dict) or not isinstance(message.get("type"), str):
            return _error("Invalid message format")
        kind = message["type"]

        if not self.authenticated:
            if kind != "auth":
                return _error("Authentication required")
            return await self._authenticate(message.get("token"))

        if kind == "auth":
            return _error("Already authenticated")
        if kind == "getPlayers":
            return {"type": "playersResponse", "players": self.world.players()}
        if kind == "getGameState":
            return {"type": "gameStateResponse", **self.world.snapshot()}

        logger.info("Ignoring unknown message type %r from %s", kind, self.username)
        return None

    async def _authenticate(self, token: Any) -> dict[str, Any]:
        if not isinstance(token, str):
            token = None
        try:
            username = await self.auth_service.validate(token)
        except StoreUnavailable as exc:
            logger.error("WebSocket auth aborted: %s", exc)
            return _error("Internal server error")

        if username is None:
            self.failures += 1
            logger.info("WebSocket auth failed (%d consecutive)", self.failures)
            return {"type": "authResponse", "success": False, "message": "Invalid or expired token"}

        self.state = GateState.AUTHENTICATED
        self.username = username
        self.failures = 0
        if self.world.join(username):
            logger.info("Player %s joined the world", username)
        logger.info("WebSocket authenticated as %s", username)
        return {"type": "authResponse", "success": True, "username": username}


async def websocket_endpoint(websocket: WebSocket) -> None:
    app = websocket.app
    gate = AuthGate(
        app.state.auth_service,
        app.state.world,
        max_auth_failures=app.state.settings.ws_max_auth_failures,
    )

    await websocket.accept()
    client = websocket.client.host if websocket.client else "unknown"
    logger.info("WebSocket connected from %s", client)
    await websocket.send_json(
        {"type": "welcome", "message": "Welcome to GeekCraft! Please authenticate.", "version": VERSION}
    )

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break
            try:
                reply = await gate.handle(_decode(frame.get("text")))
            except Exception:
                # Same contract as the HTTP catch-all: log it, answer generically.
                logger.exception("Unhandled error in WebSocket message from %s", gate.username or client)
                reply = _error("Internal server error")
            if reply is not None:
                await websocket.send_json(reply)
            if gate.exhausted:
                logger.warning("Closing WebSocket from %s after %d failed auth attempts", client, gate.failures)
                await websocket.close(code=POLICY_VIOLATION)
                return
    except WebSocketDisconnect:
        pass
    finally:
        logger.info("WebSocket disconnected (%s)", gate.username or client)
