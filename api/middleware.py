"""
api/middleware.py -- ASGI middleware for the GeekCraft HTTP surface.

BodySizeLimitMiddleware bounds request bodies on every HTTP route before
routing, authentication or body parsing run. It is a raw ASGI middleware (not
BaseHTTPMiddleware) because it must see the body stream itself:

  1. If Content-Length is present and over the limit, answer 413 without
     reading a single body byte.
  2. Otherwise drain the body, counting bytes. At most limit + one chunk is
     ever held in memory; on overflow answer 413.
  3. Replay the buffered messages to the app so downstream parsing sees the
     body unchanged.

Because it runs ahead of the auth dependency, an oversized body is rejected
whether or not the request carries a valid token.

WebSocket and lifespan scopes pass straight through.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from starlette.responses import JSONResponse

from auth.errors import PayloadTooLarge

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger("geekcraft.api")


def _declared_length(scope: Scope) -> int | None:
    for name, value in scope.get("headers", []):
        if name == b"content-length":
            try:
                return int(value)
            except ValueError:
                return None
    return None


class BodySizeLimitMiddleware:
    def __init__(self, app: ASGIApp, max_body_bytes: int) -> None:
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        declared = _declared_length(scope)
        if declared is not None and declared > self.max_body_bytes:
            await self._reject(scope, receive, send, declared)
            return

        buffered: list[Message] = []
        total = 0
        while True:
            message = await receive()
            buffered.append(message)
            if message["type"] != "http.request":
                break
            total += len(message.get("body", b""))
            if total > self.max_body_bytes:
                await self._reject(scope, receive, send, total)
                return
            if not message.get("more_body", False):
                break

        async def replay() -> Message:
            if buffered:
                return buffered.pop(0)
            return await receive()

        await self.app(scope, replay, send)

    async def _reject(self, scope: Scope, receive: Receive, send: Send, size: int) -> None:
        logger.warning(
            "Rejected %s %s: body of %d bytes exceeds %d",
            scope.get("method", "?"),
            scope.get("path", "?"),
            size,
            self.max_body_bytes,
        )
        error = PayloadTooLarge()
        response = JSONResponse(error.to_dict(), status_code=int(error.status), headers={"connection": "close"})
        await response(scope, receive, send)
