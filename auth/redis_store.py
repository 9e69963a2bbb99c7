"""
auth/redis_store.py -- Redis-backed credential store.

Key layout:
  users            HASH   username -> JSON user record
  session:<token>  STRING JSON session record, written with EX = 24h

Sessions rely on Redis' native key expiry: an expired session disappears
without any sweep, and every server process sharing the Redis instance sees
the same state, so this backend supports horizontal scaling. get_session still
compares expires_at with the store clock so a record observed in the last
instant before eviction is never treated as valid.

User creation uses HSETNX, which is atomic: two concurrent registrations of
the same name cannot both succeed.

Every call is bounded by the configured timeout; connection errors and
timeouts surface as StoreUnavailable, never as "not found".
"""

from __future__ import annotations

import json
import logging
from datetime import datetime

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from auth.errors import UsernameTaken
from auth.models import SESSION_LIFETIME, Session, User, as_utc
from auth.store import Clock, CredentialStore, bounded, new_session

logger = logging.getLogger("geekcraft.store.redis")

_USERS_KEY = "users"
_SESSION_PREFIX = "session:"
_CONNECTIVITY_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError)


def _session_key(token: str) -> str:
    return f"{_SESSION_PREFIX}{token}"


class RedisStore(CredentialStore):
    backend_name = "redis"

    def __init__(self, client: redis.Redis, clock: Clock | None = None, timeout: float = 5.0) -> None:
        super().__init__(clock)
        self._client = client
        self._timeout = timeout

    @classmethod
    def from_url(cls, url: str, clock: Clock | None = None, timeout: float = 5.0) -> RedisStore:
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
        )
        return cls(client, clock=clock, timeout=timeout)

    async def _call(self, awaitable):
        return await bounded(
            awaitable,
            backend=self.backend_name,
            timeout=self._timeout,
            connectivity_errors=_CONNECTIVITY_ERRORS,
        )

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(self, username: str, password_hash: str) -> User:
        user = User(username=username, password_hash=password_hash, created_at=self.now())
        payload = json.dumps(
            {
                "username": user.username,
                "password_hash": user.password_hash,
                "created_at": user.created_at.isoformat(),
            }
        )
        created = await self._call(self._client.hsetnx(_USERS_KEY, username, payload))
        if not created:
            raise UsernameTaken()
        return user

    async def get_user(self, username: str) -> User | None:
        raw = await self._call(self._client.hget(_USERS_KEY, username))
        if raw is None:
            return None
        data = json.loads(raw)
        return User(
            username=data["username"],
            password_hash=data["password_hash"],
            created_at=as_utc(datetime.fromisoformat(data["created_at"])),
        )

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def create_session(self, username: str) -> Session:
        session = new_session(username, self.now())
        payload = json.dumps(
            {
                "token": session.token,
                "username": session.username,
                "created_at": session.created_at.isoformat(),
                "expires_at": session.expires_at.isoformat(),
            }
        )
        ttl = int(SESSION_LIFETIME.total_seconds())
        await self._call(self._client.set(_session_key(session.token), payload, ex=ttl))
        return session

    async def get_session(self, token: str) -> Session | None:
        raw = await self._call(self._client.get(_session_key(token)))
        if raw is None:
            return None
        data = json.loads(raw)
        session = Session(
            token=data["token"],
            username=data["username"],
            created_at=as_utc(datetime.fromisoformat(data["created_at"])),
            expires_at=as_utc(datetime.fromisoformat(data["expires_at"])),
        )
        if not session.is_valid(self.now()):
            await self.delete_session(token)
            return None
        return session

    async def delete_session(self, token: str) -> None:
        await self._call(self._client.delete(_session_key(token)))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def ping(self) -> bool:
        return bool(await self._call(self._client.ping()))

    async def close(self) -> None:
        await self._client.aclose()
