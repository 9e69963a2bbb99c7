"""
auth/store.py -- Credential store interface and the in-memory adapter.

Pattern: Repository. CredentialStore is the port; InMemoryStore, SqlStore
(auth/sql_store.py), RedisStore (auth/redis_store.py) and MongoStore
(auth/mongo_store.py) are the adapters. auth/factory.py picks exactly one at
startup. The service and the HTTP/WebSocket boundary only ever see the
interface.

Contract shared by every adapter (enforced by tests/test_store_contract.py):
  - create_user raises UsernameTaken if the username already exists, and the
    check is atomic (no read-then-write race).
  - create_session issues a fresh UUIDv4 token that expires SESSION_LIFETIME
    after the store clock's "now".
  - get_session returns None for an expired session even if the record still
    physically exists. Backends differ in HOW expired records disappear (lazy
    delete vs. native TTL); they never differ in what a read returns.
  - delete_session is idempotent.

Clock injection:
  Every adapter takes a clock callable (default: auth.models.utcnow). Tests
  pass a controllable clock so 24h expiry can be asserted without sleeping.

Layer rule: no imports from api/ or game/.
"""

from __future__ import annotations

import abc
import asyncio
import logging
import threading
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TypeVar

from auth.errors import StoreUnavailable, UsernameTaken
from auth.models import SESSION_LIFETIME, Session, User, utcnow

logger = logging.getLogger("geekcraft.store")

Clock = Callable[[], datetime]
T = TypeVar("T")


# ---------------------------------------------------------------------------
# Helpers shared by the adapters
# ---------------------------------------------------------------------------


def new_session(username: str, now: datetime) -> Session:
    """Build a fresh session for username starting at now.

    uuid4 draws from os.urandom, giving 122 random bits -- tokens cannot be
    guessed or enumerated.

    Timestamps are cut to whole milliseconds, the finest precision BSON
    keeps, so every backend reads back exactly the expires_at it issued.
    """
    now = now.replace(microsecond=now.microsecond // 1000 * 1000)
    return Session(
        token=str(uuid.uuid4()),
        username=username,
        created_at=now,
        expires_at=now + SESSION_LIFETIME,
    )


async def bounded(
    awaitable: Awaitable[T],
    *,
    backend: str,
    timeout: float,
    connectivity_errors: tuple[type[BaseException], ...],
) -> T:
    """Await a remote store call with a hard timeout.

    Timeouts and the driver's connectivity exceptions are both converted to
    StoreUnavailable so the service layer never confuses "backend down" with
    "user not found". Any other exception propagates unchanged.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.error("%s call timed out after %.1fs", backend, timeout)
        raise StoreUnavailable(f"{backend} timed out after {timeout}s") from exc
    except connectivity_errors as exc:
        logger.error("%s unavailable: %s", backend, exc)
        raise StoreUnavailable(f"{backend} unavailable: {exc}") from exc


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


class CredentialStore(abc.ABC):
    """Persistence port for users and sessions. All methods are coroutines."""

    backend_name: str = "abstract"

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock: Clock = clock or utcnow

    def now(self) -> datetime:
        return self._clock()

    @abc.abstractmethod
    async def create_user(self, username: str, password_hash: str) -> User:
        """Insert a new user. Raises UsernameTaken if the username exists."""

    @abc.abstractmethod
    async def get_user(self, username: str) -> User | None:
        """Look up a user by exact (case-sensitive) username."""

    @abc.abstractmethod
    async def create_session(self, username: str) -> Session:
        """Issue and persist a new session for username."""

    @abc.abstractmethod
    async def get_session(self, token: str) -> Session | None:
        """Return the live session for token, or None if unknown or expired."""

    @abc.abstractmethod
    async def delete_session(self, token: str) -> None:
        """Remove a session. Deleting an unknown token is not an error."""

    async def purge_expired(self) -> int:
        """Sweep expired sessions and return how many were removed.

        Backends with native expiry (Redis TTL, MongoDB TTL index) keep this
        default: the database already evicts for us.
        """
        return 0

    async def open(self) -> None:
        """Prepare the backend (indexes, schema). Called once from the lifespan startup."""

    async def ping(self) -> bool:
        """Return True if the backend is reachable. Used by /api/health."""
        return True

    async def close(self) -> None:
        """Release connections. Called once from the lifespan shutdown."""


# ---------------------------------------------------------------------------
# In-memory adapter
# ---------------------------------------------------------------------------


class InMemoryStore(CredentialStore):
    """Process-local store backed by two dicts.

    Writes (create_user, create_session, delete_session, lazy eviction) are
    serialized by a lock. Reads take no lock: a single dict lookup is atomic,
    so session validation -- the hot path -- never queues behind a login.

    State is lost on restart and cannot be shared between server processes.
    Use the redis or mongodb backend to scale out.
    """

    backend_name = "memory"

    def __init__(self, clock: Clock | None = None) -> None:
        super().__init__(clock)
        self._users: dict[str, User] = {}
        self._sessions: dict[str, Session] = {}
        self._write_lock = threading.Lock()

    async def create_user(self, username: str, password_hash: str) -> User:
        with self._write_lock:
            if username in self._users:
                raise UsernameTaken()
            user = User(username=username, password_hash=password_hash, created_at=self.now())
            self._users[username] = user
        return user

    async def get_user(self, username: str) -> User | None:
        return self._users.get(username)

    async def create_session(self, username: str) -> Session:
        session = new_session(username, self.now())
        with self._write_lock:
            self._sessions[session.token] = session
        return session

    async def get_session(self, token: str) -> Session | None:
        session = self._sessions.get(token)
        if session is None:
            return None
        if not session.is_valid(self.now()):
            # No background sweep is guaranteed to have run; evict on read.
            with self._write_lock:
                self._sessions.pop(token, None)
            return None
        return session

    async def delete_session(self, token: str) -> None:
        with self._write_lock:
            self._sessions.pop(token, None)

    async def purge_expired(self) -> int:
        now = self.now()
        with self._write_lock:
            expired = [token for token, s in self._sessions.items() if not s.is_valid(now)]
            for token in expired:
                del self._sessions[token]
        return len(expired)
