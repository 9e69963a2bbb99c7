"""
auth/service.py -- Registration, login, logout and token validation.

AuthService is the single choke point between the network boundary and the
credential store. The HTTP dependency (auth/dependencies.py) and the WebSocket
gate (api/websocket.py) both call validate(); nothing else reads sessions.

Rules enforced here rather than in the store:
  - Username: 3-32 chars from [A-Za-z0-9_-]. Password: at least 6 chars and
    at most 72 UTF-8 bytes (bcrypt's input ceiling). Bad input is rejected
    before the store is touched.
  - Login never reveals which factor was wrong. An unknown username and a
    wrong password both raise InvalidCredentials, and an unknown username
    still pays for one bcrypt verification against a dummy hash.
  - No caching. validate() re-reads the store every time so a logout or an
    expiry is honoured on the very next request.

bcrypt runs on the thread pool (run_in_threadpool) so one slow hash never
stalls the event loop serving every other connection.

Store failures (StoreUnavailable) are not caught here; the boundary turns them
into a generic server error.
"""

from __future__ import annotations

import logging
import re

from starlette.concurrency import run_in_threadpool

from auth.errors import InvalidCredentials, InvalidInput
from auth.models import Session, User
from auth.store import CredentialStore
from auth.tokens import BCRYPT_MAX_BYTES, dummy_verify, hash_password, verify_password

logger = logging.getLogger("geekcraft.auth")

USERNAME_PATTERN = re.compile(r"[A-Za-z0-9_-]{3,32}")
MIN_PASSWORD_LENGTH = 6


def validate_username(username: str) -> None:
    if not 3 <= len(username) <= 32:
        raise InvalidInput("Username must be between 3 and 32 characters")
    if USERNAME_PATTERN.fullmatch(username) is None:
        raise InvalidInput("Username can only contain letters, numbers, underscore, and hyphen")


def validate_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInput(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise InvalidInput(f"Password must be at most {BCRYPT_MAX_BYTES} bytes")


class AuthService:
    """Business logic for accounts and sessions on top of a CredentialStore.

    Usage:
        service = AuthService(InMemoryStore())
        await service.register("alice", "secret1")
        session = await service.login("alice", "secret1")
        assert await service.validate(session.token) == "alice"
    """

    def __init__(self, store: CredentialStore) -> None:
        self.store = store

    async def register(self, username: str, password: str) -> User:
        """Create an account. Raises InvalidInput or UsernameTaken."""
        validate_username(username)
        validate_password(password)
        password_hash = await run_in_threadpool(hash_password, password)
        user = await self.store.create_user(username, password_hash)
        logger.info("Registered user %s", username)
        return user

    async def login(self, username: str, password: str) -> Session:
        """Verify credentials and issue a new session. Raises InvalidCredentials.

        Each successful login issues an additional session; earlier tokens for
        the same user stay valid until they expire or are logged out.
        """
        user = await self.store.get_user(username)
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt.
            await run_in_threadpool(dummy_verify, password)
            logger.info("Login failed for %s", username)
            raise InvalidCredentials()
        if not await run_in_threadpool(verify_password, password, user.password_hash):
            logger.info("Login failed for %s", username)
            raise InvalidCredentials()
        session = await self.store.create_session(user.username)
        logger.info("User %s logged in (session %s...)", user.username, session.token_prefix)
        return session

    async def logout(self, token: str) -> None:
        """Delete the session. Unknown or expired tokens are already logged out."""
        if token:
            await self.store.delete_session(token)

    async def validate(self, token: str | None) -> str | None:
        """Return the username owning a live session, or None."""
        if not token:
            return None
        session = await self.store.get_session(token)
        if session is None:
            return None
        return session.username

    async def purge_expired(self) -> int:
        removed = await self.store.purge_expired()
        if removed:
            logger.info("Purged %d expired sessions", removed)
        return removed
