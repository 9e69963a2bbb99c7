"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, almost no logic). Stores and the
service do the work; these classes only own the domain shape.

Layer rule: no imports from api/ or game/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

# Fixed lifetime of every session. Not configurable.
SESSION_LIFETIME = timedelta(hours=24)


def utcnow() -> datetime:
    """Default store clock. Always timezone-aware UTC."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return value as an aware UTC datetime.

    Some drivers (pymongo without tz_aware, SQLite) hand back naive datetimes
    that are implicitly UTC. Comparing those against an aware clock raises
    TypeError, so every read path normalizes through here.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class User:
    """A registered player account.

    username is the immutable identity key. password_hash is a bcrypt hash;
    the raw password never reaches a store.
    """

    username: str
    password_hash: str
    created_at: datetime

    def __repr__(self) -> str:
        # Keep the hash out of logs and tracebacks.
        return f"User(username={self.username!r}, created_at={self.created_at.isoformat()!r})"


@dataclass(frozen=True)
class Session:
    """Server-issued, time-bounded proof of a successful login."""

    token: str
    username: str
    created_at: datetime
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        """A session is valid iff now < expires_at."""
        return now < self.expires_at

    @property
    def token_prefix(self) -> str:
        return self.token[:8]

    def __repr__(self) -> str:
        return (
            f"Session(token={self.token_prefix!r}..., username={self.username!r}, "
            f"expires_at={self.expires_at.isoformat()!r})"
        )
