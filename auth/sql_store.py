"""
auth/sql_store.py -- SQLAlchemy Core credential store (SQLite by default).

Pattern: Repository + Data Mapper. SqlStore is the repository; _row_to_user /
_row_to_session are the mappers. Nothing outside this module touches SQL.

Security:
  All queries use bound parameters. No f-strings in SQL.

Concurrency:
  SQLAlchemy's engine is blocking. Every statement runs on the thread pool via
  run_in_threadpool so a slow disk never stalls the event loop that services
  WebSocket traffic. The connection pool makes the store safe to share across
  those worker threads.

Expiry:
  SQLite has no native TTL. get_session compares expires_at with the store
  clock and deletes stale rows lazily; purge_expired() is the periodic sweep
  started by the API lifespan.

Timestamps are stored as ISO 8601 UTC strings with fixed microsecond
precision, so string comparison in SQL matches chronological order.

Layer rule: no imports from api/ or game/.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.concurrency import run_in_threadpool

from auth.errors import StoreUnavailable, UsernameTaken
from auth.models import Session, User, as_utc
from auth.store import Clock, CredentialStore, new_session

logger = logging.getLogger("geekcraft.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("username", String(32), primary_key=True),
    Column("password_hash", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

_sessions = Table(
    "sessions",
    _metadata,
    Column("token", String(36), primary_key=True),
    # Soft reference to users.username; no FK constraint.
    Column("username", String(32), nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False, index=True),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers proceed while a write is in flight.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _iso(value: datetime) -> str:
    return as_utc(value).isoformat(timespec="microseconds")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class SqlStore(CredentialStore):
    """Credential store on any SQLAlchemy URL.

    Usage:
        store = SqlStore("sqlite:///geekcraft_auth.db")
        await store.create_user("alice", hash_password("secret1"))
        await store.close()
    """

    backend_name = "sqlite"

    def __init__(self, db_url: str, clock: Clock | None = None) -> None:
        super().__init__(clock)
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    async def _run(self, fn, *args):
        """Run a blocking statement on the thread pool; a dead database becomes StoreUnavailable."""
        try:
            return await run_in_threadpool(fn, *args)
        except OperationalError as exc:
            logger.error("sqlite unavailable: %s", exc.orig)
            raise StoreUnavailable(f"sqlite unavailable: {exc.orig}") from exc

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(self, username: str, password_hash: str) -> User:
        user = User(username=username, password_hash=password_hash, created_at=self.now())
        try:
            await self._run(self._insert_user, user)
        except IntegrityError as exc:
            # PRIMARY KEY on username makes the uniqueness check atomic.
            raise UsernameTaken() from exc
        return user

    def _insert_user(self, user: User) -> None:
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    username=user.username,
                    password_hash=user.password_hash,
                    created_at=_iso(user.created_at),
                )
            )
            conn.commit()

    async def get_user(self, username: str) -> User | None:
        return await self._run(self._select_user, username)

    def _select_user(self, username: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(_users).where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def create_session(self, username: str) -> Session:
        session = new_session(username, self.now())
        await self._run(self._insert_session, session)
        return session

    def _insert_session(self, session: Session) -> None:
        with self.engine.connect() as conn:
            conn.execute(
                _sessions.insert().values(
                    token=session.token,
                    username=session.username,
                    created_at=_iso(session.created_at),
                    expires_at=_iso(session.expires_at),
                )
            )
            conn.commit()

    async def get_session(self, token: str) -> Session | None:
        session = await self._run(self._select_session, token)
        if session is None:
            return None
        if not session.is_valid(self.now()):
            await self.delete_session(token)
            return None
        return session

    def _select_session(self, token: str) -> Session | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(_sessions).where(_sessions.c.token == token)).fetchone()
        return _row_to_session(row) if row is not None else None

    async def delete_session(self, token: str) -> None:
        await self._run(self._delete_session, token)

    def _delete_session(self, token: str) -> None:
        with self.engine.connect() as conn:
            conn.execute(_sessions.delete().where(_sessions.c.token == token))
            conn.commit()

    async def purge_expired(self) -> int:
        return await self._run(self._delete_expired, _iso(self.now()))

    def _delete_expired(self, now_iso: str) -> int:
        # expires_at <= now: a session is valid only while now < expires_at.
        with self.engine.connect() as conn:
            result = conn.execute(_sessions.delete().where(_sessions.c.expires_at <= now_iso))
            conn.commit()
        return result.rowcount

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def ping(self) -> bool:
        return await self._run(self._ping)

    def _ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    async def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        username=row.username,
        password_hash=row.password_hash,
        created_at=as_utc(datetime.fromisoformat(row.created_at)),
    )


def _row_to_session(row) -> Session:
    return Session(
        token=row.token,
        username=row.username,
        created_at=as_utc(datetime.fromisoformat(row.created_at)),
        expires_at=as_utc(datetime.fromisoformat(row.expires_at)),
    )
