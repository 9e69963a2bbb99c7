"""
auth/mongo_store.py -- MongoDB-backed credential store (motor async driver).

Collections:
  users     {_id: username, password_hash, created_at}
  sessions  {_id: token, username, created_at, expires_at}
            TTL index on expires_at with expireAfterSeconds=0

Chosen when accounts and sessions must survive a restart AND be shared by
several server processes. The TTL index plays the role Redis' key expiry plays
in auth/redis_store.py: MongoDB's TTL monitor deletes expired sessions in the
background (roughly once a minute), so get_session also checks expires_at
against the store clock to close that window.

Using the username / token as _id makes uniqueness a property of the primary
index. User creation is an upsert with $setOnInsert, so a concurrent duplicate
registration is detected from the write result instead of a prior read.
"""

from __future__ import annotations

import logging

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING
from pymongo.errors import ConnectionFailure

from auth.errors import UsernameTaken
from auth.models import Session, User, as_utc
from auth.store import Clock, CredentialStore, bounded, new_session

logger = logging.getLogger("geekcraft.store.mongodb")

_DEFAULT_DB = "geekcraft"
_CONNECTIVITY_ERRORS = (ConnectionFailure, OSError)


class MongoStore(CredentialStore):
    backend_name = "mongodb"

    def __init__(self, client, clock: Clock | None = None, timeout: float = 5.0, db_name: str | None = None) -> None:
        super().__init__(clock)
        self._client = client
        self._timeout = timeout
        if db_name is None:
            db = client.get_default_database(default=_DEFAULT_DB)
        else:
            db = client[db_name]
        self._users = db["users"]
        self._sessions = db["sessions"]

    @classmethod
    def from_url(cls, url: str, clock: Clock | None = None, timeout: float = 5.0) -> MongoStore:
        timeout_ms = int(timeout * 1000)
        client = AsyncIOMotorClient(
            url,
            tz_aware=True,
            serverSelectionTimeoutMS=timeout_ms,
            connectTimeoutMS=timeout_ms,
            socketTimeoutMS=timeout_ms,
        )
        return cls(client, clock=clock, timeout=timeout)

    async def _call(self, awaitable):
        return await bounded(
            awaitable,
            backend=self.backend_name,
            timeout=self._timeout,
            connectivity_errors=_CONNECTIVITY_ERRORS,
        )

    async def open(self) -> None:
        await self._call(self._sessions.create_index([("expires_at", ASCENDING)], expireAfterSeconds=0))
        await self._call(self._sessions.create_index([("username", ASCENDING)]))
        logger.info("MongoDB session indexes ensured")

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(self, username: str, password_hash: str) -> User:
        user = User(username=username, password_hash=password_hash, created_at=self.now())
        result = await self._call(
            self._users.update_one(
                {"_id": username},
                {"$setOnInsert": {"password_hash": password_hash, "created_at": user.created_at}},
                upsert=True,
            )
        )
        if result.upserted_id is None:
            raise UsernameTaken()
        return user

    async def get_user(self, username: str) -> User | None:
        doc = await self._call(self._users.find_one({"_id": username}))
        if doc is None:
            return None
        return User(
            username=doc["_id"],
            password_hash=doc["password_hash"],
            created_at=as_utc(doc["created_at"]),
        )

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def create_session(self, username: str) -> Session:
        session = new_session(username, self.now())
        await self._call(
            self._sessions.insert_one(
                {
                    "_id": session.token,
                    "username": session.username,
                    "created_at": session.created_at,
                    "expires_at": session.expires_at,
                }
            )
        )
        return session

    async def get_session(self, token: str) -> Session | None:
        doc = await self._call(self._sessions.find_one({"_id": token}))
        if doc is None:
            return None
        session = Session(
            token=doc["_id"],
            username=doc["username"],
            created_at=as_utc(doc["created_at"]),
            expires_at=as_utc(doc["expires_at"]),
        )
        if not session.is_valid(self.now()):
            await self.delete_session(token)
            return None
        return session

    async def delete_session(self, token: str) -> None:
        await self._call(self._sessions.delete_one({"_id": token}))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def ping(self) -> bool:
        await self._call(self._client.admin.command("ping"))
        return True

    async def close(self) -> None:
        self._client.close()
