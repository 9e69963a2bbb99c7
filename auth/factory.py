"""
auth/factory.py -- Build the one credential store selected by configuration.

Called once from the API lifespan. The returned instance lives on app.state
for the whole process and is closed on shutdown; backends are never swapped
at runtime.

Driver imports are deferred to the branch that needs them so a deployment on
the in-memory backend does not pay for (or require) the remote drivers.
"""

from __future__ import annotations

import logging

from auth.store import Clock, CredentialStore, InMemoryStore
from core.config import Settings

logger = logging.getLogger("geekcraft.store")


def build_store(settings: Settings, clock: Clock | None = None) -> CredentialStore:
    backend = settings.db_backend
    timeout = settings.store_timeout_seconds

    if backend == "redis":
        from auth.redis_store import RedisStore

        logger.info("Using Redis credential store")
        return RedisStore.from_url(settings.redis_url, clock=clock, timeout=timeout)

    if backend == "mongodb":
        from auth.mongo_store import MongoStore

        logger.info("Using MongoDB credential store")
        return MongoStore.from_url(settings.mongodb_url, clock=clock, timeout=timeout)

    if backend == "sqlite":
        from auth.sql_store import SqlStore

        logger.info("Using SQL credential store")
        return SqlStore(settings.sql_url, clock=clock)

    logger.info("Using in-memory credential store (data will be lost on restart)")
    return InMemoryStore(clock=clock)
