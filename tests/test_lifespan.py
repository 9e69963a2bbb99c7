"""
tests/test_lifespan.py -- Startup and shutdown of the real application lifespan.

Runs api.main.lifespan against a bare FastAPI instance (the shared app's
lifespan is patched by conftest) with the default in-memory backend.
"""

from __future__ import annotations

import asyncio

import pytest
from fastapi import FastAPI

from api.main import _sweep_loop, lifespan
from auth.service import AuthService
from auth.store import InMemoryStore
from core.config import get_settings
from game.world import World


@pytest.mark.asyncio
async def test_lifespan_builds_state_and_ticks():
    app = FastAPI()
    async with lifespan(app):
        assert isinstance(app.state.store, InMemoryStore)
        assert app.state.auth_service.store is app.state.store
        await asyncio.sleep(0.2)
        assert app.state.world.tick > 0
        tick_task = app.state.tick_task
        sweep_task = app.state.sweep_task
    await asyncio.sleep(0)
    assert tick_task.cancelled() or tick_task.done()
    assert sweep_task.cancelled() or sweep_task.done()


@pytest.mark.asyncio
async def test_sweep_loop_purges_expired_sessions(clock):
    service = AuthService(InMemoryStore(clock=clock))
    await service.register("alice", "secret1")
    session = await service.login("alice", "secret1")
    clock.advance(hours=25)

    app = FastAPI()
    app.state.settings = get_settings().model_copy(update={"session_sweep_seconds": 0})
    app.state.auth_service = service
    app.state.world = World()

    task = asyncio.create_task(_sweep_loop(app))
    await asyncio.sleep(0.05)
    task.cancel()

    assert session.token not in service.store._sessions
