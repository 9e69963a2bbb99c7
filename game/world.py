"""
game/world.py -- Minimal shared game state exposed to authenticated clients.

The simulation itself (zones, units, bot execution) lives outside this
service. What the auth edge needs is the tick counter and the set of players
who have joined, so that /api/players, /api/gamestate and the WebSocket
getPlayers / getGameState commands have something real to return.

A player joins the world the first time an authenticated identity uses it
(WebSocket auth or a code submission). Players are never removed; the world
has no notion of disconnection.

Only touched from the event loop, so no locking.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class World:
    tick: int = 0
    _players: dict[str, datetime] = field(default_factory=dict)

    def advance(self, ticks: int = 1) -> int:
        self.tick += ticks
        return self.tick

    def join(self, username: str) -> bool:
        """Add username to the world. Returns False if already present."""
        if username in self._players:
            return False
        self._players[username] = datetime.now(timezone.utc)
        return True

    def players(self) -> list[str]:
        return sorted(self._players)

    def snapshot(self) -> dict:
        return {"tick": self.tick, "players": self.players()}
