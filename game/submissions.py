"""
game/submissions.py -- Latest bot code submitted by each player.

Storage only: nothing here executes code. The owning username always comes
from the authenticated session, never from the request body, so one player
cannot overwrite another's bot.

The body-size ceiling is enforced earlier by api/middleware.py; by the time a
submission reaches this store it is already known to be within bounds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

logger = logging.getLogger("geekcraft.game")


@dataclass(frozen=True)
class Submission:
    username: str
    code: str
    submitted_at: datetime


class SubmissionStore:
    def __init__(self) -> None:
        self._latest: dict[str, Submission] = {}

    def submit(self, username: str, code: str) -> Submission:
        submission = Submission(username=username, code=code, submitted_at=datetime.now(timezone.utc))
        self._latest[username] = submission
        logger.info("Stored %d bytes of code for %s", len(code.encode("utf-8")), username)
        return submission

    def get(self, username: str) -> Submission | None:
        return self._latest.get(username)
