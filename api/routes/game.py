"""
api/routes/game.py -- Game endpoints that consume the authenticated identity.

Routes (all require auth via require_session):
  POST /api/submit     -- store the caller's bot code
  GET  /api/players    -- list players who have joined the world
  GET  /api/gamestate  -- current tick and players

The username always comes from the session, never from the request body.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import GameStateResponse, MessageResponse, PlayersResponse, SubmitCodeRequest
from auth.dependencies import require_session
from game.submissions import SubmissionStore
from game.world import World

router = APIRouter()


@router.post("/submit", response_model=MessageResponse)
async def submit_code(
    request: Request,
    body: SubmitCodeRequest,
    username: str = Depends(require_session),
) -> MessageResponse:
    submissions: SubmissionStore = request.app.state.submissions
    world: World = request.app.state.world
    submissions.submit(username, body.code)
    world.join(username)
    return MessageResponse(success=True, message="Code submitted successfully")


@router.get("/players", response_model=PlayersResponse)
async def list_players(request: Request, username: str = Depends(require_session)) -> PlayersResponse:
    world: World = request.app.state.world
    return PlayersResponse(players=world.players())


@router.get("/gamestate", response_model=GameStateResponse)
async def game_state(request: Request, username: str = Depends(require_session)) -> GameStateResponse:
    world: World = request.app.state.world
    return GameStateResponse(**world.snapshot())
