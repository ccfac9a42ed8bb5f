"""HTTP and websocket routes. Handlers only validate, rate-limit and delegate to the services."""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter, Query, Request, WebSocket, WebSocketDisconnect
from starlette.requests import HTTPConnection

from chessrelay.api.models import (
    CreateGameRequest,
    CreateGameResponse,
    GameStateResponse,
    JoinGameRequest,
    JoinGameResponse,
    MoveResponse,
    MultiplayerMoveRequest,
    NewSinglePlayerGameResponse,
    ServerStatusResponse,
    SinglePlayerMoveRequest,
    SinglePlayerMoveResponse,
    validate_game_id,
)
from chessrelay.core.config import Settings
from chessrelay.core.exceptions import GameError
from chessrelay.services.channels import POLICY_VIOLATION, ChannelManager
from chessrelay.services.multiplayer_service import MultiplayerService
from chessrelay.services.rate_limit import RateLimiter
from chessrelay.services.registry import SessionRegistry
from chessrelay.services.single_player_service import SinglePlayerService

logger = logging.getLogger(__name__)

SESSION_BUCKET = "session"
MOVE_BUCKET = "move"

router = APIRouter()


@dataclass
class AppServices:
    """Everything the routes need, built once per application by create_app()."""

    settings: Settings
    registry: SessionRegistry
    multiplayer: MultiplayerService
    channels: ChannelManager
    single_player: SinglePlayerService
    limiter: RateLimiter


def services_of(connection: HTTPConnection) -> AppServices:
    return connection.app.state.services


def caller_of(connection: HTTPConnection) -> str:
    return connection.client.host if connection.client else "unknown"


# --- MULTIPLAYER ---
@router.post("/create-multiplayer-game", response_model=CreateGameResponse)
async def create_multiplayer_game(
    request: Request, payload: Optional[CreateGameRequest] = None
) -> CreateGameResponse:
    services = services_of(request)
    services.limiter.check(SESSION_BUCKET, caller_of(request))
    return services.multiplayer.create_game(payload)


@router.post("/join-game", response_model=JoinGameResponse)
async def join_game(request: Request, payload: JoinGameRequest) -> JoinGameResponse:
    services = services_of(request)
    services.limiter.check(SESSION_BUCKET, caller_of(request))
    return services.multiplayer.join_game(payload)


@router.get("/game/{game_id}", response_model=GameStateResponse)
async def get_game(request: Request, game_id: str) -> GameStateResponse:
    validate_game_id(game_id)
    return services_of(request).multiplayer.get_game_state(game_id)


@router.post("/multiplayer-move", response_model=MoveResponse)
async def multiplayer_move(
    request: Request, payload: MultiplayerMoveRequest
) -> MoveResponse:
    services = services_of(request)
    services.limiter.check(MOVE_BUCKET, caller_of(request))

    # Only queues the update, subscribers are written to by their own tasks.
    response = services.multiplayer.make_move(payload)
    services.channels.broadcast(
        payload.game_id, services.multiplayer.move_message(response)
    )
    return response


# --- SINGLE PLAYER ---
@router.post("/new-game", response_model=NewSinglePlayerGameResponse)
async def new_single_player_game(request: Request) -> NewSinglePlayerGameResponse:
    services = services_of(request)
    services.limiter.check(SESSION_BUCKET, caller_of(request))
    return services.single_player.new_game()


@router.post("/move", response_model=SinglePlayerMoveResponse)
async def single_player_move(
    request: Request, payload: SinglePlayerMoveRequest
) -> SinglePlayerMoveResponse:
    services = services_of(request)
    services.limiter.check(MOVE_BUCKET, caller_of(request))
    return services.single_player.make_move(payload)


@router.get("/status", response_model=ServerStatusResponse)
async def server_status(request: Request) -> ServerStatusResponse:
    services = services_of(request)
    return ServerStatusResponse(
        sessions=len(services.registry.session_ids()),
        connections=services.channels.connection_count(),
        single_player_games=services.single_player.game_count(),
    )


# --- REALTIME ---
@router.websocket("/")
async def game_channel(
    websocket: WebSocket, game_id: Optional[str] = Query(default=None, alias="gameId")
) -> None:
    """
    Push-only channel for one game.
    ----
    The client connects with ?gameId=<id> and receives the current state, then one message per accepted move.
    Anything the client sends is ignored; moves travel over HTTP.
    """
    services = services_of(websocket)
    try:
        game_id = validate_game_id(game_id or "")
        initial_state = services.multiplayer.state_message(game_id)
    except GameError as exc:
        logger.warning("Rejected websocket for game %r: %s", game_id, exc)
        await websocket.close(code=POLICY_VIOLATION)
        return

    if not await services.channels.subscribe(game_id, websocket, initial_state):
        return

    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect as exc:
        logger.debug("Websocket for game %s closed (code %s)", game_id, exc.code)
    finally:
        services.channels.unsubscribe(game_id, websocket)
