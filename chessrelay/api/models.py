"""Requests and Response models"""

import re
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from chessrelay.core.exceptions import InvalidRequestError
from chessrelay.core.shared_types import Color, OutcomeReason, Status

GAME_ID_PATTERN = re.compile(r"^[A-Z0-9]{6}$")
TOKEN_PATTERN = re.compile(r"^[0-9a-f]{20,}$")
SQUARE_PATTERN = re.compile(r"^[a-h][1-8]$")
PLAYER_NAME_PATTERN = re.compile(r"^[A-Za-z0-9 _-]{1,30}$")
PROMOTION_PIECES = ("q", "r", "b", "n")

MIN_MINUTES, MAX_MINUTES = 1, 180
MIN_INCREMENT, MAX_INCREMENT = 0, 60


def validate_game_id(value: str) -> str:
    if not GAME_ID_PATTERN.fullmatch(value):
        raise InvalidRequestError(f"Invalid game ID: {value!r}")
    return value


class CamelModel(BaseModel):
    """JSON uses camelCase (gameId, playerName, ...); Python code uses snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- REQUEST MODELS ---
class CreateGameRequest(CamelModel):
    minutes: Optional[int] = None
    increment: Optional[int] = None

    @field_validator("minutes")
    @classmethod
    def validate_minutes(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and not MIN_MINUTES <= value <= MAX_MINUTES:
            raise InvalidRequestError(
                f"minutes must be between {MIN_MINUTES} and {MAX_MINUTES}, got {value}."
            )
        return value

    @field_validator("increment")
    @classmethod
    def validate_increment(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and not MIN_INCREMENT <= value <= MAX_INCREMENT:
            raise InvalidRequestError(
                f"increment must be between {MIN_INCREMENT} and {MAX_INCREMENT} seconds, got {value}."
            )
        return value


class JoinGameRequest(CamelModel):
    game_id: str
    player_name: str

    @field_validator("game_id")
    @classmethod
    def check_game_id(cls, value: str) -> str:
        return validate_game_id(value)

    @field_validator("player_name")
    @classmethod
    def validate_player_name(cls, value: str) -> str:
        if not PLAYER_NAME_PATTERN.fullmatch(value):
            raise InvalidRequestError(
                "Player name must be 1-30 letters, digits, spaces, underscores or hyphens."
            )
        return value


class SquareMoveRequest(CamelModel):
    game_id: str
    from_square: str = Field(alias="from")
    to_square: str = Field(alias="to")
    promotion: Optional[str] = None

    @field_validator("game_id")
    @classmethod
    def check_game_id(cls, value: str) -> str:
        return validate_game_id(value)

    @field_validator(*["from_square", "to_square"])
    @classmethod
    def validate_square(cls, value: str) -> str:
        if not SQUARE_PATTERN.fullmatch(value):
            raise InvalidRequestError(
                f"Cannot interpret {value!r} as a valid square name."
            )
        return value

    @field_validator("promotion")
    @classmethod
    def validate_promotion(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if value.lower() not in PROMOTION_PIECES:
            raise InvalidRequestError(
                f"Cannot promote to {value!r}. Pick one from {','.join(PROMOTION_PIECES)}"
            )
        return value.lower()


class MultiplayerMoveRequest(SquareMoveRequest):
    player_color: Color
    auth_token: str

    @field_validator("auth_token")
    @classmethod
    def validate_token(cls, value: str) -> str:
        if not TOKEN_PATTERN.fullmatch(value):
            raise InvalidRequestError("Malformed auth token.")
        return value


class SinglePlayerMoveRequest(SquareMoveRequest):
    pass


# --- RESPONSE MODELS ---
class TimeControlResponse(CamelModel):
    minutes: int
    increment: int


class ClockResponse(CamelModel):
    w_ms: int
    b_ms: int
    increment_ms: int
    running: bool


class OutcomeResponse(CamelModel):
    reason: OutcomeReason
    winner: Optional[Color]


class FairplayResponse(CamelModel):
    move_count: int
    fast_move_count: int
    suspicion_score: int


class PlayerResponse(CamelModel):
    name: str
    color: Color


class CreateGameResponse(CamelModel):
    game_id: str
    fen: str
    status: Status
    time_control: TimeControlResponse
    clock: ClockResponse


class JoinGameResponse(CamelModel):
    game_id: str
    color: Color
    token: str
    fen: str
    current_player: Color
    status: Status
    time_control: TimeControlResponse
    clock: ClockResponse
    players: list[PlayerResponse]


class GameStateResponse(CamelModel):
    game_id: str
    fen: str
    players: list[PlayerResponse]
    status: Status
    current_player: Color
    time_control: TimeControlResponse
    clock: ClockResponse
    is_game_over: bool
    result: Optional[OutcomeResponse]
    moves: list[str]


class MoveResponse(CamelModel):
    game_id: str
    fen: str
    from_square: Optional[str] = Field(alias="from")
    to_square: Optional[str] = Field(alias="to")
    san: Optional[str]
    move_applied: bool
    current_player: Color
    is_game_over: bool
    result: Optional[OutcomeResponse]
    clock: ClockResponse
    fairplay: dict[Color, FairplayResponse]


class NewSinglePlayerGameResponse(CamelModel):
    game_id: str
    fen: str


class SinglePlayerMoveResponse(CamelModel):
    game_id: str
    fen: str
    bot_move: Optional[str]
    is_game_over: bool
    result: Optional[OutcomeResponse]


class ServerStatusResponse(CamelModel):
    sessions: int
    connections: int
    single_player_games: int


class ErrorResponse(BaseModel):
    error: str


# --- REALTIME MESSAGES (server -> client) ---
class MoveBroadcast(MoveResponse):
    type: Literal["move"] = "move"


class StateBroadcast(GameStateResponse):
    type: Literal["state"] = "state"
