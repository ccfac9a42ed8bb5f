"""
Boundary layer data model(s).

These objects can be used to communicate with the Service.
The storage layer only ever sees these plain dataclasses; the domain layer converts them into a live Session and back.
(Decouples the data model specific to the DB layer, API layer, or domain layer from the information needed to send across boundaries)
"""

from dataclasses import dataclass, field
from typing import Optional

# Type aliases to make SessionModel easier to read
ColorName = str
Milliseconds = float


@dataclass
class FairplayModel:
    move_count: int = 0
    fast_move_count: int = 0
    suspicion_score: int = 0


@dataclass
class PlayerModel:
    name: str
    color: ColorName
    token: str
    fairplay: FairplayModel = field(default_factory=FairplayModel)


@dataclass
class ClockModel:
    remaining_ms: dict[ColorName, Milliseconds]
    increment_ms: Milliseconds
    initial_ms: Milliseconds
    last_decision_at: Optional[Milliseconds] = None


@dataclass
class OutcomeModel:
    reason: str
    winner: Optional[ColorName] = None


@dataclass
class SessionModel:
    """Transport-safe representation of a multiplayer session used between Service, DB, and domain layers."""

    fen: str
    moves: list[str]
    players: list[PlayerModel]
    turn: ColorName
    status: str
    clock: ClockModel
    outcome: Optional[OutcomeModel]
    created_at: Milliseconds
    last_activity_at: Milliseconds
