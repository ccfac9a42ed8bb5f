"""
The Session class is the entrypoint into the domain layer for the service layer.
It is responsible for orchestrating the business logic of one multiplayer game: who may join, who may move, and what
happens to the clock and the position when they do.

All mutation happens synchronously inside these methods. The service layer rebuilds a Session from its stored model,
calls one method, and only writes the result back if no exception was raised.
"""

import secrets
from dataclasses import dataclass, field
from typing import Optional, Self

from chessrelay.core.exceptions import (
    GameUnavailableError,
    NotYourTurnError,
    SessionFullError,
    UnauthorizedError,
)
from chessrelay.core.models import OutcomeModel, PlayerModel, SessionModel
from chessrelay.core.shared_types import JOIN_ORDER, Color, OutcomeReason, Status
from chessrelay.game.clock import Clock
from chessrelay.game.fairplay import FairplaySignals, FairplayTracker
from chessrelay.game.rules import RulesEngine

TOKEN_BYTES = 16


@dataclass
class Player:
    name: str
    color: Color
    token: str
    fairplay: FairplaySignals = field(default_factory=FairplaySignals)

    def holds(self, color: Color, token: str) -> bool:
        """Constant-time credential check, bound to exactly one color."""
        return self.color == color and secrets.compare_digest(
            self.token.encode(), token.encode()
        )


@dataclass(frozen=True)
class Outcome:
    reason: OutcomeReason
    winner: Optional[Color] = None


@dataclass(frozen=True)
class MoveResult:
    """What happened to a move request that made it past authorization and turn order."""

    from_square: str
    to_square: str
    uci: Optional[str]
    san: Optional[str]
    forfeited: bool

    @property
    def applied(self) -> bool:
        return not self.forfeited


@dataclass
class Session:
    # --- DOMAIN LAYER API CALLED BY SERVICE---

    fen: str
    moves: list[str]
    players: list[Player]
    turn: Color
    status: Status
    clock: Clock
    outcome: Optional[Outcome]
    created_at: float
    last_activity_at: float

    @classmethod
    def new_session(
        cls, fen: str, minutes: float, increment_seconds: float, now: float
    ) -> Self:
        """A fresh game waiting for its first player."""
        return cls(
            fen=fen,
            moves=[],
            players=[],
            turn=Color.WHITE,
            status=Status.WAITING,
            clock=Clock.from_time_control(minutes, increment_seconds),
            outcome=None,
            created_at=now,
            last_activity_at=now,
        )

    @classmethod
    def from_model(cls, model: SessionModel) -> Self:
        """Define how to construct a Session from the information the Service layer actually has"""
        players = [
            Player(
                name=p.name,
                color=Color(p.color),
                token=p.token,
                fairplay=FairplaySignals.from_model(p.fairplay),
            )
            for p in model.players
        ]
        outcome = (
            Outcome(
                reason=OutcomeReason(model.outcome.reason),
                winner=Color(model.outcome.winner) if model.outcome.winner else None,
            )
            if model.outcome
            else None
        )
        return cls(
            fen=model.fen,
            moves=list(model.moves),
            players=players,
            turn=Color(model.turn),
            status=Status(model.status),
            clock=Clock.from_model(model.clock),
            outcome=outcome,
            created_at=model.created_at,
            last_activity_at=model.last_activity_at,
        )

    def to_model(self) -> SessionModel:
        """Encode back into a format the Service layer uses"""
        return SessionModel(
            fen=self.fen,
            moves=list(self.moves),
            players=[
                PlayerModel(
                    name=p.name,
                    color=p.color.value,
                    token=p.token,
                    fairplay=p.fairplay.to_model(),
                )
                for p in self.players
            ],
            turn=self.turn.value,
            status=self.status.value,
            clock=self.clock.to_model(),
            outcome=(
                OutcomeModel(
                    reason=self.outcome.reason.value,
                    winner=self.outcome.winner.value if self.outcome.winner else None,
                )
                if self.outcome
                else None
            ),
            created_at=self.created_at,
            last_activity_at=self.last_activity_at,
        )

    @property
    def is_over(self) -> bool:
        return self.status == Status.TERMINAL

    def join(self, name: str, now: float) -> Player:
        """
        Register the next player. Colors follow join order: white first, then black.
        The second join starts the game and the clock of the color to move.
        """
        if self.status != Status.WAITING or len(self.players) >= len(JOIN_ORDER):
            raise SessionFullError("Game is full.")

        player = Player(
            name=name,
            color=JOIN_ORDER[len(self.players)],
            token=secrets.token_hex(TOKEN_BYTES),
        )
        self.players.append(player)
        self.last_activity_at = now

        if len(self.players) == len(JOIN_ORDER):
            self.status = Status.ACTIVE
            self.clock.start(now)
        return player

    def submit_move(
        self,
        color: Color,
        token: str,
        from_square: str,
        to_square: str,
        rules: RulesEngine,
        tracker: FairplayTracker,
        now: float,
        promotion: Optional[str] = None,
    ) -> MoveResult:
        """
        Attempt a move on behalf of `color`.
        -----
        1. the credential must belong to `color` in this session
        2. the session must be active
        3. it must be `color`'s turn
        4. a fallen flag ends the game before the move is even looked at
        5. the rules engine decides legality (IllegalMoveError leaves this object untouched)
        6. settle the clock, apply the position, flip the turn, classify the result, record fair-play signals
        """
        player = self._authorize(color, token)

        if self.status != Status.ACTIVE:
            raise GameUnavailableError(f"Game is not accepting moves. status: {self.status}")

        if color != self.turn:
            raise NotYourTurnError("It is not your turn.")

        if self.clock.has_flag_fallen(color, self.turn, now):
            self.clock.settle(color, now)
            self._finish(Outcome(OutcomeReason.TIMEOUT, winner=color.opposite), now)
            return MoveResult(from_square, to_square, uci=None, san=None, forfeited=True)

        applied = rules.apply_move(self.moves, from_square, to_square, promotion)

        think_time = self.clock.settle(color, now)
        self.moves.append(applied.uci)
        self.fen = applied.fen
        self.turn = self.turn.opposite
        self.last_activity_at = now
        tracker.record(player.fairplay, think_time)

        if applied.termination is not None:
            self._finish(
                Outcome(applied.termination.reason, applied.termination.winner), now
            )

        return MoveResult(
            from_square, to_square, uci=applied.uci, san=applied.san, forfeited=False
        )

    def flag_if_expired(self, now: float) -> bool:
        """End the game on time if the color to move has run out. Returns True if this call ended it."""
        if self.status != Status.ACTIVE:
            return False
        if not self.clock.has_flag_fallen(self.turn, self.turn, now):
            return False
        self.clock.settle(self.turn, now)
        self._finish(Outcome(OutcomeReason.TIMEOUT, winner=self.turn.opposite), now)
        return True

    def player_by_color(self, color: Color) -> Optional[Player]:
        return next((p for p in self.players if p.color == color), None)

    # -- PRIVATE HELPERS ---
    def _authorize(self, color: Color, token: str) -> Player:
        player = self.player_by_color(color)
        if player is None or not player.holds(color, token):
            raise UnauthorizedError("Not authorized to move for this game.")
        return player

    def _finish(self, outcome: Outcome, now: float) -> None:
        self.clock.stop(self.turn, now)
        self.outcome = outcome
        self.status = Status.TERMINAL
        self.last_activity_at = now
