"""Orchestration of communication from API router to the session registry and domain layer (and the reverse direction)."""

import logging
from typing import Optional

from chessrelay.api.models import (
    ClockResponse,
    CreateGameRequest,
    CreateGameResponse,
    FairplayResponse,
    GameStateResponse,
    JoinGameRequest,
    JoinGameResponse,
    MoveBroadcast,
    MoveResponse,
    MultiplayerMoveRequest,
    OutcomeResponse,
    PlayerResponse,
    StateBroadcast,
    TimeControlResponse,
)
from chessrelay.core.exceptions import SessionNotFoundError, UnauthorizedError
from chessrelay.game.clock import MS_PER_MINUTE, MS_PER_SECOND
from chessrelay.game.fairplay import FairplayTracker
from chessrelay.game.rules import RulesEngine
from chessrelay.game.session import Session
from chessrelay.services.registry import SessionRegistry

logger = logging.getLogger(__name__)

DEFAULT_MINUTES = 10
DEFAULT_INCREMENT = 0


class MultiplayerService:
    """Orchestration of layers for two-player games."""

    def __init__(
        self,
        registry: SessionRegistry,
        rules: RulesEngine,
        tracker: FairplayTracker,
        default_minutes: int = DEFAULT_MINUTES,
        default_increment: int = DEFAULT_INCREMENT,
    ) -> None:
        self.registry = registry
        self.rules = rules
        self.tracker = tracker
        self.default_minutes = default_minutes
        self.default_increment = default_increment

    # -- API routes logic ---
    def create_game(self, request: Optional[CreateGameRequest] = None) -> CreateGameResponse:
        """Someone asked for a new game. Nobody has joined it yet."""
        request = request or CreateGameRequest()
        minutes = request.minutes if request.minutes is not None else self.default_minutes
        increment = (
            request.increment if request.increment is not None else self.default_increment
        )

        game_id, session = self.registry.create_session(minutes, increment)
        return CreateGameResponse(
            game_id=game_id,
            fen=session.fen,
            status=session.status,
            time_control=self._time_control(session),
            clock=self._clock(session),
        )

    def join_game(self, request: JoinGameRequest) -> JoinGameResponse:
        """A player takes the next free color. The response carries the credential needed to move."""
        session, player = self.registry.join_session(request.game_id, request.player_name)
        return JoinGameResponse(
            game_id=request.game_id,
            color=player.color,
            token=player.token,
            fen=session.fen,
            current_player=session.turn,
            status=session.status,
            time_control=self._time_control(session),
            clock=self._clock(session),
            players=self._players(session),
        )

    def get_game_state(self, game_id: str) -> GameStateResponse:
        """
        Retrieve current game state.
        ----
        Read-only: a clock that ran out is shown at zero, but the game is only ended by a move attempt or the sweeper.
        """
        session = self.registry.get_session(game_id)
        return self._state_response(game_id, session)

    def make_move(self, request: MultiplayerMoveRequest) -> MoveResponse:
        """Make a move attempt."""
        try:
            session = self.registry.get_session(request.game_id)
        except SessionNotFoundError as exc:
            # Same answer as a wrong credential: do not reveal which game IDs exist.
            raise UnauthorizedError("Not authorized to move for this game.") from exc

        result = session.submit_move(
            color=request.player_color,
            token=request.auth_token,
            from_square=request.from_square,
            to_square=request.to_square,
            rules=self.rules,
            tracker=self.tracker,
            now=self.registry.now(),
            promotion=request.promotion,
        )
        self.registry.save_session(request.game_id, session)

        if result.forfeited:
            logger.info(
                "Session %s: %s lost on time", request.game_id, request.player_color
            )
        elif session.is_over:
            logger.info(
                "Session %s finished: %s", request.game_id, session.outcome
            )

        return MoveResponse(
            game_id=request.game_id,
            fen=session.fen,
            # a forfeited move was never played, so there is nothing to show
            from_square=result.from_square if result.applied else None,
            to_square=result.to_square if result.applied else None,
            san=result.san,
            move_applied=result.applied,
            current_player=session.turn,
            is_game_over=session.is_over,
            result=self._outcome(session),
            clock=self._clock(session),
            fairplay={
                player.color: FairplayResponse(
                    move_count=player.fairplay.move_count,
                    fast_move_count=player.fairplay.fast_move_count,
                    suspicion_score=player.fairplay.suspicion_score,
                )
                for player in session.players
            },
        )

    def flag_expired_sessions(self) -> list[str]:
        """End every active game whose player to move has run out of time. Returns the IDs of the games ended."""
        flagged = []
        now = self.registry.now()
        for game_id in self.registry.session_ids():
            try:
                session = self.registry.get_session(game_id)
            except SessionNotFoundError:
                continue
            if session.flag_if_expired(now):
                self.registry.save_session(game_id, session)
                logger.info("Session %s: %s lost on time", game_id, session.turn)
                flagged.append(game_id)
        return flagged

    # -- Realtime payloads --
    def move_message(self, response: MoveResponse) -> dict:
        return MoveBroadcast(**response.model_dump()).model_dump(by_alias=True, mode="json")

    def state_message(self, game_id: str) -> dict:
        state = self.get_game_state(game_id)
        return StateBroadcast(**state.model_dump()).model_dump(by_alias=True, mode="json")

    # -- Internal helpers --
    def _state_response(self, game_id: str, session: Session) -> GameStateResponse:
        return GameStateResponse(
            game_id=game_id,
            fen=session.fen,
            players=self._players(session),
            status=session.status,
            current_player=session.turn,
            time_control=self._time_control(session),
            clock=self._clock(session),
            is_game_over=session.is_over,
            result=self._outcome(session),
            moves=session.moves,
        )

    def _clock(self, session: Session) -> ClockResponse:
        return ClockResponse(**session.clock.snapshot(session.turn, self.registry.now()))

    def _time_control(self, session: Session) -> TimeControlResponse:
        return TimeControlResponse(
            minutes=round(session.clock.initial_ms / MS_PER_MINUTE),
            increment=round(session.clock.increment_ms / MS_PER_SECOND),
        )

    def _players(self, session: Session) -> list[PlayerResponse]:
        return [PlayerResponse(name=p.name, color=p.color) for p in session.players]

    def _outcome(self, session: Session) -> Optional[OutcomeResponse]:
        if session.outcome is None:
            return None
        return OutcomeResponse(reason=session.outcome.reason, winner=session.outcome.winner)
