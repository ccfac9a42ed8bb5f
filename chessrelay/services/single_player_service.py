"""Single-player games: a human (always white) against the naive server bot."""

import logging
import random
import secrets
from dataclasses import dataclass, field
from typing import Optional

from chessrelay.api.models import (
    NewSinglePlayerGameResponse,
    OutcomeResponse,
    SinglePlayerMoveRequest,
    SinglePlayerMoveResponse,
)
from chessrelay.core.exceptions import GameUnavailableError, SessionNotFoundError
from chessrelay.game.oracle import choose_move
from chessrelay.game.rules import AppliedMove, RulesEngine, Termination
from chessrelay.services.registry import TimeSource, new_session_id, wall_clock_ms

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_BUDGET = 64


@dataclass
class SinglePlayerGame:
    fen: str
    last_activity_at: float
    moves: list[str] = field(default_factory=list)
    termination: Optional[Termination] = None


class SinglePlayerService:
    def __init__(
        self,
        rules: RulesEngine,
        search_budget: int = DEFAULT_SEARCH_BUDGET,
        now: TimeSource = wall_clock_ms,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.rules = rules
        self.search_budget = search_budget
        self.now = now
        self.rng = rng or random.Random(secrets.randbits(64))
        self._games: dict[str, SinglePlayerGame] = {}

    def new_game(self) -> NewSinglePlayerGameResponse:
        game_id = new_session_id()
        while game_id in self._games:
            game_id = new_session_id()
        game = SinglePlayerGame(fen=self.rules.initial_fen(), last_activity_at=self.now())
        self._games[game_id] = game
        logger.info("Single-player game %s created", game_id)
        return NewSinglePlayerGameResponse(game_id=game_id, fen=game.fen)

    def make_move(self, request: SinglePlayerMoveRequest) -> SinglePlayerMoveResponse:
        """Play the human move, then let the bot answer unless the game just ended."""
        game = self._games.get(request.game_id)
        if game is None:
            raise SessionNotFoundError(f"Game {request.game_id} not found.")
        if game.termination is not None:
            raise GameUnavailableError("Game is over.")

        human = self.rules.apply_move(
            game.moves, request.from_square, request.to_square, request.promotion
        )
        self._record(game, human)

        bot_move = None
        if game.termination is None:
            bot_move = choose_move(game.fen, self.search_budget, self.rng)
            if bot_move is not None:
                reply = self.rules.apply_move(
                    game.moves, bot_move[:2], bot_move[2:4], bot_move[4:] or None
                )
                self._record(game, reply)

        return SinglePlayerMoveResponse(
            game_id=request.game_id,
            fen=game.fen,
            bot_move=bot_move,
            is_game_over=game.termination is not None,
            result=(
                OutcomeResponse(
                    reason=game.termination.reason, winner=game.termination.winner
                )
                if game.termination
                else None
            ),
        )

    def evict_idle(self, timeout_ms: float) -> int:
        cutoff = self.now() - timeout_ms
        idle = [gid for gid, game in self._games.items() if game.last_activity_at < cutoff]
        for game_id in idle:
            del self._games[game_id]
        return len(idle)

    def game_count(self) -> int:
        return len(self._games)

    def _record(self, game: SinglePlayerGame, applied: AppliedMove) -> None:
        game.moves.append(applied.uci)
        game.fen = applied.fen
        game.termination = applied.termination
        game.last_activity_at = self.now()
