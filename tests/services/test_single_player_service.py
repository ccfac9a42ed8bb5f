"""Unit tests for chessrelay/services/single_player_service.py"""

import random

import pytest

from chessrelay.api.models import SinglePlayerMoveRequest
from chessrelay.core.exceptions import (
    GameUnavailableError,
    IllegalMoveError,
    SessionNotFoundError,
)
from chessrelay.core.shared_types import Color, OutcomeReason
from chessrelay.game.rules import STARTING_FEN, PythonChessRules
from chessrelay.services.single_player_service import SinglePlayerService
from tests.conftest import FakeClock


@pytest.fixture
def service(rules: PythonChessRules, fake_clock: FakeClock) -> SinglePlayerService:
    return SinglePlayerService(rules, search_budget=64, now=fake_clock, rng=random.Random(7))


def move(game_id: str, uci: str) -> SinglePlayerMoveRequest:
    return SinglePlayerMoveRequest(game_id=game_id, from_square=uci[:2], to_square=uci[2:4])


def test_new_game(service: SinglePlayerService) -> None:
    response = service.new_game()
    assert response.fen == STARTING_FEN
    assert len(response.game_id) == 6
    assert service.game_count() == 1


def test_bot_answers_every_move(service: SinglePlayerService) -> None:
    game_id = service.new_game().game_id
    response = service.make_move(move(game_id, "e2e4"))

    assert response.bot_move is not None
    assert len(response.bot_move) in (4, 5)
    # after the bot reply it is white to move again
    assert response.fen.split()[1] == "w"
    assert not response.is_game_over


def test_illegal_human_move(service: SinglePlayerService) -> None:
    game_id = service.new_game().game_id
    with pytest.raises(IllegalMoveError):
        service.make_move(move(game_id, "e2e5"))


def test_unknown_game(service: SinglePlayerService) -> None:
    with pytest.raises(SessionNotFoundError):
        service.make_move(move("ABCDEF", "e2e4"))


def test_mating_move_gets_no_reply(service: SinglePlayerService) -> None:
    game_id = service.new_game().game_id
    game = service._games[game_id]
    # scholar's mate setup, white to play Qxf7#
    game.moves = ["e2e4", "e7e5", "f1c4", "b8c6", "d1h5", "g8f6"]
    game.fen = "r1bqkb1r/pppp1ppp/2n2n2/4p2Q/2B1P3/8/PPPP1PPP/RNB1K1NR w KQkq - 4 4"

    response = service.make_move(move(game_id, "h5f7"))

    assert response.bot_move is None
    assert response.is_game_over
    assert response.result is not None
    assert response.result.reason == OutcomeReason.CHECKMATE
    assert response.result.winner == Color.WHITE

    with pytest.raises(GameUnavailableError):
        service.make_move(move(game_id, "e1e2"))


def test_evict_idle(service: SinglePlayerService, fake_clock: FakeClock) -> None:
    stale = service.new_game().game_id
    fake_clock.advance(10_000)
    fresh = service.new_game().game_id

    assert service.evict_idle(timeout_ms=5_000) == 1
    assert service.game_count() == 1
    with pytest.raises(SessionNotFoundError):
        service.make_move(move(stale, "e2e4"))
    service.make_move(move(fresh, "e2e4"))
