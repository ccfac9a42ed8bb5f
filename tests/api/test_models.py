import pytest

from chessrelay.api.models import (
    CreateGameRequest,
    JoinGameRequest,
    MoveResponse,
    MultiplayerMoveRequest,
    SinglePlayerMoveRequest,
)
from chessrelay.core.exceptions import InvalidRequestError
from chessrelay.core.shared_types import Color

GAME_ID = "A1B2C3"
TOKEN = "0123456789abcdef0123456789abcdef"


# -- Validation - CreateGameRequest --
def test_time_control_is_optional() -> None:
    request = CreateGameRequest()
    assert request.minutes is None
    assert request.increment is None


@pytest.mark.parametrize(
    "minutes, increment",
    [
        (0, 0),  # no time at all
        (181, 0),  # longer than three hours
        (5, -1),
        (5, 61),
    ],
)
def test_invalid_time_control(minutes: int, increment: int) -> None:
    with pytest.raises(InvalidRequestError):
        _ = CreateGameRequest(minutes=minutes, increment=increment)


# -- Validation - JoinGameRequest --
def test_join_request_reads_camel_case() -> None:
    request = JoinGameRequest.model_validate({"gameId": GAME_ID, "playerName": "Magnus C"})
    assert request.game_id == GAME_ID
    assert request.player_name == "Magnus C"


@pytest.mark.parametrize(
    "game_id",
    [
        "abc123",  # lower case
        "ABC12",  # too short
        "ABC1234",  # too long
        "ABC12!",
    ],
)
def test_invalid_game_id(game_id: str) -> None:
    with pytest.raises(InvalidRequestError):
        _ = JoinGameRequest(game_id=game_id, player_name="bladiblidiboo")


@pytest.mark.parametrize("name", ["", "x" * 31, "<script>", "bobby;drop"])
def test_invalid_player_name(name: str) -> None:
    with pytest.raises(InvalidRequestError):
        _ = JoinGameRequest(game_id=GAME_ID, player_name=name)


# -- Validation - MultiplayerMoveRequest --
def test_valid_move_request() -> None:
    request = MultiplayerMoveRequest.model_validate(
        {
            "gameId": GAME_ID,
            "from": "e2",
            "to": "e4",
            "playerColor": "w",
            "authToken": TOKEN,
        }
    )
    assert (request.from_square, request.to_square) == ("e2", "e4")
    assert request.player_color == Color.WHITE
    assert request.promotion is None


@pytest.mark.parametrize(
    "square",
    [
        "nonsense",  # anything more than two characters.
        "11",  # First character is not a letter
        "aa",  # second character is not a number
        "i1",  # off the board
    ],
)
def test_invalid_square(square: str) -> None:
    """Test that an exception is raised when using invalid square name."""
    with pytest.raises(InvalidRequestError):
        _ = SinglePlayerMoveRequest(game_id=GAME_ID, from_square=square, to_square="e4")
    with pytest.raises(InvalidRequestError):
        _ = SinglePlayerMoveRequest(game_id=GAME_ID, from_square="e2", to_square=square)


def test_promotion_is_normalised() -> None:
    request = SinglePlayerMoveRequest(
        game_id=GAME_ID, from_square="a7", to_square="a8", promotion="N"
    )
    assert request.promotion == "n"


def test_invalid_promotion() -> None:
    with pytest.raises(InvalidRequestError):
        _ = SinglePlayerMoveRequest(
            game_id=GAME_ID, from_square="a7", to_square="a8", promotion="k"
        )


@pytest.mark.parametrize("token", ["", "short", "Z" * 32, TOKEN.upper()])
def test_malformed_token(token: str) -> None:
    with pytest.raises(InvalidRequestError):
        _ = MultiplayerMoveRequest(
            game_id=GAME_ID,
            from_square="e2",
            to_square="e4",
            player_color=Color.WHITE,
            auth_token=token,
        )


# -- Serialisation --
def test_move_response_uses_wire_names() -> None:
    response = MoveResponse(
        game_id=GAME_ID,
        fen="8/8/8/8/8/8/8/8 w - - 0 1",
        from_square="e2",
        to_square="e4",
        san="e4",
        move_applied=True,
        current_player=Color.BLACK,
        is_game_over=False,
        result=None,
        clock={"w_ms": 1, "b_ms": 2, "increment_ms": 0, "running": True},
        fairplay={},
    )
    dumped = response.model_dump(by_alias=True, mode="json")
    assert dumped["from"] == "e2"
    assert dumped["to"] == "e4"
    assert dumped["moveApplied"] is True
    assert dumped["currentPlayer"] == "b"
    assert dumped["clock"] == {"wMs": 1, "bMs": 2, "incrementMs": 0, "running": True}
