"""End-to-end tests through the FastAPI app (HTTP routes and the websocket channel)."""

import asyncio
from typing import Any, Generator

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from chessrelay.api.app import create_app, sweep_once
from chessrelay.api.routes import AppServices
from chessrelay.core.config import RateLimit, Settings
from chessrelay.game.rules import STARTING_FEN
from chessrelay.services.channels import POLICY_VIOLATION
from tests.conftest import FakeClock

ORIGIN = "http://localhost:3000"


@pytest.fixture
def settings() -> Settings:
    return Settings(allowed_origins=(ORIGIN,), idle_timeout_seconds=600)


@pytest.fixture
def client(settings: Settings, fake_clock: FakeClock) -> Generator[TestClient, None, None]:
    app = create_app(settings, now=fake_clock, run_sweeper=False)
    with TestClient(app) as test_client:
        yield test_client


def services(client: TestClient) -> AppServices:
    return client.app.state.services


def start_game(client: TestClient, minutes: int = 5) -> tuple[str, dict[str, Any], dict[str, Any]]:
    game_id = client.post("/create-multiplayer-game", json={"minutes": minutes}).json()["gameId"]
    white = client.post("/join-game", json={"gameId": game_id, "playerName": "alice"}).json()
    black = client.post("/join-game", json={"gameId": game_id, "playerName": "bob"}).json()
    return game_id, white, black


def move_body(game_id: str, player: dict[str, Any], move: str) -> dict[str, Any]:
    return {
        "gameId": game_id,
        "from": move[:2],
        "to": move[2:4],
        "playerColor": player["color"],
        "authToken": player["token"],
    }


# --- HTTP - happy path ----
def test_create_and_join(client: TestClient) -> None:
    created = client.post("/create-multiplayer-game", json={"minutes": 5, "increment": 0})
    assert created.status_code == 200
    body = created.json()
    assert body["status"] == "waiting"
    assert body["clock"] == {"wMs": 300_000, "bMs": 300_000, "incrementMs": 0, "running": False}

    game_id = body["gameId"]
    white = client.post("/join-game", json={"gameId": game_id, "playerName": "alice"})
    black = client.post("/join-game", json={"gameId": game_id, "playerName": "bob"})
    assert white.json()["color"] == "w"
    assert black.json()["color"] == "b"
    assert black.json()["status"] == "active"
    assert black.json()["currentPlayer"] == "w"


def test_create_without_body(client: TestClient) -> None:
    response = client.post("/create-multiplayer-game")
    assert response.status_code == 200
    assert response.json()["timeControl"] == {"minutes": 10, "increment": 0}


def test_move_and_state(client: TestClient) -> None:
    game_id, white, _ = start_game(client)
    response = client.post("/multiplayer-move", json=move_body(game_id, white, "e2e4"))
    assert response.status_code == 200
    assert response.json()["moveApplied"] is True
    assert response.json()["currentPlayer"] == "b"

    state = client.get(f"/game/{game_id}").json()
    assert state["moves"] == ["e2e4"]
    assert "token" not in str(state["players"])


def test_time_forfeit_is_a_regular_response(client: TestClient, fake_clock: FakeClock) -> None:
    game_id, white, _ = start_game(client, minutes=1)
    fake_clock.advance(61_000)

    response = client.post("/multiplayer-move", json=move_body(game_id, white, "e2e4"))
    assert response.status_code == 200
    body = response.json()
    assert body["moveApplied"] is False
    assert body["isGameOver"] is True
    assert body["result"] == {"reason": "timeout", "winner": "b"}
    assert body["fen"] == STARTING_FEN
    assert (body["from"], body["to"]) == (None, None)


def test_single_player_game(client: TestClient) -> None:
    game_id = client.post("/new-game").json()["gameId"]
    response = client.post("/move", json={"gameId": game_id, "from": "d2", "to": "d4"})
    assert response.status_code == 200
    assert response.json()["botMove"] is not None
    assert client.get("/status").json()["singlePlayerGames"] == 1


# --- HTTP - errors ----
def test_error_status_codes(client: TestClient) -> None:
    game_id, white, black = start_game(client)

    full = client.post("/join-game", json={"gameId": game_id, "playerName": "carol"})
    assert full.status_code == 409

    out_of_turn = client.post("/multiplayer-move", json=move_body(game_id, black, "e7e5"))
    assert out_of_turn.status_code == 400

    illegal = client.post("/multiplayer-move", json=move_body(game_id, white, "e2e5"))
    assert illegal.status_code == 422

    stolen = dict(move_body(game_id, white, "e2e4"), authToken=black["token"])
    assert client.post("/multiplayer-move", json=stolen).status_code == 403

    unknown = move_body("ABCDEF", white, "e2e4")
    assert client.post("/multiplayer-move", json=unknown).status_code == 403

    assert client.get("/game/ABCDEF").status_code == 404
    assert client.get("/game/not-an-id").status_code == 400

    for response in (full, out_of_turn, illegal):
        assert set(response.json()) == {"error"}


def test_malformed_body(client: TestClient) -> None:
    bad_name = client.post("/join-game", json={"gameId": "ABCDEF", "playerName": "<b>"})
    assert bad_name.status_code == 400

    missing = client.post("/join-game", json={"gameId": "ABCDEF"})
    assert missing.status_code == 400
    assert "playerName" in missing.json()["error"]


def test_rate_limited(fake_clock: FakeClock) -> None:
    settings = Settings(allowed_origins=(ORIGIN,), session_rate_limit=RateLimit(2, 60))
    with TestClient(create_app(settings, now=fake_clock, run_sweeper=False)) as client:
        assert client.post("/create-multiplayer-game").status_code == 200
        assert client.post("/create-multiplayer-game").status_code == 200
        limited = client.post("/create-multiplayer-game")
        assert limited.status_code == 429
        assert "error" in limited.json()


# --- WEBSOCKET ----
def test_subscriber_receives_state_then_moves(client: TestClient) -> None:
    game_id, white, _ = start_game(client)
    with client.websocket_connect(f"/?gameId={game_id}", headers={"origin": ORIGIN}) as ws:
        initial = ws.receive_json()
        assert initial["type"] == "state"
        assert initial["fen"] == STARTING_FEN

        client.post("/multiplayer-move", json=move_body(game_id, white, "e2e4"))
        update = ws.receive_json()
        assert update["type"] == "move"
        assert update["moveApplied"] is True
        assert (update["from"], update["to"]) == ("e2", "e4")
        assert update["currentPlayer"] == "b"


def test_every_subscriber_gets_the_update(client: TestClient) -> None:
    game_id, white, _ = start_game(client)
    url = f"/?gameId={game_id}"
    with client.websocket_connect(url, headers={"origin": ORIGIN}) as first:
        with client.websocket_connect(url, headers={"origin": ORIGIN}) as second:
            first.receive_json()
            second.receive_json()
            assert client.get("/status").json()["connections"] == 2

            client.post("/multiplayer-move", json=move_body(game_id, white, "g1f3"))
            assert first.receive_json()["fen"] == second.receive_json()["fen"]


@pytest.mark.parametrize("headers", [{"origin": "http://evil.example"}, {}])
def test_websocket_origin_is_checked(client: TestClient, headers: dict[str, str]) -> None:
    game_id, _, _ = start_game(client)
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect(f"/?gameId={game_id}", headers=headers):
            pass
    assert exc_info.value.code == POLICY_VIOLATION


@pytest.mark.parametrize("query", ["", "?gameId=nope", "?gameId=ABCDEF"])
def test_websocket_needs_existing_game(client: TestClient, query: str) -> None:
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect(f"/{query}", headers={"origin": ORIGIN}):
            pass
    assert exc_info.value.code == POLICY_VIOLATION


def test_session_removed_after_last_disconnect(client: TestClient) -> None:
    game_id, _, _ = start_game(client)
    with client.websocket_connect(f"/?gameId={game_id}", headers={"origin": ORIGIN}) as ws:
        ws.receive_json()
        assert client.get(f"/game/{game_id}").status_code == 200

    assert client.get(f"/game/{game_id}").status_code == 404
    assert client.get("/status").json() == {
        "sessions": 0,
        "connections": 0,
        "singlePlayerGames": 0,
    }


# --- SWEEPER ----
def test_sweep_flags_and_evicts(client: TestClient, fake_clock: FakeClock) -> None:
    running_id, _, _ = start_game(client, minutes=1)
    waiting_id = client.post("/create-multiplayer-game").json()["gameId"]

    fake_clock.advance(60_000)
    asyncio.run(sweep_once(services(client)))
    state = client.get(f"/game/{running_id}").json()
    assert state["isGameOver"] is True
    assert state["result"] == {"reason": "timeout", "winner": "b"}

    # idle timeout is 600 s in these settings
    fake_clock.advance(600_001)
    asyncio.run(sweep_once(services(client)))
    assert client.get(f"/game/{running_id}").status_code == 404
    assert client.get(f"/game/{waiting_id}").status_code == 404
