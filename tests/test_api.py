"""
HTTP API tests for the game service.

Covers the session lifecycle, value-style rejections coming back as
``ok: false`` bodies, 404s for unknown games and 400s for bad config.
"""

from __future__ import annotations

from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

from gomoku_ai import main
from gomoku_ai.main import app


@pytest.fixture
def client(monkeypatch):
    monkeypatch.delenv("GOMOKU_CONFIG_FILE", raising=False)
    with TestClient(app) as test_client:
        yield test_client
    with main._games_lock:
        for session in main.games.values():
            session.engine.close()
        main.games.clear()


def _create(client: TestClient, **body: Any) -> Dict[str, Any]:
    response = client.post("/games", json=body or {})
    assert response.status_code == 200, response.text
    return response.json()


def _move(client: TestClient, game_id: str, x: Any, y: Any, player: int) -> Dict[str, Any]:
    response = client.post(f"/games/{game_id}/move", json={"x": x, "y": y, "player": player})
    assert response.status_code == 200
    return response.json()


class TestService:
    def test_root(self, client):
        body = client.get("/").json()
        assert body["status"] == "running"

    def test_health(self, client):
        _create(client)
        body = client.get("/health").json()
        assert body == {"status": "healthy", "games": 1}

    def test_metrics_exposed(self, client):
        game_id = _create(client)["gameId"]
        _move(client, game_id, 7, 7, 1)
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "gomoku_active_games" in response.text


class TestGameLifecycle:
    def test_create_game(self, client):
        body = _create(client, difficulty="hard", seed=7)
        assert body["config"]["difficulty"] == "hard"
        assert body["config"]["seed"] == 7
        state = body["state"]
        assert state["currentPlayer"] == 1
        assert state["moveCount"] == 0
        assert state["snapshot"]["sequenceIndex"] == 0

    def test_bad_config_is_400(self, client):
        response = client.post("/games", json={"evaluatorVariant": "neural"})
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "CONFIGURATION_ERROR"

    def test_unknown_difficulty_is_422(self, client):
        response = client.post("/games", json={"difficulty": "impossible"})
        assert response.status_code == 422

    def test_move_and_state(self, client):
        game_id = _create(client)["gameId"]
        result = _move(client, game_id, 7, 7, 1)
        assert result["ok"] is True
        assert result["affectedCells"] == [{"x": 7, "y": 7}]
        state = client.get(f"/games/{game_id}/state").json()
        assert state["currentPlayer"] == 2
        assert state["snapshot"]["board"][7][7] == 1
        assert state["lastMove"] == {"x": 7, "y": 7, "player": 1}

    def test_rejected_move_is_a_value(self, client):
        game_id = _create(client)["gameId"]
        _move(client, game_id, 7, 7, 1)
        result = _move(client, game_id, 7, 7, 2)
        assert result["ok"] is False
        assert result["error"] == "OCCUPIED_CELL"
        assert _move(client, game_id, "a", 0, 2)["error"] == "INVALID_COORDINATE"
        assert _move(client, game_id, 0, 0, 1)["error"] == "NOT_PLAYERS_TURN"

    def test_skill(self, client):
        game_id = _create(client, seed=3)["gameId"]
        _move(client, game_id, 7, 7, 1)
        _move(client, game_id, 7, 8, 2)
        response = client.post(
            f"/games/{game_id}/skill", json={"skill": "remove", "player": 1, "targets": [[7, 8]]}
        )
        result = response.json()
        assert result["ok"] is True
        assert result["skill"] == "remove"
        again = client.post(f"/games/{game_id}/skill", json={"skill": "remove", "player": 1}).json()
        assert again["error"] == "SKILL_ALREADY_USED"
        state = client.get(f"/games/{game_id}/state").json()
        assert state["availableSkills"]["1"] == ["scatter", "rewind"]

    def test_unknown_skill(self, client):
        game_id = _create(client)["gameId"]
        result = client.post(f"/games/{game_id}/skill", json={"skill": "freeze", "player": 1}).json()
        assert result["error"] == "UNKNOWN_SKILL"

    def test_rewind(self, client):
        game_id = _create(client)["gameId"]
        _move(client, game_id, 7, 7, 1)
        _move(client, game_id, 7, 8, 2)
        result = client.post(f"/games/{game_id}/rewind", json={"steps": 2}).json()
        assert result["ok"] is True
        assert result["snapshot"]["moveCount"] == 0
        too_far = client.post(f"/games/{game_id}/rewind", json={"steps": 2}).json()
        assert too_far["ok"] is False
        assert too_far["error"] == "INSUFFICIENT_HISTORY"

    def test_ai_turn(self, client):
        game_id = _create(client, seed=11)["gameId"]
        body = client.post(f"/games/{game_id}/ai-turn", json={}).json()
        assert body["ok"] is True
        assert body["player"] == 1
        assert (body["move"]["x"], body["move"]["y"]) == (7, 7)
        assert body["states"][-1] == "turn_complete"
        wrong = client.post(f"/games/{game_id}/ai-turn", json={"player": 1}).json()
        assert wrong["error"] == "NOT_PLAYERS_TURN"

    def test_history(self, client):
        game_id = _create(client)["gameId"]
        _move(client, game_id, 7, 7, 1)
        _move(client, game_id, 6, 6, 2)
        body = client.get(f"/games/{game_id}/history", params={"recent": 1}).json()
        assert body["stats"]["length"] == 3
        assert body["recentMoves"] == [{"x": 6, "y": 6, "player": 2}]
        assert [s["moveCount"] for s in body["snapshots"]] == [0, 1, 2]

    def test_delete(self, client):
        game_id = _create(client)["gameId"]
        assert client.delete(f"/games/{game_id}").json()["status"] == "deleted"
        assert client.get(f"/games/{game_id}/state").status_code == 404
        assert client.delete(f"/games/{game_id}").status_code == 404


class TestUnknownGame:
    @pytest.mark.parametrize(
        "method,path,body",
        [
            ("get", "/games/nope/state", None),
            ("post", "/games/nope/move", {"x": 0, "y": 0, "player": 1}),
            ("post", "/games/nope/skill", {"skill": "remove", "player": 1}),
            ("post", "/games/nope/ai-turn", {}),
            ("get", "/games/nope/history", None),
        ],
    )
    def test_404(self, client, method, path, body):
        kwargs = {"json": body} if body is not None else {}
        response = getattr(client, method)(path, **kwargs)
        assert response.status_code == 404
