import pytest
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient

from wordgroups import main
from wordgroups.errors import StoreError

FISH = ["bass", "trout", "salmon", "tuna"]
WRONG = ["BASS", "ELDER", "MAPLE", "KEYBOARD"]


@pytest.fixture
def client(manager, game, puzzle_service):
    main.app.dependency_overrides[main.get_manager] = lambda: manager
    main.app.dependency_overrides[main.get_game] = lambda: game
    main.app.dependency_overrides[main.get_stats] = lambda: game.stats
    main.app.dependency_overrides[main.get_puzzles] = lambda: puzzle_service
    with patch.dict('os.environ', {'ADMIN_PASSWORD': 'hunter2', 'ADMIN_PASSWORD_HASH': '',
                                   'ADMIN_TOKEN_KEY': ''}):
        yield TestClient(main.app, raise_server_exceptions=False)
    main.app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(client):
    token = client.post("/admin/login", json={"password": "hunter2"}).json()["token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.api
def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


@pytest.mark.api
def test_start_game_hides_groups(client, approved_puzzle):
    resp = client.post("/game/start", json={"puzzle_id": approved_puzzle.id, "username": "Alice"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["session_id"]
    assert body["puzzle"]["id"] == approved_puzzle.id
    assert len(body["puzzle"]["words"]) == 16
    assert body["puzzle"]["categories"] == [
        {"tier": "tier1", "color": "yellow"},
        {"tier": "tier2", "color": "green"},
        {"tier": "tier3", "color": "blue"},
        {"tier": "tier4", "color": "purple"},
    ]


@pytest.mark.api
def test_play_through_http(client, approved_puzzle):
    session_id = client.post("/game/start", json={"puzzle_id": approved_puzzle.id}).json()["session_id"]

    resp = client.post("/game/submit", json={"session_id": session_id, "selected_words": FISH})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["matched_category"]["name"] == "Types of Fish"
    assert body["mistakes_remaining"] == 4

    session = client.get(f"/game/{session_id}").json()
    assert session["state"] == "in_progress"
    assert len(session["found_groups"]) == 1


@pytest.mark.api
def test_submit_errors(client, approved_puzzle):
    session_id = client.post("/game/start", json={"puzzle_id": approved_puzzle.id}).json()["session_id"]

    resp = client.post("/game/submit", json={"session_id": session_id, "selected_words": FISH[:3]})
    assert resp.status_code == 400
    assert "exactly 4" in resp.json()["error"]

    resp = client.post("/game/submit", json={"session_id": session_id,
                                              "selected_words": ["BASS", "TROUT", "SALMON", "WHALE"]})
    assert resp.status_code == 400

    resp = client.post("/game/submit", json={"session_id": "missing", "selected_words": FISH})
    assert resp.status_code == 404
    assert resp.json() == {"error": "Game session not found"}

    for _ in range(4):
        client.post("/game/submit", json={"session_id": session_id, "selected_words": WRONG})
    resp = client.post("/game/submit", json={"session_id": session_id, "selected_words": FISH})
    assert resp.status_code == 409


@pytest.mark.api
def test_store_failure_is_500(client, approved_puzzle, manager):
    with patch.object(manager.store, 'transact', side_effect=StoreError("disk full")):
        resp = client.post("/game/start", json={"puzzle_id": approved_puzzle.id})
    assert resp.status_code == 500
    assert resp.json() == {"error": "disk full"}


@pytest.mark.api
def test_unexpected_error_is_generic_500(client, game):
    with patch.object(game, 'get_session', side_effect=RuntimeError("bug")):
        resp = client.get("/game/whatever")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error"}


@pytest.mark.api
def test_daily_and_random(client, approved_puzzle):
    for path in ("/game/daily", "/game/random"):
        body = client.get(path).json()
        assert body["id"] == approved_puzzle.id
        assert "name" not in body["categories"][0]


@pytest.mark.api
def test_stats_routes(client, approved_puzzle):
    assert client.get("/stats/Alice").status_code == 404
    resp = client.post("/stats/sync", json={"username": "Alice", "total_games": 3, "total_wins": 2})
    assert resp.status_code == 200
    assert client.get("/stats/alice").json()["total_wins"] == 2
    board = client.get("/stats/leaderboard/top", params={"limit": 5}).json()
    assert [s["username"] for s in board] == ["Alice"]


@pytest.mark.api
def test_admin_requires_token(client):
    assert client.get("/admin/stats").status_code == 401
    assert client.get("/admin/stats", headers={"Authorization": "Bearer junk"}).status_code == 401
    assert client.post("/admin/login", json={"password": "wrong"}).status_code == 401


@pytest.mark.api
def test_admin_workflow(client, admin_headers, puzzle_service, puzzle_content):
    generated = dict(puzzle_content)
    puzzle_service.generator = AsyncMock(return_value=generated)

    resp = client.post("/admin/puzzle/generate", json={"target_difficulty": "easy"}, headers=admin_headers)
    assert resp.status_code == 200
    puzzle_id = resp.json()["id"]
    assert resp.json()["approved"] is False

    assert client.post("/admin/puzzle/generate", json={"target_difficulty": "extreme"},
                       headers=admin_headers).status_code == 400

    resp = client.post("/admin/daily", json={"date": "2024-03-20", "puzzle_id": puzzle_id}, headers=admin_headers)
    assert resp.status_code == 400

    resp = client.put(f"/admin/puzzle/{puzzle_id}/approve", headers=admin_headers)
    assert resp.json()["approved"] is True
    resp = client.post("/admin/daily", json={"date": "2024-03-20", "puzzle_id": puzzle_id}, headers=admin_headers)
    assert resp.json()["puzzle_id"] == puzzle_id

    puzzles = client.get("/admin/puzzle/all", headers=admin_headers).json()
    assert [p["id"] for p in puzzles] == [puzzle_id]
    stats = client.get("/admin/stats", headers=admin_headers).json()
    assert stats["approvedPuzzles"] == 1
    quota = client.get("/admin/quota", headers=admin_headers).json()
    assert quota["remaining"] == quota["max"] - 1
    actions = [log["action"] for log in client.get("/admin/logs", headers=admin_headers).json()]
    assert set(actions) == {"generate", "approve", "set_daily"}

    assert client.delete(f"/admin/puzzle/{puzzle_id}/reject", headers=admin_headers).status_code == 200
    assert client.delete(f"/admin/puzzle/{puzzle_id}/reject", headers=admin_headers).status_code == 404
    assert client.post("/admin/logout", headers=admin_headers).status_code == 200
