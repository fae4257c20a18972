import pytest


def _create(client, **body):
    resp = client.post("/api/game", json=body)
    assert resp.status_code == 201
    return resp.get_json()["state"]


def _phase(payload):
    return payload["state"]["state"]["state"]


@pytest.fixture()
def local_game(client):
    return _create(client, mode="local", players=2, seed=3)["id"]


def test_create_defaults_to_single(client):
    snap = _create(client)
    assert snap["mode"] == "single"
    assert snap["state"]["number_of_warriors"] == 1
    assert snap["state"]["state"] == "warrior_one_select_room"
    assert snap["help_message"] == "Pick a Waystone location for warrior one"


def test_create_rejects_bad_mode(client):
    resp = client.post("/api/game", json={"mode": "arcade"})
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["field"] == "mode"
    assert body["code"] == "choices"


def test_create_rejects_bad_level(client):
    resp = client.post("/api/game", json={"level": 3})
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "max"


def test_unknown_game_is_404(client):
    assert client.get("/api/game/nope").status_code == 404
    assert client.post("/api/game/nope/move", json={}).status_code == 404
    assert client.delete("/api/game/nope").status_code == 404


def test_room_selection_flow(client, local_game):
    url = f"/api/game/{local_game}/room"
    body = client.post(url, json={"warrior": 0, "row": 0, "col": 0}).get_json()
    assert body["ok"] is True
    assert _phase(body) == "warrior_two_select_room"

    # same room twice is a rule violation, not a bad request
    resp = client.post(url, json={"warrior": 1, "row": 0, "col": 0})
    assert resp.status_code == 200
    assert resp.get_json()["ok"] is False

    body = client.post(url, json={"warrior": 1, "row": 7, "col": 7}).get_json()
    assert body["ok"] is True
    assert _phase(body) == "warrior_one_turn"
    assert body["message"] == "Warrior one's turn with 8 moves"


def test_move_validation(client, local_game):
    resp = client.post(f"/api/game/{local_game}/move", json={"warrior": 0, "col": 1})
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "missing required field", "field": "row", "code": "required"}

    resp = client.post(f"/api/game/{local_game}/move", json={"warrior": True, "row": 0, "col": 1})
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "type"

    resp = client.post(f"/api/game/{local_game}/move", json={"warrior": 0, "row": 8, "col": 1})
    assert resp.get_json()["field"] == "row"


def test_turns_are_enforced(client, local_game):
    client.post(f"/api/game/{local_game}/room", json={"warrior": 0, "row": 0, "col": 0})
    client.post(f"/api/game/{local_game}/room", json={"warrior": 1, "row": 7, "col": 7})

    body = client.post(f"/api/game/{local_game}/move", json={"warrior": 0, "row": 5, "col": 5}).get_json()
    assert body["ok"] is False
    assert body["message"] == "That move is not allowed."

    assert client.post(f"/api/game/{local_game}/finish", json={"warrior": 1}).get_json()["ok"] is False
    body = client.post(f"/api/game/{local_game}/finish", json={"warrior": 0}).get_json()
    assert body["ok"] is True
    assert _phase(body) == "warrior_two_turn"


def test_skip_level_reset(client, local_game):
    client.post(f"/api/game/{local_game}/room", json={"warrior": 0, "row": 0, "col": 0})
    body = client.post(f"/api/game/{local_game}/skip").get_json()
    assert body["ok"] is True
    assert body["state"]["state"]["number_of_warriors"] == 1

    body = client.post(f"/api/game/{local_game}/level").get_json()
    assert body["state"]["state"]["level"] == 2

    body = client.post(f"/api/game/{local_game}/reset").get_json()
    assert _phase(body) == "warrior_one_select_room"
    assert body["state"]["events"] == []


def test_get_and_delete(client, local_game):
    body = client.get(f"/api/game/{local_game}").get_json()
    assert body["state"]["id"] == local_game
    assert client.delete(f"/api/game/{local_game}").get_json() == {"ok": True}
    assert client.get(f"/api/game/{local_game}").status_code == 404


def test_cpu_game_answers_after_computer_turn(client):
    game = _create(client, mode="cpu", seed=8)["id"]
    body = client.post(f"/api/game/{game}/room", json={"warrior": 0, "row": 0, "col": 0}).get_json()
    assert body["state"]["state"]["warriors"][1]["secret_room"] is not None

    # the computer's turn runs inline under test config
    body = client.post(f"/api/game/{game}/finish", json={"warrior": 0}).get_json()
    assert body["ok"] is True
    assert _phase(body) in ("warrior_one_turn", "game_over")
    assert body["state"]["ai_thinking"] is False

    steer = client.post(f"/api/game/{game}/finish", json={"warrior": 1}).get_json()
    assert steer["ok"] is False
