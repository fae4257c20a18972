import pytest

from waystone import socketio
from waystone.websockets.game import active_games


@pytest.fixture()
def sio(test_app):
    # Flask-SocketIO provides a test client we can use against the global socketio instance
    test_client = socketio.test_client(test_app, flask_test_client=test_app.test_client())
    yield test_client
    test_client.disconnect()
    active_games.clear()


@pytest.fixture()
def game_id(client):
    resp = client.post("/api/game", json={"mode": "local", "players": 2, "seed": 4})
    return resp.get_json()["state"]["id"]


def _extract(event_name, received):
    return [p["args"][0] for p in received if p["name"] == event_name]


def test_join_game_sends_state(sio, game_id):
    sio.emit("join_game", {"room": game_id})
    rec = sio.get_received()
    assert any("joined the game" in s["msg"] for s in _extract("status", rec))
    states = _extract("game_state", rec)
    assert states and states[-1]["id"] == game_id
    assert len(active_games[game_id]["members"]) == 1


def test_join_unknown_game(sio):
    sio.emit("join_game", {"room": "missing"})
    errors = _extract("error", sio.get_received())
    assert errors[-1]["code"] == "not_found"
    assert errors[-1]["field"] == "room"


def test_join_requires_room(sio):
    sio.emit("join_game", {})
    errors = _extract("error", sio.get_received())
    assert errors[-1]["field"] == "room"
    assert errors[-1]["code"] == "required"
    assert errors[-1]["message"].startswith("Invalid join_game")


def test_leave_game_drops_membership(sio, game_id):
    sio.emit("join_game", {"room": game_id})
    sio.get_received()
    sio.emit("leave_game", {"room": game_id})
    sio.get_received()
    assert game_id not in active_games


def test_game_action_broadcasts_state_and_events(sio, game_id):
    sio.emit("join_game", {"room": game_id})
    sio.get_received()  # clear join status
    sio.emit("game_action", {"room": game_id, "action": "select_room", "warrior": 0, "row": 0, "col": 0})
    rec = sio.get_received()
    states = _extract("game_state", rec)
    assert states[-1]["ok"] is True
    assert states[-1]["state"]["state"] == "warrior_two_select_room"

    sio.emit("game_action", {"room": game_id, "action": "select_room", "warrior": 1, "row": 0, "col": 0})
    rec = sio.get_received()
    events = _extract("game_event", rec)
    assert events and events[-1]["event"]["type"] == "ILLEGAL_MOVE"
    assert _extract("game_state", rec)[-1]["ok"] is False


def test_game_action_rejects_unknown_action(sio, game_id):
    sio.emit("game_action", {"room": game_id, "action": "attack"})
    errors = _extract("error", sio.get_received())
    assert errors[-1]["field"] == "action"
    assert errors[-1]["code"] == "choices"


def test_game_action_validates_coordinates(sio, game_id):
    sio.emit("game_action", {"room": game_id, "action": "move", "warrior": 0, "row": 0})
    errors = _extract("error", sio.get_received())
    assert errors[-1]["field"] == "col"
