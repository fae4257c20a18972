"""
project: Waystone
module: game_api.py
License: MIT

Game session HTTP API.

Every endpoint answers ``{"ok", "state", "message"}`` where ``state`` is the
session snapshot and ``message`` the current help line. Unknown ids give 404,
malformed bodies 400 with the validator's ``field``/``code``. Rule violations
(wall, wrong turn, occupied room) are not errors: they come back as
``ok: false`` with status 200.
"""

from functools import wraps
from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, current_app, jsonify, request

from waystone import socketio
from waystone.game.types import GameMode
from waystone.logging_utils import log
from waystone.session import GameSession, create_session, drop_session, get_session
from waystone.websockets.validation import CREATE_GAME, POSITION_ACTION, WARRIOR_ACTION, validate

bp_game = Blueprint("game", __name__, url_prefix="/api/game")


# ---------------------------------------------------------------- sessions
def _relay_event(session: GameSession, event) -> None:
    socketio.emit(
        "game_event",
        {"id": session.id, "event": event.to_dict(), "message": session.help_message},
        to=session.id,
    )


def _background_runner(job):
    return socketio.start_background_task(job)


def _inline_runner(job):
    job()


def new_session(**kwargs) -> GameSession:
    """Create a registered session wired to Socket.IO for events and CPU turns."""
    cfg = current_app.config
    runner = _inline_runner if cfg.get("WAYSTONE_INLINE_AI") else _background_runner
    session = create_session(
        max_sessions=cfg.get("WAYSTONE_MAX_SESSIONS"),
        ai_runner=runner,
        ai_pacing=cfg.get("WAYSTONE_AI_PACING"),
        dragon_delay=cfg.get("WAYSTONE_DRAGON_DELAY"),
        **kwargs,
    )
    session.subscribe(_relay_event)
    return session


def apply_action(session: GameSession, action: str, data: Dict[str, Any]) -> Tuple[bool, Optional[Dict[str, Any]]]:
    """Run one player action. Returns (ok, validation_error)."""
    if action in ("select_room", "move"):
        valid, result = validate(data, POSITION_ACTION)
        if not valid:
            return False, result
        pos = (result["row"], result["col"])
        if action == "select_room":
            return session.select_room(result["warrior"], pos), None
        return session.move(result["warrior"], pos), None
    if action == "finish":
        valid, result = validate(data, WARRIOR_ACTION)
        if not valid:
            return False, result
        return session.finish_turn(result["warrior"]), None
    if action == "skip":
        return session.skip_warrior_two(), None
    if action == "toggle_level":
        session.toggle_level()
        return True, None
    if action == "reset":
        session.reset()
        return True, None
    return False, {"field": "action", "error": "unsupported value", "code": "choices"}


# ------------------------------------------------------------------ helpers
def _bad_request(result):
    return jsonify({"error": result["error"], "field": result["field"], "code": result["code"]}), 400


def _reply(session: GameSession, ok: bool, status: int = 200):
    return jsonify({"ok": ok, "state": session.snapshot(), "message": session.help_message}), status


def session_required(fn):
    @wraps(fn)
    def wrapper(game_id, *args, **kwargs):
        session = get_session(game_id)
        if session is None:
            return jsonify({"error": "not found"}), 404
        return fn(session, *args, **kwargs)

    return wrapper


def _action_endpoint(session: GameSession, action: str):
    ok, error = apply_action(session, action, request.get_json(silent=True) or {})
    if error is not None:
        return _bad_request(error)
    log.info(event="api_action", session=session.id, action=action, ok=ok)
    return _reply(session, ok)


# ------------------------------------------------------------------- routes
@bp_game.route("", methods=["POST"])
def create_game():
    ok, result = validate(request.get_json(silent=True) or {}, CREATE_GAME)
    if not ok:
        return _bad_request(result)
    session = new_session(
        mode=GameMode(result.get("mode", "single")),
        number_of_warriors=result.get("players", 1),
        level=result.get("level", 1),
        seed=result.get("seed"),
    )
    return _reply(session, True, 201)


@bp_game.route("/<game_id>", methods=["GET"])
@session_required
def game_state(session):
    return _reply(session, True)


@bp_game.route("/<game_id>/room", methods=["POST"])
@session_required
def select_room(session):
    return _action_endpoint(session, "select_room")


@bp_game.route("/<game_id>/skip", methods=["POST"])
@session_required
def skip_warrior_two(session):
    return _action_endpoint(session, "skip")


@bp_game.route("/<game_id>/move", methods=["POST"])
@session_required
def move(session):
    return _action_endpoint(session, "move")


@bp_game.route("/<game_id>/finish", methods=["POST"])
@session_required
def finish_turn(session):
    return _action_endpoint(session, "finish")


@bp_game.route("/<game_id>/level", methods=["POST"])
@session_required
def toggle_level(session):
    return _action_endpoint(session, "toggle_level")


@bp_game.route("/<game_id>/reset", methods=["POST"])
@session_required
def reset(session):
    return _action_endpoint(session, "reset")


@bp_game.route("/<game_id>", methods=["DELETE"])
def delete_game(game_id):
    if not drop_session(game_id):
        return jsonify({"error": "not found"}), 404
    log.info(event="api_delete", session=game_id)
    return jsonify({"ok": True})
