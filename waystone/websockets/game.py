"""Socket.IO game handlers.

Events:
    - join_game: Join a game room; payload { room } where room is the session id
    - leave_game: Leave a game room; payload { room }
    - game_action: Submit an action; payload { room, action, warrior?, row?, col? }

Emits:
    - game_state: Session snapshot (to the joiner, and to the room after actions)
    - game_event: Engine events, relayed by the session listener in game_api
    - status: Room membership updates (join/leave)
    - error: { message, field, code } for rejected payloads
"""

import time

from flask import request
from flask_socketio import emit, join_room, leave_room

from waystone import socketio
from waystone.logging_utils import log as _log
from waystone.routes.game_api import apply_action
from waystone.session import get_session

from .validation import GAME_ACTION, JOIN_GAME, LEAVE_GAME, validate

# Track active game rooms with simple membership counts for diagnostics
# Structure: { room_name: { 'members': set([sid,...]), 'created': timestamp } }
active_games = {}


def _error(kind, result):
    emit('error', {'message': f"Invalid {kind}: {result['error']}", 'field': result['field'], 'code': result['code']})


def _unknown_room(room):
    emit('error', {'message': f"Unknown game: {room}", 'field': 'room', 'code': 'not_found'})


@socketio.on('join_game')
def handle_join_game(data):
    ok, result = validate(data or {}, JOIN_GAME)
    if not ok:
        _error('join_game', result)
        return
    room = result['room']
    session = get_session(room)
    if session is None:
        _unknown_room(room)
        return
    join_room(room)
    sid = request.sid
    info = active_games.setdefault(room, {'members': set(), 'created': time.time()})
    info['members'].add(sid)
    emit('status', {'msg': 'A player has joined the game.', 'members': len(info['members'])}, room=room)
    emit('game_state', session.snapshot())
    _log.info(event="join_game", room=room, members=len(info['members']))


@socketio.on('leave_game')
def handle_leave_game(data):
    ok, result = validate(data or {}, LEAVE_GAME)
    if not ok:
        _error('leave_game', result)
        return
    room = result['room']
    leave_room(room)
    sid = request.sid
    info = active_games.get(room)
    if info:
        info['members'].discard(sid)
        if not info['members']:
            active_games.pop(room, None)
    emit('status', {'msg': 'A player has left the game.'}, room=room)
    _log.info(event="leave_game", room=room, remaining=len(info['members']) if info else 0)


@socketio.on('game_action')
def handle_game_action(data):
    payload = data or {}
    ok, result = validate(payload, GAME_ACTION)
    if not ok:
        _error('game_action', result)
        return
    room = result['room']
    action = result['action']
    session = get_session(room)
    if session is None:
        _unknown_room(room)
        return
    applied, error = apply_action(session, action, payload)
    if error is not None:
        _error('game_action', error)
        return
    emit('game_state', dict(session.snapshot(), ok=applied), room=room)
    _log.info(event="game_action", room=room, action=action, ok=applied)
