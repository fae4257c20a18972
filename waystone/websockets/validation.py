"""Payload validation shared by the game HTTP API and the Socket.IO handlers.

A schema maps each field to ``(type, required, extras)``:

    POSITION_ACTION = {
        'warrior': ('int', True, {'min': 0, 'max': 1}),
        'row': ('int', True, {'min': 0, 'max': 7}),
    }
    ok, data_or_err = validate(payload, POSITION_ACTION)

Types are 'str' (extras: min_len, max_len, allow_empty, choices) and 'int'
(extras: min, max). A missing or null optional field is left out of the
result; strings come back stripped.

Failures look like ``{'field': 'row', 'error': 'out of range', 'code': 'max'}``
so the HTTP layer can answer 400 with it and the socket layer can emit it
as an ``error`` event unchanged.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Tuple

from waystone.game.types import BOARD_SIZE

Failure = Dict[str, str]


def _error(field: str, message: str, code: str) -> Failure:
    return {'field': field, 'error': message, 'code': code}


def _fail(field: str, message: str, code: str) -> Tuple[bool, Failure]:
    return False, _error(field, message, code)


def _check_str(name: str, value: Any, extras: dict) -> Tuple[Optional[Failure], Any]:
    if not isinstance(value, str):
        return _error(name, 'expected str', 'type'), None
    text = value if extras.get('allow_empty') else value.strip()
    if not text and not extras.get('allow_empty'):
        return _error(name, 'must not be empty', 'empty'), None
    if len(value) > extras.get('max_len', len(value)):
        return _error(name, 'too long', 'max_len'), None
    if len(text) < extras.get('min_len', 0):
        return _error(name, 'too short', 'min_len'), None
    if 'choices' in extras and text not in extras['choices']:
        return _error(name, 'unsupported value', 'choices'), None
    return None, text


def _check_int(name: str, value: Any, extras: dict) -> Tuple[Optional[Failure], Any]:
    # JSON true/false arrive as bool, which Python counts as int
    if isinstance(value, bool) or not isinstance(value, int):
        return _error(name, 'expected int', 'type'), None
    if 'min' in extras and value < extras['min']:
        return _error(name, 'out of range', 'min'), None
    if 'max' in extras and value > extras['max']:
        return _error(name, 'out of range', 'max'), None
    return None, value


CHECKERS: Dict[str, Callable[[str, Any, dict], Tuple[Optional[Failure], Any]]] = {
    'str': _check_str,
    'int': _check_int,
}


def validate(payload: Any, schema: Dict[str, tuple]) -> Tuple[bool, Dict[str, Any]]:
    """Return ``(True, normalized)`` or ``(False, failure)`` for the first bad field."""
    if not isinstance(payload, dict):
        return _fail('__root__', 'payload must be an object', 'type')
    out: Dict[str, Any] = {}
    for name, spec in schema.items():
        type_name, required = spec[0], spec[1]
        extras = spec[2] if len(spec) > 2 else {}
        check = CHECKERS.get(type_name)
        if check is None:
            return _fail('__schema__', f'unsupported type {type_name}', 'schema')
        if payload.get(name) is None:
            if required:
                return _fail(name, 'missing required field', 'required')
            continue
        failure, value = check(name, payload[name], extras)
        if failure is not None:
            return False, failure
        out[name] = value
    return True, out


ACTIONS = ('select_room', 'move', 'finish', 'skip', 'toggle_level', 'reset')
MODES = ('single', 'local', 'online', 'cpu')

_ROOM = ('str', True, {'min_len': 1, 'max_len': 64})
_WARRIOR = ('int', True, {'min': 0, 'max': 1})
_COORD = ('int', True, {'min': 0, 'max': BOARD_SIZE - 1})

CREATE_GAME = {
    'mode': ('str', False, {'choices': MODES}),
    'players': ('int', False, {'min': 1, 'max': 2}),
    'level': ('int', False, {'min': 1, 'max': 2}),
    'seed': ('int', False, {'min': 0}),
}
POSITION_ACTION = {
    'warrior': _WARRIOR,
    'row': _COORD,
    'col': _COORD,
}
WARRIOR_ACTION = {
    'warrior': _WARRIOR,
}
JOIN_GAME = {
    'room': _ROOM,
}
LEAVE_GAME = JOIN_GAME
GAME_ACTION = {
    'room': _ROOM,
    'action': ('str', True, {'choices': ACTIONS}),
}

__all__ = [
    'validate',
    'ACTIONS',
    'MODES',
    'CREATE_GAME',
    'POSITION_ACTION',
    'WARRIOR_ACTION',
    'JOIN_GAME',
    'LEAVE_GAME',
    'GAME_ACTION',
]
