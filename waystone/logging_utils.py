"""Structured key=value logging for game events.

Each record is one line: level, timestamp, any bound context, then the call's
fields, then the logger name. ``WAYSTONE_LOG_JSON`` switches to one compact
JSON object per line. Engines and AI controllers owned by a session log
through a logger bound to that session, so every line of a game carries its id:

    from waystone.logging_utils import get_logger
    log = get_logger("waystone.engine").bind(session="3f2a9c01d4e5")
    log.info(event="dragon_move", frm=(2, 3), to=(3, 4))
    # level=info ts=... session=3f2a9c01d4e5 event=dragon_move frm=(2,3) to=(3,4) logger=waystone.engine

``WAYSTONE_LOG_LEVEL`` (debug/info/warn/error, ``warning`` accepted) is read
on every call so tests and the CLI can change it at runtime. Fields set to
None are dropped. Reserved keys: level, ts, logger.
"""

from __future__ import annotations

import json
import os
import sys
import time
from typing import Any, Dict, Optional

LEVELS = {"debug": 10, "info": 20, "warn": 30, "error": 40}
_ALIASES = {"warning": "warn", "err": "error"}
_TRUTHY = ("1", "true", "yes", "on")


def _current_level() -> int:
    name = os.getenv("WAYSTONE_LOG_LEVEL", "info").lower()
    return LEVELS.get(_ALIASES.get(name, name), LEVELS["info"])


def _json_mode() -> bool:
    return os.getenv("WAYSTONE_LOG_JSON", "0").lower() in _TRUTHY


def _text(value: Any) -> str:
    if isinstance(value, (int, float)):
        return str(value)
    # positions print as (2,3) so a line splits cleanly on spaces
    return str(value).replace(" ", "")


def _format(level: str, fields: Dict[str, Any]) -> str:
    ts = int(time.time())
    record = {k: v for k, v in fields.items() if v is not None}
    if _json_mode():
        return json.dumps({"level": level, "ts": ts, **record}, separators=(",", ":"), default=str)
    return " ".join([f"level={level}", f"ts={ts}"] + [f"{k}={_text(v)}" for k, v in record.items()])


class _Logger:
    def __init__(self, name: str, context: Optional[Dict[str, Any]] = None):
        self.name = name
        self.context = dict(context or {})

    def bind(self, **context) -> "_Logger":
        """Child logger that adds ``context`` to every record."""
        return _Logger(self.name, {**self.context, **context})

    def enabled(self, lvl: str) -> bool:
        return LEVELS[lvl] >= _current_level()

    def _log(self, lvl: str, **fields):
        if not self.enabled(lvl):
            return
        record = {**self.context, **fields}
        record.setdefault("logger", self.name)
        print(_format(lvl, record), file=sys.stderr if lvl == "error" else sys.stdout)

    def debug(self, **fields):
        self._log("debug", **fields)

    def info(self, **fields):
        self._log("info", **fields)

    def warn(self, **fields):
        self._log("warn", **fields)

    def error(self, **fields):
        self._log("error", **fields)


_LOGGER_CACHE: Dict[str, _Logger] = {}


def get_logger(name: str) -> _Logger:
    if name not in _LOGGER_CACHE:
        _LOGGER_CACHE[name] = _Logger(name)
    return _LOGGER_CACHE[name]


log = get_logger("waystone")

__all__ = ["get_logger", "log", "LEVELS"]
