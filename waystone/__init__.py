"""
project: Waystone
module: __init__.py
License: MIT

Flask application and Socket.IO setup.

Configuration is sourced from environment variables (optionally loaded from
a ``.env`` file) with development defaults. A local ``instance/`` directory
holds runtime files such as the server log.
"""

import logging
import os
import uuid

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_socketio import SocketIO

# Load .env if present so SECRET_KEY, WAYSTONE_* etc. can be supplied
# without exporting shell variables during development.
load_dotenv()

app = Flask(__name__, instance_relative_config=True)

try:
    os.makedirs(app.instance_path, exist_ok=True)
except OSError:
    # read-only checkouts still serve; only the file log is lost
    logging.getLogger(__name__).warning("instance path %s not writable", app.instance_path)


def _env_number(name, default, cast):
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return cast(raw)
    except ValueError:
        logging.getLogger(__name__).warning("ignoring invalid %s=%r", name, raw)
        return default


app.config.update(
    SECRET_KEY=os.getenv("SECRET_KEY", "dev-secret-change-me"),
    JSON_SORT_KEYS=False,
    WAYSTONE_SETTINGS=os.getenv("WAYSTONE_SETTINGS", ""),
    WAYSTONE_AI_PACING=_env_number("WAYSTONE_AI_PACING", 1.0, float),
    WAYSTONE_DRAGON_DELAY=_env_number("WAYSTONE_DRAGON_DELAY", 2.5, float),
    WAYSTONE_MAX_SESSIONS=_env_number("WAYSTONE_MAX_SESSIONS", 32, int),
)

# Let Flask-SocketIO select best async_mode based on installed deps (eventlet/gevent/threading)
socketio = SocketIO(
    app,
    async_mode=os.getenv("SOCKETIO_ASYNC_MODE") or None,
    cors_allowed_origins=os.getenv("CORS_ALLOWED_ORIGINS", "*"),
    ping_interval=20,
    ping_timeout=10,
    transports=["websocket", "polling"],
)


# Register HTTP blueprints and socket handlers after app/socketio exist
from waystone.routes.game_api import bp_game  # noqa: E402

app.register_blueprint(bp_game)

from waystone.websockets import game as _ws_game  # noqa: F401,E402


def create_app():
    """Return the Flask app instance."""
    return app


# Unhandled errors: log with a short id the client can quote back
@app.errorhandler(500)
def internal_error(e):
    error_id = uuid.uuid4().hex[:8]
    logging.exception("Unhandled exception (id=%s)", error_id)
    return jsonify({"error": "internal server error", "error_id": error_id}), 500
