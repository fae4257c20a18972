"""
project: Waystone
module: server.py
License: MIT

Server bootstrap for the Waystone game service.

Responsibilities:
 - Configure stdlib logging (rotating file in instance/ plus console) for
   Flask, Werkzeug and Socket.IO.
 - Start the Socket.IO server on the requested host/port.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from waystone import app, socketio
from waystone.logging_utils import log

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def start_server(host="0.0.0.0", port=5000, debug: bool = False):  # pragma: no cover (integration / runtime only)
    """Start the Socket.IO server.

    When debug=True, Flask's debugger and reloader provide verbose tracebacks.
    """
    _configure_logging()
    log.info(
        event="server_config",
        async_mode=socketio.async_mode,
        ai_pacing=app.config["WAYSTONE_AI_PACING"],
        dragon_delay=app.config["WAYSTONE_DRAGON_DELAY"],
        max_sessions=app.config["WAYSTONE_MAX_SESSIONS"],
    )
    extra = {}
    if socketio.async_mode == "threading":
        # plain Werkzeug is fine for local play; eventlet/gevent get picked up when installed
        extra["allow_unsafe_werkzeug"] = True
    try:
        print(f"[INFO] Starting Socket.IO server on {host}:{port} (async_mode={socketio.async_mode})")
        socketio.run(app, host=host, port=port, debug=debug, **extra)
    except KeyboardInterrupt:
        print("\n[INFO] Server stopped by user (Ctrl+C)")
        sys.exit(0)


def _configure_logging(level=None):
    """Configure logging to both console and a rotating file in instance/.

    The file path will be instance/app.log. Retains a few backups to avoid growth.
    Returns the log file path.
    """
    if level is None:
        level = _LEVELS.get(os.getenv("WAYSTONE_LOG_LEVEL", "info").lower(), logging.INFO)
    log_dir = app.instance_path
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, "app.log")

    root = logging.getLogger()
    root.setLevel(level)

    file_handler = RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(LOG_FORMAT))

    # Avoid duplicate handlers if reconfigured
    for h in list(root.handlers):
        root.removeHandler(h)

    root.addHandler(file_handler)
    root.addHandler(console)
    return log_path
