"""Waystone command line.

    python run.py server [--host H] [--port P] [--debug]
    python run.py maze [--seed N] [--json]

``server`` (the default) hosts games over HTTP and Socket.IO; ``maze`` prints
one generated maze with its metrics. Flags win over environment variables,
which may come from a .env file (``--env-file`` or ./.env).
"""

import argparse
import json
import os
import signal
import sys
from textwrap import dedent

from colorama import Fore, Style
from colorama import init as _color_init
from dotenv import load_dotenv

_color_init()

# Plain output when piped or captured by pytest
try:
    _COLOR_ENABLED = sys.stdout.isatty()
except (AttributeError, ValueError):  # pragma: no cover - detached/closed stdout
    _COLOR_ENABLED = False

_ROOT = os.path.dirname(os.path.abspath(__file__))

ENV_HELP = dedent(
    """
    Environment:
      HOST, PORT              Bind address and port (0.0.0.0:5000)
      WAYSTONE_SETTINGS       JSON object overriding game rule settings
      WAYSTONE_AI_PACING      Computer-player delay multiplier, 0 disables pauses (1.0)
      WAYSTONE_DRAGON_DELAY   Seconds input stays locked while the dragon moves (2.5)
      WAYSTONE_MAX_SESSIONS   Games kept in memory before the oldest is dropped (32)
      WAYSTONE_LOG_LEVEL      debug | info | warn | error (info)
      WAYSTONE_LOG_JSON       1 for one JSON object per log line

    Examples:
      python run.py                          serve on 0.0.0.0:5000
      python run.py server --port 8080       serve on another port
      python run.py --env-file prod.env      load variables first
      python run.py maze --seed 42 --json    dump a reproducible maze
    """
)


def _load_version() -> str:
    try:
        with open(os.path.join(_ROOT, "VERSION"), "r", encoding="utf-8") as f:
            return f.read().strip()
    except OSError:
        return "0.1.0"


__version__ = _load_version()


def _paint(text, *codes) -> str:
    if not _COLOR_ENABLED:
        return str(text)
    return "".join(codes) + str(text) + Style.RESET_ALL


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="Waystone",
        description="Waystone maze game: Socket.IO server and maze tools.",
        epilog=ENV_HELP,
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--env-file", dest="env_file", help="Load this .env file before reading settings")
    parser.add_argument("--version", action="version", version=f"Waystone Server {__version__}")

    commands = parser.add_subparsers(dest="command")

    server = commands.add_parser("server", help="Host games over HTTP and Socket.IO")
    server.add_argument("--host", default=None, help="Interface to bind (env HOST, default 0.0.0.0)")
    server.add_argument("--port", type=int, default=None, help="Port to listen on (env PORT, default 5000)")
    server.add_argument("--debug", action="store_true", help="Flask debug mode")

    maze = commands.add_parser(
        "maze",
        help="Print one generated maze",
        formatter_class=argparse.RawTextHelpFormatter,
        description="Legend: '|' and '---' are walls, 'D' and '-D-' are doors.",
    )
    maze.add_argument("--seed", type=int, default=None, help="Seed for a reproducible maze")
    maze.add_argument("--json", action="store_true", help="Print chambers and metrics as JSON")
    # top-level defaults cover `run.py --env-file x` with no subcommand
    parser.set_defaults(command="server", host=None, port=None, debug=False)
    return parser


def parse_args(argv: list) -> argparse.Namespace:
    # bare `python run.py` serves
    return build_parser().parse_args(argv or ["server"])


def print_maze(seed=None, as_json: bool = False) -> int:
    from waystone.game import MazeGenerator, load_settings
    from waystone.serialize import maze_to_dict

    maze = MazeGenerator(load_settings()).generate(seed)
    if as_json:
        print(json.dumps(maze_to_dict(maze), indent=2))
        return 0
    print(_paint(f"Maze seed={seed if seed is not None else 'random'}", Fore.CYAN, Style.BRIGHT))
    print("\n".join(maze.rows()))
    for key, val in maze.metrics().items():
        print(f"  {_paint(key + ':', Fore.YELLOW):18} {_paint(val, Fore.GREEN)}")
    return 0 if maze.is_connected() else 1


def _print_banner(host: str, port: int, debug: bool) -> None:
    rule = _paint("-" * 44, Fore.MAGENTA)
    rows = [
        ("Host", host),
        ("Port", port),
        ("Version", __version__),
        ("AI pacing", os.getenv("WAYSTONE_AI_PACING", "1.0")),
        ("Dragon delay", os.getenv("WAYSTONE_DRAGON_DELAY", "2.5")),
        ("Debug", "on" if debug else "off"),
    ]
    print(rule)
    print(f"  {_paint('Waystone', Fore.CYAN, Style.BRIGHT)}")
    print(rule)
    for name, value in rows:
        print(f"  {_paint(name + ':', Fore.YELLOW):16} {_paint(value, Fore.GREEN)}")
    print(rule)


def run_server(args: argparse.Namespace) -> int:
    host = args.host or os.getenv("HOST", "0.0.0.0")
    port = args.port or int(os.getenv("PORT", "5000"))
    debug = args.debug or os.getenv("FLASK_DEBUG") == "1"

    def _on_sigint(sig, frame):
        print("\n[INFO] Shutting down server...")
        sys.exit(0)

    signal.signal(signal.SIGINT, _on_sigint)

    # waystone reads its env-driven config at import time
    from waystone.logging_utils import log
    from waystone.server import start_server

    _print_banner(host, port, debug)
    log.info(event="startup", host=host, port=port, debug=debug, version=__version__)
    start_server(host=host, port=port, debug=debug)
    return 0


def main(argv: list) -> int:
    args = parse_args(argv)
    if args.env_file:
        load_dotenv(args.env_file)
    else:
        load_dotenv()

    if args.command == "maze":
        return print_maze(seed=args.seed, as_json=args.json)
    return run_server(args)


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
