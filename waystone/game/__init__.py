"""Public game package interface.

Maze generation, the rules engine and the shared data model. Nothing here
knows about Flask or Socket.IO.
"""

from .config import GameSettings, load_settings  # noqa: F401
from .engine import GameEngine  # noqa: F401
from .maze import Maze, MazeGenerator  # noqa: F401
from .types import (  # noqa: F401
    BOARD_SIZE,
    Direction,
    Dragon,
    DragonState,
    EdgeMap,
    EventType,
    GameEvent,
    GameMode,
    GameState,
    GameStateData,
    PathType,
    Position,
    Treasure,
    Warrior,
)

__all__ = [
    "GameSettings",
    "load_settings",
    "GameEngine",
    "Maze",
    "MazeGenerator",
    "BOARD_SIZE",
    "Direction",
    "Dragon",
    "DragonState",
    "EdgeMap",
    "EventType",
    "GameEvent",
    "GameMode",
    "GameState",
    "GameStateData",
    "PathType",
    "Position",
    "Treasure",
    "Warrior",
]
