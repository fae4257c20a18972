"""JSON-ready views of game state, events and mazes.

Enums go out as lowercase names, positions as ``[row, col]`` lists, and
edge tables as lists of ``{"row", "col", "direction", ...}`` records so a
client never has to know the dense slot layout.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from .game.maze import Maze
from .game.types import EdgeMap, GameStateData, PathType, Position, Warrior


def _pos(p: Optional[Position]) -> Optional[List[int]]:
    return list(p) if p is not None else None


def _edges(table: EdgeMap, key: str) -> List[Dict[str, Any]]:
    out = []
    for (pos, d), value in table.items():
        out.append({"row": pos[0], "col": pos[1], "direction": d.name.lower(), key: value})
    return out


def warrior_to_dict(w: Warrior) -> Dict[str, Any]:
    return {
        "lives": w.lives,
        "alive": w.alive,
        "secret_room": _pos(w.secret_room),
        "position": _pos(w.position),
        "moves": w.moves,
    }


def state_to_dict(state: GameStateData, reveal: bool = False) -> Dict[str, Any]:
    """Serialize ``state``.

    The dragon position and the treasure room are hidden until visible,
    unless ``reveal`` is set (debug views and finished games).
    """
    dragon = state.dragon
    treasure = state.treasure
    show_dragon = reveal or dragon.visible
    show_treasure = reveal or treasure.visible
    return {
        "state": state.state.name.lower(),
        "level": state.level,
        "mode": state.mode.value,
        "number_of_warriors": state.number_of_warriors,
        "warriors": [warrior_to_dict(w) for w in state.warriors[: state.number_of_warriors]],
        "dragon": {
            "state": dragon.state.name.lower(),
            "visible": dragon.visible,
            "position": _pos(dragon.position) if show_dragon else None,
            "treasure_hint_position": _pos(dragon.treasure_hint_position),
        },
        "treasure": {
            "room": _pos(treasure.room) if show_treasure else None,
            "warrior": treasure.warrior,
            "visible": treasure.visible,
        },
        "discovered_walls": [e for e in _edges(state.discovered_walls, "wall") if e["wall"]],
        "locked_doors": _edges(state.locked_doors, "locked") if state.level == 2 else [],
    }


def maze_to_dict(maze: Maze) -> Dict[str, Any]:
    return {
        "seed": maze.seed,
        "chambers": [[[PathType(p).name.lower() for p in cell] for cell in row] for row in maze.chambers],
        "metrics": maze.metrics(),
    }


__all__ = ["state_to_dict", "maze_to_dict", "warrior_to_dict"]
