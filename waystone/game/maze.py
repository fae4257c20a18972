"""
project: Waystone
module: maze.py
License: MIT

Randomized depth-first maze carve for the 8x8 chamber grid.

Design goals:
 - Every chamber reachable from every other through Open/Door edges.
 - Shared edges always agree on both sides (``Maze.set_path`` is the only writer).
 - Boundary edges start as Wall and are never revisited.
 - No Undefined edge survives ``generate``.
 - A supplied seed makes generation fully deterministic without touching the
   module-level ``random`` state.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from ..logging_utils import get_logger
from .config import GameSettings
from .grid import all_positions, in_bounds, neighbor
from .types import BOARD_SIZE, Direction, PathType, Position

log = get_logger("waystone.maze")

LAST = BOARD_SIZE - 1

Chambers = List[List[List[PathType]]]


def _blank_chambers() -> Chambers:
    rows: Chambers = []
    for r in range(BOARD_SIZE):
        row = []
        for c in range(BOARD_SIZE):
            row.append(
                [
                    PathType.WALL if r == 0 else PathType.UNDEFINED,
                    PathType.WALL if c == LAST else PathType.UNDEFINED,
                    PathType.WALL if r == LAST else PathType.UNDEFINED,
                    PathType.WALL if c == 0 else PathType.UNDEFINED,
                ]
            )
        rows.append(row)
    return rows


@dataclass
class Maze:
    chambers: Chambers = field(default_factory=_blank_chambers)
    seed: Optional[int] = None

    def path(self, pos: Position, direction: Direction) -> PathType:
        return self.chambers[pos[0]][pos[1]][direction]

    def set_path(self, pos: Position, direction: Direction, path_type: PathType) -> None:
        self.chambers[pos[0]][pos[1]][direction] = path_type
        other = neighbor(pos, direction)
        if in_bounds(other):
            self.chambers[other[0]][other[1]][direction.opposite] = path_type

    def is_passable(self, pos: Position, direction: Direction) -> bool:
        return self.path(pos, direction) in (PathType.OPEN, PathType.DOOR)

    def reachable(self, start: Position = (0, 0)) -> Set[Position]:
        seen = {start}
        stack = [start]
        while stack:
            cur = stack.pop()
            for d in Direction:
                if not self.is_passable(cur, d):
                    continue
                nxt = neighbor(cur, d)
                if in_bounds(nxt) and nxt not in seen:
                    seen.add(nxt)
                    stack.append(nxt)
        return seen

    def is_connected(self) -> bool:
        return len(self.reachable()) == BOARD_SIZE * BOARD_SIZE

    def metrics(self) -> Dict[str, int]:
        counts = {PathType.OPEN: 0, PathType.WALL: 0, PathType.DOOR: 0, PathType.UNDEFINED: 0}
        dead_ends = 0
        for pos in all_positions():
            exits = 0
            for d in (Direction.EAST, Direction.SOUTH):
                nxt = neighbor(pos, d)
                if in_bounds(nxt):
                    counts[self.path(pos, d)] += 1
            for d in Direction:
                if self.is_passable(pos, d):
                    exits += 1
            if exits == 1:
                dead_ends += 1
        return {
            "open_edges": counts[PathType.OPEN],
            "door_edges": counts[PathType.DOOR],
            "wall_edges": counts[PathType.WALL],
            "undefined_edges": counts[PathType.UNDEFINED],
            "dead_ends": dead_ends,
            "reachable": len(self.reachable()),
        }

    def rows(self) -> List[str]:
        """ASCII rendering: ``|``/``---`` wall, ``D``/``-D-`` door, blank open."""
        out = ["+" + "---+" * BOARD_SIZE]
        for r in range(BOARD_SIZE):
            line = "|"
            below = "+"
            for c in range(BOARD_SIZE):
                east = self.chambers[r][c][Direction.EAST]
                south = self.chambers[r][c][Direction.SOUTH]
                line += "   " + {PathType.WALL: "|", PathType.DOOR: "D"}.get(east, " ")
                below += {PathType.WALL: "---", PathType.DOOR: "-D-"}.get(south, "   ") + "+"
            out.append(line)
            out.append(below)
        return out


class MazeGenerator:
    def __init__(self, settings: Optional[GameSettings] = None, rng: Optional[random.Random] = None):
        self.settings = settings or GameSettings()
        self.rng = rng

    def generate(self, seed: Optional[int] = None) -> Maze:
        r = random.Random(seed) if seed is not None else (self.rng or random)
        maze = Maze(seed=seed)
        visited = [[False] * BOARD_SIZE for _ in range(BOARD_SIZE)]

        stack: List[Position] = [(r.randrange(BOARD_SIZE), r.randrange(BOARD_SIZE))]
        while stack:
            pos = stack[-1]
            visited[pos[0]][pos[1]] = True
            if self.settings.edge_wall_bias:
                self._apply_edge_wall_bias(maze, pos, visited, r)
            options = self._available_directions(maze, pos)
            if not options:
                stack.pop()
                continue
            d = r.choice(options)
            maze.set_path(pos, d, self._open_or_door(r))
            stack.append(neighbor(pos, d))

        self._resolve_undefined(maze, r)
        self._remove_walls(maze, r)
        log.debug(event="maze_generated", seed=seed, **maze.metrics())
        return maze

    def _apply_edge_wall_bias(self, maze: Maze, pos: Position, visited, r) -> None:
        for d in Direction:
            other = neighbor(pos, d)
            if not in_bounds(other) or not visited[other[0]][other[1]]:
                continue
            if maze.path(pos, d) != PathType.UNDEFINED:
                continue
            maze.set_path(pos, d, self._wall_or_not(r, self._biased_wall_prob(pos, d)))

    def _biased_wall_prob(self, pos: Position, d: Direction) -> float:
        # N/S edges on the outer columns (and E/W edges on the outer rows) run
        # along the perimeter; keep them solid.
        if d in (Direction.NORTH, Direction.SOUTH):
            on_edge = pos[1] in (0, LAST)
        else:
            on_edge = pos[0] in (0, LAST)
        if self.settings.edge_wall_bias and on_edge:
            return 1.0
        return self.settings.wall_prob

    def _available_directions(self, maze: Maze, pos: Position) -> List[Direction]:
        row, col = pos
        paths = maze.chambers[row][col]
        bias = self.settings.edge_wall_bias
        opts: List[Direction] = []
        # A chamber pinned against the perimeter weights the inward direction.
        inward = (
            (Direction.NORTH, row == 0, Direction.SOUTH),
            (Direction.EAST, col == LAST, Direction.WEST),
            (Direction.SOUTH, row == LAST, Direction.NORTH),
            (Direction.WEST, col == 0, Direction.EAST),
        )
        for d, pinned, away in inward:
            if paths[d] == PathType.UNDEFINED:
                opts.append(d)
            elif bias and pinned and paths[away] == PathType.UNDEFINED:
                opts.extend((away, away))
        return opts

    def _resolve_undefined(self, maze: Maze, r) -> None:
        for pos in all_positions():
            for d in Direction:
                if maze.path(pos, d) == PathType.UNDEFINED:
                    maze.set_path(pos, d, self._wall_or_not(r, self._biased_wall_prob(pos, d)))

    def _remove_walls(self, maze: Maze, r) -> None:
        s = self.settings
        if s.remove_wall_prob <= 0 or s.remove_wall_threshold >= 4:
            return
        for row in range(1, LAST):
            for col in range(1, LAST):
                pos = (row, col)
                walls = [d for d in Direction if maze.path(pos, d) == PathType.WALL]
                if len(walls) >= s.remove_wall_threshold and r.random() < s.remove_wall_prob:
                    maze.set_path(pos, r.choice(walls), self._open_or_door(r))

    def _wall_or_not(self, r, wall_prob: float) -> PathType:
        return PathType.WALL if r.random() < wall_prob else self._open_or_door(r)

    def _open_or_door(self, r) -> PathType:
        return PathType.DOOR if r.random() < self.settings.door_prob else PathType.OPEN


__all__ = ["Maze", "MazeGenerator"]
