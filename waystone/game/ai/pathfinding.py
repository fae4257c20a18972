"""Breadth-first search over the AI's known-passable edges."""

from __future__ import annotations

from collections import deque
from typing import Dict, Iterator, List, Optional

from ..grid import chebyshev
from ..types import GameStateData, Position
from .knowledge import MazeKnowledge, exits


def _walk_back(parents: Dict[Position, Optional[Position]], end: Position) -> List[Position]:
    path = [end]
    while parents[path[-1]] is not None:
        path.append(parents[path[-1]])
    path.reverse()
    return path


def bfs_known_path(
    knowledge: MazeKnowledge,
    state: GameStateData,
    start: Position,
    target: Position,
    avoid: Optional[Position] = None,
    avoid_radius: int = -1,
) -> Optional[List[Position]]:
    """Shortest known route from ``start`` to ``target`` (both ends included).

    With ``avoid`` set, tiles within Chebyshev ``avoid_radius`` of it are
    skipped, except the target itself. Radius 0 only skips the avoided tile;
    radius 1 also skips everything the dragon could reach in one step.
    """
    parents: Dict[Position, Optional[Position]] = {start: None}
    queue = deque([start])
    while queue:
        current = queue.popleft()
        if current == target:
            return _walk_back(parents, current)
        for d, nb in exits(current):
            if nb in parents or not knowledge.is_known_passable(state, current, d):
                continue
            if avoid is not None and nb != target and chebyshev(nb, avoid) <= avoid_radius:
                continue
            parents[nb] = current
            queue.append(nb)
    return None


def bfs_safe_path(
    knowledge: MazeKnowledge,
    state: GameStateData,
    start: Position,
    target: Position,
    danger: Position,
    radius: int,
) -> Optional[List[Position]]:
    return bfs_known_path(knowledge, state, start, target, avoid=danger, avoid_radius=radius)


def bfs_order(knowledge: MazeKnowledge, state: GameStateData, start: Position) -> Iterator[Position]:
    """Every tile reachable over known edges, nearest first."""
    seen = {start}
    queue = deque([start])
    while queue:
        current = queue.popleft()
        yield current
        for d, nb in exits(current):
            if nb not in seen and knowledge.is_known_passable(state, current, d):
                seen.add(nb)
                queue.append(nb)


def bfs_distances(knowledge: MazeKnowledge, state: GameStateData, start: Position) -> Dict[Position, int]:
    """Step count to every tile reachable over known edges."""
    dist = {start: 0}
    queue = deque([start])
    while queue:
        current = queue.popleft()
        for d, nb in exits(current):
            if nb not in dist and knowledge.is_known_passable(state, current, d):
                dist[nb] = dist[current] + 1
                queue.append(nb)
    return dist


__all__ = ["bfs_known_path", "bfs_safe_path", "bfs_order", "bfs_distances"]
