"""Private maze memory for the computer-controlled warrior.

The AI only learns about passages by walking through them. Walls come from
the shared discovered-wall table (walls are public once anyone bumps into
one) and locked doors are re-checked against live state every time, because
a door that was passable a turn ago may have locked itself since.

Everything here grows monotonically during a game and is rebuilt by
``reset()``.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Iterator, Optional, Set, Tuple

from ...logging_utils import get_logger
from ..grid import all_positions, in_bounds, neighbor
from ..types import Direction, EdgeMap, GameStateData, Position

log = get_logger("waystone.ai")

RECENT_WINDOW = 12

PASSABLE = "passable"
BLOCKED = "blocked"
UNKNOWN = "unknown"


def exits(pos: Position) -> Iterator[Tuple[Direction, Position]]:
    """(direction, neighbor) pairs that stay on the board."""
    for d in Direction:
        nb = neighbor(pos, d)
        if in_bounds(nb):
            yield d, nb


class MazeKnowledge:
    def __init__(self):
        self.known_passable = EdgeMap()
        self.visited: Set[Position] = set()
        self.dead_ends: Set[Position] = set()
        self.recent: Deque[Position] = deque(maxlen=RECENT_WINDOW)

    def reset(self) -> None:
        self.known_passable = EdgeMap()
        self.visited = set()
        self.dead_ends = set()
        self.recent = deque(maxlen=RECENT_WINDOW)

    # -------------------------------------------------------------- recording
    def record_traversal(self, origin: Position, dest: Position) -> None:
        for d, nb in exits(origin):
            if nb == dest:
                self.known_passable.set_pair(origin, d, True)
                break
        self.visited.add(dest)

    def mark_visited(self, pos: Position) -> None:
        self.visited.add(pos)

    def track_position(self, pos: Position) -> None:
        self.recent.append(pos)

    # ---------------------------------------------------------------- history
    def is_oscillating(self) -> bool:
        r = self.recent
        if len(r) < 4:
            return False
        return r[-1] == r[-3] and r[-2] == r[-4] and r[-1] != r[-2]

    def is_stuck(self) -> bool:
        if len(self.recent) < 8:
            return False
        return len(set(self.recent)) <= 5

    def recent_visit_count(self, pos: Position) -> int:
        return sum(1 for p in self.recent if p == pos)

    def frontier_score(self, pos: Position) -> int:
        return sum(1 for _, nb in exits(pos) if nb not in self.visited)

    # ---------------------------------------------------------- edge classes
    def is_known_passable(self, state: GameStateData, pos: Position, d: Direction) -> bool:
        if not self.known_passable.get(pos, d, False):
            return False
        return not self.is_locked_door(state, pos, d)

    @staticmethod
    def is_locked_door(state: GameStateData, pos: Position, d: Direction) -> bool:
        return state.level == 2 and state.locked_doors.get(pos, d) is True

    @staticmethod
    def is_known_blocked(state: GameStateData, pos: Position, d: Direction) -> bool:
        # Locked doors are retryable, only walls count as blocked.
        return bool(state.discovered_walls.get(pos, d, False))

    def edge_status(self, state: GameStateData, pos: Position, d: Direction) -> str:
        if self.is_known_blocked(state, pos, d):
            return BLOCKED
        if self.is_known_passable(state, pos, d):
            return PASSABLE
        return UNKNOWN

    def is_unknown(self, state: GameStateData, pos: Position, d: Direction) -> bool:
        return self.edge_status(state, pos, d) == UNKNOWN

    # ------------------------------------------------------------- dead ends
    def update_dead_ends(self, state: GameStateData, own_room: Optional[Position]) -> int:
        """Mark tiles whose every edge is resolved and that have <= 1 useful exit.

        Repeats until nothing changes so a dead end at the bottom of a
        corridor propagates back up it. ``own_room`` is never marked.
        Returns the number of newly marked tiles.
        """
        added = 0
        changed = True
        while changed:
            changed = False
            for pos in all_positions():
                if pos in self.dead_ends or pos == own_room:
                    continue
                useful = 0
                unknown = 0
                for d, nb in exits(pos):
                    if self.is_known_blocked(state, pos, d):
                        continue
                    if self.is_unknown(state, pos, d):
                        unknown += 1
                        continue
                    if nb not in self.dead_ends:
                        useful += 1
                if unknown == 0 and useful <= 1:
                    self.dead_ends.add(pos)
                    added += 1
                    changed = True
                    log.debug(event="dead_end_marked", at=pos, exits=useful, total=len(self.dead_ends))
        return added

    def dead_end_depth(self, state: GameStateData, pos: Position, entry: Direction) -> int:
        """Depth of a confirmed dead-end corridor entered at ``pos`` from ``entry``.

        0 means not (provably) a dead end, 1 is a terminal tile, larger values
        count corridor tiles, 99 marks tiles already in the dead-end set.
        """
        if pos in self.dead_ends:
            return 99
        depth = 0
        current, came_from = pos, entry
        checked: Set[Position] = set()
        while current not in checked:
            checked.add(current)
            forward = []
            for d, nb in exits(current):
                if d == came_from or self.is_known_blocked(state, current, d):
                    continue
                if self.is_unknown(state, current, d):
                    return 0
                forward.append((d, nb))
            if not forward:
                return depth + 1
            if len(forward) > 1:
                return 0
            depth += 1
            d, current = forward[0]
            came_from = d.opposite
        return 0


__all__ = ["MazeKnowledge", "exits", "RECENT_WINDOW", "PASSABLE", "BLOCKED", "UNKNOWN"]
