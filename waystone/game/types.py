"""Core data model for the Waystone maze game.

Everything the engine, the AI and the web layer share lives here: grid
constants, the enum vocabulary, the mutable state aggregate and the event
record handed to subscribers.

Invariants:
 - Positions are (row, col) tuples with both components in [0, BOARD_SIZE).
 - Every edge-keyed table (EdgeMap) is dense: one slot per (row, col, direction).
   ``set_pair`` always writes both sides of a physical edge in the same call.
 - GameStateData is only mutated inside GameEngine methods; everything else
   should treat it as read-only or work from ``clone()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, IntEnum
from typing import Any, Dict, Iterator, List, Optional, Tuple

BOARD_SIZE = 8

Position = Tuple[int, int]


class Direction(IntEnum):
    NORTH = 0
    EAST = 1
    SOUTH = 2
    WEST = 3

    @property
    def delta(self) -> Tuple[int, int]:
        return _DELTAS[self]

    @property
    def opposite(self) -> "Direction":
        return Direction((self.value + 2) % 4)


_DELTAS = {
    Direction.NORTH: (-1, 0),
    Direction.EAST: (0, 1),
    Direction.SOUTH: (1, 0),
    Direction.WEST: (0, -1),
}


class PathType(IntEnum):
    UNDEFINED = 0
    OPEN = 1
    WALL = 2
    DOOR = 3


class GameState(IntEnum):
    WAIT = 0
    WARRIOR_ONE_SELECT_ROOM = 1
    WARRIOR_TWO_SELECT_ROOM = 2
    WARRIOR_ONE_TURN = 3
    WARRIOR_TWO_TURN = 4
    GAME_OVER = 5


class DragonState(IntEnum):
    ASLEEP = 0
    AWAKE = 1


class GameMode(str, Enum):
    SINGLE = "single"
    LOCAL = "local"
    ONLINE = "online"
    CPU = "cpu"


class EventType(str, Enum):
    WARRIOR_MOVED = "WARRIOR_MOVED"
    DRAGON_MOVED = "DRAGON_MOVED"
    DRAGON_AWAKE = "DRAGON_AWAKE"
    DRAGON_ATTACK = "DRAGON_ATTACK"
    TREASURE_FOUND = "TREASURE_FOUND"
    WARRIOR_BATTLE = "WARRIOR_BATTLE"
    WARRIOR_KILLED = "WARRIOR_KILLED"
    GAME_WON = "GAME_WON"
    GAME_LOST = "GAME_LOST"
    WALL_HIT = "WALL_HIT"
    DOOR_CLOSED = "DOOR_CLOSED"
    ILLEGAL_MOVE = "ILLEGAL_MOVE"


@dataclass(frozen=True)
class GameEvent:
    """One engine notification. Only the fields relevant to ``type`` are set."""

    type: EventType
    warrior_number: Optional[int] = None
    position: Optional[Position] = None
    direction: Optional[Direction] = None
    winner: Optional[int] = None
    loser: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.type.value}
        if self.warrior_number is not None:
            out["warrior_number"] = self.warrior_number
        if self.position is not None:
            out["position"] = list(self.position)
        if self.direction is not None:
            out["direction"] = self.direction.name.lower()
        if self.winner is not None:
            out["winner"] = self.winner
        if self.loser is not None:
            out["loser"] = self.loser
        return out


class EdgeMap:
    """Dense per-edge table indexed by (row, col, direction).

    Slots hold ``None`` (unset) or any value the owner chooses; the engine
    stores ``True`` for discovered walls and ``True``/``False`` for the
    locked state of each door.
    """

    __slots__ = ("_slots",)

    def __init__(self):
        self._slots: List[Any] = [None] * (BOARD_SIZE * BOARD_SIZE * 4)

    @staticmethod
    def _index(pos: Position, direction: Direction) -> int:
        row, col = pos
        return (row * BOARD_SIZE + col) * 4 + int(direction)

    def get(self, pos: Position, direction: Direction, default: Any = None) -> Any:
        value = self._slots[self._index(pos, direction)]
        return default if value is None else value

    def set(self, pos: Position, direction: Direction, value: Any) -> None:
        self._slots[self._index(pos, direction)] = value

    def set_pair(self, pos: Position, direction: Direction, value: Any) -> None:
        """Write ``value`` on ``pos``'s edge and on the neighbor's mirrored edge."""
        self.set(pos, direction, value)
        dr, dc = direction.delta
        other = (pos[0] + dr, pos[1] + dc)
        if 0 <= other[0] < BOARD_SIZE and 0 <= other[1] < BOARD_SIZE:
            self.set(other, direction.opposite, value)

    def clear_pair(self, pos: Position, direction: Direction) -> None:
        self.set_pair(pos, direction, None)

    def clear(self) -> None:
        self._slots = [None] * len(self._slots)

    def items(self) -> Iterator[Tuple[Tuple[Position, Direction], Any]]:
        for idx, value in enumerate(self._slots):
            if value is None:
                continue
            cell, d = divmod(idx, 4)
            yield (divmod(cell, BOARD_SIZE), Direction(d)), value

    def copy(self) -> "EdgeMap":
        other = EdgeMap()
        other._slots = list(self._slots)
        return other

    def __contains__(self, key: Tuple[Position, Direction]) -> bool:
        pos, direction = key
        return self._slots[self._index(pos, direction)] is not None

    def __len__(self) -> int:
        return sum(1 for v in self._slots if v is not None)


@dataclass
class Warrior:
    lives: int = 3
    secret_room: Optional[Position] = None
    position: Optional[Position] = None
    moves: int = 0
    skip_next_turn: bool = False

    @property
    def alive(self) -> bool:
        return self.lives > 0


@dataclass
class Dragon:
    position: Optional[Position] = None
    state: DragonState = DragonState.ASLEEP
    visible: bool = False
    has_been_visible: bool = False
    last_known_warrior_position: Optional[Position] = None
    treasure_hint_position: Optional[Position] = None


@dataclass
class Treasure:
    room: Optional[Position] = None
    warrior: int = -1
    visible: bool = False


@dataclass
class GameStateData:
    state: GameState = GameState.WAIT
    level: int = 1
    number_of_warriors: int = 1
    mode: GameMode = GameMode.SINGLE
    warriors: List[Warrior] = field(default_factory=lambda: [Warrior(), Warrior()])
    dragon: Dragon = field(default_factory=Dragon)
    treasure: Treasure = field(default_factory=Treasure)
    discovered_walls: EdgeMap = field(default_factory=EdgeMap)
    locked_doors: EdgeMap = field(default_factory=EdgeMap)

    def clone(self) -> "GameStateData":
        # Positions are tuples, so field-level copies are enough.
        return replace(
            self,
            warriors=[replace(w) for w in self.warriors],
            dragon=replace(self.dragon),
            treasure=replace(self.treasure),
            discovered_walls=self.discovered_walls.copy(),
            locked_doors=self.locked_doors.copy(),
        )


__all__ = [
    "BOARD_SIZE",
    "Position",
    "Direction",
    "PathType",
    "GameState",
    "DragonState",
    "GameMode",
    "EventType",
    "GameEvent",
    "EdgeMap",
    "Warrior",
    "Dragon",
    "Treasure",
    "GameStateData",
]
