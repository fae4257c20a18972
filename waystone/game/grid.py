"""Small pure helpers for 8x8 board geometry."""

from __future__ import annotations

from typing import Iterator, Optional

from .types import BOARD_SIZE, Direction, Position


def in_bounds(pos: Position) -> bool:
    return 0 <= pos[0] < BOARD_SIZE and 0 <= pos[1] < BOARD_SIZE


def all_positions() -> Iterator[Position]:
    for r in range(BOARD_SIZE):
        for c in range(BOARD_SIZE):
            yield (r, c)


def neighbor(pos: Position, direction: Direction) -> Position:
    dr, dc = direction.delta
    return (pos[0] + dr, pos[1] + dc)


def direction_between(a: Position, b: Position) -> Optional[Direction]:
    """Direction leading from ``a`` to ``b`` when they are 4-adjacent, else None."""
    dr, dc = b[0] - a[0], b[1] - a[1]
    for d in Direction:
        if d.delta == (dr, dc):
            return d
    return None


def is_adjacent(a: Position, b: Position) -> bool:
    return manhattan(a, b) == 1


def manhattan(a: Position, b: Position) -> int:
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


def chebyshev(a: Position, b: Position) -> int:
    return max(abs(a[0] - b[0]), abs(a[1] - b[1]))


def sign(n: int) -> int:
    return (n > 0) - (n < 0)


__all__ = [
    "in_bounds",
    "all_positions",
    "neighbor",
    "direction_between",
    "is_adjacent",
    "manhattan",
    "chebyshev",
    "sign",
]
