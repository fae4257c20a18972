"""Shared helpers for engine/AI/session tests: schedulers, scripted rngs, hand-built mazes."""

import random

from waystone.game.maze import Maze
from waystone.game.types import BOARD_SIZE, Direction, GameMode, PathType


def immediate(delay, fn):
    """Scheduler that runs deferred work right away."""
    fn()


class Deferred:
    """Scheduler that records deferred work so a test can run it later."""

    def __init__(self):
        self.calls = []

    def __call__(self, delay, fn):
        self.calls.append((delay, fn))

    def run_all(self):
        calls, self.calls = self.calls, []
        for _, fn in calls:
            fn()


class FixedRandom(random.Random):
    """Seeded Random whose ``random()`` replays a fixed script, then a constant.

    ``choice``/``randrange``/``shuffle`` keep using the seeded bit stream.
    """

    def __init__(self, values=(), then=0.99, seed=7):
        super().__init__(seed)
        self.values = list(values)
        self.then = then

    def random(self):
        if self.values:
            return self.values.pop(0)
        return self.then

    # defined so Random keeps drawing integers from the bit stream, not random()
    def getrandbits(self, k):
        return super().getrandbits(k)


def open_maze():
    """Maze with every interior edge Open and the border Walls."""
    maze = Maze()
    for r in range(BOARD_SIZE):
        for c in range(BOARD_SIZE):
            for d in Direction:
                if maze.path((r, c), d) == PathType.UNDEFINED:
                    maze.set_path((r, c), d, PathType.OPEN)
    return maze


def walled_maze():
    """Maze with every edge a Wall."""
    maze = Maze()
    for r in range(BOARD_SIZE):
        for c in range(BOARD_SIZE):
            for d in Direction:
                maze.set_path((r, c), d, PathType.WALL)
    return maze


def start_turns(engine, rooms, maze=None, mode=GameMode.SINGLE, level=1):
    """Start a game on ``maze`` (open by default) and pick the given secret rooms."""
    engine.start_game(len(rooms), mode, level)
    engine.set_maze(maze or open_maze())
    for idx, room in enumerate(rooms):
        assert engine.set_warrior_secret_room(idx, room)
    return engine.get_state()


class EventLog:
    def __init__(self, engine):
        self.events = []
        engine.on(self.events.append)

    def types(self):
        return [e.type for e in self.events]

    def of(self, event_type):
        return [e for e in self.events if e.type == event_type]
