import random

import pytest

from waystone.game import GameSettings, MazeGenerator
from waystone.game.grid import all_positions, in_bounds, neighbor
from waystone.game.types import BOARD_SIZE, Direction, PathType

SEEDS = [1, 2, 3, 17, 42, 99, 1234, 2024, 31337, 65535]


@pytest.mark.parametrize("seed", SEEDS)
def test_every_chamber_reachable(seed):
    maze = MazeGenerator().generate(seed)
    assert maze.is_connected(), f"seed {seed}: only {len(maze.reachable())} chambers reachable"


@pytest.mark.parametrize("seed", SEEDS)
def test_shared_edges_agree(seed):
    maze = MazeGenerator().generate(seed)
    for pos in all_positions():
        for d in Direction:
            other = neighbor(pos, d)
            if in_bounds(other):
                assert maze.path(pos, d) == maze.path(other, d.opposite), (pos, d)


@pytest.mark.parametrize("seed", SEEDS)
def test_boundary_is_wall_and_nothing_undefined(seed):
    maze = MazeGenerator().generate(seed)
    for pos in all_positions():
        for d in Direction:
            p = maze.path(pos, d)
            assert p != PathType.UNDEFINED
            if not in_bounds(neighbor(pos, d)):
                assert p == PathType.WALL
    assert maze.metrics()["undefined_edges"] == 0


def test_same_seed_same_maze():
    a = MazeGenerator().generate(5150)
    b = MazeGenerator(rng=random.Random(1)).generate(5150)
    assert a.chambers == b.chambers
    assert a.seed == 5150


def test_seeded_generation_leaves_global_random_alone():
    state = random.getstate()
    MazeGenerator().generate(77)
    assert random.getstate() == state


def test_injected_rng_drives_unseeded_generation():
    a = MazeGenerator(rng=random.Random(9)).generate()
    b = MazeGenerator(rng=random.Random(9)).generate()
    assert a.chambers == b.chambers
    assert a.seed is None


def test_door_probability_extremes():
    no_doors = MazeGenerator(GameSettings(door_prob=0.0)).generate(3)
    assert no_doors.metrics()["door_edges"] == 0

    all_doors = MazeGenerator(GameSettings(door_prob=1.0)).generate(3)
    m = all_doors.metrics()
    assert m["open_edges"] == 0
    assert m["door_edges"] >= BOARD_SIZE * BOARD_SIZE - 1  # at least the spanning tree
    assert all_doors.is_connected()


def test_wall_removal_only_opens_edges():
    base = MazeGenerator(GameSettings(remove_wall_prob=0.0)).generate(808)
    opened = MazeGenerator(GameSettings(remove_wall_prob=1.0, remove_wall_threshold=2)).generate(808)
    assert opened.metrics()["wall_edges"] <= base.metrics()["wall_edges"]
    # removal never turns a passage back into a wall
    for pos in all_positions():
        for d in Direction:
            if base.is_passable(pos, d):
                assert opened.is_passable(pos, d)


def test_zero_wall_probability_opens_all_interior_edges():
    maze = MazeGenerator(GameSettings(wall_prob=0.0, edge_wall_bias=False)).generate(11)
    m = maze.metrics()
    assert m["wall_edges"] == 0
    assert m["open_edges"] + m["door_edges"] == 2 * BOARD_SIZE * (BOARD_SIZE - 1)


def test_metrics_count_interior_edges_once():
    maze = MazeGenerator().generate(4)
    m = maze.metrics()
    interior = 2 * BOARD_SIZE * (BOARD_SIZE - 1)
    assert m["open_edges"] + m["door_edges"] + m["wall_edges"] == interior
    assert m["reachable"] == BOARD_SIZE * BOARD_SIZE


def test_ascii_rendering_shape():
    rows = MazeGenerator().generate(12).rows()
    assert len(rows) == 2 * BOARD_SIZE + 1
    assert rows[0] == "+" + "---+" * BOARD_SIZE
    assert rows[-1] == "+" + "---+" * BOARD_SIZE
    assert all(r.startswith("|") and r.endswith("|") for r in rows[1::2])
