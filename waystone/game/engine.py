"""
project: Waystone
module: engine.py
License: MIT

Authoritative turn/state machine for a Waystone game.

The engine owns warriors, dragon and treasure; it consumes a generated Maze,
applies movement and door rules, runs the dragon and decides win/loss. Every
state change a consumer may care about is announced through ``on(listener)``.

Invariants:
 - Rule violations never raise: they return False and/or emit ILLEGAL_MOVE,
   WALL_HIT or DOOR_CLOSED, or clamp silently (move budget never < 0).
 - Discovered walls and lock state are always written on both sides of a
   physical edge in the same call.
 - The dragon never stands on either warrior's secret room.
 - Moves are only spent in two-warrior games, or in solo games once the
   dragon is awake.

All randomness flows through the injected ``rng`` so tests can force door
rolls, battles and placement. The only deferred effect is the game-over
transition after a fatal attack, run through ``scheduler(delay, fn)``.
"""

from __future__ import annotations

import random
import threading
from typing import Callable, List, Optional

from ..logging_utils import get_logger
from .config import GameSettings
from .grid import all_positions, direction_between, in_bounds, manhattan, sign
from .maze import Maze
from .types import (
    Direction,
    DragonState,
    EventType,
    GameEvent,
    GameMode,
    GameState,
    GameStateData,
    PathType,
    Position,
    Warrior,
)

log = get_logger("waystone.engine")

Listener = Callable[[GameEvent], None]
Scheduler = Callable[[float, Callable[[], None]], object]


def _timer_scheduler(delay: float, fn: Callable[[], None]):
    t = threading.Timer(delay, fn)
    t.daemon = True
    t.start()
    return t


class GameEngine:
    def __init__(
        self,
        settings: Optional[GameSettings] = None,
        rng: Optional[random.Random] = None,
        scheduler: Optional[Scheduler] = None,
        logger=None,
    ):
        self.settings = settings or GameSettings()
        self.log = logger or log
        self.rng = rng or random.Random()
        self.scheduler = scheduler or _timer_scheduler
        self._listeners: List[Listener] = []
        self._maze: Optional[Maze] = None
        self._pre_dragon_state: Optional[GameStateData] = None
        # bumped per game so a pending game-over timer from an old game is ignored
        self._generation = 0
        self._state = self._initial_state()

    # ------------------------------------------------------------------ setup
    def _initial_state(self) -> GameStateData:
        state = GameStateData()
        state.warriors = [self._new_warrior(), self._new_warrior()]
        return state

    def _new_warrior(self) -> Warrior:
        return Warrior(lives=self.settings.max_lives)

    def start_game(self, number_of_warriors: int = 1, mode: GameMode = GameMode.SINGLE, level: Optional[int] = None) -> None:
        self._generation += 1
        self._pre_dragon_state = None
        self._state = self._initial_state()
        self._state.number_of_warriors = 2 if number_of_warriors == 2 else 1
        self._state.mode = GameMode(mode)
        if level in (1, 2):
            self._state.level = level
        self._state.state = GameState.WARRIOR_ONE_SELECT_ROOM
        self.log.info(
            event="game_start",
            warriors=self._state.number_of_warriors,
            mode=self._state.mode.value,
            level=self._state.level,
        )

    def set_maze(self, maze: Maze) -> None:
        self._maze = maze
        if self._state.level == 2:
            self._initialize_locked_doors()
        self.log.info(event="maze_set", seed=maze.seed, level=self._state.level)

    def _initialize_locked_doors(self) -> None:
        locked = self._state.locked_doors
        locked.clear()
        for pos in all_positions():
            for d in Direction:
                if self._path(pos, d) != PathType.DOOR or (pos, d) in locked:
                    continue
                locked.set_pair(pos, d, self.rng.random() < self.settings.door_closed_prob)

    # --------------------------------------------------------- room selection
    def set_warrior_secret_room(self, warrior_number: int, position: Position) -> bool:
        position = tuple(position)
        if warrior_number not in (0, 1) or not in_bounds(position):
            return False
        expected = GameState.WARRIOR_ONE_SELECT_ROOM if warrior_number == 0 else GameState.WARRIOR_TWO_SELECT_ROOM
        if self._state.state != expected:
            return False
        if warrior_number == 1 and self._state.warriors[0].secret_room == position:
            self._emit(GameEvent(EventType.ILLEGAL_MOVE, warrior_number=warrior_number))
            return False

        warrior = self._state.warriors[warrior_number]
        warrior.secret_room = position
        warrior.position = position
        self.log.info(event="room_selected", warrior=warrior_number, room=position)

        if self._state.state == GameState.WARRIOR_ONE_SELECT_ROOM:
            if self._state.number_of_warriors == 1:
                self._start_turns()
            else:
                self._state.state = GameState.WARRIOR_TWO_SELECT_ROOM
        else:
            self._start_turns()
        return True

    def skip_warrior_two(self) -> bool:
        if self._state.state != GameState.WARRIOR_TWO_SELECT_ROOM:
            return False
        self._state.number_of_warriors = 1
        self._start_turns()
        return True

    def _start_turns(self) -> None:
        self._set_treasure_room()
        self._state.state = GameState.WARRIOR_ONE_TURN
        self._reset_warrior_moves(0)

    def _set_treasure_room(self) -> None:
        s = self._state
        rooms = [w.secret_room for w in s.warriors[: s.number_of_warriors]]
        far = [
            pos
            for pos in all_positions()
            if all(manhattan(pos, room) > self.settings.treasure_room_distance for room in rooms if room)
        ]
        lair = self.rng.choice(far) if far else self.rng.choice(list(all_positions()))
        s.dragon.position = lair

        nearby = [
            pos
            for pos in all_positions()
            if 0 < manhattan(pos, lair) <= 2 and not self._is_any_secret_room(pos)
        ]
        s.treasure.room = self.rng.choice(nearby) if nearby else lair
        self.log.info(event="treasure_placed", lair=lair, treasure=s.treasure.room)

    # --------------------------------------------------------------- movement
    def move_warrior(self, warrior_number: int, target: Position) -> bool:
        s = self._state
        target = tuple(target)
        warrior = s.warriors[warrior_number]
        if warrior.position is None or not warrior.alive or s.state == GameState.GAME_OVER:
            return False

        d = direction_between(warrior.position, target)
        if d is None:
            self.log.debug(event="move_rejected", warrior=warrior_number, reason="not_adjacent", to=target)
            self._emit(GameEvent(EventType.ILLEGAL_MOVE, warrior_number=warrior_number))
            return False

        track = self._should_track_moves()
        if track:
            warrior.moves -= 1
            if warrior.moves < 0:
                warrior.moves = 0
                return False

        origin = warrior.position
        path = self._path(origin, d)

        if path == PathType.WALL:
            s.discovered_walls.set_pair(origin, d, True)
            self._emit(GameEvent(EventType.WALL_HIT, warrior_number=warrior_number, position=origin, direction=d))
            if track and warrior.moves == 0:
                self.finish_warrior_turn(warrior_number)
            return False

        if s.level == 2 and path == PathType.DOOR:
            if s.locked_doors.get(origin, d, False):
                if self.rng.random() < self.settings.door_unlock_prob:
                    s.locked_doors.set_pair(origin, d, False)
                else:
                    self._emit(GameEvent(EventType.DOOR_CLOSED, warrior_number=warrior_number))
                    return False
            else:
                s.locked_doors.set_pair(origin, d, True)

        warrior.position = target
        self._emit(GameEvent(EventType.WARRIOR_MOVED, warrior_number=warrior_number, position=target))

        if s.dragon.position == target and not self._is_warrior_safe(warrior_number):
            self._dragon_attack(warrior_number)
            self.finish_warrior_turn(warrior_number)
            return True

        if self._check_treasure_found(warrior_number):
            return True

        self._check_warrior_battle()
        self._check_dragon_wakes(warrior_number)

        if s.treasure.warrior == warrior_number and target == warrior.secret_room:
            s.state = GameState.GAME_OVER
            self.log.info(event="game_over", result="won", warrior=warrior_number)
            self._emit(GameEvent(EventType.GAME_WON, warrior_number=warrior_number))
            return True

        if track and warrior.moves == 0:
            self.finish_warrior_turn(warrior_number)
        return True

    def _should_track_moves(self) -> bool:
        return self._state.number_of_warriors == 2 or self._state.dragon.state == DragonState.AWAKE

    def _check_treasure_found(self, warrior_number: int) -> bool:
        s = self._state
        warrior = s.warriors[warrior_number]
        if s.treasure.warrior >= 0 or s.treasure.room is None or warrior.position != s.treasure.room:
            return False
        s.treasure.warrior = warrior_number
        s.treasure.visible = True
        s.dragon.treasure_hint_position = None
        warrior.moves = self.settings.moves_with_treasure
        self._emit(GameEvent(EventType.TREASURE_FOUND, warrior_number=warrior_number))
        return True

    def _check_warrior_battle(self) -> None:
        s = self._state
        w0, w1 = s.warriors
        if s.number_of_warriors != 2 or not (w0.alive and w1.alive) or s.treasure.warrior < 0:
            return
        if w0.position is None or w0.position != w1.position:
            return
        previous = s.treasure.warrior
        winner = 0 if self.rng.random() < 0.5 else 1
        if winner != previous:
            s.treasure.warrior = winner
            self._emit(GameEvent(EventType.WARRIOR_BATTLE, winner=winner, loser=1 - winner))

    def _check_dragon_wakes(self, warrior_number: int) -> None:
        s = self._state
        warrior = s.warriors[warrior_number]
        dragon = s.dragon
        if warrior.position is None or warrior.secret_room is None or dragon.position is None:
            return
        if warrior.position == warrior.secret_room:
            return
        dist = manhattan(warrior.position, dragon.position)
        if dragon.state == DragonState.ASLEEP:
            if dist <= self.settings.dragon_wake_distance:
                dragon.state = DragonState.AWAKE
                dragon.visible = True
                dragon.has_been_visible = True
                dragon.treasure_hint_position = dragon.position
                if s.number_of_warriors == 1:
                    self._reset_warrior_moves(warrior_number)
                self.log.info(event="dragon_awake", at=dragon.position, woken_by=warrior_number)
                self._emit(GameEvent(EventType.DRAGON_AWAKE))
        elif s.number_of_warriors == 1 and dist <= self.settings.dragon_visibility_distance:
            dragon.visible = True

    # ------------------------------------------------------------ turn change
    def finish_warrior_turn(self, warrior_number: int) -> None:
        s = self._state
        if s.state == GameState.GAME_OVER:
            return
        if not s.warriors[warrior_number].alive and self._all_dead():
            return

        awake = s.dragon.state == DragonState.AWAKE
        if s.number_of_warriors == 1:
            move_dragon = awake
        else:
            move_dragon = awake and (warrior_number == 1 or not s.warriors[1].alive)

        if move_dragon:
            self._pre_dragon_state = s.clone()
            self._move_dragon()
            if s.state == GameState.GAME_OVER:
                return
        else:
            self._pre_dragon_state = None

        w0, w1 = s.warriors
        two = s.number_of_warriors == 2
        if warrior_number == 0 and two and w1.alive:
            s.state = GameState.WARRIOR_TWO_TURN
            self._reset_warrior_moves(1)
        elif w0.alive:
            s.state = GameState.WARRIOR_ONE_TURN
            self._reset_warrior_moves(0)
        elif two and w1.alive:
            s.state = GameState.WARRIOR_TWO_TURN
            self._reset_warrior_moves(1)

    def _reset_warrior_moves(self, warrior_number: int) -> None:
        warrior = self._state.warriors[warrior_number]
        if self._state.treasure.warrior == warrior_number:
            warrior.moves = self.settings.moves_with_treasure
        else:
            warrior.moves = self.settings.base_moves + warrior.lives * self.settings.moves_per_life

    # ----------------------------------------------------------------- dragon
    def _move_dragon(self) -> None:
        s = self._state
        dragon = s.dragon
        if dragon.state != DragonState.AWAKE or dragon.position is None:
            return

        target: Optional[Position] = None
        follow = -1
        if s.treasure.warrior >= 0:
            follow = s.treasure.warrior
            target = s.warriors[follow].position
        else:
            unsafe = self._unsafe_warriors()
            if len(unsafe) == 1:
                follow = unsafe[0]
            elif len(unsafe) == 2:
                d0 = manhattan(dragon.position, s.warriors[0].position)
                d1 = manhattan(dragon.position, s.warriors[1].position)
                if d0 != d1:
                    follow = 0 if d0 < d1 else 1
                else:
                    follow = self.rng.randrange(2)
            if follow >= 0:
                target = s.warriors[follow].position
            elif dragon.last_known_warrior_position is not None:
                # patrol toward the last sighting and wait there
                if manhattan(dragon.position, dragon.last_known_warrior_position) > 0:
                    target = dragon.last_known_warrior_position
            else:
                target = s.treasure.room

        if follow >= 0 and target is not None and not self._is_any_secret_room(target):
            dragon.last_known_warrior_position = target

        if target is None:
            return
        cur = dragon.position
        if self._is_any_secret_room(target) and manhattan(cur, target) <= 1:
            return
        step = (cur[0] + sign(target[0] - cur[0]), cur[1] + sign(target[1] - cur[1]))
        if step == cur:
            return
        if self._is_any_secret_room(step):
            self.log.debug(event="dragon_blocked", at=cur, tried=step)
            return

        dragon.position = step
        if dragon.has_been_visible:
            dragon.visible = True
        self.log.info(event="dragon_move", frm=cur, to=step, target=follow)
        self._emit(GameEvent(EventType.DRAGON_MOVED, position=step))
        self._check_dragon_attacks()

    def _check_dragon_attacks(self) -> bool:
        s = self._state
        hit = [w for w in self._unsafe_warriors() if s.warriors[w].position == s.dragon.position]
        if not hit:
            return False
        if len(hit) == 1:
            victim = hit[0]
        elif s.treasure.warrior >= 0:
            victim = s.treasure.warrior
        else:
            victim = self.rng.randrange(2)
        self._dragon_attack(victim)
        return True

    def _dragon_attack(self, warrior_number: int) -> None:
        s = self._state
        warrior = s.warriors[warrior_number]
        self._emit(GameEvent(EventType.DRAGON_ATTACK, warrior_number=warrior_number))
        s.dragon.visible = True
        if s.treasure.warrior == warrior_number:
            s.treasure.room = warrior.position
            s.treasure.warrior = -1
        self._remove_life(warrior_number)

    def _remove_life(self, warrior_number: int) -> None:
        s = self._state
        warrior = s.warriors[warrior_number]
        warrior.lives -= 1
        if warrior.lives >= 1:
            old = warrior.position
            warrior.position = self._random_respawn_position()
            self.log.info(event="warrior_respawn", warrior=warrior_number, frm=old, to=warrior.position, lives=warrior.lives)
            return

        self.log.info(event="warrior_killed", warrior=warrior_number)
        self._emit(GameEvent(EventType.WARRIOR_KILLED, warrior_number=warrior_number))
        all_dead = self._all_dead()
        human_lost_to_cpu = s.mode == GameMode.CPU and warrior_number == 0
        if not (all_dead or human_lost_to_cpu):
            return

        generation = self._generation
        cpu_wins = human_lost_to_cpu and not all_dead

        def _finish():
            if generation != self._generation or s.state == GameState.GAME_OVER:
                return
            s.state = GameState.GAME_OVER
            if cpu_wins:
                self.log.info(event="game_over", result="cpu_won")
                self._emit(GameEvent(EventType.GAME_WON, warrior_number=1))
            else:
                self.log.info(event="game_over", result="lost")
                self._emit(GameEvent(EventType.GAME_LOST))

        self.scheduler(self.settings.game_over_delay, _finish)

    def _random_respawn_position(self) -> Position:
        s = self._state
        options = [
            pos
            for pos in all_positions()
            if not self._is_any_secret_room(pos) and pos != s.treasure.room and pos != s.dragon.position
        ]
        return self.rng.choice(options)

    # ---------------------------------------------------------------- queries
    def _all_dead(self) -> bool:
        s = self._state
        return not s.warriors[0].alive and (s.number_of_warriors == 1 or not s.warriors[1].alive)

    def _unsafe_warriors(self) -> List[int]:
        s = self._state
        out = []
        for idx in range(s.number_of_warriors):
            if s.warriors[idx].alive and not self._is_warrior_safe(idx):
                out.append(idx)
        return out

    def _is_any_secret_room(self, pos: Position) -> bool:
        return any(w.secret_room == pos for w in self._state.warriors)

    def _is_warrior_safe(self, warrior_number: int) -> bool:
        w = self._state.warriors[warrior_number]
        return w.position is not None and w.position == w.secret_room

    def _path(self, pos: Position, d: Direction) -> PathType:
        if self._maze is None:
            return PathType.WALL
        return self._maze.path(pos, d)

    # ----------------------------------------------------------------- public
    def toggle_level(self) -> int:
        s = self._state
        s.level = 1 if s.level == 2 else 2
        if s.level == 2 and self._maze is not None:
            self._initialize_locked_doors()
        else:
            s.locked_doors.clear()
        self.log.info(event="level_toggled", level=s.level)
        return s.level

    def get_state(self) -> GameStateData:
        return self._state

    def get_pre_dragon_state(self) -> Optional[GameStateData]:
        return self._pre_dragon_state

    def get_chamber_paths(self, position: Position) -> List[PathType]:
        return [self._path(tuple(position), d) for d in Direction]

    @property
    def maze(self) -> Optional[Maze]:
        return self._maze

    def on(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: GameEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:
                self.log.error(event="listener_failed", type=event.type.value, error=repr(exc))


__all__ = ["GameEngine"]
