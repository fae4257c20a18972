"""
project: Waystone
module: controller.py
License: MIT

Computer opponent for the second warrior.

The controller plays through the same three calls a human has (read state,
move, finish turn) and never looks at the maze layout. Its picture of the
board is a MazeKnowledge built from its own move outcomes plus the shared
wall table, and its only clue to the treasure is the dragon's position at the
moment it woke.

Design goals:
 - One decision per step, re-evaluated from a fresh state read each time.
 - Layered path fallbacks: dragon-safe known route, route avoiding only the
   dragon tile, any known route whose next step is not the dragon, a
   single-step probe, then directed exploration.
 - Never end a turn where the dragon can land on us if a safer option exists.
 - Cooperative cancellation: ``abort()`` is honoured at every suspension and
   around every state read; an aborted turn is an expected outcome, not an
   error.
"""

from __future__ import annotations

import asyncio
import random
import threading
from enum import Enum
from typing import Callable, Optional, Union

from ...logging_utils import get_logger
from ..grid import all_positions, chebyshev, direction_between, manhattan
from ..types import BOARD_SIZE, Direction, DragonState, GameState, GameStateData, Position
from .knowledge import MazeKnowledge, exits
from .pathfinding import bfs_distances, bfs_known_path, bfs_order, bfs_safe_path

log = get_logger("waystone.ai")

SKIP = "skip"
RANDOM_MOVE_CHANCE = 0.15
URGENT_HUNT_DISTANCE = 3
CENTER = (3, 3)

Move = Optional[Position]
StateGetter = Callable[[], Optional[GameStateData]]


class AIPhase(str, Enum):
    EXPLORE = "explore"
    SEEK_TREASURE = "seek_treasure"
    SEEK_HINT = "seek_hint"
    RETURN_TO_BASE = "return_to_base"
    EVADE_DRAGON = "evade_dragon"
    HUNT_PLAYER = "hunt_player"


GOAL_DIRECTED = frozenset(
    {AIPhase.RETURN_TO_BASE, AIPhase.SEEK_TREASURE, AIPhase.SEEK_HINT, AIPhase.HUNT_PLAYER}
)


class TurnAborted(Exception):
    """Raised inside ``execute_turn`` when the turn was cancelled."""


class AIController:
    def __init__(self, rng: Optional[random.Random] = None, pacing: float = 1.0, warrior_number: int = 1, logger=None):
        self.rng = rng or random.Random()
        self.log = logger or log
        self.pacing = pacing
        self.me = warrior_number
        self.foe = 1 - warrior_number
        self.knowledge = MazeKnowledge()
        self.last_phase: Optional[AIPhase] = None
        self._hunt_urgent = False
        self._cancel: Optional[threading.Event] = None
        self._executing = False

    @property
    def is_executing(self) -> bool:
        return self._executing

    @property
    def _turn_state(self) -> GameState:
        return GameState.WARRIOR_TWO_TURN if self.me == 1 else GameState.WARRIOR_ONE_TURN

    def reset(self) -> None:
        self.knowledge.reset()
        self.last_phase = None
        self._hunt_urgent = False
        self.abort()

    def abort(self) -> None:
        if self._cancel is not None:
            self._cancel.set()
            self._cancel = None
        self._executing = False

    # ------------------------------------------------------------ room choice
    def select_room(self, state: GameStateData) -> Position:
        """Pick a Waystone far from the centre and from the opponent's, corners preferred."""
        their_room = state.warriors[self.foe].secret_room
        scored = []
        for pos in all_positions():
            if pos == their_room:
                continue
            r, c = pos
            score = manhattan(pos, CENTER) + (manhattan(pos, their_room) * 1.5 if their_room else 0)
            on_row_edge = r in (0, BOARD_SIZE - 1)
            on_col_edge = c in (0, BOARD_SIZE - 1)
            if on_row_edge and on_col_edge:
                score += 3
            elif on_row_edge or on_col_edge:
                score += 1
            scored.append((score, pos))
        scored.sort(key=lambda item: -item[0])
        top = scored[:5]
        chosen = self.rng.choice(top)[1]
        self.log.info(event="ai_select_room", chosen=chosen, top=[p for _, p in top])
        return chosen

    # ---------------------------------------------------------- turn executor
    async def execute_turn(
        self,
        get_state: StateGetter,
        move_warrior: Callable[[int, Position], object],
        finish_turn: Callable[[int], object],
        is_dragon_turn_active: Optional[Callable[[], bool]] = None,
    ) -> None:
        if self._executing:
            return
        dragon_busy = is_dragon_turn_active or (lambda: False)
        token = threading.Event()
        self._cancel = token
        self._executing = True
        steps = 0
        self.log.info(event="ai_turn_start", warrior=self.me)
        try:
            while dragon_busy():
                await self._delay(200, token)

            state = self._read(get_state, token)
            if state is not None:
                self.knowledge.update_dead_ends(state, state.warriors[self.me].secret_room)
            await self._delay(800, token)

            while True:
                state = self._read(get_state, token)
                if state is None or state.state != self._turn_state:
                    break
                warrior = state.warriors[self.me]
                if warrior.position is None or not warrior.alive or warrior.moves <= 0:
                    break
                if dragon_busy():
                    await self._delay(200, token)
                    continue

                before = warrior.position
                self.knowledge.mark_visited(before)
                self.knowledge.track_position(before)

                target = self.choose_move(state)
                if target is None or target == SKIP:
                    self.log.info(event="ai_finish_early", at=before, reason="skip" if target == SKIP else "no_move")
                    finish_turn(self.me)
                    break

                move_warrior(self.me, target)
                steps += 1
                after = self._read(get_state, token)
                if after is None:
                    break
                landed = after.warriors[self.me].position
                if landed is not None and landed != before:
                    self.knowledge.record_traversal(before, landed)
                else:
                    self.log.debug(event="ai_move_blocked", at=before, tried=target)
                self.knowledge.update_dead_ends(after, after.warriors[self.me].secret_room)

                if after.state != self._turn_state or dragon_busy():
                    break
                await self._delay(500 + self.rng.random() * 300, token)
        except TurnAborted:
            self.log.info(event="ai_turn_aborted", warrior=self.me, steps=steps)
        else:
            self.log.info(
                event="ai_turn_end",
                warrior=self.me,
                steps=steps,
                visited=len(self.knowledge.visited),
                dead_ends=len(self.knowledge.dead_ends),
            )
        finally:
            self._executing = False
            if self._cancel is token:
                self._cancel = None

    @staticmethod
    def _check(token: threading.Event) -> None:
        if token.is_set():
            raise TurnAborted()

    def _read(self, get_state: StateGetter, token: threading.Event) -> Optional[GameStateData]:
        self._check(token)
        state = get_state()
        self._check(token)
        return state

    async def _delay(self, ms: float, token: threading.Event) -> None:
        self._check(token)
        remaining = ms / 1000.0 * self.pacing
        if remaining <= 0:
            await asyncio.sleep(0)
        while remaining > 0:
            step = min(remaining, 0.05)
            await asyncio.sleep(step)
            remaining -= step
            self._check(token)
        self._check(token)

    # ------------------------------------------------------- step decision
    def choose_move(self, state: GameStateData) -> Union[Position, str, None]:
        """Next target tile, ``SKIP`` to end the turn in place, or None."""
        warrior = state.warriors[self.me]
        phase = self.determine_phase(state)
        self.last_phase = phase

        anti_oscillation = self.knowledge.is_oscillating()
        if anti_oscillation:
            target = self.anti_oscillation_move(state)
        else:
            target = self.get_next_move(state, phase)

        if (
            target is not None
            and not anti_oscillation
            and phase not in GOAL_DIRECTED
            and state.dragon.state == DragonState.AWAKE
            and self.rng.random() < RANDOM_MOVE_CHANCE
        ):
            target = self.random_adjacent_move(state) or target

        if target is not None and warrior.moves == 1 and state.dragon.position is not None and state.dragon.visible:
            verdict = self.last_move_dragon_safety(state, warrior.position, target)
            if verdict == SKIP:
                return SKIP
            if verdict is not None:
                target = verdict
        self.log.debug(event="ai_step", phase=phase.value, at=warrior.position, to=target, moves=warrior.moves)
        return target

    def determine_phase(self, state: GameStateData) -> AIPhase:
        me = state.warriors[self.me]
        foe = state.warriors[self.foe]
        dragon = state.dragon
        treasure = state.treasure
        dragon_dist = None
        if dragon.visible and dragon.position is not None and me.position is not None:
            dragon_dist = manhattan(me.position, dragon.position)

        self._hunt_urgent = False
        if treasure.warrior == self.me:
            phase = AIPhase.RETURN_TO_BASE
        elif treasure.warrior == self.foe and foe.position is not None and me.position is not None:
            if foe.secret_room is not None:
                self._hunt_urgent = manhattan(foe.position, foe.secret_room) <= URGENT_HUNT_DISTANCE
            phase = AIPhase.EVADE_DRAGON if dragon_dist == 0 else AIPhase.HUNT_PLAYER
        elif treasure.visible and treasure.warrior < 0 and treasure.room is not None:
            phase = AIPhase.SEEK_TREASURE
        elif dragon.treasure_hint_position is not None and treasure.warrior < 0 and not treasure.visible:
            cornered = dragon_dist is not None and (dragon_dist == 0 or (dragon_dist <= 1 and me.lives <= 1))
            phase = AIPhase.EVADE_DRAGON if cornered else AIPhase.SEEK_HINT
        else:
            threshold = 1 if self.knowledge.is_stuck() else 2
            if dragon_dist is not None and dragon_dist <= threshold:
                phase = AIPhase.EVADE_DRAGON
            else:
                phase = AIPhase.EXPLORE
        if phase != self.last_phase:
            self.log.debug(event="ai_phase", phase=phase.value, urgent=self._hunt_urgent or None, dragon_dist=dragon_dist)
        return phase

    def get_next_move(self, state: GameStateData, phase: AIPhase) -> Move:
        me = state.warriors[self.me]
        if me.position is None:
            return None
        if phase == AIPhase.RETURN_TO_BASE:
            return self.return_to_base(state)
        if phase == AIPhase.HUNT_PLAYER:
            return self.hunt_player(state)
        if phase == AIPhase.SEEK_TREASURE:
            return self.move_toward(state, me.position, state.treasure.room)
        if phase == AIPhase.SEEK_HINT:
            return self.seek_hint(state)
        if phase == AIPhase.EVADE_DRAGON:
            return self.evade_dragon(state)
        return self.explore(state)

    # ------------------------------------------------------ goal strategies
    def seek_hint(self, state: GameStateData) -> Move:
        me = state.warriors[self.me]
        hint = state.dragon.treasure_hint_position
        if me.position is None or hint is None:
            return None
        if manhattan(me.position, hint) > 2:
            target = hint
        else:
            target = self._find_hint_area_target(state, me.position, hint)
            if target is None:
                return self.explore(state)

        move = self.move_toward(state, me.position, target)
        dragon_pos = state.dragon.position
        if move is None or move != dragon_pos:
            return move
        # never step onto the dragon while searching
        alternatives = [
            (manhattan(nb, target), nb)
            for d, nb in exits(me.position)
            if not self.knowledge.is_known_blocked(state, me.position, d) and nb != dragon_pos
        ]
        if not alternatives:
            return None
        alternatives.sort(key=lambda item: item[0])
        return alternatives[0][1]

    def return_to_base(self, state: GameStateData) -> Move:
        me = state.warriors[self.me]
        if me.position is None or me.secret_room is None:
            return None
        return self._guarded_approach(state, me.secret_room, urgent=False, evade_last=True)

    def hunt_player(self, state: GameStateData) -> Move:
        me = state.warriors[self.me]
        prey = state.warriors[self.foe].position
        if me.position is None or prey is None:
            return None
        return self._guarded_approach(state, prey, urgent=self._hunt_urgent, evade_last=False)

    def _guarded_approach(self, state: GameStateData, goal: Position, urgent: bool, evade_last: bool) -> Move:
        """Walk toward ``goal`` through the layered dragon-aware fallbacks."""
        k = self.knowledge
        pos = state.warriors[self.me].position
        dragon_pos = state.dragon.position
        if dragon_pos is None:
            return self.move_toward(state, pos, goal) or self.explore_toward(state, goal)

        # An opponent about to bank the treasure is worth cutting close to the dragon.
        radii = (0,) if urgent else (1, 0)
        for radius in radii:
            path = bfs_safe_path(k, state, pos, goal, dragon_pos, radius)
            if path and len(path) > 1:
                return path[1]

        path = bfs_known_path(k, state, pos, goal)
        if path and len(path) > 1 and path[1] != dragon_pos:
            return path[1]

        probe = self.probe_toward(state, pos, goal)
        if probe is not None and probe != dragon_pos and manhattan(probe, goal) < manhattan(pos, goal):
            return probe

        if not evade_last:
            return self.explore_toward(state, goal)
        return self.explore_toward(state, goal) or self.evade_dragon(state)

    def evade_dragon(self, state: GameStateData) -> Move:
        k = self.knowledge
        me = state.warriors[self.me]
        dragon_pos = state.dragon.position
        if me.position is None or dragon_pos is None:
            return None

        if me.secret_room is not None and chebyshev(me.secret_room, dragon_pos) > 1:
            home = bfs_known_path(k, state, me.position, me.secret_room)
            if home and 1 < len(home) <= 4:
                return home[1]

        candidates = []
        for d, nb in exits(me.position):
            if k.is_known_blocked(state, me.position, d):
                continue
            candidates.append(
                (
                    -manhattan(nb, dragon_pos),
                    k.dead_end_depth(state, nb, d.opposite),
                    k.recent_visit_count(nb),
                    not k.is_known_passable(state, me.position, d),
                    nb,
                )
            )
        if not candidates:
            return None
        candidates.sort(key=lambda c: c[:4])
        return candidates[0][4]

    # --------------------------------------------------------- path helpers
    def move_toward(self, state: GameStateData, start: Position, target: Position) -> Move:
        path = bfs_known_path(self.knowledge, state, start, target)
        if path and len(path) > 1:
            return path[1]
        return self.probe_toward(state, start, target)

    def probe_toward(self, state: GameStateData, start: Position, target: Position) -> Move:
        """Single step through an edge not known to be a wall, favouring information gain."""
        k = self.knowledge
        candidates = []
        for d, nb in exits(start):
            if k.is_known_blocked(state, start, d):
                continue
            candidates.append(
                (
                    k.dead_end_depth(state, nb, d.opposite),
                    k.recent_visit_count(nb),
                    manhattan(nb, target),
                    not k.is_unknown(state, start, d),
                    nb,
                )
            )
        if not candidates:
            return None
        candidates.sort(key=lambda c: c[:4])
        return candidates[0][4]

    def explore_toward(self, state: GameStateData, target: Position) -> Move:
        k = self.knowledge
        pos = state.warriors[self.me].position
        if pos is None:
            return None
        current_dist = manhattan(pos, target)

        toward, away = [], []
        for d, nb in exits(pos):
            if not k.is_unknown(state, pos, d):
                continue
            dist = manhattan(nb, target)
            entry = (k.dead_end_depth(state, nb, d.opposite), dist, nb)
            (toward if dist < current_dist else away).append(entry)
        if toward:
            toward.sort(key=lambda e: e[:2])
            return toward[0][2]

        best_tile, best_score = None, float("-inf")
        for tile in bfs_order(k, state, pos):
            tile_dist = manhattan(tile, target)
            steps = manhattan(pos, tile)
            for d, nb in exits(tile):
                if not k.is_unknown(state, tile, d):
                    continue
                nb_dist = manhattan(nb, target)
                if nb_dist < tile_dist:
                    score = -steps + (current_dist - nb_dist) * 3
                    if score > best_score:
                        best_tile, best_score = tile, score
        if best_tile is not None and best_tile != pos:
            move = self.move_toward(state, pos, best_tile)
            if move is not None:
                return move

        if away:
            away.sort(key=lambda e: e[:2])
            return away[0][2]
        return self.explore(state)

    def _would_trigger_evade(self, pos: Position, state: GameStateData) -> bool:
        dragon = state.dragon
        if not dragon.visible or dragon.position is None:
            return False
        threshold = 1 if self.knowledge.is_stuck() else 2
        return manhattan(pos, dragon.position) <= threshold

    # ----------------------------------------------------------- exploration
    def explore(self, state: GameStateData) -> Move:
        k = self.knowledge
        pos = state.warriors[self.me].position
        if pos is None:
            return None
        dragon = state.dragon
        hint = dragon.treasure_hint_position

        if hint is not None:
            if manhattan(pos, hint) > 2:
                move = self.move_toward(state, pos, hint)
                if move is not None and not self._would_trigger_evade(move, state):
                    return move
                if move is not None:
                    safe = self._safe_hint_directed_move(state, hint)
                    if safe is not None:
                        return safe
            else:
                area_target = self._find_hint_area_target(state, pos, hint)
                if area_target is not None:
                    move = self.move_toward(state, pos, area_target)
                    if move is not None:
                        return move
        elif dragon.visible and dragon.position is not None and manhattan(pos, dragon.position) > 4:
            move = self.move_toward(state, pos, dragon.position)
            if move is not None:
                return move

        # Probe an unknown edge right here before walking anywhere else.
        unknown = []
        for d, nb in exits(pos):
            if not k.is_unknown(state, pos, d):
                continue
            bonus = 0
            if hint is not None:
                h = manhattan(nb, hint)
                if h <= 4:
                    bonus = (5 - h) * 2
            elif dragon.visible and dragon.position is not None:
                h = manhattan(nb, dragon.position)
                if h <= 4:
                    bonus = 5 - h
            unknown.append(
                (
                    k.dead_end_depth(state, nb, d.opposite),
                    self._would_trigger_evade(nb, state),
                    nb in k.visited,
                    -k.frontier_score(nb),
                    -bonus,
                    self.rng.random(),
                    nb,
                )
            )
        if unknown:
            unknown.sort(key=lambda c: c[:6])
            return unknown[0][6]

        target = self._find_exploration_target(state, pos)
        if target is not None:
            move = self.move_toward(state, pos, target)
            if move is not None and not self._would_trigger_evade(move, state):
                return move
            if move is not None:
                return self._safe_explore_move(state) or move

        return self.anti_oscillation_move(state)

    def _find_exploration_target(self, state: GameStateData, start: Position) -> Move:
        k = self.knowledge
        dragon = state.dragon
        hint = dragon.treasure_hint_position
        best, best_score = None, float("-inf")
        for tile in bfs_order(k, state, start):
            unknown_edges = sum(1 for d, _ in exits(tile) if k.is_unknown(state, tile, d))
            if unknown_edges == 0 or tile == start:
                continue
            bonus = 0
            if hint is not None:
                h = manhattan(tile, hint)
                if h <= 2:
                    bonus = (3 - h) * 10 + 10
                elif h <= 4:
                    bonus = (5 - h) * 3
            elif dragon.visible and dragon.position is not None:
                h = manhattan(tile, dragon.position)
                if h <= 4:
                    bonus = (5 - h) * 2
            score = unknown_edges * 3 + bonus + k.frontier_score(tile) * 2
            if tile not in k.visited:
                score += 5
            score -= manhattan(start, tile) * 0.5
            score -= k.recent_visit_count(tile) * 4
            if score > best_score:
                best, best_score = tile, score
        if best is not None:
            return best

        directions = list(Direction)
        self.rng.shuffle(directions)
        for d in directions:
            for ed, nb in exits(start):
                if ed == d and not k.is_known_blocked(state, start, d) and nb not in k.visited:
                    return nb
        self.log.debug(event="ai_no_exploration_target", at=start)
        return None

    def _find_hint_area_target(self, state: GameStateData, start: Position, hint: Position) -> Move:
        """Nearest unvisited tile within Manhattan 2 of the hint, known routes first."""
        known = bfs_distances(self.knowledge, state, start)
        candidates = []
        for tile in all_positions():
            if tile == start or manhattan(tile, hint) > 2 or tile in self.knowledge.visited:
                continue
            if tile in known:
                candidates.append((0, known[tile], tile))
            else:
                candidates.append((1, manhattan(start, tile), tile))
        if not candidates:
            return None
        candidates.sort(key=lambda c: c[:2])
        return candidates[0][2]

    def _safe_explore_move(self, state: GameStateData) -> Move:
        k = self.knowledge
        pos = state.warriors[self.me].position
        candidates = []
        for d, nb in exits(pos):
            if k.is_known_blocked(state, pos, d) or self._would_trigger_evade(nb, state):
                continue
            candidates.append(
                (
                    k.dead_end_depth(state, nb, d.opposite),
                    k.recent_visit_count(nb),
                    not k.is_unknown(state, pos, d),
                    self.rng.random(),
                    nb,
                )
            )
        if not candidates:
            return None
        candidates.sort(key=lambda c: c[:4])
        return candidates[0][4]

    def _safe_hint_directed_move(self, state: GameStateData, hint: Position) -> Move:
        k = self.knowledge
        pos = state.warriors[self.me].position
        candidates = []
        for d, nb in exits(pos):
            if k.is_known_blocked(state, pos, d) or self._would_trigger_evade(nb, state):
                continue
            candidates.append(
                (
                    k.dead_end_depth(state, nb, d.opposite),
                    manhattan(nb, hint),
                    k.recent_visit_count(nb),
                    not k.is_unknown(state, pos, d),
                    nb,
                )
            )
        if not candidates:
            return None
        candidates.sort(key=lambda c: c[:4])
        best = candidates[0]
        if best[1] <= manhattan(pos, hint):
            return best[4]
        return None

    def anti_oscillation_move(self, state: GameStateData) -> Move:
        """Least recently visited neighbour, unknown edges first, to break A-B-A-B loops."""
        k = self.knowledge
        pos = state.warriors[self.me].position
        if pos is None:
            return None
        candidates = []
        for d, nb in exits(pos):
            if k.is_known_blocked(state, pos, d):
                continue
            candidates.append(
                (
                    k.dead_end_depth(state, nb, d.opposite),
                    k.recent_visit_count(nb),
                    not k.is_unknown(state, pos, d),
                    self.rng.random(),
                    nb,
                )
            )
        if not candidates:
            return None
        candidates.sort(key=lambda c: c[:4])
        return candidates[0][4]

    def random_adjacent_move(self, state: GameStateData) -> Move:
        pos = state.warriors[self.me].position
        if pos is None:
            return None
        options = [nb for d, nb in exits(pos) if not self.knowledge.is_known_blocked(state, pos, d)]
        return self.rng.choice(options) if options else None

    # ------------------------------------------------------------ safety
    def last_move_dragon_safety(self, state: GameStateData, current: Position, proposed: Position) -> Union[Position, str, None]:
        """Check the final move of a turn against the dragon's next step.

        Returns None when ``proposed`` is fine, a replacement tile when a safer
        one exists, or ``SKIP`` when staying put is the least bad option.
        """
        k = self.knowledge
        dragon_pos = state.dragon.position
        if dragon_pos is None:
            return None

        current_cheby = chebyshev(current, dragon_pos)
        proposed_dir = direction_between(current, proposed)
        proposed_locked = proposed_dir is not None and k.is_locked_door(state, current, proposed_dir)
        target_danger = chebyshev(proposed, dragon_pos) <= 1
        door_danger = proposed_locked and current_cheby <= 1
        if not target_danger and not door_danger:
            return None

        in_danger = current_cheby <= 1
        candidates = []
        for d, nb in exits(current):
            if k.is_known_blocked(state, current, d):
                continue
            locked = k.is_locked_door(state, current, d)
            candidates.append(
                (
                    -chebyshev(nb, dragon_pos),
                    locked if in_danger else False,
                    k.dead_end_depth(state, nb, d.opposite),
                    not k.is_known_passable(state, current, d),
                    locked,
                    nb,
                )
            )
        candidates.sort(key=lambda c: c[:4])

        for cand in candidates:
            cheby, locked, nb = -cand[0], cand[4], cand[5]
            if cheby > 1 and (not locked or not in_danger):
                return nb

        if not in_danger:
            return SKIP
        if candidates and -candidates[0][0] > current_cheby:
            return candidates[0][5]
        return SKIP


__all__ = ["AIController", "AIPhase", "TurnAborted", "SKIP"]
