"""
project: Waystone
module: session.py
License: MIT

One playable game: a GameEngine plus the maze it runs on, the CPU opponent,
the event log and the help line, behind a small set of player actions.

The session is the only place that sequences things the engine leaves to its
caller: a locked door ending the turn, the pause while the dragon takes its
step, and kicking off the computer's turn in CPU games. It knows nothing
about Flask; the web layer passes in an ``ai_runner`` (Socket.IO background
task) and reads ``snapshot()``.

Sessions live in a small in-process registry (``create_session`` /
``get_session`` / ``drop_session``) capped at ``WAYSTONE_MAX_SESSIONS``;
the oldest session is evicted and its AI aborted when the cap is hit.
"""

from __future__ import annotations

import asyncio
import os
import random
import threading
import time
import uuid
from collections import OrderedDict, deque
from typing import Any, Callable, Deque, Dict, List, Optional

from .game.ai import AIController
from .game.config import GameSettings, load_settings
from .game.engine import GameEngine, Scheduler, _timer_scheduler
from .game.maze import Maze, MazeGenerator
from .game.types import EventType, GameEvent, GameMode, GameState, GameStateData, Position
from .logging_utils import get_logger
from .messages import describe_event, level_message, room_prompt, turn_message
from .serialize import state_to_dict

log = get_logger("waystone.session")

EVENT_LOG_MAX = 50
DEFAULT_DRAGON_DELAY = 2.5
DEFAULT_MAX_SESSIONS = 32

Runner = Callable[[Callable[[], None]], Any]
SessionListener = Callable[["GameSession", GameEvent], None]


def thread_runner(job: Callable[[], None]):
    t = threading.Thread(target=job, name="waystone-ai", daemon=True)
    t.start()
    return t


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        log.warn(event="env_invalid", name=name, value=raw)
        return default


class GameSession:
    def __init__(
        self,
        mode: GameMode = GameMode.SINGLE,
        number_of_warriors: int = 1,
        level: int = 1,
        settings: Optional[GameSettings] = None,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
        scheduler: Optional[Scheduler] = None,
        ai_runner: Optional[Runner] = None,
        dragon_delay: Optional[float] = None,
        ai_pacing: Optional[float] = None,
        session_id: Optional[str] = None,
    ):
        self.id = session_id or uuid.uuid4().hex[:12]
        self.mode = GameMode(mode)
        # CPU games always seat the computer as warrior two
        self.number_of_warriors = 2 if self.mode == GameMode.CPU else (2 if number_of_warriors == 2 else 1)
        self.level = 2 if level == 2 else 1
        self.settings = settings or load_settings()
        self.seed = seed
        self.rng = rng or random.Random(seed)
        self.scheduler = scheduler or _timer_scheduler
        self.ai_runner = ai_runner or thread_runner
        self.dragon_delay = _env_float("WAYSTONE_DRAGON_DELAY", DEFAULT_DRAGON_DELAY) if dragon_delay is None else dragon_delay
        pacing = _env_float("WAYSTONE_AI_PACING", 1.0) if ai_pacing is None else ai_pacing
        self.log = log.bind(session=self.id)
        self.ai = AIController(
            rng=random.Random(self.rng.getrandbits(32)),
            pacing=pacing,
            warrior_number=1,
            logger=get_logger("waystone.ai").bind(session=self.id),
        )
        self.engine = GameEngine(
            self.settings,
            rng=self.rng,
            scheduler=self.scheduler,
            logger=get_logger("waystone.engine").bind(session=self.id),
        )
        self.engine.on(self._handle_event)
        self.maze: Optional[Maze] = None
        self.events: Deque[Dict[str, Any]] = deque(maxlen=EVENT_LOG_MAX)
        self.help_message = ""
        self.is_dragon_turn = False
        self.created = time.time()

        self._lock = threading.RLock()
        self._listeners: List[SessionListener] = []
        self._dragon_token = 0
        self._dragon_moved = False
        self._door_closed_for: Optional[int] = None
        self._ai_scheduled = False
        self._closed = False
        self._event_seq = 0
        self.new_game()

    # ------------------------------------------------------------ lifecycle
    def new_game(self) -> None:
        with self._lock:
            self.ai.reset()
            self._dragon_token += 1
            self.is_dragon_turn = False
            self._dragon_moved = False
            self._door_closed_for = None
            self._ai_scheduled = False
            self.events.clear()
            self.maze = MazeGenerator(self.settings, rng=self.rng).generate(self.seed)
            self.engine.start_game(self.number_of_warriors, self.mode, self.level)
            self.engine.set_maze(self.maze)
            self.help_message = room_prompt(self.state)
            self.log.info(event="session_new_game", mode=self.mode.value, level=self.level, seed=self.seed)

    def reset(self) -> None:
        self.new_game()

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._dragon_token += 1
            self.ai.abort()
            self._listeners.clear()
        self.log.info(event="session_closed")

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def state(self) -> GameStateData:
        return self.engine.get_state()

    def current_warrior(self) -> Optional[int]:
        s = self.state.state
        if s == GameState.WARRIOR_ONE_TURN:
            return 0
        if s == GameState.WARRIOR_TWO_TURN:
            return 1
        return None

    # -------------------------------------------------------------- actions
    def select_room(self, warrior_number: int, position: Position) -> bool:
        with self._lock:
            if self.mode == GameMode.CPU and warrior_number == 1:
                return False
            if not self.engine.set_warrior_secret_room(warrior_number, tuple(position)):
                return False
            if self.mode == GameMode.CPU and self.state.state == GameState.WARRIOR_TWO_SELECT_ROOM:
                room = self.ai.select_room(self.state)
                self.engine.set_warrior_secret_room(1, room)
            self.help_message = turn_message(self.state)
            self._after_action()
            return True

    def skip_warrior_two(self) -> bool:
        with self._lock:
            if not self.engine.skip_warrior_two():
                return False
            self.number_of_warriors = 1
            self.help_message = turn_message(self.state)
            return True

    def move(self, warrior_number: int, position: Position) -> bool:
        """Human move. In CPU games warrior two is not steerable from outside."""
        if self.mode == GameMode.CPU and warrior_number == 1:
            return False
        return self._apply_move(warrior_number, position)

    def finish_turn(self, warrior_number: int) -> bool:
        if self.mode == GameMode.CPU and warrior_number == 1:
            return False
        return self._apply_finish(warrior_number)

    def toggle_level(self) -> int:
        with self._lock:
            self.level = self.engine.toggle_level()
            self.help_message = level_message(self.level)
            return self.level

    # ---------------------------------------------------------- move plumbing
    def _turn_rejection(self, warrior_number: int) -> Optional[str]:
        if self.is_dragon_turn:
            return "dragon_turn"
        if self.current_warrior() != warrior_number:
            return "not_your_turn"
        return None

    def _apply_move(self, warrior_number: int, position: Position) -> bool:
        with self._lock:
            reason = self._turn_rejection(warrior_number)
            if reason:
                self.log.debug(event="move_rejected", warrior=warrior_number, reason=reason)
                return False
            moved = self.engine.move_warrior(warrior_number, tuple(position))
            self._after_action()
            return moved

    def _apply_finish(self, warrior_number: int) -> bool:
        with self._lock:
            reason = self._turn_rejection(warrior_number)
            if reason:
                self.log.debug(event="finish_rejected", warrior=warrior_number, reason=reason)
                return False
            mark = self._event_seq
            self.engine.finish_warrior_turn(warrior_number)
            self._refresh_turn_message(mark)
            self._after_action()
            return True

    def _refresh_turn_message(self, mark: int, lead: str = "") -> None:
        # an attack line outranks the plain turn announcement
        fresh = self._event_seq - mark
        recent = list(self.events)[-fresh:] if fresh else []
        if any(e["type"] in (EventType.DRAGON_ATTACK.value, EventType.WARRIOR_KILLED.value) for e in recent):
            return
        if self.state.state != GameState.GAME_OVER:
            message = turn_message(self.state)
            self.help_message = f"{lead} {message}" if lead and message else message

    def _after_action(self) -> None:
        if self._door_closed_for is not None:
            warrior = self._door_closed_for
            self._door_closed_for = None
            door_line = self.help_message
            mark = self._event_seq
            self.engine.finish_warrior_turn(warrior)
            self._refresh_turn_message(mark, lead=door_line)
        if self._dragon_moved:
            self._dragon_moved = False
            self._begin_dragon_turn()
        self._maybe_start_ai()

    def _handle_event(self, event: GameEvent) -> None:
        self._event_seq += 1
        self.events.append(event.to_dict())
        if event.type == EventType.DOOR_CLOSED:
            self._door_closed_for = event.warrior_number
        elif event.type == EventType.DRAGON_MOVED:
            self._dragon_moved = True

        message = describe_event(event, self.state)
        keep_treasure_line = event.type == EventType.DRAGON_MOVED and self.help_message.startswith("TREASURE FOUND")
        if message is not None and not keep_treasure_line:
            self.help_message = message
        for listener in list(self._listeners):
            listener(self, event)

    # ---------------------------------------------------------- dragon pause
    def _begin_dragon_turn(self) -> None:
        if self.dragon_delay <= 0:
            return
        self._dragon_token += 1
        token = self._dragon_token
        self.is_dragon_turn = True
        self.scheduler(self.dragon_delay, lambda: self._end_dragon_turn(token))

    def _end_dragon_turn(self, token: int) -> None:
        with self._lock:
            if token != self._dragon_token:
                return
            self.is_dragon_turn = False
            self._maybe_start_ai()

    # --------------------------------------------------------------- CPU turn
    def _maybe_start_ai(self) -> None:
        if self._closed or self.mode != GameMode.CPU or self._ai_scheduled:
            return
        s = self.state
        if s.state != GameState.WARRIOR_TWO_TURN or not s.warriors[1].alive:
            return
        self._ai_scheduled = True
        self.ai_runner(self._run_ai_turn)

    def _run_ai_turn(self) -> None:
        try:
            asyncio.run(
                self.ai.execute_turn(
                    get_state=lambda: self.state,
                    move_warrior=self._apply_move,
                    finish_turn=self._apply_finish,
                    is_dragon_turn_active=lambda: self.is_dragon_turn,
                )
            )
        finally:
            with self._lock:
                self._ai_scheduled = False
        # warrior one may be dead, in which case it is the computer's turn again
        with self._lock:
            self._maybe_start_ai()

    # ---------------------------------------------------------------- views
    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            s = self.state
            return {
                "id": self.id,
                "mode": self.mode.value,
                "seed": self.seed,
                "state": state_to_dict(s, reveal=s.state == GameState.GAME_OVER),
                "help_message": self.help_message,
                "is_dragon_turn": self.is_dragon_turn,
                "ai_thinking": self.ai.is_executing,
                "events": list(self.events),
            }


# --------------------------------------------------------------------------
# registry
_sessions: "OrderedDict[str, GameSession]" = OrderedDict()
_sessions_lock = threading.Lock()


def _max_sessions() -> int:
    raw = os.getenv("WAYSTONE_MAX_SESSIONS")
    try:
        return max(1, int(raw)) if raw else DEFAULT_MAX_SESSIONS
    except ValueError:
        log.warn(event="env_invalid", name="WAYSTONE_MAX_SESSIONS", value=raw)
        return DEFAULT_MAX_SESSIONS


def create_session(max_sessions: Optional[int] = None, **kwargs) -> GameSession:
    session = GameSession(**kwargs)
    cap = max_sessions or _max_sessions()
    evicted: List[GameSession] = []
    with _sessions_lock:
        _sessions[session.id] = session
        while len(_sessions) > cap:
            _, old = _sessions.popitem(last=False)
            evicted.append(old)
    for old in evicted:
        old.close()
        old.log.info(event="session_evicted", cap=cap)
    session.log.info(event="session_created", mode=session.mode.value, active=len(_sessions))
    return session


def get_session(session_id: str) -> Optional[GameSession]:
    with _sessions_lock:
        return _sessions.get(session_id)


def drop_session(session_id: str) -> bool:
    with _sessions_lock:
        session = _sessions.pop(session_id, None)
    if session is None:
        return False
    session.close()
    return True


def clear_sessions() -> None:
    with _sessions_lock:
        sessions = list(_sessions.values())
        _sessions.clear()
    for s in sessions:
        s.close()


def session_count() -> int:
    with _sessions_lock:
        return len(_sessions)


__all__ = [
    "GameSession",
    "thread_runner",
    "create_session",
    "get_session",
    "drop_session",
    "clear_sessions",
    "session_count",
]
