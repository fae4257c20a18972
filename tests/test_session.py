import pytest

from waystone.game.types import Direction, DragonState, EventType, GameMode, GameState, PathType
from waystone.messages import turn_message
from waystone.session import (
    GameSession,
    clear_sessions,
    create_session,
    drop_session,
    get_session,
    session_count,
)

from tests.game_test_utils import Deferred, FixedRandom, immediate, open_maze


def _inline(job):
    job()


def _session(mode=GameMode.LOCAL, players=2, **kw):
    kw.setdefault("seed", 11)
    kw.setdefault("scheduler", immediate)
    kw.setdefault("ai_runner", _inline)
    kw.setdefault("dragon_delay", 0)
    kw.setdefault("ai_pacing", 0)
    return GameSession(mode=mode, number_of_warriors=players, **kw)


def _wake_dragon(session):
    s = session.state
    s.dragon.state = DragonState.AWAKE
    s.dragon.visible = True
    return s


def test_new_session_waits_for_rooms():
    session = _session()
    assert session.state.state == GameState.WARRIOR_ONE_SELECT_ROOM
    assert session.maze is not None and session.maze.is_connected()
    assert session.help_message == "Player 1: Pick a Waystone location for warrior one"


def test_cpu_mode_seats_two_and_picks_room():
    session = _session(mode=GameMode.CPU, players=1)
    assert session.number_of_warriors == 2
    assert session.select_room(1, (3, 3)) is False
    assert session.select_room(0, (0, 0))
    s = session.state
    assert s.state == GameState.WARRIOR_ONE_TURN
    assert s.warriors[1].secret_room not in (None, (0, 0))
    assert session.help_message.startswith("Warrior one's turn")


def test_cpu_warrior_is_not_steerable():
    session = _session(mode=GameMode.CPU)
    session.select_room(0, (0, 0))
    assert session.move(1, (0, 1)) is False
    assert session.finish_turn(1) is False


def test_cpu_plays_its_turn_after_human_finishes():
    session = _session(mode=GameMode.CPU, seed=5)
    session.select_room(0, (0, 0))
    assert session.finish_turn(0)
    s = session.state
    assert s.state in (GameState.WARRIOR_ONE_TURN, GameState.GAME_OVER)
    assert not session.ai.is_executing
    assert any(e.get("warrior_number") == 1 for e in session.events)


def test_out_of_turn_moves_rejected():
    session = _session()
    session.select_room(0, (0, 0))
    session.select_room(1, (7, 7))
    assert session.current_warrior() == 0
    assert session.move(1, (7, 6)) is False
    assert session.finish_turn(1) is False
    assert session.state.warriors[1].position == (7, 7)


def test_input_blocked_while_dragon_moves():
    deferred = Deferred()
    session = _session(scheduler=deferred, dragon_delay=1.0)
    session.select_room(0, (0, 0))
    session.select_room(1, (7, 7))
    _wake_dragon(session)
    assert session.finish_turn(0)
    assert session.finish_turn(1)
    assert session.is_dragon_turn
    assert session.finish_turn(0) is False
    assert session.snapshot()["is_dragon_turn"] is True
    deferred.run_all()
    assert not session.is_dragon_turn
    assert session.finish_turn(0)


def test_reset_cancels_pending_dragon_pause():
    deferred = Deferred()
    session = _session(scheduler=deferred, dragon_delay=1.0)
    session.select_room(0, (0, 0))
    session.select_room(1, (7, 7))
    _wake_dragon(session)
    session.finish_turn(0)
    session.finish_turn(1)
    assert session.is_dragon_turn
    session.reset()
    assert not session.is_dragon_turn
    deferred.run_all()
    assert not session.is_dragon_turn
    assert session.state.state == GameState.WARRIOR_ONE_SELECT_ROOM


def test_locked_door_ends_turn():
    session = _session(level=2)
    maze = open_maze()
    maze.set_path((0, 0), Direction.EAST, PathType.DOOR)
    session.engine.set_maze(maze)
    session.select_room(0, (0, 0))
    session.select_room(1, (7, 7))
    s = session.state
    s.locked_doors.set_pair((0, 0), Direction.EAST, True)
    session.engine.rng = FixedRandom([], then=0.99)

    assert session.move(0, (0, 1)) is False
    assert s.warriors[0].position == (0, 0)
    assert s.state == GameState.WARRIOR_TWO_TURN
    assert session.help_message == (
        "DOOR LOCKED! Warrior one found a closed door. Turn ended. " + turn_message(s)
    )
    assert session.help_message.endswith("Warrior two's turn with %d moves" % s.warriors[1].moves)


def _attack_lines(session):
    lines = []

    def record(sess, event):
        if event.type == EventType.DRAGON_ATTACK:
            lines.append(sess.help_message)

    session.subscribe(record)
    return lines


def _walk_into_dragon(session, lives):
    session.engine.set_maze(open_maze())
    session.select_room(0, (0, 0))
    session.select_room(1, (0, 7))
    s = session.state
    s.warriors[0].lives = lives
    s.dragon.position = (1, 0)
    s.treasure.room = (6, 6)
    session.move(0, (1, 0))
    return s


def test_attack_help_counts_lives_left_after_the_hit():
    session = _session()
    lines = _attack_lines(session)
    s = _walk_into_dragon(session, lives=3)
    assert s.warriors[0].lives == 2
    assert lines == ["Dragon attacks warrior one! Respawned. 2 lives remaining."]

    session.reset()
    lines.clear()
    s = _walk_into_dragon(session, lives=2)
    assert s.warriors[0].lives == 1
    assert lines == ["Dragon attacks warrior one! Respawned. 1 life remaining."]


def test_attack_help_on_last_life():
    session = _session()
    lines = _attack_lines(session)
    s = _walk_into_dragon(session, lives=1)
    assert not s.warriors[0].alive
    assert lines == ["Dragon defeats warrior one! They have fallen in battle."]


def test_help_message_tracks_moves():
    session = _session()
    session.engine.set_maze(open_maze())
    session.select_room(0, (0, 0))
    session.select_room(1, (7, 7))
    session.state.dragon.position = (6, 3)
    session.state.treasure.room = (6, 4)
    assert session.help_message == "Warrior one's turn with 8 moves"
    session.move(0, (0, 1))
    assert session.help_message == "Warrior one moved. 7 moves remaining this turn."
    session.finish_turn(0)
    assert session.help_message == "Warrior two's turn with 8 moves"


def test_skip_warrior_two_goes_solo():
    session = _session()
    session.select_room(0, (0, 0))
    assert session.skip_warrior_two()
    assert session.number_of_warriors == 1
    assert session.help_message == "Warrior one's turn. Explore and find the dragon!"


def test_toggle_level_message():
    session = _session()
    assert session.toggle_level() == 2
    assert session.help_message == "Switched to level two (with doors)"
    assert session.toggle_level() == 1


def test_snapshot_hides_dragon_and_treasure():
    session = _session()
    session.select_room(0, (0, 0))
    session.select_room(1, (7, 7))
    snap = session.snapshot()
    assert snap["state"]["dragon"]["position"] is None
    assert snap["state"]["treasure"]["room"] is None
    # both Waystones are drawn on the board for everyone
    assert [w["secret_room"] for w in snap["state"]["warriors"]] == [[0, 0], [7, 7]]
    assert "lair" not in snap["state"]["dragon"]
    assert snap["state"]["state"] == "warrior_one_turn"
    assert snap["ai_thinking"] is False

    session.state.state = GameState.GAME_OVER
    revealed = session.snapshot()["state"]
    assert revealed["dragon"]["position"] is not None
    assert revealed["treasure"]["room"] is not None


def test_event_log_is_bounded():
    session = _session()
    session.select_room(0, (0, 0))
    for _ in range(80):
        session.select_room(1, (0, 0))
    assert len(session.events) == 50
    assert session.events[-1] == {"type": "ILLEGAL_MOVE", "warrior_number": 1}
    assert session.help_message == "That move is not allowed."


def test_subscribers_see_events():
    session = _session()
    seen = []
    session.select_room(0, (0, 0))
    unsubscribe = session.subscribe(lambda sess, event: seen.append((sess.id, event.type.value)))
    session.select_room(1, (0, 0))
    unsubscribe()
    session.select_room(1, (0, 0))
    assert seen == [(session.id, "ILLEGAL_MOVE")]


def test_same_seed_same_maze():
    a = _session(seed=99)
    b = _session(seed=99)
    assert a.maze.rows() == b.maze.rows()


# ------------------------------------------------------------------ registry
def test_registry_create_get_drop():
    session = create_session(mode=GameMode.SINGLE, seed=1, ai_runner=_inline, dragon_delay=0)
    assert get_session(session.id) is session
    assert session_count() == 1
    assert drop_session(session.id)
    assert get_session(session.id) is None
    assert drop_session(session.id) is False


def test_registry_evicts_oldest():
    first = create_session(max_sessions=2, seed=1, dragon_delay=0)
    second = create_session(max_sessions=2, seed=2, dragon_delay=0)
    third = create_session(max_sessions=2, seed=3, dragon_delay=0)
    assert get_session(first.id) is None
    assert get_session(second.id) is second
    assert get_session(third.id) is third
    assert first._closed


def test_max_sessions_from_env(monkeypatch):
    monkeypatch.setenv("WAYSTONE_MAX_SESSIONS", "1")
    create_session(seed=1, dragon_delay=0)
    create_session(seed=2, dragon_delay=0)
    assert session_count() == 1
    clear_sessions()
    assert session_count() == 0


def test_closed_session_does_not_start_ai():
    calls = []
    session = _session(mode=GameMode.CPU, ai_runner=calls.append)
    session.select_room(0, (0, 0))
    session.close()
    session.finish_turn(0)
    assert calls == []


@pytest.mark.parametrize("raw, expected", [("", 2.5), ("abc", 2.5), ("0.5", 0.5)])
def test_dragon_delay_from_env(monkeypatch, raw, expected):
    monkeypatch.setenv("WAYSTONE_DRAGON_DELAY", raw)
    session = GameSession(seed=1)
    assert session.dragon_delay == expected
