import json

from waystone.logging_utils import get_logger


def test_key_value_line(monkeypatch, capsys):
    monkeypatch.setenv("WAYSTONE_LOG_LEVEL", "info")
    monkeypatch.delenv("WAYSTONE_LOG_JSON", raising=False)
    get_logger("waystone.test").info(event="dragon_move", frm=(2, 3), target=None, steps=4)
    out = capsys.readouterr().out.strip()
    assert out.startswith("level=info ts=")
    assert "event=dragon_move" in out
    assert "frm=(2,3)" in out
    assert "steps=4" in out
    assert "target=" not in out
    assert out.endswith("logger=waystone.test")


def test_level_threshold(monkeypatch, capsys):
    monkeypatch.setenv("WAYSTONE_LOG_LEVEL", "warn")
    log = get_logger("waystone.test")
    log.info(event="hidden")
    log.debug(event="hidden")
    log.warn(event="shown")
    out = capsys.readouterr().out
    assert "hidden" not in out
    assert "event=shown" in out


def test_errors_go_to_stderr(monkeypatch, capsys):
    monkeypatch.setenv("WAYSTONE_LOG_LEVEL", "info")
    get_logger("waystone.test").error(event="listener_failed")
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "event=listener_failed" in captured.err


def test_json_mode(monkeypatch, capsys):
    monkeypatch.setenv("WAYSTONE_LOG_LEVEL", "debug")
    monkeypatch.setenv("WAYSTONE_LOG_JSON", "1")
    get_logger("waystone.test").debug(event="ai_step", at=(1, 1), to=None)
    rec = json.loads(capsys.readouterr().out)
    assert rec["event"] == "ai_step"
    assert rec["level"] == "debug"
    assert rec["at"] == [1, 1]
    assert "to" not in rec
    assert rec["logger"] == "waystone.test"


def test_loggers_are_cached():
    assert get_logger("waystone.a") is get_logger("waystone.a")


def test_bound_context_precedes_fields(monkeypatch, capsys):
    monkeypatch.setenv("WAYSTONE_LOG_LEVEL", "info")
    monkeypatch.delenv("WAYSTONE_LOG_JSON", raising=False)
    base = get_logger("waystone.test")
    bound = base.bind(session="abc123")
    bound.info(event="dragon_move", to=(3, 4))
    base.info(event="plain")
    first, second = capsys.readouterr().out.strip().splitlines()
    assert " session=abc123 event=dragon_move to=(3,4) " in first
    assert "session=" not in second
    assert bound.bind(warrior=1).context == {"session": "abc123", "warrior": 1}


def test_warning_alias(monkeypatch, capsys):
    monkeypatch.setenv("WAYSTONE_LOG_LEVEL", "WARNING")
    log = get_logger("waystone.test")
    assert not log.enabled("info")
    assert log.enabled("warn")
    log.info(event="hidden")
    assert capsys.readouterr().out == ""


def test_session_lines_carry_session_id(monkeypatch, capsys):
    from waystone.game.types import GameMode
    from waystone.session import GameSession

    monkeypatch.setenv("WAYSTONE_LOG_LEVEL", "info")
    monkeypatch.delenv("WAYSTONE_LOG_JSON", raising=False)
    session = GameSession(mode=GameMode.LOCAL, number_of_warriors=2, seed=4, session_id="game42")
    session.select_room(0, (0, 0))
    out = capsys.readouterr().out
    engine_lines = [line for line in out.splitlines() if line.endswith("logger=waystone.engine")]
    assert engine_lines
    assert all("session=game42" in line for line in engine_lines)
    assert "event=room_selected" in out
