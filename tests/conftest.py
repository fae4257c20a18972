import os
import random
import sys

import pytest

# Ensure repository root importable early
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Keep test output readable; individual tests lower this when they assert on logs
os.environ.setdefault("WAYSTONE_LOG_LEVEL", "warn")

from waystone import create_app  # noqa: E402
from waystone.game import GameEngine, GameSettings  # noqa: E402
from waystone.session import clear_sessions  # noqa: E402
from tests.game_test_utils import immediate  # noqa: E402


@pytest.fixture(scope="session")
def test_app():
    app = create_app()
    app.config.update(
        {
            "TESTING": True,
            "WAYSTONE_INLINE_AI": True,
            "WAYSTONE_AI_PACING": 0.0,
            "WAYSTONE_DRAGON_DELAY": 0.0,
        }
    )
    return app


@pytest.fixture()
def client(test_app):
    return test_app.test_client()


@pytest.fixture(autouse=True)
def _fresh_sessions():
    clear_sessions()
    yield
    clear_sessions()


@pytest.fixture()
def make_engine():
    def _make(rng=None, scheduler=immediate, **settings):
        return GameEngine(GameSettings(**settings), rng=rng or random.Random(1234), scheduler=scheduler)

    return _make
