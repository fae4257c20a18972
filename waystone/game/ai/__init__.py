"""Computer opponent: fog-of-war knowledge, known-edge pathfinding and the turn driver."""

from .controller import SKIP, AIController, AIPhase, TurnAborted  # noqa: F401
from .knowledge import MazeKnowledge  # noqa: F401

__all__ = ["AIController", "AIPhase", "TurnAborted", "SKIP", "MazeKnowledge"]
