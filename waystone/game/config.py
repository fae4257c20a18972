"""Game tuning knobs.

``GameSettings`` carries every probability, distance and budget the maze
generator and the engine read. ``load_settings`` layers a JSON overlay from
the ``WAYSTONE_SETTINGS`` environment variable (same shape as the dataclass
fields) and then explicit overrides on top of the defaults. Unknown keys are
ignored so an older overlay keeps working after a field is renamed.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

from ..logging_utils import get_logger

log = get_logger("waystone.config")


@dataclass
class GameSettings:
    # maze generation
    door_prob: float = 0.1
    wall_prob: float = 0.8
    remove_wall_threshold: int = 2
    remove_wall_prob: float = 0.0
    edge_wall_bias: bool = True
    # rules
    treasure_room_distance: int = 3
    max_lives: int = 3
    base_moves: int = 2
    moves_per_life: int = 2
    moves_with_treasure: int = 4
    door_closed_prob: float = 0.35
    door_unlock_prob: float = 0.5
    dragon_wake_distance: int = 3
    dragon_visibility_distance: int = 5
    # seconds between a fatal attack and the game-over transition
    game_over_delay: float = 1.5


def _cfg() -> Dict[str, Any]:
    raw = os.getenv("WAYSTONE_SETTINGS")
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        log.warn(event="settings_overlay_invalid", reason="json")
        return {}
    if not isinstance(data, dict):
        log.warn(event="settings_overlay_invalid", reason="not_object")
        return {}
    return data


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> GameSettings:
    known = {f.name for f in fields(GameSettings)}
    merged: Dict[str, Any] = {}
    for source in (_cfg(), overrides or {}):
        for key, value in source.items():
            if key in known:
                merged[key] = value
    return replace(GameSettings(), **merged)


__all__ = ["GameSettings", "load_settings"]
