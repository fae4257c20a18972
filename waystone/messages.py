"""Player-facing help lines for each engine event and turn transition.

The session keeps the latest line in ``help_message`` so HTTP and Socket.IO
clients can show what just happened without re-deriving it from the state.
"""

from __future__ import annotations

from typing import Optional

from .game.types import DragonState, EventType, GameEvent, GameState, GameStateData


def warrior_name(number: Optional[int]) -> str:
    return "one" if number == 0 else "two"


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


def tracks_moves(state: GameStateData) -> bool:
    return state.number_of_warriors == 2 or state.dragon.state == DragonState.AWAKE


def room_prompt(state: GameStateData) -> str:
    if state.state == GameState.WARRIOR_TWO_SELECT_ROOM:
        return "Player 2: Pick a Waystone location for warrior two"
    if state.number_of_warriors == 1:
        return "Pick a Waystone location for warrior one"
    return "Player 1: Pick a Waystone location for warrior one"


def turn_message(state: GameStateData) -> str:
    if state.state == GameState.WARRIOR_ONE_TURN:
        current = 0
    elif state.state == GameState.WARRIOR_TWO_TURN:
        current = 1
    elif state.state in (GameState.WARRIOR_ONE_SELECT_ROOM, GameState.WARRIOR_TWO_SELECT_ROOM):
        return room_prompt(state)
    else:
        return ""
    if tracks_moves(state):
        return f"Warrior {warrior_name(current)}'s turn with {state.warriors[current].moves} moves"
    return f"Warrior {warrior_name(current)}'s turn. Explore and find the dragon!"


def level_message(level: int) -> str:
    return "Switched to level one (no doors)" if level == 1 else "Switched to level two (with doors)"


def describe_event(event: GameEvent, state: GameStateData) -> Optional[str]:
    """Help line for ``event`` given the state right after it, or None to keep the current line."""
    t = event.type
    who = warrior_name(event.warrior_number)

    if t == EventType.WARRIOR_MOVED:
        if not tracks_moves(state):
            return f"Warrior {who} moved. Keep exploring!"
        moves = state.warriors[event.warrior_number].moves
        if moves > 0:
            return f"Warrior {who} moved. {_plural(moves, 'move')} remaining this turn."
        return f"Warrior {who} has used all moves."

    if t == EventType.DRAGON_AWAKE:
        if state.number_of_warriors == 1:
            return f"DRAGON SPOTTED! It's hunting you! You have {state.warriors[0].moves} moves this turn."
        return "THE DRAGON AWAKENS! It has sensed your presence and is now hunting you!"

    if t == EventType.DRAGON_MOVED:
        if state.treasure.warrior >= 0:
            return f"Dragon is chasing warrior {warrior_name(state.treasure.warrior)} who carries the treasure!"
        if state.treasure.visible:
            return "Dragon returns to guard the treasure."
        return "You hear the dragon moving in the distance..."

    if t == EventType.DRAGON_ATTACK:
        # emitted before the life is taken
        lives = state.warriors[event.warrior_number].lives - 1
        if lives > 0:
            noun = "life" if lives == 1 else "lives"
            return f"Dragon attacks warrior {who}! Respawned. {lives} {noun} remaining."
        return f"Dragon defeats warrior {who}! They have fallen in battle."

    if t == EventType.TREASURE_FOUND:
        if state.number_of_warriors == 1:
            return f"TREASURE FOUND! Warrior {who} has the treasure! The dragon is now chasing you! Return to The Waystone to win!"
        return f"TREASURE FOUND! Warrior {who} has the treasure! Return it to The Waystone to win!"

    if t == EventType.WARRIOR_BATTLE:
        return (
            f"WARRIORS CLASH! Warrior {warrior_name(event.winner)} wins the battle "
            f"and takes the treasure from warrior {warrior_name(event.loser)}!"
        )

    if t == EventType.WARRIOR_KILLED:
        return f"Warrior {who} has been slain by the dragon!"

    if t == EventType.GAME_WON:
        return f"VICTORY! Warrior {who} has returned the treasure to The Waystone!"

    if t == EventType.GAME_LOST:
        return "GAME OVER! All warriors have fallen to the dragon. The treasure remains lost forever..."

    if t == EventType.WALL_HIT:
        if not tracks_moves(state):
            return f"WALL DISCOVERED! Warrior {who} found a wall."
        left = state.warriors[event.warrior_number].moves
        if left > 0:
            return f"WALL DISCOVERED! Warrior {who} found a wall. {_plural(left, 'move')} remaining."
        return f"WALL DISCOVERED! Warrior {who} found a wall. No moves remaining - turn ended."

    if t == EventType.DOOR_CLOSED:
        return f"DOOR LOCKED! Warrior {who} found a closed door. Turn ended."

    if t == EventType.ILLEGAL_MOVE:
        return "That move is not allowed."
    return None


__all__ = ["describe_event", "turn_message", "room_prompt", "level_message", "warrior_name", "tracks_moves"]
