from __future__ import annotations

import random
from typing import Any, Dict, List, Optional

# Bots only ever see what a remote player sees: the redacted state payload.
# They never touch the engine directly, so the same code drives in-process
# tests and bots connected over a socket.

_PHASES_WITH_QUEUE = {"hands", "toss", "lose", "replace"}


def _suit(slot: Dict[str, Any]) -> Optional[str]:
    label = slot.get("card")
    return label[1] if isinstance(label, str) else None


def owes_move(state: Dict[str, Any], me: str) -> bool:
    phase = state.get("turn_phase")
    if phase == "action":
        order = state.get("player_order", [])
        active = state.get("active_player")
        return active is not None and order[active] == me
    if phase in _PHASES_WITH_QUEUE:
        queue = state.get("turn_players", [])
        return bool(queue) and queue[0] == me
    return False


def _action_phase(state: Dict[str, Any], me: str, rng: random.Random) -> Dict[str, Any]:
    hand: List[Dict[str, Any]] = state["hands"][me]
    rivals = [name for name in state["hands"] if name != me]
    options: List[Dict[str, Any]] = [{"action": "call_shoot", "target": rng.choice(rivals)}]

    if len(hand) > 1:
        options.append({"action": "call_toss", "index": _toss_index(hand, rng)})
    facedown = [idx for idx in range(1, len(hand)) if not hand[idx]["visible"]]
    if len(hand) > 2 and facedown:
        options.append({"action": "call_hands", "index": rng.choice(facedown)})
    if len(state["hands"]) > 2:
        options.append({"action": "call_fight"})
    return rng.choice(options)


def _toss_index(hand: List[Dict[str, Any]], rng: random.Random) -> int:
    faceup = [idx for idx, slot in enumerate(hand) if slot["visible"]]
    return rng.choice(faceup) if faceup else rng.randrange(len(hand))


def _replace_indices(state: Dict[str, Any], me: str, rng: random.Random) -> List[int]:
    hand: List[Dict[str, Any]] = state["hands"][me]
    deck_size: int = state["deck_size"]
    hearts = [idx for idx, slot in enumerate(hand) if _suit(slot) == "h"]

    indices: List[int] = []
    if hand[0]["visible"]:
        indices.append(0)
    if me in state.get("replace_hearts", []) and hearts and not (0 in indices and 0 in hearts):
        indices.append(hearts[0])
    # When the deck cannot cover every obligation, the first one is enough.
    indices = indices[:deck_size]

    spare = [idx for idx in range(len(hand)) if idx not in indices]
    room = deck_size - len(indices)
    if spare and room > 0 and rng.random() < 0.3:
        indices.append(rng.choice(spare))
    return indices


def choose_action(state: Dict[str, Any], me: str, rng: random.Random) -> Optional[Dict[str, Any]]:
    """Pick a random legal move for ``me``, or None when it is not our move."""
    if not owes_move(state, me):
        return None
    phase = state["turn_phase"]
    hand: List[Dict[str, Any]] = state["hands"][me]

    if phase == "action":
        return _action_phase(state, me, rng)
    if phase == "hands":
        facedown = [idx for idx in range(1, len(hand)) if not hand[idx]["visible"]]
        return {"action": "continue_hands", "index": rng.choice(facedown)}
    if phase == "toss":
        return {"action": "continue_toss", "index": _toss_index(hand, rng)}
    if phase == "lose":
        return {"action": "lose_life", "index": rng.randrange(1, len(hand))}
    return {"action": "continue_replace", "indices": _replace_indices(state, me, rng)}
