"""Rules engine for plankwalk, shared by the host server and the practice bots."""

from .actions import (
    ActionParams,
    CallFight,
    CallHands,
    CallShoot,
    CallToss,
    ContinueHands,
    ContinueReplace,
    ContinueToss,
    LoseLife,
    action_payload,
    parse_action,
)
from .cards import Card, CardPiles, FACES, RANKS, SUITS, build_deck, deal
from .compare import extreme_of, float_target, floats, suit_total
from .game import GameState, new_game
from .models import ErrorCategory, HandCard, Rejection, TurnPhase
from .view import HiddenSlot, KnownSlot, StateView

__all__ = [
    "ActionParams",
    "CallFight",
    "CallHands",
    "CallShoot",
    "CallToss",
    "ContinueHands",
    "ContinueReplace",
    "ContinueToss",
    "LoseLife",
    "action_payload",
    "parse_action",
    "Card",
    "CardPiles",
    "FACES",
    "RANKS",
    "SUITS",
    "build_deck",
    "deal",
    "extreme_of",
    "float_target",
    "floats",
    "suit_total",
    "GameState",
    "new_game",
    "ErrorCategory",
    "HandCard",
    "Rejection",
    "TurnPhase",
    "HiddenSlot",
    "KnownSlot",
    "StateView",
]
