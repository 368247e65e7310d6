from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Union

from .cards import Card
from .models import TurnPhase

if TYPE_CHECKING:
    from .game import GameState


@dataclass(frozen=True)
class HiddenSlot:
    """A face-down card the viewer is not allowed to see."""

    visible: bool = False

    def payload(self) -> Dict[str, object]:
        return {"visible": False}


@dataclass(frozen=True)
class KnownSlot:
    card: Card
    visible: bool

    def payload(self) -> Dict[str, object]:
        return {"card": self.card.label, "visible": self.visible}


Slot = Union[HiddenSlot, KnownSlot]


@dataclass
class StateView:
    viewer: str
    player_order: List[str]
    active_player: Optional[int]
    turn_phase: TurnPhase
    turn_players: List[str]
    players_to_replace: List[str]
    replace_hearts: List[str]
    loss_blockable: bool
    discard: List[Card]
    deck_size: int
    hands: Dict[str, List[Slot]] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, object]:
        return {
            "viewer": self.viewer,
            "player_order": list(self.player_order),
            "active_player": self.active_player,
            "turn_phase": self.turn_phase.value,
            "turn_players": list(self.turn_players),
            "players_to_replace": list(self.players_to_replace),
            "replace_hearts": list(self.replace_hearts),
            "loss_blockable": self.loss_blockable,
            "discard": [card.label for card in self.discard],
            "deck_size": self.deck_size,
            "hands": {player: [slot.payload() for slot in slots] for player, slots in self.hands.items()},
        }


def project(game: GameState, viewer: str) -> StateView:
    """Build the snapshot ``viewer`` is allowed to see.

    A card is shown when it is face up or belongs to the viewer. Names that
    are not in the game get the public view.
    """
    hands: Dict[str, List[Slot]] = {}
    for owner, hand in game.hands.items():
        hands[owner] = [
            KnownSlot(slot.card, slot.visible) if slot.visible or owner == viewer else HiddenSlot()
            for slot in hand
        ]
    return StateView(
        viewer=viewer,
        player_order=list(game.player_order),
        active_player=game.active_index,
        turn_phase=game.phase,
        turn_players=list(game.turn_players),
        players_to_replace=list(game.players_to_replace),
        replace_hearts=list(game.replace_hearts),
        loss_blockable=game.loss_blockable,
        discard=list(game.piles.discard),
        deck_size=len(game.piles.deck),
        hands=hands,
    )
