from __future__ import annotations

import random
from typing import Dict, Iterable, List, Optional, Sequence

from rules.cards import Card, parse_label
from rules.game import GameState, new_game
from rules.models import HandCard, TurnPhase

# Card labels with a trailing "^" are dealt face up, e.g. "Kc^".


def slot(label: str) -> HandCard:
    if label.endswith("^"):
        return HandCard(parse_label(label[:-1]), True)
    return HandCard(parse_label(label))


def cards(labels: Iterable[str]) -> List[Card]:
    return [parse_label(label) for label in labels]


def hand(*labels: str) -> List[HandCard]:
    return [slot(label) for label in labels]


def create_game(names: Sequence[str] = ("A", "B"), seed: int = 42) -> GameState:
    """A lobby with ``names`` joined and nothing started."""
    game = new_game(seed=seed)
    for name in names:
        assert game.add_player(name) is None
    return game


def stacked_game(
    hands: Dict[str, Sequence[str]],
    *,
    deck: Sequence[str] = ("2d", "3d", "4d", "5d", "6d", "7d"),
    discard: Sequence[str] = (),
    active: int = 0,
    seed: int = 7,
) -> GameState:
    """A started game in the action phase with exactly the given cards.

    The deck is drawn from the front, so list replacements in draw order.
    """
    game = new_game(seed=seed)
    game.hands = {name: hand(*labels) for name, labels in hands.items()}
    game.player_order = list(hands)
    game.piles.deck = cards(deck)
    game.piles.discard = cards(discard)
    game.started = True
    game.phase = TurnPhase.ACTION
    game.active_index = active
    return game


def labels_of(game: GameState, name: str) -> List[str]:
    held = game.hand_of(name)
    assert held is not None
    return [slot.card.label for slot in held]


def visibility(game: GameState, name: str) -> List[bool]:
    held = game.hand_of(name)
    assert held is not None
    return [slot.visible for slot in held]


def total_cards(game: GameState) -> int:
    return len(game.piles.deck) + len(game.piles.discard) + sum(len(held) for held in game.hands.values())


def play_bots(game: GameState, rng: Optional[random.Random] = None, max_moves: int = 5_000) -> int:
    """Drive ``game`` with the practice bots until it is over.

    Returns how many moves were made. Every bot move must be accepted.
    """
    from rules.actions import parse_action
    from practice.bots import choose_action

    rng = rng or random.Random(0)
    moves = 0
    while game.phase != TurnPhase.OVER and moves < max_moves:
        player = game.awaiting()
        assert player is not None, f"nobody to move in phase {game.phase}"
        params = choose_action(game.get_state(player).to_payload(), player, rng)
        assert params is not None, f"{player} owes a move but the bot passed"
        action = parse_action(params)
        rejection = game.do_action(player, action)  # type: ignore[arg-type]
        assert rejection is None, f"{player} {params} rejected: {rejection}"
        moves += 1
    return moves
