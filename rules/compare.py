from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Sequence, Union

from .cards import FACES, Card, rank_value
from .models import HandCard

# A float target is a face rank letter when the discard holds a face card of
# the suit, otherwise the highest numeral present (1 when the suit is absent).
FloatTarget = Union[str, int]

NO_CARDS_TARGET = 1


def float_target(discard: Iterable[Card], suit: str) -> FloatTarget:
    """Return the value a hand has to reach in ``suit`` to float."""
    ranks = {card.rank for card in discard if card.suit == suit}
    for face in FACES:
        if face in ranks:
            return face
    return max((int(rank) for rank in ranks), default=NO_CARDS_TARGET)


def target_value(target: FloatTarget) -> int:
    if isinstance(target, str):
        return rank_value(target)
    return target


def suit_cards(hand: Sequence[HandCard], suit: str) -> List[Card]:
    return [slot.card for slot in hand if slot.card.suit == suit]


def suit_total(hand: Sequence[HandCard], suit: str) -> int:
    return sum(card.value for card in suit_cards(hand, suit))


def floats(hand: Sequence[HandCard], suit: str, target: FloatTarget) -> bool:
    """Does ``hand`` meet or beat ``target`` in ``suit``?"""
    cards = suit_cards(hand, suit)
    if len(cards) == 1 and cards[0].is_face and isinstance(target, str):
        # A lone face card against a face target goes by face order.
        for face in FACES:
            if cards[0].rank == face:
                return True
            if target == face:
                return False
    return suit_total(hand, suit) >= target_value(target)


def extreme_of(
    hands: Mapping[str, Sequence[HandCard]],
    participants: Sequence[str],
    suit: str,
    want_min: bool,
) -> List[str]:
    """Players sharing the highest (or lowest) total in ``suit``.

    ``participants`` is the alive table order starting at the active player;
    the result keeps that order. No tie-break exists for any total but 10.
    """
    if not participants:
        return []

    totals: Dict[str, int] = {}
    singletons: Dict[str, Card] = {}
    for player in participants:
        cards = suit_cards(hands[player], suit)
        if len(cards) == 1:
            singletons[player] = cards[0]
        totals[player] = sum(card.value for card in cards)

    extreme = min(totals.values()) if want_min else max(totals.values())
    matched = [player for player in participants if totals[player] == extreme]

    # A 10 made of a single face card (or ten) ranks by face order, but only
    # when nobody reached 10 as a sum such as 2+8.
    if extreme == 10 and all(player in singletons and singletons[player].is_face for player in matched):
        face_order = FACES[::-1] if want_min else FACES
        for face in face_order:
            for player in matched:
                if singletons[player].rank == face:
                    return [player]

    return matched
