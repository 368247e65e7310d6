from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import List, Optional

RANKS = "AKQJT98765432"
SUITS = "cdhs"
# Tens count as face cards for the float rules: a ten loses to a jack even
# though both are worth 10.
FACES = "AKQJT"

CLUBS = "c"
DIAMONDS = "d"
HEARTS = "h"
SPADES = "s"

DECK_SIZE = len(RANKS) * len(SUITS)


@dataclass(frozen=True)
class Card:
    rank: str
    suit: str

    def __post_init__(self) -> None:
        if self.rank not in RANKS:
            raise ValueError(f"Invalid rank: {self.rank}")
        if self.suit not in SUITS:
            raise ValueError(f"Invalid suit: {self.suit}")

    @property
    def label(self) -> str:
        return f"{self.rank}{self.suit}"

    @property
    def is_face(self) -> bool:
        return self.rank in FACES

    @property
    def value(self) -> int:
        return rank_value(self.rank)


def rank_value(rank: str) -> int:
    if rank == "A":
        return 11
    if rank in FACES:
        return 10
    return int(rank)


def build_deck() -> List[Card]:
    return [Card(rank, suit) for suit in SUITS for rank in RANKS[::-1]]


def deal(deck: List[Card], count: int) -> List[Card]:
    if len(deck) < count:
        raise ValueError("Not enough cards left in deck")
    cards = deck[:count]
    del deck[:count]
    return cards


def parse_label(label: str) -> Card:
    if len(label) != 2:
        raise ValueError(f"Invalid card label: {label}")
    return Card(label[0], label[1])


def parse_cards(labels: List[str]) -> List[Card]:
    return [parse_label(label) for label in labels]


@dataclass
class CardPiles:
    """The draw deck and the public discard pile.

    Cards only ever move between these piles and the players' hands. The deck
    is drawn from the front; the discard pile is a bag whose order only
    matters for reshuffling.
    """

    rng: random.Random
    deck: List[Card] = field(default_factory=list)
    discard: List[Card] = field(default_factory=build_deck)

    def shuffle(self) -> None:
        # Fold the deck into the discard pile, shuffle it all, and draw from it.
        self.discard.extend(self.deck)
        self.rng.shuffle(self.discard)
        self.deck = self.discard
        self.discard = []

    def deal(self, count: int) -> List[Card]:
        return deal(self.deck, count)

    def draw(self) -> Card:
        return deal(self.deck, 1)[0]

    def throw(self, card: Card) -> None:
        self.discard.append(card)

    def seed_discard(self, count: int) -> None:
        self.discard.extend(deal(self.deck, min(count, len(self.deck))))


def new_piles(seed: Optional[int] = None, rng: Optional[random.Random] = None) -> CardPiles:
    piles = CardPiles(rng=rng if rng is not None else random.Random(seed))
    piles.shuffle()
    return piles
