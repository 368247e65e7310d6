from __future__ import annotations

import random
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Sequence

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
)
from .cards import CLUBS, DIAMONDS, HEARTS, SPADES, CardPiles, new_piles
from .compare import extreme_of, float_target, floats
from .models import (
    HandCard,
    Rejection,
    TurnPhase,
    bounds_error,
    lifecycle_error,
    rule_error,
    turn_error,
)
from .view import StateView, project

# GameState keeps the whole game in memory. No networking lives here, only
# the rules: who holds which card, whose move it is, and what happens next.

HAND_SIZE = 4
DISCARD_SEED = 4


class GameState:
    """One game of plankwalk, from the lobby to the last pirate standing.

    Every public method either applies completely and returns ``None`` or
    returns a :class:`Rejection` and leaves the state untouched. Callers must
    serialize mutations.
    """

    def __init__(self, rng: random.Random) -> None:
        self.rng = rng
        self.piles: CardPiles = new_piles(rng=rng)
        # Alive players only; insertion order is join order.
        self.hands: Dict[str, List[HandCard]] = {}
        # Fixed at start. Dead players stay so the active index keeps its
        # meaning (you can never block a challenge raised on your own turn).
        self.player_order: List[str] = []
        self.active_index: Optional[int] = None
        self.started = False
        self.phase = TurnPhase.NONE
        self.turn_players: Deque[str] = deque()
        # Becomes turn_players once the lose phase is done.
        self.players_to_replace: Deque[str] = deque()
        # Players who blocked a loss with hearts owe a heart replacement the
        # next time they replace, which may be several phases away.
        self.replace_hearts: List[str] = []
        self.loss_blockable = False

        self._resolvers: Dict[TurnPhase, Callable[[], bool]] = {
            TurnPhase.HANDS: self._resolve_hands,
            TurnPhase.TOSS: self._resolve_toss,
            TurnPhase.LOSE: self._resolve_lose,
            TurnPhase.REPLACE: self._resolve_replace,
        }
        self._handlers: Dict[type, Callable[[str, ActionParams], Optional[Rejection]]] = {
            CallHands: self._call_hands,
            ContinueHands: self._continue_hands,
            CallToss: self._call_toss,
            ContinueToss: self._continue_toss,
            CallShoot: self._call_shoot,
            LoseLife: self._lose_life,
            ContinueReplace: self._continue_replace,
            CallFight: self._call_fight,
        }

    # Player registry -------------------------------------------------

    def add_player(self, name: str) -> Optional[Rejection]:
        if self.started:
            return lifecycle_error("ALREADY_STARTED", "cannot add player, game has started")
        if len(self.piles.deck) < HAND_SIZE:
            return lifecycle_error("DECK_TOO_SMALL", "cannot add player, not enough cards left in deck")
        if name in self.hands:
            return lifecycle_error("DUPLICATE_NAME", "cannot add player, already exists")
        if not name:
            return lifecycle_error("EMPTY_NAME", "cannot add player, name is blank")

        # Reshuffle first so nobody can work out where the new cards came from.
        self.piles.shuffle()
        self.hands[name] = [HandCard(card) for card in self.piles.deal(HAND_SIZE)]
        return None

    def remove_player(self, name: str) -> Optional[Rejection]:
        hand = self.hands.pop(name, None)
        if hand is None:
            return lifecycle_error("NOT_IN_GAME", "cannot remove player, not in game")
        for slot in hand:
            self.piles.throw(slot.card)
        if not self.started:
            self.piles.shuffle()
            return None

        _drop(self.turn_players, name)
        _drop(self.players_to_replace, name)
        if name in self.replace_hearts:
            self.replace_hearts.remove(name)
        if self._win_check():
            return None
        if self.active_player() == name:
            self._end_turn()
        # Re-run the phase even if the leaver was not at the front; the queue
        # may now start with a forced move.
        self._run()
        return None

    def start_game(self) -> Optional[Rejection]:
        if self.started:
            return lifecycle_error("ALREADY_STARTED", "game already started")
        self.started = True
        self.piles.shuffle()
        self.piles.seed_discard(DISCARD_SEED)
        self.player_order = list(self.hands)
        self.phase = TurnPhase.ACTION
        if self.player_order:
            # No dealer, so the first player is random.
            self.active_index = self.rng.randrange(len(self.player_order))
        if self._win_check():
            return None
        if not self.piles.deck:
            # A full table can leave nothing to draw: straight to treasure.
            self._end_turn()
            self._run()
        return None

    def active_player(self) -> Optional[str]:
        if self.active_index is None:
            return None
        return self.player_order[self.active_index]

    def alive_players(self, include_active: bool = True) -> List[str]:
        """Alive players going around the table from the active player."""
        if self.active_index is None:
            return list(self.hands)
        start = self.active_index if include_active else self.active_index + 1
        rotation = self.player_order[start:] + self.player_order[: self.active_index]
        return [player for player in rotation if player in self.hands]

    def hand_of(self, name: str) -> Optional[Sequence[HandCard]]:
        hand = self.hands.get(name)
        return tuple(hand) if hand is not None else None

    def awaiting(self) -> Optional[str]:
        """The player the game is waiting on, if any."""
        if self.phase == TurnPhase.ACTION:
            return self.active_player()
        if self.phase in self._resolvers and self.turn_players:
            return self.turn_players[0]
        return None

    def get_state(self, viewer: str) -> StateView:
        return project(self, viewer)

    def _win_check(self) -> bool:
        alive = list(self.hands)
        if len(alive) > 1:
            return False
        self.phase = TurnPhase.OVER
        self.turn_players.clear()
        self.players_to_replace.clear()
        if alive:
            winner = alive[0]
            self.turn_players.append(winner)
            self.hands[winner] = [slot.revealed() for slot in self.hands[winner]]
        return True

    # Phase resolution ------------------------------------------------

    def _run(self) -> None:
        # Each resolver returns True once its phase is finished (the phase has
        # moved on) and False when the front player has a real choice.
        while True:
            resolver = self._resolvers.get(self.phase)
            if resolver is None or not resolver():
                return

    def _resolve_hands(self) -> bool:
        while self.turn_players:
            player = self.turn_players[0]
            hand = self.hands[player]
            facedown = [idx for idx in range(1, len(hand)) if not hand[idx].visible]
            if len(facedown) >= 2:
                return False
            # Zero or one card to flip: flipping everything is the same thing.
            self.hands[player] = [hand[0]] + [slot.revealed() for slot in hand[1:]]
            self.turn_players.popleft()
        self._end_turn()
        return True

    def _resolve_toss(self) -> bool:
        while self.turn_players:
            if not self.piles.deck:
                self._end_turn()
                return True
            player = self.turn_players[0]
            hand = self.hands[player]
            faceup = [idx for idx, slot in enumerate(hand) if slot.visible]
            if len(faceup) == 1:
                index = faceup[0]
            elif len(hand) == 1:
                index = 0
            else:
                return False
            self._swap_card(player, index)
            self.turn_players.popleft()
        self._end_turn()
        return True

    def _resolve_lose(self) -> bool:
        heart_target = float_target(self.piles.discard, HEARTS)
        active = self.active_player()
        while self.turn_players:
            player = self.turn_players[0]
            hand = self.hands[player]
            if self.loss_blockable and player != active and floats(hand, HEARTS, heart_target):
                if player not in self.replace_hearts:
                    self.replace_hearts.append(player)
                self.turn_players.popleft()
                continue
            if len(hand) > 2:
                if len(self.hands) <= 1:
                    # Everyone else just went down, so there is nobody left to
                    # lose a life to.
                    return self._win_check()
                return False
            # Two lives or fewer: the rightmost one goes.
            self.piles.throw(hand.pop().card)
            if not hand:
                del self.hands[player]
                _drop(self.players_to_replace, player)
                if player in self.replace_hearts:
                    self.replace_hearts.remove(player)
            self.turn_players.popleft()

        if self._win_check():
            return True
        if not self.players_to_replace:
            # Only a shot can get here: the sole replacer died.
            self._end_turn()
            return True

        self.phase = TurnPhase.REPLACE
        self.turn_players.extend(self.players_to_replace)
        self.players_to_replace.clear()
        if not self.piles.deck:
            # Challenges only start with cards in the deck, so an empty deck
            # here means a treasure challenge just finished.
            self.piles.shuffle()
            self.piles.seed_discard(DISCARD_SEED)
        return True

    def _resolve_replace(self) -> bool:
        while self.turn_players:
            if not self.piles.deck:
                # Whatever is still owed carries over to the next replace.
                self._end_turn()
                return True
            player = self.turn_players[0]
            hand = self.hands[player]
            if len(hand) == 1 and hand[0].visible:
                self._swap_card(player, 0)
                self._settle_heart_debt(player)
            elif (
                len(hand) == 2
                and hand[0].visible
                and player in self.replace_hearts
                and hand[0].card.suit != HEARTS
                and hand[1].card.suit == HEARTS
                and len(self.piles.deck) >= 2
            ):
                self._swap_card(player, 0)
                self._swap_card(player, 1)
                self._settle_heart_debt(player)
            else:
                return False
            self.turn_players.popleft()
        self._end_turn()
        return True

    def _end_turn(self) -> None:
        if self.piles.deck:
            order = self.player_order
            assert self.active_index is not None
            for step in range(1, len(order) + 1):
                candidate = (self.active_index + step) % len(order)
                if order[candidate] in self.hands:
                    self.active_index = candidate
                    break
            self.phase = TurnPhase.ACTION
            self.turn_players.clear()
            self.players_to_replace.clear()
            return

        # The deck ran dry: treasure challenge. Lowest diamonds lose a life,
        # nobody can block it, and everyone replaces afterwards.
        for player, hand in self.hands.items():
            self.hands[player] = [slot.revealed() for slot in hand]
        table = self.alive_players(include_active=True)
        self.phase = TurnPhase.LOSE
        self.turn_players.clear()
        self.turn_players.extend(extreme_of(self.hands, table, DIAMONDS, want_min=True))
        self.players_to_replace.clear()
        self.players_to_replace.extend(table)
        self.loss_blockable = False

    def _swap_card(self, player: str, index: int) -> None:
        hand = self.hands[player]
        self.piles.throw(hand[index].card)
        hand[index] = HandCard(self.piles.draw())

    def _owes_heart(self, player: str) -> bool:
        # A debt with no heart left to pay it is waived.
        return player in self.replace_hearts and any(slot.card.suit == HEARTS for slot in self.hands[player])

    def _settle_heart_debt(self, player: str) -> None:
        if player in self.replace_hearts:
            self.replace_hearts.remove(player)

    # Action handling -------------------------------------------------

    def do_action(self, player: str, params: ActionParams) -> Optional[Rejection]:
        handler = self._handlers.get(type(params))
        if handler is None:
            return rule_error("UNKNOWN_ACTION", "invalid action, unknown")
        return handler(player, params)

    def _require_turn(self, player: str, verb: str) -> Optional[Rejection]:
        if self.phase != TurnPhase.ACTION:
            return turn_error("WRONG_PHASE", f"cannot {verb} except during action phase")
        if self.active_player() != player:
            return turn_error("OUT_OF_TURN", f"cannot {verb} on someone elses turn")
        return None

    def _require_front(self, player: str, phase: TurnPhase, verb: str) -> Optional[Rejection]:
        if self.phase != phase:
            return turn_error("WRONG_PHASE", f"cannot {verb} except during {phase.value} phase")
        if not self.turn_players or self.turn_players[0] != player:
            return turn_error("OUT_OF_TURN", f"cannot {verb}, someone else has to go before you")
        return None

    def _check_flip(self, hand: Sequence[HandCard], index: int) -> Optional[Rejection]:
        if not 1 <= index < len(hand):
            return bounds_error("OUT_OF_BOUNDS", "cannot turn that faceup, out of bounds")
        if hand[index].visible:
            return rule_error("ALREADY_FACEUP", "cannot turn that faceup, already faceup")
        return None

    def _check_toss(self, hand: Sequence[HandCard], index: int) -> Optional[Rejection]:
        if not 0 <= index < len(hand):
            return bounds_error("OUT_OF_BOUNDS", "cannot toss that, out of bounds")
        if not hand[index].visible and any(slot.visible for slot in hand):
            return rule_error("MUST_TOSS_FACEUP", "cannot toss that, facedown while something else is faceup")
        return None

    def _call_hands(self, player: str, params: CallHands) -> Optional[Rejection]:
        rejection = self._require_turn(player, "call hands")
        if rejection:
            return rejection
        hand = self.hands[player]
        if all(slot.visible for slot in hand[1:]):
            return rule_error("ALL_FACEUP", "cannot do hands with all non-anchor already faceup")
        if len(hand) <= 2:
            return rule_error("TOO_FEW_LIVES", "cannot do hands with <=2 lives")
        rejection = self._check_flip(hand, params.index)
        if rejection:
            return rejection

        hand[params.index] = hand[params.index].revealed()
        self.phase = TurnPhase.HANDS
        self.turn_players.clear()
        self.turn_players.extend(self.alive_players(include_active=False))
        self._run()
        return None

    def _continue_hands(self, player: str, params: ContinueHands) -> Optional[Rejection]:
        rejection = self._require_front(player, TurnPhase.HANDS, "continue hands")
        if rejection:
            return rejection
        hand = self.hands[player]
        rejection = self._check_flip(hand, params.index)
        if rejection:
            return rejection

        hand[params.index] = hand[params.index].revealed()
        self.turn_players.popleft()
        self._run()
        return None

    def _call_toss(self, player: str, params: CallToss) -> Optional[Rejection]:
        rejection = self._require_turn(player, "call toss")
        if rejection:
            return rejection
        hand = self.hands[player]
        if len(hand) <= 1:
            return rule_error("TOO_FEW_LIVES", "cannot do toss with <=1 lives")
        rejection = self._check_toss(hand, params.index)
        if rejection:
            return rejection

        # A face-up anchor never survives past the turn it was revealed on, so
        # the anchor is only tossable here while everything is face down.
        self._swap_card(player, params.index)
        self.phase = TurnPhase.TOSS
        self.turn_players.clear()
        self.turn_players.extend(self.alive_players(include_active=False))
        self._run()
        return None

    def _continue_toss(self, player: str, params: ContinueToss) -> Optional[Rejection]:
        rejection = self._require_front(player, TurnPhase.TOSS, "continue toss")
        if rejection:
            return rejection
        rejection = self._check_toss(self.hands[player], params.index)
        if rejection:
            return rejection

        self._swap_card(player, params.index)
        self.turn_players.popleft()
        self._run()
        return None

    def _call_shoot(self, player: str, params: CallShoot) -> Optional[Rejection]:
        rejection = self._require_turn(player, "call shoot")
        if rejection:
            return rejection
        target = params.target
        if target not in self.hands:
            return bounds_error("NO_SUCH_PLAYER", "cannot shoot them, they dont exist")
        if target == player:
            return rule_error("SELF_TARGET", "cannot shoot yourself")

        self.hands[target] = [slot.revealed() for slot in self.hands[target]]
        club_target = float_target(self.piles.discard, CLUBS)
        self.turn_players.clear()
        self.players_to_replace.clear()
        if not floats(self.hands[target], CLUBS, club_target):
            # Target sank: they lose a life, then replace.
            self.loss_blockable = True
            self.phase = TurnPhase.LOSE
            self.turn_players.append(target)
            self.players_to_replace.append(target)
        else:
            # Target floated, so the shooter shows their hand too.
            self.hands[player] = [slot.revealed() for slot in self.hands[player]]
            if floats(self.hands[player], CLUBS, club_target):
                self.phase = TurnPhase.REPLACE
                self.turn_players.extend([target, player])
            else:
                self.loss_blockable = True
                self.phase = TurnPhase.LOSE
                self.turn_players.append(player)
                self.players_to_replace.extend([target, player])
        self._run()
        return None

    def _lose_life(self, player: str, params: LoseLife) -> Optional[Rejection]:
        rejection = self._require_front(player, TurnPhase.LOSE, "lose a life")
        if rejection:
            return rejection
        hand = self.hands[player]
        if params.index == 0:
            return rule_error("ANCHOR_LOCKED", "cannot lose your anchor")
        if not 1 <= params.index < len(hand):
            return bounds_error("OUT_OF_BOUNDS", "cannot lose that life, out of bounds")

        self.piles.throw(hand.pop(params.index).card)
        self.turn_players.popleft()
        self._run()
        return None

    def _continue_replace(self, player: str, params: ContinueReplace) -> Optional[Rejection]:
        rejection = self._require_front(player, TurnPhase.REPLACE, "replace")
        if rejection:
            return rejection
        hand = self.hands[player]
        chosen = set()
        for idx in params.indices:
            if not 0 <= idx < len(hand):
                return bounds_error("OUT_OF_BOUNDS", "cannot replace that, out of bounds")
            if idx in chosen:
                return bounds_error("DUPLICATE_INDEX", "cannot replace that, duplicate index")
            chosen.add(idx)

        anchor_owed = hand[0].visible
        heart_owed = self._owes_heart(player)
        has_anchor = 0 in chosen
        has_heart = any(hand[idx].card.suit == HEARTS for idx in chosen)
        deck_size = len(self.piles.deck)

        if deck_size < 2 and anchor_owed and heart_owed and hand[0].card.suit != HEARTS:
            # Both are owed, no single card pays both, and the deck cannot
            # cover two: either one will do.
            if not has_anchor and not has_heart:
                return rule_error(
                    "MUST_REPLACE_EITHER",
                    "replace invalid, must replace the anchor or a heart since the deck cannot cover both",
                )
        else:
            if anchor_owed and not has_anchor:
                return rule_error("MUST_REPLACE_ANCHOR", "replace invalid, must replace anchor")
            if heart_owed and not has_heart:
                return rule_error("MUST_REPLACE_HEART", "replace invalid, must replace heart")
        if deck_size < len(chosen):
            return rule_error("DECK_TOO_SMALL", "replace invalid, cannot replace more cards than deck has")

        for idx in params.indices:
            self._swap_card(player, idx)
        if has_heart or not heart_owed:
            self._settle_heart_debt(player)
        self.turn_players.popleft()
        self._run()
        return None

    def _call_fight(self, player: str, params: CallFight) -> Optional[Rejection]:
        rejection = self._require_turn(player, "call fight")
        if rejection:
            return rejection
        if len(self.hands) <= 2:
            return rule_error("TOO_FEW_PLAYERS", "cannot call fight with 2 players remaining")

        for name, hand in self.hands.items():
            self.hands[name] = [slot.revealed() for slot in hand]
        table = self.alive_players(include_active=True)
        highest = extreme_of(self.hands, table, SPADES, want_min=False)
        lowest = extreme_of(self.hands, table, SPADES, want_min=True)
        self.phase = TurnPhase.LOSE
        self.turn_players.clear()
        self.turn_players.extend(name for name in table if name in highest or name in lowest)
        self.players_to_replace.clear()
        self.players_to_replace.extend(table)
        self.loss_blockable = True
        self._run()
        return None


def _drop(queue: Deque[str], name: str) -> None:
    if name in queue:
        queue.remove(name)


def new_game(seed: Optional[int] = None, rng: Optional[random.Random] = None) -> GameState:
    """Create a fresh game. Pass ``seed`` or ``rng`` for reproducible shuffles."""
    return GameState(rng if rng is not None else random.Random(seed))
