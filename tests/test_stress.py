import random

import pytest

from practice.bots import choose_action
from rules.actions import parse_action
from rules.game import new_game
from rules.models import TurnPhase

from .helpers import play_bots, total_cards


def check_invariants(game) -> None:
    assert total_cards(game) == 52
    for hand in game.hands.values():
        assert 1 <= len(hand) <= 4
    assert len(set(game.replace_hearts)) == len(game.replace_hearts)
    assert (game.phase == TurnPhase.OVER) == (len(game.hands) <= 1)
    if game.phase != TurnPhase.OVER:
        assert game.awaiting() in game.hands


@pytest.mark.parametrize("players", [2, 3, 4, 6])
def test_random_bots_play_to_the_end(players):
    for seed in range(25):
        game = new_game(seed=seed)
        for idx in range(players):
            assert game.add_player(f"P{idx}") is None
        assert game.start_game() is None

        rng = random.Random(seed)
        moves = 0
        while game.phase != TurnPhase.OVER:
            check_invariants(game)
            player = game.awaiting()
            params = choose_action(game.get_state(player).to_payload(), player, rng)
            assert params is not None
            rejection = game.do_action(player, parse_action(params))
            assert rejection is None, f"seed={seed} {player} {params}: {rejection}"
            moves += 1
            assert moves < 20_000, f"seed={seed} did not finish"
        check_invariants(game)
        assert len(game.turn_players) == len(game.hands)


def test_same_seed_replays_the_same_game():
    def final_state(seed: int):
        game = new_game(seed=seed)
        for name in ("A", "B", "C"):
            game.add_player(name)
        game.start_game()
        moves = play_bots(game, random.Random(seed), max_moves=20_000)
        return moves, game.get_state("").to_payload()

    assert final_state(99) == final_state(99)


def test_players_leaving_mid_game_never_stall_it():
    for seed in range(20):
        game = new_game(seed=seed)
        names = [f"P{idx}" for idx in range(5)]
        for name in names:
            game.add_player(name)
        game.start_game()
        rng = random.Random(seed)

        for _ in range(rng.randint(0, 40)):
            if game.phase == TurnPhase.OVER:
                break
            player = game.awaiting()
            game.do_action(player, parse_action(choose_action(game.get_state(player).to_payload(), player, rng)))

        while game.phase != TurnPhase.OVER and len(game.hands) > 2:
            leaver = rng.choice(sorted(game.hands))
            assert game.remove_player(leaver) is None
            check_invariants(game)

        play_bots(game, rng, max_moves=20_000)
        assert game.phase == TurnPhase.OVER
