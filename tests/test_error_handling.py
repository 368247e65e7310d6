import pytest

from rules.actions import CallFight, CallHands, CallShoot, CallToss, ContinueReplace, ContinueToss, LoseLife
from rules.models import ErrorCategory

from .helpers import create_game, stacked_game


def snapshot(game):
    return game.get_state("A").to_payload(), game.get_state("").to_payload()


@pytest.mark.parametrize(
    "player, params, category, code",
    [
        ("B", CallShoot("A"), ErrorCategory.TURN, "OUT_OF_TURN"),
        ("A", ContinueToss(1), ErrorCategory.TURN, "WRONG_PHASE"),
        ("A", LoseLife(1), ErrorCategory.TURN, "WRONG_PHASE"),
        ("A", ContinueReplace(()), ErrorCategory.TURN, "WRONG_PHASE"),
        ("A", CallShoot("Nobody"), ErrorCategory.BOUNDS, "NO_SUCH_PLAYER"),
        ("A", CallShoot("A"), ErrorCategory.RULE, "SELF_TARGET"),
        ("A", CallToss(9), ErrorCategory.BOUNDS, "OUT_OF_BOUNDS"),
        ("A", CallToss(-1), ErrorCategory.BOUNDS, "OUT_OF_BOUNDS"),
        ("A", CallHands(7), ErrorCategory.BOUNDS, "OUT_OF_BOUNDS"),
        ("A", CallFight(), ErrorCategory.RULE, "TOO_FEW_PLAYERS"),
    ],
)
def test_rejections_leave_state_untouched(player, params, category, code):
    game = stacked_game({"A": ["2c", "3c", "4c", "5c"], "B": ["2d", "3d", "4d", "5d"]})
    before = snapshot(game)

    rejection = game.do_action(player, params)

    assert rejection is not None
    assert rejection.category == category
    assert rejection.code == code
    assert snapshot(game) == before


def test_unknown_action_is_rejected():
    game = stacked_game({"A": ["2c", "3c", "4c", "5c"], "B": ["2d", "3d", "4d", "5d"]})
    rejection = game.do_action("A", object())  # type: ignore[arg-type]
    assert rejection.code == "UNKNOWN_ACTION"


def test_actions_before_start_are_rejected():
    game = create_game(["A", "B"])
    before = snapshot(game)
    rejection = game.do_action("A", CallShoot("B"))
    assert rejection.code == "WRONG_PHASE"
    assert snapshot(game) == before


def test_toss_with_one_life_is_rejected():
    game = stacked_game({"A": ["2c"], "B": ["2d", "3d", "4d", "5d"]})
    before = snapshot(game)
    rejection = game.do_action("A", CallToss(0))
    assert rejection.code == "TOO_FEW_LIVES"
    assert snapshot(game) == before


def test_rejection_payload_shape():
    game = stacked_game({"A": ["2c", "3c", "4c", "5c"], "B": ["2d", "3d", "4d", "5d"]})
    payload = game.do_action("B", CallShoot("A")).payload()
    assert payload == {
        "category": "turn",
        "code": "OUT_OF_TURN",
        "msg": "cannot call shoot on someone elses turn",
    }
