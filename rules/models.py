from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .cards import Card


class TurnPhase(str, Enum):
    NONE = "none"
    ACTION = "action"
    HANDS = "hands"
    TOSS = "toss"
    LOSE = "lose"
    REPLACE = "replace"
    OVER = "over"


class ErrorCategory(str, Enum):
    LIFECYCLE = "lifecycle"
    TURN = "turn"
    BOUNDS = "bounds"
    RULE = "rule"


@dataclass(frozen=True)
class HandCard:
    card: Card
    visible: bool = False

    def revealed(self) -> HandCard:
        return HandCard(self.card, True)


@dataclass(frozen=True)
class Rejection:
    """Why an operation was refused. Nothing was changed."""

    category: ErrorCategory
    code: str
    reason: str

    def payload(self) -> dict:
        return {"category": self.category.value, "code": self.code, "msg": self.reason}


def lifecycle_error(code: str, reason: str) -> Rejection:
    return Rejection(ErrorCategory.LIFECYCLE, code, reason)


def turn_error(code: str, reason: str) -> Rejection:
    return Rejection(ErrorCategory.TURN, code, reason)


def bounds_error(code: str, reason: str) -> Rejection:
    return Rejection(ErrorCategory.BOUNDS, code, reason)


def rule_error(code: str, reason: str) -> Rejection:
    return Rejection(ErrorCategory.RULE, code, reason)
