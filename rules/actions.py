from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from .models import Rejection, bounds_error, rule_error

# Player actions: one frozen dataclass per kind, each carrying only the fields
# it needs. ``name`` is the wire identifier.


@dataclass(frozen=True)
class CallHands:
    index: int
    name = "call_hands"


@dataclass(frozen=True)
class ContinueHands:
    index: int
    name = "continue_hands"


@dataclass(frozen=True)
class CallToss:
    index: int
    name = "call_toss"


@dataclass(frozen=True)
class ContinueToss:
    index: int
    name = "continue_toss"


@dataclass(frozen=True)
class CallShoot:
    target: str
    name = "call_shoot"


@dataclass(frozen=True)
class LoseLife:
    index: int
    name = "lose_life"


@dataclass(frozen=True)
class ContinueReplace:
    indices: Tuple[int, ...]
    name = "continue_replace"


@dataclass(frozen=True)
class CallFight:
    name = "call_fight"


ActionParams = Union[
    CallHands,
    ContinueHands,
    CallToss,
    ContinueToss,
    CallShoot,
    LoseLife,
    ContinueReplace,
    CallFight,
]


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _bad_params(msg: str) -> Rejection:
    return bounds_error("BAD_PARAMS", msg)


def _read_index(payload: Mapping[str, Any], build: Callable[[int], ActionParams]) -> Union[ActionParams, Rejection]:
    index = payload.get("index")
    if not _is_int(index):
        return _bad_params("index must be an integer")
    return build(index)


def _read_target(payload: Mapping[str, Any]) -> Union[ActionParams, Rejection]:
    target = payload.get("target")
    if not isinstance(target, str):
        return _bad_params("target must be a player name")
    return CallShoot(target)


def _read_indices(payload: Mapping[str, Any]) -> Union[ActionParams, Rejection]:
    indices = payload.get("indices")
    if not isinstance(indices, (list, tuple)):
        return _bad_params("cannot replace, indices not array")
    if not all(_is_int(idx) for idx in indices):
        return _bad_params("cannot replace, indices must be integers")
    return ContinueReplace(tuple(indices))


_PARSERS: Dict[str, Callable[[Mapping[str, Any]], Union[ActionParams, Rejection]]] = {
    CallHands.name: lambda payload: _read_index(payload, CallHands),
    ContinueHands.name: lambda payload: _read_index(payload, ContinueHands),
    CallToss.name: lambda payload: _read_index(payload, CallToss),
    ContinueToss.name: lambda payload: _read_index(payload, ContinueToss),
    CallShoot.name: _read_target,
    LoseLife.name: lambda payload: _read_index(payload, LoseLife),
    ContinueReplace.name: _read_indices,
    CallFight.name: lambda payload: CallFight(),
}


def parse_action(payload: Any) -> Union[ActionParams, Rejection]:
    """Decode the wire form ``{"action": ..., <fields>}`` into an action."""
    if not isinstance(payload, Mapping):
        return _bad_params("action parameters must be an object")
    action = payload.get("action")
    parser = _PARSERS.get(action) if isinstance(action, str) else None
    if parser is None:
        return rule_error("UNKNOWN_ACTION", "invalid action, unknown")
    return parser(payload)


def action_payload(params: ActionParams) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"action": params.name}
    if isinstance(params, CallShoot):
        payload["target"] = params.target
    elif isinstance(params, ContinueReplace):
        payload["indices"] = list(params.indices)
    elif not isinstance(params, CallFight):
        payload["index"] = params.index
    return payload


def describe(params: Optional[ActionParams]) -> str:
    if params is None:
        return "none"
    fields = {key: value for key, value in action_payload(params).items() if key != "action"}
    return f"{params.name}{fields}" if fields else params.name
