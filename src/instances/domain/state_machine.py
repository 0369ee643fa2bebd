"""
Instance lifecycle transition table.

Pure functions only: no I/O, no locking. The application-level state machine
service applies these rules under the per-instance lock.

| From                  | Operation   | Success      | Gateway failure |
|-----------------------|-------------|--------------|-----------------|
| DISCONNECTED, FAILED  | connect     | CONNECTING   | FAILED          |
| CONNECTED             | disconnect  | DISCONNECTED | FAILED          |
| any                   | restart     | CONNECTING   | FAILED          |
| any                   | delete      | (removed)    | (removed)       |
| CONNECTING            | expire      | FAILED       | -               |

Gateway status reports are applied from any state (see resolve_reported_state).
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from src.instances.domain.entities.instance import InstanceState
from src.instances.domain.exceptions import InvalidTransitionError


class Operation(str, Enum):
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    RESTART = "restart"
    DELETE = "delete"
    EXPIRE = "expire"


ALL_STATES: FrozenSet[InstanceState] = frozenset(InstanceState)


@dataclass(frozen=True)
class Transition:
    operation: Operation
    sources: FrozenSet[InstanceState]
    # None means the instance is removed
    on_success: Optional[InstanceState]
    on_failure: Optional[InstanceState]


TRANSITIONS: Dict[Operation, Transition] = {
    Operation.CONNECT: Transition(
        Operation.CONNECT,
        frozenset({InstanceState.DISCONNECTED, InstanceState.FAILED}),
        InstanceState.CONNECTING,
        InstanceState.FAILED,
    ),
    Operation.DISCONNECT: Transition(
        Operation.DISCONNECT,
        frozenset({InstanceState.CONNECTED}),
        InstanceState.DISCONNECTED,
        InstanceState.FAILED,
    ),
    Operation.RESTART: Transition(
        Operation.RESTART, ALL_STATES, InstanceState.CONNECTING, InstanceState.FAILED
    ),
    Operation.DELETE: Transition(Operation.DELETE, ALL_STATES, None, None),
    Operation.EXPIRE: Transition(
        Operation.EXPIRE,
        frozenset({InstanceState.CONNECTING}),
        InstanceState.FAILED,
        InstanceState.FAILED,
    ),
}


def guard(state: InstanceState, operation: Operation) -> Transition:
    """
    Return the transition for (state, operation).

    Raises:
        InvalidTransitionError: If the table defines no such transition
    """
    transition = TRANSITIONS.get(operation)
    if transition is None or state not in transition.sources:
        raise InvalidTransitionError(state.value, operation.value)
    return transition


def is_allowed(state: InstanceState, operation: Operation) -> bool:
    transition = TRANSITIONS.get(operation)
    return transition is not None and state in transition.sources


# Gateway connection states -> local states. "refused" is the gateway
# reporting a failed pairing.
GATEWAY_STATE_MAP: Dict[str, InstanceState] = {
    "open": InstanceState.CONNECTED,
    "connecting": InstanceState.CONNECTING,
    "close": InstanceState.DISCONNECTED,
    "closed": InstanceState.DISCONNECTED,
    "refused": InstanceState.FAILED,
}


def map_gateway_state(raw: str) -> Optional[InstanceState]:
    """Local state for a gateway-reported state, None when unrecognized."""
    return GATEWAY_STATE_MAP.get((raw or "").strip().lower())


def resolve_reported_state(raw: str) -> Tuple[InstanceState, bool]:
    """
    Local state for a gateway status report.

    Returns:
        (state, anomaly) where anomaly is True for unrecognized reports,
        which always resolve to FAILED.
    """
    mapped = map_gateway_state(raw)
    if mapped is None:
        return InstanceState.FAILED, True
    return mapped, False
