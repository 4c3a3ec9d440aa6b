"""Explicit state tracking for a publish attempt.

Every phase change goes through ``StateMachine.transition``, which rejects
moves the transition table does not list and records each visited state.
The orchestrator returns that record to the caller as ``UploadOutcome.states``.

Example:
    machine = create_publish_state_machine()
    machine.transition(PublishState.VALIDATING)
    machine.transition(PublishState.UPLOADING_DIRECT)
    machine.history  # [FETCHING, VALIDATING, UPLOADING_DIRECT]
"""

from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Generic, TypeVar

from app.core.exceptions import ReelRelayError
from app.core.logging import get_logger
from app.models.publish import PublishState

logger = get_logger(__name__)

S = TypeVar("S", bound=str | Enum)

TransitionMap = Mapping[S, Sequence[S]]


def _label(state: str | Enum) -> str:
    return state.value if isinstance(state, Enum) else str(state)


class InvalidTransitionError(ReelRelayError):
    """A state change the transition table does not allow."""

    def __init__(self, current: S, target: S, allowed: Sequence[S] = ()):
        self.current = current
        self.target = target
        self.allowed = list(allowed)
        options = ", ".join(_label(s) for s in self.allowed) or "none (terminal)"
        super().__init__(
            message=f"Cannot move from {_label(current)} to {_label(target)}; "
            f"allowed: {options}",
            context={
                "current": _label(current),
                "target": _label(target),
                "allowed": [_label(s) for s in self.allowed],
            },
        )


class StateMachine(Generic[S]):
    """Table-driven state holder with a visit log.

    Attributes:
        name: Label used in log events
        current: State the machine is in
        history: States visited so far, the initial one included
    """

    def __init__(self, initial: S, transitions: TransitionMap[S], name: str = "state") -> None:
        self.name = name
        self._table = transitions
        self._current = initial
        self._visited: list[S] = [initial]

    @property
    def current(self) -> S:
        return self._current

    @property
    def history(self) -> list[S]:
        return list(self._visited)

    @property
    def allowed_transitions(self) -> list[S]:
        return list(self._table.get(self._current, ()))

    @property
    def is_terminal(self) -> bool:
        """True once the current state has no outgoing transitions."""
        return not self._table.get(self._current)

    def can_transition(self, target: S) -> bool:
        return target in self._table.get(self._current, ())

    def transition(self, target: S) -> None:
        """Move to ``target``.

        Raises:
            InvalidTransitionError: The table has no edge to ``target``
        """
        if not self.can_transition(target):
            raise InvalidTransitionError(self._current, target, self.allowed_transitions)
        logger.debug(
            "State changed",
            machine=self.name,
            previous=_label(self._current),
            current=_label(target),
        )
        self._current = target
        self._visited.append(target)

    def transition_to(self, target: S) -> S:
        """Move to ``target`` and return it."""
        self.transition(target)
        return self._current

    def __repr__(self) -> str:
        return f"StateMachine(name={self.name!r}, current={_label(self._current)!r})"


# Transcoding may repeat: a failed or rejected profile moves on to the next one
PUBLISH_TRANSITIONS: dict[PublishState, tuple[PublishState, ...]] = {
    PublishState.FETCHING: (PublishState.VALIDATING, PublishState.FAILED),
    PublishState.VALIDATING: (PublishState.UPLOADING_DIRECT, PublishState.FAILED),
    PublishState.UPLOADING_DIRECT: (
        PublishState.DONE,
        PublishState.TRANSCODING,
        PublishState.FAILED,
    ),
    PublishState.TRANSCODING: (
        PublishState.UPLOADING_TRANSCODED,
        PublishState.TRANSCODING,
        PublishState.FAILED,
    ),
    PublishState.UPLOADING_TRANSCODED: (
        PublishState.DONE,
        PublishState.TRANSCODING,
        PublishState.FAILED,
    ),
    PublishState.DONE: (),
    PublishState.FAILED: (),
}


def get_publish_transitions() -> dict[PublishState, tuple[PublishState, ...]]:
    """Return a copy of the publish transition table."""
    return dict(PUBLISH_TRANSITIONS)


def create_publish_state_machine(
    initial_state: PublishState | str = PublishState.FETCHING,
) -> StateMachine[PublishState]:
    """Build the state machine for one publish attempt.

    Args:
        initial_state: Starting state, FETCHING unless resuming a test scenario

    Returns:
        StateMachine over PublishState
    """
    return StateMachine(PublishState(initial_state), PUBLISH_TRANSITIONS, name="publish")


__all__ = [
    "PUBLISH_TRANSITIONS",
    "InvalidTransitionError",
    "StateMachine",
    "TransitionMap",
    "create_publish_state_machine",
    "get_publish_transitions",
]
