"""Explicit status workflows shared by the payment, commission, expense and voucher domains"""

from enum import Enum
from typing import Generic, Mapping, TypeVar, Union

S = TypeVar("S", bound=Enum)


class InvalidTransition(ValueError):
    """Raised when a status change is not allowed by a workflow"""

    def __init__(self, workflow: str, current: Enum, target: Enum):
        self.workflow = workflow
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot change {workflow} status from {current.value} to {target.value}"
        )


class StateMachine(Generic[S]):
    """
    Transition table over a status enum.

    Every member of the enum must appear as a key, terminal states map to an
    empty set. Construction fails if the table is not exhaustive.
    """

    def __init__(self, name: str, states: type[S], transitions: Mapping[S, frozenset]):
        missing = [state.value for state in states if state not in transitions]
        if missing:
            raise ValueError(f"{name} transitions missing states: {', '.join(missing)}")
        self.name = name
        self.states = states
        self._transitions = {state: frozenset(targets) for state, targets in transitions.items()}

    def coerce(self, value: Union[S, str]) -> S:
        if isinstance(value, self.states):
            return value
        try:
            return self.states(value)
        except ValueError as e:
            raise ValueError(f"Unknown {self.name} status: {value}") from e

    def allowed_from(self, current: Union[S, str]) -> frozenset:
        return self._transitions[self.coerce(current)]

    def can_transition(self, current: Union[S, str], target: Union[S, str]) -> bool:
        return self.coerce(target) in self.allowed_from(current)

    def is_terminal(self, state: Union[S, str]) -> bool:
        return not self.allowed_from(state)

    def validate(self, current: Union[S, str], target: Union[S, str]) -> S:
        """Return the target state or raise InvalidTransition"""
        current_state = self.coerce(current)
        target_state = self.coerce(target)
        if target_state not in self._transitions[current_state]:
            raise InvalidTransition(self.name, current_state, target_state)
        return target_state
