"""Lifecycle state machine for form instances.

Tracks where a form instance is in its life and enforces the valid steps:

    mounted -> active -> submitting -> active
    (any non-terminal state) -> disposed

Usage:
    >>> from formruntime.lifecycle import FormLifecycleMachine
    >>> lifecycle = FormLifecycleMachine(form_id="signup")
    >>> lifecycle.state
    <FormLifecycle.MOUNTED: 'mounted'>
    >>> lifecycle.transition_to(FormLifecycle.ACTIVE)
    >>> lifecycle.can_transition_to(FormLifecycle.SUBMITTING)
    True
"""

from dataclasses import dataclass
from typing import Dict, Set

from formruntime.errors import InvalidLifecycleTransitionError
from formruntime.types import FormLifecycle


# Maps each state to the set of states it can transition to
VALID_TRANSITIONS: Dict[FormLifecycle, Set[FormLifecycle]] = {
    FormLifecycle.MOUNTED: {
        FormLifecycle.ACTIVE,
        FormLifecycle.DISPOSED,
    },
    FormLifecycle.ACTIVE: {
        FormLifecycle.SUBMITTING,
        FormLifecycle.DISPOSED,
    },
    FormLifecycle.SUBMITTING: {
        FormLifecycle.ACTIVE,
        FormLifecycle.DISPOSED,
    },
    # Terminal
    FormLifecycle.DISPOSED: set(),
}


@dataclass
class FormLifecycleMachine:
    """Lifecycle tracker for one form instance.

    Attributes:
        form_id: Identifier of the owning form instance
        state: Current lifecycle state
    """

    form_id: str
    state: FormLifecycle = FormLifecycle.MOUNTED

    def can_transition_to(self, target_state: FormLifecycle) -> bool:
        return target_state in VALID_TRANSITIONS.get(self.state, set())

    def transition_to(self, target_state: FormLifecycle) -> None:
        """Move to a new lifecycle state.

        Raises:
            InvalidLifecycleTransitionError: If the step is not allowed
        """
        if not self.can_transition_to(target_state):
            valid = VALID_TRANSITIONS[self.state]
            raise InvalidLifecycleTransitionError(
                current_state=self.state,
                target_state=target_state,
                message=(
                    f"Form '{self.form_id}' cannot go from '{self.state.value}' "
                    f"to '{target_state.value}'. Valid steps from '{self.state.value}' are: "
                    f"{', '.join(sorted(s.value for s in valid))}"
                    if valid
                    else f"Form '{self.form_id}' is disposed, no transitions are allowed."
                ),
            )
        self.state = target_state

    def is_terminal(self) -> bool:
        return len(VALID_TRANSITIONS[self.state]) == 0


__all__ = [
    "FormLifecycleMachine",
    "VALID_TRANSITIONS",
]
