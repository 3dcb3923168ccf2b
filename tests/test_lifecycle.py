"""Unit tests for the form lifecycle state machine.

Tests cover:
- Valid and invalid transitions
- Terminal state detection
- Lifecycle enforcement by FormInstance
"""

import pytest

from formruntime.errors import ConfigurationError, InvalidLifecycleTransitionError
from formruntime.lifecycle import VALID_TRANSITIONS, FormLifecycleMachine
from formruntime.runtime import FormInstance
from formruntime.types import FieldDefinition, FormLifecycle


class TestLifecycleMachine:
    """Test FormLifecycleMachine."""

    def test_starts_mounted(self):
        """Should start in MOUNTED."""
        assert FormLifecycleMachine(form_id="f").state == FormLifecycle.MOUNTED

    def test_mounted_to_active(self):
        """Should allow MOUNTED -> ACTIVE."""
        machine = FormLifecycleMachine(form_id="f")
        machine.transition_to(FormLifecycle.ACTIVE)
        assert machine.state == FormLifecycle.ACTIVE

    def test_submit_cycle(self):
        """Should allow ACTIVE -> SUBMITTING -> ACTIVE."""
        machine = FormLifecycleMachine(form_id="f", state=FormLifecycle.ACTIVE)
        machine.transition_to(FormLifecycle.SUBMITTING)
        machine.transition_to(FormLifecycle.ACTIVE)
        assert machine.state == FormLifecycle.ACTIVE

    def test_mounted_cannot_submit(self):
        """Should reject MOUNTED -> SUBMITTING."""
        machine = FormLifecycleMachine(form_id="f")
        with pytest.raises(InvalidLifecycleTransitionError) as exc_info:
            machine.transition_to(FormLifecycle.SUBMITTING)
        assert exc_info.value.current_state == FormLifecycle.MOUNTED
        assert exc_info.value.target_state == FormLifecycle.SUBMITTING
        assert "active" in str(exc_info.value)

    def test_submitting_cannot_submit_again(self):
        """Should reject a second concurrent submission."""
        machine = FormLifecycleMachine(form_id="f", state=FormLifecycle.SUBMITTING)
        assert machine.can_transition_to(FormLifecycle.SUBMITTING) is False

    @pytest.mark.parametrize("state", [s for s in FormLifecycle if s != FormLifecycle.DISPOSED])
    def test_any_live_state_can_be_disposed(self, state):
        """Should allow disposal from every non-terminal state."""
        machine = FormLifecycleMachine(form_id="f", state=state)
        machine.transition_to(FormLifecycle.DISPOSED)
        assert machine.is_terminal() is True

    def test_disposed_is_terminal(self):
        """Should reject every transition out of DISPOSED."""
        machine = FormLifecycleMachine(form_id="f", state=FormLifecycle.DISPOSED)
        assert VALID_TRANSITIONS[FormLifecycle.DISPOSED] == set()
        with pytest.raises(InvalidLifecycleTransitionError, match="disposed"):
            machine.transition_to(FormLifecycle.ACTIVE)


class TestInstanceLifecycle:
    """Test lifecycle enforcement by FormInstance."""

    def test_init_twice_rejected(self):
        """Should refuse to initialize a form twice."""
        form = FormInstance("f", [FieldDefinition(id="a")])
        form.init()
        with pytest.raises(InvalidLifecycleTransitionError):
            form.init()

    def test_mutation_after_dispose_rejected(self):
        """Should raise ConfigurationError when a disposed form is mutated."""
        form = FormInstance("f", [FieldDefinition(id="a")])
        form.init()
        form.dispose()
        with pytest.raises(ConfigurationError):
            form.context.set_value("a", 1)
        with pytest.raises(ConfigurationError):
            form.context.hide("a")

    def test_dispose_is_idempotent(self):
        """Should allow dispose to be called more than once."""
        form = FormInstance("f", [FieldDefinition(id="a")])
        form.dispose()
        form.dispose()
        assert form.lifecycle.state == FormLifecycle.DISPOSED

    def test_dispose_releases_history_and_listeners(self):
        """Should clear history and subscriptions."""
        form = FormInstance("f", [FieldDefinition(id="a")])
        form.subscribe(lambda event: None)
        form.context.snapshot()
        form.dispose()
        assert form.events.listener_count() == 0
        assert form.history.can_undo is False

    @pytest.mark.asyncio
    async def test_submit_before_init_rejected(self):
        """Should refuse to submit a form that was never initialized."""
        form = FormInstance("f", [FieldDefinition(id="a")])
        with pytest.raises(InvalidLifecycleTransitionError):
            await form.submit()
