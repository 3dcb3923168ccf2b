"""FormContext: the only handle rules, validators and services get on a form.

The context reads from and mutates the FormInstance that created it. It
never exposes the instance itself, so nothing holding a context can reach
another form; cross-form access goes through the Orchestrator.
"""

from typing import TYPE_CHECKING, Any, Awaitable, Dict, List, Mapping, Optional, Sequence, Tuple, Type

from formruntime.errors import FieldError, FormError, GlobalFormError
from formruntime.state import FormState

if TYPE_CHECKING:
    from formruntime.runtime import FormInstance
    from formruntime.validation import ValidationResult


class FormContext:
    """Read/mutate façade over one form instance.

    Examples:
        >>> from formruntime.runtime import FormInstance
        >>> from formruntime.types import FieldDefinition
        >>> form = FormInstance("signup", [FieldDefinition(id="name")])
        >>> ctx = form.context
        >>> ctx.set_value("name", "Alice")
        >>> ctx.value("name")
        'Alice'
    """

    def __init__(self, form: "FormInstance"):
        self._form = form

    @property
    def form_id(self) -> str:
        return self._form.form_id

    @property
    def state(self) -> FormState:
        """The current immutable state."""
        return self._form.state

    # Reads

    def value(self, field_id: str, expected_type: Optional[Type] = None) -> Any:
        """Return a field's value.

        Args:
            field_id: Field to read
            expected_type: If given, values that are not instances of it
                read as None

        Returns:
            The value, or None if absent or of the wrong type
        """
        value = self._form.state.values.get(field_id)
        if expected_type is not None and not isinstance(value, expected_type):
            return None
        return value

    def all_values(self) -> Dict[str, Any]:
        """Return a copy of all values."""
        return dict(self._form.state.values)

    def is_visible(self, field_id: str) -> bool:
        return self._form.state.is_visible(field_id)

    def is_enabled(self, field_id: str) -> bool:
        return self._form.state.is_enabled(field_id)

    def errors(self) -> Tuple[FormError, ...]:
        return self._form.state.errors

    def field_errors(self, field_id: str) -> Tuple[FieldError, ...]:
        return self._form.state.field_errors(field_id)

    def has_errors(self) -> bool:
        return self._form.state.has_errors

    # Value and flag mutations

    def set_value(self, field_id: str, value: Any) -> None:
        """Commit a new value, then run rules and the field-changed hook.

        Setting a value equal to the current one does nothing.
        """
        self._form.set_value(field_id, value)

    def show(self, field_id: str) -> None:
        self._form.set_visibility(field_id, True)

    def hide(self, field_id: str) -> None:
        self._form.set_visibility(field_id, False)

    def enable(self, field_id: str) -> None:
        self._form.set_enabled(field_id, True)

    def disable(self, field_id: str) -> None:
        self._form.set_enabled(field_id, False)

    # Error mutations

    def set_field_error(self, field_id: str, message: Optional[str]) -> None:
        """Replace a field's errors with one error, or clear them when ``message`` is None."""
        errors = [] if message is None else [FieldError(field_id=field_id, message=message)]
        self._form.replace_field_errors(field_id, errors)

    def set_all_errors(self, errors: Mapping[str, str]) -> None:
        """Replace every error with one FieldError per mapping entry."""
        for field_id in errors:
            self._form.require_field(field_id)
        self._form.replace_errors(
            [FieldError(field_id=field_id, message=message) for field_id, message in errors.items()]
        )

    def replace_errors(self, errors: Sequence[FormError]) -> None:
        self._form.replace_errors(errors)

    def replace_field_errors(self, field_id: str, errors: Sequence[FormError]) -> None:
        self._form.replace_field_errors(field_id, errors)

    def add_global_error(self, message: str) -> None:
        self._form.replace_errors(list(self._form.state.errors) + [GlobalFormError(message=message)])

    def clear_errors(self) -> None:
        self._form.replace_errors([])

    # Validation

    def validate(self) -> Awaitable["ValidationResult"]:
        """Run every registered validator of this form and publish the errors."""
        return self._form.validate()

    def validate_field(self, field_id: str) -> Awaitable[List[FormError]]:
        return self._form.validators.validate_field(self, field_id)

    # History

    def snapshot(self, label: Optional[str] = None) -> None:
        self._form.history.snapshot(label)

    def undo(self) -> bool:
        return self._form.history.undo()

    def redo(self) -> bool:
        return self._form.history.redo()

    # Analytics

    def field_focused(self, field_id: str) -> None:
        self._form.require_field(field_id)
        self._form.analytics.field_focused(field_id)

    def step_changed(self, step: Any) -> None:
        self._form.analytics.step_changed(step)


__all__ = [
    "FormContext",
]
