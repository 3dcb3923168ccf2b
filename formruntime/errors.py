"""Error data and exception types for the form runtime.

Two very different things live here:

- Form errors (FieldError, GlobalFormError) are *data*. Validators produce
  them, FormState stores them, and the presentation layer renders them. They
  are never raised.
- Exceptions (FormRuntimeError and subclasses) signal programming or
  configuration mistakes in the embedding application, plus the
  SubmissionFailure that a business submit action raises to report a
  rejected submission.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from formruntime.types import FieldErrorCode, FormLifecycle


@dataclass(frozen=True)
class FieldError:
    """Validation error attached to a single field.

    Attributes:
        field_id: Identifier of the field in error
        message: Human-readable error description (or an opaque key for a
            localization collaborator)
        code: Error code, CUSTOM unless a built-in validator set one

    Examples:
        >>> err = FieldError("email", "Invalid email format", FieldErrorCode.INVALID_FORMAT)
        >>> err.field_id
        'email'
    """
    field_id: str
    message: str
    code: FieldErrorCode = FieldErrorCode.CUSTOM

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "kind": "field",
            "fieldId": self.field_id,
            "message": self.message,
            "code": self.code.value if isinstance(self.code, FieldErrorCode) else self.code,
        }


@dataclass(frozen=True)
class GlobalFormError:
    """Validation error that applies to the form as a whole.

    Attributes:
        message: Human-readable error description
        code: Error code
    """
    message: str
    code: FieldErrorCode = FieldErrorCode.CUSTOM

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "kind": "global",
            "message": self.message,
            "code": self.code.value if isinstance(self.code, FieldErrorCode) else self.code,
        }


FormError = Union[FieldError, GlobalFormError]


def form_error_from_dict(data: Dict[str, Any]) -> FormError:
    """Create a FieldError or GlobalFormError from its dict form."""
    code = data.get("code", FieldErrorCode.CUSTOM)
    if isinstance(code, str):
        code = FieldErrorCode(code)
    if data.get("kind") == "global" or "fieldId" not in data:
        return GlobalFormError(message=data["message"], code=code)
    return FieldError(field_id=data["fieldId"], message=data["message"], code=code)


class FormRuntimeError(Exception):
    """Base class for all exceptions raised by the runtime."""


class ConfigurationError(FormRuntimeError):
    """Raised for mistakes in how the embedding application wired a form.

    Unknown field references, duplicate registrations, misuse of a disposed
    form. These are fatal and never retried.
    """


class RuleExecutionError(ConfigurationError):
    """Raised when a rule raises during a rule pass.

    The original exception is chained as ``__cause__``.

    Attributes:
        rule_name: Name of the failing rule
    """

    def __init__(self, rule_name: str, message: str):
        self.rule_name = rule_name
        super().__init__(message)


class RuleConvergenceError(ConfigurationError):
    """Raised when rules keep changing values past the configured pass limit."""


class ValidatorExecutionError(ConfigurationError):
    """Raised when a validator raises instead of returning an error.

    Attributes:
        field_id: Field the validator was registered for
    """

    def __init__(self, field_id: str, message: str):
        self.field_id = field_id
        super().__init__(message)


class InvalidLifecycleTransitionError(ConfigurationError):
    """Raised when a form instance is driven through an invalid lifecycle step.

    Attributes:
        current_state: The lifecycle state before the attempted transition
        target_state: The lifecycle state that was attempted
    """

    def __init__(self, current_state: FormLifecycle, target_state: FormLifecycle, message: str):
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(message)


class FormNotFoundError(FormRuntimeError, LookupError):
    """Raised when the orchestrator has no instance under the requested id.

    Attributes:
        form_id: The identifier that was looked up
    """

    def __init__(self, form_id: str):
        self.form_id = form_id
        super().__init__(f"Form instance '{form_id}' is not registered")


class SubmissionFailure(FormRuntimeError):
    """Raised by an embedder's submit action when the submission is rejected.

    The base transaction service catches it and maps ``field_errors`` and
    ``message`` back into form errors.

    Attributes:
        message: Optional form-level failure message
        field_errors: Optional mapping of field id to error message

    Examples:
        >>> failure = SubmissionFailure("Server rejected", field_errors={"email": "Already taken"})
        >>> failure.field_errors["email"]
        'Already taken'
    """

    def __init__(
        self,
        message: Optional[str] = None,
        field_errors: Optional[Mapping[str, str]] = None,
    ):
        self.message = message
        self.field_errors: Dict[str, str] = dict(field_errors or {})
        super().__init__(message or "Submission failed")


__all__ = [
    "FieldError",
    "GlobalFormError",
    "FormError",
    "form_error_from_dict",
    "FormRuntimeError",
    "ConfigurationError",
    "RuleExecutionError",
    "RuleConvergenceError",
    "ValidatorExecutionError",
    "InvalidLifecycleTransitionError",
    "FormNotFoundError",
    "SubmissionFailure",
]
