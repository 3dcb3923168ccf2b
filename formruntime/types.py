"""Core type definitions for the form runtime.

This module defines the fundamental types used throughout the runtime:
- FieldDefinition: Declaration of one field supplied at instance construction
- FieldErrorCode: Codes attached to field-level validation errors
- FormEventType: Change notification event types
- SubmitStatus: Outcome of a submission attempt
- FormLifecycle: Lifecycle states of a form instance

These types form the contract between the embedding application, the
presentation layer and the runtime core.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class FieldErrorCode(str, Enum):
    """Validation error codes for individual field failures.

    Built-in validators set a specific code; embedder validators default
    to CUSTOM.
    """
    REQUIRED = "required"
    INVALID_TYPE = "invalid_type"
    INVALID_FORMAT = "invalid_format"
    INVALID_VALUE = "invalid_value"
    TOO_LONG = "too_long"
    TOO_SHORT = "too_short"
    SERVER = "server"
    CUSTOM = "custom"


class FormEventType(str, Enum):
    """Change notification event types.

    Every committed state transition and significant action emits a typed
    event to the instance's subscribers.
    """
    FORM_INITIALIZED = "form.initialized"
    STATE_CHANGED = "state.changed"
    FIELD_CHANGED = "field.changed"
    VALIDATION_PASSED = "validation.passed"
    VALIDATION_FAILED = "validation.failed"
    SUBMISSION_SUCCEEDED = "submission.succeeded"
    SUBMISSION_FAILED = "submission.failed"
    SUBMISSION_BLOCKED = "submission.blocked"
    HISTORY_RESTORED = "history.restored"
    FORM_DISPOSED = "form.disposed"


class SubmitStatus(str, Enum):
    """Outcome of a submission attempt.

    BLOCKED means validation left errors on the form and the business
    action was never invoked. FAILED means the action itself reported a
    failure.
    """
    SUCCEEDED = "succeeded"
    BLOCKED = "blocked"
    FAILED = "failed"


class FormLifecycle(str, Enum):
    """Lifecycle states of a form instance.

    Terminal state: disposed.
    """
    MOUNTED = "mounted"
    ACTIVE = "active"
    SUBMITTING = "submitting"
    DISPOSED = "disposed"


@dataclass(frozen=True)
class FieldDefinition:
    """Declaration of a single form field.

    The runtime only uses the identifier and the explicit visibility,
    enabled and initial-value settings. The type tag and label are opaque
    and passed through to the presentation layer.

    Attributes:
        id: Identifier, unique within a form instance. Dotted names are
            opaque labels, never paths.
        type: Renderer selection tag (e.g. "text", "checkbox")
        label: Display label
        initial_value: Optional value written into the initial state
        visible: Optional explicit initial visibility (None = form default)
        enabled: Optional explicit initial enabled flag (None = form default)

    Examples:
        >>> field = FieldDefinition(id="email", type="text", label="E-mail")
        >>> field.id
        'email'
    """
    id: str
    type: str = "text"
    label: str = ""
    initial_value: Any = None
    visible: Optional[bool] = None
    enabled: Optional[bool] = None


__all__ = [
    "FieldErrorCode",
    "FormEventType",
    "SubmitStatus",
    "FormLifecycle",
    "FieldDefinition",
]
