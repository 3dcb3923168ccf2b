"""Embeddable dynamic form runtime.

The runtime keeps one consistent state per form (values, visibility, enabled
flags, errors) and recomputes it when fields are edited, forms are submitted
or async work completes. It provides:
- An immutable FormState replaced on every change
- A priority-ordered rule engine reacting to value changes
- An async validator registry that discards stale results
- Snapshot-based undo/redo history
- An orchestrator for cross-form interaction

Rendering is left to the embedding application, which reads FormState from
change notifications and mutates forms only through FormContext.

Basic usage:
    >>> from formruntime import FieldDefinition, FormInstance, Rules
    >>> form = FormInstance(
    ...     "signup",
    ...     [FieldDefinition(id="has_company", initial_value=False), FieldDefinition(id="company")],
    ...     rules=[Rules.visible_when("company", "has_company", True)],
    ... )
    >>> form.init()
    >>> form.state.is_visible("company")
    False
"""

__version__ = "0.1.0"
__author__ = "FormRuntime Team"

# Version info
VERSION = (0, 1, 0)

# Core exports
from formruntime.config import FormConfig
from formruntime.context import FormContext
from formruntime.errors import (
    ConfigurationError,
    FieldError,
    FormNotFoundError,
    GlobalFormError,
    SubmissionFailure,
)
from formruntime.orchestrator import Orchestrator
from formruntime.rules import RuleDefinition, Rules
from formruntime.runtime import FormInstance
from formruntime.service import SubmitResult, TransactionService
from formruntime.state import FormState
from formruntime.types import FieldDefinition, SubmitStatus

# Package metadata
__all__ = [
    "__version__",
    "VERSION",
    "ConfigurationError",
    "FieldDefinition",
    "FieldError",
    "FormConfig",
    "FormContext",
    "FormInstance",
    "FormNotFoundError",
    "FormState",
    "GlobalFormError",
    "Orchestrator",
    "RuleDefinition",
    "Rules",
    "SubmissionFailure",
    "SubmitResult",
    "SubmitStatus",
    "TransactionService",
]
