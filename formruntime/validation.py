"""Asynchronous validator registry with stale-result protection.

Validators are registered per field and may suspend (for example to ask a
server whether a username is taken). While they are suspended the user can
keep editing, so a later validation run for the same field may finish before
an earlier one. Every run therefore takes a per-field sequence number when it
is *started*, and a result is only applied if no newer run for that field
has already been applied. Superseded results are dropped on arrival; nothing
is cancelled mid-flight.

Errors from a run are published in one step through the form context, never
field by field while the run is still in progress.

Built-in validator factories (``required``, ``min_length``, ``max_length``,
``pattern`` and ``schema``) cover the common cases; ``schema`` validates a
single value against a JSON Schema fragment using jsonschema.
"""

from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Collection,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)
import asyncio
import inspect
import logging
import re

import jsonschema
from jsonschema import Draft7Validator, FormatChecker
from jsonschema.exceptions import best_match

from formruntime.errors import (
    ConfigurationError,
    FieldError,
    FormError,
    GlobalFormError,
    ValidatorExecutionError,
)
from formruntime.types import FieldErrorCode

if TYPE_CHECKING:
    from formruntime.context import FormContext

logger = logging.getLogger(__name__)

ValidatorOutcome = Union[FormError, str, None]
Validator = Callable[
    ["FormContext", str, Any],
    Union[Awaitable[ValidatorOutcome], ValidatorOutcome],
]


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation run as seen by the caller.

    Attributes:
        is_valid: True when the run left no errors on the form
        errors: The error list published by the run

    Examples:
        >>> ValidationResult(is_valid=True, errors=[]).to_dict()
        {'isValid': True, 'errors': []}
    """
    is_valid: bool
    errors: List[FormError]

    @property
    def invalid_fields(self) -> List[str]:
        seen: List[str] = []
        for error in self.errors:
            if isinstance(error, FieldError) and error.field_id not in seen:
                seen.append(error.field_id)
        return seen

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        return {
            "isValid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
        }


class ValidatorRegistry:
    """Per-field validators and the sequencing state that guards their results.

    Attributes:
        declared_fields: Declared field ids, used to reject registrations for
            unknown fields. None disables the check.
    """

    def __init__(self, declared_fields: Optional[Collection[str]] = None):
        self.declared_fields = frozenset(declared_fields) if declared_fields is not None else None
        self._validators: Dict[str, List[Validator]] = {}
        self._issued: Dict[str, int] = {}
        self._applied: Dict[str, int] = {}

    def register(self, field_id: str, validator: Validator) -> None:
        """Add a validator for ``field_id``. Validators run in registration order.

        Raises:
            ConfigurationError: If the field is not declared or the validator
                is not callable
        """
        if self.declared_fields is not None and field_id not in self.declared_fields:
            raise ConfigurationError(f"Cannot register validator for unknown field '{field_id}'")
        if not callable(validator):
            raise ConfigurationError(f"Validator for field '{field_id}' is not callable")
        self._validators.setdefault(field_id, []).append(validator)

    def validators_for(self, field_id: str) -> Tuple[Validator, ...]:
        return tuple(self._validators.get(field_id, ()))

    @property
    def field_ids(self) -> Tuple[str, ...]:
        """Fields with at least one validator, in registration order."""
        return tuple(self._validators)

    def __contains__(self, field_id: object) -> bool:
        return field_id in self._validators

    def validate(self, ctx: "FormContext") -> Awaitable[List[FormError]]:
        """Validate every field that has validators.

        The field set, the values and the run sequence numbers are captured
        when this method is called; the returned awaitable does the work.
        Fields are validated concurrently, validators of one field run one
        after another.

        When the run completes, the form's errors are replaced by the errors
        of this run. Errors on other keys (including global errors) are
        dropped. A field whose result was superseded by a newer run keeps the
        errors that newer run applied.

        Returns:
            Awaitable resolving to the published error list
        """
        runs = [(field_id, self._next_sequence(field_id), ctx.value(field_id)) for field_id in self._validators]
        return self._run_all(ctx, runs)

    def validate_field(self, ctx: "FormContext", field_id: str) -> Awaitable[List[FormError]]:
        """Validate a single field.

        Only that field's entries in the error list are replaced, in place.
        A field without validators is left untouched.

        Returns:
            Awaitable resolving to the field's errors after the run
        """
        if self.declared_fields is not None and field_id not in self.declared_fields:
            raise ConfigurationError(f"Cannot validate unknown field '{field_id}'")
        if field_id not in self._validators:
            return self._current_field_errors(ctx, field_id)
        run = (field_id, self._next_sequence(field_id), ctx.value(field_id))
        return self._run_single(ctx, run)

    def _next_sequence(self, field_id: str) -> int:
        sequence = self._issued.get(field_id, 0) + 1
        self._issued[field_id] = sequence
        return sequence

    def _accept(self, field_id: str, sequence: int) -> bool:
        if sequence <= self._applied.get(field_id, 0):
            logger.debug(
                "Discarding stale validation result for '%s' (run %d, applied %d)",
                field_id, sequence, self._applied[field_id],
            )
            return False
        self._applied[field_id] = sequence
        return True

    async def _current_field_errors(self, ctx: "FormContext", field_id: str) -> List[FormError]:
        return list(ctx.field_errors(field_id))

    async def _run_all(
        self,
        ctx: "FormContext",
        runs: Sequence[Tuple[str, int, Any]],
    ) -> List[FormError]:
        results = await asyncio.gather(
            *(self._run_field(ctx, field_id, value) for field_id, _, value in runs),
            return_exceptions=True,
        )
        for outcome in results:
            if isinstance(outcome, BaseException):
                raise outcome
        current = ctx.state
        merged: List[FormError] = []
        for (field_id, sequence, _), errors in zip(runs, results):
            if self._accept(field_id, sequence):
                merged.extend(errors)
            else:
                merged.extend(current.field_errors(field_id))
        ctx.replace_errors(merged)
        return merged

    async def _run_single(self, ctx: "FormContext", run: Tuple[str, int, Any]) -> List[FormError]:
        field_id, sequence, value = run
        errors = await self._run_field(ctx, field_id, value)
        if not self._accept(field_id, sequence):
            return list(ctx.field_errors(field_id))
        ctx.replace_field_errors(field_id, errors)
        return errors

    async def _run_field(self, ctx: "FormContext", field_id: str, value: Any) -> List[FormError]:
        errors: List[FormError] = []
        for validator in self._validators.get(field_id, ()):
            try:
                outcome = validator(ctx, field_id, value)
                if inspect.isawaitable(outcome):
                    outcome = await outcome
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                name = getattr(validator, "__name__", repr(validator))
                raise ValidatorExecutionError(
                    field_id=field_id,
                    message=f"Validator '{name}' for field '{field_id}' failed: {exc}",
                ) from exc
            error = _normalize_outcome(field_id, outcome)
            if error is not None:
                errors.append(error)
        return errors


def _normalize_outcome(field_id: str, outcome: Any) -> Optional[FormError]:
    if outcome is None:
        return None
    if isinstance(outcome, (FieldError, GlobalFormError)):
        return outcome
    if isinstance(outcome, str):
        return FieldError(field_id=field_id, message=outcome)
    raise ConfigurationError(
        f"Validator for field '{field_id}' returned {type(outcome).__name__}, "
        f"expected FieldError, GlobalFormError, str or None"
    )


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return not value
    return False


def required(message: Optional[str] = None) -> Validator:
    """Reject None, blank strings and empty collections.

    Examples:
        >>> validator = required()
        >>> validator.__name__
        'required'
    """
    async def validator(ctx: "FormContext", field_id: str, value: Any) -> Optional[FormError]:
        if _is_empty(value):
            return FieldError(
                field_id=field_id,
                message=message or f"Field '{field_id}' is required",
                code=FieldErrorCode.REQUIRED,
            )
        return None

    validator.__name__ = "required"
    return validator


def min_length(length: int, message: Optional[str] = None) -> Validator:
    """Reject values shorter than ``length``. None is left to ``required``."""
    async def validator(ctx: "FormContext", field_id: str, value: Any) -> Optional[FormError]:
        if value is not None and len(value) < length:
            return FieldError(
                field_id=field_id,
                message=message or f"Field '{field_id}' is too short. Minimum length: {length}, got: {len(value)}",
                code=FieldErrorCode.TOO_SHORT,
            )
        return None

    validator.__name__ = "min_length"
    return validator


def max_length(length: int, message: Optional[str] = None) -> Validator:
    """Reject values longer than ``length``. None is left to ``required``."""
    async def validator(ctx: "FormContext", field_id: str, value: Any) -> Optional[FormError]:
        if value is not None and len(value) > length:
            return FieldError(
                field_id=field_id,
                message=message or f"Field '{field_id}' is too long. Maximum length: {length}, got: {len(value)}",
                code=FieldErrorCode.TOO_LONG,
            )
        return None

    validator.__name__ = "max_length"
    return validator


def pattern(regex: str, message: Optional[str] = None) -> Validator:
    """Reject string values that do not fully match ``regex``."""
    compiled = re.compile(regex)

    async def validator(ctx: "FormContext", field_id: str, value: Any) -> Optional[FormError]:
        if value is None or value == "":
            return None
        if not isinstance(value, str) or compiled.fullmatch(value) is None:
            return FieldError(
                field_id=field_id,
                message=message or f"Field '{field_id}' does not match required pattern: {regex}",
                code=FieldErrorCode.INVALID_FORMAT,
            )
        return None

    validator.__name__ = "pattern"
    return validator


def schema(json_schema: Dict[str, Any]) -> Validator:
    """Validate a single value against a JSON Schema fragment (Draft 7).

    The most relevant jsonschema error is translated into a coded FieldError.
    None values are skipped; combine with ``required`` for mandatory fields.

    Args:
        json_schema: Schema for the value itself, e.g. ``{"type": "integer", "minimum": 18}``

    Raises:
        jsonschema.SchemaError: If the schema itself is invalid

    Examples:
        >>> validator = schema({"type": "string", "maxLength": 5})
        >>> validator.__name__
        'schema'
    """
    Draft7Validator.check_schema(json_schema)
    checker = Draft7Validator(json_schema, format_checker=FormatChecker())

    async def validator(ctx: "FormContext", field_id: str, value: Any) -> Optional[FormError]:
        if value is None:
            return None
        error = best_match(checker.iter_errors(value))
        if error is None:
            return None
        return _translate_error(field_id, error)

    validator.__name__ = "schema"
    return validator


def _translate_error(field_id: str, error: jsonschema.ValidationError) -> FieldError:
    """Translate a jsonschema ValidationError into a coded FieldError.

    Error mapping:
        - 'required' errors -> REQUIRED
        - 'type' errors -> INVALID_TYPE
        - 'format' and 'pattern' errors -> INVALID_FORMAT
        - 'enum', 'const' and numeric bound errors -> INVALID_VALUE
        - 'minLength' / 'minItems' errors -> TOO_SHORT
        - 'maxLength' / 'maxItems' errors -> TOO_LONG
        - anything else -> CUSTOM
    """
    kind = error.validator

    if kind == "required":
        return FieldError(field_id, f"Field '{field_id}' is missing a required entry: {error.message}", FieldErrorCode.REQUIRED)

    if kind == "type":
        received_type = type(error.instance).__name__
        return FieldError(
            field_id,
            f"Field '{field_id}' has invalid type. Expected {error.validator_value}, got {received_type}",
            FieldErrorCode.INVALID_TYPE,
        )

    if kind == "format":
        return FieldError(
            field_id,
            f"Field '{field_id}' has invalid format. Expected format: {error.validator_value}",
            FieldErrorCode.INVALID_FORMAT,
        )

    if kind == "pattern":
        return FieldError(
            field_id,
            f"Field '{field_id}' does not match required pattern: {error.validator_value}",
            FieldErrorCode.INVALID_FORMAT,
        )

    if kind in ("enum", "const"):
        return FieldError(
            field_id,
            f"Field '{field_id}' has invalid value. Must be one of: {error.validator_value}",
            FieldErrorCode.INVALID_VALUE,
        )

    if kind in ("minLength", "minItems"):
        actual = len(error.instance) if error.instance else 0
        return FieldError(
            field_id,
            f"Field '{field_id}' is too short. Minimum length: {error.validator_value}, got: {actual}",
            FieldErrorCode.TOO_SHORT,
        )

    if kind in ("maxLength", "maxItems"):
        actual = len(error.instance) if error.instance else 0
        return FieldError(
            field_id,
            f"Field '{field_id}' is too long. Maximum length: {error.validator_value}, got: {actual}",
            FieldErrorCode.TOO_LONG,
        )

    if kind in ("minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum", "multipleOf"):
        return FieldError(
            field_id,
            f"Field '{field_id}' violates {kind} constraint: {error.validator_value}",
            FieldErrorCode.INVALID_VALUE,
        )

    return FieldError(field_id, f"Field '{field_id}' validation failed: {error.message}", FieldErrorCode.CUSTOM)


__all__ = [
    "Validator",
    "ValidationResult",
    "ValidatorRegistry",
    "required",
    "min_length",
    "max_length",
    "pattern",
    "schema",
]
