"""Immutable form state for the form runtime.

FormState is the authoritative snapshot of one form instance. It is never
mutated in place: every change goes through one of the ``with_*`` methods,
which return a new instance. Holding a reference to a FormState therefore
always gives a stable snapshot, which the history manager and change
listeners rely on.

Usage:
    >>> from formruntime.state import FormState
    >>> state = FormState()
    >>> updated = state.with_value("name", "Alice")
    >>> state.values
    mappingproxy({})
    >>> updated.values["name"]
    'Alice'
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from formruntime.errors import FieldError, FormError, GlobalFormError
from formruntime.types import FieldDefinition


def _freeze(mapping: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class FormState:
    """Immutable snapshot of one form instance.

    Attributes:
        values: Field id -> current value
        visibility: Field id -> visible flag
        enabled: Field id -> enabled flag
        errors: Validation errors in validation order
        default_visible: Visibility assumed for ids missing from ``visibility``
        default_enabled: Enabled flag assumed for ids missing from ``enabled``

    Two states compare equal when all of their contents are equal, so
    listeners can use ``==`` for change detection. Mapping fields make
    states unhashable.
    """
    __hash__ = None  # type: ignore[assignment]

    values: Mapping[str, Any] = field(default_factory=dict)
    visibility: Mapping[str, bool] = field(default_factory=dict)
    enabled: Mapping[str, bool] = field(default_factory=dict)
    errors: Tuple[FormError, ...] = ()
    default_visible: bool = True
    default_enabled: bool = True

    def __post_init__(self):
        """Freeze mappings and sequences passed in by the caller."""
        object.__setattr__(self, "values", _freeze(self.values))
        object.__setattr__(self, "visibility", _freeze(self.visibility))
        object.__setattr__(self, "enabled", _freeze(self.enabled))
        object.__setattr__(self, "errors", tuple(self.errors))

    @classmethod
    def initial(
        cls,
        fields: Iterable[FieldDefinition],
        default_visible: bool = True,
        default_enabled: bool = True,
    ) -> "FormState":
        """Build the initial state for a set of field declarations.

        Visibility and enabled flags are written explicitly for every
        declared field so that defaults never depend on lookup fallbacks.

        Args:
            fields: Field declarations in layout order
            default_visible: Visibility for fields that do not set one
            default_enabled: Enabled flag for fields that do not set one

        Returns:
            A FormState with no errors

        Examples:
            >>> fields = [FieldDefinition(id="a"), FieldDefinition(id="b", visible=False)]
            >>> state = FormState.initial(fields)
            >>> dict(state.visibility)
            {'a': True, 'b': False}
        """
        values: Dict[str, Any] = {}
        visibility: Dict[str, bool] = {}
        enabled: Dict[str, bool] = {}
        for definition in fields:
            if definition.initial_value is not None:
                values[definition.id] = definition.initial_value
            visibility[definition.id] = (
                default_visible if definition.visible is None else definition.visible
            )
            enabled[definition.id] = (
                default_enabled if definition.enabled is None else definition.enabled
            )
        return cls(
            values=values,
            visibility=visibility,
            enabled=enabled,
            default_visible=default_visible,
            default_enabled=default_enabled,
        )

    def is_visible(self, field_id: str) -> bool:
        """Return the visibility flag, falling back to the default."""
        return self.visibility.get(field_id, self.default_visible)

    def is_enabled(self, field_id: str) -> bool:
        """Return the enabled flag, falling back to the default."""
        return self.enabled.get(field_id, self.default_enabled)

    def field_errors(self, field_id: str) -> Tuple[FieldError, ...]:
        """Return the errors attached to one field, in order."""
        return tuple(
            e for e in self.errors if isinstance(e, FieldError) and e.field_id == field_id
        )

    @property
    def global_errors(self) -> Tuple[GlobalFormError, ...]:
        return tuple(e for e in self.errors if isinstance(e, GlobalFormError))

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def with_value(self, field_id: str, value: Any) -> "FormState":
        values = dict(self.values)
        values[field_id] = value
        return self._replace(values=values)

    def with_visibility(self, field_id: str, visible: bool) -> "FormState":
        visibility = dict(self.visibility)
        visibility[field_id] = visible
        return self._replace(visibility=visibility)

    def with_enabled(self, field_id: str, enabled: bool) -> "FormState":
        flags = dict(self.enabled)
        flags[field_id] = enabled
        return self._replace(enabled=flags)

    def with_errors(self, errors: Sequence[FormError]) -> "FormState":
        return self._replace(errors=tuple(errors))

    def with_field_errors(self, field_id: str, errors: Sequence[FormError]) -> "FormState":
        """Replace one field's errors, keeping its position in the list.

        The new entries take the slot of the field's first existing error,
        or are appended when the field had none.
        """
        merged = []
        inserted = False
        for error in self.errors:
            if isinstance(error, FieldError) and error.field_id == field_id:
                if not inserted:
                    merged.extend(errors)
                    inserted = True
                continue
            merged.append(error)
        if not inserted:
            merged.extend(errors)
        return self._replace(errors=tuple(merged))

    def _replace(self, **changes: Any) -> "FormState":
        params = {
            "values": self.values,
            "visibility": self.visibility,
            "enabled": self.enabled,
            "errors": self.errors,
            "default_visible": self.default_visible,
            "default_enabled": self.default_enabled,
        }
        params.update(changes)
        return FormState(**params)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the persistable part of the state to a dict.

        Errors are session scoped and are not included.

        Examples:
            >>> FormState(values={"a": 1}).to_dict()
            {'values': {'a': 1}, 'visibility': {}, 'enabled': {}}
        """
        return {
            "values": dict(self.values),
            "visibility": dict(self.visibility),
            "enabled": dict(self.enabled),
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        default_visible: bool = True,
        default_enabled: bool = True,
    ) -> "FormState":
        """Restore a state persisted with ``to_dict``."""
        return cls(
            values=data.get("values", {}),
            visibility=data.get("visibility", {}),
            enabled=data.get("enabled", {}),
            default_visible=default_visible,
            default_enabled=default_enabled,
        )


__all__ = [
    "FormState",
]
