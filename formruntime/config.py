"""Per-instance configuration for the form runtime."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class FormConfig:
    """Tunable behavior of a form instance.

    Attributes:
        default_visible: Visibility written for fields that do not declare one
        default_enabled: Enabled flag written for fields that do not declare one
        max_rule_passes: Rule passes allowed per edit before the rules are
            considered non-converging
        history_limit: Maximum number of undo snapshots kept (None = unbounded)
        validate_on_change: Run a field's validators after each committed
            change to that field

    Examples:
        >>> config = FormConfig(history_limit=20)
        >>> config.max_rule_passes
        10
    """
    default_visible: bool = True
    default_enabled: bool = True
    max_rule_passes: int = 10
    history_limit: Optional[int] = None
    validate_on_change: bool = False

    def __post_init__(self):
        if self.max_rule_passes < 1:
            raise ValueError("max_rule_passes must be at least 1")
        if self.history_limit is not None and self.history_limit < 0:
            raise ValueError("history_limit must not be negative")


__all__ = [
    "FormConfig",
]
