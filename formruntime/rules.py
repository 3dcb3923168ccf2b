"""Priority-ordered rule engine.

Rules are plain callables taking a FormContext. They read values through the
context and react by showing, hiding, enabling, disabling or setting fields.
A RuleDefinition pairs a rule with its priority: lower priorities run first
(structural rules), higher priorities run last so their effects win
conflicts. Ties keep registration order.

Usage:
    >>> from formruntime.rules import RuleEngine, Rules
    >>> engine = RuleEngine()
    >>> engine.add(Rules.when_value_equals("country", "US", Rules.show("state")))
    >>> len(engine)
    1
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Collection, FrozenSet, Iterable, List, Optional
import logging

from formruntime.errors import ConfigurationError, RuleExecutionError

if TYPE_CHECKING:
    from formruntime.context import FormContext

logger = logging.getLogger(__name__)

Rule = Callable[["FormContext"], None]


@dataclass(frozen=True)
class RuleDefinition:
    """A rule together with its ordering metadata.

    Attributes:
        rule: The callable to run
        priority: Lower runs first, higher runs last and wins conflicts
        name: Name used in logs and errors (defaults to the callable's name)
        depends_on: Field ids whose changes re-trigger this rule. None means
            the rule runs after every change.
    """
    rule: Rule
    priority: int = 0
    name: Optional[str] = None
    depends_on: Optional[FrozenSet[str]] = None

    def __post_init__(self):
        if self.depends_on is not None and not isinstance(self.depends_on, frozenset):
            object.__setattr__(self, "depends_on", frozenset(self.depends_on))
        if self.name is None:
            object.__setattr__(self, "name", getattr(self.rule, "__name__", repr(self.rule)))

    def is_triggered_by(self, changed_fields: Collection[str]) -> bool:
        if self.depends_on is None:
            return True
        return not self.depends_on.isdisjoint(changed_fields)


class RuleEngine:
    """Ordered collection of rule definitions.

    Attributes:
        field_ids: Declared field ids, used to reject dependencies on unknown
            fields. None disables the check.
    """

    def __init__(
        self,
        definitions: Iterable[RuleDefinition] = (),
        field_ids: Optional[Collection[str]] = None,
    ):
        self.field_ids = frozenset(field_ids) if field_ids is not None else None
        self._definitions: List[RuleDefinition] = []
        for definition in definitions:
            self.register(definition)

    def __len__(self) -> int:
        return len(self._definitions)

    @property
    def definitions(self) -> List[RuleDefinition]:
        """Definitions in evaluation order."""
        # sorted() is stable: equal priorities keep registration order
        return sorted(self._definitions, key=lambda d: d.priority)

    def register(self, definition: RuleDefinition) -> None:
        """Add a rule definition.

        Raises:
            ConfigurationError: If the definition depends on an undeclared field
        """
        if not callable(definition.rule):
            raise ConfigurationError(f"Rule '{definition.name}' is not callable")
        if self.field_ids is not None and definition.depends_on:
            unknown = sorted(definition.depends_on - self.field_ids)
            if unknown:
                raise ConfigurationError(
                    f"Rule '{definition.name}' depends on unknown fields: {', '.join(unknown)}"
                )
        self._definitions.append(definition)

    def add(
        self,
        rule: Rule,
        priority: int = 0,
        name: Optional[str] = None,
        depends_on: Optional[Iterable[str]] = None,
    ) -> RuleDefinition:
        """Build and register a definition for ``rule``."""
        definition = RuleDefinition(
            rule=rule,
            priority=priority,
            name=name,
            depends_on=frozenset(depends_on) if depends_on is not None else None,
        )
        self.register(definition)
        return definition

    def apply(self, ctx: "FormContext", changed_fields: Optional[Collection[str]] = None) -> int:
        """Run one rule pass.

        Args:
            ctx: Context of the form the rules act on
            changed_fields: Fields changed since the last pass. None runs every
                rule (used at init).

        Returns:
            Number of rules run

        Raises:
            RuleExecutionError: If a rule raises. The original exception is
                chained as the cause.
        """
        ran = 0
        for definition in self.definitions:
            if changed_fields is not None and not definition.is_triggered_by(changed_fields):
                continue
            try:
                definition.rule(ctx)
            except RuleExecutionError:
                raise
            except Exception as exc:
                raise RuleExecutionError(
                    rule_name=definition.name,
                    message=f"Rule '{definition.name}' (priority {definition.priority}) failed: {exc}",
                ) from exc
            ran += 1
        logger.debug("Rule pass ran %d of %d rules", ran, len(self._definitions))
        return ran


class Rules:
    """Combinators for common rules.

    Examples:
        >>> rule = Rules.when_value_equals("subscribe", True, Rules.show("frequency"))
        >>> callable(rule)
        True
    """

    @staticmethod
    def when_value_equals(
        field_id: str,
        expected: Any,
        then_rule: Rule,
        otherwise: Optional[Rule] = None,
    ) -> Rule:
        def rule(ctx: "FormContext") -> None:
            if ctx.value(field_id) == expected:
                then_rule(ctx)
            elif otherwise is not None:
                otherwise(ctx)

        rule.__name__ = f"when_{field_id}_equals"
        return rule

    @staticmethod
    def visible_when(target: str, field_id: str, expected: Any) -> Rule:
        """Show ``target`` while ``field_id`` equals ``expected``, hide it otherwise."""
        return Rules.when_value_equals(field_id, expected, Rules.show(target), Rules.hide(target))

    @staticmethod
    def enabled_when(target: str, field_id: str, expected: Any) -> Rule:
        """Enable ``target`` while ``field_id`` equals ``expected``, disable it otherwise."""
        return Rules.when_value_equals(field_id, expected, Rules.enable(target), Rules.disable(target))

    @staticmethod
    def show(field_id: str) -> Rule:
        return lambda ctx: ctx.show(field_id)

    @staticmethod
    def hide(field_id: str) -> Rule:
        return lambda ctx: ctx.hide(field_id)

    @staticmethod
    def enable(field_id: str) -> Rule:
        return lambda ctx: ctx.enable(field_id)

    @staticmethod
    def disable(field_id: str) -> Rule:
        return lambda ctx: ctx.disable(field_id)

    @staticmethod
    def set_value(field_id: str, value: Any) -> Rule:
        return lambda ctx: ctx.set_value(field_id, value)

    @staticmethod
    def all_of(*rules: Rule) -> Rule:
        def rule(ctx: "FormContext") -> None:
            for each in rules:
                each(ctx)

        return rule


__all__ = [
    "Rule",
    "RuleDefinition",
    "RuleEngine",
    "Rules",
]
