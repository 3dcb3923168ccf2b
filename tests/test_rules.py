"""Unit tests for the rule engine.

Tests cover:
- Priority ordering and stable ties
- Re-evaluation after value changes and at init
- Dependency-filtered re-evaluation
- Rule-made value changes and convergence
- Failing rules surfacing as configuration errors
- Rule combinators
"""

import pytest

from formruntime.config import FormConfig
from formruntime.errors import ConfigurationError, RuleConvergenceError, RuleExecutionError
from formruntime.rules import RuleDefinition, RuleEngine, Rules
from formruntime.runtime import FormInstance
from formruntime.types import FieldDefinition


def make_form(*field_ids, **kwargs):
    return FormInstance("rules_form", [FieldDefinition(id=f) for f in field_ids], **kwargs)


class TestRuleOrdering:
    """Test priority order."""

    def test_higher_priority_wins_conflict(self):
        """Should leave the field as the priority-5 rule set it."""
        form = make_form("x")
        form.add_rule(Rules.show("x"), priority=5)
        form.add_rule(Rules.hide("x"), priority=1)
        form.init()
        assert form.state.is_visible("x") is True

    def test_higher_priority_wins_regardless_of_registration_order(self):
        """Should run by priority, not registration order."""
        form = make_form("x")
        form.add_rule(Rules.hide("x"), priority=5)
        form.add_rule(Rules.show("x"), priority=1)
        form.init()
        assert form.state.is_visible("x") is False

    def test_ties_keep_registration_order(self):
        """Should run equal priorities in the order they were added."""
        calls = []
        engine = RuleEngine()
        engine.add(lambda ctx: calls.append("first"), priority=2)
        engine.add(lambda ctx: calls.append("second"), priority=2)
        engine.add(lambda ctx: calls.append("early"), priority=0)
        engine.apply(ctx=None)
        assert calls == ["early", "first", "second"]


class TestReevaluation:
    """Test when rules run."""

    def test_rules_run_at_init(self):
        """Should run every rule once on init."""
        calls = []
        form = make_form("a", rules=[lambda ctx: calls.append(1)])
        form.init()
        assert calls == [1]

    def test_rules_rerun_after_value_change(self):
        """Should run rules after every committed change."""
        calls = []
        form = make_form("a", rules=[lambda ctx: calls.append(ctx.value("a"))])
        form.init()
        form.context.set_value("a", 1)
        form.context.set_value("a", 2)
        assert calls == [None, 1, 2]

    def test_flag_changes_do_not_trigger_rules(self):
        """Should not re-run rules for show/hide/enable/disable."""
        calls = []
        form = make_form("a", rules=[lambda ctx: calls.append(1)])
        form.init()
        form.context.hide("a")
        form.context.disable("a")
        assert calls == [1]

    def test_depends_on_filters_rules(self):
        """Should only re-run dependent rules for changes to their fields."""
        calls = []
        form = make_form("a", "b")
        form.add_rule(lambda ctx: calls.append("a-rule"), depends_on=["a"])
        form.add_rule(lambda ctx: calls.append("always"))
        form.init()
        calls.clear()
        form.context.set_value("b", 1)
        assert calls == ["always"]
        calls.clear()
        form.context.set_value("a", 1)
        assert calls == ["a-rule", "always"]

    def test_depends_on_unknown_field_rejected(self):
        """Should raise ConfigurationError when a dependency is not declared."""
        form = make_form("a")
        with pytest.raises(ConfigurationError):
            form.add_rule(Rules.show("a"), depends_on=["missing"])


class TestRuleValueChanges:
    """Test rules that set values."""

    def test_rule_set_value_triggers_further_pass(self):
        """Should let rules react to values set by other rules."""
        form = make_form("country", "currency", "symbol")
        form.add_rule(Rules.when_value_equals("country", "DE", Rules.set_value("currency", "EUR")))
        form.add_rule(Rules.when_value_equals("currency", "EUR", Rules.set_value("symbol", "€")))
        form.init()
        form.context.set_value("country", "DE")
        assert form.state.values["currency"] == "EUR"
        assert form.state.values["symbol"] == "€"

    def test_non_converging_rules_raise(self):
        """Should raise RuleConvergenceError when rules keep changing values."""
        form = make_form("n", config=FormConfig(max_rule_passes=3))
        form.add_rule(lambda ctx: ctx.set_value("n", (ctx.value("n") or 0) + 1))
        with pytest.raises(RuleConvergenceError):
            form.init()


class TestFailingRules:
    """Test rule failure propagation."""

    def test_failing_rule_raises_rule_execution_error(self):
        """Should surface a rule exception as a fatal configuration error."""
        def broken(ctx):
            raise ValueError("boom")

        form = make_form("a", rules=[RuleDefinition(rule=broken, priority=3)])
        with pytest.raises(RuleExecutionError) as exc_info:
            form.init()
        assert exc_info.value.rule_name == "broken"
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_rule_touching_unknown_field_raises(self):
        """Should wrap unknown field references made inside a rule."""
        form = make_form("a", rules=[Rules.hide("ghost")])
        with pytest.raises(RuleExecutionError):
            form.init()

    def test_rule_execution_error_is_configuration_error(self):
        """Should be catchable as ConfigurationError."""
        assert issubclass(RuleExecutionError, ConfigurationError)


class TestCombinators:
    """Test Rules helpers."""

    def test_visible_when(self):
        """Should show the target only while the condition holds."""
        form = make_form("subscribe", "frequency", rules=[Rules.visible_when("frequency", "subscribe", True)])
        form.init()
        assert form.state.is_visible("frequency") is False
        form.context.set_value("subscribe", True)
        assert form.state.is_visible("frequency") is True
        form.context.set_value("subscribe", False)
        assert form.state.is_visible("frequency") is False

    def test_enabled_when(self):
        """Should enable the target only while the condition holds."""
        form = make_form("agree", "submit_button", rules=[Rules.enabled_when("submit_button", "agree", True)])
        form.init()
        assert form.state.is_enabled("submit_button") is False
        form.context.set_value("agree", True)
        assert form.state.is_enabled("submit_button") is True

    def test_when_value_equals_without_otherwise(self):
        """Should do nothing when the condition fails and no otherwise is given."""
        form = make_form("a", "b", rules=[Rules.when_value_equals("a", 1, Rules.hide("b"))])
        form.init()
        assert form.state.is_visible("b") is True

    def test_all_of(self):
        """Should run every combined rule in order."""
        form = make_form("a", "b", rules=[Rules.all_of(Rules.hide("a"), Rules.disable("b"))])
        form.init()
        assert form.state.is_visible("a") is False
        assert form.state.is_enabled("b") is False
