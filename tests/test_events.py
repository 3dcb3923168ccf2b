"""Unit tests for change notification.

Tests cover:
- FormEvent creation, normalization and serialization
- EventEmitter subscriptions, dispatch order and error isolation
- Events emitted by FormInstance mutations
"""

import json
import logging
from datetime import datetime, timezone

import pytest

from formruntime.errors import FieldError
from formruntime.events import EventEmitter, FormEvent
from formruntime.runtime import FormInstance
from formruntime.state import FormState
from formruntime.types import FieldDefinition, FormEventType


def make_event(event_type=FormEventType.FIELD_CHANGED, **kwargs):
    params = dict(
        event_id="evt_001",
        type=event_type,
        form_id="signup",
        ts=datetime(2024, 1, 15, 10, 30, 0, tzinfo=timezone.utc),
        state=FormState(values={"name": "Ada"}),
    )
    params.update(kwargs)
    return FormEvent(**params)


class TestFormEvent:
    """Test FormEvent."""

    def test_string_type_normalized(self):
        """Should convert string event types to the enum."""
        event = make_event(event_type="field.changed")
        assert event.type == FormEventType.FIELD_CHANGED

    def test_event_is_immutable(self):
        """Should prevent modification of event fields."""
        event = make_event()
        with pytest.raises(Exception):  # FrozenInstanceError
            event.form_id = "other"

    def test_to_dict(self):
        """Should serialize with camelCase keys and persisted state."""
        event = make_event(
            state=FormState(values={"name": "Ada"}, errors=[FieldError("name", "bad")]),
            payload={"fieldId": "name"},
        )
        data = event.to_dict()
        assert data["eventId"] == "evt_001"
        assert data["type"] == "field.changed"
        assert data["formId"] == "signup"
        assert data["ts"] == "2024-01-15T10:30:00+00:00"
        assert data["state"]["values"] == {"name": "Ada"}
        assert data["errors"] == [{"kind": "field", "fieldId": "name", "message": "bad", "code": "custom"}]
        assert data["payload"] == {"fieldId": "name"}

    def test_to_dict_without_payload(self):
        """Should omit the payload key when there is none."""
        assert "payload" not in make_event().to_dict()

    def test_to_jsonl_single_line(self):
        """Should produce one line of valid JSON."""
        line = make_event(state=FormState(values={"when": datetime(2024, 1, 1)})).to_jsonl()
        assert "\n" not in line
        assert json.loads(line)["formId"] == "signup"


class TestEventEmitter:
    """Test EventEmitter."""

    def test_type_specific_listener(self):
        """Should only call listeners for the emitted type."""
        emitter = EventEmitter()
        changed, restored = [], []
        emitter.on(FormEventType.FIELD_CHANGED, changed.append)
        emitter.on(FormEventType.HISTORY_RESTORED, restored.append)
        emitter.emit(make_event())
        assert len(changed) == 1
        assert restored == []

    def test_specific_before_wildcard(self):
        """Should call type-specific listeners before wildcard ones."""
        emitter = EventEmitter()
        order = []
        emitter.on_any(lambda e: order.append("any"))
        emitter.on(FormEventType.FIELD_CHANGED, lambda e: order.append("specific"))
        emitter.emit(make_event())
        assert order == ["specific", "any"]

    def test_off(self):
        """Should stop calling removed listeners and ignore unknown ones."""
        emitter = EventEmitter()
        seen = []
        emitter.on(FormEventType.FIELD_CHANGED, seen.append)
        emitter.off(FormEventType.FIELD_CHANGED, seen.append)
        emitter.off(FormEventType.FIELD_CHANGED, seen.append)
        emitter.off_any(seen.append)
        emitter.emit(make_event())
        assert seen == []

    def test_failing_listener_isolated_and_logged(self, caplog):
        """Should log a failing listener and keep dispatching."""
        emitter = EventEmitter()
        seen = []

        def broken(event):
            raise RuntimeError("listener bug")

        emitter.on_any(broken)
        emitter.on_any(seen.append)
        with caplog.at_level(logging.WARNING, logger="formruntime.events"):
            emitter.emit(make_event())
        assert len(seen) == 1
        assert "failed for field.changed" in caplog.text

    def test_listener_count_and_clear(self):
        """Should count and clear listeners."""
        emitter = EventEmitter()
        emitter.on(FormEventType.FIELD_CHANGED, lambda e: None)
        emitter.on_any(lambda e: None)
        assert emitter.listener_count() == 2
        assert emitter.listener_count(FormEventType.FIELD_CHANGED) == 1
        emitter.clear()
        assert emitter.listener_count() == 0


class TestInstanceEvents:
    """Test events emitted by FormInstance."""

    def test_one_event_per_commit(self):
        """Should emit exactly one event for each committed change."""
        form = FormInstance("f", [FieldDefinition(id="a")])
        events = []
        form.subscribe(events.append)
        form.context.set_value("a", 1)
        form.context.hide("a")
        form.context.set_field_error("a", "bad")
        assert [e.type for e in events] == [
            FormEventType.FIELD_CHANGED,
            FormEventType.STATE_CHANGED,
            FormEventType.STATE_CHANGED,
        ]
        assert events[0].payload == {"fieldId": "a"}
        assert events[-1].state is form.state

    def test_no_event_for_no_op(self):
        """Should stay silent when nothing changed."""
        form = FormInstance("f", [FieldDefinition(id="a")])
        events = []
        form.subscribe(events.append)
        form.context.show("a")
        form.context.enable("a")
        form.context.clear_errors()
        assert events == []

    def test_init_event(self):
        """Should emit form.initialized on init."""
        form = FormInstance("f", [FieldDefinition(id="a")])
        events = []
        form.subscribe(events.append, FormEventType.FORM_INITIALIZED)
        form.init()
        assert len(events) == 1

    def test_unsubscribe(self):
        """Should stop notifying an unsubscribed listener."""
        form = FormInstance("f", [FieldDefinition(id="a")])
        events = []
        form.subscribe(events.append)
        form.unsubscribe(events.append)
        form.context.set_value("a", 1)
        assert events == []
