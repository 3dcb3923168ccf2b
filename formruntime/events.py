"""Change notification for the form runtime.

This module provides the event data structure and event emitter used to tell
observers (typically the presentation layer) that a form instance changed.
Every committed state transition and significant action emits a typed
FormEvent carrying the resulting FormState.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import json
import logging

from formruntime.state import FormState
from formruntime.types import FormEventType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormEvent:
    """A single change notification for one form instance.

    Attributes:
        event_id: Unique event identifier (e.g., "evt_01H8...")
        type: Event type from FormEventType enum
        form_id: ID of the form instance that emitted the event
        ts: UTC timestamp when the event occurred
        state: Form state after this event
        payload: Optional event-specific data (e.g., changed field, errors)

    Examples:
        >>> from datetime import datetime, timezone
        >>> event = FormEvent(
        ...     event_id="evt_001",
        ...     type=FormEventType.FIELD_CHANGED,
        ...     form_id="signup",
        ...     ts=datetime.now(timezone.utc),
        ...     state=FormState(values={"name": "Alice"}),
        ...     payload={"fieldId": "name"},
        ... )
    """
    event_id: str
    type: FormEventType
    form_id: str
    ts: datetime
    state: FormState
    payload: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        """Normalize string event types to the enum."""
        if isinstance(self.type, str) and not isinstance(self.type, FormEventType):
            object.__setattr__(self, "type", FormEventType(self.type))

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for serialization.

        Only the persistable part of the state is included, plus the error
        list in dict form.
        """
        result: Dict[str, Any] = {
            "eventId": self.event_id,
            "type": self.type.value,
            "formId": self.form_id,
            "ts": self.ts.isoformat(),
            "state": self.state.to_dict(),
            "errors": [e.to_dict() for e in self.state.errors],
        }
        if self.payload is not None:
            result["payload"] = self.payload
        return result

    def to_jsonl(self) -> str:
        """Convert event to a single-line JSON string.

        Values that are not JSON serializable are rendered with ``str``.
        """
        return json.dumps(self.to_dict(), separators=(',', ':'), default=str)


EventListener = Callable[[FormEvent], None]
"""Type alias for event listener callbacks.

Listeners are called synchronously when events are emitted and must not
mutate the form from inside the callback.
"""


class EventEmitter:
    """Observer registry dispatching FormEvents.

    Features:
    - Type-specific subscriptions (listen to specific event types)
    - Wildcard subscriptions (listen to all events)
    - Synchronous dispatch (listeners called in registration order)
    - Error isolation (listener exceptions are logged, not propagated)

    Examples:
        >>> emitter = EventEmitter()
        >>> seen = []
        >>> emitter.on(FormEventType.FIELD_CHANGED, seen.append)
        >>> emitter.listener_count()
        1
    """

    def __init__(self):
        self._listeners: Dict[FormEventType, List[EventListener]] = {}
        self._any_listeners: List[EventListener] = []

    def on(self, event_type: FormEventType, listener: EventListener) -> None:
        """Subscribe to a specific event type."""
        self._listeners.setdefault(event_type, []).append(listener)

    def on_any(self, listener: EventListener) -> None:
        """Subscribe to all event types."""
        self._any_listeners.append(listener)

    def off(self, event_type: FormEventType, listener: EventListener) -> None:
        """Unsubscribe from a specific event type. Unknown listeners are ignored."""
        if event_type in self._listeners:
            try:
                self._listeners[event_type].remove(listener)
            except ValueError:
                pass

    def off_any(self, listener: EventListener) -> None:
        """Unsubscribe from the wildcard subscription. Unknown listeners are ignored."""
        try:
            self._any_listeners.remove(listener)
        except ValueError:
            pass

    def emit(self, event: FormEvent) -> None:
        """Dispatch an event to all registered listeners.

        Type-specific listeners run first, then wildcard listeners, each in
        registration order. A listener that raises is logged and skipped so
        that it cannot affect other listeners or the mutation that emitted
        the event.

        Args:
            event: Event to dispatch
        """
        listeners = list(self._listeners.get(event.type, ())) + list(self._any_listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.warning(
                    "Listener %r failed for %s on form '%s'",
                    listener, event.type.value, event.form_id,
                    exc_info=True,
                )

    def clear(self) -> None:
        """Remove all event listeners."""
        self._listeners.clear()
        self._any_listeners.clear()

    def listener_count(self, event_type: Optional[FormEventType] = None) -> int:
        """Get count of registered listeners.

        Args:
            event_type: If provided, count listeners for this type only.
                        If None, count all listeners (including wildcard).
        """
        if event_type is not None:
            return len(self._listeners.get(event_type, []))
        total = len(self._any_listeners)
        for listeners in self._listeners.values():
            total += len(listeners)
        return total


__all__ = [
    "FormEvent",
    "EventListener",
    "EventEmitter",
]
