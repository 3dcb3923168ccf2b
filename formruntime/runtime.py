"""FormInstance: the owning unit of one runtime form.

A FormInstance binds a field declaration set to its current FormState, rule
engine, validator registry, history and transaction service, and is the only
place where the state is replaced. All mutations arrive through its
FormContext and are serialized by an instance lock, so each one produces a
complete new FormState in turn.

Edit flow:
    1. ``ctx.set_value`` commits a new FormState (equal values are ignored)
    2. The rule engine runs the rules triggered by the change, in priority
       order. Values set by rules during the pass commit immediately and
       trigger a further pass once the current one finishes.
    3. The service's ``on_field_changed`` hook runs for every changed field.
       An awaitable result is scheduled on the running event loop.

Usage:
    >>> from formruntime.runtime import FormInstance
    >>> from formruntime.rules import Rules
    >>> from formruntime.types import FieldDefinition
    >>> form = FormInstance(
    ...     "newsletter",
    ...     [FieldDefinition(id="subscribe", initial_value=False), FieldDefinition(id="frequency")],
    ...     rules=[Rules.visible_when("frequency", "subscribe", True)],
    ... )
    >>> form.init()
    >>> form.state.is_visible("frequency")
    False
    >>> form.context.set_value("subscribe", True)
    >>> form.state.is_visible("frequency")
    True
"""

from datetime import datetime, timezone
from typing import (
    Any,
    Awaitable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
    Union,
)
import asyncio
import inspect
import logging
import threading
import uuid

from formruntime.analytics import AnalyticsDispatcher, AnalyticsSink
from formruntime.config import FormConfig
from formruntime.context import FormContext
from formruntime.errors import ConfigurationError, FieldError, FormError, RuleConvergenceError
from formruntime.events import EventEmitter, EventListener, FormEvent
from formruntime.history import HistoryManager
from formruntime.lifecycle import FormLifecycleMachine
from formruntime.rules import Rule, RuleDefinition, RuleEngine
from formruntime.service import SubmitResult, TransactionService
from formruntime.state import FormState
from formruntime.types import FieldDefinition, FormEventType, FormLifecycle, SubmitStatus
from formruntime.validation import ValidationResult, Validator, ValidatorRegistry

logger = logging.getLogger(__name__)

_MISSING = object()


def _same_value(current: Any, value: Any) -> bool:
    # 0 == False and 1 == 1.0, so a change of type alone is still an edit
    return current is not _MISSING and type(current) is type(value) and current == value


SUBMIT_STATUS_TO_EVENT_TYPE: Dict[SubmitStatus, FormEventType] = {
    SubmitStatus.SUCCEEDED: FormEventType.SUBMISSION_SUCCEEDED,
    SubmitStatus.BLOCKED: FormEventType.SUBMISSION_BLOCKED,
    SubmitStatus.FAILED: FormEventType.SUBMISSION_FAILED,
}


class FormInstance:
    """One runtime form: state, rules, validators, history and service.

    Attributes:
        form_id: Identifier of this instance
        fields: Field declarations in layout order
        config: Behavior settings
        service: Transaction service driving the business flow
        rules: Rule engine
        validators: Validator registry
        history: Undo/redo history
        events: Change notification emitter
        analytics: Best-effort analytics dispatcher
        lifecycle: Lifecycle state machine
        context: The FormContext handed to rules, validators and hooks
    """

    def __init__(
        self,
        form_id: str,
        fields: Sequence[FieldDefinition],
        service: Optional[TransactionService] = None,
        rules: Iterable[Union[RuleDefinition, Rule]] = (),
        validators: Optional[Mapping[str, Union[Validator, Sequence[Validator]]]] = None,
        analytics: Optional[AnalyticsSink] = None,
        config: Optional[FormConfig] = None,
    ):
        self.form_id = form_id
        self.fields: Tuple[FieldDefinition, ...] = tuple(fields)
        self.config = config or FormConfig()

        field_ids = [f.id for f in self.fields]
        duplicates = sorted({fid for fid in field_ids if field_ids.count(fid) > 1})
        if duplicates:
            raise ConfigurationError(
                f"Form '{form_id}' declares duplicate fields: {', '.join(duplicates)}"
            )
        self._field_ids = frozenset(field_ids)

        self.service = service or TransactionService()
        self.lifecycle = FormLifecycleMachine(form_id=form_id)
        self.events = EventEmitter()
        self.analytics = AnalyticsDispatcher(form_id, analytics)
        self.rules = RuleEngine(field_ids=self._field_ids)
        self.validators = ValidatorRegistry(declared_fields=self._field_ids)

        self._lock = threading.RLock()
        self._state = FormState.initial(
            self.fields,
            default_visible=self.config.default_visible,
            default_enabled=self.config.default_enabled,
        )
        self.history = HistoryManager(
            get_state=lambda: self._state,
            restore=self._restore,
            limit=self.config.history_limit,
        )
        self.context = FormContext(self)

        self._applying_rules = False
        self._changed_during_pass: List[str] = []
        self._tasks: Set["asyncio.Future[Any]"] = set()
        self._task_failures: List[BaseException] = []

        for rule in rules:
            if isinstance(rule, RuleDefinition):
                self.rules.register(rule)
            else:
                self.rules.add(rule)
        for field_id, registered in (validators or {}).items():
            if callable(registered):
                registered = [registered]
            for validator in registered:
                self.validators.register(field_id, validator)

    def __repr__(self) -> str:
        return f"FormInstance(form_id={self.form_id!r}, lifecycle={self.lifecycle.state.value!r})"

    @property
    def state(self) -> FormState:
        return self._state

    @property
    def field_ids(self) -> Tuple[str, ...]:
        return tuple(f.id for f in self.fields)

    # Registration

    def add_rule(
        self,
        rule: Rule,
        priority: int = 0,
        name: Optional[str] = None,
        depends_on: Optional[Iterable[str]] = None,
    ) -> RuleDefinition:
        return self.rules.add(rule, priority=priority, name=name, depends_on=depends_on)

    def add_validator(self, field_id: str, validator: Validator) -> None:
        self.validators.register(field_id, validator)

    def subscribe(self, listener: EventListener, event_type: Optional[FormEventType] = None) -> None:
        """Register a change listener for one event type, or for all events."""
        if event_type is None:
            self.events.on_any(listener)
        else:
            self.events.on(event_type, listener)

    def unsubscribe(self, listener: EventListener, event_type: Optional[FormEventType] = None) -> None:
        if event_type is None:
            self.events.off_any(listener)
        else:
            self.events.off(event_type, listener)

    # Lifecycle

    def init(self) -> None:
        """Run every rule once, then the service's ``on_init`` hook.

        Raises:
            InvalidLifecycleTransitionError: If the form was already initialized
        """
        with self._lock:
            self.lifecycle.transition_to(FormLifecycle.ACTIVE)
            changed = self._apply_rules(None)
            self._emit(FormEventType.FORM_INITIALIZED)
            self._notify_changes(changed)
            self._run_hook("on_init", self.service.on_init(self.context))

    def resume(self) -> None:
        """Run the service's ``on_resume`` hook."""
        with self._lock:
            self._ensure_mutable()
            self._run_hook("on_resume", self.service.on_resume(self.context))

    async def submit(self) -> SubmitResult:
        """Run the service's ``on_submit`` and report the outcome.

        Raises:
            InvalidLifecycleTransitionError: If the form is not initialized
                or a submission is already in progress
        """
        self.lifecycle.transition_to(FormLifecycle.SUBMITTING)
        try:
            result = await self.service.on_submit(self.context)
        finally:
            if self.lifecycle.state == FormLifecycle.SUBMITTING:
                self.lifecycle.transition_to(FormLifecycle.ACTIVE)

        self._emit(SUBMIT_STATUS_TO_EVENT_TYPE[result.status], {"status": result.status.value})
        self.analytics.submitted(result.ok)
        return result

    def validate(self) -> Awaitable[ValidationResult]:
        """Run all validators and publish their errors.

        Values and run sequence numbers are captured at call time.
        """
        pending = self.validators.validate(self.context)
        return self._finish_validation(pending)

    async def _finish_validation(self, pending: Awaitable[List[FormError]]) -> ValidationResult:
        await pending
        errors = list(self._state.errors)
        result = ValidationResult(is_valid=not errors, errors=errors)
        self._emit(
            FormEventType.VALIDATION_PASSED if result.is_valid else FormEventType.VALIDATION_FAILED,
            {"invalidFields": result.invalid_fields},
        )
        return result

    async def settle(self) -> None:
        """Wait for every scheduled hook and validation task to finish.

        Raises:
            The first exception raised by a scheduled task since the last call
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        if self._task_failures:
            failure = self._task_failures[0]
            self._task_failures.clear()
            raise failure

    def dispose(self) -> None:
        """Tear the form down, releasing history, listeners and pending tasks."""
        with self._lock:
            if self.lifecycle.state == FormLifecycle.DISPOSED:
                return
            self.lifecycle.transition_to(FormLifecycle.DISPOSED)
            for task in list(self._tasks):
                task.cancel()
            self._tasks.clear()
            self._emit(FormEventType.FORM_DISPOSED)
            self.events.clear()
            self.history.clear()
            logger.debug("Form '%s' disposed", self.form_id)

    # Mutations (reached through FormContext)

    def require_field(self, field_id: str) -> None:
        if field_id not in self._field_ids:
            raise ConfigurationError(f"Form '{self.form_id}' has no field '{field_id}'")

    def set_value(self, field_id: str, value: Any) -> None:
        with self._lock:
            self._ensure_mutable()
            self.require_field(field_id)
            if _same_value(self._state.values.get(field_id, _MISSING), value):
                return
            self._commit(self._state.with_value(field_id, value), FormEventType.FIELD_CHANGED, {"fieldId": field_id})
            self.analytics.field_changed(field_id, value)

            if self._applying_rules:
                self._changed_during_pass.append(field_id)
                return
            changed = self._apply_rules([field_id])
            self._notify_changes(changed)

    def set_visibility(self, field_id: str, visible: bool) -> None:
        with self._lock:
            self._ensure_mutable()
            self.require_field(field_id)
            if self._state.visibility.get(field_id) == visible:
                return
            self._commit(self._state.with_visibility(field_id, visible))

    def set_enabled(self, field_id: str, enabled: bool) -> None:
        with self._lock:
            self._ensure_mutable()
            self.require_field(field_id)
            if self._state.enabled.get(field_id) == enabled:
                return
            self._commit(self._state.with_enabled(field_id, enabled))

    def replace_errors(self, errors: Sequence[FormError]) -> None:
        with self._lock:
            self._ensure_mutable()
            for error in errors:
                if isinstance(error, FieldError):
                    self.require_field(error.field_id)
            new_state = self._state.with_errors(errors)
            if new_state != self._state:
                self._commit(new_state)

    def replace_field_errors(self, field_id: str, errors: Sequence[FormError]) -> None:
        with self._lock:
            self._ensure_mutable()
            self.require_field(field_id)
            new_state = self._state.with_field_errors(field_id, errors)
            if new_state != self._state:
                self._commit(new_state)

    # Internals

    def _ensure_mutable(self) -> None:
        if self.lifecycle.state == FormLifecycle.DISPOSED:
            raise ConfigurationError(f"Form '{self.form_id}' is disposed")

    def _commit(
        self,
        new_state: FormState,
        event_type: FormEventType = FormEventType.STATE_CHANGED,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._state = new_state
        logger.debug("Form '%s' committed %s %s", self.form_id, event_type.value, payload or "")
        self._emit(event_type, payload)

    def _restore(self, state: FormState) -> None:
        with self._lock:
            self._ensure_mutable()
            self._commit(state, FormEventType.HISTORY_RESTORED)
            self._emit(FormEventType.STATE_CHANGED)

    def _emit(self, event_type: FormEventType, payload: Optional[Dict[str, Any]] = None) -> None:
        self.events.emit(
            FormEvent(
                event_id=f"evt_{uuid.uuid4().hex[:16]}",
                type=event_type,
                form_id=self.form_id,
                ts=datetime.now(timezone.utc),
                state=self._state,
                payload=payload,
            )
        )

    def _apply_rules(self, changed: Optional[List[str]]) -> List[str]:
        """Run rule passes until no rule changes a value.

        Args:
            changed: Fields whose change triggers the first pass. None runs
                every rule.

        Returns:
            Every field changed by the edit and the rules, in change order
        """
        all_changed = list(changed or [])
        trigger = changed
        self._applying_rules = True
        try:
            for _ in range(self.config.max_rule_passes):
                self._changed_during_pass = []
                self.rules.apply(self.context, trigger)
                if not self._changed_during_pass:
                    break
                all_changed.extend(self._changed_during_pass)
                trigger = list(self._changed_during_pass)
            else:
                raise RuleConvergenceError(
                    f"Rules of form '{self.form_id}' still changed "
                    f"{', '.join(sorted(set(trigger or [])))} after "
                    f"{self.config.max_rule_passes} passes"
                )
        finally:
            self._applying_rules = False
            self._changed_during_pass = []
        return list(dict.fromkeys(all_changed))

    def _notify_changes(self, changed: Iterable[str]) -> None:
        for field_id in changed:
            value = self._state.values.get(field_id)
            self._run_hook("on_field_changed", self.service.on_field_changed(self.context, field_id, value))
            if self.config.validate_on_change and field_id in self.validators:
                self._schedule("validate_on_change", self.validators.validate_field(self.context, field_id))

    def _run_hook(self, name: str, outcome: Any) -> None:
        if inspect.isawaitable(outcome):
            self._schedule(name, outcome)

    def _schedule(self, name: str, awaitable: Awaitable[Any]) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise ConfigurationError(
                f"Form '{self.form_id}': {name} needs a running event loop"
            ) from None
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: "asyncio.Future[Any]") -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        failure = task.exception()
        if failure is not None:
            logger.error("Background task of form '%s' failed", self.form_id, exc_info=failure)
            self._task_failures.append(failure)


__all__ = [
    "FormInstance",
]
