"""Optional analytics collaborator.

The runtime reports user interaction to an embedder-supplied sink. Calls are
best effort: the runtime never reads their return values, and a sink that is
missing or raises never affects form behavior.
"""

from typing import Any, Optional
import logging

from typing_extensions import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class AnalyticsSink(Protocol):
    """Interface an analytics collaborator implements."""

    def field_changed(self, form_id: str, field_id: str, value: Any) -> None: ...

    def field_focused(self, form_id: str, field_id: str) -> None: ...

    def step_changed(self, form_id: str, step: Any) -> None: ...

    def submitted(self, form_id: str, success: bool) -> None: ...


class AnalyticsDispatcher:
    """Forwards notifications to an optional sink, swallowing failures.

    Examples:
        >>> dispatcher = AnalyticsDispatcher(form_id="signup", sink=None)
        >>> dispatcher.field_focused("email")  # no sink: nothing happens
    """

    def __init__(self, form_id: str, sink: Optional[AnalyticsSink] = None):
        self.form_id = form_id
        self.sink = sink

    def field_changed(self, field_id: str, value: Any) -> None:
        self._dispatch("field_changed", field_id, value)

    def field_focused(self, field_id: str) -> None:
        self._dispatch("field_focused", field_id)

    def step_changed(self, step: Any) -> None:
        self._dispatch("step_changed", step)

    def submitted(self, success: bool) -> None:
        self._dispatch("submitted", success)

    def _dispatch(self, name: str, *args: Any) -> None:
        if self.sink is None:
            return
        callback = getattr(self.sink, name, None)
        if callback is None:
            return
        try:
            callback(self.form_id, *args)
        except Exception:
            logger.warning(
                "Analytics sink %r failed in %s for form '%s'",
                self.sink, name, self.form_id,
                exc_info=True,
            )


__all__ = [
    "AnalyticsSink",
    "AnalyticsDispatcher",
]
