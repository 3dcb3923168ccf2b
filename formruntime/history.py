"""Undo/redo history of form state snapshots.

Checkpoints are explicit: the owning transaction service decides when to
call ``snapshot()``. Undo and redo restore the captured FormState verbatim
and never re-run rules or validators, so visibility and enabled flags come
back exactly as they were.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple
import logging

from formruntime.state import FormState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """A FormState captured at a point in time.

    Attributes:
        state: The captured state
        taken_at: UTC timestamp of the capture
        label: Optional checkpoint name (e.g. "step-1")
    """
    state: FormState
    taken_at: datetime
    label: Optional[str] = None


class HistoryManager:
    """Past/future stacks of snapshots for one form instance.

    The manager does not own the current state. It reads it through
    ``get_state`` and puts restored states back through ``restore``.

    Examples:
        >>> current = [FormState(values={"a": 1})]
        >>> history = HistoryManager(lambda: current[0], lambda s: current.__setitem__(0, s))
        >>> history.snapshot()
        >>> current[0] = current[0].with_value("a", 2)
        >>> history.undo()
        True
        >>> current[0].values["a"]
        1
    """

    def __init__(
        self,
        get_state: Callable[[], FormState],
        restore: Callable[[FormState], None],
        limit: Optional[int] = None,
    ):
        self._get_state = get_state
        self._restore = restore
        self.limit = limit
        self._past: List[Snapshot] = []
        self._future: List[Snapshot] = []

    @property
    def past(self) -> Tuple[Snapshot, ...]:
        return tuple(self._past)

    @property
    def future(self) -> Tuple[Snapshot, ...]:
        return tuple(self._future)

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    def snapshot(self, label: Optional[str] = None) -> None:
        """Push the current state onto ``past`` and clear ``future``."""
        self._past.append(self._capture(label))
        if self.limit is not None and len(self._past) > self.limit:
            del self._past[: len(self._past) - self.limit]
        self._future.clear()
        logger.debug("Snapshot taken (label=%s, depth=%d)", label, len(self._past))

    def undo(self) -> bool:
        """Restore the most recent snapshot.

        Returns:
            False if there was nothing to undo, True otherwise
        """
        if not self._past:
            return False
        target = self._past.pop()
        self._future.append(self._capture(target.label))
        self._restore(target.state)
        logger.debug("Undo to snapshot (label=%s)", target.label)
        return True

    def redo(self) -> bool:
        """Re-apply the most recently undone state.

        Returns:
            False if there was nothing to redo, True otherwise
        """
        if not self._future:
            return False
        target = self._future.pop()
        self._past.append(self._capture(target.label))
        self._restore(target.state)
        logger.debug("Redo to snapshot (label=%s)", target.label)
        return True

    def clear(self) -> None:
        self._past.clear()
        self._future.clear()

    def _capture(self, label: Optional[str]) -> Snapshot:
        return Snapshot(
            state=self._get_state(),
            taken_at=datetime.now(timezone.utc),
            label=label,
        )


__all__ = [
    "Snapshot",
    "HistoryManager",
]
