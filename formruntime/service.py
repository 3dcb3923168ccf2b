"""Transaction service contract.

A transaction service holds the business flow of one kind of form. The
embedding application subclasses TransactionService and overrides the hooks
it needs. Every hook has a safe default, so hooks added later (``on_resume``
is one) never break existing services.

Usage:
    >>> class SignupService(TransactionService):
    ...     async def submit(self, ctx):
    ...         return {"userId": "u_1"}
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Dict, List, Optional
import logging

from formruntime.errors import FieldError, FormError, GlobalFormError, SubmissionFailure
from formruntime.types import FieldErrorCode, SubmitStatus

if TYPE_CHECKING:
    from formruntime.context import FormContext

logger = logging.getLogger(__name__)

HookResult = Optional[Awaitable[None]]


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of ``TransactionService.on_submit``.

    Attributes:
        status: SUCCEEDED, BLOCKED (validation errors) or FAILED (the submit
            action raised SubmissionFailure)
        errors: Errors on the form when the submission stopped
        payload: Return value of the submit action on success
        message: Optional failure message

    Examples:
        >>> SubmitResult(status=SubmitStatus.SUCCEEDED).ok
        True
    """
    status: SubmitStatus
    errors: List[FormError] = field(default_factory=list)
    payload: Any = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == SubmitStatus.SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "ok": self.ok,
            "status": self.status.value,
            "errors": [e.to_dict() for e in self.errors],
        }
        if self.payload is not None:
            result["payload"] = self.payload
        if self.message is not None:
            result["message"] = self.message
        return result


class TransactionService:
    """Lifecycle hooks for one business flow.

    ``on_init``, ``on_field_changed`` and ``on_resume`` may return an
    awaitable; the form instance schedules it on the running event loop.
    Override ``submit`` to perform the business action; override
    ``on_submit`` only to change how validation gates it.
    """

    def on_init(self, ctx: "FormContext") -> HookResult:
        """Called once after the form's initial rule pass."""
        return None

    def on_field_changed(self, ctx: "FormContext", field_id: str, value: Any) -> HookResult:
        """Called after every committed value change and its rule pass."""
        return None

    def on_resume(self, ctx: "FormContext") -> HookResult:
        """Called when the embedder resumes a form (e.g. after restoring state)."""
        return None

    async def on_submit(self, ctx: "FormContext") -> SubmitResult:
        """Validate, then run the submit action if the form has no errors.

        Returns:
            BLOCKED with the errors if validation left any, FAILED if the
            submit action raised SubmissionFailure, SUCCEEDED otherwise.
        """
        await ctx.validate()
        if ctx.has_errors():
            return SubmitResult(status=SubmitStatus.BLOCKED, errors=list(ctx.errors()))

        try:
            payload = await self.submit(ctx)
        except SubmissionFailure as failure:
            self._apply_failure(ctx, failure)
            logger.info("Submission of form '%s' failed: %s", ctx.form_id, failure)
            return SubmitResult(
                status=SubmitStatus.FAILED,
                errors=list(ctx.errors()),
                message=failure.message,
            )
        return SubmitResult(status=SubmitStatus.SUCCEEDED, payload=payload)

    async def submit(self, ctx: "FormContext") -> Any:
        """The business submission action. Must be overridden to submit."""
        raise NotImplementedError(f"{type(self).__name__} does not implement submit()")

    @staticmethod
    def _apply_failure(ctx: "FormContext", failure: SubmissionFailure) -> None:
        errors: List[FormError] = [
            FieldError(field_id=field_id, message=message, code=FieldErrorCode.SERVER)
            for field_id, message in failure.field_errors.items()
        ]
        if failure.message:
            errors.append(GlobalFormError(message=failure.message, code=FieldErrorCode.SERVER))
        ctx.replace_errors(errors)


__all__ = [
    "HookResult",
    "SubmitResult",
    "TransactionService",
]
