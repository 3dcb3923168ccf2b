"""Registry of named form instances.

The orchestrator is the only component that can see more than one form. A
transaction service that needs another form (for example to copy a generated
account id from a registration form into a profile form) holds a reference
to the orchestrator and goes through ``get(form_id).context``. Nothing is
synchronized between forms implicitly.

The instance mapping changes only when forms are mounted or unmounted.

Usage:
    >>> from formruntime.orchestrator import Orchestrator
    >>> from formruntime.types import FieldDefinition
    >>> orchestrator = Orchestrator()
    >>> form = orchestrator.mount("profile", [FieldDefinition(id="account_id")])
    >>> orchestrator.get("profile") is form
    True
"""

from typing import Any, Dict, Iterator, Optional, Sequence, Tuple
import logging

from formruntime.errors import ConfigurationError, FormNotFoundError
from formruntime.runtime import FormInstance
from formruntime.service import TransactionService
from formruntime.types import FieldDefinition

logger = logging.getLogger(__name__)


class Orchestrator:
    """Mapping of form id to FormInstance."""

    def __init__(self):
        self._instances: Dict[str, FormInstance] = {}

    def __contains__(self, form_id: object) -> bool:
        return form_id in self._instances

    def __len__(self) -> int:
        return len(self._instances)

    def __iter__(self) -> Iterator[FormInstance]:
        return iter(list(self._instances.values()))

    def form_ids(self) -> Tuple[str, ...]:
        return tuple(self._instances)

    def register(self, instance: FormInstance) -> FormInstance:
        """Add an already constructed instance.

        Raises:
            ConfigurationError: If an instance with the same id is registered
        """
        if instance.form_id in self._instances:
            raise ConfigurationError(f"Form instance '{instance.form_id}' is already registered")
        self._instances[instance.form_id] = instance
        logger.debug("Registered form '%s'", instance.form_id)
        return instance

    def mount(
        self,
        form_id: str,
        fields: Sequence[FieldDefinition],
        service: Optional[TransactionService] = None,
        **options: Any,
    ) -> FormInstance:
        """Create, register and initialize a form instance.

        Args:
            form_id: Identifier for the new instance
            fields: Field declarations
            service: Transaction service for the form
            **options: Further FormInstance arguments (rules, validators,
                analytics, config)

        Returns:
            The initialized instance
        """
        if form_id in self._instances:
            raise ConfigurationError(f"Form instance '{form_id}' is already registered")
        instance = FormInstance(form_id, fields, service=service, **options)
        self.register(instance)
        try:
            instance.init()
        except Exception:
            self._instances.pop(form_id, None)
            instance.dispose()
            raise
        return instance

    def get(self, form_id: str) -> FormInstance:
        """Return the instance registered under ``form_id``.

        Raises:
            FormNotFoundError: If no such instance is registered
        """
        try:
            return self._instances[form_id]
        except KeyError:
            raise FormNotFoundError(form_id) from None

    def unmount(self, form_id: str) -> None:
        """Dispose of an instance and forget it.

        Raises:
            FormNotFoundError: If no such instance is registered
        """
        instance = self.get(form_id)
        del self._instances[form_id]
        instance.dispose()
        logger.debug("Unmounted form '%s'", form_id)

    def unmount_all(self) -> None:
        for form_id in list(self._instances):
            self.unmount(form_id)


__all__ = [
    "Orchestrator",
]
