"""Post-submission mapping of flat form values into nested structures.

While a form is being edited its keys are opaque. Turning dotted keys into
nested dicts is a separate step the embedder runs explicitly on submitted
values, typically inside ``TransactionService.submit``.
"""

from typing import Any, Dict, Mapping


def unflatten(values: Mapping[str, Any], separator: str = ".") -> Dict[str, Any]:
    """Expand separator-joined keys into nested dicts.

    Raises:
        ValueError: If a key is used both as a value and as a parent,
            e.g. ``"a"`` and ``"a.b"``

    Examples:
        >>> unflatten({"contact.email": "a@b.c", "contact.phone": "1", "name": "Ann"})
        {'contact': {'email': 'a@b.c', 'phone': '1'}, 'name': 'Ann'}
    """
    result: Dict[str, Any] = {}
    for key, value in values.items():
        parts = key.split(separator)
        node = result
        for depth, part in enumerate(parts[:-1]):
            child = node.setdefault(part, {})
            if not isinstance(child, dict):
                raise ValueError(
                    f"Key '{key}' conflicts with value at '{separator.join(parts[:depth + 1])}'"
                )
            node = child
        leaf = parts[-1]
        if isinstance(node.get(leaf), dict):
            raise ValueError(f"Key '{key}' conflicts with nested keys below it")
        node[leaf] = value
    return result


__all__ = [
    "unflatten",
]
