"""Registry dispatching record fields to handlers by :class:`FieldKind`.

A handler is any callable ``handler(descriptor, value) -> result``; what it
builds (an editor widget, a serialised form field, ...) is up to the
surface registering it.  The registry only guarantees that every field of
a record reaches the handler registered for its kind.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from formbuilder.errors import FieldHandlingError
from formbuilder.fields.kinds import FieldDescriptor, FieldKind, resolve_field_kinds

logger = logging.getLogger(__name__)

FieldHandler = Callable[[FieldDescriptor, Any], Any]


class FieldHandlerRegistry:
    """Mapping of :class:`FieldKind` to handler callables."""

    def __init__(self) -> None:
        self._handlers: dict[FieldKind, FieldHandler] = {}

    def register(self, kind: FieldKind, handler: FieldHandler) -> None:
        """Register *handler* for *kind*.

        Raises
        ------
        ValueError
            If a handler for *kind* is already registered.
        """
        if kind in self._handlers:
            raise ValueError(
                f"A handler for field kind {kind.value} is already registered. "
                f"Unregister the existing handler first."
            )
        self._handlers[kind] = handler
        logger.debug("Registered field handler for kind: %s", kind.value)

    def unregister(self, kind: FieldKind) -> None:
        """Remove the handler for *kind*.

        Raises
        ------
        KeyError
            If no handler is registered for *kind*.
        """
        if kind not in self._handlers:
            raise KeyError(f"No handler registered for field kind {kind.value}.")
        del self._handlers[kind]

    def get(self, kind: FieldKind) -> FieldHandler | None:
        return self._handlers.get(kind)

    def __contains__(self, kind: FieldKind) -> bool:
        return kind in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    def dispatch(self, instance: Any) -> list[tuple[FieldDescriptor, Any]]:
        """Hand every field of *instance* to its handler.

        Returns
        -------
        list[tuple[FieldDescriptor, Any]]
            ``(descriptor, handler result)`` pairs in field order.

        Raises
        ------
        FieldHandlingError
            A field's kind has no handler, or an element collection holds
            something other than a list.
        """
        if instance is None:
            raise ValueError("instance mustn't be None")

        results: list[tuple[FieldDescriptor, Any]] = []
        for descriptor in resolve_field_kinds(type(instance)):
            handler = self._handlers.get(descriptor.kind)
            if handler is None:
                raise FieldHandlingError(
                    f"No handler registered for field {type(instance).__name__}.{descriptor.name} "
                    f"of kind {descriptor.kind.value}"
                )
            value = getattr(instance, descriptor.name)
            if descriptor.kind == FieldKind.ELEMENT_COLLECTION and value is not None and not isinstance(value, list):
                raise FieldHandlingError(
                    f"Value of element collection {type(instance).__name__}.{descriptor.name} isn't a list"
                )
            results.append((descriptor, handler(descriptor, value)))
        return results
