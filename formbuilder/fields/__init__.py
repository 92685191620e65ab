"""Field kind resolution and handler dispatch for record forms."""

from formbuilder.fields.kinds import FieldDescriptor, FieldKind, resolve_field_kinds
from formbuilder.fields.registry import FieldHandler, FieldHandlerRegistry

__all__ = [
    "FieldDescriptor",
    "FieldHandler",
    "FieldHandlerRegistry",
    "FieldKind",
    "resolve_field_kinds",
]
