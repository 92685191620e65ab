"""Reflective inspection of the members a record type declares itself.

Only members defined directly in the class body are reported; inherited
members belong to the base class and are fingerprinted there.  Each member
is reduced to a :class:`MemberSignature` made of plain strings (name,
declared type, modifiers) so that it can be hashed identically in every
interpreter process.

Rules
-----
* Constructors (``__init__``, ``__new__``) are skipped: they never affect
  the shape of persisted records.  Other dunder names are interpreter
  bookkeeping and are skipped too, except ``__tablename__``.
* SQLAlchemy instrumentation (``_sa_*``) is skipped; mapped attributes are
  described through their column or relationship instead of the
  instrumented descriptor.  Attributes a mapped subclass receives from its
  mapped base (single-table or joined-table inheritance) are skipped too.
* Default parameter values are never rendered: their ``repr`` may embed a
  memory address.
"""

from __future__ import annotations

import functools
import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy.orm import (
    ColumnProperty,
    CompositeProperty,
    QueryableAttribute,
    RelationshipProperty,
    configure_mappers,
)


class MemberKind(str, Enum):
    FIELD = "field"
    METHOD = "method"


@dataclass(frozen=True)
class MemberSignature:
    """Process-independent description of one declared member."""

    kind: MemberKind
    name: str
    declared_type: str
    modifiers: tuple[str, ...] = ()

    def canonical(self) -> str:
        """Return the text that is hashed for this member."""
        return "|".join((self.kind.value, self.name, self.declared_type, ",".join(sorted(self.modifiers))))


_TRACKED_DUNDERS = frozenset({"__tablename__"})
_SKIPPED_PREFIXES = ("_sa_", "_abc_")


def _is_skipped(name: str) -> bool:
    if name.startswith("__") and name.endswith("__"):
        return name not in _TRACKED_DUNDERS
    return name.startswith(_SKIPPED_PREFIXES)


def _type_text(annotation: Any) -> str:
    """Render an annotation (string or object) as stable text."""
    if annotation is inspect.Parameter.empty or annotation is inspect.Signature.empty:
        return ""
    if isinstance(annotation, str):
        return annotation
    if isinstance(annotation, type):
        return f"{annotation.__module__}.{annotation.__qualname__}"
    return repr(annotation)


def _render_signature(func: Any) -> str:
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return "(...)"
    params = []
    for param in signature.parameters.values():
        text = f"{param.name}:{param.kind.name}"
        annotation = _type_text(param.annotation)
        if annotation:
            text += f":{annotation}"
        if param.default is not inspect.Parameter.empty:
            text += "="
        params.append(text)
    rendered = f"({', '.join(params)})"
    returns = _type_text(signature.return_annotation)
    if returns:
        rendered += f" -> {returns}"
    return rendered


def _describe_mapped(name: str, attribute: QueryableAttribute, annotation: str) -> MemberSignature:
    prop = attribute.property
    modifiers: list[str] = ["mapped"]

    if isinstance(prop, ColumnProperty):
        column = prop.columns[0]
        declared = repr(column.type)
        modifiers.append(f"column={getattr(column, 'name', name)}")
        if getattr(column, "primary_key", False):
            modifiers.append("primary_key")
        if getattr(column, "nullable", False):
            modifiers.append("nullable")
        if getattr(column, "unique", False):
            modifiers.append("unique")
        if getattr(column, "index", False):
            modifiers.append("index")
    elif isinstance(prop, RelationshipProperty):
        target = prop.mapper.class_
        declared = f"{target.__module__}.{target.__qualname__}"
        modifiers.append("relationship")
        modifiers.append(f"direction={prop.direction.name}")
        if prop.uselist:
            modifiers.append("uselist")
    elif isinstance(prop, CompositeProperty):
        composite = prop.composite_class
        declared = f"{composite.__module__}.{composite.__qualname__}"
        modifiers.append("composite")
        modifiers.extend(f"column={col.name}" for col in prop.columns)
    else:
        declared = type(prop).__name__

    if annotation:
        modifiers.append(f"annotation={annotation}")
    return MemberSignature(MemberKind.FIELD, name, declared, tuple(sorted(modifiers)))


def _describe_field(name: str, value: Any, annotation: str, has_value: bool) -> MemberSignature:
    if has_value and isinstance(value, QueryableAttribute):
        return _describe_mapped(name, value, annotation)

    modifiers: list[str] = []
    if annotation.startswith(("ClassVar", "typing.ClassVar")):
        modifiers.append("classvar")
    if name in _TRACKED_DUNDERS:
        # The table name is part of the persisted shape, its value matters.
        modifiers.append(f"value={value!r}")
    if annotation:
        declared = annotation
    elif has_value:
        declared = _type_text(type(value))
    else:
        declared = ""
    if has_value and annotation:
        modifiers.append("default")
    return MemberSignature(MemberKind.FIELD, name, declared, tuple(sorted(modifiers)))


def _describe_method(name: str, value: Any) -> MemberSignature | None:
    modifiers: list[str] = []
    func = value

    if isinstance(value, staticmethod):
        modifiers.append("staticmethod")
        func = value.__func__
    elif isinstance(value, classmethod):
        modifiers.append("classmethod")
        func = value.__func__
    elif isinstance(value, property):
        modifiers.append("property")
        if value.fset is not None:
            modifiers.append("setter")
        if value.fdel is not None:
            modifiers.append("deleter")
        func = value.fget
    elif isinstance(value, functools.cached_property):
        modifiers.append("cached_property")
        func = value.func
    elif not inspect.isfunction(value):
        return None

    if func is None:
        return MemberSignature(MemberKind.METHOD, name, "", tuple(sorted(modifiers)))
    if inspect.iscoroutinefunction(func):
        modifiers.append("async")
    if getattr(func, "__isabstractmethod__", False):
        modifiers.append("abstract")
    return MemberSignature(MemberKind.METHOD, name, _render_signature(func), tuple(sorted(modifiers)))


def _is_inherited_mapping(record_type: type, name: str, value: Any, annotations: dict[str, str]) -> bool:
    """Tell whether *value* is an instrumented attribute mapped on a base class.

    SQLAlchemy copies the attributes of a mapped base into every mapped
    subclass namespace; those belong to the base unless the subclass
    re-annotates them.
    """
    if not isinstance(value, QueryableAttribute) or name in annotations:
        return False
    parent = getattr(value.property, "parent", None)
    return parent is not None and parent.class_ is not record_type


def declared_members(record_type: type) -> tuple[MemberSignature, ...]:
    """Return the fields and methods declared directly on *record_type*.

    The result is sorted by ``(kind, name)`` for readability; checksums do
    not depend on that order.

    Raises
    ------
    TypeError
        If *record_type* is not a class.
    """
    if not isinstance(record_type, type):
        raise TypeError(f"Expected a class, got {type(record_type).__name__}")

    if hasattr(record_type, "__mapper__"):
        # Relationship targets and directions are only known once configured.
        configure_mappers()

    namespace = vars(record_type)
    annotations = {name: _type_text(ann) for name, ann in inspect.get_annotations(record_type).items()}

    members: list[MemberSignature] = []
    seen: set[str] = set()

    for name, value in namespace.items():
        if name in ("__init__", "__new__") or _is_skipped(name):
            continue
        if isinstance(value, type):
            # Nested classes are types of their own.
            continue
        if _is_inherited_mapping(record_type, name, value, annotations):
            continue
        method = _describe_method(name, value)
        if method is not None:
            members.append(method)
        else:
            members.append(_describe_field(name, value, annotations.get(name, ""), has_value=True))
        seen.add(name)

    for name, annotation in annotations.items():
        if name in seen or _is_skipped(name):
            continue
        members.append(_describe_field(name, None, annotation, has_value=False))

    members.sort(key=lambda m: (m.kind.value, m.name))
    return tuple(members)
