"""Classification of record fields into the kinds a form handles differently.

The kind of every mapped attribute is resolved once per record type from
the SQLAlchemy mapper and cached:

* ``ID`` -- primary key columns
* ``EMBEDDED`` -- composite attributes (value objects spread over columns)
* ``TO_ONE`` / ``TO_MANY`` -- relationships, by ``uselist``
* ``ELEMENT_COLLECTION`` -- list-valued columns (``JSON`` / ``ARRAY``)
  declared as ``Mapped[list[...]]``
* ``VALUE`` -- every other column

Columns that back a composite are reported once, as part of the composite.
"""

from __future__ import annotations

import functools
import inspect
from dataclasses import dataclass
from enum import Enum

from sqlalchemy import ARRAY, JSON
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Mapper

from formbuilder.errors import FieldHandlingError


class FieldKind(str, Enum):
    ID = "ID"
    EMBEDDED = "EMBEDDED"
    TO_ONE = "TO_ONE"
    TO_MANY = "TO_MANY"
    ELEMENT_COLLECTION = "ELEMENT_COLLECTION"
    VALUE = "VALUE"


@dataclass(frozen=True)
class FieldDescriptor:
    """One field of a record type together with its resolved kind."""

    name: str
    kind: FieldKind
    target: type | None = None  # related or composite class, if any


def _is_collection_column(column: object) -> bool:
    column_type = getattr(column, "type", None)
    return isinstance(column_type, (JSON, ARRAY))


def _annotated_as_list(record_type: type, key: str) -> bool:
    for klass in record_type.__mro__:
        annotation = inspect.get_annotations(klass).get(key)
        if annotation is not None:
            text = annotation if isinstance(annotation, str) else repr(annotation)
            return "list[" in text.lower()
    return False


@functools.lru_cache(maxsize=None)
def resolve_field_kinds(record_type: type) -> tuple[FieldDescriptor, ...]:
    """Return the field descriptors of *record_type* in mapper order.

    Raises
    ------
    FieldHandlingError
        If *record_type* is not a mapped class.
    """
    mapper = sa_inspect(record_type, raiseerr=False)
    if not isinstance(mapper, Mapper):
        raise FieldHandlingError(f"{record_type!r} is not a mapped record type")

    composite_columns = {column for composite in mapper.composites for column in composite.columns}
    primary_keys = set(mapper.primary_key)

    fields: list[FieldDescriptor] = []
    for prop in mapper.iterate_properties:
        key = prop.key
        if key in mapper.relationships:
            relationship = mapper.relationships[key]
            kind = FieldKind.TO_MANY if relationship.uselist else FieldKind.TO_ONE
            fields.append(FieldDescriptor(key, kind, relationship.mapper.class_))
        elif key in mapper.composites:
            fields.append(FieldDescriptor(key, FieldKind.EMBEDDED, mapper.composites[key].composite_class))
        elif key in mapper.column_attrs:
            column = mapper.column_attrs[key].columns[0]
            if column in composite_columns:
                continue
            if column in primary_keys:
                kind = FieldKind.ID
            elif _is_collection_column(column) and _annotated_as_list(record_type, key):
                kind = FieldKind.ELEMENT_COLLECTION
            else:
                kind = FieldKind.VALUE
            fields.append(FieldDescriptor(key, kind))

    return tuple(fields)
