"""Translation of entity queries into SQL for the storage engine.

Query surfaces speak in record types rather than tables::

    SELECT p FROM Person p WHERE p.lastName = 'Doe'

The translator parses such text with SQLGlot and rewrites the AST:

1. Record type names become their ``__tablename__``.
2. A bare alias projection (``SELECT p``) becomes ``p.*`` so the ORM can
   map whole rows back onto instances.
3. Attribute keys qualified by an alias become column names when the two
   differ.
4. An optional row limit is applied.

Only a single read-only ``SELECT`` is accepted.  Anything else raises
:class:`InvalidQueryError` before it reaches the database.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

import sqlglot
from sqlalchemy import inspect as sa_inspect
from sqlglot import exp
from sqlglot.errors import SqlglotError

from formbuilder.errors import InvalidQueryError

logger = logging.getLogger(__name__)

# SQLAlchemy dialect names that SQLGlot spells differently.
_DIALECT_ALIASES: dict[str, str] = {
    "postgresql": "postgres",
    "mariadb": "mysql",
}


def sqlglot_dialect(sqlalchemy_dialect: str) -> str:
    """Return the SQLGlot dialect name for a SQLAlchemy dialect name."""
    return _DIALECT_ALIASES.get(sqlalchemy_dialect, sqlalchemy_dialect)


class EntityQueryTranslator:
    """Rewrites entity queries over a fixed set of mapped record types.

    Parameters
    ----------
    record_types:
        SQLAlchemy mapped classes that may appear in queries.
    dialect:
        SQLAlchemy dialect name of the target engine (``sqlite``,
        ``postgresql``, ``mysql``).
    """

    def __init__(self, record_types: Iterable[type], dialect: str = "sqlite") -> None:
        self._dialect = sqlglot_dialect(dialect)
        self._types_by_name: dict[str, type] = {}
        self._types_by_table: dict[str, type] = {}
        for record_type in record_types:
            self.register(record_type)

    @property
    def dialect(self) -> str:
        return self._dialect

    def register(self, record_type: type) -> None:
        """Make *record_type* addressable by its class name."""
        mapper = sa_inspect(record_type, raiseerr=False)
        if mapper is None or not hasattr(mapper, "local_table"):
            raise ValueError(f"{record_type.__name__} is not a mapped record type")
        self._types_by_name[record_type.__name__] = record_type
        self._types_by_table[mapper.local_table.name] = record_type

    def translate(self, query_text: str, limit: int | None = None) -> str:
        """Return the SQL equivalent of *query_text*.

        Raises
        ------
        InvalidQueryError
            The text doesn't parse, isn't a single SELECT, or references an
            unknown record type.
        """
        statement = self._parse(query_text)

        cte_names = {cte.alias for cte in statement.find_all(exp.CTE)}
        aliases: dict[str, type] = {}
        for table in list(statement.find_all(exp.Table)):
            name = table.name
            record_type = self._types_by_name.get(name)
            if record_type is not None:
                table.set("this", exp.to_identifier(sa_inspect(record_type).local_table.name))
            elif name in self._types_by_table:
                record_type = self._types_by_table[name]
            elif name in cte_names:
                continue
            else:
                raise InvalidQueryError(f"Unknown record type '{name}' in query: {query_text}")
            aliases[table.alias or name] = record_type

        self._expand_alias_projections(statement, aliases)
        self._rename_attributes(statement, aliases)

        if limit is not None:
            statement = statement.limit(limit)

        sql = statement.sql(dialect=self._dialect)
        logger.debug("Translated query '%s' to '%s'", query_text, sql)
        return sql

    def _parse(self, query_text: str) -> exp.Select:
        if not query_text or not query_text.strip():
            raise InvalidQueryError("Query text is empty")
        try:
            statements = [s for s in sqlglot.parse(query_text, read=self._dialect) if s is not None]
        except SqlglotError as exc:
            raise InvalidQueryError(f"Query can't be parsed: {exc}", cause=exc) from exc
        if len(statements) != 1:
            raise InvalidQueryError(f"Expected exactly one statement, got {len(statements)}")
        statement = statements[0]
        if not isinstance(statement, exp.Select):
            raise InvalidQueryError(f"Only SELECT queries are supported, got {statement.key.upper()}")
        return statement

    @staticmethod
    def _expand_alias_projections(statement: exp.Select, aliases: dict[str, type]) -> None:
        for projection in list(statement.expressions):
            if isinstance(projection, exp.Column) and not projection.table and projection.name in aliases:
                projection.replace(exp.Column(this=exp.Star(), table=exp.to_identifier(projection.name)))

    @staticmethod
    def _rename_attributes(statement: exp.Select, aliases: dict[str, type]) -> None:
        for column in list(statement.find_all(exp.Column)):
            record_type = aliases.get(column.table)
            if record_type is None:
                continue
            attrs = sa_inspect(record_type).column_attrs
            if column.name in attrs:
                column_name = attrs[column.name].columns[0].name
                if column_name != column.name:
                    column.set("this", exp.to_identifier(column_name))
