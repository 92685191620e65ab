"""Entity query translation and the headless query surface."""

from formbuilder.query.translator import EntityQueryTranslator, sqlglot_dialect

__all__ = [
    "EntityQueryTranslator",
    "sqlglot_dialect",
]
