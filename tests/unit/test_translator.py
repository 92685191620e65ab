"""Unit tests for formbuilder.query.translator."""

from __future__ import annotations

import pytest

from formbuilder.errors import InvalidQueryError
from formbuilder.query.translator import EntityQueryTranslator, sqlglot_dialect
from sample_records import Company, Person


@pytest.fixture()
def translator() -> EntityQueryTranslator:
    return EntityQueryTranslator([Person, Company])


# ---------------------------------------------------------------------------
# Dialects
# ---------------------------------------------------------------------------


class TestDialect:
    def test_postgresql_alias(self):
        assert sqlglot_dialect("postgresql") == "postgres"

    def test_mariadb_alias(self):
        assert sqlglot_dialect("mariadb") == "mysql"

    def test_sqlite_passthrough(self):
        assert sqlglot_dialect("sqlite") == "sqlite"

    def test_translator_maps_dialect(self):
        assert EntityQueryTranslator([], dialect="postgresql").dialect == "postgres"


# ---------------------------------------------------------------------------
# Rewriting
# ---------------------------------------------------------------------------


class TestTranslate:
    def test_select_all(self, translator: EntityQueryTranslator):
        assert translator.translate("SELECT p FROM Person p") == "SELECT p.* FROM person AS p"

    def test_limit_applied(self, translator: EntityQueryTranslator):
        sql = translator.translate("SELECT p FROM Person p", limit=20)
        assert sql == "SELECT p.* FROM person AS p LIMIT 20"

    def test_attribute_renamed_to_column(self, translator: EntityQueryTranslator):
        sql = translator.translate("SELECT p FROM Person p WHERE p.lastName = 'Doe'")
        assert "p.last_name = 'Doe'" in sql
        assert "lastName" not in sql

    def test_matching_attribute_left_alone(self, translator: EntityQueryTranslator):
        sql = translator.translate("SELECT p FROM Person p WHERE p.age > 30")
        assert "p.age > 30" in sql

    def test_join_over_two_types(self, translator: EntityQueryTranslator):
        sql = translator.translate("SELECT p FROM Person p JOIN Company c ON p.company_id = c.id WHERE c.name = 'Acme'")
        assert "FROM person AS p" in sql
        assert "JOIN company AS c" in sql

    def test_table_names_pass_through(self, translator: EntityQueryTranslator):
        assert translator.translate("SELECT p FROM person p") == "SELECT p.* FROM person AS p"

    def test_register_adds_type(self):
        translator = EntityQueryTranslator([])
        translator.register(Company)
        assert translator.translate("SELECT c FROM Company c") == "SELECT c.* FROM company AS c"

    def test_register_rejects_unmapped(self, translator: EntityQueryTranslator):
        class Unmapped:
            pass

        with pytest.raises(ValueError):
            translator.register(Unmapped)


# ---------------------------------------------------------------------------
# Rejected queries
# ---------------------------------------------------------------------------


class TestRejected:
    @pytest.mark.parametrize("query_text", ["", "   "])
    def test_empty(self, translator: EntityQueryTranslator, query_text: str):
        with pytest.raises(InvalidQueryError, match="empty"):
            translator.translate(query_text)

    def test_unknown_type(self, translator: EntityQueryTranslator):
        with pytest.raises(InvalidQueryError, match="Unknown record type 'Invoice'"):
            translator.translate("SELECT i FROM Invoice i")

    @pytest.mark.parametrize(
        "query_text",
        [
            "DELETE FROM Person",
            "UPDATE Person SET age = 1",
            "SELECT p FROM Person p UNION SELECT c FROM Company c",
        ],
    )
    def test_non_select(self, translator: EntityQueryTranslator, query_text: str):
        with pytest.raises(InvalidQueryError):
            translator.translate(query_text)

    def test_multiple_statements(self, translator: EntityQueryTranslator):
        with pytest.raises(InvalidQueryError, match="exactly one statement"):
            translator.translate("SELECT p FROM Person p; SELECT c FROM Company c")
