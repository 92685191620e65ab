"""Unit tests for formbuilder.storage (configuration and SQLAlchemy storage)."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import SecretStr
from sqlalchemy.orm.exc import DetachedInstanceError

from formbuilder.config import StorageBackend, load_settings
from formbuilder.errors import ConfigError, InvalidQueryError, SchemaDriftError, StorageError
from formbuilder.schema.guard import SchemaValidationOutcome
from formbuilder.storage import PersistenceStorage, PersistenceStorageConf
from sample_records import Address, Company, Person

# ---------------------------------------------------------------------------
# PersistenceStorageConf
# ---------------------------------------------------------------------------


class TestPersistenceStorageConf:
    def test_sqlite_url(self, tmp_path: Path):
        conf = PersistenceStorageConf(database_name=str(tmp_path / "forms.db"))
        url = conf.connection_url()
        assert url.drivername == "sqlite"
        assert url.database == str(tmp_path / "forms.db")

    def test_postgresql_url_uses_default_port(self):
        conf = PersistenceStorageConf(
            backend=StorageBackend.POSTGRESQL,
            database_name="forms",
            host="db.internal",
            username="app",
            password=SecretStr("s3cret"),
        )
        url = conf.connection_url()
        assert url.drivername == "postgresql"
        assert url.host == "db.internal"
        assert url.port == 5432
        assert url.password == "s3cret"

    def test_mysql_explicit_port(self):
        conf = PersistenceStorageConf(backend=StorageBackend.MYSQL, database_name="forms", port=3307)
        assert conf.connection_url().port == 3307

    def test_missing_database_name(self):
        with pytest.raises(ConfigError):
            PersistenceStorageConf().connection_url()

    def test_from_settings(self, tmp_path: Path):
        settings = load_settings(database_name="forms", scheme_checksum_file=tmp_path / "c.json")
        conf = PersistenceStorageConf.from_settings(settings, [Person])
        assert conf.database_name == "forms"
        assert conf.record_types == [Person]
        assert conf.scheme_checksum_file == tmp_path / "c.json"

    def test_validate_conf_creates_snapshot(self, storage_conf: PersistenceStorageConf, checksum_file: Path):
        assert storage_conf.validate_conf() == SchemaValidationOutcome.CREATED
        assert checksum_file.exists()
        assert storage_conf.validate_conf() == SchemaValidationOutcome.MATCHED


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_missing_database_name_fails_before_engine(self, checksum_file: Path):
        conf = PersistenceStorageConf(record_types=[Person], scheme_checksum_file=checksum_file)
        with pytest.raises(ConfigError):
            PersistenceStorage(conf)

    def test_drift_aborts_construction(self, checksum_file: Path):
        checksum_file.parent.mkdir(parents=True)
        checksum_file.write_text('{"format_version": 1, "checksums": {"sample_records.Person": 1}}', encoding="utf-8")
        conf = PersistenceStorageConf(
            database_name=":memory:",
            record_types=[Person],
            scheme_checksum_file=checksum_file,
        )
        with pytest.raises(SchemaDriftError):
            PersistenceStorage(conf)

    def test_file_database_creates_parent(self, tmp_path: Path, checksum_file: Path):
        db_path = tmp_path / "data" / "forms.db"
        conf = PersistenceStorageConf(
            database_name=str(db_path),
            record_types=[Company, Person],
            scheme_checksum_file=checksum_file,
        )
        storage = PersistenceStorage(conf)
        storage.create_tables()
        storage.store(Company(id=1, name="Acme"))
        storage.shutdown()
        assert db_path.exists()

    def test_is_class_supported(self, storage: PersistenceStorage):
        class Unmapped:
            pass

        assert storage.is_class_supported(Person)
        assert not storage.is_class_supported(Unmapped)

    def test_shutdown_makes_storage_unusable(self, storage: PersistenceStorage):
        storage.shutdown()
        with pytest.raises(StorageError):
            storage.run_query_all(Person)

    def test_recreate_engine_keeps_conf(self, storage: PersistenceStorage):
        engine = storage.engine
        storage.recreate_engine()
        assert storage.engine is not engine


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


class TestCrud:
    def test_store_and_retrieve(self, populated_storage: PersistenceStorage):
        person = populated_storage.retrieve(1, Person)
        assert person is not None
        assert person.first_name == "John"
        assert person.lastName == "Doe"
        assert person.address == Address("Main Street 1", "Springfield")
        assert person.nicknames == ["john"]

    def test_retrieve_missing(self, populated_storage: PersistenceStorage):
        assert populated_storage.retrieve(99, Person) is None

    def test_update_detached_instance(self, populated_storage: PersistenceStorage):
        person = populated_storage.retrieve(2, Person)
        person.age = 38
        populated_storage.update(person)
        assert populated_storage.retrieve(2, Person).age == 38

    def test_delete_detached_instance(self, populated_storage: PersistenceStorage):
        person = populated_storage.retrieve(3, Person)
        populated_storage.delete(person)
        assert populated_storage.retrieve(3, Person) is None
        assert len(populated_storage.run_query_all(Person)) == 2

    def test_duplicate_key_raises_storage_error(self, populated_storage: PersistenceStorage):
        with pytest.raises(StorageError) as exc_info:
            populated_storage.store(Company(id=1, name="Duplicate"))
        assert exc_info.value.cause is not None

    def test_returned_instances_are_detached(self, populated_storage: PersistenceStorage):
        person = populated_storage.retrieve(1, Person)
        assert not populated_storage.is_managed(person)

    def test_is_managed_for_unmapped_object(self, storage: PersistenceStorage):
        assert not storage.is_managed(object())


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestQueries:
    def test_run_query_select_all(self, populated_storage: PersistenceStorage):
        people = populated_storage.run_query("SELECT p FROM Person p", Person, 20)
        assert sorted(p.id for p in people) == [1, 2, 3]

    def test_run_query_respects_limit(self, populated_storage: PersistenceStorage):
        assert len(populated_storage.run_query("SELECT p FROM Person p", Person, 1)) == 1

    def test_run_query_with_renamed_attribute(self, populated_storage: PersistenceStorage):
        people = populated_storage.run_query("SELECT p FROM Person p WHERE p.lastName = 'Doe'", Person, 20)
        assert sorted(p.first_name for p in people) == ["Jane", "John"]

    def test_run_query_invalid_text(self, populated_storage: PersistenceStorage):
        with pytest.raises(InvalidQueryError):
            populated_storage.run_query("DELETE FROM Person", Person, 20)

    def test_run_query_database_error(self, populated_storage: PersistenceStorage):
        with pytest.raises(StorageError):
            populated_storage.run_query("SELECT p FROM Person p WHERE p.shoe_size = 4", Person, 20)

    def test_run_query_attribute(self, populated_storage: PersistenceStorage):
        people = populated_storage.run_query_attribute("lastName", "Mustermann", Person)
        assert [p.first_name for p in people] == ["Max"]

    def test_run_query_attribute_unknown(self, populated_storage: PersistenceStorage):
        with pytest.raises(InvalidQueryError):
            populated_storage.run_query_attribute("shoe_size", 4, Person)

    def test_run_query_all(self, populated_storage: PersistenceStorage):
        assert [c.name for c in populated_storage.run_query_all(Company)] == ["Acme"]


# ---------------------------------------------------------------------------
# initialize
# ---------------------------------------------------------------------------


class TestInitialize:
    def test_detached_relationship_unavailable_before_initialize(self, populated_storage: PersistenceStorage):
        person = populated_storage.retrieve(1, Person)
        with pytest.raises(DetachedInstanceError):
            _ = person.company

    def test_initialize_loads_to_one(self, populated_storage: PersistenceStorage):
        person = populated_storage.retrieve(1, Person)
        populated_storage.initialize(person)
        assert person.company.name == "Acme"
        assert not populated_storage.is_managed(person)

    def test_initialize_loads_to_many(self, populated_storage: PersistenceStorage):
        company = populated_storage.retrieve(1, Company)
        populated_storage.initialize(company)
        assert sorted(p.first_name for p in company.employees) == ["Jane", "John", "Max"]

    def test_initialize_transient_is_noop(self, storage: PersistenceStorage):
        storage.initialize(Company(id=5, name="New"))

    def test_initialize_none(self, storage: PersistenceStorage):
        with pytest.raises(ValueError):
            storage.initialize(None)
