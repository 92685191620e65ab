"""Shared fixtures for the formbuilder test suite."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from formbuilder.storage import PersistenceStorage, PersistenceStorageConf
from sample_records import Address, Company, Person


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """Undo handlers and levels installed by configure_logging()."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


@pytest.fixture()
def checksum_file(tmp_path: Path) -> Path:
    return tmp_path / "state" / "scheme_checksums.json"


@pytest.fixture()
def storage_conf(checksum_file: Path) -> PersistenceStorageConf:
    return PersistenceStorageConf(
        database_name=":memory:",
        record_types=[Company, Person],
        scheme_checksum_file=checksum_file,
    )


@pytest.fixture()
def storage(storage_conf: PersistenceStorageConf):
    instance = PersistenceStorage(storage_conf)
    instance.create_tables()
    yield instance
    instance.shutdown()


@pytest.fixture()
def populated_storage(storage: PersistenceStorage) -> PersistenceStorage:
    """Storage holding one company and three people."""
    acme = Company(id=1, name="Acme")
    storage.store(acme)
    for pk, first, last, age in [
        (1, "John", "Doe", 42),
        (2, "Jane", "Doe", 37),
        (3, "Max", "Mustermann", 25),
    ]:
        storage.store(
            Person(
                id=pk,
                first_name=first,
                lastName=last,
                age=age,
                address=Address("Main Street 1", "Springfield"),
                nicknames=[first.lower()],
                company_id=1,
            )
        )
    return storage
