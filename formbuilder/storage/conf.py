"""Connection and scheme-validation parameters of a persistence storage.

The database name is interpreted per backend: for SQLite it is the path of
the database file (``:memory:`` for an ephemeral database), for server
backends it is the database on the server.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, SecretStr
from sqlalchemy.engine import URL

from formbuilder.config import Settings, StorageBackend
from formbuilder.errors import ConfigError
from formbuilder.schema.guard import SchemaGuardConf, SchemaValidationOutcome, validate_schema

logger = logging.getLogger(__name__)

_DRIVERS: dict[StorageBackend, str] = {
    StorageBackend.SQLITE: "sqlite",
    StorageBackend.POSTGRESQL: "postgresql",
    StorageBackend.MYSQL: "mysql",
}

_DEFAULT_PORTS: dict[StorageBackend, int] = {
    StorageBackend.POSTGRESQL: 5432,
    StorageBackend.MYSQL: 3306,
}


class PersistenceStorageConf(BaseModel):
    """Configuration of one :class:`~formbuilder.storage.persistence.PersistenceStorage`."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    backend: StorageBackend = StorageBackend.SQLITE
    database_name: str | None = Field(
        default=None,
        description="Database file (SQLite) or database name (server backends).",
    )
    host: str = "localhost"
    port: int | None = None
    username: str | None = None
    password: SecretStr | None = None
    record_types: list[type] = Field(
        default_factory=list,
        description="Mapped record types managed by the storage.",
    )
    scheme_checksum_file: Path | None = Field(
        default=None,
        description="Snapshot of the record types' structural checksums.",
    )

    @classmethod
    def from_settings(cls, settings: Settings, record_types: list[type]) -> PersistenceStorageConf:
        return cls(
            backend=settings.storage_backend,
            database_name=settings.database_name,
            host=settings.database_host,
            port=settings.database_port,
            username=settings.database_username,
            password=settings.database_password,
            record_types=record_types,
            scheme_checksum_file=settings.scheme_checksum_file,
        )

    def connection_url(self) -> URL:
        """Build the SQLAlchemy URL for this configuration.

        Raises
        ------
        ConfigError
            If no database name is configured.
        """
        if self.database_name is None:
            raise ConfigError("Database name isn't specified")

        driver = _DRIVERS[self.backend]
        if self.backend == StorageBackend.SQLITE:
            return URL.create(driver, database=self.database_name)

        return URL.create(
            driver,
            username=self.username,
            password=self.password.get_secret_value() if self.password is not None else None,
            host=self.host,
            port=self.port or _DEFAULT_PORTS[self.backend],
            database=self.database_name,
        )

    def schema_guard_conf(self) -> SchemaGuardConf:
        return SchemaGuardConf(
            database_name=self.database_name,
            tracked_types=self.record_types,
            snapshot_location=self.scheme_checksum_file,
        )

    def validate_conf(self) -> SchemaValidationOutcome:
        """Run the scheme checksum guard over the configured record types.

        See :func:`formbuilder.schema.guard.validate_schema` for the errors
        raised.
        """
        outcome = validate_schema(self.schema_guard_conf())
        logger.info("Scheme validation for %s: %s", self.database_name, outcome.value)
        return outcome
