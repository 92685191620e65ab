"""Formbuilder configuration loaded from environment variables."""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from formbuilder.history.models import RankingCriterion

logger = logging.getLogger(__name__)


class FormBuilderEnv(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PROD = "prod"


class StorageBackend(str, Enum):
    SQLITE = "sqlite"
    POSTGRESQL = "postgresql"
    MYSQL = "mysql"


class Settings(BaseSettings):
    """Application settings loaded from environment variables with FORMBUILDER_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="FORMBUILDER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    env: FormBuilderEnv = FormBuilderEnv.DEV
    debug: bool = False

    # Storage
    storage_backend: StorageBackend = StorageBackend.SQLITE
    database_name: str | None = None
    database_host: str = "localhost"
    database_port: int | None = None
    database_username: str | None = None
    database_password: SecretStr | None = None

    # Schema guard
    scheme_checksum_file: Path = Path(".formbuilder/scheme_checksums.json")

    # Query surfaces
    history_file: Path = Path(".formbuilder/query_history.json")
    initial_query_limit: int = Field(default=20, ge=1)
    history_ranking: RankingCriterion = RankingCriterion.BY_USAGE

    # Telemetry
    structured_logging: bool = False

    @field_validator("database_password", mode="before")
    @classmethod
    def mask_password_in_repr(cls, v: str | None) -> SecretStr | None:
        if v is None:
            return None
        if isinstance(v, SecretStr):
            return v
        return SecretStr(v)


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment, with optional overrides for testing."""
    settings = Settings(**overrides)  # type: ignore[arg-type]

    if settings.debug:
        logger.info("Loaded settings for environment: %s", settings.env.value)

    return settings
