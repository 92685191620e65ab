"""Startup guard against record types drifting away from the persisted scheme.

On the first run the structural checksums of all tracked record types are
written to a snapshot file.  Every later run recomputes them and refuses to
continue when they differ from the snapshot, because the database scheme
then no longer matches the record types and has to be migrated externally.

The snapshot is written exactly once and never rewritten: resolving a drift
is always a deliberate operator action (migrate, then remove the file).  A
zero-length snapshot file disables the comparison entirely.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from formbuilder.errors import ConfigError, SchemaDriftError, StorageError
from formbuilder.schema.checksum import compute_fingerprint_set

logger = logging.getLogger(__name__)

SNAPSHOT_FORMAT_VERSION = 1


class SchemaValidationOutcome(str, Enum):
    """How a successful validation pass ended."""

    CREATED = "CREATED"  # no snapshot existed, one was written
    MATCHED = "MATCHED"  # snapshot equals the current checksums
    SKIPPED = "SKIPPED"  # zero-length snapshot, comparison disabled


class SchemaSnapshot(BaseModel):
    """Persisted checksums of all tracked record types.

    ``created_at`` is informational only and never compared.
    """

    format_version: int = Field(default=SNAPSHOT_FORMAT_VERSION)
    checksums: dict[str, int] = Field(
        default_factory=dict,
        description="Structural checksum keyed by record type id.",
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class SchemaGuardConf:
    """Everything one validation pass needs; no process-wide state."""

    database_name: str | None
    tracked_types: Collection[type] | None
    snapshot_location: Path | str | None


def diff_fingerprints(old: Mapping[str, int], new: Mapping[str, int]) -> tuple[str, ...]:
    """Return the sorted type ids that were added, removed or changed."""
    drifted = set(old.keys() ^ new.keys())
    drifted.update(tid for tid in old.keys() & new.keys() if old[tid] != new[tid])
    return tuple(sorted(drifted))


def _check_conf(conf: SchemaGuardConf) -> tuple[Collection[type], Path]:
    if conf.database_name is None:
        raise ConfigError("Database name isn't specified")
    if conf.snapshot_location is None:
        raise ConfigError("Scheme checksum file isn't specified")
    if conf.tracked_types is None:
        raise ConfigError("Tracked record types aren't specified")
    for record_type in conf.tracked_types:
        if not isinstance(record_type, type):
            raise ConfigError(f"Tracked record types must be classes, got {record_type!r}")
    return conf.tracked_types, Path(conf.snapshot_location)


def _write_snapshot(location: Path, checksums: dict[str, int]) -> None:
    snapshot = SchemaSnapshot(checksums=checksums)
    try:
        location.parent.mkdir(parents=True, exist_ok=True)
        # Exclusive create: an existing snapshot is never overwritten.
        with location.open("x", encoding="utf-8") as fh:
            fh.write(snapshot.model_dump_json(indent=2))
    except OSError as exc:
        raise StorageError(f"Failed to write scheme checksum file '{location}': {exc}", cause=exc) from exc


def _read_snapshot(raw: bytes, location: Path) -> SchemaSnapshot:
    try:
        snapshot = SchemaSnapshot.model_validate_json(raw)
    except ValidationError as exc:
        raise StorageError(f"Scheme checksum file '{location}' is unreadable: {exc}", cause=exc) from exc
    if snapshot.format_version != SNAPSHOT_FORMAT_VERSION:
        raise StorageError(
            f"Scheme checksum file '{location}' has unsupported format version {snapshot.format_version}"
        )
    return snapshot


def validate_schema(conf: SchemaGuardConf) -> SchemaValidationOutcome:
    """Create or compare the scheme checksum snapshot for *conf*.

    Returns
    -------
    SchemaValidationOutcome
        ``CREATED`` on first run, ``MATCHED`` when nothing drifted and
        ``SKIPPED`` for a zero-length snapshot.

    Raises
    ------
    ConfigError
        Database name, snapshot location or tracked types missing or invalid.
    SchemaDriftError
        The persisted checksums differ from the current ones.
    StorageError
        The snapshot can't be read, decoded or written.
    """
    tracked_types, location = _check_conf(conf)

    if not location.exists():
        checksums = compute_fingerprint_set(tracked_types)
        _write_snapshot(location, checksums)
        logger.info(
            "Created scheme checksum snapshot %s for %d record types",
            location,
            len(checksums),
        )
        return SchemaValidationOutcome.CREATED

    try:
        raw = location.read_bytes()
    except OSError as exc:
        raise StorageError(f"Failed to read scheme checksum file '{location}': {exc}", cause=exc) from exc

    if not raw:
        logger.info("Scheme checksum file %s is empty, skipping scheme validation", location)
        return SchemaValidationOutcome.SKIPPED

    persisted = _read_snapshot(raw, location).checksums
    current = compute_fingerprint_set(tracked_types)
    if persisted != current:
        drifted = diff_fingerprints(persisted, current)
        logger.error("Scheme drift detected against %s: %s", location, ", ".join(drifted))
        raise SchemaDriftError(location, drifted)

    logger.debug("Scheme checksums match snapshot %s", location)
    return SchemaValidationOutcome.MATCHED
