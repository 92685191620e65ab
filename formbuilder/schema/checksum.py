"""Structural checksums of record types.

A record type's checksum is the sum of one hash per directly declared
member (see :mod:`formbuilder.schema.members`).  Each member hash is the
leading 8 bytes of a SHA-256 digest over the member's canonical text, so the
value is identical across interpreter processes regardless of
``PYTHONHASHSEED``.  Summation makes the checksum independent of the order
in which members are discovered.

Sums wrap around as signed 64-bit integers so that checksums always fit a
``BIGINT`` column and compare equal with snapshots written by any process.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

from formbuilder.schema.members import MemberSignature, declared_members

logger = logging.getLogger(__name__)

_INT64_MASK = (1 << 64) - 1
_INT64_SIGN = 1 << 63


class SchemaFingerprint(BaseModel):
    """Structural checksum of one tracked record type."""

    model_config = ConfigDict(frozen=True)

    type_id: str = Field(
        ...,
        min_length=1,
        description="Process-independent identifier, e.g. 'app.models.Person'.",
    )
    checksum: int = Field(
        ...,
        ge=-_INT64_SIGN,
        lt=_INT64_SIGN,
        description="Signed 64-bit sum of the member hashes.",
    )


def _wrap_int64(value: int) -> int:
    value &= _INT64_MASK
    return value - (1 << 64) if value & _INT64_SIGN else value


def type_id(record_type: type) -> str:
    """Return the stable identifier ``module.qualname`` of *record_type*."""
    return f"{record_type.__module__}.{record_type.__qualname__}"


def member_hash(member: MemberSignature) -> int:
    """Return the signed 64-bit structural hash of a single member."""
    digest = hashlib.sha256(member.canonical().encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


def checksum_of_members(members: Iterable[MemberSignature]) -> int:
    total = 0
    for member in members:
        total += member_hash(member)
    return _wrap_int64(total)


def compute_checksum(record_type: type) -> int:
    """Return the structural checksum of the members declared on *record_type*.

    Inherited members and constructors don't contribute.
    """
    return checksum_of_members(declared_members(record_type))


def compute_fingerprint_set(record_types: Iterable[type]) -> dict[str, int]:
    """Map the type id of every type in *record_types* to its checksum."""
    checksums: dict[str, int] = {}
    for record_type in record_types:
        checksums[type_id(record_type)] = compute_checksum(record_type)
    logger.debug("Computed scheme checksums for %d record types", len(checksums))
    return checksums


def fingerprints_for(record_types: Iterable[type]) -> list[SchemaFingerprint]:
    """Return :class:`SchemaFingerprint` records sorted by type id."""
    checksums = compute_fingerprint_set(record_types)
    return [SchemaFingerprint(type_id=tid, checksum=checksums[tid]) for tid in sorted(checksums)]
