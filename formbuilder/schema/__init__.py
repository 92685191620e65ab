"""Structural fingerprints of record types and the startup drift guard."""

from formbuilder.schema.checksum import (
    SchemaFingerprint,
    compute_checksum,
    compute_fingerprint_set,
    fingerprints_for,
    member_hash,
    type_id,
)
from formbuilder.schema.guard import (
    SchemaGuardConf,
    SchemaSnapshot,
    SchemaValidationOutcome,
    diff_fingerprints,
    validate_schema,
)
from formbuilder.schema.members import MemberKind, MemberSignature, declared_members

__all__ = [
    "MemberKind",
    "MemberSignature",
    "SchemaFingerprint",
    "SchemaGuardConf",
    "SchemaSnapshot",
    "SchemaValidationOutcome",
    "compute_checksum",
    "compute_fingerprint_set",
    "declared_members",
    "diff_fingerprints",
    "fingerprints_for",
    "member_hash",
    "type_id",
    "validate_schema",
]
