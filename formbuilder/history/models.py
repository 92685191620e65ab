"""History entry models backing query suggestion surfaces."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC timestamp; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class RankingCriterion(str, Enum):
    """Sort key applied to a history collection (always ascending)."""

    BY_USAGE = "BY_USAGE"
    BY_RECENCY = "BY_RECENCY"


class HistoryEntry(BaseModel):
    """One previously executed query plus its usage metadata.

    Entries are identified by ``query_text`` alone: two entries with the
    same text are equal (and hash equally) whatever their counters say.
    """

    model_config = ConfigDict(validate_assignment=True)

    query_text: str = Field(..., min_length=1, description="The literal query text.")
    usage_count: int = Field(default=1, ge=1, description="How often the query was run.")
    last_used_at: datetime = Field(default_factory=_utcnow, description="When the query was last run.")

    @field_validator("last_used_at")
    @classmethod
    def _normalise_timezone(cls, value: datetime) -> datetime:
        return as_utc(value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HistoryEntry):
            return NotImplemented
        return self.query_text == other.query_text

    def __hash__(self) -> int:
        return hash(self.query_text)

    def __str__(self) -> str:
        return self.query_text
