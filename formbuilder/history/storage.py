"""File-backed persistence of query histories, one list per record type.

All histories live in a single JSON document keyed by record type id so
that a history survives restarts and follows its type across processes.
Writes go to a temporary sibling first and are moved into place, so a
crash never leaves a truncated file behind.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from formbuilder.config import Settings
from formbuilder.errors import StorageError
from formbuilder.history.models import HistoryEntry
from formbuilder.history.store import initial_history_for
from formbuilder.schema.checksum import type_id

logger = logging.getLogger(__name__)


class HistoryDocument(BaseModel):
    """On-disk layout of the history file."""

    format_version: int = 1
    histories: dict[str, list[HistoryEntry]] = Field(default_factory=dict)


class QueryHistoryEntryStorage:
    """Loads and saves query histories from a JSON file.

    Parameters
    ----------
    path:
        Location of the history file.  Missing parent directories are
        created on the first write.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @classmethod
    def from_settings(cls, settings: Settings) -> QueryHistoryEntryStorage:
        return cls(settings.history_file)

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> HistoryDocument:
        if not self._path.exists():
            return HistoryDocument()
        try:
            raw = self._path.read_bytes()
        except OSError as exc:
            raise StorageError(f"Failed to read history file '{self._path}': {exc}", cause=exc) from exc
        if not raw:
            return HistoryDocument()
        try:
            return HistoryDocument.model_validate_json(raw)
        except ValidationError as exc:
            raise StorageError(f"History file '{self._path}' is unreadable: {exc}", cause=exc) from exc

    def retrieve(self, record_type: type) -> list[HistoryEntry]:
        """Return the stored history of *record_type*, or its seed history."""
        entries = self._load().histories.get(type_id(record_type))
        if not entries:
            return initial_history_for(record_type)
        return entries

    def store(self, record_type: type, entries: list[HistoryEntry]) -> None:
        """Replace the stored history of *record_type* with *entries*."""
        document = self._load()
        document.histories[type_id(record_type)] = list(entries)

        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(document.model_dump_json(indent=2), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise StorageError(f"Failed to write history file '{self._path}': {exc}", cause=exc) from exc

        logger.debug("Stored %d history entries for %s", len(entries), type_id(record_type))
