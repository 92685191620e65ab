"""Exception hierarchy shared by the schema guard, history and storage layers.

Every error raised deliberately by ``formbuilder`` derives from
:class:`FormBuilderError` so callers can catch the whole family at an
application boundary.  None of these errors is retried internally.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path


class FormBuilderError(Exception):
    """Base class for all formbuilder errors."""


class ConfigError(FormBuilderError):
    """Required configuration is missing or invalid."""


class SchemaDriftError(FormBuilderError):
    """The persisted schema snapshot disagrees with the current record types.

    Startup validation is expected to abort when this is raised.  The
    operator has to migrate the store and remove the snapshot deliberately.
    """

    def __init__(self, snapshot_location: Path, drifted_types: Iterable[str] = ()) -> None:
        self.snapshot_location = Path(snapshot_location)
        self.drifted_types: tuple[str, ...] = tuple(sorted(drifted_types))
        location = self.snapshot_location.absolute()
        detail = f" Drifted types: {', '.join(self.drifted_types)}." if self.drifted_types else ""
        super().__init__(
            f"The structural checksums of the record types don't match the "
            f"snapshot persisted in '{location}'. This indicates a change to "
            f"the record types and the database scheme needs to be adjusted "
            f"externally.{detail} If you're sure the store matches the new "
            f"types, remove the snapshot file '{location}' and restart."
        )


class StorageError(FormBuilderError):
    """An I/O, deserialisation or ORM failure.

    The underlying exception is chained via ``raise ... from`` and also kept
    on :attr:`cause` for callers that format it themselves.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class InvalidQueryError(StorageError):
    """Query text that can't be translated into a read-only SELECT."""


class FieldHandlingError(FormBuilderError):
    """A record field couldn't be dispatched to a handler."""
