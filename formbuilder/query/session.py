"""Headless query surface for one record type.

A :class:`QuerySession` is what a query-builder widget binds to: it runs
entity queries against a :class:`PersistenceStorage`, keeps the ranked
history that feeds the suggestion list, and tells listeners about result
sets.  Presentation stays with the widget; the session owns the query
limit, the status message and the history invariants.

Failed queries are reported through :attr:`QuerySession.status_message`
(the widget shows it next to the query field) and leave the history
untouched.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from formbuilder.config import Settings
from formbuilder.errors import StorageError
from formbuilder.history.models import HistoryEntry
from formbuilder.history.store import QueryHistoryStore, initial_history_for, select_all_query
from formbuilder.storage.persistence import PersistenceStorage

logger = logging.getLogger(__name__)

INITIAL_QUERY_LIMIT_DEFAULT = 20

STATUS_SUCCESS = "Query executed successfully."
STATUS_EMPTY_QUERY = "Enter a query"
STATUS_NO_QUERY = "No query entered or selected"


@dataclass(frozen=True)
class QueryExecutedEvent:
    """Result set of one successful query execution."""

    query_text: str
    query_limit: int
    results: list[Any] = field(default_factory=list)


QueryListener = Callable[[QueryExecutedEvent], None]


class QuerySession:
    """Runs queries for *record_type* and maintains their history.

    Parameters
    ----------
    storage:
        Storage the queries run against.
    record_type:
        Mapped record type every query selects.
    history:
        History to continue.  Defaults to the seed history of
        *record_type*.
    initial_selected_entry:
        Entry to preselect; must be part of *history*.  Defaults to the
        first entry.
    initial_query_limit:
        Row limit of the initial select-all query and of later queries run
        without an explicit limit.

    Raises
    ------
    ValueError
        *record_type* is ``None`` or not mapped, the limit is below 1, or
        *initial_selected_entry* isn't part of *history*.
    """

    def __init__(
        self,
        storage: PersistenceStorage,
        record_type: type,
        history: QueryHistoryStore | None = None,
        initial_selected_entry: HistoryEntry | None = None,
        initial_query_limit: int = INITIAL_QUERY_LIMIT_DEFAULT,
    ) -> None:
        if record_type is None:
            raise ValueError("record_type mustn't be None")
        if not storage.is_class_supported(record_type):
            raise ValueError(f"record type {record_type.__name__} is not a mapped record type")
        if initial_query_limit < 1:
            raise ValueError(f"initial_query_limit must be at least 1, got {initial_query_limit}")

        self._storage = storage
        self._record_type = record_type
        self._history = history if history is not None else QueryHistoryStore.for_type(record_type)
        self._listeners: list[QueryListener] = []

        if initial_selected_entry is not None:
            if initial_selected_entry not in self._history:
                raise ValueError("initial_selected_entry has to be contained in history")
            self._selected_entry: HistoryEntry | None = self._history.get(initial_selected_entry.query_text)
        else:
            entries = self._history.entries
            self._selected_entry = entries[0] if entries else None

        self._status_message = ""
        self._last_query_text: str | None = None
        self._last_query_limit = initial_query_limit
        self._last_results: list[Any] = []

        # Populating the result view isn't a user action, so it isn't recorded.
        self._run(select_all_query(record_type), initial_query_limit, record=False)

    @classmethod
    def from_settings(
        cls,
        storage: PersistenceStorage,
        record_type: type,
        settings: Settings,
        entries: list[HistoryEntry] | None = None,
    ) -> QuerySession:
        """Build a session ranked and limited as *settings* say.

        *entries* is a previously stored history, e.g. from
        :class:`~formbuilder.history.storage.QueryHistoryEntryStorage`.
        """
        history = QueryHistoryStore(
            entries if entries else initial_history_for(record_type),
            settings.history_ranking,
        )
        return cls(storage, record_type, history=history, initial_query_limit=settings.initial_query_limit)

    # -- properties ----------------------------------------------------------

    @property
    def record_type(self) -> type:
        return self._record_type

    @property
    def history(self) -> QueryHistoryStore:
        return self._history

    @property
    def selected_entry(self) -> HistoryEntry | None:
        return self._selected_entry

    @property
    def status_message(self) -> str:
        return self._status_message

    @property
    def last_results(self) -> list[Any]:
        return list(self._last_results)

    @property
    def label(self) -> str:
        return f"{self._record_type.__name__} query:"

    # -- listeners -----------------------------------------------------------

    def add_listener(self, listener: QueryListener) -> None:
        """Register *listener*; registering it twice has no effect."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: QueryListener) -> None:
        """Unregister *listener*; unknown listeners are ignored."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    # -- execution -----------------------------------------------------------

    def select(self, query_text: str) -> HistoryEntry:
        """Preselect the history entry with *query_text*.

        Raises
        ------
        KeyError
            If no entry has that text.
        """
        entry = self._history.get(query_text)
        if entry is None:
            raise KeyError(query_text)
        self._selected_entry = entry
        return entry

    def execute(self, query_text: str | None = None, query_limit: int | None = None) -> list[Any] | None:
        """Run *query_text* (or the selected entry) and record it in history.

        Returns
        -------
        list | None
            The result set, or ``None`` when nothing ran or the query failed;
            :attr:`status_message` then says why.
        """
        if query_text is None:
            if self._selected_entry is None:
                self._status_message = STATUS_NO_QUERY
                return None
            query_text = self._selected_entry.query_text
        if not query_text.strip():
            self._status_message = STATUS_EMPTY_QUERY
            return None

        limit = query_limit if query_limit is not None else self._last_query_limit
        if limit < 1:
            raise ValueError(f"query_limit must be at least 1, got {limit}")
        return self._run(query_text, limit, record=True)

    def repeat_last_query(self) -> list[Any] | None:
        """Run the last executed query again with the same limit."""
        if self._last_query_text is None:
            self._status_message = STATUS_NO_QUERY
            return None
        return self._run(self._last_query_text, self._last_query_limit, record=True)

    def _run(self, query_text: str, query_limit: int, record: bool) -> list[Any] | None:
        logger.debug("Executing query '%s' with limit %d", query_text, query_limit)
        self._last_query_text = query_text
        self._last_query_limit = query_limit

        try:
            results = self._storage.run_query(query_text, self._record_type, query_limit)
        except StorageError as exc:
            logger.info("An exception occurred while executing query '%s'", query_text, exc_info=True)
            self._status_message = str(exc)
            return None

        self._last_results = results
        event = QueryExecutedEvent(query_text=query_text, query_limit=query_limit, results=list(results))
        for listener in list(self._listeners):
            listener(event)

        self._status_message = STATUS_SUCCESS
        if record:
            self._selected_entry = self._history.record_execution(query_text)
        return results
