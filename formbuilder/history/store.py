"""Ranked, deduplicated query history for one record type's query surface.

The module-level functions operate on a plain ``list`` of
:class:`HistoryEntry` so that a UI model can own the list; the
:class:`QueryHistoryStore` wraps one such list together with its active
ranking criterion.

Invariants
----------
* No two entries share a ``query_text``.
* After every insert or update the list is sorted ascending by the active
  criterion with a stable sort, so ties keep their relative order.

Not thread-safe: a store is owned by exactly one query surface.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from datetime import datetime
from typing import Any

from formbuilder.history.models import HistoryEntry, RankingCriterion, _utcnow, as_utc

logger = logging.getLogger(__name__)

_RANK_KEYS: dict[RankingCriterion, Callable[[HistoryEntry], Any]] = {
    RankingCriterion.BY_USAGE: lambda entry: entry.usage_count,
    RankingCriterion.BY_RECENCY: lambda entry: entry.last_used_at,
}


def query_alias(record_type: type) -> str:
    """Return the query alias of *record_type*: its lowercased first letter."""
    name = record_type.__name__
    return name[0].lower()


def select_all_query(record_type: type) -> str:
    """Return the query text selecting every instance of *record_type*.

    >>> class Person: ...
    >>> select_all_query(Person)
    'SELECT p FROM Person p'
    """
    alias = query_alias(record_type)
    return f"SELECT {alias} FROM {record_type.__name__} {alias}"


def initial_history_for(record_type: type, now: datetime | None = None) -> list[HistoryEntry]:
    """Return the seed history of a freshly opened query surface.

    The list is mutable and owned by the caller.
    """
    return [
        HistoryEntry(
            query_text=select_all_query(record_type),
            usage_count=1,
            last_used_at=now or _utcnow(),
        )
    ]


def rank(history: list[HistoryEntry], criterion: RankingCriterion) -> None:
    """Sort *history* in place, ascending by *criterion*; ties keep their order."""
    # list.sort is guaranteed stable.
    history.sort(key=_RANK_KEYS[criterion])


def find(history: Iterable[HistoryEntry], query_text: str) -> HistoryEntry | None:
    for entry in history:
        if entry.query_text == query_text:
            return entry
    return None


def contains(history: Iterable[HistoryEntry], query_text: str) -> bool:
    """Membership test by query text only."""
    return find(history, query_text) is not None


def record_execution(
    history: list[HistoryEntry],
    query_text: str,
    criterion: RankingCriterion = RankingCriterion.BY_USAGE,
    now: datetime | None = None,
) -> HistoryEntry:
    """Record one execution of *query_text* in *history* and re-rank it.

    An existing entry gets its usage count incremented and its timestamp
    refreshed; otherwise a new entry with usage count 1 is appended.  A
    naive *now* is taken as UTC.

    Returns
    -------
    HistoryEntry
        The updated or newly created entry.

    Raises
    ------
    ValueError
        If *query_text* is empty.
    """
    if not query_text:
        raise ValueError("query_text mustn't be empty")

    # Everything that can fail happens before the list is touched.
    timestamp = as_utc(now) if now is not None else _utcnow()
    entry = find(history, query_text)
    if entry is not None:
        entry.last_used_at = timestamp
        entry.usage_count += 1
        logger.debug("Query '%s' used %d times", query_text, entry.usage_count)
    else:
        entry = HistoryEntry(query_text=query_text, usage_count=1, last_used_at=timestamp)
        history.append(entry)
        logger.debug("Added query '%s' to history", query_text)

    rank(history, criterion)
    return entry


class QueryHistoryStore:
    """History of one query surface plus its active ranking criterion.

    Parameters
    ----------
    entries:
        Initial entries.  Duplicate texts are collapsed (first one wins) and
        the result is ranked immediately.
    criterion:
        Active ranking criterion.
    """

    def __init__(
        self,
        entries: Iterable[HistoryEntry] = (),
        criterion: RankingCriterion = RankingCriterion.BY_USAGE,
    ) -> None:
        self._criterion = criterion
        self._entries: list[HistoryEntry] = []
        for entry in entries:
            if not contains(self._entries, entry.query_text):
                self._entries.append(entry)
        rank(self._entries, self._criterion)

    @classmethod
    def for_type(
        cls,
        record_type: type,
        criterion: RankingCriterion = RankingCriterion.BY_USAGE,
    ) -> QueryHistoryStore:
        """Return a store seeded with the select-all query of *record_type*."""
        return cls(initial_history_for(record_type), criterion)

    @property
    def criterion(self) -> RankingCriterion:
        return self._criterion

    @property
    def entries(self) -> list[HistoryEntry]:
        """Ranked entries; the returned list is a copy."""
        return list(self._entries)

    def set_criterion(self, criterion: RankingCriterion) -> None:
        """Switch the ranking criterion and re-rank."""
        self._criterion = criterion
        rank(self._entries, criterion)

    def rank(self) -> None:
        rank(self._entries, self._criterion)

    def record_execution(self, query_text: str, now: datetime | None = None) -> HistoryEntry:
        return record_execution(self._entries, query_text, self._criterion, now)

    def contains(self, query_text: str) -> bool:
        return contains(self._entries, query_text)

    def get(self, query_text: str) -> HistoryEntry | None:
        return find(self._entries, query_text)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, HistoryEntry):
            item = item.query_text
        return isinstance(item, str) and self.contains(item)
