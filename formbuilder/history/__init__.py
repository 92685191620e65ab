"""Ranked query history for query suggestion surfaces."""

from formbuilder.history.models import HistoryEntry, RankingCriterion
from formbuilder.history.store import (
    QueryHistoryStore,
    contains,
    find,
    initial_history_for,
    query_alias,
    rank,
    record_execution,
    select_all_query,
)

__all__ = [
    "HistoryEntry",
    "QueryHistoryStore",
    "RankingCriterion",
    "contains",
    "find",
    "initial_history_for",
    "query_alias",
    "rank",
    "record_execution",
    "select_all_query",
]
