"""Query execution engine for NLQ.

This module executes validated SQL queries against the data store and
returns rows keyed by column label.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from transfermarket.core.config import settings
from transfermarket.nlq.errors import QueryExecutionFailed
from transfermarket.nlq.sql_safety import ValidatedQuery
from transfermarket.store import DataStore, StoreQueryError

logger = logging.getLogger(__name__)


@dataclass
class ResultSet:
    """Rows of a query result, each keyed by the shared column labels."""

    columns: list[str]
    rows: list[dict[str, Any]] = field(default_factory=list)


class QueryExecutor:
    """Runs validated queries against a data store."""

    def __init__(self, store: DataStore, timeout_seconds: float | None = None):
        self.store = store
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.NLQ_QUERY_TIMEOUT_SECONDS
        )

    def execute(self, query: ValidatedQuery) -> ResultSet:
        """Execute a validated query.

        Args:
            query: Output of validate_sql

        Returns:
            ResultSet with labelled rows

        Raises:
            TypeError: If given anything other than a ValidatedQuery
            QueryExecutionFailed: If the store fails to run the query
        """
        if not isinstance(query, ValidatedQuery):
            raise TypeError("QueryExecutor only runs queries returned by validate_sql()")

        logger.info("Executing analytics query", extra={"sql": query.sql})

        try:
            raw = self.store.run_read_only_query(query.sql, self.timeout_seconds)
        except StoreQueryError as e:
            logger.error(
                "Query execution failed",
                extra={"error": str(e), "timed_out": e.timed_out, "sql": query.sql},
            )
            raise QueryExecutionFailed(
                f"Store rejected query: {e}",
                user_message=_sanitize_store_error(e),
            ) from e

        result_set = label_rows(raw.columns, raw.rows)

        # Enforce maximum results limit
        if len(result_set.rows) > query.limit:
            logger.warning(
                f"Query returned {len(result_set.rows)} rows, limiting to {query.limit}",
            )
            result_set.rows = result_set.rows[: query.limit]

        logger.info(f"Successfully retrieved {len(result_set.rows)} rows")
        return result_set


def label_rows(columns: list[str] | None, raw_rows: list[Any]) -> ResultSet:
    """Key every row by a single shared list of column labels.

    Mapping rows keep their own keys. When the driver gave no column names,
    labels ``col1..colN`` are synthesized with N the width of the widest row;
    shorter rows are padded with None. Bare scalar rows count as one column.
    """
    if raw_rows and all(isinstance(row, Mapping) for row in raw_rows):
        labels: list[str] = []
        for row in raw_rows:
            labels.extend(str(key) for key in row.keys() if str(key) not in labels)
        rows = [{label: row.get(label) for label in labels} for row in raw_rows]
        return ResultSet(columns=labels, rows=rows)

    tuples = [_as_tuple(row) for row in raw_rows]
    width = max((len(values) for values in tuples), default=0)

    if columns:
        labels = _dedupe(list(columns))
        if width > len(labels):
            labels.extend(f"col{i}" for i in range(len(labels) + 1, width + 1))
    else:
        labels = [f"col{i}" for i in range(1, width + 1)]
        if tuples:
            logger.debug(f"Driver returned no column labels; synthesized {width}")

    rows = [
        {label: values[i] if i < len(values) else None for i, label in enumerate(labels)}
        for values in tuples
    ]
    return ResultSet(columns=labels, rows=rows)


def _as_tuple(row: Any) -> tuple:
    if isinstance(row, (str, bytes, bytearray)) or not hasattr(row, "__iter__"):
        return (row,)
    if isinstance(row, Mapping):
        return tuple(row.values())
    return tuple(row)


def _dedupe(labels: list[str]) -> list[str]:
    """Suffix repeated labels (name, name_2) so no column is lost."""
    seen: dict[str, int] = {}
    unique = []
    for label in labels:
        label = str(label) if label else "col"
        count = seen.get(label, 0) + 1
        seen[label] = count
        unique.append(label if count == 1 else f"{label}_{count}")
    return unique


def _sanitize_store_error(error: StoreQueryError) -> str:
    """Convert a store error to a user-friendly message.

    Args:
        error: Store error wrapping the driver failure

    Returns:
        Sanitized error message suitable for end users
    """
    if error.timed_out:
        return "The query took too long to run. Try asking something more specific."

    error_str = str(error).lower()

    if any(marker in error_str for marker in ("no such table", "no such column", "not found", "does not exist")):
        return "The query referred to data that doesn't exist in the transfer market database."

    if "permission" in error_str or "denied" in error_str or "readonly" in error_str or "read-only" in error_str:
        return "The query tried to do something that isn't allowed on this database."

    if "syntax" in error_str or "invalid" in error_str:
        return "The generated query was invalid. Please try rephrasing your question."

    if "bytes" in error_str and "billed" in error_str:
        return "The query would process too much data. Try narrowing your question."

    return "I generated a query but it failed to execute. Please try rephrasing your question."
