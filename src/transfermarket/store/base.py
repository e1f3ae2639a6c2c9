"""Abstract read-only data store interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class StoreError(Exception):
    """Base exception for data store failures."""

    pass


class StoreUnavailableError(StoreError):
    """Raised when the data store cannot be reached or inspected."""

    pass


class StoreQueryError(StoreError):
    """Raised when the store rejects or fails a query."""

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out


@dataclass(frozen=True)
class ColumnSchema:
    """Name and declared type of a single column."""

    name: str
    type: str


@dataclass(frozen=True)
class TableSchema:
    """A queryable table and its columns, in declared order."""

    name: str
    columns: tuple[ColumnSchema, ...]


@dataclass
class RawResult:
    """Rows exactly as the driver returned them.

    ``columns`` is None or empty when the driver supplied no column metadata.
    Rows may be tuples, mappings or bare scalars.
    """

    columns: list[str] | None
    rows: list[Any] = field(default_factory=list)


class DataStore(ABC):
    """Abstract base class for the relational store the NLQ pipeline reads."""

    @abstractmethod
    def describe_schema(self) -> list[TableSchema]:
        """Enumerate tables and columns.

        Returns:
            Table schemas, in any order

        Raises:
            StoreUnavailableError: If the store cannot be reached
        """
        pass

    @abstractmethod
    def run_read_only_query(self, sql: str, timeout_seconds: float) -> RawResult:
        """Run a single read-only statement.

        Args:
            sql: Statement to execute
            timeout_seconds: Upper bound on execution time

        Returns:
            Raw driver result

        Raises:
            StoreQueryError: If execution fails or times out
        """
        pass

    @abstractmethod
    def get_backend_name(self) -> str:
        """Return backend identifier."""
        pass

