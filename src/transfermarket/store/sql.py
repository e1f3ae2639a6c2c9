"""SQLAlchemy-backed relational store.

Queries always run inside a transaction that is rolled back, with the
connection switched to read-only mode and a per-query deadline, so the store
itself refuses writes even if one slipped past SQL validation. Dialects
without both are refused when the store is created.
"""

import logging
import time
from pathlib import Path

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from transfermarket.core.config import settings
from transfermarket.store.base import (
    ColumnSchema,
    DataStore,
    RawResult,
    StoreQueryError,
    StoreUnavailableError,
    TableSchema,
)
from transfermarket.store.models import Base

logger = logging.getLogger(__name__)

# SQLite calls the progress handler every N virtual machine instructions
_SQLITE_PROGRESS_STEPS = 1000

_TIMEOUT_MARKERS = ("interrupted", "statement timeout", "canceling statement")

# Dialects for which queries get both read-only mode and a deadline
SUPPORTED_DIALECTS = ("sqlite", "postgresql", "mysql")


class SqlAlchemyStore(DataStore):
    """Read-only store over a SQLite, PostgreSQL or MySQL database.

    Raises:
        StoreUnavailableError: If the database dialect cannot be bounded by a
            query deadline
    """

    def __init__(self, database_url: str | None = None, engine: Engine | None = None):
        self.database_url = database_url or settings.DATABASE_URL
        if engine is not None:
            dialect = engine.dialect.name
        else:
            dialect = make_url(self.database_url).get_backend_name()
        if dialect not in SUPPORTED_DIALECTS:
            raise StoreUnavailableError(
                f"Unsupported database dialect: {dialect} (supported: {', '.join(SUPPORTED_DIALECTS)})"
            )

        if engine is None:
            _ensure_sqlite_directory(self.database_url)
        self.engine = engine or create_engine(self.database_url, pool_pre_ping=True)
        logger.info(f"Initialized SQL store: dialect={self.engine.dialect.name}")

    def create_tables(self) -> None:
        """Create the club/player/transfer tables if missing."""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            logger.error(f"Failed to create tables: {e}")
            raise StoreUnavailableError(f"Database unavailable: {e}") from e

    def describe_schema(self) -> list[TableSchema]:
        try:
            inspector = inspect(self.engine)
            tables = []
            for table_name in inspector.get_table_names():
                columns = tuple(
                    ColumnSchema(name=col["name"], type=str(col["type"]))
                    for col in inspector.get_columns(table_name)
                )
                tables.append(TableSchema(name=table_name, columns=columns))
        except SQLAlchemyError as e:
            logger.error(f"Failed to inspect database schema: {e}")
            raise StoreUnavailableError(f"Database schema unavailable: {e}") from e

        return tables

    def run_read_only_query(self, sql: str, timeout_seconds: float) -> RawResult:
        start_time = time.time()

        try:
            with self.engine.connect() as conn:
                self._begin_read_only(conn, timeout_seconds)
                try:
                    result = conn.execution_options(no_parameters=True).exec_driver_sql(sql)
                    if result.returns_rows:
                        columns = list(result.keys())
                        rows = [tuple(row) for row in result]
                    else:
                        columns, rows = None, []
                finally:
                    conn.rollback()
                    self._end_read_only(conn)

        except SQLAlchemyError as e:
            execution_time = time.time() - start_time
            message = str(getattr(e, "orig", None) or e)
            timed_out = any(marker in message.lower() for marker in _TIMEOUT_MARKERS)

            logger.error(
                "SQL store query failed",
                extra={
                    "error": message,
                    "timed_out": timed_out,
                    "execution_time_seconds": round(execution_time, 2),
                },
            )
            raise StoreQueryError(message, timed_out=timed_out) from e

        logger.info(
            "SQL store query completed",
            extra={
                "execution_time_seconds": round(time.time() - start_time, 2),
                "num_rows": len(rows),
            },
        )
        return RawResult(columns=columns, rows=rows)

    def get_backend_name(self) -> str:
        return "sql"

    def _begin_read_only(self, conn: Connection, timeout_seconds: float) -> None:
        dialect = conn.dialect.name

        if dialect == "sqlite":
            conn.exec_driver_sql("PRAGMA query_only = ON")
            deadline = time.monotonic() + timeout_seconds
            dbapi_conn = conn.connection.dbapi_connection
            # A non-zero return aborts the running statement with "interrupted"
            dbapi_conn.set_progress_handler(
                lambda: 1 if time.monotonic() > deadline else 0,
                _SQLITE_PROGRESS_STEPS,
            )
        elif dialect == "postgresql":
            conn.exec_driver_sql("SET TRANSACTION READ ONLY")
            conn.exec_driver_sql(f"SET LOCAL statement_timeout = {int(timeout_seconds * 1000)}")
        elif dialect == "mysql":
            conn.exec_driver_sql(f"SET SESSION MAX_EXECUTION_TIME = {int(timeout_seconds * 1000)}")
            # Applies to the transaction started by the next statement
            conn.exec_driver_sql("SET TRANSACTION READ ONLY")

    def _end_read_only(self, conn: Connection) -> None:
        if conn.dialect.name == "sqlite":
            conn.connection.dbapi_connection.set_progress_handler(None, 0)
            conn.exec_driver_sql("PRAGMA query_only = OFF")
            conn.commit()
        elif conn.dialect.name == "mysql":
            conn.exec_driver_sql("SET SESSION MAX_EXECUTION_TIME = 0")
            conn.commit()


def _ensure_sqlite_directory(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
