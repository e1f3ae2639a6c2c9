"""Read-only data store backends for the transfer market database."""

import logging

from transfermarket.core.config import settings
from transfermarket.store.base import (
    ColumnSchema,
    DataStore,
    RawResult,
    StoreError,
    StoreQueryError,
    StoreUnavailableError,
    TableSchema,
)

logger = logging.getLogger(__name__)

_store: DataStore | None = None


def get_store() -> DataStore:
    """Get or create the configured store singleton.

    Returns:
        DataStore selected by STORE_BACKEND

    Raises:
        ValueError: If STORE_BACKEND names an unknown backend
    """
    global _store

    if _store is None:
        backend = settings.STORE_BACKEND.lower()
        if backend == "sql":
            from transfermarket.store.sql import SqlAlchemyStore

            store = SqlAlchemyStore()
            if settings.STORE_CREATE_TABLES:
                store.create_tables()
            _store = store
        elif backend == "bigquery":
            from transfermarket.store.bigquery import BigQueryStore

            _store = BigQueryStore()
        else:
            raise ValueError(f"Unknown STORE_BACKEND: {settings.STORE_BACKEND}")

        logger.info(f"Using data store backend: {_store.get_backend_name()}")

    return _store


__all__ = [
    "ColumnSchema",
    "DataStore",
    "RawResult",
    "StoreError",
    "StoreQueryError",
    "StoreUnavailableError",
    "TableSchema",
    "get_store",
]
