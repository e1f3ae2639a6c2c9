"""BigQuery-backed store for the transfer market dataset.

Tables are expected in a single dataset (BIGQUERY_DATASET_ID), which is set
as the default dataset of every query job so unqualified table names resolve.
"""

import concurrent.futures
import logging
import time

import requests
from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import bigquery

from transfermarket.core.config import settings
from transfermarket.store.base import (
    ColumnSchema,
    DataStore,
    RawResult,
    StoreQueryError,
    StoreUnavailableError,
    TableSchema,
)

logger = logging.getLogger(__name__)


# Global BigQuery client (singleton pattern for connection pooling)
_bq_client: bigquery.Client | None = None


def get_bigquery_client() -> bigquery.Client:
    """Get or create BigQuery client singleton.

    Returns:
        BigQuery Client instance
    """
    global _bq_client

    if _bq_client is None:
        project_id = settings.GCP_PROJECT_ID
        if not project_id:
            # Let BigQuery client auto-detect project
            _bq_client = bigquery.Client()
            logger.info("Initialized BigQuery client with auto-detected project")
        else:
            _bq_client = bigquery.Client(project=project_id)
            logger.info(f"Initialized BigQuery client for project: {project_id}")

    return _bq_client


class BigQueryStore(DataStore):
    """Read-only store over a BigQuery dataset."""

    def __init__(self, dataset_id: str | None = None, client: bigquery.Client | None = None):
        self.dataset_id = dataset_id or settings.BIGQUERY_DATASET_ID
        self._client = client

    @property
    def client(self) -> bigquery.Client:
        if self._client is None:
            self._client = get_bigquery_client()
        return self._client

    def describe_schema(self) -> list[TableSchema]:
        try:
            tables = []
            for item in self.client.list_tables(self.dataset_id):
                table = self.client.get_table(item.reference)
                columns = tuple(
                    ColumnSchema(name=field.name, type=field.field_type)
                    for field in table.schema
                )
                tables.append(TableSchema(name=item.table_id, columns=columns))
        except (GoogleAPIError, GoogleAuthError, requests.exceptions.RequestException) as e:
            logger.error(f"Failed to list BigQuery tables in {self.dataset_id}: {e}")
            raise StoreUnavailableError(f"BigQuery dataset unavailable: {e}") from e

        return tables

    def run_read_only_query(self, sql: str, timeout_seconds: float) -> RawResult:
        start_time = time.time()

        try:
            job_config = bigquery.QueryJobConfig(
                use_legacy_sql=False,  # Use Standard SQL
                default_dataset=f"{self.client.project}.{self.dataset_id}",
            )

            # Set maximum bytes billed if configured (cost control)
            if settings.BQ_MAX_BYTES_BILLED:
                job_config.maximum_bytes_billed = settings.BQ_MAX_BYTES_BILLED

            query_job = self.client.query(sql, job_config=job_config)
            result = query_job.result(timeout=timeout_seconds)
            columns = [field.name for field in result.schema] if result.schema else None
            rows = [tuple(row.values()) for row in result]

        except (concurrent.futures.TimeoutError, TimeoutError, requests.exceptions.Timeout) as e:
            logger.error(
                "BigQuery query timed out",
                extra={"execution_time_seconds": round(time.time() - start_time, 2)},
            )
            raise StoreQueryError(f"Query timed out after {timeout_seconds}s", timed_out=True) from e

        except (GoogleAPIError, GoogleAuthError, requests.exceptions.RequestException) as e:
            logger.error(
                "BigQuery query failed",
                extra={
                    "error": str(e),
                    "execution_time_seconds": round(time.time() - start_time, 2),
                },
            )
            raise StoreQueryError(str(e)) from e

        logger.info(
            "BigQuery query completed",
            extra={
                "execution_time_seconds": round(time.time() - start_time, 2),
                "bytes_processed": query_job.total_bytes_processed or 0,
                "bytes_billed": query_job.total_bytes_billed or 0,
                "cache_hit": query_job.cache_hit or False,
                "num_rows": len(rows),
            },
        )
        return RawResult(columns=columns, rows=rows)

    def get_backend_name(self) -> str:
        return "bigquery"
