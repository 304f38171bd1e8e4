"""
BigQuery warehouse client.

Wraps a single `google.cloud.bigquery.Client` built once in the FastAPI
lifespan and stored on `app.state.warehouse`. Endpoints receive it through
the `WarehouseDep` dependency and pass it to the services explicitly.

The BigQuery client is synchronous; `fetch()` runs each query in a worker
thread so several period queries can be awaited together with
`asyncio.gather`.

Usage:
    warehouse = WarehouseClient.from_settings(get_settings())
    rows = await warehouse.fetch("SELECT pid, SUM(rev) AS revenue FROM ...")
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from google.api_core import exceptions as google_exceptions
from google.cloud import bigquery

from perftracker.core.config import Settings
from perftracker.core.exceptions import DataSourceError
from perftracker.models.enums import SqlDialect

logger = logging.getLogger(__name__)


class WarehouseClient:
    """
    Thin query runner over the BigQuery client.

    Attributes:
        table_ref: Backtick-quoted metrics table reference.
        dialect: Literal quoting dialect used when compiling filters.
        timeout: Seconds to wait for each query result.
    """

    source = "bigquery"

    def __init__(
        self,
        client: Optional[bigquery.Client],
        table_ref: str,
        dialect: SqlDialect = SqlDialect.BIGQUERY,
        timeout: float = 60.0,
    ):
        self._client = client
        self.table_ref = table_ref
        self.dialect = SqlDialect(dialect)
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "WarehouseClient":
        """
        Build a client from application settings.

        Uses the service account file when GOOGLE_APPLICATION_CREDENTIALS is
        set, application default credentials otherwise.
        """
        if settings.google_application_credentials:
            client = bigquery.Client.from_service_account_json(
                settings.google_application_credentials,
                project=settings.bigquery_project,
                location=settings.bigquery_location,
            )
        else:
            client = bigquery.Client(
                project=settings.bigquery_project,
                location=settings.bigquery_location,
            )
        return cls(
            client=client,
            table_ref=settings.metrics_table_ref,
            dialect=settings.sql_dialect,
            timeout=settings.query_timeout_seconds,
        )

    def run_query(self, sql: str) -> List[Dict[str, Any]]:
        """
        Execute a query synchronously and return rows as dicts.

        Raises:
            DataSourceError: On any BigQuery failure or timeout.
        """
        if self._client is None:
            raise DataSourceError(self.source, "BigQuery client is not configured")

        started = time.monotonic()
        try:
            query_job = self._client.query(sql, timeout=self.timeout)
            rows = [dict(row.items()) for row in query_job.result(timeout=self.timeout)]
        except google_exceptions.GoogleAPIError as e:
            logger.error(f"BigQuery query failed: {e}")
            raise DataSourceError(self.source, str(e)) from e
        except TimeoutError as e:
            logger.error(f"BigQuery query timed out after {self.timeout}s")
            raise DataSourceError(self.source, f"Query timed out after {self.timeout}s") from e

        logger.info(f"BigQuery returned {len(rows)} rows in {time.monotonic() - started:.2f}s")
        return rows

    async def fetch(self, sql: str) -> List[Dict[str, Any]]:
        """Run `run_query` in a worker thread."""
        return await asyncio.to_thread(self.run_query, sql)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
