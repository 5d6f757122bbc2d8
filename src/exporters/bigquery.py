from typing import Any, Dict, List, Sequence
from datetime import timezone
import logging

import google.auth.exceptions
from google.api_core import exceptions as api_exceptions
from google.cloud import bigquery

from collectors.base import MetricRecord
from errors import AggregateWriteError, TransportError

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


class BigQueryLoader:
    def __init__(self, project_id: str, dataset_id: str, table_id: str):
        self.logger = logging.getLogger("gcs_metrics.exporter.bigquery")
        self.project_id = project_id
        self.dataset_id = dataset_id
        self.table_id = table_id

    @property
    def table(self) -> str:
        return f"{self.project_id}.{self.dataset_id}.{self.table_id}"

    def create_row(self, metric: MetricRecord) -> Dict[str, Any]:
        """
        Maps a record onto the bucket_snapshots columns.
        TIMESTAMP columns take a UTC string with microsecond precision.
        """
        return {
            "observed_at": metric.observed_at.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT),
            "region": metric.region,
            "gcp_project": metric.project_id,
            "bucket_name": metric.bucket_name,
            "storage_class": metric.storage_class,
            "total_bytes": metric.total_bytes,
        }

    @staticmethod
    def _group_errors(insert_errors: List[Dict[str, Any]]) -> Dict[int, List[str]]:
        row_errors = {}
        for entry in insert_errors:
            index = int(entry.get("index", -1))
            messages = [e.get("message") or e.get("reason") or str(e) for e in entry.get("errors", [])]
            row_errors.setdefault(index, []).extend(messages)
        return row_errors

    def load(self, metrics: Sequence[MetricRecord]):
        """
        Writes all metrics with a single streaming insert.

        Raises:
            AggregateWriteError: BigQuery rejected one or more rows. Other rows of
                the batch may or may not have been written.
            TransportError: BigQuery could not be reached.
        """
        if not metrics:
            self.logger.info("No rows to insert")
            return

        rows = [self.create_row(m) for m in metrics]

        try:
            client = bigquery.Client(project=self.project_id)
            try:
                insert_errors = client.insert_rows_json(self.table, rows)
            finally:
                client.close()
        except (api_exceptions.GoogleAPIError, google.auth.exceptions.GoogleAuthError) as e:
            raise TransportError(f"Failed to insert rows into {self.table}: {e}") from e

        if insert_errors:
            error = AggregateWriteError(self._group_errors(insert_errors))
            self.logger.error(f"{len(error.row_errors)} of {len(rows)} rows rejected by {self.table}")
            raise error

        self.logger.info(f"Successfully inserted {len(rows)} rows into {self.dataset_id}.{self.table_id}")


def load_records(metrics: Sequence[MetricRecord], project_id: str, dataset_id: str, table_id: str):
    BigQueryLoader(project_id, dataset_id, table_id).load(metrics)
