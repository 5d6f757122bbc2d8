from typing import Any, Dict, List, Optional
from datetime import datetime, timedelta, timezone

import google.auth.exceptions
from google.api_core import exceptions as api_exceptions
from google.cloud import monitoring_v3

from errors import TransportError, ValidationError
from .base import BaseCollector, MetricRecord

METRIC_TYPE = "storage.googleapis.com/storage/v2/total_bytes"
LOOKBACK = timedelta(days=1)
UNKNOWN = "unknown"


class StorageBytesCollector(BaseCollector):
    """
    Reads the daily GCS total_bytes metric from Cloud Monitoring.

    The metric is sampled once a day per bucket and storage class, so a one
    day lookback normally yields a single point per series.
    """

    def __init__(self):
        super().__init__("storage_total_bytes")

    def _build_request(self, project_id: str) -> Dict[str, Any]:
        now = datetime.now(timezone.utc)
        start = now - LOOKBACK

        # Cloud Monitoring only needs second precision here
        interval = monitoring_v3.TimeInterval({
            "end_time": {"seconds": int(now.timestamp())},
            "start_time": {"seconds": int(start.timestamp())},
        })

        return {
            "name": f"projects/{project_id}",
            "filter": f'metric.type = "{METRIC_TYPE}"',
            "interval": interval,
            "view": monitoring_v3.ListTimeSeriesRequest.TimeSeriesView.FULL,
        }

    def _process_time_series(self, series) -> Optional[MetricRecord]:
        resource_labels = series.resource.labels
        metric_labels = series.metric.labels

        project_id = resource_labels.get("project_id", UNKNOWN)
        bucket_name = resource_labels.get("bucket_name", UNKNOWN)
        region = resource_labels.get("location", UNKNOWN)
        storage_class = metric_labels.get("storage_class", UNKNOWN)

        if not series.points:
            self.logger.debug(f"No points for bucket {bucket_name} ({storage_class}), skipping")
            return None

        # Cloud Monitoring returns points newest first; the order is trusted, not re-sorted
        point = series.points[0]

        return MetricRecord(
            observed_at=point.interval.end_time,
            region=region,
            project_id=project_id,
            bucket_name=bucket_name,
            storage_class=storage_class,
            total_bytes=point.value.double_value,
        )

    def collect(self, project_id: str) -> List[MetricRecord]:
        if not isinstance(project_id, str) or not project_id.strip():
            raise ValidationError("project_id cannot be null or empty")

        request = self._build_request(project_id)
        self.logger.info(f"Querying {METRIC_TYPE} for project {project_id}")

        metrics = []
        try:
            with monitoring_v3.MetricServiceClient() as client:
                # The pager fetches further pages as it is iterated
                for series in client.list_time_series(request=request):
                    metric = self._process_time_series(series)
                    if metric is not None:
                        metrics.append(metric)
        except (api_exceptions.GoogleAPIError, google.auth.exceptions.GoogleAuthError) as e:
            raise TransportError(f"Failed to list time series for project {project_id}: {e}") from e

        self.logger.info(f"Collected {len(metrics)} metrics for project {project_id}")
        return metrics


def collect_metrics(project_id: str) -> List[MetricRecord]:
    return StorageBytesCollector().collect(project_id)
