from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List
import logging
import math

from errors import ValidationError


@dataclass(frozen=True)
class MetricRecord:
    """
    One snapshot of the storage.googleapis.com/storage/v2/total_bytes metric
    for a single bucket and storage class.
    """
    observed_at: datetime
    region: str
    project_id: str
    bucket_name: str
    storage_class: str
    total_bytes: float

    def __post_init__(self):
        if self.observed_at is None:
            raise ValidationError("observed_at cannot be null")
        if not isinstance(self.observed_at, datetime):
            raise ValidationError(f"observed_at must be a datetime, got {type(self.observed_at).__name__}")

        # Naive timestamps are taken to be UTC already
        if self.observed_at.tzinfo is None:
            object.__setattr__(self, 'observed_at', self.observed_at.replace(tzinfo=timezone.utc))
        else:
            object.__setattr__(self, 'observed_at', self.observed_at.astimezone(timezone.utc))

        for field_name in ('region', 'project_id', 'bucket_name', 'storage_class'):
            value = getattr(self, field_name)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"{field_name} cannot be null or empty")

        try:
            total_bytes = float(self.total_bytes)
        except (TypeError, ValueError):
            raise ValidationError(f"total_bytes must be numeric, got {self.total_bytes!r}")
        if math.isnan(total_bytes):
            raise ValidationError("total_bytes cannot be NaN")
        if total_bytes < 0:
            raise ValidationError("total_bytes cannot be negative")
        object.__setattr__(self, 'total_bytes', total_bytes)

    def __str__(self):
        return (
            f"GcsMetric[project={self.project_id} bucket={self.bucket_name}, region={self.region}, "
            f"class={self.storage_class}, bytes={self.total_bytes:.2f}, time={self.observed_at.isoformat()}]"
        )


class BaseCollector(ABC):
    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(f"gcs_metrics.collector.{name}")

    @abstractmethod
    def collect(self, project_id: str) -> List[MetricRecord]:
        """
        Collect metrics for a project and return a list of MetricRecord objects.
        """
        pass
