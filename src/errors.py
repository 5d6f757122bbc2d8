"""
Error types raised by the collection and load steps.
"""
from typing import Dict, List


class MetricsPipelineError(Exception):
    """Base class for all pipeline failures."""


class ConfigError(MetricsPipelineError):
    pass


class ValidationError(MetricsPipelineError, ValueError):
    """A record could not be built from the data it was given."""


class TransportError(MetricsPipelineError, IOError):
    """Cloud Monitoring or BigQuery could not be reached."""


class AggregateWriteError(MetricsPipelineError):
    """
    One or more rows were rejected by a bulk insert.
    All failing rows are reported together in a single message.
    """

    def __init__(self, row_errors: Dict[int, List[str]]):
        self.row_errors = row_errors
        lines = ["BigQuery insert errors:"]
        for index in sorted(row_errors):
            lines.append(f"Row {index}: " + "; ".join(row_errors[index]))
        super().__init__("\n".join(lines))
