import os
import logging

import google.auth
import google.auth.exceptions
from dotenv import load_dotenv

from errors import ConfigError

load_dotenv()

logger = logging.getLogger("gcs_metrics.config")


class Config:
    # Target project. Falls back to GOOGLE_CLOUD_PROJECT, then to the ADC project
    GCP_PROJECT_ID = os.getenv("GCP_PROJECT_ID") or os.getenv("GOOGLE_CLOUD_PROJECT", "")

    # BigQuery
    BQ_DATASET_ID = os.getenv("BQ_DATASET_ID", "gcs_storage_costs")
    BQ_TABLE_ID = os.getenv("BQ_TABLE_ID", "bucket_snapshots")

    # Provided automatically by the Cloud Run Jobs runtime
    CLOUD_RUN_TASK_INDEX = os.getenv("CLOUD_RUN_TASK_INDEX", "0")
    CLOUD_RUN_TASK_ATTEMPT = os.getenv("CLOUD_RUN_TASK_ATTEMPT", "0")

    # Set by Cloud Run services, absent for jobs
    K_SERVICE = os.getenv("K_SERVICE", "")
    PORT = int(os.getenv("PORT", "8080"))

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    USE_CLOUD_LOGGING = os.getenv("USE_CLOUD_LOGGING", "false").lower() == "true"

    @classmethod
    def resolve_project_id(cls) -> str:
        if cls.GCP_PROJECT_ID:
            return cls.GCP_PROJECT_ID

        # Same lookup gcloud uses for its default project
        try:
            _, project_id = google.auth.default()
        except google.auth.exceptions.DefaultCredentialsError as e:
            logger.warning(f"Could not determine default project from credentials: {e}")
            return ""
        return project_id or ""

    @classmethod
    def validate(cls) -> str:
        """
        Returns the project id to use, raising ConfigError if there is none.
        """
        project_id = cls.resolve_project_id()
        if not project_id or not project_id.strip():
            raise ConfigError("GCP_PROJECT_ID environment variable must be set")
        if not cls.BQ_DATASET_ID or not cls.BQ_TABLE_ID:
            raise ConfigError("BQ_DATASET_ID and BQ_TABLE_ID cannot be empty")
        return project_id
