import sys
import logging

from flask import Flask, jsonify
from google.cloud import logging as cloud_logging

from config import Config
from errors import ConfigError
from collectors.storage import StorageBytesCollector
from exporters.bigquery import BigQueryLoader

app = Flask(__name__)

# Configure logging
logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("gcs_metrics.main")


def setup_cloud_logging():
    """
    Routes standard logging to Cloud Logging so entries show up as structured
    logs against the Cloud Run resource.
    """
    client = cloud_logging.Client()
    client.setup_logging(log_level=getattr(logging, Config.LOG_LEVEL, logging.INFO))
    logger.info("Cloud Logging handler attached")


def run_pipeline(project_id: str, dataset_id: str, table_id: str) -> int:
    """
    Collects the last day of bucket total_bytes and writes it to BigQuery.
    Returns the number of rows written.
    """
    logger.info(f"Starting GCS storage metrics collection for project: {project_id}")

    metrics = StorageBytesCollector().collect(project_id)

    if not metrics:
        logger.info("No metrics data found")
        return 0

    logger.info(f"Retrieved {len(metrics)} metric records")
    for m in metrics:
        logger.debug(str(m))

    BigQueryLoader(project_id, dataset_id, table_id).load(metrics)

    logger.info(f"Successfully processed {len(metrics)} records")
    return len(metrics)


def run_job() -> int:
    """
    Entry point for a Cloud Run Job task. Returns the process exit code;
    a non-zero code makes Cloud Run retry the task.
    """
    task, attempt = Config.CLOUD_RUN_TASK_INDEX, Config.CLOUD_RUN_TASK_ATTEMPT
    logger.info(f"Starting Task #{task}, Attempt #{attempt}...")
    logger.info(f"BigQuery Dataset: {Config.BQ_DATASET_ID}")
    logger.info(f"BigQuery Table: {Config.BQ_TABLE_ID}")

    try:
        project_id = Config.validate()
        logger.info(f"Project ID: {project_id}")
        run_pipeline(project_id, Config.BQ_DATASET_ID, Config.BQ_TABLE_ID)
    except Exception:
        logger.exception("Error processing metrics")
        logger.error(f"Task #{task}, Attempt #{attempt} failed.")
        return 1

    return 0


@app.route("/", methods=["POST", "GET"])
def index():
    """
    Entry point for the Cloud Run service.
    Triggered by Cloud Scheduler or manually.
    """
    try:
        project_id = Config.validate()
    except ConfigError as e:
        return str(e), 500

    try:
        rows_written = run_pipeline(project_id, Config.BQ_DATASET_ID, Config.BQ_TABLE_ID)
    except Exception as e:
        logger.exception("Error during metrics collection")
        return f"Internal Server Error: {str(e)}", 500

    return jsonify({
        "project_id": project_id,
        "dataset_id": Config.BQ_DATASET_ID,
        "table_id": Config.BQ_TABLE_ID,
        "rows_written": rows_written,
    }), 200


if __name__ == "__main__":
    if Config.USE_CLOUD_LOGGING:
        setup_cloud_logging()

    if Config.K_SERVICE:
        app.run(host="0.0.0.0", port=Config.PORT)
    else:
        sys.exit(run_job())
