import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock, Mock, patch

import google.auth.exceptions

import main
from config import Config
from errors import AggregateWriteError, ConfigError, TransportError


def make_series(storage_class, value):
    point = Mock()
    point.interval.end_time = datetime(2024, 1, 15, 0, 0, tzinfo=timezone.utc)
    point.value.double_value = value

    series = Mock()
    series.resource.labels = {'project_id': 't1', 'bucket_name': f'bucket-{storage_class.lower()}', 'location': 'us'}
    series.metric.labels = {'storage_class': storage_class}
    series.points = [point]
    return series


class TestRunPipeline(unittest.TestCase):
    @patch('exporters.bigquery.bigquery.Client')
    @patch('collectors.storage.monitoring_v3.MetricServiceClient')
    def test_end_to_end(self, mock_monitoring_cls, mock_bq_cls):
        monitoring = MagicMock()
        mock_monitoring_cls.return_value.__enter__.return_value = monitoring
        mock_monitoring_cls.return_value.__exit__.return_value = False
        monitoring.list_time_series.return_value = iter([
            make_series('STANDARD', 1000.0),
            make_series('ARCHIVE', 5000.0),
        ])
        bq = mock_bq_cls.return_value
        bq.insert_rows_json.return_value = []

        written = main.run_pipeline('t1', 'gcs_storage_costs', 'bucket_snapshots')

        self.assertEqual(written, 2)
        table, rows = bq.insert_rows_json.call_args[0]
        self.assertEqual(table, 't1.gcs_storage_costs.bucket_snapshots')
        self.assertEqual(len(rows), 2)
        self.assertTrue(all(r['gcp_project'] == 't1' for r in rows))
        self.assertEqual({r['storage_class'] for r in rows}, {'STANDARD', 'ARCHIVE'})
        self.assertTrue(all(r['total_bytes'] > 0 for r in rows))

    @patch('main.BigQueryLoader')
    @patch('main.StorageBytesCollector')
    def test_nothing_collected_skips_load(self, mock_collector_cls, mock_loader_cls):
        mock_collector_cls.return_value.collect.return_value = []

        self.assertEqual(main.run_pipeline('t1', 'ds', 'tbl'), 0)
        mock_loader_cls.assert_not_called()

    @patch('main.BigQueryLoader')
    @patch('main.StorageBytesCollector')
    def test_load_errors_propagate(self, mock_collector_cls, mock_loader_cls):
        mock_collector_cls.return_value.collect.return_value = [Mock()]
        mock_loader_cls.return_value.load.side_effect = AggregateWriteError({0: ['bad row']})

        with self.assertRaises(AggregateWriteError):
            main.run_pipeline('t1', 'ds', 'tbl')


class TestRunJob(unittest.TestCase):
    @patch('main.run_pipeline', return_value=2)
    def test_success_exit_code(self, mock_run):
        with patch.object(Config, 'GCP_PROJECT_ID', 'p1'):
            self.assertEqual(main.run_job(), 0)
        mock_run.assert_called_once_with('p1', Config.BQ_DATASET_ID, Config.BQ_TABLE_ID)

    @patch('main.run_pipeline', side_effect=TransportError('monitoring unreachable'))
    def test_failure_exit_code(self, mock_run):
        with patch.object(Config, 'GCP_PROJECT_ID', 'p1'), \
             patch('main.logger') as mock_logger:
            self.assertEqual(main.run_job(), 1)

        mock_logger.exception.assert_called_once()
        failed = [c[0][0] for c in mock_logger.error.call_args_list]
        self.assertTrue(any('failed' in msg for msg in failed))

    @patch('main.run_pipeline')
    def test_missing_project_fails(self, mock_run):
        with patch.object(Config, 'GCP_PROJECT_ID', ''), \
             patch('config.google.auth.default',
                   side_effect=google.auth.exceptions.DefaultCredentialsError('no credentials')):
            self.assertEqual(main.run_job(), 1)
        mock_run.assert_not_called()


class TestIndexRoute(unittest.TestCase):
    def setUp(self):
        self.client = main.app.test_client()

    @patch('main.run_pipeline', return_value=3)
    def test_success(self, mock_run):
        with patch.object(Config, 'GCP_PROJECT_ID', 'p1'):
            response = self.client.post('/')

        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body['rows_written'], 3)
        self.assertEqual(body['project_id'], 'p1')

    @patch('main.run_pipeline', side_effect=AggregateWriteError({0: ['m1']}))
    def test_pipeline_failure(self, mock_run):
        with patch.object(Config, 'GCP_PROJECT_ID', 'p1'):
            response = self.client.get('/')

        self.assertEqual(response.status_code, 500)
        self.assertIn('Internal Server Error', response.get_data(as_text=True))
        self.assertIn('Row 0: m1', response.get_data(as_text=True))

    @patch('main.run_pipeline')
    def test_missing_config(self, mock_run):
        with patch.object(Config, 'validate', side_effect=ConfigError('GCP_PROJECT_ID environment variable must be set')):
            response = self.client.get('/')

        self.assertEqual(response.status_code, 500)
        self.assertIn('GCP_PROJECT_ID', response.get_data(as_text=True))
        mock_run.assert_not_called()


class TestConfig(unittest.TestCase):
    def test_explicit_project(self):
        with patch.object(Config, 'GCP_PROJECT_ID', 'explicit'):
            self.assertEqual(Config.resolve_project_id(), 'explicit')

    def test_falls_back_to_credentials_project(self):
        with patch.object(Config, 'GCP_PROJECT_ID', ''), \
             patch('config.google.auth.default', return_value=(Mock(), 'adc-project')):
            self.assertEqual(Config.validate(), 'adc-project')

    def test_no_project_raises(self):
        with patch.object(Config, 'GCP_PROJECT_ID', ''), \
             patch('config.google.auth.default', return_value=(Mock(), None)):
            with self.assertRaises(ConfigError):
                Config.validate()


if __name__ == '__main__':
    unittest.main()
