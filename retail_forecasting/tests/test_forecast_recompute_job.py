"""
Unit tests for the forecast recompute batch job.
"""
import unittest
from unittest.mock import patch
from datetime import date, timedelta

from retail_forecasting.batch.forecast_recompute_job import (
    ForecastRecomputeJob, recompute_product_forecast
)
from retail_forecasting.models import ForecastModel
from retail_forecasting.services.forecast_service import ForecastService
from retail_forecasting.services.repositories import SqlForecastStore, SqlProductCatalog
from retail_forecasting.exceptions import BatchProcessError
from retail_forecasting.tests.fixtures import make_test_database, add_product, add_daily_sales

TODAY = date(2024, 3, 10)

class TestForecastRecomputeJob(unittest.TestCase):
    """Test cases for ForecastRecomputeJob."""

    def setUp(self):
        """Set up a catalog with sales history and stale forecasts."""
        self.engine, self.scope = make_test_database()

        with self.scope() as session:
            self.product_ids = [
                add_product(session, 'A', category='fruit'),
                add_product(session, 'B', category='fruit'),
                add_product(session, 'C', category='dairy'),
            ]
            self.inactive_id = add_product(session, 'Z', is_active=False)

            for product_id in self.product_ids:
                add_daily_sales(session, product_id, [5, 6, 7, 8, 9, 10, 11], TODAY)

            stale = [{
                'date': TODAY - timedelta(days=3),
                'predicted_quantity': 99.0,
                'confidence': 0.9,
                'model': ForecastModel.EMA
            }]
            store = SqlForecastStore(session)
            for product_id in self.product_ids + [self.inactive_id]:
                store.replace_forecasts(product_id, stale)

    def tearDown(self):
        self.engine.dispose()

    def _stored(self, product_id):
        with self.scope() as session:
            return SqlForecastStore(session).get_forecasts(product_id)

    def test_all_products_processed(self):
        job = ForecastRecomputeJob(scope=self.scope, days_ahead=14, lookback_days=90)

        results = job.run(TODAY)

        self.assertEqual(results['total_products'], 3)
        self.assertEqual(results['processed'], 3)
        self.assertEqual(results['errors'], 0)
        self.assertEqual(results['error_products'], [])
        self.assertIsNotNone(results['duration'])

        for product_id in self.product_ids:
            stored = self._stored(product_id)
            self.assertEqual(len(stored), 14)
            self.assertEqual(stored[0]['date'], date(2024, 3, 11))
            self.assertEqual(stored[-1]['date'], date(2024, 3, 24))
            self.assertTrue(all(f['model'] == ForecastModel.COMBINED for f in stored))

        # Inactive products keep whatever they had
        self.assertEqual(self._stored(self.inactive_id)[0]['predicted_quantity'], 99.0)

    def test_failing_product_keeps_old_rows(self):
        original = ForecastService.forecast_product
        failing_id = self.product_ids[1]

        def flaky(service, product, *args, **kwargs):
            if product['id'] == failing_id:
                raise RuntimeError("corrupt sales data")
            return original(service, product, *args, **kwargs)

        with patch.object(ForecastService, 'forecast_product', autospec=True, side_effect=flaky):
            results = ForecastRecomputeJob(scope=self.scope, days_ahead=14).run(TODAY)

        self.assertEqual(results['processed'], 2)
        self.assertEqual(results['errors'], 1)
        self.assertEqual(results['error_products'], [failing_id])

        stale = self._stored(failing_id)
        self.assertEqual(len(stale), 1)
        self.assertEqual(stale[0]['predicted_quantity'], 99.0)

        self.assertEqual(len(self._stored(self.product_ids[0])), 14)
        self.assertEqual(len(self._stored(self.product_ids[2])), 14)

    def test_failed_insert_rolls_back_delete(self):
        original = SqlForecastStore.replace_forecasts

        def replace_then_fail(store, product_id, forecasts):
            original(store, product_id, forecasts)
            raise RuntimeError("insert failed")

        with patch.object(SqlForecastStore, 'replace_forecasts', autospec=True, side_effect=replace_then_fail):
            with self.assertRaises(RuntimeError):
                recompute_product_forecast(
                    self.product_ids[0], 14, 90, TODAY, {}, scope=self.scope
                )

        stored = self._stored(self.product_ids[0])
        self.assertEqual(len(stored), 1)
        self.assertEqual(stored[0]['predicted_quantity'], 99.0)

    def test_recompute_is_deterministic(self):
        job = ForecastRecomputeJob(scope=self.scope, days_ahead=14)

        job.run(TODAY)
        first = self._stored(self.product_ids[0])
        job.run(TODAY)
        second = self._stored(self.product_ids[0])

        self.assertEqual(
            [(f['date'], f['predicted_quantity'], f['confidence']) for f in first],
            [(f['date'], f['predicted_quantity'], f['confidence']) for f in second]
        )

    @patch('retail_forecasting.batch.forecast_recompute_job.uses_single_connection', return_value=False)
    @patch('retail_forecasting.batch.forecast_recompute_job.recompute_product_forecast')
    def test_worker_pool(self, mock_recompute, mock_single_connection):
        failing_id = self.product_ids[2]

        def recompute(product_id, *args, **kwargs):
            if product_id == failing_id:
                raise RuntimeError("corrupt sales data")
            return 7
        mock_recompute.side_effect = recompute

        results = ForecastRecomputeJob(scope=self.scope, days_ahead=7, max_workers=3).run(TODAY)

        self.assertEqual(results['processed'], 2)
        self.assertEqual(results['errors'], 1)
        self.assertEqual(results['error_products'], [failing_id])
        self.assertEqual(
            sorted(call[0][0] for call in mock_recompute.call_args_list),
            sorted(self.product_ids)
        )

    @patch('retail_forecasting.batch.forecast_recompute_job.ThreadPoolExecutor')
    def test_single_connection_engine_runs_sequentially(self, mock_executor):
        results = ForecastRecomputeJob(scope=self.scope, days_ahead=7, max_workers=4).run(TODAY)

        mock_executor.assert_not_called()
        self.assertEqual(results['processed'], 3)
        self.assertEqual(results['errors'], 0)
        for product_id in self.product_ids:
            self.assertEqual(len(self._stored(product_id)), 7)

    def test_zero_day_horizon_clears_forecasts(self):
        job = ForecastRecomputeJob(scope=self.scope, days_ahead=0, lookback_days=0)

        self.assertEqual(job.days_ahead, 0)
        self.assertEqual(job.lookback_days, 0)

        results = job.run(TODAY)

        self.assertEqual(results['processed'], 3)
        self.assertEqual(self._stored(self.product_ids[0]), [])

    @patch.object(SqlProductCatalog, 'list_active_products', side_effect=RuntimeError("catalog unavailable"))
    def test_product_load_failure(self, mock_list):
        with self.assertRaises(BatchProcessError) as context:
            ForecastRecomputeJob(scope=self.scope).run(TODAY)

        self.assertEqual(context.exception.code, 'PRODUCT_LOAD_FAILED')
        self.assertEqual(len(self._stored(self.product_ids[0])), 1)

    def test_stop_request(self):
        job = ForecastRecomputeJob(scope=self.scope, days_ahead=14)
        job.request_stop()

        results = job.run(TODAY)

        self.assertEqual(results['total_products'], 3)
        self.assertEqual(results['processed'], 0)
        self.assertEqual(results['errors'], 0)
        self.assertEqual(len(self._stored(self.product_ids[0])), 1)

if __name__ == '__main__':
    unittest.main()
