"""
Unit tests for configuration, logging and the exception hierarchy.
"""
import logging
import os
import unittest
from datetime import date, datetime
from unittest.mock import patch

from retail_forecasting.config import config, Config
from retail_forecasting.exceptions import (
    ForecastingError, NotFoundError, ProductNotFoundError, ValidationError, CalculationError
)
from retail_forecasting.logging_setup import Logger, logger, get_logger, log_exception
from retail_forecasting.utils.math_utils import round_half_up, linear_regression
from retail_forecasting.utils.date_utils import lookback_window, sunday_weekday, month_name

class TestConfig(unittest.TestCase):
    """Test cases for the configuration manager."""

    def test_singleton(self):
        self.assertIs(Config(), config)

    def test_forecast_defaults(self):
        settings = config.forecast_config

        self.assertEqual(settings['default_days_ahead'], 7)
        self.assertEqual(settings['default_lookback_days'], 90)
        self.assertEqual(settings['risk_lookback_days'], 60)
        self.assertEqual(settings['recompute_days_ahead'], 14)
        self.assertAlmostEqual(settings['ema_alpha'], 0.3)

    def test_typed_getters_fall_back(self):
        self.assertEqual(config.get('MISSING', 'key', 'fallback'), 'fallback')
        self.assertEqual(config.get_int('MISSING', 'key', 3), 3)
        self.assertEqual(config.get_float('MISSING', 'key', 0.5), 0.5)
        self.assertTrue(config.get_boolean('MISSING', 'key', True))

    def test_set_in_memory(self):
        config.set('TESTING', 'answer', 42)

        self.assertEqual(config.get('TESTING', 'answer'), '42')
        self.assertEqual(config.get_int('TESTING', 'answer'), 42)

    def test_db_url_from_environment(self):
        with patch.dict(os.environ, {'RETAIL_FORECASTING_DB_URL': 'sqlite:///other.db'}):
            self.assertEqual(config.get_db_url(), 'sqlite:///other.db')

class TestExceptions(unittest.TestCase):
    """Test cases for the exception hierarchy."""

    def test_str_with_code(self):
        error = ValidationError("Bad month", code='INVALID_FACTORS')
        self.assertEqual(str(error), '[INVALID_FACTORS] Bad month')

    def test_default_message(self):
        self.assertEqual(str(CalculationError()), 'Calculation error')

    def test_product_not_found(self):
        error = ProductNotFoundError(7)

        self.assertIsInstance(error, NotFoundError)
        self.assertIsInstance(error, ForecastingError)
        self.assertEqual(error.product_id, 7)
        self.assertEqual(error.to_dict(), {
            'error': 'ProductNotFoundError',
            'message': 'Product 7 not found',
            'code': 'PRODUCT_NOT_FOUND',
            'details': {'product_id': 7}
        })

class TestLogging(unittest.TestCase):
    """Test cases for the logging manager."""

    def test_loggers_share_package_hierarchy(self):
        self.assertEqual(get_logger('cli').name, 'retail_forecasting.cli')
        self.assertIs(get_logger('retail_forecasting.services.risk_service'),
                      get_logger('services.risk_service'))
        self.assertIs(Logger(), logger)
        self.assertFalse(logging.getLogger('retail_forecasting').propagate)

    def test_log_exception_attaches_traceback(self):
        error = ValidationError("Bad month", code='INVALID_FACTORS')

        with self.assertLogs('retail_forecasting.cli', level='ERROR') as captured:
            log_exception('cli', error, "Upsert failed")

        self.assertEqual(captured.records[0].getMessage(), 'Upsert failed: [INVALID_FACTORS] Bad month')
        self.assertIs(captured.records[0].exc_info[1], error)

    def test_batch_run_logs_outcome(self):
        with self.assertLogs('retail_forecasting.batch', level='INFO') as captured:
            run = logger.batch_start_log('Recompute', 'days_ahead=7')
            logger.batch_end_log(run, success=False, result_info='catalog unavailable')

        self.assertEqual(run['process_name'], 'Recompute')
        self.assertIsInstance(run['start_time'], datetime)
        self.assertEqual(captured.records[0].getMessage(), 'Starting Recompute (days_ahead=7)')
        self.assertEqual(captured.records[1].levelname, 'ERROR')
        self.assertIn('Recompute failed in', captured.records[1].getMessage())
        self.assertTrue(captured.records[1].getMessage().endswith(': catalog unavailable'))

class TestUtils(unittest.TestCase):
    """Test cases for the math and date helpers."""

    def test_round_half_up(self):
        self.assertEqual(round_half_up(2.5, 0), 3)
        self.assertEqual(round_half_up(0.125, 2), 0.13)
        self.assertEqual(round_half_up(8.65, 1), 8.7)

    def test_linear_regression_validates_input(self):
        with self.assertRaises(CalculationError):
            linear_regression([1], [1])
        with self.assertRaises(CalculationError):
            linear_regression([1, 2], [1])

    def test_lookback_window(self):
        start, end = lookback_window(7, date(2024, 3, 10))

        self.assertEqual(start, datetime(2024, 3, 3))
        self.assertEqual(end, datetime(2024, 3, 11))

    def test_sunday_weekday(self):
        self.assertEqual(sunday_weekday(date(2024, 3, 10)), 0)
        self.assertEqual(sunday_weekday(date(2024, 3, 16)), 6)

    def test_month_name(self):
        self.assertEqual(month_name(1), 'January')
        with self.assertRaises(ValueError):
            month_name(13)

if __name__ == '__main__':
    unittest.main()
