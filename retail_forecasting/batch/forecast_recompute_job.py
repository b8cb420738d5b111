# retail_forecasting/batch/forecast_recompute_job.py
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import date, datetime
from typing import Callable, Dict, List, Optional

from retail_forecasting.config import config
from retail_forecasting.db import session_scope, uses_single_connection
from retail_forecasting.exceptions import BatchProcessError
from retail_forecasting.services.forecast_service import ForecastService
from retail_forecasting.services.repositories import (
    SqlProductCatalog, SqlSeasonalityTable, SqlForecastStore
)
from retail_forecasting.utils.date_utils import today_utc
from retail_forecasting.logging_setup import get_logger, log_exception, logger as log_manager

logger = get_logger('forecast_recompute_job')

def recompute_product_forecast(
    product_id: int,
    days_ahead: int,
    lookback_days: int,
    today: date,
    factor_table: Dict[str, float],
    scope: Callable = session_scope
) -> int:
    """Regenerate and store the forecast of one product.

    The delete and the inserts share one transaction, so readers see the
    old set or the new set, never a mix.

    Args:
        product_id: Product ID
        days_ahead: Number of future days
        lookback_days: Days of history to use
        today: Reference day
        factor_table: Preloaded seasonality table
        scope: Transactional session scope

    Returns:
        Number of forecast rows written
    """
    with scope() as session:
        service = ForecastService.from_session(session)
        product = service.catalog.get_product(product_id)
        forecasts = service.forecast_product(
            product, days_ahead, lookback_days, today, factor_table
        )
        return SqlForecastStore(session).replace_forecasts(product_id, forecasts)

class ForecastRecomputeJob:
    """Regenerates persisted forecasts for every active product."""

    def __init__(
        self,
        scope: Optional[Callable] = None,
        days_ahead: Optional[int] = None,
        lookback_days: Optional[int] = None,
        max_workers: Optional[int] = None
    ):
        """Initialize the job.

        Args:
            scope: Transactional session scope (defaults to the global one)
            days_ahead: Forecast horizon (default 14)
            lookback_days: Days of history (default 90)
            max_workers: Worker threads; 1 processes products sequentially
        """
        forecast_settings = config.forecast_config
        self.scope = scope or session_scope
        self.days_ahead = forecast_settings['recompute_days_ahead'] if days_ahead is None else days_ahead
        self.lookback_days = forecast_settings['default_lookback_days'] if lookback_days is None else lookback_days
        self.max_workers = max(1, max_workers or config.batch_config['max_workers'])
        self._stop = threading.Event()

    def request_stop(self):
        """Stop before the next product; finished products stay committed."""
        self._stop.set()

    def _load_products(self):
        try:
            with self.scope() as session:
                product_ids = [p['id'] for p in SqlProductCatalog(session).list_active_products()]
                factor_table = SqlSeasonalityTable(session).get_factor_table()
                single_connection = uses_single_connection(session.get_bind())
        except Exception as e:
            raise BatchProcessError(
                f"Failed to load active products: {str(e)}",
                code='PRODUCT_LOAD_FAILED'
            )
        return product_ids, factor_table, single_connection

    def _process(self, product_id: int, today: date, factor_table: Dict[str, float]) -> Optional[bool]:
        if self._stop.is_set():
            return None

        try:
            rows = recompute_product_forecast(
                product_id, self.days_ahead, self.lookback_days, today,
                factor_table, scope=self.scope
            )
            logger.debug(f"Stored {rows} forecast rows for product {product_id}")
            return True
        except Exception as e:
            log_exception('forecast_recompute_job', e, f"Error recomputing forecast for product {product_id}")
            return False

    def run(self, today: Optional[date] = None) -> Dict:
        """Run the job.

        Args:
            today: Reference day (defaults to today in UTC)

        Returns:
            Dictionary with processed and error counts
        """
        today = today or today_utc()
        log_info = log_manager.batch_start_log(
            'forecast_recompute',
            f"days_ahead={self.days_ahead}, lookback_days={self.lookback_days}, workers={self.max_workers}"
        )

        results = {
            'start_time': log_info['start_time'],
            'end_time': None,
            'duration': None,
            'total_products': 0,
            'processed': 0,
            'errors': 0,
            'error_products': []
        }

        try:
            product_ids, factor_table, single_connection = self._load_products()
        except BatchProcessError as e:
            log_manager.batch_end_log(log_info, success=False, result_info=str(e))
            raise

        workers = self.max_workers
        if workers > 1 and single_connection:
            logger.warning("Database shares a single connection; processing products sequentially")
            workers = 1

        results['total_products'] = len(product_ids)
        logger.info(f"Recomputing forecasts for {len(product_ids)} active products")

        for product_id, outcome in self._iterate(product_ids, today, factor_table, workers):
            if outcome is True:
                results['processed'] += 1
            elif outcome is False:
                results['errors'] += 1
                results['error_products'].append(product_id)

        results['end_time'] = datetime.now()
        results['duration'] = results['end_time'] - results['start_time']

        log_manager.batch_end_log(
            log_info,
            success=results['errors'] == 0,
            result_info=f"processed={results['processed']}, errors={results['errors']}"
        )

        return results

    def _iterate(self, product_ids: List[int], today: date, factor_table: Dict[str, float], workers: int):
        if workers == 1:
            for product_id in product_ids:
                if self._stop.is_set():
                    logger.info("Forecast recompute stopped on request")
                    break
                yield product_id, self._process(product_id, today, factor_table)
            return

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(self._process, product_id, today, factor_table): product_id
                for product_id in product_ids
            }
            for future in as_completed(futures):
                yield futures[future], future.result()

def run_forecast_recompute(
    days_ahead: Optional[int] = None,
    lookback_days: Optional[int] = None,
    max_workers: Optional[int] = None,
    today: Optional[date] = None
) -> Dict:
    """Recompute and store forecasts for all active products.

    Returns:
        Dictionary with processed and error counts
    """
    job = ForecastRecomputeJob(
        days_ahead=days_ahead,
        lookback_days=lookback_days,
        max_workers=max_workers
    )
    return job.run(today)
