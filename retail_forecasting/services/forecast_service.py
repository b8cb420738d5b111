# retail_forecasting/services/forecast_service.py
from datetime import date, timedelta
from typing import List, Dict, Optional, Any

from sqlalchemy.orm import Session

from retail_forecasting.config import config
from retail_forecasting.core.demand_forecast import (
    aggregate_daily_demand, calculate_ema, calculate_trend, compose_forecast,
    classify_trend_direction, summarize_forecast
)
from retail_forecasting.core.stockout_risk import NO_FORECAST_DAYS, calculate_days_to_stockout
from retail_forecasting.services.interfaces import (
    ProductCatalog, SalesHistorySource, SeasonalitySource
)
from retail_forecasting.utils.date_utils import lookback_window, today_utc
from retail_forecasting.utils.math_utils import round_half_up
from retail_forecasting.exceptions import ForecastError
from retail_forecasting.logging_setup import get_logger

logger = get_logger(__name__)

class ForecastService:
    """Service for generating per-product demand forecasts."""

    def __init__(
        self,
        catalog: ProductCatalog,
        sales_history: SalesHistorySource,
        seasonality: SeasonalitySource,
        forecast_config: Optional[Dict] = None
    ):
        """Initialize the forecast service.

        Args:
            catalog: Product catalog collaborator
            sales_history: Source of completed sale lines
            seasonality: Source of category/month seasonality factors
            forecast_config: Overrides for the [FORECAST] settings
        """
        self.catalog = catalog
        self.sales_history = sales_history
        self.seasonality = seasonality
        self.settings = dict(config.forecast_config)
        if forecast_config:
            self.settings.update(forecast_config)

    @classmethod
    def from_session(cls, session: Session, forecast_config: Optional[Dict] = None) -> 'ForecastService':
        """Build a service wired to the SQLAlchemy collaborators."""
        from retail_forecasting.services.repositories import (
            SqlProductCatalog, SqlSalesHistory, SqlSeasonalityTable
        )
        return cls(
            SqlProductCatalog(session),
            SqlSalesHistory(session),
            SqlSeasonalityTable(session),
            forecast_config
        )

    def _resolve_horizon(self, days_ahead: Optional[int], lookback_days: Optional[int]):
        """Fill in configured defaults and reject negative horizons.

        Zero is a valid value for both and is kept as given.
        """
        if days_ahead is None:
            days_ahead = self.settings['default_days_ahead']
        if lookback_days is None:
            lookback_days = self.settings['default_lookback_days']

        if days_ahead < 0 or lookback_days < 0:
            raise ForecastError(
                "Forecast horizon and lookback must not be negative",
                code='INVALID_HORIZON',
                details={'days_ahead': days_ahead, 'lookback_days': lookback_days}
            )

        return days_ahead, lookback_days

    def get_daily_history(
        self,
        product_id: int,
        lookback_days: Optional[int] = None,
        today: Optional[date] = None
    ) -> List[Dict]:
        """Get the daily demand series of a product over the lookback window.

        Args:
            product_id: Product ID
            lookback_days: Days of history (defaults to configuration)
            today: Reference day (defaults to today in UTC)

        Returns:
            Ascending list of {'date', 'quantity'} for days with sales
        """
        if lookback_days is None:
            lookback_days = self.settings['default_lookback_days']
        start, end = lookback_window(lookback_days, today)

        sale_lines = self.sales_history.get_sale_lines(product_id, start, end)
        return aggregate_daily_demand(sale_lines)

    def forecast_product(
        self,
        product: Dict[str, Any],
        days_ahead: int,
        lookback_days: int,
        today: Optional[date] = None,
        factor_table: Optional[Dict[str, float]] = None
    ) -> List[Dict]:
        """Forecast an already loaded product.

        Args:
            product: Product dict from the catalog
            days_ahead: Number of future days
            lookback_days: Days of history to use
            today: Reference day
            factor_table: Preloaded seasonality table (loaded when omitted)

        Returns:
            List of forecast points
        """
        today = today or today_utc()
        history = self.get_daily_history(product['id'], lookback_days, today)

        if factor_table is None:
            factor_table = self.seasonality.get_factor_table()

        logger.debug(
            f"Forecasting product {product['id']} with {len(history)} days of sales "
            f"over {lookback_days} days"
        )

        return compose_forecast(
            history,
            product['category'],
            factor_table,
            days_ahead=days_ahead,
            start_date=today,
            alpha=self.settings['ema_alpha']
        )

    def forecast(
        self,
        product_id: int,
        days_ahead: Optional[int] = None,
        lookback_days: Optional[int] = None,
        today: Optional[date] = None
    ) -> List[Dict]:
        """Generate the demand forecast of a product.

        Args:
            product_id: Product ID
            days_ahead: Number of future days (default 7)
            lookback_days: Days of history to use (default 90)
            today: Reference day (defaults to today in UTC)

        Returns:
            List of forecast points, one per future day

        Raises:
            ProductNotFoundError: If the product does not exist
            ForecastError: If days_ahead or lookback_days is negative
        """
        days_ahead, lookback_days = self._resolve_horizon(days_ahead, lookback_days)

        product = self.catalog.get_product(product_id)
        return self.forecast_product(product, days_ahead, lookback_days, today)

    def analyze(
        self,
        product_id: int,
        days_ahead: Optional[int] = None,
        lookback_days: Optional[int] = None,
        today: Optional[date] = None
    ) -> Dict[str, Any]:
        """Forecast a product together with statistics about its history.

        Returns:
            Dictionary with product, history, statistics, forecasts and
            horizon totals
        """
        days_ahead, lookback_days = self._resolve_horizon(days_ahead, lookback_days)
        today = today or today_utc()

        product = self.catalog.get_product(product_id)
        history = self.get_daily_history(product_id, lookback_days, today)
        forecasts = self.forecast_product(product, days_ahead, lookback_days, today)

        quantities = [h['quantity'] for h in history]
        ema = calculate_ema(quantities, self.settings['ema_alpha'])
        trend = calculate_trend(history)
        horizon = summarize_forecast(forecasts)

        return {
            'product': {
                'id': product['id'],
                'code': product.get('code'),
                'name': product.get('name'),
                'category': product['category'],
                'current_stock': product['current_stock'],
                'minimum_stock': product['minimum_stock']
            },
            'history': [
                {'date': h['date'].isoformat(), 'quantity': h['quantity']}
                for h in history
            ],
            'statistics': {
                'days_analyzed': lookback_days,
                'days_with_sales': len(history),
                'ema': round_half_up(ema, 2),
                'trend': {
                    'direction': classify_trend_direction(trend['slope']),
                    'growth_rate': round_half_up(trend['slope'], 3),
                    'model_quality': round_half_up(trend['r2'], 2)
                }
            },
            'forecasts': [serialize_forecast(f) for f in forecasts],
            'horizon': {
                'days': days_ahead,
                'total': round_half_up(horizon['total'], 1),
                'mean_confidence': round_half_up(horizon['mean_confidence'], 2)
            }
        }

    def overview(
        self,
        days_ahead: Optional[int] = None,
        category: Optional[str] = None,
        limit: int = 50,
        today: Optional[date] = None
    ) -> Dict[str, Any]:
        """Demand overview of active products, most urgent first.

        Args:
            days_ahead: Forecast horizon in days
            category: Optional category filter
            limit: Maximum number of products (lowest stock first)
            today: Reference day

        Returns:
            Dictionary with period, summary and per-product results
        """
        days_ahead, lookback_days = self._resolve_horizon(
            days_ahead, self.settings['risk_lookback_days']
        )
        today = today or today_utc()

        products = self.catalog.list_active_products(
            category=category, limit=limit, order_by_stock=True
        )
        factor_table = self.seasonality.get_factor_table()

        results = []
        for product in products:
            try:
                forecasts = self.forecast_product(
                    product, days_ahead, lookback_days, today, factor_table
                )
            except Exception as e:
                logger.warning(f"Skipping product {product['id']} in overview: {str(e)}")
                continue

            horizon = summarize_forecast(forecasts)
            daily_demand = horizon['total'] / days_ahead if days_ahead > 0 else 0.0
            days_until_empty = (
                calculate_days_to_stockout(product['current_stock'], daily_demand)
                if daily_demand > 0 else NO_FORECAST_DAYS
            )

            results.append({
                'product': {
                    'id': product['id'],
                    'code': product.get('code'),
                    'name': product.get('name'),
                    'category': product['category']
                },
                'current_stock': product['current_stock'],
                'minimum_stock': product['minimum_stock'],
                'predicted_demand': round_half_up(horizon['total'], 1),
                'mean_confidence': round_half_up(horizon['mean_confidence'], 2),
                'days_until_empty': days_until_empty,
                'needs_reorder': 0 <= days_until_empty <= days_ahead
            })

        # Products without forecast demand go last
        results.sort(key=lambda r: (r['days_until_empty'] == NO_FORECAST_DAYS, r['days_until_empty']))

        return {
            'period': {
                'days': days_ahead,
                'start': today.isoformat(),
                'end': (today + timedelta(days=days_ahead)).isoformat()
            },
            'summary': {
                'total_products': len(results),
                'needs_reorder': sum(1 for r in results if r['needs_reorder']),
                'categories': len({r['product']['category'] for r in results})
            },
            'products': results
        }

def serialize_forecast(forecast: Dict) -> Dict:
    """Convert a forecast point to JSON-friendly values."""
    return {
        'date': forecast['date'].isoformat(),
        'predicted_quantity': forecast['predicted_quantity'],
        'confidence': forecast['confidence'],
        'model': str(forecast['model'])
    }
