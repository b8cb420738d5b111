# retail_forecasting/services/risk_service.py
from datetime import date, datetime, timezone
from typing import List, Dict, Optional, Any

from sqlalchemy.orm import Session

from retail_forecasting.core.stockout_risk import (
    RISK_HORIZON_DAYS, NO_FORECAST_DAYS, assess_stockout_risk, rank_risk_entries
)
from retail_forecasting.models import RiskTier
from retail_forecasting.services.forecast_service import ForecastService
from retail_forecasting.utils.date_utils import today_utc
from retail_forecasting.logging_setup import get_logger

logger = get_logger(__name__)

class RiskService:
    """Service for stockout risk assessment of active products."""

    def __init__(self, forecast_service: ForecastService):
        """Initialize the risk service.

        Args:
            forecast_service: Forecast service whose catalog lists the products
        """
        self.forecast_service = forecast_service
        self.catalog = forecast_service.catalog

    @classmethod
    def from_session(cls, session: Session) -> 'RiskService':
        """Build a service wired to the SQLAlchemy collaborators."""
        return cls(ForecastService.from_session(session))

    def risk_assessment(self, today: Optional[date] = None) -> List[Dict[str, Any]]:
        """Get the products at risk of a stockout.

        Every active product is forecast over the risk horizon and
        classified; LOW entries are dropped and the rest ordered by tier,
        then by days to stockout. A product whose forecast fails is skipped.

        Args:
            today: Reference day (defaults to today in UTC)

        Returns:
            Ordered list of risk entries
        """
        today = today or today_utc()
        lookback_days = self.forecast_service.settings['risk_lookback_days']

        products = self.catalog.list_active_products()
        factor_table = self.forecast_service.seasonality.get_factor_table()

        entries = []
        for product in products:
            try:
                forecasts = self.forecast_service.forecast_product(
                    product, RISK_HORIZON_DAYS, lookback_days, today, factor_table
                )
            except Exception as e:
                logger.warning(f"Skipping product {product['id']} in risk assessment: {str(e)}")
                continue

            entries.append(assess_stockout_risk(product, forecasts))

        ranked = rank_risk_entries(entries)
        logger.info(f"Risk assessment: {len(ranked)} of {len(products)} active products at risk")

        return ranked

    def risk_summary(self, today: Optional[date] = None) -> Dict[str, Any]:
        """Risk entries with per-tier counts and alerts for critical products."""
        entries = self.risk_assessment(today)

        return {
            'analysis_date': datetime.now(timezone.utc).isoformat(),
            'summary': {
                'total_at_risk': len(entries),
                'critical': _count_tier(entries, RiskTier.CRITICAL),
                'high': _count_tier(entries, RiskTier.HIGH),
                'medium': _count_tier(entries, RiskTier.MEDIUM)
            },
            'products': [serialize_risk_entry(e) for e in entries],
            'alerts': [
                {'tier': str(RiskTier.CRITICAL), 'message': critical_alert_message(e)}
                for e in entries if e['risk_tier'] == RiskTier.CRITICAL
            ]
        }

    def risk_dashboard(self, top: int = 5, today: Optional[date] = None) -> Dict[str, Any]:
        """Compact risk figures for a dashboard widget."""
        entries = self.risk_assessment(today)

        return {
            'total_at_risk': len(entries),
            'critical': _count_tier(entries, RiskTier.CRITICAL),
            'high': _count_tier(entries, RiskTier.HIGH),
            'highlighted': [
                {
                    'product_id': e['product_id'],
                    'code': e['code'],
                    'name': e['name'],
                    'current_stock': e['current_stock'],
                    'days_to_stockout': e['days_to_stockout'],
                    'risk_tier': str(e['risk_tier'])
                }
                for e in entries[:top]
            ]
        }

def _count_tier(entries: List[Dict], tier: RiskTier) -> int:
    return sum(1 for e in entries if e['risk_tier'] == tier)

def critical_alert_message(entry: Dict) -> str:
    """Human-readable alert line for a critical product."""
    if entry['days_to_stockout'] == NO_FORECAST_DAYS:
        outlook = "stockout forecast unavailable"
    else:
        outlook = f"stockout in {entry['days_to_stockout']} days"
    return f"{entry['name']} ({entry['code']}) - Stock: {entry['current_stock']}, {outlook}"

def serialize_risk_entry(entry: Dict) -> Dict:
    """Convert a risk entry to JSON-friendly values."""
    serialized = dict(entry)
    serialized['risk_tier'] = str(entry['risk_tier'])
    return serialized
