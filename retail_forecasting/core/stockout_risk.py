# retail_forecasting/core/stockout_risk.py
import math
from typing import List, Dict, Mapping

from ..models import RiskTier
from ..utils.math_utils import round_half_up

RISK_HORIZON_DAYS = 7

# Days-to-stockout when no demand is forecast, and how callers see it
UNBOUNDED_DAYS = 999
NO_FORECAST_DAYS = -1

CRITICAL_DAYS = 2
HIGH_DAYS = 5
MEDIUM_DAYS = 10

def calculate_days_to_stockout(current_stock: float, daily_demand: float) -> int:
    """Whole days until stock runs out at the given daily demand.

    Returns UNBOUNDED_DAYS when no demand is expected.
    """
    if daily_demand <= 0:
        return UNBOUNDED_DAYS
    return max(0, math.floor(current_stock / daily_demand))

def classify_risk_tier(current_stock: float, minimum_stock: float, days_to_stockout: int) -> RiskTier:
    """Assign a stockout risk tier; the first matching rule wins."""
    if current_stock <= 0 or days_to_stockout <= CRITICAL_DAYS:
        return RiskTier.CRITICAL
    if days_to_stockout <= HIGH_DAYS or current_stock <= minimum_stock:
        return RiskTier.HIGH
    if days_to_stockout <= MEDIUM_DAYS:
        return RiskTier.MEDIUM
    return RiskTier.LOW

def assess_stockout_risk(product: Mapping, forecasts: List[Mapping]) -> Dict:
    """Build the risk entry for one product from its forecast.

    Args:
        product: Product dict with id, code, name, category,
                 current_stock and minimum_stock
        forecasts: Forecast points covering the risk horizon

    Returns:
        Risk entry dict; days_to_stockout is -1 when unbounded
    """
    demand = sum(f['predicted_quantity'] for f in forecasts)
    daily_demand = demand / RISK_HORIZON_DAYS

    current_stock = product['current_stock']
    minimum_stock = product['minimum_stock']

    days_to_stockout = calculate_days_to_stockout(current_stock, daily_demand)
    tier = classify_risk_tier(current_stock, minimum_stock, days_to_stockout)

    return {
        'product_id': product['id'],
        'code': product.get('code'),
        'name': product.get('name'),
        'category': product.get('category'),
        'current_stock': current_stock,
        'minimum_stock': minimum_stock,
        'predicted_7_day_demand': round_half_up(demand, 1),
        'days_to_stockout': NO_FORECAST_DAYS if days_to_stockout == UNBOUNDED_DAYS else days_to_stockout,
        'risk_tier': tier
    }

def _stockout_sort_days(entry: Mapping) -> int:
    days = entry['days_to_stockout']
    return UNBOUNDED_DAYS if days == NO_FORECAST_DAYS else days

def rank_risk_entries(entries: List[Mapping]) -> List[Mapping]:
    """Drop LOW entries and order the rest by tier, then days to stockout."""
    at_risk = [e for e in entries if e['risk_tier'] != RiskTier.LOW]
    return sorted(at_risk, key=lambda e: (e['risk_tier'].rank, _stockout_sort_days(e)))
