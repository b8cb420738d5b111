from .demand_forecast import (
    aggregate_daily_demand, calculate_ema, calculate_trend,
    calculate_day_of_week_factors, seasonality_key, get_seasonality_factor,
    apply_seasonality, calculate_confidence, generate_no_history_forecast,
    compose_forecast, classify_trend_direction, summarize_forecast
)
from .stockout_risk import (
    calculate_days_to_stockout, classify_risk_tier, assess_stockout_risk,
    rank_risk_entries
)

__all__ = [
    'aggregate_daily_demand',
    'calculate_ema',
    'calculate_trend',
    'calculate_day_of_week_factors',
    'seasonality_key',
    'get_seasonality_factor',
    'apply_seasonality',
    'calculate_confidence',
    'generate_no_history_forecast',
    'compose_forecast',
    'classify_trend_direction',
    'summarize_forecast',
    'calculate_days_to_stockout',
    'classify_risk_tier',
    'assess_stockout_risk',
    'rank_risk_entries'
]
