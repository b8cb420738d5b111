# retail_forecasting/batch/__init__.py
from .forecast_recompute_job import (
    ForecastRecomputeJob, recompute_product_forecast, run_forecast_recompute
)

__all__ = [
    'ForecastRecomputeJob',
    'recompute_product_forecast',
    'run_forecast_recompute'
]
