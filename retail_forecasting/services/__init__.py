from .forecast_service import ForecastService
from .risk_service import RiskService
from .seasonality_service import SeasonalityService
from .repositories import (
    SqlProductCatalog, SqlSalesHistory, SqlSeasonalityTable, SqlForecastStore
)

__all__ = [
    'ForecastService',
    'RiskService',
    'SeasonalityService',
    'SqlProductCatalog',
    'SqlSalesHistory',
    'SqlSeasonalityTable',
    'SqlForecastStore'
]
