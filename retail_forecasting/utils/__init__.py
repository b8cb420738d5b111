from .date_utils import today_utc, to_utc_date, sunday_weekday, forecast_dates, lookback_window
from .math_utils import round_half_up, clamp, exponential_smoothing, linear_regression

__all__ = [
    'today_utc',
    'to_utc_date',
    'sunday_weekday',
    'forecast_dates',
    'lookback_window',
    'round_half_up',
    'clamp',
    'exponential_smoothing',
    'linear_regression'
]
