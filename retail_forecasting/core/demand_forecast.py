# retail_forecasting/core/demand_forecast.py
from collections import defaultdict
from datetime import date
from typing import List, Dict, Iterable, Mapping, Optional

from ..models import ForecastModel
from ..utils.date_utils import (
    to_utc_date, sunday_weekday, days_between, forecast_dates, today_utc
)
from ..utils.math_utils import (
    round_half_up, clamp, exponential_smoothing, linear_regression
)

# Smoothing
EMA_ALPHA = 0.3
MIN_EMA_ALPHA = 0.01
MAX_EMA_ALPHA = 1.0

# Blending and confidence policy
MIN_HISTORY_POINTS = 3
MAX_TREND_WEIGHT = 0.6
BASE_CONFIDENCE = 0.5
MAX_HISTORY_BONUS = 0.2
HISTORY_BONUS_DAYS = 100
TREND_FIT_BONUS = 0.2
HORIZON_DECAY_PER_DAY = 0.04
MAX_HORIZON_PENALTY = 0.3
MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 0.95
NO_HISTORY_CONFIDENCE = 0.1

NEUTRAL_FACTOR = 1.0
TREND_DIRECTION_THRESHOLD = 0.1
DAYS_IN_WEEK = 7

def aggregate_daily_demand(sale_lines: Iterable[Mapping]) -> List[Dict]:
    """Collapse sale lines into one net quantity per UTC calendar day.

    Days without sales are left out rather than zero-filled.

    Args:
        sale_lines: Iterable of dicts with 'sold_at' and 'quantity'

    Returns:
        List of {'date', 'quantity'} dicts in ascending date order
    """
    totals = defaultdict(int)

    for line in sale_lines:
        day = to_utc_date(line['sold_at'])
        totals[day] += line['quantity']

    return [
        {'date': day, 'quantity': totals[day]}
        for day in sorted(totals)
    ]

def calculate_ema(quantities: List[float], alpha: float = EMA_ALPHA) -> float:
    """Calculate the exponential moving average of a demand series.

    The average is seeded with the oldest value and folded forward with
    ema = alpha * value + (1 - alpha) * ema.

    Args:
        quantities: Quantities ordered oldest to newest
        alpha: Smoothing factor, clamped to [0.01, 1.0]

    Returns:
        Smoothed demand level (0 for an empty series)
    """
    if not quantities:
        return 0.0
    if len(quantities) == 1:
        return quantities[0]

    alpha = clamp(alpha, MIN_EMA_ALPHA, MAX_EMA_ALPHA)
    return exponential_smoothing(quantities, alpha)[-1]

def calculate_trend(history: List[Mapping]) -> Dict:
    """Fit a linear trend through daily demand.

    x is the offset in days from the earliest observation, y the quantity.

    Args:
        history: Daily observations in any order

    Returns:
        Dictionary with slope, intercept and r2
    """
    if len(history) < 2:
        intercept = history[0]['quantity'] if history else 0
        return {'slope': 0.0, 'intercept': float(intercept), 'r2': 0.0}

    ordered = sorted(history, key=lambda h: h['date'])
    first_date = ordered[0]['date']

    x = [days_between(first_date, h['date']) for h in ordered]
    y = [h['quantity'] for h in ordered]

    slope, intercept, r2 = linear_regression(x, y)

    return {'slope': slope, 'intercept': intercept, 'r2': r2}

def calculate_day_of_week_factors(history: List[Mapping]) -> List[Dict]:
    """Calculate a demand factor per weekday relative to the overall mean.

    Args:
        history: Daily observations

    Returns:
        Seven {'weekday', 'factor'} dicts, weekday 0=Sunday..6=Saturday
    """
    if not history:
        return [{'weekday': day, 'factor': NEUTRAL_FACTOR} for day in range(DAYS_IN_WEEK)]

    buckets = [[] for _ in range(DAYS_IN_WEEK)]
    for observation in history:
        buckets[sunday_weekday(observation['date'])].append(observation['quantity'])

    means = [sum(bucket) / len(bucket) if bucket else 0.0 for bucket in buckets]

    positive_means = [m for m in means if m > 0]
    overall_average = sum(positive_means) / max(1, len(positive_means))

    return [
        {
            'weekday': day,
            'factor': mean / overall_average if mean > 0 and overall_average > 0 else NEUTRAL_FACTOR
        }
        for day, mean in enumerate(means)
    ]

def seasonality_key(category: str, month: int) -> str:
    """Build the lookup key for a category/month seasonality factor."""
    return f"{category.lower()}_{month}"

def get_seasonality_factor(
    category: str,
    month: int,
    factor_table: Optional[Mapping[str, float]]
) -> float:
    """Resolve the seasonality factor for a category in a month.

    Args:
        category: Product category (case-insensitive)
        month: Calendar month (1-12)
        factor_table: Mapping of seasonality_key -> factor

    Returns:
        Factor, or 1.0 when none is defined
    """
    if not factor_table:
        return NEUTRAL_FACTOR
    factor = factor_table.get(seasonality_key(category, month))
    return factor if factor else NEUTRAL_FACTOR

def apply_seasonality(
    forecast: float,
    category: str,
    month: int,
    factor_table: Optional[Mapping[str, float]]
) -> float:
    """Apply the category/month seasonality factor to a forecast."""
    return forecast * get_seasonality_factor(category, month, factor_table)

def calculate_confidence(history_length: int, r2: float, day_index: int) -> float:
    """Calculate confidence for the forecast of day_index (1 = tomorrow).

    Confidence grows with history length and trend fit and decays with
    distance into the horizon.

    Returns:
        Confidence in [0.1, 0.95], rounded to 2 decimals
    """
    confidence = BASE_CONFIDENCE
    confidence += min(MAX_HISTORY_BONUS, history_length / HISTORY_BONUS_DAYS)
    confidence += r2 * TREND_FIT_BONUS
    confidence -= min(MAX_HORIZON_PENALTY, (day_index - 1) * HORIZON_DECAY_PER_DAY)

    return round_half_up(clamp(confidence, MIN_CONFIDENCE, MAX_CONFIDENCE), 2)

def generate_no_history_forecast(days_ahead: int, start_date: date = None) -> List[Dict]:
    """Conservative forecast for products with too little history."""
    start_date = start_date or today_utc()

    return [
        {
            'date': forecast_date,
            'predicted_quantity': 0.0,
            'confidence': NO_HISTORY_CONFIDENCE,
            'model': ForecastModel.COMBINED
        }
        for forecast_date in forecast_dates(start_date, days_ahead)
    ]

def compose_forecast(
    history: List[Mapping],
    category: str,
    factor_table: Optional[Mapping[str, float]] = None,
    days_ahead: int = 7,
    start_date: date = None,
    alpha: float = EMA_ALPHA
) -> List[Dict]:
    """Compose a daily demand forecast from history.

    Blends the EMA level with the linear trend (trend weight capped at
    0.6 and scaled by r2), then applies the weekday factor and the
    category/month seasonality factor of each forecast date.

    Args:
        history: Daily observations in ascending date order
        category: Product category used for seasonality
        factor_table: Seasonality factors keyed by seasonality_key
        days_ahead: Number of future days to forecast
        start_date: Reference day; forecasts begin the day after
        alpha: EMA smoothing factor

    Returns:
        List of forecast point dicts, one per future day
    """
    start_date = start_date or today_utc()

    if len(history) < MIN_HISTORY_POINTS:
        return generate_no_history_forecast(days_ahead, start_date)

    quantities = [h['quantity'] for h in history]
    history_length = len(history)

    ema = calculate_ema(quantities, alpha)
    trend = calculate_trend(history)
    weekday_factors = {f['weekday']: f['factor'] for f in calculate_day_of_week_factors(history)}

    trend_weight = min(MAX_TREND_WEIGHT, trend['r2'])
    ema_weight = 1 - trend_weight

    forecasts = []
    for i, forecast_date in enumerate(forecast_dates(start_date, days_ahead), start=1):
        base = trend['slope'] * (history_length + i) + trend['intercept']
        value = base * trend_weight + ema * ema_weight

        value *= weekday_factors.get(sunday_weekday(forecast_date), NEUTRAL_FACTOR)
        value = apply_seasonality(value, category, forecast_date.month, factor_table)

        forecasts.append({
            'date': forecast_date,
            'predicted_quantity': max(0.0, round_half_up(value, 2)),
            'confidence': calculate_confidence(history_length, trend['r2'], i),
            'model': ForecastModel.COMBINED
        })

    return forecasts

def classify_trend_direction(slope: float) -> str:
    """Describe a trend slope as GROWING, STABLE or DECLINING."""
    if slope > TREND_DIRECTION_THRESHOLD:
        return 'GROWING'
    if slope < -TREND_DIRECTION_THRESHOLD:
        return 'DECLINING'
    return 'STABLE'

def summarize_forecast(forecasts: List[Mapping]) -> Dict:
    """Total demand and mean confidence over a forecast horizon."""
    total = sum(f['predicted_quantity'] for f in forecasts)
    mean_confidence = (
        sum(f['confidence'] for f in forecasts) / len(forecasts) if forecasts else 0.0
    )

    return {
        'days': len(forecasts),
        'total': total,
        'mean_confidence': mean_confidence
    }
