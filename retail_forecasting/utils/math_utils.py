# retail_forecasting/utils/math_utils.py
import math
from typing import List, Tuple

import numpy as np
from scipy import stats

from retail_forecasting.exceptions import CalculationError

def round_half_up(value: float, places: int = 2) -> float:
    """Round to a number of decimal places, halves rounding up.

    Unlike the built-in round() this never rounds half to even, so 2.345
    and 2.355 move in the same direction.

    Args:
        value: Value to round
        places: Number of decimal places

    Returns:
        Rounded value
    """
    multiplier = 10 ** places
    return math.floor(value * multiplier + 0.5) / multiplier

def clamp(value: float, lower: float, upper: float) -> float:
    """Limit a value to the closed range [lower, upper]."""
    return max(lower, min(upper, value))

def exponential_smoothing(
    history: List[float],
    alpha: float = 0.3
) -> List[float]:
    """Calculate exponentially smoothed values.

    Args:
        history: List of history values (oldest first)
        alpha: Smoothing factor, already validated by the caller

    Returns:
        List of smoothed values, one per history value
    """
    if not history:
        return []

    smoothed = [history[0]]

    for i in range(1, len(history)):
        smoothed_value = alpha * history[i] + (1 - alpha) * smoothed[i-1]
        smoothed.append(smoothed_value)

    return smoothed

def linear_regression(
    x: List[float],
    y: List[float]
) -> Tuple[float, float, float]:
    """Calculate ordinary least squares coefficients and fit quality.

    Args:
        x: List of x values (typically day offsets)
        y: List of y values (typically demand)

    Returns:
        Tuple with slope, intercept and coefficient of determination (r2)
    """
    if len(x) != len(y) or len(x) < 2:
        raise CalculationError("Invalid input for linear regression")

    x_values = np.asarray(x, dtype=float)
    y_values = np.asarray(y, dtype=float)

    mean_y = float(y_values.mean())
    ss_tot = float(np.sum((y_values - mean_y) ** 2))

    # Flat series or a single distinct x: no trend, no explanatory power
    if ss_tot == 0 or np.ptp(x_values) == 0:
        return 0.0, mean_y, 0.0

    result = stats.linregress(x_values, y_values)
    slope = float(result.slope)
    intercept = float(result.intercept)

    residuals = y_values - (slope * x_values + intercept)
    ss_res = float(np.sum(residuals ** 2))
    r2 = max(0.0, 1.0 - ss_res / ss_tot)

    return slope, intercept, min(1.0, r2)
