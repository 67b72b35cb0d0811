"""Trend forecasting over short metric histories.

``predict_next`` fits a least-squares line through the samples (x = sample
index) and evaluates it one step ahead. The raw prediction is clamped to
``[max(floor, mean - 2*sigma), mean + 2*sigma]`` of the input, so a short
noisy window cannot extrapolate to implausible values.

``moving_average_trend`` is a cheaper label for display: it compares the mean
of the most recent window with the mean of the earliest one.
"""
import math
from typing import Sequence

from .models import Forecast, TrendDirection, TrendSignal

CLAMP_SIGMAS = 2
MIN_FORECAST_POINTS = 3
DEFAULT_TREND_WINDOW = 10
DEFAULT_DEAD_BAND = 2.0


def linear_fit(values: Sequence[float]) -> tuple[float, float]:
    """
    Least-squares slope and intercept of ``values`` against their index.

    Returns:
        (slope, intercept). Slope is 0 when the fit is degenerate.
    """
    n = len(values)
    sum_x = sum_y = sum_xy = sum_x2 = 0.0
    for x, y in enumerate(values):
        sum_x += x
        sum_y += y
        sum_xy += x * y
        sum_x2 += x * x

    denominator = n * sum_x2 - sum_x * sum_x
    slope = 0.0 if denominator == 0 else (n * sum_xy - sum_x * sum_y) / denominator
    intercept = sum_y / n - slope * (sum_x / n)
    return slope, intercept


def mean_and_stddev(values: Sequence[float]) -> tuple[float, float]:
    """Mean and population standard deviation."""
    n = len(values)
    mean = sum(values) / n
    variance = sum((v - mean) ** 2 for v in values) / n
    return mean, math.sqrt(variance)


def predict_next(history: Sequence[float], floor: float = 0.0) -> float:
    """
    Predict the value following a chronological history.

    Args:
        history: Samples, oldest first. At least one is required.
        floor: Lower sanity bound applied to the clamp band.

    Raises:
        ValueError: If history is empty.
    """
    if not history:
        raise ValueError("At least one sample is required for prediction")

    values = [float(v) for v in history]
    if len(values) == 1:
        return values[0]

    slope, intercept = linear_fit(values)
    predicted = slope * len(values) + intercept

    mean, stddev = mean_and_stddev(values)
    lower = max(floor, mean - CLAMP_SIGMAS * stddev)
    upper = mean + CLAMP_SIGMAS * stddev
    # When the floor exceeds the band, the floor wins
    return max(lower, min(upper, predicted))


def moving_average_trend(
    history: Sequence[float],
    window: int = DEFAULT_TREND_WINDOW,
    dead_band: float = DEFAULT_DEAD_BAND,
) -> TrendSignal:
    """
    Compare the mean of the latest ``window`` samples with the earliest ``window``.

    The window shrinks to the history length for short histories. A delta
    within ``±dead_band`` is reported as stable.
    """
    if not history:
        return TrendSignal(direction=TrendDirection.STABLE, delta=0.0, window=0, forecast=0.0)

    size = max(1, min(window, len(history)))
    recent = sum(history[-size:]) / size
    earliest = sum(history[:size]) / size
    delta = recent - earliest

    if delta > dead_band:
        direction = TrendDirection.RISING
    elif delta < -dead_band:
        direction = TrendDirection.FALLING
    else:
        direction = TrendDirection.STABLE

    return TrendSignal(
        direction=direction,
        delta=round(delta, 2),
        window=size,
        forecast=round(recent + delta, 1),
    )


def forecast(metric: str, history: Sequence[float], floor: float = 0.0) -> Forecast:
    """Regression forecast with the summary fields a dashboard shows."""
    if len(history) < MIN_FORECAST_POINTS:
        return Forecast(
            metric=metric,
            has_prediction=False,
            data_points=len(history),
            message="Insufficient data for prediction",
        )

    return Forecast(
        metric=metric,
        has_prediction=True,
        predicted=round(predict_next(history, floor), 2),
        current=history[-1],
        trend=(history[-1] - history[0]) / len(history),
        data_points=len(history),
        message="Prediction successful",
    )
