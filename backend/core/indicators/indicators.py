"""Technical indicators for rule evaluation.

All functions take prices ordered oldest -> newest and return None
("no value") instead of raising when there is not enough data. Only the
trailing window of the series is used, so callers can pass the full
history they fetched.
"""

from dataclasses import dataclass
from typing import Sequence

import numpy as np


@dataclass(frozen=True)
class BollingerBands:
    """Bollinger Band values for the latest bar. Any field may be None."""

    middle: float | None = None
    upper: float | None = None
    lower: float | None = None


def _window(values: Sequence[float], period: int) -> np.ndarray | None:
    """Return the trailing ``period`` values as a float array, or None."""
    if period <= 0 or len(values) < period:
        return None
    return np.asarray(values[-period:], dtype=np.float64)


def sma(values: Sequence[float], period: int) -> float | None:
    """
    Calculate the Simple Moving Average of the last ``period`` values.

    Args:
        values: Sequence of prices (oldest first)
        period: Number of trailing samples to average

    Returns:
        Arithmetic mean of the window, or None if ``len(values) < period``
    """
    window = _window(values, period)
    if window is None:
        return None
    return float(np.mean(window))


def std_dev(values: Sequence[float], period: int) -> float | None:
    """
    Calculate the population standard deviation of the last ``period`` values.

    The variance is divided by ``period`` (not ``period - 1``), matching
    the usual Bollinger Band definition.

    Args:
        values: Sequence of prices (oldest first)
        period: Number of trailing samples

    Returns:
        Standard deviation, or None if there is not enough data
    """
    window = _window(values, period)
    if window is None:
        return None
    mean = sma(window, period)
    if mean is None:
        return None
    variance = float(np.sum((window - mean) ** 2)) / period
    return variance ** 0.5


def bollinger_bands(
    values: Sequence[float],
    period: int,
    multiplier: float,
) -> BollingerBands:
    """
    Calculate Bollinger Bands for the latest bar.

    middle = SMA(period), upper/lower = middle +/- multiplier * stddev.

    Args:
        values: Sequence of prices (oldest first)
        period: SMA / stddev window
        multiplier: Number of standard deviations for the outer bands

    Returns:
        BollingerBands; all fields None when the middle band is undefined,
        upper/lower None when the standard deviation is undefined
    """
    middle = sma(values, period)
    if middle is None:
        return BollingerBands()

    deviation = std_dev(values, period)
    if deviation is None:
        return BollingerBands(middle=middle)

    return BollingerBands(
        middle=middle,
        upper=middle + multiplier * deviation,
        lower=middle - multiplier * deviation,
    )


def roc(values: Sequence[float | None], lookback: int) -> float | None:
    """
    Calculate the Rate of Change between the last value and the value
    ``lookback`` positions earlier, as a percentage.

    ROC = (current - past) / past * 100

    Args:
        values: Sequence of prices (oldest first)
        lookback: Number of positions to look back

    Returns:
        ROC percentage, or None if ``len(values) < lookback + 1`` or the
        past value is zero/missing
    """
    if lookback < 0 or len(values) < lookback + 1:
        return None

    current = values[-1]
    past = values[-1 - lookback]
    if past is None or current is None or past == 0:
        return None

    return (current - past) / past * 100
