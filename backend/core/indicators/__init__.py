"""Technical indicators (pure math, no I/O)."""

from core.indicators.indicators import (
    BollingerBands,
    bollinger_bands,
    roc,
    sma,
    std_dev,
)

__all__ = [
    "BollingerBands",
    "bollinger_bands",
    "roc",
    "sma",
    "std_dev",
]
