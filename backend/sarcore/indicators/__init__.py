"""Technical indicators (pure math, no I/O)."""

from sarcore.indicators.parabolic_sar import (
    AF_INCREMENT,
    INITIAL_AF,
    MAX_AF,
    MIN_CANDLES,
    SARCalculator,
    calculate_sar,
    classify_by_price,
)

__all__ = [
    "calculate_sar",
    "classify_by_price",
    "SARCalculator",
    "INITIAL_AF",
    "AF_INCREMENT",
    "MAX_AF",
    "MIN_CANDLES",
]
