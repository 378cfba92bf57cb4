"""Parabolic SAR (Stop And Reverse).

Computes the indicator value at the last candle of a window. The window is
replayed from its first candle on every call; no state is carried between
calls.

Seeding differs from Wilder's two-candle seed: the initial trend is taken
from the mean close of the second half of the window versus the first half.
"""

from typing import Sequence

import numpy as np

from sarcore.models import Candle, SARState, SarDirection

INITIAL_AF = 0.02
AF_INCREMENT = 0.02
MAX_AF = 0.2

# Shortest window the calculator accepts
MIN_CANDLES = 5


def _seed_direction(candles: Sequence[Candle]) -> SarDirection:
    """Seed trend: rising half-window means start long, otherwise short."""
    closes = np.fromiter((c.close for c in candles), dtype=np.float64, count=len(candles))
    mid = len(closes) // 2
    if closes[mid:].mean() > closes[:mid].mean():
        return SarDirection.LONG
    return SarDirection.SHORT


def calculate_sar(candles: Sequence[Candle]) -> SARState | None:
    """
    Calculate the Parabolic SAR at the final candle.

    Args:
        candles: Candles ordered by ascending open time

    Returns:
        SARState for the last candle, or None if fewer than 5 candles
    """
    if len(candles) < MIN_CANDLES:
        return None

    direction = _seed_direction(candles)
    first = candles[0]
    sar = first.low if direction == SarDirection.LONG else first.high
    hp = first.high
    lp = first.low
    af = INITIAL_AF

    for i in range(1, len(candles)):
        candle = candles[i]
        # Previous two candles bound the projected SAR; on the first step
        # the current candle stands in for the missing second one
        prior = (candles[i - 1], candles[i - 2] if i >= 2 else candle)

        if direction == SarDirection.LONG:
            sar = sar + af * (hp - sar)
            sar = min(sar, *(c.low for c in prior))

            if candle.low < sar:
                direction = SarDirection.SHORT
                sar = hp
                lp = candle.low
                af = INITIAL_AF
            elif candle.high > hp:
                hp = candle.high
                af = min(af + AF_INCREMENT, MAX_AF)
        else:
            sar = sar - af * (sar - lp)
            sar = max(sar, *(c.high for c in prior))

            if candle.high > sar:
                direction = SarDirection.LONG
                sar = lp
                hp = candle.high
                af = INITIAL_AF
            elif candle.low < lp:
                lp = candle.low
                af = min(af + AF_INCREMENT, MAX_AF)

    return SARState(
        value=sar,
        direction=direction,
        acceleration_factor=af,
        high_point=hp,
        low_point=lp,
    )


def classify_by_price(sar_value: float, close: float) -> SarDirection:
    """Direction from a bare SAR value: price above SAR is long."""
    return SarDirection.LONG if close > sar_value else SarDirection.SHORT


class SARCalculator:
    """Stateless Parabolic SAR calculator.

    Thin object wrapper so the calculator can be injected and swapped in
    the aggregator.
    """

    def direction(self, candles: Sequence[Candle] | None) -> SarDirection | None:
        """Direction at the last candle, or None when it cannot be computed."""
        if not candles:
            return None
        state = calculate_sar(candles)
        return state.direction if state else None
