"""Parabolic SAR signal models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class SarDirection(str, Enum):
    """Side of price the SAR trails on."""

    LONG = "long"   # SAR below price (uptrend)
    SHORT = "short"  # SAR above price (downtrend)


class SARState(BaseModel):
    """Parabolic SAR at the final candle of a window."""

    model_config = ConfigDict(frozen=True)

    value: float
    direction: SarDirection
    acceleration_factor: float
    high_point: float
    low_point: float

    @property
    def extreme_point(self) -> float:
        """Extreme point of the current trend (high for long, low for short)."""
        if self.direction == SarDirection.LONG:
            return self.high_point
        return self.low_point
