"""Monitored asset models."""

from enum import Enum

from pydantic import Field

from sarcore.models.base import CamelModel
from sarcore.models.signal import SarDirection


class AssetCategory(str, Enum):
    """Market an asset belongs to."""

    CRYPTO = "crypto"
    FOREX = "forex"


class AssetStatus(str, Enum):
    """Lifecycle status of a monitored asset."""

    MONITORING = "monitoring"
    READY = "ready"
    TRADING = "trading"
    COOLDOWN = "cooldown"


class Readiness(str, Enum):
    """Display classification of an asset's readiness."""

    READY = "ready"        # status ready at the exact threshold
    HIGH = "high"          # at or above threshold without the ready transition
    MONITORING = "monitoring"


class ReadinessInput(CamelModel):
    """Externally computed readiness for one asset."""

    percentage: float = Field(ge=0, le=100)
    price_drop_percentage: float | None = None


class MonitoredAsset(CamelModel):
    """Per-asset state merged by the aggregator on every tick."""

    name: str
    category: AssetCategory
    rank: int | None = None
    sar1m: SarDirection | None = None
    sar5m: SarDirection | None = None
    sar15m: SarDirection | None = None
    percentage: float = Field(default=0, ge=0, le=100)
    status: AssetStatus = AssetStatus.MONITORING
    price_drop_percentage: float | None = None

    @property
    def directions(self) -> tuple[SarDirection | None, SarDirection | None, SarDirection | None]:
        return (self.sar1m, self.sar5m, self.sar15m)

    @property
    def confluence(self) -> bool:
        """True iff all three timeframes agree and none is missing."""
        return confluence(*self.directions)

    @property
    def consensus(self) -> SarDirection | None:
        """The shared direction when in confluence, else None."""
        return self.sar1m if self.confluence else None


def confluence(*directions: SarDirection | None) -> bool:
    """Check agreement of SAR directions across timeframes."""
    if not directions or any(d is None for d in directions):
        return False
    return len(set(directions)) == 1


class AssetSpec(CamelModel):
    """Universe entry: identifies an asset to monitor."""

    name: str
    category: AssetCategory
    rank: int | None = None

    def to_monitored(self) -> MonitoredAsset:
        return MonitoredAsset(name=self.name, category=self.category, rank=self.rank)
