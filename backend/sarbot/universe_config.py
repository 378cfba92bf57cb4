"""Asset universe loaded from assets.yaml.

Supports:
- A list of crypto and forex assets, each with an optional display rank
- Disabling an asset without deleting it (enabled: false)
- Backward compatible: no YAML file = built-in default universe
"""

import logging
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, model_validator

from sarcore.models import AssetCategory, AssetSpec

logger = logging.getLogger(__name__)


class AssetEntry(BaseModel):
    """A single asset entry in the YAML config."""

    name: str
    category: AssetCategory
    rank: int | None = None
    enabled: bool = True

    def to_spec(self) -> AssetSpec:
        return AssetSpec(name=self.name, category=self.category, rank=self.rank)


DEFAULT_ASSETS: tuple[AssetEntry, ...] = (
    AssetEntry(name="BTCUSD_otc", category=AssetCategory.CRYPTO, rank=1),
    AssetEntry(name="ETHUSD_otc", category=AssetCategory.CRYPTO, rank=2),
    AssetEntry(name="LTCUSD_otc", category=AssetCategory.CRYPTO, rank=3),
    AssetEntry(name="EURUSD_otc", category=AssetCategory.FOREX, rank=1),
    AssetEntry(name="GBPUSD_otc", category=AssetCategory.FOREX, rank=2),
    AssetEntry(name="USDJPY_otc", category=AssetCategory.FOREX, rank=3),
)


class UniverseConfig(BaseModel):
    """Top-level assets.yaml configuration."""

    assets: list[AssetEntry] = list(DEFAULT_ASSETS)

    @model_validator(mode="after")
    def _validate(self):
        names = [a.name for a in self.assets]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate asset names: {duplicates}")
        return self

    def get_specs(self) -> list[AssetSpec]:
        """Enabled assets in file order."""
        return [a.to_spec() for a in self.assets if a.enabled]


_DEFAULT_PATH = Path(__file__).parent.parent / "assets.yaml"


def load_universe_config(path: Path | None = None) -> UniverseConfig:
    """Load the asset universe from YAML.

    Falls back to the built-in default universe if the file doesn't exist.
    """
    config_path = path or _DEFAULT_PATH

    # Load .env next to the YAML so settings can be overridden locally
    env_path = config_path.parent / ".env"
    load_dotenv(env_path, override=False)

    if not config_path.exists():
        logger.info(
            "No assets.yaml found at %s, using default universe",
            config_path,
        )
        return UniverseConfig()

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    config = UniverseConfig(**raw)
    logger.info(
        "Loaded asset universe: %d assets (%d enabled)",
        len(config.assets),
        len(config.get_specs()),
    )
    return config
