"""In-memory store of the externally supplied readiness input."""

import logging

from sarcore.models import ReadinessInput

logger = logging.getLogger(__name__)


class ReadinessFeed:
    """Latest readiness input per asset, as pushed by the external controller."""

    def __init__(self):
        self._inputs: dict[str, ReadinessInput] = {}

    def update(self, asset: str, value: ReadinessInput) -> None:
        self._inputs[asset] = value
        logger.debug(f"Readiness {asset}: {value.percentage}% (drop={value.price_drop_percentage})")

    def get(self, asset: str) -> ReadinessInput | None:
        return self._inputs.get(asset)

    def remove(self, asset: str) -> None:
        self._inputs.pop(asset, None)
