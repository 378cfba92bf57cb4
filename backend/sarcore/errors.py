"""Domain errors raised across the control surface."""


class ControlError(Exception):
    """A control request the bot rejects in its current state."""


class TradeSlotBusyError(ControlError):
    """A trade was requested while another one is still pending."""

    def __init__(self, active_asset: str):
        self.active_asset = active_asset
        super().__init__(f"Trade already active on {active_asset}")
