"""Tests for domain models."""

import pytest

from sarcore.models import (
    AssetCategory,
    AssetStatus,
    BotSnapshot,
    MonitoredAsset,
    SarDirection,
    TradeDirection,
    TradeRecord,
    TradeResult,
    TradeStats,
    confluence,
)

L = SarDirection.LONG
S = SarDirection.SHORT


def make_trade(direction: TradeDirection, entry: float = 100.0) -> TradeRecord:
    return TradeRecord(
        direction=direction,
        amount=1.0,
        asset="EURUSD_otc",
        duration_seconds=60,
        entry_price=entry,
    )


class TestConfluence:
    """All three timeframes present and identical."""

    @pytest.mark.parametrize(
        "directions, expected",
        [
            ((L, L, L), True),
            ((S, S, S), True),
            ((L, L, S), False),
            ((S, L, L), False),
            ((L, None, L), False),
            ((None, None, None), False),
        ],
    )
    def test_truth_table(self, directions, expected):
        assert confluence(*directions) is expected

        asset = MonitoredAsset(
            name="EURUSD_otc",
            category=AssetCategory.FOREX,
            sar1m=directions[0],
            sar5m=directions[1],
            sar15m=directions[2],
        )
        assert asset.confluence is expected
        assert asset.consensus == (directions[0] if expected else None)


class TestMonitoredAsset:
    """Defaults and wire format."""

    def test_defaults(self):
        asset = MonitoredAsset(name="BTCUSD_otc", category=AssetCategory.CRYPTO)

        assert asset.status == AssetStatus.MONITORING
        assert asset.percentage == 0
        assert asset.directions == (None, None, None)

    def test_camel_case_wire(self):
        asset = MonitoredAsset(
            name="BTCUSD_otc",
            category=AssetCategory.CRYPTO,
            sar1m=L,
            price_drop_percentage=-1.5,
        )
        wire = asset.to_wire()

        assert wire["sar1m"] == "long"
        assert wire["priceDropPercentage"] == -1.5
        assert wire["category"] == "crypto"
        assert "price_drop_percentage" not in wire

    def test_percentage_bounds(self):
        with pytest.raises(ValueError):
            MonitoredAsset(name="X", category=AssetCategory.FOREX, percentage=101)


class TestTradeSettlement:
    """Call wins on a rise, put on a fall, ties lose."""

    @pytest.mark.parametrize(
        "direction, exit_price, result",
        [
            (TradeDirection.CALL, 101.0, TradeResult.WIN),
            (TradeDirection.CALL, 99.0, TradeResult.LOSS),
            (TradeDirection.CALL, 100.0, TradeResult.LOSS),
            (TradeDirection.PUT, 99.0, TradeResult.WIN),
            (TradeDirection.PUT, 101.0, TradeResult.LOSS),
            (TradeDirection.PUT, 100.0, TradeResult.LOSS),
        ],
    )
    def test_result(self, direction, exit_price, result):
        trade = make_trade(direction)

        assert trade.settle(exit_price) is True
        assert trade.result == result
        assert trade.exit_price == exit_price

    def test_settles_once(self):
        trade = make_trade(TradeDirection.CALL)
        trade.settle(105.0)

        assert trade.settle(90.0) is False
        assert trade.result == TradeResult.WIN
        assert trade.exit_price == 105.0

    def test_new_trade_is_pending(self):
        trade = make_trade(TradeDirection.PUT)

        assert trade.is_pending
        assert trade.exit_price is None
        assert len(trade.id) == 32

    def test_wire_keys(self):
        wire = make_trade(TradeDirection.CALL).to_wire()

        assert wire["direction"] == "call"
        assert wire["result"] == "pending"
        assert {"entryPrice", "durationSeconds", "occurredAt", "sarSignalAtEntry"} <= set(wire)


class TestTradeStats:
    """Win rate over settled trades."""

    def test_win_rate(self):
        stats = TradeStats(wins=3, losses=1, total=5)

        assert stats.win_rate == pytest.approx(75.0)
        assert stats.to_wire() == {"wins": 3, "losses": 1, "total": 5, "winRate": 75.0}

    def test_empty(self):
        assert TradeStats().win_rate == 0.0


class TestBotSnapshot:
    """Published state."""

    def test_frozen(self):
        snapshot = BotSnapshot(running=True)
        with pytest.raises(ValueError):
            snapshot.running = False

    def test_wire(self):
        wire = BotSnapshot(current_price=1.25).to_wire()

        assert wire["currentPrice"] == 1.25
        assert wire["monitoredAssets"] == []
        assert wire["currentTrade"] is None
        assert "publishedAt" in wire
