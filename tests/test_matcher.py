"""Tests for the per-partition FIFO matcher: scale-in/out, reversal, routing and ordering guards."""

from decimal import Decimal

import pytest

from fifo_core.contracts import LedgerKey, PositionSide, Side
from fifo_core.instruments import InstrumentRegistry
from fifo_core.ledger import LotQueue
from fifo_core.matcher import FifoMatcher, FillOrderError, PartitionRoutingError, match_partition


@pytest.fixture
def key() -> LedgerKey:
    return LedgerKey("ACC1", "XYZ")


class TestOpening:
    def test_first_fill_opens_long(self, key, registry, make_fill) -> None:
        m = FifoMatcher(key, registry)
        trades = m.process(make_fill("f1", Side.BUY, 3, "100", 0))
        assert trades == []
        assert m.queue.side is PositionSide.LONG
        assert m.queue.open_quantity == 3

    def test_first_fill_opens_short(self, key, registry, make_fill) -> None:
        m = FifoMatcher(key, registry)
        m.process(make_fill("f1", Side.SELL, 2, "100", 0))
        assert m.queue.side is PositionSide.SHORT
        assert m.queue.signed_quantity == -2

    def test_same_side_fill_adds_lot(self, key, registry, make_fill) -> None:
        m = FifoMatcher(key, registry)
        m.process(make_fill("f1", Side.BUY, 2, "100", 0))
        m.process(make_fill("f2", Side.BUY, 1, "102", 1))
        assert len(m.queue) == 2
        assert [lot.fill_id for lot in m.queue] == ["f1", "f2"]


class TestClosing:
    def test_scale_out_across_lots(self, key, registry, make_fill) -> None:
        trades, queue = match_partition(
            key,
            [
                make_fill("f1", Side.BUY, 2, "100", 0),
                make_fill("f2", Side.BUY, 1, "102", 1),
                make_fill("f3", Side.SELL, 3, "105", 2),
            ],
            registry,
        )
        assert len(trades) == 2
        assert trades[0].entry_fill_ids == ("f1",)
        assert trades[0].quantity == 2
        assert trades[0].pnl == Decimal("500")
        assert trades[1].entry_fill_ids == ("f2",)
        assert trades[1].quantity == 1
        assert trades[1].pnl == Decimal("150")
        assert all(t.close_fill_ids == ("f3",) for t in trades)
        assert queue.is_flat

    def test_partial_close_leaves_remainder_on_oldest_lot(self, key, registry, make_fill) -> None:
        m = FifoMatcher(key, registry)
        m.process(make_fill("f1", Side.BUY, 5, "100", 0))
        trades = m.process(make_fill("f2", Side.SELL, 2, "101", 1))
        assert len(trades) == 1
        assert trades[0].quantity == 2
        assert m.queue.oldest().remaining_quantity == 3
        assert m.queue.side is PositionSide.LONG

    def test_short_round_trip(self, key, registry, make_fill) -> None:
        m = FifoMatcher(key, registry)
        m.process(make_fill("f1", Side.SELL, 1, "100", 0))
        trades = m.process(make_fill("f2", Side.BUY, 1, "98", 1))
        assert trades[0].side is PositionSide.SHORT
        assert trades[0].points == Decimal("2")
        assert trades[0].pnl == Decimal("100")

    def test_reversal_opens_opposite_lot(self, registry, make_fill) -> None:
        key = LedgerKey("ACC1", "SPY")
        m = FifoMatcher(key, registry)
        m.process(make_fill("b1", Side.BUY, 5, "50", 0, symbol="SPY"))
        trades = m.process(make_fill("s1", Side.SELL, 8, "55", 1, symbol="SPY", commission="8"))
        assert len(trades) == 1
        assert trades[0].quantity == 5
        assert trades[0].pnl == Decimal("25")
        assert trades[0].commission == Decimal("5")
        assert m.queue.side is PositionSide.SHORT
        lots = list(m.queue)
        assert len(lots) == 1
        assert lots[0].fill_id == "s1"
        assert lots[0].remaining_quantity == 3
        assert lots[0].price == Decimal("55")
        assert lots[0].remaining_commission == Decimal("3")

    def test_commission_split_between_entry_and_exit(self, key, registry, make_fill) -> None:
        trades, _ = match_partition(
            key,
            [
                make_fill("f1", Side.BUY, 2, "100", 0, commission="2.00"),
                make_fill("f2", Side.BUY, 1, "102", 1, commission="1.00"),
                make_fill("f3", Side.SELL, 3, "105", 2, commission="3.00"),
            ],
            registry,
        )
        assert trades[0].commission == Decimal("4.00")
        assert trades[1].commission == Decimal("2.00")

    def test_uneven_commission_is_fully_allocated(self, key, registry, make_fill) -> None:
        fills = [make_fill("f1", Side.BUY, 3, "100", 0, commission="1.00")]
        fills += [make_fill(f"s{i}", Side.SELL, 1, "101", i + 1) for i in range(3)]
        trades, _ = match_partition(key, fills, registry)
        assert len(trades) == 3
        assert sum((t.commission for t in trades), Decimal(0)) == Decimal("1.00")


class TestGuards:
    def test_wrong_account_is_rejected(self, key, registry, make_fill) -> None:
        m = FifoMatcher(key, registry)
        with pytest.raises(PartitionRoutingError):
            m.process(make_fill("f1", Side.BUY, 1, "100", 0, account_id="ACC2"))

    def test_wrong_symbol_is_rejected(self, key, registry, make_fill) -> None:
        m = FifoMatcher(key, registry)
        with pytest.raises(PartitionRoutingError):
            m.process(make_fill("f1", Side.BUY, 1, "100", 0, symbol="SPY"))

    def test_queue_for_other_key_is_rejected(self, key, registry) -> None:
        with pytest.raises(PartitionRoutingError):
            FifoMatcher(key, registry, LotQueue(LedgerKey("ACC2", "XYZ")))

    def test_out_of_order_fill_is_rejected(self, key, registry, make_fill) -> None:
        m = FifoMatcher(key, registry)
        m.process(make_fill("f2", Side.BUY, 1, "100", 5, sequence=2))
        with pytest.raises(FillOrderError):
            m.process(make_fill("f1", Side.BUY, 1, "100", 1, sequence=1))

    def test_equal_timestamps_must_arrive_in_fill_id_order(self, key, registry, make_fill) -> None:
        m = FifoMatcher(key, registry)
        m.process(make_fill("f2", Side.BUY, 1, "100", 0))
        with pytest.raises(FillOrderError):
            m.process(make_fill("f1", Side.BUY, 1, "100", 0))


class TestInstrumentResolution:
    def test_tick_based_pnl(self, registry, make_fill) -> None:
        key = LedgerKey("ACC1", "ESZ5")
        trades, _ = match_partition(
            key,
            [
                make_fill("f1", Side.BUY, 1, "4500.00", 0, symbol="ESZ5"),
                make_fill("f2", Side.SELL, 1, "4501.25", 1, symbol="ESZ5"),
            ],
            registry,
        )
        t = trades[0]
        assert t.instrument == "ES"
        assert t.symbol == "ESZ5"
        assert t.ticks == Decimal("5")
        assert t.pnl == Decimal("62.5")
        assert t.default_multiplier is False

    def test_micro_contract_uses_longest_prefix(self, registry, make_fill) -> None:
        key = LedgerKey("ACC1", "MESZ5")
        trades, _ = match_partition(
            key,
            [
                make_fill("f1", Side.BUY, 2, "4500.00", 0, symbol="MESZ5"),
                make_fill("f2", Side.SELL, 2, "4501.00", 1, symbol="MESZ5"),
            ],
            registry,
        )
        assert trades[0].instrument == "MES"
        assert trades[0].pnl == Decimal("10")

    def test_unknown_symbol_flags_default_multiplier(self, make_fill) -> None:
        key = LedgerKey("ACC1", "FOOBAR")
        trades, _ = match_partition(
            key,
            [
                make_fill("f1", Side.BUY, 1, "10", 0, symbol="FOOBAR"),
                make_fill("f2", Side.SELL, 1, "12", 1, symbol="FOOBAR"),
            ],
            InstrumentRegistry(),
        )
        assert trades[0].instrument == "FOOBAR"
        assert trades[0].pnl == Decimal("2")
        assert trades[0].ticks is None
        assert trades[0].default_multiplier is True
