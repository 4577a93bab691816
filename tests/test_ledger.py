"""Tests for LotQueue and PositionLedger invariants."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from fifo_core.contracts import LedgerKey, OpenLot, PositionSide
from fifo_core.ledger import LedgerInconsistencyError, LotQueue, PositionLedger

KEY = LedgerKey("ACC1", "ESZ5")
T0 = datetime(2024, 3, 1, 14, 0, tzinfo=timezone.utc)


def _lot(fill_id: str, qty: int, price: str = "100", side: PositionSide = PositionSide.LONG, commission: str = "0") -> OpenLot:
    return OpenLot(
        side=side,
        remaining_quantity=qty,
        price=Decimal(price),
        timestamp=T0,
        fill_id=fill_id,
        sequence=0,
        remaining_commission=Decimal(commission),
    )


def test_new_queue_is_flat() -> None:
    q = LotQueue(KEY)
    assert q.is_flat
    assert q.open_quantity == 0
    assert q.snapshot() is None


def test_push_sets_side() -> None:
    q = LotQueue(KEY)
    q.push(_lot("a", 2, side=PositionSide.SHORT))
    assert q.side is PositionSide.SHORT
    assert q.signed_quantity == -2


def test_push_opposite_side_raises() -> None:
    q = LotQueue(KEY)
    q.push(_lot("a", 2))
    with pytest.raises(LedgerInconsistencyError):
        q.push(_lot("b", 1, side=PositionSide.SHORT))


def test_push_zero_quantity_raises() -> None:
    q = LotQueue(KEY)
    with pytest.raises(LedgerInconsistencyError):
        q.push(_lot("a", 0))


def test_consume_oldest_first_and_go_flat() -> None:
    q = LotQueue(KEY)
    q.push(_lot("a", 2, "100"))
    q.push(_lot("b", 1, "102"))
    lot, _ = q.consume(2)
    assert lot.fill_id == "a"
    assert [l.fill_id for l in q] == ["b"]
    lot, _ = q.consume(1)
    assert lot.fill_id == "b"
    assert q.is_flat
    assert len(q) == 0


def test_consume_more_than_oldest_lot_raises() -> None:
    q = LotQueue(KEY)
    q.push(_lot("a", 2))
    with pytest.raises(LedgerInconsistencyError):
        q.consume(3)


def test_consume_from_empty_raises() -> None:
    with pytest.raises(LedgerInconsistencyError):
        LotQueue(KEY).consume(1)


def test_consume_allocates_commission_and_remainder() -> None:
    q = LotQueue(KEY)
    q.push(_lot("a", 4, commission="2.00"))
    _, c1 = q.consume(1)
    _, c2 = q.consume(3)
    assert c1 == Decimal("0.50")
    assert c2 == Decimal("1.50")


def test_average_price_is_quantity_weighted() -> None:
    q = LotQueue(KEY)
    q.push(_lot("a", 1, "100"))
    q.push(_lot("b", 3, "104"))
    assert q.average_price() == Decimal("103")


def test_snapshot_copies_lots() -> None:
    q = LotQueue(KEY)
    q.push(_lot("a", 3, "100"))
    snap = q.snapshot()
    q.consume(1)
    assert snap is not None
    assert snap.quantity == 3
    assert snap.lots[0].remaining_quantity == 3
    assert snap.signed_quantity == 3


def test_ledger_books_are_keyed_per_account() -> None:
    ledger = PositionLedger()
    a = ledger.book(LedgerKey("ACC1", "ESZ5"))
    b = ledger.book(LedgerKey("ACC2", "ESZ5"))
    assert a is not b
    assert ledger.book(LedgerKey("ACC1", "ESZ5")) is a
    assert len(ledger) == 2
    assert LedgerKey("ACC2", "ESZ5") in ledger
    assert ledger.get(LedgerKey("ACC3", "ESZ5")) is None


def test_ledger_open_positions_sorted_and_skip_flat() -> None:
    ledger = PositionLedger()
    ledger.book(LedgerKey("B", "ESZ5")).push(_lot("x", 1))
    ledger.book(LedgerKey("A", "NQZ5")).push(_lot("y", 2, side=PositionSide.SHORT))
    ledger.book(LedgerKey("A", "CLZ5"))
    positions = ledger.open_positions()
    assert [(p.account_id, p.symbol) for p in positions] == [("A", "NQZ5"), ("B", "ESZ5")]
    assert positions[0].signed_quantity == -2
