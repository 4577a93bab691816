"""
Position Ledger: one FIFO queue of open lots per (account, symbol).

A LotQueue is the ledger value for a single key: a side tag plus lots in
arrival order. PositionLedger is the owned map from LedgerKey to LotQueue.
Averaging is read-time only; lots are never merged.
"""

from __future__ import annotations

from collections import deque
from decimal import Decimal
from typing import Iterator

from fifo_core.contracts import LedgerKey, OpenLot, OpenPosition, PositionSide


class LedgerInconsistencyError(RuntimeError):
    """The ledger broke one of its own invariants. A matcher bug, not bad input."""


class LotQueue:
    """Open lots for one (account, symbol), oldest first."""

    def __init__(self, key: LedgerKey) -> None:
        self.key = key
        self.side = PositionSide.FLAT
        self._lots: deque[OpenLot] = deque()

    def __len__(self) -> int:
        return len(self._lots)

    def __iter__(self) -> Iterator[OpenLot]:
        return iter(self._lots)

    @property
    def is_flat(self) -> bool:
        return self.side is PositionSide.FLAT

    @property
    def open_quantity(self) -> int:
        return sum(lot.remaining_quantity for lot in self._lots)

    @property
    def signed_quantity(self) -> int:
        qty = self.open_quantity
        return -qty if self.side is PositionSide.SHORT else qty

    def average_price(self) -> Decimal:
        """Quantity-weighted average entry price of the open lots (display only)."""
        qty = self.open_quantity
        if qty == 0:
            return Decimal(0)
        notional = sum((lot.price * lot.remaining_quantity for lot in self._lots), Decimal(0))
        return notional / qty

    def push(self, lot: OpenLot) -> None:
        """Append a lot. Opens the position if flat; must agree with the side otherwise."""
        if lot.remaining_quantity <= 0:
            raise LedgerInconsistencyError(
                f"{self.key}: refusing to open lot {lot.fill_id} with quantity {lot.remaining_quantity}"
            )
        if lot.side is PositionSide.FLAT:
            raise LedgerInconsistencyError(f"{self.key}: lot {lot.fill_id} has no side")
        if self.is_flat:
            if self._lots:
                raise LedgerInconsistencyError(f"{self.key}: FLAT ledger still holds {len(self._lots)} lots")
            self.side = lot.side
        elif lot.side is not self.side:
            raise LedgerInconsistencyError(
                f"{self.key}: {lot.side.value} lot {lot.fill_id} pushed onto {self.side.value} position"
            )
        self._lots.append(lot)

    def oldest(self) -> OpenLot:
        if not self._lots:
            raise LedgerInconsistencyError(f"{self.key}: peek on empty queue ({self.side.value})")
        return self._lots[0]

    def consume(self, quantity: int) -> tuple[OpenLot, Decimal]:
        """Take *quantity* from the oldest lot.

        Returns the lot (before removal, with its remaining quantity already reduced)
        and the commission allocated to the consumed units. Pops the lot when it
        reaches zero and goes FLAT when the queue empties.
        """
        lot = self.oldest()
        if quantity <= 0 or quantity > lot.remaining_quantity:
            raise LedgerInconsistencyError(
                f"{self.key}: cannot consume {quantity} from lot {lot.fill_id} "
                f"with {lot.remaining_quantity} remaining"
            )
        commission = lot.take_commission(quantity)
        lot.remaining_quantity -= quantity
        lot.remaining_commission -= commission
        if lot.remaining_quantity == 0:
            self._lots.popleft()
            if not self._lots:
                self.side = PositionSide.FLAT
        return lot, commission

    def check(self) -> None:
        """Assert structural invariants; raises LedgerInconsistencyError."""
        if self.is_flat != (not self._lots):
            raise LedgerInconsistencyError(
                f"{self.key}: side {self.side.value} with {len(self._lots)} open lots"
            )
        for lot in self._lots:
            if lot.remaining_quantity <= 0:
                raise LedgerInconsistencyError(f"{self.key}: exhausted lot {lot.fill_id} left in queue")
            if lot.side is not self.side:
                raise LedgerInconsistencyError(
                    f"{self.key}: {lot.side.value} lot {lot.fill_id} in {self.side.value} queue"
                )
            if lot.remaining_commission < 0:
                raise LedgerInconsistencyError(f"{self.key}: lot {lot.fill_id} over-allocated commission")

    def snapshot(self) -> OpenPosition | None:
        if self.is_flat:
            return None
        return OpenPosition(
            account_id=self.key.account_id,
            symbol=self.key.symbol,
            side=self.side,
            quantity=self.open_quantity,
            average_price=self.average_price(),
            lots=tuple(
                OpenLot(
                    side=lot.side,
                    remaining_quantity=lot.remaining_quantity,
                    price=lot.price,
                    timestamp=lot.timestamp,
                    fill_id=lot.fill_id,
                    sequence=lot.sequence,
                    remaining_commission=lot.remaining_commission,
                )
                for lot in self._lots
            ),
        )


class PositionLedger:
    """Owned map (account_id, symbol) -> LotQueue. Keys never span accounts."""

    def __init__(self) -> None:
        self._books: dict[LedgerKey, LotQueue] = {}

    def __len__(self) -> int:
        return len(self._books)

    def __contains__(self, key: LedgerKey) -> bool:
        return key in self._books

    def book(self, key: LedgerKey) -> LotQueue:
        queue = self._books.get(key)
        if queue is None:
            queue = LotQueue(key)
            self._books[key] = queue
        return queue

    def get(self, key: LedgerKey) -> LotQueue | None:
        return self._books.get(key)

    def keys(self) -> list[LedgerKey]:
        return list(self._books)

    def open_positions(self) -> list[OpenPosition]:
        out: list[OpenPosition] = []
        for key in sorted(self._books, key=lambda k: (k.account_id, k.symbol)):
            snap = self._books[key].snapshot()
            if snap is not None:
                out.append(snap)
        return out
