"""
FIFO Matcher: consume time-ordered fills for one (account, symbol) partition,
update its LotQueue, and emit a Trade for every offset of open quantity.

Per fill:
  flat or same direction  -> push a new lot, no trade
  opposite direction      -> consume oldest lots first, one Trade per lot touched;
                             any leftover after the queue empties opens a reversed lot
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from fifo_core.contracts import Fill, LedgerKey, OpenLot, PositionSide, Trade
from fifo_core.identity import trade_id
from fifo_core.instruments import InstrumentRegistry, root_symbol
from fifo_core.ledger import LedgerInconsistencyError, LotQueue
from fifo_core.pnl import compute_pnl

logger = logging.getLogger("fifo.matcher")


class PartitionRoutingError(ValueError):
    """A fill reached a partition it does not belong to. Caller bug; fail fast."""


class FillOrderError(ValueError):
    """Fills were fed to a partition out of (timestamp, sequence, fill_id) order."""


class FifoMatcher:
    """Matching state machine for exactly one LedgerKey.

    The matcher owns its LotQueue for the whole run; nothing else mutates it.
    """

    def __init__(
        self,
        key: LedgerKey,
        registry: InstrumentRegistry,
        queue: LotQueue | None = None,
    ) -> None:
        self.key = key
        self.queue = queue if queue is not None else LotQueue(key)
        if self.queue.key != key:
            raise PartitionRoutingError(f"queue for {self.queue.key} handed to matcher for {key}")
        self.spec = registry.lookup(key.symbol)
        self.instrument = root_symbol(key.symbol) if self.spec.is_default else self.spec.symbol_prefix.upper()
        self._net_signed = self.queue.signed_quantity
        self._processed = 0
        self._last: tuple[datetime, int, str] | None = None

    def process(self, fill: Fill) -> list[Trade]:
        """Apply one fill. Returns the trades it closed (possibly several, possibly none)."""
        self._route_check(fill)
        sequence = fill.sequence if fill.sequence is not None else self._processed
        self._order_check(fill)
        self._processed += 1

        queue = self.queue
        trades: list[Trade] = []

        if queue.is_flat or not queue.side.closed_by(fill.side):
            queue.push(self._lot(fill, fill.quantity, fill.commission, sequence))
        else:
            closing_side = queue.side
            remaining = fill.quantity
            remaining_commission = fill.commission
            while remaining > 0:
                if queue.is_flat:
                    # Reversal: exit exceeded the whole book.
                    queue.push(self._lot(fill, remaining, remaining_commission, sequence))
                    logger.debug(
                        "%s reversed to %s %d by fill %s",
                        self.key, queue.side.value, remaining, fill.fill_id,
                    )
                    break
                matched = min(queue.oldest().remaining_quantity, remaining)
                if matched == remaining:
                    exit_commission = remaining_commission
                else:
                    exit_commission = remaining_commission * matched / remaining
                lot, entry_commission = queue.consume(matched)
                remaining -= matched
                remaining_commission -= exit_commission
                trades.append(
                    self._trade(lot, fill, matched, closing_side, entry_commission + exit_commission)
                )

        self._net_signed += fill.side.sign * fill.quantity
        self._verify()
        return trades

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _route_check(self, fill: Fill) -> None:
        if fill.account_id != self.key.account_id:
            raise PartitionRoutingError(
                f"fill {fill.fill_id} for account {fill.account_id!r} routed to "
                f"partition of account {self.key.account_id!r}"
            )
        if fill.symbol != self.key.symbol:
            raise PartitionRoutingError(
                f"fill {fill.fill_id} for symbol {fill.symbol!r} routed to "
                f"partition of symbol {self.key.symbol!r}"
            )

    def _order_check(self, fill: Fill) -> None:
        current = fill.sort_key
        if self._last is not None and current < self._last:
            raise FillOrderError(
                f"{self.key}: fill {fill.fill_id} at {fill.timestamp.isoformat()} arrived after "
                f"fill {self._last[2]} at {self._last[0].isoformat()}"
            )
        self._last = current

    def _verify(self) -> None:
        self.queue.check()
        if self.queue.signed_quantity != self._net_signed:
            raise LedgerInconsistencyError(
                f"{self.key}: open quantity {self.queue.signed_quantity} != "
                f"net fill quantity {self._net_signed}"
            )

    @staticmethod
    def _lot(fill: Fill, quantity: int, commission: Decimal, sequence: int) -> OpenLot:
        return OpenLot(
            side=PositionSide.opened_by(fill.side),
            remaining_quantity=quantity,
            price=fill.price,
            timestamp=fill.timestamp,
            fill_id=fill.fill_id,
            sequence=sequence,
            remaining_commission=commission,
        )

    def _trade(
        self,
        lot: OpenLot,
        exit_fill: Fill,
        quantity: int,
        side: PositionSide,
        commission: Decimal,
    ) -> Trade:
        pnl = compute_pnl(lot.price, exit_fill.price, quantity, side, self.spec)
        entry_ids = (lot.fill_id,)
        close_ids = (exit_fill.fill_id,)
        return Trade(
            id=trade_id(
                self.key.account_id,
                self.instrument,
                entry_ids,
                close_ids,
                lot.timestamp,
                exit_fill.timestamp,
                quantity,
            ),
            account_id=self.key.account_id,
            instrument=self.instrument,
            symbol=self.key.symbol,
            side=side,
            quantity=quantity,
            entry_price=lot.price,
            close_price=exit_fill.price,
            entry_date=lot.timestamp,
            close_date=exit_fill.timestamp,
            pnl=pnl.gross_pnl,
            commission=commission,
            ticks=pnl.ticks,
            points=pnl.points,
            entry_fill_ids=entry_ids,
            close_fill_ids=close_ids,
            default_multiplier=self.spec.is_default,
        )


def match_partition(
    key: LedgerKey,
    fills: Iterable[Fill],
    registry: InstrumentRegistry,
    queue: LotQueue | None = None,
) -> tuple[list[Trade], LotQueue]:
    """Match one partition's already-sorted fills. Returns trades and the final queue."""
    matcher = FifoMatcher(key, registry, queue)
    trades: list[Trade] = []
    for fill in fills:
        trades.extend(matcher.process(fill))
    return trades, matcher.queue
