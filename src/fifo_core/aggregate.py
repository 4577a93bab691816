"""
Read-time aggregation for display: fold the per-lot trades of one exit fill into a
single row with a quantity-weighted entry price. Never used by the matcher.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from fifo_core.contracts import Trade
from fifo_core.identity import trade_id


def combine_by_exit(trades: Iterable[Trade]) -> list[Trade]:
    """Merge trades that share account, symbol, side and close fill.

    The earliest entry date is kept; P&L, commission and quantity are summed;
    ``ticks`` is quantity-weighted. Output keeps the order of each group's first trade.
    """
    groups: dict[tuple, list[Trade]] = {}
    for t in trades:
        key = (t.account_id, t.symbol, t.side, t.close_fill_ids)
        groups.setdefault(key, []).append(t)

    out: list[Trade] = []
    for group in groups.values():
        if len(group) == 1:
            out.append(group[0])
            continue
        first = group[0]
        qty = sum(t.quantity for t in group)
        entry_price = sum((t.entry_price * t.quantity for t in group), Decimal(0)) / qty
        entry_ids = tuple(fid for t in group for fid in t.entry_fill_ids)
        entry_date = min(t.entry_date for t in group)
        ticks = None
        if all(t.ticks is not None for t in group):
            ticks = sum((t.ticks * t.quantity for t in group), Decimal(0)) / qty  # type: ignore[operator]
        points = sum((t.points * t.quantity for t in group), Decimal(0)) / qty
        out.append(
            Trade(
                id=trade_id(
                    first.account_id,
                    first.instrument,
                    entry_ids,
                    first.close_fill_ids,
                    entry_date,
                    first.close_date,
                    qty,
                ),
                account_id=first.account_id,
                instrument=first.instrument,
                symbol=first.symbol,
                side=first.side,
                quantity=qty,
                entry_price=entry_price,
                close_price=first.close_price,
                entry_date=entry_date,
                close_date=first.close_date,
                pnl=sum((t.pnl for t in group), Decimal(0)),
                commission=sum((t.commission for t in group), Decimal(0)),
                ticks=ticks,
                points=points,
                entry_fill_ids=entry_ids,
                close_fill_ids=first.close_fill_ids,
                default_multiplier=any(t.default_multiplier for t in group),
            )
        )
    return out
