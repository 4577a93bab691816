"""
P&L Calculator: matched quantity + entry/exit prices + InstrumentSpec -> gross P&L.

Pure function. Prefers the tick representation (ticks * tick_value * qty) when the
spec carries tick data; otherwise uses points * multiplier * qty.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from fifo_core.contracts import InstrumentSpec, PositionSide


@dataclass(frozen=True)
class PnLResult:
    gross_pnl: Decimal
    ticks: Decimal | None  # None when the instrument has no tick_size
    points: Decimal  # signed price difference in the trade's favour


def price_difference(entry_price: Decimal, exit_price: Decimal, side: PositionSide) -> Decimal:
    if side is PositionSide.LONG:
        return exit_price - entry_price
    if side is PositionSide.SHORT:
        return entry_price - exit_price
    raise ValueError(f"No price difference for a {side.value} position")


def compute_pnl(
    entry_price: Decimal,
    exit_price: Decimal,
    quantity: int,
    side: PositionSide,
    spec: InstrumentSpec,
) -> PnLResult:
    """Gross (pre-commission) P&L for *quantity* units closed at *exit_price*.

    Parameters
    ----------
    entry_price, exit_price:
        Prices in the instrument's native quote units.
    quantity:
        Matched quantity; must be positive.
    side:
        LONG or SHORT, the side of the position being closed.
    spec:
        Instrument economics.
    """
    if quantity <= 0:
        raise ValueError(f"quantity must be positive, got {quantity}")

    points = price_difference(entry_price, exit_price, side)

    if spec.has_ticks:
        ticks = points / spec.tick_size  # type: ignore[operator]
        gross = ticks * spec.tick_value * quantity  # type: ignore[operator]
        return PnLResult(gross_pnl=gross, ticks=ticks, points=points)

    gross = points * quantity * spec.effective_multiplier
    return PnLResult(gross_pnl=gross, ticks=None, points=points)
