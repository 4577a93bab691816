"""
Fill validation. Malformed fills are reported as FillRejection values so the
rest of the batch still matches.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from fifo_core.contracts import Fill, FillRejection, Side


def _finite_decimal(value: object) -> bool:
    return isinstance(value, Decimal) and value.is_finite()


def rejection_reason(fill: Fill) -> str | None:
    """Return why *fill* violates the normalizer contract, or None if it is usable."""
    if not isinstance(fill.account_id, str) or not fill.account_id.strip():
        return "missing account_id"
    if not isinstance(fill.symbol, str) or not fill.symbol.strip():
        return "missing symbol"
    if not isinstance(fill.fill_id, str) or not fill.fill_id.strip():
        return "missing fill_id"
    if not isinstance(fill.side, Side):
        return f"invalid side: {fill.side!r}"
    if isinstance(fill.quantity, bool) or not isinstance(fill.quantity, int):
        return f"quantity is not an integer: {fill.quantity!r}"
    if fill.quantity <= 0:
        return f"non-positive quantity: {fill.quantity}"
    if not _finite_decimal(fill.price):
        return f"non-finite or missing price: {fill.price!r}"
    if not isinstance(fill.timestamp, datetime):
        return f"unparseable timestamp: {fill.timestamp!r}"
    if not _finite_decimal(fill.commission):
        return f"non-finite or missing commission: {fill.commission!r}"
    if fill.commission < 0:
        return f"negative commission: {fill.commission}"
    return None


def validate_fill(fill: Fill, sequence: int) -> FillRejection | None:
    reason = rejection_reason(fill)
    if reason is None:
        return None
    return FillRejection(
        fill_id=str(fill.fill_id or ""),
        account_id=str(fill.account_id or ""),
        sequence=sequence,
        reason=reason,
    )
