"""
Trade identity: deterministic ID from the trade's provenance, for upsert-based persistence.

Re-running reconstruction over the same (or an overlapping) fill set yields the
same IDs; no randomness and no wall-clock input.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from typing import Sequence


def _iso_utc(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat()


def trade_id(
    account_id: str,
    instrument: str,
    entry_fill_ids: Sequence[str],
    close_fill_ids: Sequence[str],
    entry_date: datetime,
    close_date: datetime,
    quantity: int,
) -> str:
    """SHA-256 hex digest over the trade's identifying fields."""
    parts = [
        account_id,
        instrument,
        ",".join(entry_fill_ids),
        ",".join(close_fill_ids),
        _iso_utc(entry_date),
        _iso_utc(close_date),
        str(quantity),
    ]
    # Unit separator keeps "a|b" + "c" distinct from "a" + "b|c".
    payload = "\x1f".join(parts).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()
