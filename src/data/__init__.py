"""
Glue around fifo_core: read normalized fills from CSV, persist trades in SQLite.

Depends on fifo_core.contracts; no dependency from fifo_core back to data.
"""

from data.fill_reader import FillFileError, iter_fills, read_fills
from data.trade_store import TradeStore

__all__ = [
    "FillFileError",
    "iter_fills",
    "read_fills",
    "TradeStore",
]
