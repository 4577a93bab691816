"""
fifo-core: order-to-trade FIFO reconstruction engine.

No I/O, no network, no wall clock. Consumes normalized fills plus instrument
reference data, produces round-trip Trades. Deterministic and unit-testable.
"""

from fifo_core.aggregate import combine_by_exit
from fifo_core.contracts import (
    Fill,
    FillRejection,
    InstrumentSpec,
    LedgerKey,
    OpenLot,
    OpenPosition,
    PartitionFailure,
    PositionSide,
    ReconstructionResult,
    ReconstructionStats,
    Side,
    Trade,
)
from fifo_core.engine import reconstruct
from fifo_core.instruments import InstrumentRegistry, root_symbol
from fifo_core.ledger import LedgerInconsistencyError, LotQueue, PositionLedger
from fifo_core.matcher import FifoMatcher, FillOrderError, PartitionRoutingError
from fifo_core.pnl import PnLResult, compute_pnl

__all__ = [
    "combine_by_exit",
    "compute_pnl",
    "FifoMatcher",
    "Fill",
    "FillOrderError",
    "FillRejection",
    "InstrumentRegistry",
    "InstrumentSpec",
    "LedgerInconsistencyError",
    "LedgerKey",
    "LotQueue",
    "OpenLot",
    "OpenPosition",
    "PartitionFailure",
    "PartitionRoutingError",
    "PnLResult",
    "PositionLedger",
    "PositionSide",
    "reconstruct",
    "ReconstructionResult",
    "ReconstructionStats",
    "root_symbol",
    "Side",
    "Trade",
]
