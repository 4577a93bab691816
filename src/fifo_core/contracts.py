"""
Data contracts for fifo-core: Fill, InstrumentSpec, OpenLot, Trade and result types.

fifo-core consumes normalized Fills plus instrument reference data and produces
round-trip Trades. No I/O; these are plain dataclasses. Money and prices are
Decimal throughout.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum


class Side(str, Enum):
    """Direction of one executed fill."""

    BUY = "BUY"
    SELL = "SELL"

    @property
    def sign(self) -> int:
        return 1 if self is Side.BUY else -1


class PositionSide(str, Enum):
    """Direction of an open position (ledger side tag) and of a closed Trade."""

    FLAT = "FLAT"
    LONG = "LONG"
    SHORT = "SHORT"

    @classmethod
    def opened_by(cls, side: Side) -> PositionSide:
        return cls.LONG if side is Side.BUY else cls.SHORT

    def closed_by(self, side: Side) -> bool:
        """True when a fill on *side* reduces a position on this side."""
        return (self is PositionSide.LONG and side is Side.SELL) or (
            self is PositionSide.SHORT and side is Side.BUY
        )


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Fill:
    """One executed order event at a single price, as produced by a normalizer.

    Fields are not coerced on construction; ``validate_fill`` decides whether
    the record is usable. ``sequence`` is the ingestion sequence number used to
    break timestamp ties; fills without one tie-break on ``fill_id``.
    """

    account_id: str
    symbol: str
    side: Side
    quantity: int
    price: Decimal
    timestamp: datetime
    commission: Decimal
    fill_id: str
    sequence: int | None = None

    @property
    def sort_key(self) -> tuple[datetime, int, str]:
        """Total processing order within a partition, independent of input order."""
        return (self.timestamp, -1 if self.sequence is None else self.sequence, self.fill_id)


@dataclass(frozen=True)
class InstrumentSpec:
    """Contract economics for one root symbol.

    Either ``multiplier`` (value of one full point) or the ``tick_size`` /
    ``tick_value`` pair must be given. When both are present the tick pair
    wins for P&L.
    """

    symbol_prefix: str
    multiplier: Decimal | None = None
    tick_size: Decimal | None = None
    tick_value: Decimal | None = None
    description: str = ""
    is_default: bool = False

    def __post_init__(self) -> None:
        if not self.symbol_prefix:
            raise ValueError("InstrumentSpec requires a non-empty symbol_prefix")
        if (self.tick_size is None) != (self.tick_value is None):
            raise ValueError(
                f"{self.symbol_prefix}: tick_size and tick_value must be given together"
            )
        if self.multiplier is None and self.tick_size is None:
            raise ValueError(
                f"{self.symbol_prefix}: either multiplier or tick_size/tick_value is required"
            )
        if self.tick_size is not None and self.tick_size <= 0:
            raise ValueError(f"{self.symbol_prefix}: tick_size must be positive")
        if self.tick_value is not None and self.tick_value <= 0:
            raise ValueError(f"{self.symbol_prefix}: tick_value must be positive")
        if self.multiplier is not None and self.multiplier <= 0:
            raise ValueError(f"{self.symbol_prefix}: multiplier must be positive")
        if self.multiplier is not None and self.tick_size is not None:
            implied = self.tick_value / self.tick_size  # type: ignore[operator]
            if implied != self.multiplier:
                raise ValueError(
                    f"{self.symbol_prefix}: multiplier {self.multiplier} disagrees with "
                    f"tick_value / tick_size = {implied}"
                )

    @property
    def has_ticks(self) -> bool:
        return self.tick_size is not None and self.tick_value is not None

    @property
    def effective_multiplier(self) -> Decimal:
        """Value of one full point of price movement."""
        if self.multiplier is not None:
            return self.multiplier
        return self.tick_value / self.tick_size  # type: ignore[operator]

    @classmethod
    def default(cls, root: str) -> InstrumentSpec:
        """Fallback spec for an unregistered symbol: multiplier 1, flagged."""
        return cls(symbol_prefix=root, multiplier=Decimal(1), is_default=True)


# ---------------------------------------------------------------------------
# Ledger state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerKey:
    account_id: str
    symbol: str


@dataclass
class OpenLot:
    """A still-open quantity acquired by one fill. Owned by a LotQueue.

    ``remaining_commission`` is the unallocated part of the originating fill's
    commission; consumption takes ``commission_per_unit * matched`` and the
    final consumption takes the exact remainder.
    """

    side: PositionSide
    remaining_quantity: int
    price: Decimal
    timestamp: datetime
    fill_id: str
    sequence: int
    remaining_commission: Decimal

    @property
    def commission_per_unit(self) -> Decimal:
        if self.remaining_quantity <= 0:
            return Decimal(0)
        return self.remaining_commission / self.remaining_quantity

    def take_commission(self, quantity: int) -> Decimal:
        """Allocated commission for consuming *quantity* units (does not mutate)."""
        if quantity >= self.remaining_quantity:
            return self.remaining_commission
        return self.remaining_commission * quantity / self.remaining_quantity


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Trade:
    """One matched entry/exit pair. Created once, never mutated.

    ``pnl`` is gross; ``commission`` is the allocated entry + exit commission.
    ``default_multiplier`` marks trades priced with the multiplier=1 fallback.
    """

    id: str
    account_id: str
    instrument: str
    symbol: str
    side: PositionSide
    quantity: int
    entry_price: Decimal
    close_price: Decimal
    entry_date: datetime
    close_date: datetime
    pnl: Decimal
    commission: Decimal
    ticks: Decimal | None
    points: Decimal
    entry_fill_ids: tuple[str, ...]
    close_fill_ids: tuple[str, ...]
    default_multiplier: bool = False

    @property
    def time_in_position(self) -> timedelta:
        return self.close_date - self.entry_date

    @property
    def time_in_position_seconds(self) -> float:
        return self.time_in_position.total_seconds()

    @property
    def net_pnl(self) -> Decimal:
        return self.pnl - self.commission


@dataclass(frozen=True)
class FillRejection:
    """A fill refused at ingestion. Data-quality error value, not an exception."""

    fill_id: str
    account_id: str
    sequence: int
    reason: str


@dataclass(frozen=True)
class OpenPosition:
    """Snapshot of a non-flat ledger entry after matching."""

    account_id: str
    symbol: str
    side: PositionSide
    quantity: int
    average_price: Decimal
    lots: tuple[OpenLot, ...]

    @property
    def signed_quantity(self) -> int:
        return self.quantity if self.side is PositionSide.LONG else -self.quantity


@dataclass(frozen=True)
class PartitionFailure:
    """An (account, symbol) partition aborted by a ledger inconsistency."""

    account_id: str
    symbol: str
    message: str


@dataclass(frozen=True)
class ReconstructionStats:
    total_fills: int
    accepted_fills: int
    rejected_fills: int
    total_trades: int
    gross_pnl: Decimal
    commission: Decimal
    winners: int
    losers: int
    open_lots: int
    low_confidence_trades: int

    @property
    def net_pnl(self) -> Decimal:
        return self.gross_pnl - self.commission


@dataclass
class ReconstructionResult:
    """Everything one ``reconstruct`` run produced."""

    trades: list[Trade] = field(default_factory=list)
    rejections: list[FillRejection] = field(default_factory=list)
    open_positions: list[OpenPosition] = field(default_factory=list)
    failures: list[PartitionFailure] = field(default_factory=list)
    unknown_symbols: list[str] = field(default_factory=list)
    total_fills: int = 0

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def statistics(self) -> ReconstructionStats:
        gross = sum((t.pnl for t in self.trades), Decimal(0))
        commission = sum((t.commission for t in self.trades), Decimal(0))
        return ReconstructionStats(
            total_fills=self.total_fills,
            accepted_fills=self.total_fills - len(self.rejections),
            rejected_fills=len(self.rejections),
            total_trades=len(self.trades),
            gross_pnl=gross,
            commission=commission,
            winners=sum(1 for t in self.trades if t.net_pnl > 0),
            losers=sum(1 for t in self.trades if t.net_pnl < 0),
            open_lots=sum(len(p.lots) for p in self.open_positions),
            low_confidence_trades=sum(1 for t in self.trades if t.default_multiplier),
        )
