"""
Reconstruction entry point: Fill[] + InstrumentSpec[] -> ReconstructionResult.

Steps: reject malformed/duplicate fills, sort by (timestamp, sequence, fill_id),
partition by (account_id, symbol), match each partition with its own ledger,
collect trades and open positions.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable, Sequence

from fifo_core.contracts import (
    Fill,
    FillRejection,
    InstrumentSpec,
    LedgerKey,
    PartitionFailure,
    ReconstructionResult,
    Trade,
)
from fifo_core.instruments import InstrumentRegistry, root_symbol
from fifo_core.ledger import LedgerInconsistencyError, LotQueue, PositionLedger
from fifo_core.matcher import match_partition
from fifo_core.validation import validate_fill

logger = logging.getLogger("fifo.engine")


def _utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def prepare_fills(fills: Sequence[Fill]) -> tuple[list[Fill], list[FillRejection]]:
    """Validate, normalize and order a batch.

    Valid fills come back with UTC timestamps, sorted by ``Fill.sort_key``
    (timestamp, then supplied sequence, then fill_id), so the order does not depend
    on the order of the input. The later copy of a duplicated (account_id, fill_id)
    is rejected. Rejections report the supplied sequence, or the input position.
    """
    accepted: list[tuple[Fill, int]] = []
    rejections: list[FillRejection] = []
    for position, fill in enumerate(fills):
        sequence = fill.sequence if isinstance(fill.sequence, int) else None
        rejection = validate_fill(fill, position if sequence is None else sequence)
        if rejection is not None:
            rejections.append(rejection)
            continue
        accepted.append((replace(fill, timestamp=_utc(fill.timestamp), sequence=sequence), position))

    accepted.sort(key=lambda item: (item[0].sort_key, item[1]))

    seen: set[tuple[str, str]] = set()
    unique: list[Fill] = []
    for fill, position in accepted:
        ident = (fill.account_id, fill.fill_id)
        if ident in seen:
            rejections.append(
                FillRejection(
                    fill_id=fill.fill_id,
                    account_id=fill.account_id,
                    sequence=position if fill.sequence is None else fill.sequence,
                    reason="duplicate fill_id",
                )
            )
            continue
        seen.add(ident)
        unique.append(fill)

    rejections.sort(key=lambda r: r.sequence)
    for r in rejections:
        logger.warning("Rejected fill %s (account %s, seq %d): %s", r.fill_id, r.account_id, r.sequence, r.reason)
    return unique, rejections


def partition_fills(fills: Iterable[Fill]) -> dict[LedgerKey, list[Fill]]:
    """Group sorted fills by (account_id, symbol), preserving order within each group."""
    partitions: dict[LedgerKey, list[Fill]] = {}
    for fill in fills:
        partitions.setdefault(LedgerKey(fill.account_id, fill.symbol), []).append(fill)
    return partitions


def _run_partition(
    key: LedgerKey,
    fills: list[Fill],
    registry: InstrumentRegistry,
    queue: LotQueue,
    strict: bool,
) -> tuple[list[Trade], PartitionFailure | None]:
    try:
        trades, _ = match_partition(key, fills, registry, queue)
    except LedgerInconsistencyError as exc:
        if strict:
            raise
        logger.error("Partition %s/%s aborted: %s", key.account_id, key.symbol, exc)
        return [], PartitionFailure(key.account_id, key.symbol, str(exc))
    return trades, None


def reconstruct(
    fills: Sequence[Fill],
    instruments: InstrumentRegistry | Iterable[InstrumentSpec] | None = None,
    *,
    max_workers: int = 1,
    strict: bool = False,
) -> ReconstructionResult:
    """Rebuild round-trip trades from a batch of fills using FIFO matching.

    Parameters
    ----------
    fills:
        Normalized fills, any order, any number of accounts.
    instruments:
        Instrument reference data (registry or iterable of specs).
    max_workers:
        Partitions matched concurrently when > 1. Output is identical either way.
    strict:
        Re-raise LedgerInconsistencyError instead of recording a PartitionFailure.

    Raises
    ------
    LedgerInconsistencyError
        Only when *strict* is set.
    """
    registry = InstrumentRegistry.coerce(instruments)
    result = ReconstructionResult(total_fills=len(fills))

    ordered, result.rejections = prepare_fills(fills)
    partitions = partition_fills(ordered)
    keys = list(partitions)

    # Books are created up front; each partition then owns its queue exclusively.
    ledger = PositionLedger()
    books = {k: ledger.book(k) for k in keys}

    def run(k: LedgerKey) -> tuple[list[Trade], PartitionFailure | None]:
        return _run_partition(k, partitions[k], registry, books[k], strict)

    if max_workers > 1 and len(keys) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            outcomes = list(pool.map(run, keys))
    else:
        outcomes = [run(k) for k in keys]

    failed: set[LedgerKey] = set()
    exit_rank = {(f.account_id, f.fill_id): rank for rank, f in enumerate(ordered)}
    trades: list[tuple[tuple, Trade]] = []
    for key, (part_trades, failure) in zip(keys, outcomes):
        if failure is not None:
            result.failures.append(failure)
            failed.add(key)
            continue
        for emission, trade in enumerate(part_trades):
            rank = exit_rank[(trade.account_id, trade.close_fill_ids[0])]
            trades.append(((trade.close_date, rank, emission), trade))

    trades.sort(key=lambda item: item[0])
    result.trades = [t for _, t in trades]
    result.open_positions = [
        p for p in ledger.open_positions() if LedgerKey(p.account_id, p.symbol) not in failed
    ]

    unknown = sorted({root_symbol(k.symbol) for k in keys if registry.find(k.symbol) is None})
    for root in unknown:
        logger.warning("No instrument spec for %s; P&L uses multiplier 1 (low confidence)", root)
    result.unknown_symbols = unknown

    stats = result.statistics
    logger.info(
        "Reconstructed %d trades from %d fills (%d rejected, %d open lots, %d failed partitions)",
        stats.total_trades, stats.total_fills, stats.rejected_fills, stats.open_lots, len(result.failures),
    )
    return result
