"""
Persist and load reconstructed trades (SQLite). Upsert by trade id.

Decimals are stored as TEXT so stored P&L round-trips exactly. Timestamps in UTC.
"""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Sequence

from fifo_core.contracts import PositionSide, Trade

logger = logging.getLogger("fifo.store")

_COLUMNS = (
    "id, account_id, instrument, symbol, side, quantity, entry_price, close_price, "
    "entry_ts_utc, close_ts_utc, pnl, commission, ticks, points, "
    "entry_fill_ids, close_fill_ids, default_multiplier"
)


def _utc_ts(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _parse_ts(text: str) -> datetime:
    ts = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class TradeStore:
    """SQLite-backed trade storage. One file per path."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self._path))

    def _init_schema(self) -> None:
        with self._conn() as c:
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS trades (
                    id TEXT PRIMARY KEY,
                    account_id TEXT NOT NULL,
                    instrument TEXT NOT NULL,
                    symbol TEXT NOT NULL,
                    side TEXT NOT NULL,
                    quantity INTEGER NOT NULL,
                    entry_price TEXT NOT NULL,
                    close_price TEXT NOT NULL,
                    entry_ts_utc TEXT NOT NULL,
                    close_ts_utc TEXT NOT NULL,
                    pnl TEXT NOT NULL,
                    commission TEXT NOT NULL,
                    ticks TEXT,
                    points TEXT NOT NULL,
                    entry_fill_ids TEXT NOT NULL,
                    close_fill_ids TEXT NOT NULL,
                    default_multiplier INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            c.execute("CREATE INDEX IF NOT EXISTS idx_trades_account ON trades(account_id, close_ts_utc)")

    def upsert_trades(self, trades: Sequence[Trade]) -> int:
        """Insert or replace trades by id. Returns how many ids were new."""
        with self._conn() as c:
            before = c.execute("SELECT COUNT(*) FROM trades").fetchone()[0]
            c.executemany(
                f"INSERT OR REPLACE INTO trades ({_COLUMNS}) VALUES "
                "(?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (
                        t.id,
                        t.account_id,
                        t.instrument,
                        t.symbol,
                        t.side.value,
                        t.quantity,
                        str(t.entry_price),
                        str(t.close_price),
                        _utc_ts(t.entry_date).isoformat(),
                        _utc_ts(t.close_date).isoformat(),
                        str(t.pnl),
                        str(t.commission),
                        None if t.ticks is None else str(t.ticks),
                        str(t.points),
                        json.dumps(list(t.entry_fill_ids)),
                        json.dumps(list(t.close_fill_ids)),
                        int(t.default_multiplier),
                    )
                    for t in trades
                ],
            )
            after = c.execute("SELECT COUNT(*) FROM trades").fetchone()[0]
        inserted = after - before
        logger.info("Upserted %d trades (%d new)", len(trades), inserted)
        return inserted

    def get_trades(
        self,
        *,
        account_id: str | None = None,
        instrument: str | None = None,
        limit: int | None = None,
    ) -> list[Trade]:
        """Return trades in ascending close time."""
        with self._conn() as c:
            q = f"SELECT {_COLUMNS} FROM trades WHERE 1 = 1"
            params: list = []
            if account_id is not None:
                q += " AND account_id = ?"
                params.append(account_id)
            if instrument is not None:
                q += " AND instrument = ?"
                params.append(instrument.upper())
            q += " ORDER BY close_ts_utc ASC, id ASC"
            if limit is not None:
                q += " LIMIT ?"
                params.append(limit)
            rows = c.execute(q, params).fetchall()
        return [self._row_to_trade(r) for r in rows]

    def count_trades(self, account_id: str | None = None) -> int:
        with self._conn() as c:
            if account_id is None:
                row = c.execute("SELECT COUNT(*) FROM trades").fetchone()
            else:
                row = c.execute("SELECT COUNT(*) FROM trades WHERE account_id = ?", (account_id,)).fetchone()
        return row[0] if row else 0

    @staticmethod
    def _row_to_trade(row: tuple) -> Trade:
        (
            trade_id, account_id, instrument, symbol, side, qty, entry_px, close_px,
            entry_ts, close_ts, pnl, commission, ticks, points, entry_ids, close_ids, default_mult,
        ) = row
        return Trade(
            id=trade_id,
            account_id=account_id,
            instrument=instrument,
            symbol=symbol,
            side=PositionSide(side),
            quantity=qty,
            entry_price=Decimal(entry_px),
            close_price=Decimal(close_px),
            entry_date=_parse_ts(entry_ts),
            close_date=_parse_ts(close_ts),
            pnl=Decimal(pnl),
            commission=Decimal(commission),
            ticks=None if ticks is None else Decimal(ticks),
            points=Decimal(points),
            entry_fill_ids=tuple(json.loads(entry_ids)),
            close_fill_ids=tuple(json.loads(close_ids)),
            default_multiplier=bool(default_mult),
        )
