"""
Structured journal: append-only JSON lines. One record per trade, rejected fill,
open position left after a run, and aborted partition.
"""

import json
from dataclasses import fields, is_dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any

from fifo_core.contracts import FillRejection, OpenPosition, PartitionFailure, Trade


def _serialize(obj: Any) -> Any:
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, timedelta):
        return obj.total_seconds()
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: _serialize(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, dict):
        return {k: _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(x) for x in obj]
    return obj


class JournalWriter:
    """Append-only journal. Each line is a JSON object with event type and payload."""

    def __init__(self, path: str | Path, *, echo_stdout: bool = False) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._echo = echo_stdout

    def _write(self, event_type: str, payload: dict) -> None:
        record = {"ts_utc": datetime.now(timezone.utc).isoformat(), "event": event_type, **payload}
        line = json.dumps(_serialize(record)) + "\n"
        with open(self._path, "a") as f:
            f.write(line)
        if self._echo:
            print(line.rstrip())

    def trade(self, trade: Trade, **extra: Any) -> None:
        payload = _serialize(trade)
        payload["net_pnl"] = str(trade.net_pnl)
        payload["time_in_position_s"] = trade.time_in_position_seconds
        self._write("trade", {**payload, **extra})

    def rejection(self, rejection: FillRejection, source: str = "", **extra: Any) -> None:
        self._write("fill_rejected", {**_serialize(rejection), "source": source, **extra})

    def open_position(self, position: OpenPosition, **extra: Any) -> None:
        self._write(
            "open_position",
            {
                "account_id": position.account_id,
                "symbol": position.symbol,
                "side": position.side.value,
                "quantity": position.quantity,
                "average_price": str(position.average_price),
                "lots": [
                    {"fill_id": lot.fill_id, "quantity": lot.remaining_quantity, "price": str(lot.price)}
                    for lot in position.lots
                ],
                **extra,
            },
        )

    def partition_failure(self, failure: PartitionFailure, **extra: Any) -> None:
        self._write("partition_failed", {**_serialize(failure), **extra})
