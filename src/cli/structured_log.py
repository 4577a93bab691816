"""
Structured JSON event logger for import runs.

Emits one JSON object per line to stderr. Events are designed to be
parsed by log aggregators (Grafana Loki, CloudWatch, ELK).

Optional webhook: when configured, alert events (fill_rejected,
partition_failed, error) are POSTed to the URL.
"""

from __future__ import annotations

import json
import logging
import sys
import urllib.request
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("fifo.events")


class StructuredEventLogger:
    """Emit structured JSON events to stderr and optional webhook."""

    def __init__(
        self,
        source: str,
        *,
        enabled: bool = True,
        webhook_url: str = "",
        stream: Any = None,
    ) -> None:
        self._source = source
        self._enabled = enabled
        self._webhook_url = webhook_url.strip()
        self._stream = stream or sys.stderr
        self._ALERT_EVENTS = {
            "fill_rejected",
            "partition_failed",
            "error",
        }

    def _emit(self, event_type: str, **fields: Any) -> dict:
        record = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "event": event_type,
            "source": self._source,
            **fields,
        }
        if self._enabled:
            self._stream.write(json.dumps(record) + "\n")
            self._stream.flush()

        if self._webhook_url and event_type in self._ALERT_EVENTS:
            self._post_webhook(record)

        return record

    def _post_webhook(self, record: dict) -> None:
        try:
            data = json.dumps(record).encode("utf-8")
            req = urllib.request.Request(
                self._webhook_url,
                data=data,
                headers={"Content-Type": "application/json"},
                method="POST",
            )
            urllib.request.urlopen(req, timeout=5)
        except Exception as exc:
            logger.warning("Webhook POST failed: %s", exc)

    def import_start(self, fills: int, accounts: int) -> dict:
        return self._emit("import_start", fills=fills, accounts=accounts)

    def fill_rejected(self, fill_id: str, account_id: str, reason: str) -> dict:
        return self._emit(
            "fill_rejected",
            fill_id=fill_id,
            account_id=account_id,
            reason=reason,
        )

    def unknown_instrument(self, root: str) -> dict:
        return self._emit("unknown_instrument", instrument=root, multiplier="1")

    def trades_emitted(self, trades: int, gross_pnl: str, commission: str) -> dict:
        return self._emit(
            "trades_emitted",
            trades=trades,
            gross_pnl=gross_pnl,
            commission=commission,
        )

    def partition_failed(self, account_id: str, symbol: str, message: str) -> dict:
        return self._emit(
            "partition_failed",
            account_id=account_id,
            symbol=symbol,
            message=message,
        )

    def import_complete(self, trades: int, new_trades: int, open_positions: int, rejected: int) -> dict:
        return self._emit(
            "import_complete",
            trades=trades,
            new_trades=new_trades,
            open_positions=open_positions,
            rejected=rejected,
        )

    def error(self, message: str, detail: str = "") -> dict:
        return self._emit("error", message=message, detail=detail)
