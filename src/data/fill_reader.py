"""
Read fills from a normalized CSV export into Fill records.

Expected header: account_id,symbol,side,quantity,price,timestamp,commission,fill_id
(an optional ``sequence`` column is honoured). Field values that cannot be parsed are
passed through as None or as the raw value so that fifo_core's validator rejects the
row with a reason instead of the whole file failing.
"""

from __future__ import annotations

import csv
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Iterable, TextIO

from fifo_core.contracts import Fill, Side

logger = logging.getLogger("fifo.data")

REQUIRED_COLUMNS = ("account_id", "symbol", "side", "quantity", "price", "timestamp", "fill_id")

_SIDES = {
    "B": Side.BUY,
    "BUY": Side.BUY,
    "BOT": Side.BUY,
    "S": Side.SELL,
    "SELL": Side.SELL,
    "SLD": Side.SELL,
}


class FillFileError(Exception):
    """The file itself is unusable (missing, or missing required columns)."""


def parse_side(value: str) -> Side | str:
    return _SIDES.get(value.strip().upper(), value)


def parse_price(value: str) -> Decimal | None:
    """Decimal price, or a 32nds quote such as ``110'16`` (= 110.5)."""
    text = value.strip().replace(",", "")
    if not text:
        return None
    if "'" in text:
        whole, _, frac = text.partition("'")
        try:
            result = Decimal(whole or "0")
            if frac:
                result += Decimal(frac) / 32
            return result
        except InvalidOperation:
            return None
    try:
        return Decimal(text)
    except InvalidOperation:
        return None


def parse_quantity(value: str) -> int | str:
    text = value.strip()
    try:
        return int(text)
    except ValueError:
        try:
            as_dec = Decimal(text)
        except InvalidOperation:
            return text
        if as_dec == as_dec.to_integral_value():
            return int(as_dec)
        return text


def parse_timestamp(value: str) -> datetime | None:
    text = value.strip()
    if not text:
        return None
    try:
        ts = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def parse_commission(value: str | None) -> Decimal | None:
    if value is None or not value.strip():
        return Decimal(0)
    try:
        return Decimal(value.strip())
    except InvalidOperation:
        return None


def _row_to_fill(row: dict[str, str], default_commission_per_unit: Decimal | None = None) -> Fill:
    seq_raw = (row.get("sequence") or "").strip()
    quantity = parse_quantity(row.get("quantity") or "")
    commission_raw = (row.get("commission") or "").strip()
    if not commission_raw and default_commission_per_unit is not None and isinstance(quantity, int):
        commission: Decimal | None = default_commission_per_unit * abs(quantity)
    else:
        commission = parse_commission(commission_raw)
    return Fill(
        account_id=(row.get("account_id") or "").strip(),
        symbol=(row.get("symbol") or "").strip(),
        side=parse_side(row.get("side") or ""),  # type: ignore[arg-type]
        quantity=quantity,  # type: ignore[arg-type]
        price=parse_price(row.get("price") or ""),  # type: ignore[arg-type]
        timestamp=parse_timestamp(row.get("timestamp") or ""),  # type: ignore[arg-type]
        commission=commission,  # type: ignore[arg-type]
        fill_id=(row.get("fill_id") or "").strip(),
        sequence=int(seq_raw) if seq_raw.isdigit() else None,
    )


def iter_fills(stream: TextIO, default_commission_per_unit: Decimal | None = None) -> Iterable[Fill]:
    """Yield one Fill per row.

    A blank or absent commission cell becomes *default_commission_per_unit* times
    the quantity when a default is given, else zero.
    """
    reader = csv.DictReader(stream)
    header = [h.strip() for h in (reader.fieldnames or [])]
    missing = [c for c in REQUIRED_COLUMNS if c not in header]
    if missing:
        raise FillFileError(f"Missing required columns: {', '.join(missing)}")
    reader.fieldnames = header
    for row in reader:
        yield _row_to_fill(row, default_commission_per_unit)


def read_fills(
    path: str | Path,
    *,
    account_id: str | None = None,
    default_commission_per_unit: Decimal | None = None,
) -> list[Fill]:
    """Read every row of *path*; optionally keep only one account's fills."""
    csv_path = Path(path)
    if not csv_path.exists():
        raise FillFileError(f"Fill file not found: {csv_path}")
    with open(csv_path, newline="") as f:
        fills = list(iter_fills(f, default_commission_per_unit))
    if account_id is not None:
        fills = [fl for fl in fills if fl.account_id == account_id]
    logger.info("Read %d fills from %s", len(fills), csv_path.name)
    return fills
