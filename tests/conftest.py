"""Pytest fixtures: fill factories and instrument tables for deterministic tests."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable

import pytest

from fifo_core.contracts import Fill, InstrumentSpec, Side
from fifo_core.instruments import InstrumentRegistry


def _ts(year: int, month: int, day: int, hour: int = 9, minute: int = 30, second: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)


@pytest.fixture
def ts() -> Callable[..., datetime]:
    return _ts


@pytest.fixture
def make_fill() -> Callable[..., Fill]:
    """Build a Fill with sensible defaults; minute offsets keep timestamps distinct."""

    def _make(
        fill_id: str,
        side: Side,
        quantity: int,
        price: str,
        minute: int = 0,
        *,
        account_id: str = "ACC1",
        symbol: str = "XYZ",
        commission: str = "0",
        sequence: int | None = None,
    ) -> Fill:
        return Fill(
            account_id=account_id,
            symbol=symbol,
            side=side,
            quantity=quantity,
            price=Decimal(price),
            timestamp=_ts(2024, 3, 1, 14, minute),
            commission=Decimal(commission),
            fill_id=fill_id,
            sequence=sequence,
        )

    return _make


@pytest.fixture
def registry() -> InstrumentRegistry:
    """Small instrument table: a point-multiplier product and two tick products."""
    return InstrumentRegistry(
        [
            InstrumentSpec("XYZ", multiplier=Decimal("50")),
            InstrumentSpec("SPY", multiplier=Decimal("1")),
            InstrumentSpec("ES", tick_size=Decimal("0.25"), tick_value=Decimal("12.5")),
            InstrumentSpec("MES", tick_size=Decimal("0.25"), tick_value=Decimal("1.25")),
        ]
    )
