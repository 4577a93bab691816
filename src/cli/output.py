"""
Human-readable reconstruction output for the terminal.

Every CLI command uses these formatters. Journal receives the same data.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from fifo_core.contracts import InstrumentSpec, OpenPosition, ReconstructionResult, Trade


def _money(value: Decimal) -> str:
    return f"${value:+,.2f}"


def _duration(seconds: float) -> str:
    seconds = int(seconds)
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours}h{minutes:02d}m{secs:02d}s"
    if minutes:
        return f"{minutes}m{secs:02d}s"
    return f"{secs}s"


def format_trade(index: int, t: Trade) -> str:
    flag = "  [default multiplier]" if t.default_multiplier else ""
    ticks = f"  ({t.ticks:+.2f} ticks)" if t.ticks is not None else ""
    lines = [
        f"  Trade #{index}: {t.account_id} {t.instrument} {t.side.value} x{t.quantity}{flag}",
        f"            entry {t.entry_price} @ {t.entry_date.isoformat()}  [{', '.join(t.entry_fill_ids)}]",
        f"            exit  {t.close_price} @ {t.close_date.isoformat()}  [{', '.join(t.close_fill_ids)}]",
        f"            PnL {_money(t.pnl)}{ticks}  comm {_money(-t.commission)}  net {_money(t.net_pnl)}"
        f"  held {_duration(t.time_in_position_seconds)}",
    ]
    return "\n".join(lines)


def format_trades(trades: Iterable[Trade]) -> str:
    out = [format_trade(i, t) for i, t in enumerate(trades, 1)]
    return "\n".join(out) if out else "  (no trades)"


def format_open_positions(positions: list[OpenPosition]) -> str:
    if not positions:
        return "Open positions: none (all flat)"
    lines = [f"Open positions ({len(positions)}):"]
    for p in positions:
        lines.append(
            f"  {p.account_id} {p.symbol} {p.side.value} {p.quantity} @ avg {p.average_price:.5f}"
            f"  ({len(p.lots)} lot{'s' if len(p.lots) != 1 else ''})"
        )
    return "\n".join(lines)


def format_reconstruction_summary(result: ReconstructionResult, *, show_trades: bool = True) -> str:
    """Full run output: counts, P&L, rejections, open positions."""
    s = result.statistics
    lines = [
        "=== FIFO Reconstruction ===",
        f"Fills        : {s.total_fills} ({s.accepted_fills} accepted, {s.rejected_fills} rejected)",
        f"Trades       : {s.total_trades} (W:{s.winners} / L:{s.losers})",
        f"Gross PnL    : {_money(s.gross_pnl)}",
        f"Commission   : {_money(-s.commission)}",
        f"Net PnL      : {_money(s.net_pnl)}",
    ]
    if result.unknown_symbols:
        lines.append(
            f"Warning      : no instrument spec for {', '.join(result.unknown_symbols)} "
            f"({s.low_confidence_trades} trades priced with multiplier 1)"
        )
    if show_trades and result.trades:
        lines.append("")
        lines.append(format_trades(result.trades))
    if result.rejections:
        lines.append("")
        lines.append(f"Rejected fills ({len(result.rejections)}):")
        for r in result.rejections:
            lines.append(f"  #{r.sequence} {r.fill_id or '?'} ({r.account_id or '?'}): {r.reason}")
    if result.failures:
        lines.append("")
        lines.append(f"Failed partitions ({len(result.failures)}):")
        for f in result.failures:
            lines.append(f"  {f.account_id} {f.symbol}: {f.message}")
    lines.append("")
    lines.append(format_open_positions(result.open_positions))
    lines.append("===")
    return "\n".join(lines)


def format_instrument(symbol: str, spec: InstrumentSpec) -> str:
    lines = [f"{symbol} -> {spec.symbol_prefix}" + (f" ({spec.description})" if spec.description else "")]
    if spec.is_default:
        lines.append("  not registered: multiplier 1 fallback")
    if spec.has_ticks:
        lines.append(f"  tick size  : {spec.tick_size}")
        lines.append(f"  tick value : {spec.tick_value}")
    lines.append(f"  point value: {spec.effective_multiplier}")
    return "\n".join(lines)
