"""
CLI entry point: fifo reconstruct | trades | lookup | health.

Every command loads config from --config (default config.yaml),
prints human-readable output, and logs to journal where it writes.
"""

import logging
import sys
from decimal import Decimal

import click
from dotenv import load_dotenv

from config import load_config

load_dotenv()

logger = logging.getLogger("fifo")


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s  %(message)s",
        stream=sys.stderr,
    )


@click.group()
@click.option("--config", "config_path", default="config.yaml", help="Path to config file.")
@click.pass_context
def cli(ctx: click.Context, config_path: str) -> None:
    """fifo-trades: rebuild round-trip trades from broker fills (FIFO)."""
    _setup_logging()
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# ---------- fifo reconstruct ----------


@cli.command()
@click.argument("fills_path", type=click.Path(dir_okay=False))
@click.option("--account", "account_id", default=None, help="Only reconstruct this account.")
@click.option("--dry-run", is_flag=True, default=False, help="Print trades without storing or journaling them.")
@click.option("--combine", is_flag=True, default=False, help="Show one row per exit fill (weighted entry price).")
@click.pass_context
def reconstruct(ctx: click.Context, fills_path: str, account_id: str | None, dry_run: bool, combine: bool) -> None:
    """Read a normalized fills CSV, match FIFO, upsert trades into the store.

    Malformed rows are rejected and reported; the rest of the file is still
    matched. Re-importing the same file updates trades in place (same ids).
    """
    cfg = load_config(ctx.obj["config_path"])
    from cli.output import format_reconstruction_summary, format_trades
    from cli.structured_log import StructuredEventLogger
    from config import load_instruments
    from data import FillFileError, TradeStore, read_fills
    from fifo_core import combine_by_exit
    from fifo_core import reconstruct as run_reconstruction
    from journal import JournalWriter

    events = StructuredEventLogger(
        fills_path,
        enabled=cfg.alerting.structured_logs,
        webhook_url=cfg.alerting.webhook_url,
    )

    try:
        fills = read_fills(
            fills_path,
            account_id=account_id,
            default_commission_per_unit=cfg.reconstruction.default_commission_per_unit,
        )
    except FillFileError as exc:
        events.error("Cannot read fills", detail=str(exc))
        raise click.ClickException(str(exc))

    registry = load_instruments(cfg.instruments_path)
    events.import_start(fills=len(fills), accounts=len({f.account_id for f in fills}))

    result = run_reconstruction(
        fills,
        registry,
        max_workers=cfg.reconstruction.max_workers,
        strict=cfg.reconstruction.strict,
    )

    for r in result.rejections:
        events.fill_rejected(r.fill_id, r.account_id, r.reason)
    for root in result.unknown_symbols:
        events.unknown_instrument(root)
    for f in result.failures:
        events.partition_failed(f.account_id, f.symbol, f.message)
    stats = result.statistics
    events.trades_emitted(stats.total_trades, str(stats.gross_pnl), str(stats.commission))

    click.echo(format_reconstruction_summary(result, show_trades=not combine))
    if combine and result.trades:
        click.echo("\nCombined by exit fill:")
        click.echo(format_trades(combine_by_exit(result.trades)))

    if dry_run:
        click.echo("\nDry run: nothing stored.")
    else:
        store = TradeStore(cfg.store.trade_store_path)
        new_count = store.upsert_trades(result.trades)

        journal = JournalWriter(cfg.journal.path, echo_stdout=cfg.journal.echo_stdout)
        for t in result.trades:
            journal.trade(t, source=fills_path)
        for r in result.rejections:
            journal.rejection(r, source=fills_path)
        for p in result.open_positions:
            journal.open_position(p, source=fills_path)
        for f in result.failures:
            journal.partition_failure(f, source=fills_path)

        events.import_complete(
            trades=stats.total_trades,
            new_trades=new_count,
            open_positions=len(result.open_positions),
            rejected=stats.rejected_fills,
        )
        click.echo(f"\nStored {len(result.trades)} trades ({new_count} new) in {cfg.store.trade_store_path}")

    # Partition failures exit non-zero on both paths.
    if result.failures:
        raise SystemExit(2)


# ---------- fifo trades ----------


@cli.command()
@click.option("--account", "account_id", default=None, help="Filter by account.")
@click.option("--instrument", default=None, help="Filter by root symbol (e.g. ES).")
@click.option("--limit", default=None, type=int, help="Show at most N trades.")
@click.pass_context
def trades(ctx: click.Context, account_id: str | None, instrument: str | None, limit: int | None) -> None:
    """List stored trades."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.output import format_trades
    from data import TradeStore

    store = TradeStore(cfg.store.trade_store_path)
    rows = store.get_trades(account_id=account_id, instrument=instrument, limit=limit)
    if not rows:
        click.echo("No trades stored. Run 'fifo reconstruct FILLS.csv' first.")
        return
    click.echo(f"=== Stored trades ({len(rows)}) ===")
    click.echo(format_trades(rows))
    net = sum((t.net_pnl for t in rows), Decimal("0"))
    click.echo(f"Net PnL      : ${net:+,.2f}")
    click.echo("===")


# ---------- fifo lookup ----------


@cli.command()
@click.argument("symbol")
@click.pass_context
def lookup(ctx: click.Context, symbol: str) -> None:
    """Show which instrument spec a raw symbol resolves to."""
    cfg = load_config(ctx.obj["config_path"])
    from cli.output import format_instrument
    from config import load_instruments

    registry = load_instruments(cfg.instruments_path)
    click.echo(format_instrument(symbol, registry.lookup(symbol)))


# ---------- fifo health ----------


@cli.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check system health: config, instrument table, trade store access.

    Exit code 0 = healthy, 1 = unhealthy.
    """
    checks: list[tuple[str, bool, str]] = []

    try:
        cfg = load_config(ctx.obj["config_path"])
        checks.append(("config", True, "loaded"))
    except Exception as e:
        checks.append(("config", False, str(e)))
        _print_health(checks)
        raise SystemExit(1)

    try:
        from config import load_instruments
        registry = load_instruments(cfg.instruments_path)
        checks.append(("instruments", True, f"{len(registry)} instruments validated"))
    except Exception as e:
        checks.append(("instruments", False, str(e)))

    try:
        from data import TradeStore
        store = TradeStore(cfg.store.trade_store_path)
        checks.append(("trade_store", True, f"{store.count_trades()} trades"))
    except Exception as e:
        checks.append(("trade_store", False, str(e)))

    _print_health(checks)
    healthy = all(ok for _, ok, _ in checks)
    raise SystemExit(0 if healthy else 1)


def _print_health(checks: list[tuple[str, bool, str]]) -> None:
    for name, ok, detail in checks:
        status = "OK" if ok else "FAIL"
        click.echo(f"  [{status}] {name}: {detail}")
    healthy = all(ok for _, ok, _ in checks)
    click.echo(f"\nHealth: {'HEALTHY' if healthy else 'UNHEALTHY'}")


if __name__ == "__main__":
    cli()
