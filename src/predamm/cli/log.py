"""Log subcommand: trade log export, stats, markets."""

from __future__ import annotations

import typer

from predamm.amm.fixed_point import to_display
from predamm.storage.db import get_connection, init_schema
from predamm.storage.export import export_trades_to_parquet
from predamm.storage.markets import list_markets
from predamm.storage.trades import trade_stats

app = typer.Typer(help="Trade log export and statistics")


@app.command("export")
def export(
    ctx: typer.Context,
    market: int | None = typer.Option(None, "--market", "-m", help="Filter by market ID"),
    output: str = typer.Option("trades.parquet", "--output", "-o", help="Output path"),
) -> None:
    """Export the trade log to Parquet."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        count = export_trades_to_parquet(conn, output, market_id=market)
        typer.echo(f"Exported {count} trades to {output}")
    finally:
        conn.close()


@app.command("stats")
def stats(ctx: typer.Context) -> None:
    """Show trade log statistics (counts, time range, by market)."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        s = trade_stats(conn)
        typer.echo(f"Total trades: {s['total_trades']}")
        typer.echo(f"Min ts: {s.get('min_ts')}")
        typer.echo(f"Max ts: {s.get('max_ts')}")
        if s.get("by_market"):
            typer.echo("By market (top 20):")
            for row in s["by_market"]:
                typer.echo(f"  {row['market_id']}  {row['count']}  {to_display(row['volume'])}")
    finally:
        conn.close()


@app.command("markets")
def markets(
    ctx: typer.Context,
    phase: str | None = typer.Option(None, "--phase", help="Filter by phase (e.g. RESOLVED)"),
) -> None:
    """List saved market snapshots."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        rows = list_markets(conn, phase=phase.upper() if phase else None)
        for r in rows:
            question = (r.get("question") or "")[:60]
            typer.echo(f"  {r['market_id']:>4}  {r['phase']:<11}  {to_display(int(r['total_volume'] or 0), 2):>12}  {question}")
        typer.echo(f"Total: {len(rows)} markets")
    finally:
        conn.close()
