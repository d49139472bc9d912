"""Sim subcommand: run, report."""

from __future__ import annotations

from pathlib import Path

import typer

from predamm.amm.fixed_point import to_display
from predamm.engine.core import EngineConfig
from predamm.simulation.runner import get_run_result, run_scenario, save_run_result
from predamm.simulation.scenario import load_scenario
from predamm.storage.db import get_connection, init_schema
from predamm.storage.markets import upsert_markets
from predamm.storage.trades import append_trades

app = typer.Typer(help="Scenario simulation runs")


@app.command("run")
def run_sim(
    ctx: typer.Context,
    scenario: Path = typer.Argument(..., exists=True, dir_okay=False, help="Scenario TOML file"),
    save: bool = typer.Option(True, "--save/--no-save", help="Persist trades, markets and run result"),
) -> None:
    """Replay a scenario against a fresh engine."""
    settings = ctx.obj["settings"]
    result, sim_ctx = run_scenario(load_scenario(scenario), EngineConfig.from_settings(settings))
    engine = sim_ctx.engine
    typer.echo(f"Run id: {result.run_id}  Scenario: {result.scenario_name}")
    typer.echo(f"Steps ok: {result.steps_ok}  failed: {result.steps_failed}  unexpected: {len(result.unexpected)}")
    typer.echo(f"Markets: {result.markets_created}  Trades: {result.trade_count}  Volume: {to_display(result.total_volume)}")
    for err in result.unexpected:
        typer.echo(f"  step {err['step']} {err['op']}: {err['code'] or 'succeeded but a failure was expected'}")
    if save:
        conn = get_connection(settings.db_path)
        init_schema(conn)
        try:
            upsert_markets(conn, engine.markets())
            trades = [t for m in range(engine.market_count) for t in engine.market_trades(m)]
            append_trades(conn, trades)
            save_run_result(conn, result)
        finally:
            conn.close()
    if result.unexpected:
        raise typer.Exit(1)


@app.command("report")
def report(
    ctx: typer.Context,
    run_id: str = typer.Option(..., "--run-id", help="Simulation run ID"),
) -> None:
    """Show report for a simulation run."""
    settings = ctx.obj["settings"]
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        result = get_run_result(conn, run_id)
        if not result:
            typer.echo(f"Run not found: {run_id}")
            raise typer.Exit(1)
        typer.echo(f"Run: {result.run_id}  Scenario: {result.scenario_name}")
        typer.echo(f"Steps ok: {result.steps_ok}  failed: {result.steps_failed}")
        typer.echo(f"Markets: {result.markets_created}  Trades: {result.trade_count}")
        typer.echo(f"Volume: {to_display(result.total_volume)}")
        for err in result.errors:
            flag = "expected" if err.get("expected") else "UNEXPECTED"
            typer.echo(f"  step {err['step']} {err['op']}: {err['code']} ({flag})")
    finally:
        conn.close()
