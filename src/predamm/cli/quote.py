"""Quote subcommand: price buys, sells and swaps against a freshly seeded curve."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import typer

from predamm.amm.curve import OptionAMM
from predamm.amm.fixed_point import from_display, to_display
from predamm.errors import PredAMMError

app = typer.Typer(help="Quote AMM trades against a freshly seeded market")


@contextmanager
def _rejected() -> Iterator[None]:
    """Bad amounts or option indexes end the command with exit code 1 instead of a traceback."""
    try:
        yield
    except (PredAMMError, ValueError) as e:
        typer.echo(f"Error: {e}")
        raise typer.Exit(1) from e


def _amm(ctx: typer.Context, liquidity: str, options: int) -> OptionAMM:
    settings = ctx.obj["settings"]
    if not 2 <= options <= 10:
        typer.echo("--options must be between 2 and 10")
        raise typer.Exit(1)
    names = [f"option-{i}" for i in range(options)]
    return OptionAMM.seeded(
        names,
        [""] * options,
        from_display(liquidity),
        platform_fee_bps=settings.platform_fee_bps,
        swap_fee_bps=settings.swap_fee_bps,
    )


@app.command("buy")
def quote_buy(
    ctx: typer.Context,
    quantity: str = typer.Option(..., "--quantity", "-q", help="Shares to buy (whole units, decimals allowed)"),
    liquidity: str = typer.Option("1000", "--liquidity", "-l", help="Seed liquidity"),
    options: int = typer.Option(2, "--options", "-n", help="Option count"),
    option: int = typer.Option(0, "--option", "-o", help="Option index"),
) -> None:
    """Cost (fee included) of buying shares."""
    with _rejected():
        q = _amm(ctx, liquidity, options).quote_buy(option, from_display(quantity))
    typer.echo(f"Cost: {to_display(q.cost)}  (fee {to_display(q.fee)})")
    typer.echo(f"Avg price: {to_display(q.avg_price)}  Price after: {to_display(q.new_price)}")


@app.command("sell")
def quote_sell(
    ctx: typer.Context,
    quantity: str = typer.Option(..., "--quantity", "-q", help="Shares to sell"),
    liquidity: str = typer.Option("1000", "--liquidity", "-l", help="Seed liquidity"),
    options: int = typer.Option(2, "--options", "-n", help="Option count"),
    option: int = typer.Option(0, "--option", "-o", help="Option index"),
) -> None:
    """Net revenue of selling shares."""
    with _rejected():
        q = _amm(ctx, liquidity, options).quote_sell(option, from_display(quantity))
    typer.echo(f"Revenue: {to_display(q.revenue)}  (fee {to_display(q.fee)})")
    typer.echo(f"Avg price: {to_display(q.avg_price)}  Price after: {to_display(q.new_price)}")


@app.command("swap")
def quote_swap(
    ctx: typer.Context,
    amount_in: str = typer.Option(..., "--amount-in", "-a", help="Shares of the input option"),
    from_option: int = typer.Option(0, "--from", help="Input option"),
    to_option: int = typer.Option(1, "--to", help="Output option"),
    liquidity: str = typer.Option("1000", "--liquidity", "-l", help="Seed liquidity"),
    options: int = typer.Option(2, "--options", "-n", help="Option count"),
) -> None:
    """Output shares of an option-to-option swap."""
    with _rejected():
        q = _amm(ctx, liquidity, options).quote_swap(from_option, to_option, from_display(amount_in))
    typer.echo(f"Amount out: {to_display(q.amount_out)}  LP fee value: {to_display(q.fee_value)}")
