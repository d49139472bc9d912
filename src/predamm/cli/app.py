"""Root CLI app - entry point and command registration."""

from pathlib import Path

import typer

from predamm.config import get_settings
from predamm.config.settings import configure_logging

app = typer.Typer(
    name="predamm",
    help="PredAMM - AMM prediction-market engine: quotes, scenario simulation, trade log, API.",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    config_dir: Path | None = typer.Option(
        None, "--config-dir", "-C", help="Config directory (default: ./config or package config)"
    ),
    profile: str | None = typer.Option(
        None, "--profile", "-p", help="Config profile (e.g. dev) to overlay on default.toml"
    ),
) -> None:
    """Configure logging and store options in context."""
    settings = get_settings(profile, config_dir)
    configure_logging(settings)
    ctx.obj = {"settings": settings, "config_dir": config_dir, "profile": profile}


# Subcommands registered from other modules
from predamm.cli import api_cmd, log, quote, sim  # noqa: E402

app.add_typer(quote.app, name="quote")
app.add_typer(sim.app, name="sim")
app.add_typer(log.app, name="log")
app.add_typer(api_cmd.app, name="api")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
