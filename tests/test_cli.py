"""CLI commands via typer's test runner."""

from pathlib import Path

from typer.testing import CliRunner

from predamm.cli.app import app

runner = CliRunner()
DEMO = Path(__file__).resolve().parent.parent / "scenarios" / "demo.toml"


def _config_dir(tmp_path):
    (tmp_path / "default.toml").write_text(
        f'[storage]\ndb_path = "{(tmp_path / "cli.duckdb").as_posix()}"\n\n[logging]\nlevel = "WARNING"\n'
    )
    return tmp_path


def test_quote_buy():
    result = runner.invoke(app, ["quote", "buy", "-q", "100"])
    assert result.exit_code == 0
    assert "Cost: 57.3750" in result.output
    assert "Price after: 0.6250" in result.output


def test_quote_rejects_bad_input():
    result = runner.invoke(app, ["quote", "buy", "-q", "100", "-o", "5"])
    assert result.exit_code == 1
    assert "InvalidOption" in result.output

    result = runner.invoke(app, ["quote", "sell", "-q", "lots"])
    assert result.exit_code == 1
    assert "Error:" in result.output

    result = runner.invoke(app, ["quote", "swap", "-a", "0"])
    assert result.exit_code == 1
    assert "AmountMustBePositive" in result.output


def test_sim_run_then_log(tmp_path):
    cfg = _config_dir(tmp_path)
    result = runner.invoke(app, ["--config-dir", str(cfg), "sim", "run", str(DEMO)])
    assert result.exit_code == 0, result.output
    assert "unexpected: 0" in result.output
    run_id = result.output.split("Run id: ")[1].split()[0]

    report = runner.invoke(app, ["--config-dir", str(cfg), "sim", "report", "--run-id", run_id])
    assert report.exit_code == 0
    assert "MarketNotEndedYet (expected)" in report.output

    stats = runner.invoke(app, ["--config-dir", str(cfg), "log", "stats"])
    assert "Total trades:" in stats.output
    markets = runner.invoke(app, ["--config-dir", str(cfg), "log", "markets"])
    assert "Total: 2 markets" in markets.output
