"""DuckDB persistence of market snapshots, trade log and simulation runs."""

import tempfile
from pathlib import Path

import duckdb
import pytest

from predamm.amm.fixed_point import SCALE
from predamm.simulation.runner import RunResult, get_run_result, save_run_result
from predamm.storage.db import get_connection, init_schema
from predamm.storage.export import export_trades_to_parquet
from predamm.storage.markets import list_market_options, list_markets, upsert_markets
from predamm.storage.trades import append_trades, list_trades, trade_stats


@pytest.fixture
def temp_db():
    tmp = tempfile.mkdtemp()
    path = Path(tmp) / "test.duckdb"
    conn = get_connection(path)
    init_schema(conn)
    yield conn
    conn.close()
    path.unlink(missing_ok=True)
    Path(tmp).rmdir()


def test_init_schema_is_idempotent():
    conn = get_connection(":memory:")
    init_schema(conn)
    init_schema(conn)
    tables = {r[0] for r in conn.execute("SHOW TABLES").fetchall()}
    assert {"markets", "market_options", "trades", "sim_runs"} <= tables
    conn.close()


def test_market_snapshots_upsert(temp_db, engine, market):
    engine.buy("alice", market, 0, 100 * SCALE)
    upsert_markets(temp_db, engine.markets())
    engine.buy("bob", market, 1, 100 * SCALE)
    upsert_markets(temp_db, engine.markets())
    rows = list_markets(temp_db)
    assert len(rows) == 1
    assert rows[0]["phase"] == "ACTIVE"
    assert int(rows[0]["user_liquidity"]) == 1125 * SCALE // 10
    options = list_market_options(temp_db, market)
    assert [int(o["price"]) for o in options] == [625 * SCALE // 1000] * 2
    assert list_markets(temp_db, phase="RESOLVED") == []


def test_trade_log_append_is_idempotent(temp_db, engine, market):
    engine.buy("alice", market, 0, 10 * SCALE)
    engine.buy("bob", market, 1, 20 * SCALE)
    engine.sell("alice", market, 0, 5 * SCALE)
    trades = engine.market_trades(market)
    assert append_trades(temp_db, trades) == 3
    assert append_trades(temp_db, trades) == 0
    stored = list_trades(temp_db, market_id=market)
    assert stored == trades
    assert [t.side for t in list_trades(temp_db, user="alice")] == ["BUY", "SELL"]
    assert len(list_trades(temp_db, limit=1)) == 1
    stats = trade_stats(temp_db)
    assert stats["total_trades"] == 3
    assert stats["by_market"][0]["volume"] == sum(t.amount for t in trades)


def test_export_trades_to_parquet(temp_db, engine, market, tmp_path):
    engine.buy("alice", market, 0, 10 * SCALE)
    append_trades(temp_db, engine.market_trades(market))
    out = tmp_path / "out" / "trades.parquet"
    assert export_trades_to_parquet(temp_db, out, market_id=market) == 1
    assert out.exists()
    assert duckdb.sql(f"SELECT COUNT(*) FROM read_parquet('{out}')").fetchone()[0] == 1


def test_run_result_round_trip(temp_db):
    result = RunResult(
        run_id="abc12345",
        scenario_name="demo",
        steps_ok=5,
        steps_failed=1,
        markets_created=1,
        trade_count=3,
        total_volume=42 * SCALE,
        errors=[{"step": 2, "op": "resolve", "code": "MarketNotEndedYet", "expected": True}],
        params={"seed": 1},
    )
    save_run_result(temp_db, result)
    loaded = get_run_result(temp_db, "abc12345")
    assert loaded == result
    assert get_run_result(temp_db, "missing") is None
