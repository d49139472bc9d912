"""DuckDB connection and schema init."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import duckdb

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

# Token amounts, prices and share counts are 1e18 fixed-point ints; HUGEINT holds them exactly.
SCHEMA_SQL = """
-- Market snapshots (one row per engine market id, replaced on save)
CREATE TABLE IF NOT EXISTS markets (
    market_id               BIGINT PRIMARY KEY,
    question                VARCHAR NOT NULL,
    category                VARCHAR,
    creator                 VARCHAR NOT NULL,
    kind                    VARCHAR NOT NULL,
    phase                   VARCHAR NOT NULL,
    option_count            INTEGER NOT NULL,
    created_at              BIGINT NOT NULL,
    end_time                BIGINT NOT NULL,
    winning_option          INTEGER,
    admin_liquidity         HUGEINT,
    user_liquidity          HUGEINT,
    platform_fees_collected HUGEINT,
    amm_fees_collected      HUGEINT,
    total_volume            HUGEINT,
    saved_at                BIGINT NOT NULL
);

-- Per-option AMM state at snapshot time
CREATE TABLE IF NOT EXISTS market_options (
    market_id       BIGINT NOT NULL,
    option_index    INTEGER NOT NULL,
    name            VARCHAR NOT NULL,
    price           HUGEINT NOT NULL,
    k               HUGEINT NOT NULL,
    reserve         HUGEINT NOT NULL,
    total_shares    HUGEINT NOT NULL,
    volume          HUGEINT NOT NULL,
    PRIMARY KEY (market_id, option_index)
);

-- Trade log (append-only)
CREATE TABLE IF NOT EXISTS trades (
    trade_id        BIGINT PRIMARY KEY,
    market_id       BIGINT NOT NULL,
    option_index    INTEGER NOT NULL,
    buyer           VARCHAR NOT NULL,
    seller          VARCHAR NOT NULL,
    side            VARCHAR NOT NULL,
    price           HUGEINT NOT NULL,
    quantity        HUGEINT NOT NULL,
    amount          HUGEINT NOT NULL,
    timestamp       BIGINT NOT NULL
);

-- Simulation runs (scenario replay results)
CREATE TABLE IF NOT EXISTS sim_runs (
    run_id          VARCHAR PRIMARY KEY,
    scenario_name   VARCHAR NOT NULL,
    params          JSON,
    steps_ok        INTEGER,
    steps_failed    INTEGER,
    markets_created INTEGER,
    trade_count     INTEGER,
    total_volume    HUGEINT,
    errors          JSON,
    created_at      BIGINT
);
"""


def get_connection(db_path: str | Path, read_only: bool = False) -> DuckDBPyConnection:
    """Return a DuckDB connection. Caller must close or use as context manager.
    ":memory:" opens an in-memory database."""
    if str(db_path) == ":memory:":
        return duckdb.connect(":memory:")
    path = Path(db_path)
    if not read_only:
        path.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(str(path), read_only=read_only)


def init_schema(conn: DuckDBPyConnection) -> None:
    """Create tables if they do not exist."""
    for stmt in SCHEMA_SQL.split(";"):
        stmt = stmt.strip()
        if stmt:
            try:
                conn.execute(stmt)
            except duckdb.Error as e:
                if "already exists" not in str(e).lower():
                    raise
