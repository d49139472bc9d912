"""Export the trade log to Parquet."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection


def export_trades_to_parquet(
    conn: DuckDBPyConnection,
    output_path: str | Path,
    market_id: int | None = None,
) -> int:
    """Export trades to a Parquet file. Optional filter by market_id. Returns row count."""
    path = Path(output_path).resolve()
    path.parent.mkdir(parents=True, exist_ok=True)
    path_str = str(path).replace("\\", "\\\\").replace("'", "''")
    if market_id is not None:
        conn.execute(
            f"COPY (SELECT * FROM trades WHERE market_id = {int(market_id)} ORDER BY trade_id) TO '{path_str}' (FORMAT PARQUET)"
        )
        count = conn.execute("SELECT COUNT(*) FROM trades WHERE market_id = ?", [market_id]).fetchone()[0]
    else:
        conn.execute(f"COPY (SELECT * FROM trades ORDER BY trade_id) TO '{path_str}' (FORMAT PARQUET)")
        count = conn.execute("SELECT COUNT(*) FROM trades").fetchone()[0]
    return count
