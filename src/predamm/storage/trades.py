"""Trade log append and query."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from predamm.models import Trade

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

_COLUMNS = ["trade_id", "market_id", "option_index", "buyer", "seller", "side", "price", "quantity", "amount", "timestamp"]


def _row(t: Trade) -> list[Any]:
    return [t.trade_id, t.market_id, t.option, t.buyer, t.seller, t.side, t.price, t.quantity, t.amount, t.timestamp]


def append_trades(conn: DuckDBPyConnection, trades: list[Trade]) -> int:
    """Append trades, skipping ids already stored. Returns number inserted."""
    if not trades:
        return 0
    existing = {
        r[0]
        for r in conn.execute(
            "SELECT trade_id FROM trades WHERE trade_id BETWEEN ? AND ?",
            [min(t.trade_id for t in trades), max(t.trade_id for t in trades)],
        ).fetchall()
    }
    rows = [_row(t) for t in trades if t.trade_id not in existing]
    if rows:
        conn.executemany(
            f"INSERT INTO trades ({', '.join(_COLUMNS)}) VALUES ({', '.join('?' * len(_COLUMNS))})",
            rows,
        )
    return len(rows)


def list_trades(
    conn: DuckDBPyConnection,
    market_id: int | None = None,
    user: str | None = None,
    limit: int | None = None,
) -> list[Trade]:
    """Trades ordered by id, optionally filtered by market and/or counterparty."""
    conditions = []
    params: list[Any] = []
    if market_id is not None:
        conditions.append("market_id = ?")
        params.append(market_id)
    if user:
        conditions.append("(buyer = ? OR seller = ?)")
        params.extend([user, user])
    where = " AND ".join(conditions) if conditions else "1=1"
    sql = f"SELECT {', '.join(_COLUMNS)} FROM trades WHERE {where} ORDER BY trade_id ASC"
    if limit:
        sql += f" LIMIT {int(limit)}"
    rows = conn.execute(sql, params).fetchall()
    return [
        Trade(
            trade_id=r[0],
            market_id=r[1],
            option=r[2],
            buyer=r[3],
            seller=r[4],
            side=r[5],
            price=int(r[6]),
            quantity=int(r[7]),
            amount=int(r[8]),
            timestamp=r[9],
        )
        for r in rows
    ]


def trade_stats(conn: DuckDBPyConnection) -> dict[str, Any]:
    """Return trade log statistics: total count, time range, count and volume by market."""
    total = conn.execute("SELECT COUNT(*) FROM trades").fetchone()[0]
    min_ts, max_ts = conn.execute("SELECT MIN(timestamp), MAX(timestamp) FROM trades").fetchone()
    by_market = conn.execute(
        """
        SELECT market_id, COUNT(*) AS cnt, SUM(amount) AS volume
        FROM trades GROUP BY market_id ORDER BY cnt DESC LIMIT 20
        """
    ).fetchall()
    return {
        "total_trades": total,
        "min_ts": min_ts,
        "max_ts": max_ts,
        "by_market": [{"market_id": r[0], "count": r[1], "volume": int(r[2] or 0)} for r in by_market],
    }
