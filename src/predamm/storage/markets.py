"""Market snapshot persistence."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from predamm.models import MarketInfo

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection


def upsert_market(conn: DuckDBPyConnection, market: MarketInfo) -> None:
    """Insert or replace a market snapshot and its options."""
    conn.execute(
        """
        INSERT INTO markets (market_id, question, category, creator, kind, phase, option_count, created_at, end_time,
                             winning_option, admin_liquidity, user_liquidity, platform_fees_collected,
                             amm_fees_collected, total_volume, saved_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT (market_id) DO UPDATE SET
            phase = excluded.phase,
            winning_option = excluded.winning_option,
            admin_liquidity = excluded.admin_liquidity,
            user_liquidity = excluded.user_liquidity,
            platform_fees_collected = excluded.platform_fees_collected,
            amm_fees_collected = excluded.amm_fees_collected,
            total_volume = excluded.total_volume,
            saved_at = excluded.saved_at
        """,
        [
            market.market_id,
            market.question,
            market.category,
            market.creator,
            market.kind.value,
            market.phase.value,
            market.option_count,
            market.created_at,
            market.end_time,
            market.winning_option,
            market.admin_liquidity,
            market.user_liquidity,
            market.platform_fees_collected,
            market.amm_fees_collected,
            market.total_volume,
            int(time.time() * 1000),
        ],
    )
    for o in market.options:
        conn.execute(
            """
            INSERT INTO market_options (market_id, option_index, name, price, k, reserve, total_shares, volume)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (market_id, option_index) DO UPDATE SET
                price = excluded.price,
                k = excluded.k,
                reserve = excluded.reserve,
                total_shares = excluded.total_shares,
                volume = excluded.volume
            """,
            [o.market_id, o.index, o.name, o.price, o.k, o.reserve, o.total_shares, o.volume],
        )


def upsert_markets(conn: DuckDBPyConnection, markets: list[MarketInfo]) -> None:
    """Upsert multiple market snapshots."""
    for m in markets:
        upsert_market(conn, m)


def list_markets(conn: DuckDBPyConnection, phase: str | None = None) -> list[dict]:
    """List saved market snapshots as dicts, newest id first."""
    columns = ["market_id", "question", "category", "creator", "kind", "phase", "option_count", "end_time",
               "winning_option", "user_liquidity", "total_volume"]
    sql = f"SELECT {', '.join(columns)} FROM markets"
    params: list = []
    if phase:
        sql += " WHERE phase = ?"
        params.append(phase)
    sql += " ORDER BY market_id DESC"
    rows = conn.execute(sql, params).fetchall()
    return [dict(zip(columns, r)) for r in rows]


def list_market_options(conn: DuckDBPyConnection, market_id: int) -> list[dict]:
    columns = ["option_index", "name", "price", "k", "reserve", "total_shares", "volume"]
    rows = conn.execute(
        f"SELECT {', '.join(columns)} FROM market_options WHERE market_id = ? ORDER BY option_index",
        [market_id],
    ).fetchall()
    return [dict(zip(columns, r)) for r in rows]
