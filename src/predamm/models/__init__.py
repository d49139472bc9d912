"""Canonical schema (Pydantic) - market views, trades, price history."""

from predamm.models.market import (
    FreeMarketInfo,
    LPInfo,
    MarketInfo,
    MarketKind,
    MarketPhase,
    OptionInfo,
    PlatformStats,
    UserPortfolio,
)
from predamm.models.trade import POOL, PricePoint, Trade

__all__ = [
    "MarketInfo",
    "MarketKind",
    "MarketPhase",
    "OptionInfo",
    "LPInfo",
    "FreeMarketInfo",
    "UserPortfolio",
    "PlatformStats",
    "Trade",
    "PricePoint",
    "POOL",
]
