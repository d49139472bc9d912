"""Market, Option, LP and free-entry read views - what the query surface returns."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class MarketKind(str, Enum):
    STAKED = "STAKED"
    FREE_ENTRY = "FREE_ENTRY"


class MarketPhase(str, Enum):
    """Derived lifecycle phase. INVALIDATED is terminal."""

    CREATED = "CREATED"
    ACTIVE = "ACTIVE"
    ENDED = "ENDED"
    RESOLVED = "RESOLVED"
    DISPUTED = "DISPUTED"
    INVALIDATED = "INVALIDATED"


class OptionInfo(BaseModel):
    """Single option of a market. Amounts are 1e18 fixed-point ints."""

    market_id: int
    index: int
    name: str
    description: str = ""
    total_shares: int = 0
    volume: int = 0
    price: int = Field(..., ge=0, description="k * SCALE / reserve")
    k: int
    reserve: int = Field(..., gt=0)


class MarketInfo(BaseModel):
    """Canonical market view."""

    market_id: int
    question: str
    description: str = ""
    category: str = ""
    creator: str
    kind: MarketKind = MarketKind.STAKED
    option_count: int
    created_at: int
    end_time: int
    early_resolution_allowed: bool = False
    phase: MarketPhase
    validated: bool = False
    invalidated: bool = False
    resolved: bool = False
    disputed: bool = False
    winning_option: int | None = None
    admin_liquidity: int = 0
    user_liquidity: int = 0
    platform_fees_collected: int = 0
    amm_fees_collected: int = 0
    total_volume: int = 0
    options: list[OptionInfo] = Field(default_factory=list)


class LPInfo(BaseModel):
    market_id: int
    provider: str
    contribution: int = 0
    total_pool: int = 0
    amm_fees_collected: int = 0
    estimated_reward: int = 0
    reward_claimed: bool = False


class FreeMarketInfo(BaseModel):
    market_id: int
    max_participants: int
    tokens_per_participant: int
    prize_pool: int
    remaining_pool: int
    participant_count: int
    slots_left: int


class UserPortfolio(BaseModel):
    """Cross-market summary for one user."""

    user: str
    markets: list[int] = Field(default_factory=list)
    total_invested: int = 0
    total_received: int = 0
    total_winnings: int = 0
    trade_count: int = 0


class PlatformStats(BaseModel):
    market_count: int = 0
    active_markets: int = 0
    resolved_markets: int = 0
    total_volume: int = 0
    platform_fees_collected: int = 0
    platform_fees_outstanding: int = 0
    amm_fees_collected: int = 0
    trade_count: int = 0
