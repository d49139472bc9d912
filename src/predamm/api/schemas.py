"""Pydantic schemas for API request/response consistency and OpenAPI docs.

Amounts are 1e18 fixed-point integers. `caller` identifies the acting account;
authentication is outside this service.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from predamm.collaborators.base import Capability
from predamm.models.market import MarketKind


# --- Health ---
class HealthResponse(BaseModel):
    status: str = "ok"
    markets: int = 0


# --- Error (consistent shape for 4xx/5xx) ---
class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Human-readable message")
    code: str | None = Field(None, description="Machine-readable code, e.g. MarketEnded, NotAuthorized")


# --- Requests ---
class CallerRequest(BaseModel):
    caller: str = Field(..., min_length=1)


class CreateMarketRequest(CallerRequest):
    question: str
    options: list[str]
    option_descriptions: list[str] | None = None
    description: str = ""
    category: str = ""
    duration: int = Field(..., gt=0, description="Seconds until trading ends")
    initial_liquidity: int = Field(..., gt=0)
    kind: MarketKind = MarketKind.STAKED
    early_resolution: bool = False
    max_participants: int = 0
    tokens_per_participant: int = 0


class BuyRequest(CallerRequest):
    option: int
    quantity: int = Field(..., gt=0)
    max_cost: int | None = None


class SellRequest(CallerRequest):
    option: int
    quantity: int = Field(..., gt=0)
    min_revenue: int = 0


class SwapRequest(CallerRequest):
    from_option: int
    to_option: int
    amount_in: int = Field(..., gt=0)
    min_out: int = 0


class LiquidityRequest(CallerRequest):
    amount: int = Field(..., gt=0)


class ResolveRequest(CallerRequest):
    winning_option: int


class FeeWithdrawRequest(CallerRequest):
    market_id: int | None = None


class FaucetRequest(BaseModel):
    account: str = Field(..., min_length=1)


class GrantRequest(CallerRequest):
    account: str
    capabilities: list[Capability]


# --- Responses ---
class MarketCreatedResponse(BaseModel):
    market_id: int


class AmountResponse(BaseModel):
    market_id: int | None = None
    amount: int


class SharesResponse(BaseModel):
    market_id: int
    user: str
    shares: list[int]
    claimable: int = 0


class QuoteResponse(BaseModel):
    market_id: int
    option: int
    quantity: int
    amount: int = Field(..., description="Cost for buys (fee included), net revenue for sells")
    fee: int
    avg_price: int
    new_price: int


class SwapResponse(BaseModel):
    market_id: int
    from_option: int
    to_option: int
    amount_in: int
    amount_out: int
    fee_value: int


class BalanceResponse(BaseModel):
    account: str
    balance: int
