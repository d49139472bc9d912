"""Trade and PricePoint - append-only history records."""

from pydantic import BaseModel, Field

POOL = "pool"


class Trade(BaseModel):
    """Executed AMM trade. One side is always the pool, except for swaps (same user both sides)."""

    trade_id: int
    market_id: int
    option: int
    buyer: str
    seller: str
    side: str = Field(..., pattern="^(BUY|SELL|SWAP_IN|SWAP_OUT)$")
    price: int = Field(..., ge=0)
    quantity: int = Field(..., gt=0)
    amount: int = Field(0, ge=0, description="Tokens moved (cost or net revenue); 0 for swaps")
    timestamp: int


class PricePoint(BaseModel):
    market_id: int
    option: int
    price: int = Field(..., ge=0)
    timestamp: int
