"""MarketRecord - one arena entry holding every piece of mutable state for a single market."""

from __future__ import annotations

from dataclasses import dataclass, field

from predamm.amm.curve import OptionAMM
from predamm.ledger.free_entry import FreeEntryLedger
from predamm.ledger.liquidity import LiquidityLedger
from predamm.models.market import MarketKind
from predamm.models.trade import PricePoint, Trade


@dataclass
class ResolutionSnapshot:
    """Values frozen at resolution so every winner is paid against the same state."""

    winning_option: int
    winning_price: int
    total_winning_shares: int
    user_liquidity: int


@dataclass
class MarketRecord:
    market_id: int
    question: str
    description: str
    category: str
    creator: str
    created_at: int
    end_time: int
    kind: MarketKind
    early_resolution_allowed: bool
    amm: OptionAMM
    seed_liquidity: int
    lp: LiquidityLedger = field(default_factory=LiquidityLedger)
    free: FreeEntryLedger | None = None

    # lifecycle flags
    validated: bool = False
    invalidated: bool = False
    resolved: bool = False
    disputed: bool = False
    dispute_settled: bool = False
    disputed_by: str | None = None
    winning_option: int | None = None
    resolved_at: int | None = None
    resolution: ResolutionSnapshot | None = None

    # financial aggregates
    admin_liquidity: int = 0
    user_liquidity: int = 0
    platform_fees_collected: int = 0
    platform_fees_withdrawn: int = 0
    total_volume: int = 0
    admin_liquidity_claimed: bool = False

    # user state: user -> per-option share counts
    shares: dict[str, list[int]] = field(default_factory=dict)
    winnings_claimed: dict[str, int] = field(default_factory=dict)
    # user -> first time seen
    participants: dict[str, int] = field(default_factory=dict)
    # user -> liquidity put in by buys, net of sales (basis for invalidation refunds)
    deposits: dict[str, int] = field(default_factory=dict)
    refunds_owed: dict[str, int] = field(default_factory=dict)
    refunds_paid: dict[str, int] = field(default_factory=dict)
    trades: list[Trade] = field(default_factory=list)
    price_history: list[PricePoint] = field(default_factory=list)

    @property
    def option_count(self) -> int:
        return self.amm.option_count

    @property
    def amm_fees_collected(self) -> int:
        return self.lp.amm_fees_collected

    @property
    def platform_fees_outstanding(self) -> int:
        return self.platform_fees_collected - self.platform_fees_withdrawn

    def shares_of(self, user: str) -> list[int]:
        return list(self.shares.get(user) or [0] * self.option_count)

    def share_vector(self, user: str) -> list[int]:
        """Mutable per-option share list, created on first touch."""
        vec = self.shares.get(user)
        if vec is None:
            vec = [0] * self.option_count
            self.shares[user] = vec
        return vec

    def add_participant(self, user: str, now: int) -> bool:
        if user in self.participants:
            return False
        self.participants[user] = now
        return True

    def tokens_held(self) -> int:
        """Tokens the engine holds for this market; must equal net inflows at every observable point."""
        free_remaining = self.free.remaining_pool if self.free else 0
        return (
            self.admin_liquidity
            + self.user_liquidity
            + self.platform_fees_outstanding
            + self.lp.fees_outstanding
            + free_remaining
        )
