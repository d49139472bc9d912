"""Liquidity-provider contributions and pro-rata AMM-fee rewards."""

from __future__ import annotations

from dataclasses import dataclass, field

from predamm.amm.fixed_point import mul_div
from predamm.errors import AlreadyClaimed, AmountMustBePositive, NoLPRewards, NotLiquidityProvider


@dataclass
class LiquidityContribution:
    """Cumulative contribution of one provider to one market."""

    provider: str
    amount: int = 0
    reward_claimed: bool = False
    reward_paid: int = 0


@dataclass
class LiquidityLedger:
    """Per-market LP book. Rewards: contribution * amm_fees_collected // total_pool, once per provider."""

    contributions: dict[str, LiquidityContribution] = field(default_factory=dict)
    total_pool: int = 0
    amm_fees_collected: int = 0
    amm_fees_paid: int = 0

    def contribute(self, provider: str, amount: int) -> LiquidityContribution:
        if amount <= 0:
            raise AmountMustBePositive("liquidity amount must be positive")
        entry = self.contributions.get(provider)
        if entry is None:
            entry = LiquidityContribution(provider=provider)
            self.contributions[provider] = entry
        entry.amount += amount
        self.total_pool += amount
        return entry

    def accrue_fees(self, amount: int) -> None:
        if amount > 0:
            self.amm_fees_collected += amount

    @property
    def fees_outstanding(self) -> int:
        return self.amm_fees_collected - self.amm_fees_paid

    def contribution_of(self, provider: str) -> int:
        entry = self.contributions.get(provider)
        return entry.amount if entry else 0

    def estimated_reward(self, provider: str) -> int:
        amount = self.contribution_of(provider)
        if amount == 0 or self.total_pool == 0:
            return 0
        return mul_div(amount, self.amm_fees_collected, self.total_pool)

    def release(self, provider: str) -> int:
        """Zero one provider's contribution and return it (refund of an invalidated market)."""
        entry = self.contributions.get(provider)
        if entry is None:
            return 0
        amount, entry.amount = entry.amount, 0
        self.total_pool -= amount
        return amount

    def absorb_fees(self) -> int:
        """Mark every outstanding fee as paid out and return the amount, for a market with no LP claims."""
        amount = self.fees_outstanding
        self.amm_fees_paid += amount
        return amount

    def claim(self, provider: str) -> int:
        """Mark the provider's reward paid and return it. Caller moves the tokens."""
        entry = self.contributions.get(provider)
        if entry is None or entry.amount == 0:
            raise NotLiquidityProvider(f"{provider} has no liquidity in this market")
        if entry.reward_claimed:
            raise AlreadyClaimed("LP reward already claimed", {"provider": provider})
        reward = min(self.estimated_reward(provider), self.fees_outstanding)
        if reward == 0:
            raise NoLPRewards("no AMM fees attributable to provider", {"provider": provider})
        entry.reward_claimed = True
        entry.reward_paid = reward
        self.amm_fees_paid += reward
        return reward
