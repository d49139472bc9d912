"""Winnings for resolved, undisputed markets."""

from __future__ import annotations

from predamm.amm.fixed_point import SCALE, mul_div
from predamm.engine.record import MarketRecord, ResolutionSnapshot
from predamm.errors import AlreadyClaimed, NoRefundDue, NoWinningShares


class PayoutEngine:
    """
    Winners receive the AMM value of their shares plus a pro-rata slice of the
    liquidity left behind by losing positions:

        winning_value = total_winning_shares * price / SCALE
        losing_pool   = max(user_liquidity - winning_value, 0)
        payout(s)     = s * price / SCALE + s * losing_pool / total_winning_shares

    Admin-seeded liquidity and platform fees are never part of the payout pool.
    If the winning value exceeds user liquidity, winners split user liquidity pro rata.
    """

    @staticmethod
    def snapshot(record: MarketRecord, winning_option: int) -> ResolutionSnapshot:
        pool = record.amm.pool(winning_option)
        return ResolutionSnapshot(
            winning_option=winning_option,
            winning_price=pool.price,
            total_winning_shares=pool.total_shares,
            user_liquidity=record.user_liquidity,
        )

    @staticmethod
    def payout_for(snap: ResolutionSnapshot, user_shares: int) -> int:
        total = snap.total_winning_shares
        if user_shares <= 0 or total <= 0:
            return 0
        winning_value = mul_div(total, snap.winning_price, SCALE)
        if winning_value > snap.user_liquidity:
            return mul_div(user_shares, snap.user_liquidity, total)
        losing_pool = snap.user_liquidity - winning_value
        return mul_div(user_shares, snap.winning_price, SCALE) + mul_div(user_shares, losing_pool, total)

    def claimable(self, record: MarketRecord, user: str) -> int:
        """Pure read: what `user` would receive now (0 if not claimable)."""
        snap = record.resolution
        if snap is None or record.disputed or user in record.winnings_claimed:
            return 0
        shares = record.shares_of(user)[snap.winning_option]
        return min(self.payout_for(snap, shares), record.user_liquidity)

    def claim(self, record: MarketRecord, user: str) -> int:
        """Mark the user's winnings paid and debit user liquidity. Caller moves the tokens."""
        snap = record.resolution
        if snap is None:
            raise NoWinningShares("market has no resolution snapshot", {"market_id": record.market_id})
        if user in record.winnings_claimed:
            raise AlreadyClaimed("winnings already claimed", {"market_id": record.market_id, "user": user})
        shares = record.shares_of(user)[snap.winning_option]
        if shares <= 0:
            raise NoWinningShares("no shares in winning option", {"market_id": record.market_id, "user": user})
        amount = min(self.payout_for(snap, shares), record.user_liquidity)
        record.user_liquidity -= amount
        record.winnings_claimed[user] = amount
        return amount

    @staticmethod
    def refund_schedule(record: MarketRecord) -> dict[str, int]:
        """
        Split user liquidity across everyone who put money into an invalidated market,
        pro rata to trader deposits plus LP contributions. Rounding dust stays in the market.
        """
        weights = dict(record.deposits)
        for provider, entry in record.lp.contributions.items():
            weights[provider] = weights.get(provider, 0) + entry.amount
        total = sum(weights.values())
        if total <= 0:
            return {}
        owed = {user: mul_div(w, record.user_liquidity, total) for user, w in weights.items() if w > 0}
        return {user: amount for user, amount in owed.items() if amount > 0}

    def claim_refund(self, record: MarketRecord, user: str) -> int:
        """Mark the user's refund paid and debit user liquidity. Caller moves the tokens."""
        if user in record.refunds_paid:
            raise AlreadyClaimed("refund already claimed", {"market_id": record.market_id, "user": user})
        owed = record.refunds_owed.get(user, 0)
        if owed <= 0:
            raise NoRefundDue("nothing to refund", {"market_id": record.market_id, "user": user})
        amount = min(owed, record.user_liquidity)
        record.user_liquidity -= amount
        record.refunds_paid[user] = amount
        record.lp.release(user)
        return amount
