"""Free-entry distribution: fixed token allotments from a pre-funded prize pool, capped by participant count."""

from __future__ import annotations

from dataclasses import dataclass, field

from predamm.errors import (
    AlreadyClaimedFree,
    BadFreeEntryConfig,
    FreeSlotsFull,
    InsufficientPrizePool,
)


@dataclass
class FreeClaim:
    user: str
    tokens_received: int
    claimed_at: int


@dataclass
class FreeEntryLedger:
    """Prize pool for one FREE_ENTRY market. Distributed total never exceeds the funded pool."""

    max_participants: int
    tokens_per_participant: int
    prize_pool: int = 0
    remaining_pool: int = 0
    claims: dict[str, FreeClaim] = field(default_factory=dict)

    @classmethod
    def funded(cls, max_participants: int, tokens_per_participant: int) -> FreeEntryLedger:
        """Pool sized exactly for the cap: max_participants * tokens_per_participant."""
        if max_participants <= 0 or tokens_per_participant <= 0:
            raise BadFreeEntryConfig(
                "free-entry markets need a positive cap and allotment",
                {"max_participants": max_participants, "tokens_per_participant": tokens_per_participant},
            )
        pool = max_participants * tokens_per_participant
        return cls(
            max_participants=max_participants,
            tokens_per_participant=tokens_per_participant,
            prize_pool=pool,
            remaining_pool=pool,
        )

    @property
    def participant_count(self) -> int:
        return len(self.claims)

    @property
    def slots_left(self) -> int:
        return max(self.max_participants - len(self.claims), 0)

    def has_claimed(self, user: str) -> bool:
        return user in self.claims

    def claim(self, user: str, now: int) -> FreeClaim:
        """Register the claim and debit the pool. Caller moves the tokens."""
        if user in self.claims:
            raise AlreadyClaimedFree("free tokens already claimed", {"user": user})
        if len(self.claims) >= self.max_participants:
            raise FreeSlotsFull("all free slots taken", {"max_participants": self.max_participants})
        if self.remaining_pool < self.tokens_per_participant:
            raise InsufficientPrizePool(
                "prize pool exhausted",
                {"remaining_pool": self.remaining_pool, "tokens_per_participant": self.tokens_per_participant},
            )
        self.remaining_pool -= self.tokens_per_participant
        entry = FreeClaim(user=user, tokens_received=self.tokens_per_participant, claimed_at=now)
        self.claims[user] = entry
        return entry

    def drain(self) -> int:
        """Empty the unclaimed pool (creator withdrawal or invalidation refund)."""
        amount = self.remaining_pool
        self.remaining_pool = 0
        return amount
