"""LP rewards and free-entry prize pool."""

import pytest

from predamm.errors import (
    AlreadyClaimed,
    AlreadyClaimedFree,
    AmountMustBePositive,
    BadFreeEntryConfig,
    FreeSlotsFull,
    InsufficientPrizePool,
    NoLPRewards,
    NotLiquidityProvider,
)
from predamm.ledger import FreeEntryLedger, LiquidityLedger


def test_lp_contributions_accumulate():
    lp = LiquidityLedger()
    lp.contribute("carol", 100)
    entry = lp.contribute("carol", 50)
    lp.contribute("dave", 150)
    assert entry.amount == 150
    assert lp.total_pool == 300
    with pytest.raises(AmountMustBePositive):
        lp.contribute("carol", 0)


def test_lp_rewards_pro_rata_and_once():
    lp = LiquidityLedger()
    lp.contribute("carol", 100)
    lp.contribute("dave", 300)
    lp.accrue_fees(40)
    assert lp.estimated_reward("carol") == 10
    assert lp.claim("carol") == 10
    assert lp.claim("dave") == 30
    assert lp.fees_outstanding == 0
    with pytest.raises(AlreadyClaimed):
        lp.claim("carol")


def test_lp_claim_errors():
    lp = LiquidityLedger()
    with pytest.raises(NotLiquidityProvider):
        lp.claim("nobody")
    lp.contribute("carol", 100)
    with pytest.raises(NoLPRewards):
        lp.claim("carol")
    assert not lp.contributions["carol"].reward_claimed


def test_free_entry_funded_pool():
    free = FreeEntryLedger.funded(3, 100)
    assert free.prize_pool == free.remaining_pool == 300
    with pytest.raises(BadFreeEntryConfig):
        FreeEntryLedger.funded(0, 100)


def test_free_entry_claims():
    free = FreeEntryLedger.funded(2, 100)
    assert free.claim("alice", 1).tokens_received == 100
    with pytest.raises(AlreadyClaimedFree):
        free.claim("alice", 2)
    free.claim("bob", 3)
    assert free.slots_left == 0
    assert free.remaining_pool == 0
    with pytest.raises(FreeSlotsFull):
        free.claim("carol", 4)


def test_free_entry_pool_shortfall():
    free = FreeEntryLedger(max_participants=3, tokens_per_participant=100, prize_pool=150, remaining_pool=150)
    free.claim("alice", 1)
    with pytest.raises(InsufficientPrizePool):
        free.claim("bob", 2)
    assert free.drain() == 50
    assert free.remaining_pool == 0
