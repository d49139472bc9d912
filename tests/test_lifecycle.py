"""Lifecycle state machine over a bare market record."""

import pytest

from predamm.amm.curve import OptionAMM
from predamm.amm.fixed_point import SCALE
from predamm.engine.lifecycle import MarketLifecycle
from predamm.engine.record import MarketRecord
from predamm.errors import (
    CannotDisputeIfWon,
    InvalidWinningOption,
    MarketAlreadyDisputed,
    MarketAlreadyValidated,
    MarketDisputed,
    MarketEnded,
    MarketIsInvalidated,
    MarketNotActive,
    MarketNotEndedYet,
    MarketNotInvalidated,
    MarketNotReady,
    MarketNotResolved,
    MarketResolvedAlready,
    MarketTooNew,
)
from predamm.models.market import MarketKind, MarketPhase

T0 = 1_000
END = T0 + 10_000


def _record(early=False):
    amm = OptionAMM.seeded(["a", "b", "c"], ["", "", ""], 300 * SCALE)
    return MarketRecord(
        market_id=0,
        question="q",
        description="",
        category="",
        creator="admin",
        created_at=T0,
        end_time=END,
        kind=MarketKind.STAKED,
        early_resolution_allowed=early,
        amm=amm,
        seed_liquidity=300 * SCALE,
    )


def test_phases():
    lc = MarketLifecycle(_record())
    assert lc.phase(T0) == MarketPhase.CREATED
    lc.validate()
    assert lc.phase(T0) == MarketPhase.ACTIVE
    assert lc.phase(END) == MarketPhase.ENDED
    lc.resolve(1, END)
    assert lc.phase(END) == MarketPhase.RESOLVED
    lc.dispute("bob", holds_winning_shares=False)
    assert lc.phase(END) == MarketPhase.DISPUTED


def test_trading_window_checks():
    lc = MarketLifecycle(_record())
    with pytest.raises(MarketNotActive):
        lc.require_trading(T0)
    lc.require_trading(T0, requires_validation=False)
    lc.validate()
    lc.require_trading(END - 1)
    with pytest.raises(MarketEnded):
        lc.require_trading(END)


def test_validate_and_invalidate_are_exclusive():
    lc = MarketLifecycle(_record())
    lc.validate()
    with pytest.raises(MarketAlreadyValidated):
        lc.validate()
    with pytest.raises(MarketAlreadyValidated):
        lc.invalidate()

    lc = MarketLifecycle(_record())
    lc.invalidate()
    assert lc.phase(T0) == MarketPhase.INVALIDATED
    with pytest.raises(MarketIsInvalidated):
        lc.validate()
    with pytest.raises(MarketIsInvalidated):
        lc.require_trading(T0, requires_validation=False)


def test_resolution_rules():
    lc = MarketLifecycle(_record())
    with pytest.raises(MarketNotReady):
        lc.resolve(0, END)
    lc.validate()
    with pytest.raises(MarketNotEndedYet):
        lc.resolve(0, END - 1)
    with pytest.raises(InvalidWinningOption):
        lc.resolve(3, END)
    lc.resolve(2, END)
    assert lc.record.winning_option == 2
    with pytest.raises(MarketResolvedAlready):
        lc.resolve(1, END)
    with pytest.raises(MarketResolvedAlready):
        lc.require_trading(T0)


def test_early_resolution_delay():
    lc = MarketLifecycle(_record(early=True), min_early_resolution_delay=3600)
    lc.validate()
    with pytest.raises(MarketTooNew):
        lc.resolve(0, T0 + 3599)
    lc.resolve(0, T0 + 3600)
    assert lc.record.resolved_at == T0 + 3600


def test_dispute_rules():
    lc = MarketLifecycle(_record())
    lc.validate()
    with pytest.raises(MarketNotResolved):
        lc.dispute("bob", False)
    lc.resolve(0, END)
    lc.require_claims_open()
    with pytest.raises(CannotDisputeIfWon):
        lc.dispute("alice", True)
    lc.dispute("bob", False)
    with pytest.raises(MarketDisputed):
        lc.require_claims_open()
    with pytest.raises(MarketAlreadyDisputed):
        lc.dispute("carol", False)
    lc.settle_dispute(1)
    assert lc.record.winning_option == 1
    lc.require_claims_open()
    with pytest.raises(MarketAlreadyDisputed):
        lc.dispute("carol", False)


def test_share_trading_gate_depends_on_kind():
    record = _record()
    with pytest.raises(MarketNotActive):
        MarketLifecycle(record).require_share_trading(T0)
    record.kind = MarketKind.FREE_ENTRY
    MarketLifecycle(record).require_share_trading(T0)
    with pytest.raises(MarketNotInvalidated):
        MarketLifecycle(record).require_refunds_open()
