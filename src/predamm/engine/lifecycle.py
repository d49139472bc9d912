"""
Market lifecycle state machine.

CREATED -> VALIDATED (ACTIVE while now < end_time) -> ENDED -> RESOLVED -> DISPUTED -> RESOLVED
CREATED -> INVALIDATED (terminal)

Every engine operation asks this machine first; checks raise before any state is touched.
"""

from __future__ import annotations

import structlog

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

log = structlog.get_logger(__name__)


class MarketLifecycle:
    """Legality checks and flag transitions for one market record."""

    __slots__ = ("record", "min_early_resolution_delay")

    def __init__(self, record: MarketRecord, min_early_resolution_delay: int = 0) -> None:
        self.record = record
        self.min_early_resolution_delay = min_early_resolution_delay

    def phase(self, now: int) -> MarketPhase:
        r = self.record
        if r.invalidated:
            return MarketPhase.INVALIDATED
        if r.resolved:
            return MarketPhase.DISPUTED if r.disputed else MarketPhase.RESOLVED
        if not r.validated:
            return MarketPhase.CREATED
        if now < r.end_time:
            return MarketPhase.ACTIVE
        return MarketPhase.ENDED

    # --- Trading window ---

    def require_trading(self, now: int, requires_validation: bool = True) -> None:
        r = self.record
        if r.invalidated:
            raise MarketIsInvalidated("market was invalidated", {"market_id": r.market_id})
        if r.resolved:
            raise MarketResolvedAlready("market already resolved", {"market_id": r.market_id})
        if now >= r.end_time:
            raise MarketEnded("trading window closed", {"market_id": r.market_id, "end_time": r.end_time})
        if requires_validation and not r.validated:
            raise MarketNotActive("market not validated yet", {"market_id": r.market_id})

    def require_share_trading(self, now: int) -> None:
        """buy, sell and swap. Only staked markets must be validated first."""
        self.require_trading(now, requires_validation=self.record.kind == MarketKind.STAKED)

    # --- Validation ---

    def validate(self) -> None:
        r = self.record
        if r.invalidated:
            raise MarketIsInvalidated("market was invalidated", {"market_id": r.market_id})
        if r.validated:
            raise MarketAlreadyValidated("market already validated", {"market_id": r.market_id})
        r.validated = True

    def invalidate(self) -> None:
        r = self.record
        if r.validated:
            raise MarketAlreadyValidated("validated markets cannot be invalidated", {"market_id": r.market_id})
        if r.invalidated:
            raise MarketIsInvalidated("market already invalidated", {"market_id": r.market_id})
        r.invalidated = True

    # --- Resolution ---

    def require_resolvable(self, now: int, winning_option: int) -> None:
        r = self.record
        if r.invalidated:
            raise MarketIsInvalidated("market was invalidated", {"market_id": r.market_id})
        if r.resolved:
            raise MarketResolvedAlready("market already resolved", {"market_id": r.market_id})
        if not r.validated:
            raise MarketNotReady("market was never validated", {"market_id": r.market_id})
        if now < r.end_time:
            if not r.early_resolution_allowed:
                raise MarketNotEndedYet("market still running", {"market_id": r.market_id, "end_time": r.end_time})
            earliest = r.created_at + self.min_early_resolution_delay
            if now < earliest:
                raise MarketTooNew("early resolution delay not elapsed", {"market_id": r.market_id, "earliest": earliest})
        self._require_option(winning_option)

    def resolve(self, winning_option: int, now: int) -> None:
        self.require_resolvable(now, winning_option)
        r = self.record
        r.resolved = True
        r.winning_option = winning_option
        r.resolved_at = now

    # --- Disputes ---

    def require_disputable(self, holds_winning_shares: bool) -> None:
        r = self.record
        if r.invalidated:
            raise MarketIsInvalidated("market was invalidated", {"market_id": r.market_id})
        if not r.resolved:
            raise MarketNotResolved("only resolved markets can be disputed", {"market_id": r.market_id})
        if r.disputed or r.dispute_settled:
            raise MarketAlreadyDisputed("market already disputed", {"market_id": r.market_id})
        if holds_winning_shares:
            raise CannotDisputeIfWon("winning holders cannot dispute", {"market_id": r.market_id})

    def dispute(self, caller: str, holds_winning_shares: bool) -> None:
        self.require_disputable(holds_winning_shares)
        self.record.disputed = True
        self.record.disputed_by = caller

    def settle_dispute(self, winning_option: int) -> None:
        r = self.record
        if not r.disputed:
            raise MarketNotResolved("market is not under dispute", {"market_id": r.market_id})
        self._require_option(winning_option)
        r.disputed = False
        r.dispute_settled = True
        if winning_option != r.winning_option:
            log.info("dispute_overturned", market_id=r.market_id, old=r.winning_option, new=winning_option)
        r.winning_option = winning_option

    # --- Claims ---

    def require_refunds_open(self) -> None:
        if not self.record.invalidated:
            raise MarketNotInvalidated("refunds open only on invalidated markets", {"market_id": self.record.market_id})

    def require_claims_open(self) -> None:
        r = self.record
        if r.invalidated:
            raise MarketIsInvalidated("market was invalidated", {"market_id": r.market_id})
        if not r.resolved:
            raise MarketNotResolved("market not resolved", {"market_id": r.market_id})
        if r.disputed:
            raise MarketDisputed("claims paused while disputed", {"market_id": r.market_id})

    def _require_option(self, option: int) -> None:
        if not 0 <= option < self.record.option_count:
            raise InvalidWinningOption(
                f"winning option {option} out of range", {"option_count": self.record.option_count}
            )
