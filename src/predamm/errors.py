"""
Exception hierarchy for the market engine.

Every error carries a machine-readable ``code`` (e.g. ``MarketEnded``) so the
CLI and HTTP layers can report it without string matching.

PredAMMError
├── LifecycleError       - operation not legal in the market's current phase
├── ValidationError      - malformed caller input
├── EconomicError        - slippage bound, liquidity or balance shortfall
├── ClaimError           - exactly-once claim already consumed
├── AuthorizationError   - caller lacks a capability
└── ExternalError        - token collaborator failed, or a re-entrant call
"""

from __future__ import annotations

from typing import Any


class PredAMMError(Exception):
    """Base for all engine errors. Rejected operations leave state unchanged."""

    code = "PredAMMError"

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        self.message = message or self.code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.code}: {self.message} | {self.details}"
        return f"{self.code}: {self.message}"


# --- Lifecycle ---
class LifecycleError(PredAMMError):
    code = "LifecycleError"


class MarketNotFound(LifecycleError):
    code = "MarketNotFound"


class MarketNotActive(LifecycleError):
    code = "MarketNotActive"


class MarketEnded(LifecycleError):
    code = "MarketEnded"


class MarketResolvedAlready(LifecycleError):
    code = "MarketResolvedAlready"


class MarketNotEndedYet(LifecycleError):
    code = "MarketNotEndedYet"


class MarketTooNew(LifecycleError):
    code = "MarketTooNew"


class MarketIsInvalidated(LifecycleError):
    code = "MarketIsInvalidated"


class MarketNotReady(LifecycleError):
    code = "MarketNotReady"


class MarketNotResolved(LifecycleError):
    code = "MarketNotResolved"


class MarketAlreadyValidated(LifecycleError):
    code = "MarketAlreadyValidated"


class MarketAlreadyDisputed(LifecycleError):
    code = "MarketAlreadyDisputed"


class MarketDisputed(LifecycleError):
    code = "MarketDisputed"


class CannotDisputeIfWon(LifecycleError):
    code = "CannotDisputeIfWon"


class MarketNotInvalidated(LifecycleError):
    code = "MarketNotInvalidated"


# --- Input validation ---
class ValidationError(PredAMMError):
    code = "ValidationError"


class InvalidOption(ValidationError):
    code = "InvalidOption"


class InvalidWinningOption(ValidationError):
    code = "InvalidWinningOption"


class BadOptionCount(ValidationError):
    code = "BadOptionCount"


class BadDuration(ValidationError):
    code = "BadDuration"


class EmptyQuestion(ValidationError):
    code = "EmptyQuestion"


class LengthMismatch(ValidationError):
    code = "LengthMismatch"


class AmountMustBePositive(ValidationError):
    code = "AmountMustBePositive"


class NotFreeMarket(ValidationError):
    code = "NotFreeMarket"


class BadFreeEntryConfig(ValidationError):
    code = "BadFreeEntryConfig"


# --- Economic / slippage ---
class EconomicError(PredAMMError):
    code = "EconomicError"


class PriceTooHigh(EconomicError):
    code = "PriceTooHigh"


class PriceTooLow(EconomicError):
    code = "PriceTooLow"


class InsufficientOutput(EconomicError):
    code = "InsufficientOutput"


class InsufficientLiquidity(EconomicError):
    code = "InsufficientLiquidity"


class InsufficientShares(EconomicError):
    code = "InsufficientShares"


class InsufficientPrizePool(EconomicError):
    code = "InsufficientPrizePool"


class FreeSlotsFull(EconomicError):
    code = "FreeSlotsFull"


class NoWinningShares(EconomicError):
    code = "NoWinningShares"


class NoLPRewards(EconomicError):
    code = "NoLPRewards"


class NotLiquidityProvider(EconomicError):
    code = "NotLiquidityProvider"


class NoFeesToWithdraw(EconomicError):
    code = "NoFeesToWithdraw"


# --- Exactly-once claims ---
class ClaimError(PredAMMError):
    code = "ClaimError"


class AlreadyClaimed(ClaimError):
    code = "AlreadyClaimed"


class AlreadyClaimedFree(ClaimError):
    code = "AlreadyClaimedFree"


class AdminLiquidityAlreadyClaimed(ClaimError):
    code = "AdminLiquidityAlreadyClaimed"


class NoRefundDue(ClaimError):
    code = "NoRefundDue"


# --- Authorization ---
class AuthorizationError(PredAMMError):
    code = "AuthorizationError"


class NotAuthorized(AuthorizationError):
    code = "NotAuthorized"


class OnlyAdminOrOwner(AuthorizationError):
    code = "OnlyAdminOrOwner"


# --- External dependency ---
class ExternalError(PredAMMError):
    code = "ExternalError"


class TransferFailed(ExternalError):
    code = "TransferFailed"


class ReentrantCall(ExternalError):
    code = "ReentrantCall"
