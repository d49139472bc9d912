"""Side ledgers: LP contributions/rewards and free-entry prize pools."""

from predamm.ledger.free_entry import FreeClaim, FreeEntryLedger
from predamm.ledger.liquidity import LiquidityContribution, LiquidityLedger

__all__ = ["FreeClaim", "FreeEntryLedger", "LiquidityContribution", "LiquidityLedger"]
