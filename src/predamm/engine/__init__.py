"""Market engine: lifecycle state machine, payouts and the orchestrating MarketEngine."""

from predamm.engine.core import EngineConfig, MarketEngine
from predamm.engine.lifecycle import MarketLifecycle
from predamm.engine.payout import PayoutEngine
from predamm.engine.record import MarketRecord, ResolutionSnapshot

__all__ = [
    "EngineConfig",
    "MarketEngine",
    "MarketLifecycle",
    "PayoutEngine",
    "MarketRecord",
    "ResolutionSnapshot",
]
