"""Shared fixtures: in-memory token, role registry, manual clock and an engine wired to them."""

import pytest

from predamm.amm.fixed_point import SCALE
from predamm.collaborators import Capability, InMemoryToken, RoleRegistry
from predamm.engine import EngineConfig, MarketEngine
from predamm.simulation.scenario import SimClock

START = 1_700_000_000
DAY = 86_400


@pytest.fixture
def clock():
    return SimClock(START)


@pytest.fixture
def token():
    t = InMemoryToken()
    for account in ("admin", "alice", "bob", "carol"):
        t.mint(account, 10_000 * SCALE)
    return t


@pytest.fixture
def roles():
    r = RoleRegistry(owner="admin")
    r.grant("oracle", Capability.RESOLVE_MARKET)
    return r


@pytest.fixture
def engine(token, roles, clock):
    return MarketEngine(token, roles, config=EngineConfig(), clock=clock)


@pytest.fixture
def market(engine):
    """Validated binary market seeded with 1000 tokens: each option starts at price 0.5."""
    mid = engine.create_market(
        "admin", "Will it rain tomorrow?", ["Yes", "No"], duration=DAY, initial_liquidity=1000 * SCALE
    )
    engine.validate_market("admin", mid)
    return mid
