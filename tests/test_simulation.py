"""Scenario parsing and replay."""

from pathlib import Path

import pytest

from predamm.amm.fixed_point import SCALE
from predamm.collaborators import Capability
from predamm.models import MarketPhase
from predamm.simulation.runner import run_scenario
from predamm.simulation.scenario import amount, load_scenario, parse_scenario

DEMO = Path(__file__).resolve().parent.parent / "scenarios" / "demo.toml"


def test_amount_parses_whole_and_decimal():
    assert amount(100) == 100 * SCALE
    assert amount("0.5") == SCALE // 2


def test_parse_scenario():
    raw = {
        "name": "tiny",
        "accounts": {"alice": 10},
        "roles": {"oracle": ["RESOLVE_MARKET"]},
        "steps": [{"op": "advance", "seconds": 5}, {"op": "claim_free", "caller": "a", "market": 0, "expect": "X"}],
    }
    s = parse_scenario(raw)
    assert s.accounts == {"alice": 10 * SCALE}
    assert s.roles == {"oracle": [Capability.RESOLVE_MARKET]}
    assert [st.op for st in s.steps] == ["advance", "claim_free"]
    assert s.steps[1].expect == "X"
    assert "op" not in s.steps[0].args
    with pytest.raises(ValueError):
        parse_scenario({"steps": [{"seconds": 1}]})


def test_unknown_op_raises():
    with pytest.raises(ValueError):
        run_scenario(parse_scenario({"steps": [{"op": "teleport"}]}))


def test_demo_scenario_runs_clean():
    scenario = load_scenario(DEMO)
    assert scenario.name == "demo"
    result, ctx = run_scenario(scenario)
    assert result.unexpected == []
    assert result.markets_created == 2
    assert result.steps_failed == 3
    engine = ctx.engine
    assert engine.phase(0) == MarketPhase.RESOLVED
    assert engine.free_market_info(1).slots_left == 0
    held = sum(engine.tokens_held(m) for m in range(engine.market_count))
    assert held == ctx.token.balance_of("engine")


def test_unmet_expectation_is_reported():
    raw = {
        "accounts": {"admin": 2000},
        "steps": [
            {
                "op": "create_market",
                "caller": "admin",
                "question": "q",
                "options": ["a", "b"],
                "initial_liquidity": 1000,
                "expect": "NotAuthorized",
            }
        ],
    }
    result, _ = run_scenario(parse_scenario(raw))
    assert result.steps_ok == 1
    assert len(result.unexpected) == 1
