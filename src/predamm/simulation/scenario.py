"""Scenario files: accounts, roles and an ordered list of engine operations, loaded from TOML."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from predamm.amm.fixed_point import from_display
from predamm.collaborators.base import Capability
from predamm.engine.core import MarketEngine
from predamm.models.market import MarketKind


class SimClock:
    """Manually advanced clock (epoch seconds) so scenarios are deterministic."""

    def __init__(self, start: int = 1_700_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


@dataclass
class Step:
    op: str
    args: dict[str, Any] = field(default_factory=dict)
    expect: str | None = None  # error code the step must fail with


@dataclass
class Scenario:
    name: str
    owner: str = "admin"
    start_time: int = 1_700_000_000
    accounts: dict[str, int] = field(default_factory=dict)  # fixed point
    roles: dict[str, list[Capability]] = field(default_factory=dict)
    steps: list[Step] = field(default_factory=list)
    params: dict[str, Any] = field(default_factory=dict)


def amount(value: Any) -> int:
    """Whole-token amount from TOML (int, float-looking string or decimal string) to fixed point."""
    return from_display(str(value))


def parse_scenario(raw: dict[str, Any], default_name: str = "scenario") -> Scenario:
    steps = []
    for entry in raw.get("steps") or []:
        entry = dict(entry)
        op = entry.pop("op", None)
        if not op:
            raise ValueError(f"scenario step without op: {entry}")
        expect = entry.pop("expect", None)
        steps.append(Step(op=op, args=entry, expect=expect))
    return Scenario(
        name=raw.get("name", default_name),
        owner=raw.get("owner", "admin"),
        start_time=int(raw.get("start_time", 1_700_000_000)),
        accounts={k: amount(v) for k, v in (raw.get("accounts") or {}).items()},
        roles={k: [Capability(c) for c in v] for k, v in (raw.get("roles") or {}).items()},
        steps=steps,
        params=dict(raw.get("params") or {}),
    )


def load_scenario(path: str | Path) -> Scenario:
    path = Path(path)
    with open(path, "rb") as f:
        raw = tomllib.load(f)
    return parse_scenario(raw, default_name=path.stem)


# --- Step handlers: (engine, clock, args) -> result ---


def _create_market(engine: MarketEngine, clock: SimClock, a: dict[str, Any]) -> Any:
    kind = MarketKind(a.get("kind", "STAKED"))
    return engine.create_market(
        a["caller"],
        a["question"],
        list(a["options"]),
        duration=int(a.get("duration", 86_400)),
        initial_liquidity=amount(a["initial_liquidity"]),
        description=a.get("description", ""),
        option_descriptions=a.get("option_descriptions"),
        category=a.get("category", ""),
        kind=kind,
        early_resolution=bool(a.get("early_resolution", False)),
        max_participants=int(a.get("max_participants", 0)),
        tokens_per_participant=amount(a.get("tokens_per_participant", 0)),
    )


def _max_or_none(a: dict[str, Any], key: str) -> int | None:
    return amount(a[key]) if key in a else None


STEP_HANDLERS: dict[str, Callable[[MarketEngine, SimClock, dict[str, Any]], Any]] = {
    "create_market": _create_market,
    "validate": lambda e, c, a: e.validate_market(a["caller"], int(a["market"])),
    "invalidate": lambda e, c, a: e.invalidate_market(a["caller"], int(a["market"])),
    "buy": lambda e, c, a: e.buy(
        a["caller"], int(a["market"]), int(a["option"]), amount(a["quantity"]), _max_or_none(a, "max_cost")
    ),
    "sell": lambda e, c, a: e.sell(
        a["caller"], int(a["market"]), int(a["option"]), amount(a["quantity"]), amount(a.get("min_revenue", 0))
    ),
    "swap": lambda e, c, a: e.swap(
        a["caller"], int(a["market"]), int(a["from_option"]), int(a["to_option"]),
        amount(a["amount_in"]), amount(a.get("min_out", 0)),
    ),
    "add_liquidity": lambda e, c, a: e.add_liquidity(a["caller"], int(a["market"]), amount(a["amount"])),
    "claim_free": lambda e, c, a: e.claim_free_tokens(a["caller"], int(a["market"])),
    "resolve": lambda e, c, a: e.resolve_market(a["caller"], int(a["market"]), int(a["winning_option"])),
    "dispute": lambda e, c, a: e.dispute_market(a["caller"], int(a["market"])),
    "settle_dispute": lambda e, c, a: e.settle_dispute(a["caller"], int(a["market"]), int(a["winning_option"])),
    "claim_winnings": lambda e, c, a: e.claim_winnings(a["caller"], int(a["market"])),
    "claim_lp_rewards": lambda e, c, a: e.claim_lp_rewards(a["caller"], int(a["market"])),
    "claim_refund": lambda e, c, a: e.claim_refund(a["caller"], int(a["market"])),
    "withdraw_admin_liquidity": lambda e, c, a: e.withdraw_admin_liquidity(a["caller"], int(a["market"])),
    "withdraw_platform_fees": lambda e, c, a: e.withdraw_platform_fees(
        a["caller"], int(a["market"]) if "market" in a else None
    ),
    "advance": lambda e, c, a: c.advance(int(a["seconds"])),
}
