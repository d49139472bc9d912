"""Scenario runner: build an engine with in-memory collaborators, replay steps, persist results."""

from __future__ import annotations

import json
import time
import uuid
from dataclasses import dataclass, field
from typing import Any

import structlog

from predamm.collaborators.memory import InMemoryToken, RoleRegistry
from predamm.engine.core import EngineConfig, MarketEngine
from predamm.errors import PredAMMError
from predamm.simulation.scenario import STEP_HANDLERS, Scenario, SimClock

log = structlog.get_logger(__name__)


@dataclass
class StepOutcome:
    index: int
    op: str
    ok: bool
    code: str | None = None
    expected: bool = True
    result: Any = None


@dataclass
class RunResult:
    """Result of a scenario run."""

    run_id: str
    scenario_name: str
    steps_ok: int
    steps_failed: int
    markets_created: int
    trade_count: int
    total_volume: int
    errors: list[dict[str, Any]] = field(default_factory=list)
    params: dict = field(default_factory=dict)

    @property
    def unexpected(self) -> list[dict[str, Any]]:
        return [e for e in self.errors if not e.get("expected")]


@dataclass
class SimulationContext:
    engine: MarketEngine
    token: InMemoryToken
    roles: RoleRegistry
    clock: SimClock
    outcomes: list[StepOutcome] = field(default_factory=list)


def build_context(scenario: Scenario, config: EngineConfig | None = None) -> SimulationContext:
    token = InMemoryToken()
    for account, balance in scenario.accounts.items():
        token.mint(account, balance)
    roles = RoleRegistry(owner=scenario.owner)
    for account, caps in scenario.roles.items():
        roles.grant(account, *caps)
    clock = SimClock(scenario.start_time)
    engine = MarketEngine(token, roles, config=config, clock=clock)
    return SimulationContext(engine=engine, token=token, roles=roles, clock=clock)


def run_scenario(scenario: Scenario, config: EngineConfig | None = None) -> tuple[RunResult, SimulationContext]:
    """Replay every step. Engine errors are recorded, not raised; `expect` marks a failure as intended."""
    ctx = build_context(scenario, config)
    for i, step in enumerate(scenario.steps):
        handler = STEP_HANDLERS.get(step.op)
        if handler is None:
            raise ValueError(f"unknown scenario op at step {i}: {step.op}")
        try:
            result = handler(ctx.engine, ctx.clock, step.args)
        except PredAMMError as e:
            ctx.outcomes.append(StepOutcome(i, step.op, False, e.code, expected=step.expect == e.code))
            log.debug("scenario_step_failed", step=i, op=step.op, code=e.code, expected=step.expect == e.code)
            continue
        ctx.outcomes.append(StepOutcome(i, step.op, True, expected=step.expect is None, result=result))

    engine = ctx.engine
    stats = engine.platform_stats()
    errors = [
        {"step": o.index, "op": o.op, "code": o.code, "expected": o.expected}
        for o in ctx.outcomes
        if not o.ok or not o.expected
    ]
    result = RunResult(
        run_id=str(uuid.uuid4())[:8],
        scenario_name=scenario.name,
        steps_ok=sum(1 for o in ctx.outcomes if o.ok),
        steps_failed=sum(1 for o in ctx.outcomes if not o.ok),
        markets_created=engine.market_count,
        trade_count=stats.trade_count,
        total_volume=stats.total_volume,
        errors=errors,
        params=dict(scenario.params),
    )
    log.info(
        "scenario_finished",
        run_id=result.run_id,
        scenario=scenario.name,
        ok=result.steps_ok,
        failed=result.steps_failed,
        unexpected=len(result.unexpected),
    )
    return result, ctx


def save_run_result(conn: Any, result: RunResult) -> None:
    """Persist RunResult to sim_runs table."""
    conn.execute(
        """
        INSERT INTO sim_runs (run_id, scenario_name, params, steps_ok, steps_failed, markets_created, trade_count, total_volume, errors, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        [
            result.run_id,
            result.scenario_name,
            json.dumps(result.params),
            result.steps_ok,
            result.steps_failed,
            result.markets_created,
            result.trade_count,
            result.total_volume,
            json.dumps(result.errors),
            int(time.time() * 1000),
        ],
    )


def get_run_result(conn: Any, run_id: str) -> RunResult | None:
    """Load RunResult by run_id."""
    row = conn.execute(
        "SELECT run_id, scenario_name, params, steps_ok, steps_failed, markets_created, trade_count, total_volume, errors FROM sim_runs WHERE run_id = ?",
        [run_id],
    ).fetchone()
    if not row:
        return None
    return RunResult(
        run_id=row[0],
        scenario_name=row[1],
        steps_ok=row[3],
        steps_failed=row[4],
        markets_created=row[5],
        trade_count=row[6],
        total_volume=int(row[7] or 0),
        errors=json.loads(row[8]) if row[8] else [],
        params=json.loads(row[2]) if row[2] else {},
    )
