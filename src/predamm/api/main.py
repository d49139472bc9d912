"""FastAPI service: query surface and trading operations over an in-process engine."""

from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from predamm.api.schemas import (
    AmountResponse,
    BalanceResponse,
    BuyRequest,
    CallerRequest,
    CreateMarketRequest,
    ErrorResponse,
    FaucetRequest,
    FeeWithdrawRequest,
    GrantRequest,
    HealthResponse,
    LiquidityRequest,
    MarketCreatedResponse,
    QuoteResponse,
    ResolveRequest,
    SellRequest,
    SharesResponse,
    SwapRequest,
    SwapResponse,
)
from predamm.collaborators.memory import InMemoryToken, RoleRegistry
from predamm.config import get_settings
from predamm.engine.core import EngineConfig, MarketEngine
from predamm.errors import (
    AuthorizationError,
    ClaimError,
    EconomicError,
    ExternalError,
    LifecycleError,
    MarketNotFound,
    OnlyAdminOrOwner,
    PredAMMError,
    ValidationError,
)
from predamm.models import (
    FreeMarketInfo,
    LPInfo,
    MarketInfo,
    MarketPhase,
    OptionInfo,
    PlatformStats,
    PricePoint,
    Trade,
    UserPortfolio,
)

log = structlog.get_logger(__name__)

_config_profile: str | None = None
_engine: MarketEngine | None = None


def build_engine(profile: str | None = None) -> MarketEngine:
    """Engine backed by the in-memory token and role registry, configured from settings."""
    settings = get_settings(profile)
    token = InMemoryToken()
    roles = RoleRegistry(owner=settings.api_owner)
    return MarketEngine(token, roles, config=EngineConfig.from_settings(settings))


def get_engine() -> MarketEngine:
    global _engine
    if _engine is None:
        _engine = build_engine(_config_profile)
    return _engine


def set_engine(engine: MarketEngine | None) -> None:
    global _engine
    _engine = engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = get_engine()
    log.info("api_started", markets=engine.market_count)
    yield


app = FastAPI(title="PredAMM API", version="0.1.0", lifespan=lifespan)
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


def _error_json(code: str, message: str, status_code: int = 404) -> JSONResponse:
    """Return consistent error JSON: { detail, code }."""
    return JSONResponse(
        status_code=status_code,
        content={"detail": message, "code": code},
    )


def _status_for(exc: PredAMMError) -> int:
    if isinstance(exc, MarketNotFound):
        return 404
    if isinstance(exc, AuthorizationError):
        return 403
    if isinstance(exc, ValidationError):
        return 422
    if isinstance(exc, (LifecycleError, ClaimError)):
        return 409
    if isinstance(exc, EconomicError):
        return 400
    if isinstance(exc, ExternalError):
        return 502
    return 400


@app.exception_handler(PredAMMError)
async def engine_error_handler(request: Request, exc: PredAMMError) -> JSONResponse:
    log.info("request_rejected", path=request.url.path, code=exc.code, detail=exc.message)
    return _error_json(exc.code, exc.message, _status_for(exc))


_ERRORS = {404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}}


# --- Reads ---


@app.get("/health", response_model=HealthResponse)
def health(engine: MarketEngine = Depends(get_engine)) -> HealthResponse:
    return HealthResponse(status="ok", markets=engine.market_count)


@app.get("/stats", response_model=PlatformStats)
def stats(engine: MarketEngine = Depends(get_engine)) -> PlatformStats:
    return engine.platform_stats()


@app.get("/markets", response_model=list[MarketInfo])
def markets_list(
    phase: MarketPhase | None = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    engine: MarketEngine = Depends(get_engine),
) -> list[MarketInfo]:
    return engine.markets(phase)[offset : offset + limit]


@app.get("/markets/{market_id}", response_model=MarketInfo, responses=_ERRORS)
def market_detail(market_id: int, engine: MarketEngine = Depends(get_engine)) -> MarketInfo:
    return engine.market_info(market_id)


@app.get("/markets/{market_id}/options/{option}", response_model=OptionInfo, responses=_ERRORS)
def option_detail(market_id: int, option: int, engine: MarketEngine = Depends(get_engine)) -> OptionInfo:
    return engine.option_info(market_id, option)


@app.get("/markets/{market_id}/shares/{user}", response_model=SharesResponse, responses=_ERRORS)
def user_shares(market_id: int, user: str, engine: MarketEngine = Depends(get_engine)) -> SharesResponse:
    return SharesResponse(
        market_id=market_id,
        user=user,
        shares=engine.user_shares(market_id, user),
        claimable=engine.claimable_winnings(market_id, user),
    )


@app.get("/markets/{market_id}/prices", response_model=list[PricePoint], responses=_ERRORS)
def price_history(
    market_id: int,
    option: int | None = None,
    limit: int | None = Query(None, ge=1),
    engine: MarketEngine = Depends(get_engine),
) -> list[PricePoint]:
    return engine.price_history(market_id, option=option, limit=limit)


@app.get("/markets/{market_id}/trades", response_model=list[Trade], responses=_ERRORS)
def market_trades(
    market_id: int,
    limit: int | None = Query(None, ge=1, le=1000),
    engine: MarketEngine = Depends(get_engine),
) -> list[Trade]:
    return engine.market_trades(market_id, limit=limit)


@app.get("/markets/{market_id}/lp/{provider}", response_model=LPInfo, responses=_ERRORS)
def lp_info(market_id: int, provider: str, engine: MarketEngine = Depends(get_engine)) -> LPInfo:
    return engine.lp_info(market_id, provider)


@app.get("/markets/{market_id}/free", response_model=FreeMarketInfo, responses=_ERRORS)
def free_info(market_id: int, engine: MarketEngine = Depends(get_engine)) -> FreeMarketInfo:
    return engine.free_market_info(market_id)


@app.get("/markets/{market_id}/quote/{side}", response_model=QuoteResponse, responses=_ERRORS)
def quote(
    market_id: int,
    side: str,
    option: int = Query(...),
    quantity: int = Query(..., gt=0),
    engine: MarketEngine = Depends(get_engine),
):
    if side == "buy":
        q = engine.quote_buy(market_id, option, quantity)
        amount = q.cost
    elif side == "sell":
        q = engine.quote_sell(market_id, option, quantity)
        amount = q.revenue
    else:
        return _error_json("bad_side", f"side must be buy or sell, got {side}", 422)
    return QuoteResponse(
        market_id=market_id,
        option=option,
        quantity=quantity,
        amount=amount,
        fee=q.fee,
        avg_price=q.avg_price,
        new_price=q.new_price,
    )


@app.get("/users/{user}/portfolio", response_model=UserPortfolio)
def portfolio(user: str, engine: MarketEngine = Depends(get_engine)) -> UserPortfolio:
    return engine.user_portfolio(user)


@app.get("/users/{user}/trades", response_model=list[Trade])
def user_trades(user: str, engine: MarketEngine = Depends(get_engine)) -> list[Trade]:
    return engine.user_trades(user)


# --- Operations ---


@app.post("/markets", response_model=MarketCreatedResponse, responses=_ERRORS)
def create_market(req: CreateMarketRequest, engine: MarketEngine = Depends(get_engine)) -> MarketCreatedResponse:
    market_id = engine.create_market(
        req.caller,
        req.question,
        req.options,
        duration=req.duration,
        initial_liquidity=req.initial_liquidity,
        description=req.description,
        option_descriptions=req.option_descriptions,
        category=req.category,
        kind=req.kind,
        early_resolution=req.early_resolution,
        max_participants=req.max_participants,
        tokens_per_participant=req.tokens_per_participant,
    )
    return MarketCreatedResponse(market_id=market_id)


@app.post("/markets/{market_id}/validate", response_model=MarketInfo, responses=_ERRORS)
def validate(market_id: int, req: CallerRequest, engine: MarketEngine = Depends(get_engine)) -> MarketInfo:
    engine.validate_market(req.caller, market_id)
    return engine.market_info(market_id)


@app.post("/markets/{market_id}/invalidate", response_model=AmountResponse, responses=_ERRORS)
def invalidate(market_id: int, req: CallerRequest, engine: MarketEngine = Depends(get_engine)) -> AmountResponse:
    return AmountResponse(market_id=market_id, amount=engine.invalidate_market(req.caller, market_id))


@app.post("/markets/{market_id}/buy", response_model=Trade, responses=_ERRORS)
def buy(market_id: int, req: BuyRequest, engine: MarketEngine = Depends(get_engine)) -> Trade:
    return engine.buy(req.caller, market_id, req.option, req.quantity, req.max_cost)


@app.post("/markets/{market_id}/sell", response_model=Trade, responses=_ERRORS)
def sell(market_id: int, req: SellRequest, engine: MarketEngine = Depends(get_engine)) -> Trade:
    return engine.sell(req.caller, market_id, req.option, req.quantity, req.min_revenue)


@app.post("/markets/{market_id}/swap", response_model=SwapResponse, responses=_ERRORS)
def swap(market_id: int, req: SwapRequest, engine: MarketEngine = Depends(get_engine)) -> SwapResponse:
    q = engine.swap(req.caller, market_id, req.from_option, req.to_option, req.amount_in, req.min_out)
    return SwapResponse(
        market_id=market_id,
        from_option=q.from_option,
        to_option=q.to_option,
        amount_in=q.amount_in,
        amount_out=q.amount_out,
        fee_value=q.fee_value,
    )


@app.post("/markets/{market_id}/liquidity", response_model=AmountResponse, responses=_ERRORS)
def add_liquidity(market_id: int, req: LiquidityRequest, engine: MarketEngine = Depends(get_engine)) -> AmountResponse:
    return AmountResponse(market_id=market_id, amount=engine.add_liquidity(req.caller, market_id, req.amount))


@app.post("/markets/{market_id}/free-claim", response_model=AmountResponse, responses=_ERRORS)
def claim_free(market_id: int, req: CallerRequest, engine: MarketEngine = Depends(get_engine)) -> AmountResponse:
    return AmountResponse(market_id=market_id, amount=engine.claim_free_tokens(req.caller, market_id))


@app.post("/markets/{market_id}/resolve", response_model=MarketInfo, responses=_ERRORS)
def resolve(market_id: int, req: ResolveRequest, engine: MarketEngine = Depends(get_engine)) -> MarketInfo:
    engine.resolve_market(req.caller, market_id, req.winning_option)
    return engine.market_info(market_id)


@app.post("/markets/{market_id}/dispute", response_model=MarketInfo, responses=_ERRORS)
def dispute(market_id: int, req: CallerRequest, engine: MarketEngine = Depends(get_engine)) -> MarketInfo:
    engine.dispute_market(req.caller, market_id)
    return engine.market_info(market_id)


@app.post("/markets/{market_id}/settle-dispute", response_model=MarketInfo, responses=_ERRORS)
def settle_dispute(market_id: int, req: ResolveRequest, engine: MarketEngine = Depends(get_engine)) -> MarketInfo:
    engine.settle_dispute(req.caller, market_id, req.winning_option)
    return engine.market_info(market_id)


@app.post("/markets/{market_id}/claim", response_model=AmountResponse, responses=_ERRORS)
def claim_winnings(market_id: int, req: CallerRequest, engine: MarketEngine = Depends(get_engine)) -> AmountResponse:
    return AmountResponse(market_id=market_id, amount=engine.claim_winnings(req.caller, market_id))


@app.post("/markets/{market_id}/lp-claim", response_model=AmountResponse, responses=_ERRORS)
def claim_lp(market_id: int, req: CallerRequest, engine: MarketEngine = Depends(get_engine)) -> AmountResponse:
    return AmountResponse(market_id=market_id, amount=engine.claim_lp_rewards(req.caller, market_id))


@app.post("/markets/{market_id}/refund", response_model=AmountResponse, responses=_ERRORS)
def claim_refund(market_id: int, req: CallerRequest, engine: MarketEngine = Depends(get_engine)) -> AmountResponse:
    return AmountResponse(market_id=market_id, amount=engine.claim_refund(req.caller, market_id))


@app.post("/markets/{market_id}/admin-withdraw", response_model=AmountResponse, responses=_ERRORS)
def admin_withdraw(market_id: int, req: CallerRequest, engine: MarketEngine = Depends(get_engine)) -> AmountResponse:
    return AmountResponse(market_id=market_id, amount=engine.withdraw_admin_liquidity(req.caller, market_id))


@app.post("/fees/withdraw", response_model=AmountResponse, responses=_ERRORS)
def withdraw_fees(req: FeeWithdrawRequest, engine: MarketEngine = Depends(get_engine)) -> AmountResponse:
    return AmountResponse(market_id=req.market_id, amount=engine.withdraw_platform_fees(req.caller, req.market_id))


# --- Demo collaborators (in-memory token and roles only) ---


@app.post("/faucet", response_model=BalanceResponse)
def faucet(req: FaucetRequest, engine: MarketEngine = Depends(get_engine)):
    token = engine.token
    if not isinstance(token, InMemoryToken):
        return _error_json("unsupported", "faucet requires the in-memory token", 400)
    token.mint(req.account, get_settings(_config_profile).api_faucet_amount)
    return BalanceResponse(account=req.account, balance=token.balance_of(req.account))


@app.get("/balances/{account}", response_model=BalanceResponse)
def balance(account: str, engine: MarketEngine = Depends(get_engine)):
    token = engine.token
    if not isinstance(token, InMemoryToken):
        return _error_json("unsupported", "balances require the in-memory token", 400)
    return BalanceResponse(account=account, balance=token.balance_of(account))


@app.post("/roles", responses=_ERRORS)
def grant_roles(req: GrantRequest, engine: MarketEngine = Depends(get_engine)):
    roles = engine.authorizer
    if not isinstance(roles, RoleRegistry):
        return _error_json("unsupported", "role grants require the in-memory registry", 400)
    if req.caller != roles.owner:
        raise OnlyAdminOrOwner("only the owner may grant capabilities", {"caller": req.caller})
    roles.grant(req.account, *req.capabilities)
    caps = sorted(c.value for c in roles.capabilities_of(req.account))
    return {"account": req.account, "capabilities": caps}


def run_api(
    host: str = "127.0.0.1",
    port: int = 8000,
    profile: str | None = None,
) -> None:
    global _config_profile
    _config_profile = profile
    import uvicorn
    uvicorn.run("predamm.api.main:app", host=host, port=port, reload=False)
