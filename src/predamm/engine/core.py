"""
MarketEngine - orchestrates lifecycle, AMM, LP and free-entry ledgers, payouts and token movement.

Markets live in an arena indexed by zero-based id. Operations on one market are
serialized by that market's lock; operations on different markets never contend.
Each mutating operation runs as a transaction: state is mutated first, tokens move
last, and any error (including a failed transfer) restores the record as it was.
"""

from __future__ import annotations

import copy
import itertools
import time
from contextlib import contextmanager
from dataclasses import dataclass, field, fields
from threading import Lock, RLock
from typing import Callable, Iterator

import structlog

from predamm.amm.curve import BuyQuote, OptionAMM, SellQuote, SwapQuote
from predamm.amm.fixed_point import SCALE, gross_up
from predamm.collaborators.base import Authorizer, Capability, TokenLedger
from predamm.collaborators.memory import ENGINE_ACCOUNT
from predamm.config.settings import Settings
from predamm.engine.lifecycle import MarketLifecycle
from predamm.engine.payout import PayoutEngine
from predamm.engine.record import MarketRecord
from predamm.errors import (
    AdminLiquidityAlreadyClaimed,
    AmountMustBePositive,
    BadDuration,
    BadFreeEntryConfig,
    BadOptionCount,
    EmptyQuestion,
    InsufficientLiquidity,
    InsufficientShares,
    InvalidOption,
    LengthMismatch,
    MarketNotFound,
    NoFeesToWithdraw,
    NotAuthorized,
    NotFreeMarket,
    OnlyAdminOrOwner,
    PriceTooHigh,
    PriceTooLow,
    ReentrantCall,
    TransferFailed,
)
from predamm.ledger.free_entry import FreeEntryLedger
from predamm.models.market import (
    FreeMarketInfo,
    LPInfo,
    MarketInfo,
    MarketKind,
    MarketPhase,
    OptionInfo,
    PlatformStats,
    UserPortfolio,
)
from predamm.models.trade import POOL, PricePoint, Trade

log = structlog.get_logger(__name__)

MIN_OPTIONS = 2
MAX_OPTIONS = 10


@dataclass
class EngineConfig:
    """Economic parameters. Amounts are fixed point."""

    platform_fee_bps: int = 200
    swap_fee_bps: int = 30
    min_duration_sec: int = 3600
    max_duration_sec: int = 365 * 24 * 3600
    min_initial_liquidity: int = 100 * SCALE
    min_early_resolution_delay_sec: int = 3600
    price_history_limit: int = 100
    fee_collector: str = "treasury"

    @classmethod
    def from_settings(cls, settings: Settings) -> EngineConfig:
        return cls(
            platform_fee_bps=settings.platform_fee_bps,
            swap_fee_bps=settings.swap_fee_bps,
            min_duration_sec=settings.min_duration_sec,
            max_duration_sec=settings.max_duration_sec,
            min_initial_liquidity=settings.min_initial_liquidity,
            min_early_resolution_delay_sec=settings.min_early_resolution_delay_sec,
            price_history_limit=settings.price_history_limit,
            fee_collector=settings.fee_collector,
        )


@dataclass
class _Portfolio:
    markets: list[int] = field(default_factory=list)
    total_invested: int = 0
    total_received: int = 0
    total_winnings: int = 0
    trade_count: int = 0


@dataclass
class _PendingTrade:
    option: int
    buyer: str
    seller: str
    side: str
    price: int
    quantity: int
    amount: int


_MISSING = object()


class _Transaction:
    """
    Undo log for one record plus history/portfolio effects that only land on commit.

    Scalar fields and the AMM curves are saved up front. Keyed per-user entries
    (share vectors, ledger entries) are saved by `keep` just before they change,
    so opening a transaction never copies the whole user book.
    """

    def __init__(self, record: MarketRecord, now: int) -> None:
        self.record = record
        self.now = now
        self._fields = {f.name: getattr(record, f.name) for f in fields(record)}
        self._amm = copy.deepcopy(record.amm)
        self._lp = copy.copy(record.lp)
        self._free = copy.copy(record.free)
        self._kept: list[tuple[dict, str, object]] = []
        self.trades: list[_PendingTrade] = []
        self.prices: list[tuple[int, int]] = []
        self.portfolio: dict[str, dict[str, int]] = {}
        self.committed: list[Trade] = []

    def keep(self, mapping: dict, key: str) -> None:
        old = mapping.get(key, _MISSING)
        self._kept.append((mapping, key, old if old is _MISSING else copy.deepcopy(old)))

    def trade(self, option: int, buyer: str, seller: str, side: str, price: int, quantity: int, amount: int = 0) -> None:
        self.trades.append(_PendingTrade(option, buyer, seller, side, price, quantity, amount))

    def price(self, option: int, price: int) -> None:
        self.prices.append((option, price))

    def touch(self, user: str, **deltas: int) -> None:
        entry = self.portfolio.setdefault(user, {})
        for key, value in deltas.items():
            entry[key] = entry.get(key, 0) + value

    def rollback(self) -> None:
        for mapping, key, old in reversed(self._kept):
            if old is _MISSING:
                mapping.pop(key, None)
            else:
                mapping[key] = old
        for name, value in self._fields.items():
            setattr(self.record, name, value)
        # the shallow ledger copies share their dicts with the live ones, restored above
        self.record.amm = self._amm
        self.record.lp = self._lp
        self.record.free = self._free


class MarketEngine:
    """Public operation set for every market. Depends only on the token and authorizer interfaces."""

    def __init__(
        self,
        token: TokenLedger,
        authorizer: Authorizer,
        config: EngineConfig | None = None,
        clock: Callable[[], int] | None = None,
        account: str = ENGINE_ACCOUNT,
    ) -> None:
        self.token = token
        self.authorizer = authorizer
        self.config = config or EngineConfig()
        self.clock = clock or (lambda: int(time.time()))
        self.account = account
        self.payouts = PayoutEngine()
        self._markets: list[MarketRecord] = []
        self._locks: list[RLock] = []
        self._busy: list[bool] = []
        self._arena_lock = Lock()
        self._global_lock = Lock()
        self._portfolios: dict[str, _Portfolio] = {}
        self._trade_ids = itertools.count()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @property
    def market_count(self) -> int:
        return len(self._markets)

    def _record(self, market_id: int) -> MarketRecord:
        if not 0 <= market_id < len(self._markets):
            raise MarketNotFound(f"market {market_id} does not exist")
        return self._markets[market_id]

    def _lifecycle(self, record: MarketRecord) -> MarketLifecycle:
        return MarketLifecycle(record, self.config.min_early_resolution_delay_sec)

    def _require(self, caller: str, capability: Capability) -> None:
        if not self.authorizer.is_authorized(caller, capability):
            raise NotAuthorized(f"{caller} lacks {capability.value}", {"caller": caller})

    @contextmanager
    def _operation(self, market_id: int) -> Iterator[_Transaction]:
        record = self._record(market_id)
        with self._locks[market_id]:
            if self._busy[market_id]:
                raise ReentrantCall("operation already in progress on this market", {"market_id": market_id})
            self._busy[market_id] = True
            txn = _Transaction(record, self.clock())
            try:
                yield txn
            except BaseException:
                txn.rollback()
                raise
            else:
                self._commit(txn)
            finally:
                self._busy[market_id] = False

    def _commit(self, txn: _Transaction) -> None:
        record = txn.record
        with self._global_lock:
            for p in txn.trades:
                trade = Trade(
                    trade_id=next(self._trade_ids),
                    market_id=record.market_id,
                    option=p.option,
                    buyer=p.buyer,
                    seller=p.seller,
                    side=p.side,
                    price=p.price,
                    quantity=p.quantity,
                    amount=p.amount,
                    timestamp=txn.now,
                )
                record.trades.append(trade)
                txn.committed.append(trade)
            for user, deltas in txn.portfolio.items():
                pf = self._portfolios.setdefault(user, _Portfolio())
                if record.market_id not in pf.markets:
                    pf.markets.append(record.market_id)
                pf.total_invested += deltas.get("invested", 0)
                pf.total_received += deltas.get("received", 0)
                pf.total_winnings += deltas.get("winnings", 0)
                pf.trade_count += deltas.get("trades", 0)
        for option, price in txn.prices:
            record.price_history.append(
                PricePoint(market_id=record.market_id, option=option, price=price, timestamp=txn.now)
            )

    @staticmethod
    def _join(txn: _Transaction, user: str) -> None:
        txn.keep(txn.record.participants, user)
        txn.record.add_participant(user, txn.now)

    def _pull(self, sender: str, amount: int) -> None:
        if amount <= 0:
            return
        try:
            ok = self.token.transfer_from(sender, self.account, amount)
        except Exception as e:
            log.warning("transfer_failed", direction="in", sender=sender, amount=amount, error=str(e))
            raise TransferFailed(f"transfer from {sender} raised", {"amount": amount}) from e
        if not ok:
            log.warning("transfer_failed", direction="in", sender=sender, amount=amount)
            raise TransferFailed(f"transfer from {sender} rejected", {"amount": amount})

    def _send(self, to: str, amount: int) -> None:
        if amount <= 0:
            return
        try:
            ok = self.token.transfer(to, amount)
        except Exception as e:
            log.warning("transfer_failed", direction="out", to=to, amount=amount, error=str(e))
            raise TransferFailed(f"transfer to {to} raised", {"amount": amount}) from e
        if not ok:
            log.warning("transfer_failed", direction="out", to=to, amount=amount)
            raise TransferFailed(f"transfer to {to} rejected", {"amount": amount})

    # ------------------------------------------------------------------
    # Market lifecycle
    # ------------------------------------------------------------------

    def create_market(
        self,
        caller: str,
        question: str,
        options: list[str],
        *,
        duration: int,
        initial_liquidity: int,
        description: str = "",
        option_descriptions: list[str] | None = None,
        category: str = "",
        kind: MarketKind = MarketKind.STAKED,
        early_resolution: bool = False,
        max_participants: int = 0,
        tokens_per_participant: int = 0,
    ) -> int:
        """
        Create a market seeded with the creator's liquidity (and, for FREE_ENTRY,
        a prize pool of max_participants * tokens_per_participant). Returns the market id.
        """
        self._require(caller, Capability.CREATE_MARKET)
        if not question or not question.strip():
            raise EmptyQuestion("question must not be empty")
        if not MIN_OPTIONS <= len(options) <= MAX_OPTIONS:
            raise BadOptionCount(f"need {MIN_OPTIONS}-{MAX_OPTIONS} options", {"count": len(options)})
        if option_descriptions is None:
            option_descriptions = [""] * len(options)
        elif len(option_descriptions) != len(options):
            raise LengthMismatch(
                "option names and descriptions differ in length",
                {"options": len(options), "descriptions": len(option_descriptions)},
            )
        if any(not name or not name.strip() for name in options):
            raise InvalidOption("option names must not be empty")
        if not self.config.min_duration_sec <= duration <= self.config.max_duration_sec:
            raise BadDuration(
                "duration out of bounds",
                {"duration": duration, "min": self.config.min_duration_sec, "max": self.config.max_duration_sec},
            )
        if initial_liquidity <= 0 or initial_liquidity < self.config.min_initial_liquidity:
            raise AmountMustBePositive(
                "initial liquidity below minimum",
                {"initial_liquidity": initial_liquidity, "min": self.config.min_initial_liquidity},
            )
        free = None
        if kind == MarketKind.FREE_ENTRY:
            free = FreeEntryLedger.funded(max_participants, tokens_per_participant)
        elif max_participants or tokens_per_participant:
            raise BadFreeEntryConfig("free-entry parameters given for a staked market")

        now = self.clock()
        amm = OptionAMM.seeded(
            list(options),
            list(option_descriptions),
            initial_liquidity,
            platform_fee_bps=self.config.platform_fee_bps,
            swap_fee_bps=self.config.swap_fee_bps,
        )
        record = MarketRecord(
            market_id=-1,
            question=question.strip(),
            description=description,
            category=category,
            creator=caller,
            created_at=now,
            end_time=now + duration,
            kind=kind,
            early_resolution_allowed=early_resolution,
            amm=amm,
            seed_liquidity=initial_liquidity,
            free=free,
            admin_liquidity=initial_liquidity,
        )
        # Nothing is visible yet, so funds are pulled before the record joins the arena.
        funding = initial_liquidity + (free.prize_pool if free else 0)
        self._pull(caller, funding)
        with self._arena_lock:
            record.market_id = len(self._markets)
            for pool in amm.pools:
                record.price_history.append(
                    PricePoint(market_id=record.market_id, option=pool.index, price=pool.price, timestamp=now)
                )
            # lock and guard must exist before the record is reachable by id
            self._locks.append(RLock())
            self._busy.append(False)
            self._markets.append(record)
        with self._global_lock:
            pf = self._portfolios.setdefault(caller, _Portfolio())
            pf.markets.append(record.market_id)
            pf.total_invested += funding
        log.info(
            "market_created",
            market_id=record.market_id,
            creator=caller,
            kind=kind.value,
            options=len(options),
            initial_liquidity=initial_liquidity,
            end_time=record.end_time,
        )
        return record.market_id

    def validate_market(self, caller: str, market_id: int) -> None:
        self._require(caller, Capability.VALIDATE_MARKET)
        with self._operation(market_id) as txn:
            self._lifecycle(txn.record).validate()
        log.info("market_validated", market_id=market_id, validator=caller)

    def invalidate_market(self, caller: str, market_id: int) -> int:
        """
        Reject a market before validation. Refunds the creator's seed and unclaimed prize pool
        once and returns that amount. Traders and LPs recover their deposits with claim_refund.
        """
        self._require(caller, Capability.VALIDATE_MARKET)
        with self._operation(market_id) as txn:
            record = txn.record
            self._lifecycle(record).invalidate()
            refund = record.admin_liquidity + (record.free.drain() if record.free else 0)
            record.admin_liquidity = 0
            record.admin_liquidity_claimed = True
            record.user_liquidity += record.lp.absorb_fees()
            record.refunds_owed = self.payouts.refund_schedule(record)
            txn.touch(record.creator, received=refund)
            self._send(record.creator, refund)
        log.info(
            "market_invalidated",
            market_id=market_id,
            validator=caller,
            refund=refund,
            refunds_owed=sum(record.refunds_owed.values()),
        )
        return refund

    def resolve_market(self, caller: str, market_id: int, winning_option: int) -> None:
        self._require(caller, Capability.RESOLVE_MARKET)
        with self._operation(market_id) as txn:
            record = txn.record
            self._lifecycle(record).resolve(winning_option, txn.now)
            record.resolution = self.payouts.snapshot(record, winning_option)
        log.info(
            "market_resolved",
            market_id=market_id,
            resolver=caller,
            winning_option=winning_option,
            winning_shares=record.resolution.total_winning_shares,
        )

    def dispute_market(self, caller: str, market_id: int) -> None:
        with self._operation(market_id) as txn:
            record = txn.record
            holds = record.winning_option is not None and record.shares_of(caller)[record.winning_option] > 0
            self._lifecycle(record).dispute(caller, holds)
        log.info("market_disputed", market_id=market_id, disputer=caller)

    def settle_dispute(self, caller: str, market_id: int, winning_option: int) -> None:
        """Close a dispute, keeping or replacing the winning option. Claims reopen afterwards."""
        self._require(caller, Capability.RESOLVE_MARKET)
        with self._operation(market_id) as txn:
            record = txn.record
            previous = record.winning_option
            self._lifecycle(record).settle_dispute(winning_option)
            if winning_option != previous:
                record.resolution = self.payouts.snapshot(record, winning_option)
        log.info("dispute_settled", market_id=market_id, resolver=caller, winning_option=winning_option)

    # ------------------------------------------------------------------
    # Trading
    # ------------------------------------------------------------------

    def buy(self, caller: str, market_id: int, option: int, quantity: int, max_cost: int | None = None) -> Trade:
        """Buy `quantity` shares of `option` from the pool. Fails PriceTooHigh if cost exceeds max_cost."""
        with self._operation(market_id) as txn:
            record = txn.record
            self._lifecycle(record).require_share_trading(txn.now)
            quote = record.amm.quote_buy(option, quantity)
            if max_cost is not None and quote.cost > max_cost:
                raise PriceTooHigh("cost exceeds max_cost", {"cost": quote.cost, "max_cost": max_cost})
            fill = record.amm.apply_buy(option, quantity, quote.cost)
            record.platform_fees_collected += fill.fee
            record.user_liquidity += fill.liquidity
            record.total_volume += quote.cost
            txn.keep(record.shares, caller)
            record.share_vector(caller)[option] += quantity
            txn.keep(record.deposits, caller)
            record.deposits[caller] = record.deposits.get(caller, 0) + fill.liquidity
            self._join(txn, caller)
            txn.trade(option, caller, POOL, "BUY", quote.avg_price, quantity, quote.cost)
            txn.price(option, fill.price)
            txn.touch(caller, invested=quote.cost, trades=1)
            self._pull(caller, quote.cost)
        log.info(
            "shares_bought",
            market_id=market_id,
            user=caller,
            option=option,
            quantity=quantity,
            cost=quote.cost,
            fee=fill.fee,
            price=fill.price,
        )
        return txn.committed[0]

    def sell(self, caller: str, market_id: int, option: int, quantity: int, min_revenue: int = 0) -> Trade:
        """Sell shares back to the pool. Fails PriceTooLow if net revenue is under min_revenue."""
        with self._operation(market_id) as txn:
            record = txn.record
            self._lifecycle(record).require_share_trading(txn.now)
            quote = record.amm.quote_sell(option, quantity)
            held = record.shares_of(caller)[option]
            if held < quantity:
                raise InsufficientShares("not enough shares", {"held": held, "quantity": quantity})
            if quote.revenue < min_revenue:
                raise PriceTooLow("revenue below min_revenue", {"revenue": quote.revenue, "min_revenue": min_revenue})
            gross = gross_up(quote.revenue, record.amm.platform_fee_bps)
            if gross > record.user_liquidity:
                raise InsufficientLiquidity(
                    "market cannot fund this sale", {"gross": gross, "user_liquidity": record.user_liquidity}
                )
            fill = record.amm.apply_sell(option, quantity, quote.revenue)
            record.user_liquidity -= fill.gross
            record.platform_fees_collected += fill.fee
            record.total_volume += fill.gross
            txn.keep(record.shares, caller)
            record.share_vector(caller)[option] -= quantity
            txn.keep(record.deposits, caller)
            record.deposits[caller] = max(record.deposits.get(caller, 0) - fill.gross, 0)
            txn.trade(option, POOL, caller, "SELL", quote.avg_price, quantity, quote.revenue)
            txn.price(option, fill.price)
            txn.touch(caller, received=quote.revenue, trades=1)
            self._send(caller, quote.revenue)
        log.info(
            "shares_sold",
            market_id=market_id,
            user=caller,
            option=option,
            quantity=quantity,
            revenue=quote.revenue,
            fee=fill.fee,
            price=fill.price,
        )
        return txn.committed[0]

    def swap(
        self,
        caller: str,
        market_id: int,
        from_option: int,
        to_option: int,
        amount_in: int,
        min_out: int = 0,
    ) -> SwapQuote:
        """Exchange shares of one option for another. The swap fee goes to liquidity providers."""
        with self._operation(market_id) as txn:
            record = txn.record
            self._lifecycle(record).require_share_trading(txn.now)
            held = record.shares_of(caller)[record.amm.pool(from_option).index]
            if held < amount_in:
                raise InsufficientShares("not enough shares to swap", {"held": held, "amount_in": amount_in})
            result = record.amm.apply_swap(from_option, to_option, amount_in, min_out)
            fee_value = min(result.fee_value, record.user_liquidity)
            record.user_liquidity -= fee_value
            record.lp.accrue_fees(fee_value)
            txn.keep(record.shares, caller)
            vec = record.share_vector(caller)
            vec[from_option] -= amount_in
            vec[to_option] += result.amount_out
            pool_in, pool_out = record.amm.pools[from_option], record.amm.pools[to_option]
            txn.trade(from_option, POOL, caller, "SWAP_IN", pool_in.price, amount_in)
            txn.trade(to_option, caller, POOL, "SWAP_OUT", pool_out.price, result.amount_out)
            txn.price(from_option, pool_in.price)
            txn.price(to_option, pool_out.price)
            txn.touch(caller, trades=1)
        log.info(
            "shares_swapped",
            market_id=market_id,
            user=caller,
            from_option=from_option,
            to_option=to_option,
            amount_in=amount_in,
            amount_out=result.amount_out,
            lp_fee=fee_value,
        )
        return result

    def add_liquidity(self, caller: str, market_id: int, amount: int) -> int:
        """Deepen all option curves. Returns the provider's cumulative contribution."""
        with self._operation(market_id) as txn:
            record = txn.record
            self._lifecycle(record).require_trading(txn.now, requires_validation=False)
            record.amm.add_liquidity(amount)
            txn.keep(record.lp.contributions, caller)
            entry = record.lp.contribute(caller, amount)
            record.user_liquidity += amount
            self._join(txn, caller)
            txn.touch(caller, invested=amount)
            self._pull(caller, amount)
        log.info("liquidity_added", market_id=market_id, provider=caller, amount=amount, total_pool=record.lp.total_pool)
        return entry.amount

    def claim_free_tokens(self, caller: str, market_id: int) -> int:
        with self._operation(market_id) as txn:
            record = txn.record
            if record.free is None:
                raise NotFreeMarket("market is not free-entry", {"market_id": market_id})
            self._lifecycle(record).require_trading(txn.now, requires_validation=False)
            txn.keep(record.free.claims, caller)
            claim = record.free.claim(caller, txn.now)
            self._join(txn, caller)
            txn.touch(caller, received=claim.tokens_received)
            self._send(caller, claim.tokens_received)
        log.info(
            "free_tokens_claimed",
            market_id=market_id,
            user=caller,
            amount=claim.tokens_received,
            slots_left=record.free.slots_left,
        )
        return claim.tokens_received

    # ------------------------------------------------------------------
    # Claims and withdrawals
    # ------------------------------------------------------------------

    def claim_winnings(self, caller: str, market_id: int) -> int:
        with self._operation(market_id) as txn:
            record = txn.record
            self._lifecycle(record).require_claims_open()
            txn.keep(record.winnings_claimed, caller)
            amount = self.payouts.claim(record, caller)
            txn.touch(caller, received=amount, winnings=amount)
            self._send(caller, amount)
        log.info("winnings_claimed", market_id=market_id, user=caller, amount=amount)
        return amount

    def claim_lp_rewards(self, caller: str, market_id: int) -> int:
        with self._operation(market_id) as txn:
            record = txn.record
            self._lifecycle(record).require_claims_open()
            txn.keep(record.lp.contributions, caller)
            reward = record.lp.claim(caller)
            txn.touch(caller, received=reward)
            self._send(caller, reward)
        log.info("lp_rewards_claimed", market_id=market_id, provider=caller, amount=reward)
        return reward

    def claim_refund(self, caller: str, market_id: int) -> int:
        """Return a trader's or LP's share of user liquidity from an invalidated market, once."""
        with self._operation(market_id) as txn:
            record = txn.record
            self._lifecycle(record).require_refunds_open()
            txn.keep(record.refunds_paid, caller)
            txn.keep(record.lp.contributions, caller)
            amount = self.payouts.claim_refund(record, caller)
            txn.touch(caller, received=amount)
            self._send(caller, amount)
        log.info("refund_claimed", market_id=market_id, user=caller, amount=amount)
        return amount

    def refund_due(self, market_id: int, user: str) -> int:
        record = self._record(market_id)
        with self._locks[market_id]:
            if user in record.refunds_paid:
                return 0
            return min(record.refunds_owed.get(user, 0), record.user_liquidity)

    def withdraw_admin_liquidity(self, caller: str, market_id: int) -> int:
        """Return seed liquidity (plus unclaimed prize pool) to the creator once claims are open."""
        with self._operation(market_id) as txn:
            record = txn.record
            if caller != record.creator and not self.authorizer.is_authorized(caller, Capability.ADMIN):
                raise OnlyAdminOrOwner("only the creator or an admin may withdraw", {"caller": caller})
            self._lifecycle(record).require_claims_open()
            if record.admin_liquidity_claimed:
                raise AdminLiquidityAlreadyClaimed("admin liquidity already withdrawn", {"market_id": market_id})
            amount = record.admin_liquidity + (record.free.drain() if record.free else 0)
            record.admin_liquidity = 0
            record.admin_liquidity_claimed = True
            txn.touch(record.creator, received=amount)
            self._send(record.creator, amount)
        log.info("admin_liquidity_withdrawn", market_id=market_id, creator=record.creator, amount=amount)
        return amount

    def withdraw_platform_fees(self, caller: str, market_id: int | None = None) -> int:
        """Send outstanding platform fees (one market, or all) to the configured fee collector."""
        if not self.authorizer.is_authorized(caller, Capability.ADMIN):
            raise OnlyAdminOrOwner("only an admin may withdraw platform fees", {"caller": caller})
        market_ids = [market_id] if market_id is not None else list(range(len(self._markets)))
        total = 0
        for mid in market_ids:
            with self._operation(mid) as txn:
                record = txn.record
                amount = record.platform_fees_outstanding
                if amount == 0:
                    continue
                record.platform_fees_withdrawn += amount
                self._send(self.config.fee_collector, amount)
            total += amount
            log.info("platform_fees_withdrawn", market_id=mid, amount=amount, collector=self.config.fee_collector)
        if total == 0:
            raise NoFeesToWithdraw("no platform fees outstanding")
        return total

    # ------------------------------------------------------------------
    # Queries (pure reads of committed state)
    # ------------------------------------------------------------------

    def phase(self, market_id: int) -> MarketPhase:
        return self._lifecycle(self._record(market_id)).phase(self.clock())

    def quote_buy(self, market_id: int, option: int, quantity: int) -> BuyQuote:
        record = self._record(market_id)
        with self._locks[market_id]:
            return record.amm.quote_buy(option, quantity)

    def quote_sell(self, market_id: int, option: int, quantity: int) -> SellQuote:
        record = self._record(market_id)
        with self._locks[market_id]:
            return record.amm.quote_sell(option, quantity)

    def quote_swap(self, market_id: int, from_option: int, to_option: int, amount_in: int) -> SwapQuote:
        record = self._record(market_id)
        with self._locks[market_id]:
            return record.amm.quote_swap(from_option, to_option, amount_in)

    def _option_info(self, record: MarketRecord, option: int) -> OptionInfo:
        pool = record.amm.pool(option)
        return OptionInfo(
            market_id=record.market_id,
            index=pool.index,
            name=pool.name,
            description=pool.description,
            total_shares=pool.total_shares,
            volume=pool.volume,
            price=pool.price,
            k=pool.k,
            reserve=pool.reserve,
        )

    def market_info(self, market_id: int) -> MarketInfo:
        record = self._record(market_id)
        with self._locks[market_id]:
            return MarketInfo(
                market_id=record.market_id,
                question=record.question,
                description=record.description,
                category=record.category,
                creator=record.creator,
                kind=record.kind,
                option_count=record.option_count,
                created_at=record.created_at,
                end_time=record.end_time,
                early_resolution_allowed=record.early_resolution_allowed,
                phase=self._lifecycle(record).phase(self.clock()),
                validated=record.validated,
                invalidated=record.invalidated,
                resolved=record.resolved,
                disputed=record.disputed,
                winning_option=record.winning_option,
                admin_liquidity=record.admin_liquidity,
                user_liquidity=record.user_liquidity,
                platform_fees_collected=record.platform_fees_collected,
                amm_fees_collected=record.amm_fees_collected,
                total_volume=record.total_volume,
                options=[self._option_info(record, i) for i in range(record.option_count)],
            )

    def markets(self, phase: MarketPhase | None = None) -> list[MarketInfo]:
        infos = [self.market_info(i) for i in range(len(self._markets))]
        if phase is not None:
            infos = [m for m in infos if m.phase == phase]
        return infos

    def option_info(self, market_id: int, option: int) -> OptionInfo:
        record = self._record(market_id)
        with self._locks[market_id]:
            return self._option_info(record, option)

    def user_shares(self, market_id: int, user: str) -> list[int]:
        record = self._record(market_id)
        with self._locks[market_id]:
            return record.shares_of(user)

    def claimable_winnings(self, market_id: int, user: str) -> int:
        record = self._record(market_id)
        with self._locks[market_id]:
            return self.payouts.claimable(record, user)

    def price_history(self, market_id: int, option: int | None = None, limit: int | None = None) -> list[PricePoint]:
        """Most recent price points, oldest first, never more than price_history_limit."""
        record = self._record(market_id)
        cap = self.config.price_history_limit
        limit = cap if limit is None else max(0, min(limit, cap))
        if limit == 0:
            return []
        with self._locks[market_id]:
            points = record.price_history
            if option is not None:
                record.amm.pool(option)
                points = [p for p in points if p.option == option]
            return list(points[-limit:])

    def market_trades(self, market_id: int, limit: int | None = None) -> list[Trade]:
        record = self._record(market_id)
        with self._locks[market_id]:
            trades = list(record.trades)
        return trades[-limit:] if limit else trades

    def user_trades(self, user: str) -> list[Trade]:
        out: list[Trade] = []
        for record in list(self._markets):
            with self._locks[record.market_id]:
                out.extend(t for t in record.trades if user in (t.buyer, t.seller))
        return sorted(out, key=lambda t: t.trade_id)

    def lp_info(self, market_id: int, provider: str) -> LPInfo:
        record = self._record(market_id)
        with self._locks[market_id]:
            entry = record.lp.contributions.get(provider)
            return LPInfo(
                market_id=market_id,
                provider=provider,
                contribution=entry.amount if entry else 0,
                total_pool=record.lp.total_pool,
                amm_fees_collected=record.lp.amm_fees_collected,
                estimated_reward=record.lp.estimated_reward(provider),
                reward_claimed=entry.reward_claimed if entry else False,
            )

    def free_market_info(self, market_id: int) -> FreeMarketInfo:
        record = self._record(market_id)
        with self._locks[market_id]:
            free = record.free
            if free is None:
                raise NotFreeMarket("market is not free-entry", {"market_id": market_id})
            return FreeMarketInfo(
                market_id=market_id,
                max_participants=free.max_participants,
                tokens_per_participant=free.tokens_per_participant,
                prize_pool=free.prize_pool,
                remaining_pool=free.remaining_pool,
                participant_count=free.participant_count,
                slots_left=free.slots_left,
            )

    def user_portfolio(self, user: str) -> UserPortfolio:
        with self._global_lock:
            pf = self._portfolios.get(user) or _Portfolio()
            return UserPortfolio(
                user=user,
                markets=list(pf.markets),
                total_invested=pf.total_invested,
                total_received=pf.total_received,
                total_winnings=pf.total_winnings,
                trade_count=pf.trade_count,
            )

    def platform_stats(self) -> PlatformStats:
        stats = PlatformStats(market_count=len(self._markets))
        now = self.clock()
        for record in list(self._markets):
            with self._locks[record.market_id]:
                phase = self._lifecycle(record).phase(now)
                if phase == MarketPhase.ACTIVE:
                    stats.active_markets += 1
                elif phase in (MarketPhase.RESOLVED, MarketPhase.DISPUTED):
                    stats.resolved_markets += 1
                stats.total_volume += record.total_volume
                stats.platform_fees_collected += record.platform_fees_collected
                stats.platform_fees_outstanding += record.platform_fees_outstanding
                stats.amm_fees_collected += record.amm_fees_collected
                stats.trade_count += len(record.trades)
        return stats

    def tokens_held(self, market_id: int) -> int:
        """Tokens attributable to this market (conservation check)."""
        record = self._record(market_id)
        with self._locks[market_id]:
            return record.tokens_held()
