"""Per-option constant-product curve: price = k * SCALE / reserve. Quotes, fills, swaps, liquidity adds."""

from __future__ import annotations

from dataclasses import dataclass

from predamm.amm.fixed_point import (
    BPS_DENOMINATOR,
    SCALE,
    apply_bps,
    extract_inclusive_fee,
    fee_inclusive,
    gross_up,
    mul_div,
)
from predamm.errors import (
    AmountMustBePositive,
    InsufficientLiquidity,
    InsufficientOutput,
    InvalidOption,
)


@dataclass(frozen=True)
class BuyQuote:
    """Cost of buying `quantity` shares, fee included."""

    option: int
    quantity: int
    cost: int
    fee: int
    avg_price: int
    new_reserve: int
    new_price: int


@dataclass(frozen=True)
class SellQuote:
    """Net revenue of selling `quantity` shares, fee deducted and floored at 0."""

    option: int
    quantity: int
    revenue: int
    fee: int
    avg_price: int
    new_reserve: int
    new_price: int


@dataclass(frozen=True)
class SwapQuote:
    """Option-to-option swap. fee_shares is the input slice withheld for LPs."""

    from_option: int
    to_option: int
    amount_in: int
    amount_out: int
    fee_shares: int
    fee_value: int


@dataclass(frozen=True)
class BuyFill:
    fee: int
    liquidity: int
    price: int


@dataclass(frozen=True)
class SellFill:
    gross: int
    fee: int
    price: int


class OptionPool:
    """AMM state and running totals for a single option. Invariant: reserve > 0, price == k*SCALE//reserve."""

    __slots__ = ("index", "name", "description", "k", "reserve", "price", "total_shares", "volume")

    def __init__(self, index: int, name: str, description: str, k: int, reserve: int) -> None:
        if reserve <= 0:
            raise AmountMustBePositive(f"option {index} reserve must be positive", {"reserve": reserve})
        self.index = index
        self.name = name
        self.description = description
        self.k = k
        self.reserve = reserve
        self.price = mul_div(k, SCALE, reserve)
        self.total_shares = 0
        self.volume = 0

    def price_at(self, reserve: int) -> int:
        return mul_div(self.k, SCALE, reserve)

    def set_reserve(self, reserve: int) -> None:
        self.reserve = reserve
        self.price = self.price_at(reserve)


def clamp_buy_reserve(reserve: int, quantity: int) -> int:
    """Reserve after a buy. A buy that would exhaust the reserve halves it instead (never below 1)."""
    if reserve > quantity:
        return reserve - quantity
    return max(reserve // 2, 1)


class OptionAMM:
    """
    Pricing for all options of one market.

    Each option carries its own (k, reserve); options are independent curves,
    so a buy on one option does not move another option's price.
    """

    def __init__(self, pools: list[OptionPool], platform_fee_bps: int = 0, swap_fee_bps: int = 0) -> None:
        self.pools = pools
        self.platform_fee_bps = platform_fee_bps
        self.swap_fee_bps = swap_fee_bps

    @classmethod
    def seeded(
        cls,
        names: list[str],
        descriptions: list[str],
        liquidity: int,
        platform_fee_bps: int = 0,
        swap_fee_bps: int = 0,
    ) -> OptionAMM:
        """Split seed liquidity evenly; each option starts at price SCALE / N."""
        n = len(names)
        per_option = liquidity // n
        if per_option <= 0:
            raise AmountMustBePositive("seed liquidity too small for option count", {"liquidity": liquidity})
        k = per_option // n
        pools = [OptionPool(i, names[i], descriptions[i], k, per_option) for i in range(n)]
        return cls(pools, platform_fee_bps=platform_fee_bps, swap_fee_bps=swap_fee_bps)

    @property
    def option_count(self) -> int:
        return len(self.pools)

    def pool(self, option: int) -> OptionPool:
        if not 0 <= option < len(self.pools):
            raise InvalidOption(f"option {option} out of range", {"option_count": len(self.pools)})
        return self.pools[option]

    def price(self, option: int) -> int:
        return self.pool(option).price

    def prices(self) -> list[int]:
        return [p.price for p in self.pools]

    # --- Quotes (pure) ---

    def quote_buy(self, option: int, quantity: int) -> BuyQuote:
        if quantity <= 0:
            raise AmountMustBePositive("quantity must be positive")
        pool = self.pool(option)
        new_reserve = clamp_buy_reserve(pool.reserve, quantity)
        new_price = pool.price_at(new_reserve)
        avg_price = (pool.price + new_price) // 2
        base = mul_div(quantity, avg_price, SCALE)
        cost = fee_inclusive(base, self.platform_fee_bps)
        return BuyQuote(option, quantity, cost, cost - base, avg_price, new_reserve, new_price)

    def quote_sell(self, option: int, quantity: int) -> SellQuote:
        if quantity <= 0:
            raise AmountMustBePositive("quantity must be positive")
        pool = self.pool(option)
        new_reserve = pool.reserve + quantity
        new_price = pool.price_at(new_reserve)
        avg_price = (pool.price + new_price) // 2
        base = mul_div(quantity, avg_price, SCALE)
        fee = apply_bps(base, self.platform_fee_bps)
        revenue = max(base - fee, 0)
        return SellQuote(option, quantity, revenue, fee, avg_price, new_reserve, new_price)

    def quote_swap(self, from_option: int, to_option: int, amount_in: int) -> SwapQuote:
        if from_option == to_option:
            raise InvalidOption("cannot swap an option into itself", {"option": from_option})
        if amount_in <= 0:
            raise AmountMustBePositive("amount_in must be positive")
        pool_in = self.pool(from_option)
        pool_out = self.pool(to_option)
        amount_in_net = mul_div(amount_in, BPS_DENOMINATOR - self.swap_fee_bps, BPS_DENOMINATOR)
        amount_out = mul_div(pool_out.reserve, amount_in_net, pool_in.reserve + amount_in_net)
        fee_shares = amount_in - amount_in_net
        fee_value = mul_div(fee_shares, pool_in.price, SCALE)
        return SwapQuote(from_option, to_option, amount_in, amount_out, fee_shares, fee_value)

    # --- Mutations ---

    def apply_buy(self, option: int, quantity: int, paid: int) -> BuyFill:
        """Move the reserve for a buy already paid for. The fee is extracted from what was actually paid."""
        pool = self.pool(option)
        pool.set_reserve(clamp_buy_reserve(pool.reserve, quantity))
        pool.total_shares += quantity
        pool.volume += paid
        fee = extract_inclusive_fee(paid, self.platform_fee_bps)
        return BuyFill(fee=fee, liquidity=paid - fee, price=pool.price)

    def apply_sell(self, option: int, quantity: int, net: int) -> SellFill:
        pool = self.pool(option)
        pool.set_reserve(pool.reserve + quantity)
        pool.total_shares -= quantity
        gross = gross_up(net, self.platform_fee_bps)
        pool.volume += gross
        return SellFill(gross=gross, fee=gross - net, price=pool.price)

    def apply_swap(self, from_option: int, to_option: int, amount_in: int, min_out: int) -> SwapQuote:
        quote = self.quote_swap(from_option, to_option, amount_in)
        pool_in = self.pools[from_option]
        pool_out = self.pools[to_option]
        if quote.amount_out < min_out:
            raise InsufficientOutput(
                "swap output below minimum", {"amount_out": quote.amount_out, "min_out": min_out}
            )
        if quote.amount_out <= 0 or quote.amount_out >= pool_out.reserve:
            raise InsufficientLiquidity(
                "swap would drain output reserve", {"amount_out": quote.amount_out, "reserve": pool_out.reserve}
            )
        pool_in.set_reserve(pool_in.reserve + amount_in)
        pool_out.set_reserve(pool_out.reserve - quote.amount_out)
        pool_in.total_shares -= amount_in
        pool_out.total_shares += quote.amount_out
        return quote

    def add_liquidity(self, amount: int) -> list[int]:
        """
        Deepen every option's curve. Each option gets an equal slice (remainder to option 0);
        k grows in proportion to the option's current price so prices stay put.
        Returns the per-option slices.
        """
        if amount <= 0:
            raise AmountMustBePositive("liquidity amount must be positive")
        n = len(self.pools)
        per_option = amount // n
        slices = [per_option] * n
        slices[0] += amount - per_option * n
        for pool, add in zip(self.pools, slices):
            k_add = mul_div(add, pool.price, SCALE)
            pool.k += k_add
            pool.set_reserve(pool.reserve + add)
        return slices
