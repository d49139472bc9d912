"""Per-option curve: pricing, slippage, clamping, swaps and liquidity adds."""

import pytest

from predamm.amm.curve import OptionAMM, OptionPool, clamp_buy_reserve
from predamm.amm.fixed_point import SCALE
from predamm.errors import (
    AmountMustBePositive,
    InsufficientLiquidity,
    InsufficientOutput,
    InvalidOption,
)


def _amm(liquidity=1000, n=2, fee_bps=200, swap_bps=30):
    names = [f"o{i}" for i in range(n)]
    return OptionAMM.seeded(names, [""] * n, liquidity * SCALE, platform_fee_bps=fee_bps, swap_fee_bps=swap_bps)


def test_seeded_prices_are_uniform():
    assert _amm(n=2).prices() == [SCALE // 2] * 2
    amm = _amm(n=4)
    assert amm.pools[0].reserve == 250 * SCALE
    assert amm.prices() == [SCALE // 4] * 4


def test_pool_rejects_non_positive_reserve():
    with pytest.raises(AmountMustBePositive):
        OptionPool(0, "x", "", k=1, reserve=0)


def test_quote_buy_values():
    q = _amm().quote_buy(0, 100 * SCALE)
    assert q.new_reserve == 400 * SCALE
    assert q.new_price == 625 * SCALE // 1000
    assert q.avg_price == 5625 * SCALE // 10000
    assert q.cost == 57_375 * SCALE // 1000
    assert q.fee == 1_125 * SCALE // 1000


def test_buy_price_increases_and_other_options_unchanged():
    amm = _amm()
    before = amm.price(0)
    fill = amm.apply_buy(0, 50 * SCALE, amm.quote_buy(0, 50 * SCALE).cost)
    assert fill.price > before
    assert amm.price(1) == SCALE // 2
    second = amm.quote_buy(0, 50 * SCALE)
    assert second.avg_price > before


def test_larger_buys_pay_higher_average_price():
    amm = _amm()
    small = amm.quote_buy(0, 10 * SCALE)
    large = amm.quote_buy(0, 200 * SCALE)
    assert large.avg_price > small.avg_price
    assert large.cost > small.cost


def test_clamp_buy_reserve():
    assert clamp_buy_reserve(500, 100) == 400
    assert clamp_buy_reserve(500, 500) == 250
    assert clamp_buy_reserve(500, 10_000) == 250
    assert clamp_buy_reserve(1, 5) == 1


def test_oversized_buy_halves_reserve():
    amm = _amm()
    q = amm.quote_buy(0, 600 * SCALE)
    assert q.new_reserve == 250 * SCALE
    assert q.new_price == SCALE


def test_sell_reverses_buy_price():
    amm = _amm()
    amm.apply_buy(0, 100 * SCALE, amm.quote_buy(0, 100 * SCALE).cost)
    q = amm.quote_sell(0, 100 * SCALE)
    assert q.new_price == SCALE // 2
    assert q.revenue == 55_125 * SCALE // 1000
    fill = amm.apply_sell(0, 100 * SCALE, q.revenue)
    assert fill.gross == 56_227_500 * SCALE // 1_000_000
    assert amm.pools[0].total_shares == 0


def test_quotes_reject_bad_input():
    amm = _amm()
    with pytest.raises(AmountMustBePositive):
        amm.quote_buy(0, 0)
    with pytest.raises(InvalidOption):
        amm.quote_sell(2, SCALE)
    with pytest.raises(InvalidOption):
        amm.quote_swap(1, 1, SCALE)


def test_swap_moves_reserves_and_shares():
    amm = _amm()
    amm.apply_buy(0, 100 * SCALE, amm.quote_buy(0, 100 * SCALE).cost)
    reserve_in, reserve_out = amm.pools[0].reserve, amm.pools[1].reserve
    q = amm.apply_swap(0, 1, 10 * SCALE, 0)
    # input option is the pricier one, so it swaps into more shares than it gives up
    assert q.amount_out > 10 * SCALE
    assert q.fee_shares == 10 * SCALE * 30 // 10_000
    assert q.fee_value > 0
    assert amm.pools[0].reserve == reserve_in + 10 * SCALE
    assert amm.pools[1].reserve == reserve_out - q.amount_out
    assert amm.pools[0].total_shares == 90 * SCALE
    assert amm.pools[1].total_shares == q.amount_out


def test_swap_min_out_leaves_state_untouched():
    amm = _amm()
    reserves = [p.reserve for p in amm.pools]
    with pytest.raises(InsufficientOutput):
        amm.apply_swap(0, 1, 10 * SCALE, 10 * SCALE)
    assert [p.reserve for p in amm.pools] == reserves


def test_swap_cannot_drain_reserve():
    amm = _amm()
    amm.pools[1].set_reserve(1)
    with pytest.raises(InsufficientLiquidity):
        amm.apply_swap(0, 1, 10 * SCALE, 0)


def test_add_liquidity_keeps_prices():
    amm = _amm()
    slices = amm.add_liquidity(201 * SCALE + 1)
    assert sum(slices) == 201 * SCALE + 1
    assert slices[0] == slices[1] + 1
    for p in amm.prices():
        assert abs(p - SCALE // 2) <= 1


def test_add_liquidity_deepens_curve():
    shallow = _amm()
    deep = _amm()
    deep.add_liquidity(1000 * SCALE)
    assert deep.quote_buy(0, 100 * SCALE).avg_price < shallow.quote_buy(0, 100 * SCALE).avg_price
