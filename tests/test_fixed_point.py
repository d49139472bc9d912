"""Fixed-point helpers."""

import pytest

from predamm.amm.fixed_point import (
    SCALE,
    apply_bps,
    extract_inclusive_fee,
    fee_inclusive,
    from_display,
    gross_up,
    mul_div,
    to_display,
)


def test_mul_div_truncates():
    assert mul_div(10, 1, 3) == 3
    assert mul_div(SCALE, SCALE, SCALE) == SCALE
    # product exceeds 2**256 without losing precision
    assert mul_div(10**60, 10**60, 10**60) == 10**60


def test_mul_div_rejects_zero_and_negative():
    with pytest.raises(ZeroDivisionError):
        mul_div(1, 1, 0)
    with pytest.raises(ValueError):
        mul_div(-1, 1, 1)


def test_fee_helpers_are_consistent():
    base = 56_250_000_000_000_000_000  # 56.25
    total = fee_inclusive(base, 200)
    assert total == 57_375_000_000_000_000_000
    assert apply_bps(base, 200) == total - base
    assert extract_inclusive_fee(total, 200) == total - base
    assert gross_up(55_125_000_000_000_000_000, 200) == 56_227_500_000_000_000_000


def test_display_round_trip():
    assert from_display("12.5") == 12 * SCALE + SCALE // 2
    assert from_display("100") == 100 * SCALE
    assert to_display(from_display("0.625")) == "0.6250"
    assert to_display(3 * SCALE, decimals=0) == "3"
    with pytest.raises(ValueError):
        from_display("-1")
    with pytest.raises(ValueError):
        from_display("")
