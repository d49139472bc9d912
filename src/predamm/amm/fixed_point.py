"""18-decimal fixed-point integer math. All balances, prices and shares are ints scaled by SCALE."""

from __future__ import annotations

SCALE = 10**18
BPS_DENOMINATOR = 10_000


def mul_div(a: int, b: int, denom: int) -> int:
    """Truncating a * b // denom. Python ints never overflow, so the product is exact."""
    if denom == 0:
        raise ZeroDivisionError("mul_div denominator is zero")
    if a < 0 or b < 0 or denom < 0:
        raise ValueError(f"mul_div operands must be non-negative: {a}, {b}, {denom}")
    return a * b // denom


def scale_up(n: int) -> int:
    """Whole units -> fixed point (e.g. 100 -> 100 * 1e18)."""
    return n * SCALE


def scale_down(value: int) -> int:
    """Fixed point -> whole units, truncated."""
    return value // SCALE


def apply_bps(amount: int, bps: int) -> int:
    """amount * bps / 10000, truncated."""
    return mul_div(amount, bps, BPS_DENOMINATOR)


def fee_inclusive(amount: int, bps: int) -> int:
    """Add a bps fee on top of amount."""
    return amount + apply_bps(amount, bps)


def extract_inclusive_fee(total: int, bps: int) -> int:
    """Fee portion of a fee-inclusive total: total * bps / (10000 + bps)."""
    return mul_div(total, bps, BPS_DENOMINATOR + bps)


def gross_up(net: int, bps: int) -> int:
    """Pre-fee amount for a post-fee net: net * (10000 + bps) / 10000."""
    return mul_div(net, BPS_DENOMINATOR + bps, BPS_DENOMINATOR)


def to_display(value: int, decimals: int = 4) -> str:
    """Render a fixed-point value as a decimal string (for CLI/logs only)."""
    whole, frac = divmod(value, SCALE)
    frac_str = str(frac).rjust(18, "0")[:decimals]
    return f"{whole}.{frac_str}" if decimals > 0 else str(whole)


def from_display(text: str) -> int:
    """Parse a decimal string ("12.5") into fixed point without going through float."""
    text = text.strip()
    if not text:
        raise ValueError("empty amount")
    if text.startswith("-"):
        raise ValueError(f"amount must be non-negative: {text}")
    whole, _, frac = text.partition(".")
    if len(frac) > 18:
        raise ValueError(f"too many decimal places: {text}")
    return int(whole or "0") * SCALE + int(frac.ljust(18, "0") or "0")
