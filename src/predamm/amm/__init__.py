"""AMM pricing: fixed-point math and per-option curves."""

from predamm.amm.curve import BuyQuote, OptionAMM, OptionPool, SellQuote, SwapQuote
from predamm.amm.fixed_point import SCALE, mul_div, scale_down, scale_up

__all__ = [
    "SCALE",
    "mul_div",
    "scale_up",
    "scale_down",
    "OptionAMM",
    "OptionPool",
    "BuyQuote",
    "SellQuote",
    "SwapQuote",
]
