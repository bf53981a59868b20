"""
Whirlpool Concentrated-Liquidity Math (Q64.64)
Version: 1.0.0

Tick ↔ sqrt-price conversion and token amounts for a liquidity position,
using the same bitmask ladder as Uniswap V3 but Q64.64 fixed point.
"""

import math
from typing import Tuple

MIN_TICK = -443636
MAX_TICK = 443636
Q64 = 1 << 64


class TickMathError(ValueError):
    """Raised for ticks or prices outside the representable whirlpool range"""


# ═══════════════════════════════════════════════════════════════════════════════
# TICK ↔ SQRT PRICE
# ═══════════════════════════════════════════════════════════════════════════════

def sqrt_price_x64_from_tick(tick: int) -> int:
    """Calculate sqrtPriceX64 from tick"""
    abs_tick = abs(tick)
    if abs_tick > MAX_TICK:
        raise TickMathError(f"Tick {tick} out of range")

    ratio = 0xfffcb933bd6fad37aa2d162d1a594001 if (abs_tick & 0x1) != 0 else 0x100000000000000000000000000000000

    if (abs_tick & 0x2) != 0:
        ratio = (ratio * 0xfff97272373d413259a46990580e213a) >> 128
    if (abs_tick & 0x4) != 0:
        ratio = (ratio * 0xfff2e50f5f656932ef12357cf3c7fdcc) >> 128
    if (abs_tick & 0x8) != 0:
        ratio = (ratio * 0xffe5caca7e10e4e61c3624eaa0941cd0) >> 128
    if (abs_tick & 0x10) != 0:
        ratio = (ratio * 0xffcb9843d60f6159c9db58835c926644) >> 128
    if (abs_tick & 0x20) != 0:
        ratio = (ratio * 0xff973b41fa98c081472e6896dfb254c0) >> 128
    if (abs_tick & 0x40) != 0:
        ratio = (ratio * 0xff2ea16466c96a3843ec78b326b52861) >> 128
    if (abs_tick & 0x80) != 0:
        ratio = (ratio * 0xfe5dee046a99a2a811c461f1969c3053) >> 128
    if (abs_tick & 0x100) != 0:
        ratio = (ratio * 0xfcbe86c7900a88aedcffc83b479aa3a4) >> 128
    if (abs_tick & 0x200) != 0:
        ratio = (ratio * 0xf987a7253ac413176f2b074cf7815e54) >> 128
    if (abs_tick & 0x400) != 0:
        ratio = (ratio * 0xf3392b0822b70005940c7a398e4b70f3) >> 128
    if (abs_tick & 0x800) != 0:
        ratio = (ratio * 0xe7159475a2c29b7443b29c7fa6e889d9) >> 128
    if (abs_tick & 0x1000) != 0:
        ratio = (ratio * 0xd097f3bdfd2022b8845ad8f792aa5825) >> 128
    if (abs_tick & 0x2000) != 0:
        ratio = (ratio * 0xa9f746462d870fdf8a65dc1f90e061e5) >> 128
    if (abs_tick & 0x4000) != 0:
        ratio = (ratio * 0x70d869a156d2a1b890bb3df62baf32f7) >> 128
    if (abs_tick & 0x8000) != 0:
        ratio = (ratio * 0x31be135f97d08fd981231505542fcfa6) >> 128
    if (abs_tick & 0x10000) != 0:
        ratio = (ratio * 0x9aa508b5b7a84e1c677de54f3e99bc9) >> 128
    if (abs_tick & 0x20000) != 0:
        ratio = (ratio * 0x5d6af8dedb81196699c329225ee604) >> 128
    if (abs_tick & 0x40000) != 0:
        ratio = (ratio * 0x2216e584f5fa1ea926041bedfe98) >> 128

    if tick > 0:
        ratio = ((1 << 256) - 1) // ratio

    # Q128 -> Q64
    return ratio >> 64


def price_to_tick_index(price: float, decimals_a: int, decimals_b: int) -> int:
    """Human price (token B per token A) to the tick at or below it"""
    if not price or price <= 0 or not math.isfinite(price):
        raise TickMathError(f"Invalid price {price}")
    raw = price / (10 ** (decimals_a - decimals_b))
    tick = math.floor(math.log(raw) / math.log(1.0001))
    return max(MIN_TICK, min(MAX_TICK, tick))


def tick_index_to_price(tick: int, decimals_a: int, decimals_b: int) -> float:
    """Convert tick to human-readable price (token B per token A)"""
    return (1.0001 ** tick) * (10 ** (decimals_a - decimals_b))


def initializable_tick_index(tick: int, tick_spacing: int, round_up: bool = False) -> int:
    """Snap a tick onto the spacing grid, rounding down unless round_up"""
    if tick_spacing <= 0:
        raise TickMathError(f"Invalid tick spacing {tick_spacing}")
    remainder = tick % tick_spacing
    result = (tick // tick_spacing) * tick_spacing
    if round_up and remainder > 0:
        result += tick_spacing
    return result


# ═══════════════════════════════════════════════════════════════════════════════
# LIQUIDITY → TOKEN AMOUNTS
# ═══════════════════════════════════════════════════════════════════════════════

def amount_a_for_liquidity(sqrt_a: int, sqrt_b: int, liquidity: int) -> int:
    if sqrt_a > sqrt_b:
        sqrt_a, sqrt_b = sqrt_b, sqrt_a
    return (((liquidity << 64) * (sqrt_b - sqrt_a)) // sqrt_b) // sqrt_a


def amount_b_for_liquidity(sqrt_a: int, sqrt_b: int, liquidity: int) -> int:
    if sqrt_a > sqrt_b:
        sqrt_a, sqrt_b = sqrt_b, sqrt_a
    return liquidity * (sqrt_b - sqrt_a) >> 64


def amounts_for_liquidity(
    sqrt_price_x64: int,
    tick_lower: int,
    tick_upper: int,
    liquidity: int
) -> Tuple[int, int]:
    """Token A / token B raw amounts backing `liquidity` in [tick_lower, tick_upper)"""
    if tick_lower >= tick_upper:
        raise TickMathError(f"Invalid tick range [{tick_lower}, {tick_upper})")
    sqrt_lower = sqrt_price_x64_from_tick(tick_lower)
    sqrt_upper = sqrt_price_x64_from_tick(tick_upper)

    if sqrt_price_x64 <= sqrt_lower:
        # Price below range - all token A
        return amount_a_for_liquidity(sqrt_lower, sqrt_upper, liquidity), 0
    if sqrt_price_x64 < sqrt_upper:
        # Price in range
        amount_a = amount_a_for_liquidity(sqrt_price_x64, sqrt_upper, liquidity)
        amount_b = amount_b_for_liquidity(sqrt_lower, sqrt_price_x64, liquidity)
        return amount_a, amount_b
    # Price above range - all token B
    return 0, amount_b_for_liquidity(sqrt_lower, sqrt_upper, liquidity)
