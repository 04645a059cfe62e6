"""
Uniswap concentrated-liquidity math

Tick/sqrt-price conversion, token amounts for a liquidity range and fee
accounting. Everything on the amount path is exact integer arithmetic; only
the display helper tick_to_price returns a Decimal.
"""

from decimal import Decimal, localcontext
from typing import Tuple

from .constants import Q96, Q128, MAX_UINT256, MIN_TICK, MAX_TICK


# TickMath.getSqrtRatioAtTick multipliers: sqrt(1.0001^-(2^i)) in Q128, i = 1..19
_TICK_CONSTANTS = [
    0xfff97272373d413259a46990580e213a,
    0xfff2e50f5f656932ef12357cf3c7fdcc,
    0xffe5caca7e10e4e61c3624eaa0941cd0,
    0xffcb9843d60f6159c9db58835c926644,
    0xff973b41fa98c081472e6896dfb254c0,
    0xff2ea16466c96a3843ec78b326b52861,
    0xfe5dee046a99a2a811c461f1969c3053,
    0xfcbe86c7900a88aedcffc83b479aa3a4,
    0xf987a7253ac413176f2b074cf7815e54,
    0xf3392b0822b70005940c7a398e4b70f3,
    0xe7159475a2c29b7443b29c7fa6e889d9,
    0xd097f3bdfd2022b8845ad8f792aa5825,
    0xa9f746462d870fdf8a65dc1f90e061e5,
    0x70d869a156d2a1b890bb3df62baf32f7,
    0x31be135f97d08fd981231505542fcfa6,
    0x9aa508b5b7a84e1c677de54f3e99bc9,
    0x5d6af8dedb81196699c329225ee604,
    0x2216e584f5fa1ea926041bedfe98,
    0x48a170391f7dc42444e8fa2,
]

_TICK_ODD_RATIO = 0xfffcb933bd6fad37aa2d162d1a594001


def tick_to_sqrt_price_x96(tick: int) -> int:
    """
    Convert tick to sqrt price in Q64.96 format

    Bit-for-bit port of TickMath.getSqrtRatioAtTick: the ratio is built in
    Q128 for |tick|, inverted for positive ticks, then shifted down to Q96
    rounding up.

    Args:
        tick: Tick index in [MIN_TICK, MAX_TICK]

    Returns:
        sqrt(1.0001^tick) * 2^96 as an integer
    """
    if tick < MIN_TICK or tick > MAX_TICK:
        raise ValueError(f"tick must be in [{MIN_TICK}, {MAX_TICK}], got {tick}")

    tick_abs = abs(tick)

    ratio = _TICK_ODD_RATIO if tick_abs & 0x1 else 1 << 128

    for i, constant in enumerate(_TICK_CONSTANTS, start=1):
        if tick_abs & (1 << i):
            ratio = (ratio * constant) >> 128

    if tick > 0:
        ratio = MAX_UINT256 // ratio

    # Q128 -> Q96, rounding up so the result never understates the price
    return (ratio >> 32) + (1 if ratio % (1 << 32) else 0)


def tick_to_price(tick: int, decimals0: int = 0, decimals1: int = 0) -> Decimal:
    """
    Human-readable price of token0 in token1 at a tick

    Args:
        tick: Tick index
        decimals0: Token0 decimals
        decimals1: Token1 decimals

    Returns:
        1.0001^tick adjusted by 10^(decimals0 - decimals1)
    """
    with localcontext() as ctx:
        ctx.prec = 40
        price = Decimal("1.0001") ** tick
        return +(price.scaleb(decimals0 - decimals1))


def get_amount0_for_liquidity(sqrt_a: int, sqrt_b: int, liquidity: int) -> int:
    """Token0 amount for liquidity between two sqrt prices (sqrt_a <= sqrt_b)"""
    if sqrt_a > sqrt_b:
        sqrt_a, sqrt_b = sqrt_b, sqrt_a
    if sqrt_a == 0:
        return 0
    return liquidity * Q96 * (sqrt_b - sqrt_a) // (sqrt_a * sqrt_b)


def get_amount1_for_liquidity(sqrt_a: int, sqrt_b: int, liquidity: int) -> int:
    """Token1 amount for liquidity between two sqrt prices (sqrt_a <= sqrt_b)"""
    if sqrt_a > sqrt_b:
        sqrt_a, sqrt_b = sqrt_b, sqrt_a
    return liquidity * (sqrt_b - sqrt_a) // Q96


def get_amounts_for_liquidity(
    sqrt_price_x96: int,
    sqrt_lower_x96: int,
    sqrt_upper_x96: int,
    liquidity: int,
) -> Tuple[int, int]:
    """
    Token amounts held by `liquidity` in a range at the current price

    Args:
        sqrt_price_x96: Current pool sqrt price
        sqrt_lower_x96: Range lower bound sqrt price
        sqrt_upper_x96: Range upper bound sqrt price
        liquidity: Position liquidity

    Returns:
        (amount0, amount1) in raw token units
    """
    if liquidity <= 0:
        return 0, 0
    if sqrt_lower_x96 > sqrt_upper_x96:
        sqrt_lower_x96, sqrt_upper_x96 = sqrt_upper_x96, sqrt_lower_x96

    if sqrt_price_x96 <= sqrt_lower_x96:
        # Price below range: all token0
        return get_amount0_for_liquidity(sqrt_lower_x96, sqrt_upper_x96, liquidity), 0

    if sqrt_price_x96 >= sqrt_upper_x96:
        # Price above range: all token1
        return 0, get_amount1_for_liquidity(sqrt_lower_x96, sqrt_upper_x96, liquidity)

    amount0 = get_amount0_for_liquidity(sqrt_price_x96, sqrt_upper_x96, liquidity)
    amount1 = get_amount1_for_liquidity(sqrt_lower_x96, sqrt_price_x96, liquidity)
    return amount0, amount1


def fee_amount(growth_inside_current: int, growth_inside_last: int, liquidity: int) -> int:
    """
    Fees earned since the last snapshot

    (current - last) * liquidity / 2^128, and 0 when the accumulator reads
    lower than the snapshot instead of an underflowed huge value.
    """
    if growth_inside_current <= growth_inside_last or liquidity <= 0:
        return 0
    return (growth_inside_current - growth_inside_last) * liquidity // Q128


def fee_growth_inside(
    current_tick: int,
    tick_lower: int,
    tick_upper: int,
    fee_growth_global: int,
    fee_growth_outside_lower: int,
    fee_growth_outside_upper: int,
) -> int:
    """
    Fee growth per unit liquidity inside a tick range (X128)

    Mirrors the V3 pool's accounting: growth below the lower tick and above
    the upper tick are subtracted from the global accumulator, all modulo
    2^256.
    """
    if current_tick >= tick_lower:
        below = fee_growth_outside_lower
    else:
        below = (fee_growth_global - fee_growth_outside_lower) % (MAX_UINT256 + 1)

    if current_tick < tick_upper:
        above = fee_growth_outside_upper
    else:
        above = (fee_growth_global - fee_growth_outside_upper) % (MAX_UINT256 + 1)

    return (fee_growth_global - below - above) % (MAX_UINT256 + 1)


def constant_product_amounts(
    share_balance: int,
    total_supply: int,
    reserve0: int,
    reserve1: int,
) -> Tuple[int, int]:
    """Wallet's pro-rata share of a V2 pair's reserves"""
    if total_supply <= 0 or share_balance <= 0:
        return 0, 0
    return reserve0 * share_balance // total_supply, reserve1 * share_balance // total_supply


def is_in_range(current_tick: int, tick_lower: int, tick_upper: int) -> bool:
    return tick_lower <= current_tick <= tick_upper
