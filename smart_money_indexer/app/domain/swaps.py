from __future__ import annotations

from decimal import Decimal
from typing import Collection

from smart_money_indexer.app.domain.models import PairTokens, SwapLegs

DEX_UNISWAP_V2 = "uniswap-v2"
DEX_UNISWAP_V3 = "uniswap-v3"


def format_units(value: int, decimals: int) -> str:
    """
    Render an integer token amount as a decimal string (value / 10**decimals).

    Exact (no float), trailing fractional zeros stripped: 1500000 @ 6 -> "1.5".
    """
    if decimals <= 0:
        return str(value)

    sign = "-" if value < 0 else ""
    digits = str(abs(value)).rjust(decimals + 1, "0")
    integer = digits[:-decimals]
    fraction = digits[-decimals:].rstrip("0")
    if not fraction:
        return f"{sign}{integer}"
    return f"{sign}{integer}.{fraction}"


def v2_swap_legs(
    *,
    pair: PairTokens,
    amount0_in: int,
    amount1_in: int,
    amount0_out: int,
    amount1_out: int,
) -> SwapLegs | None:
    """
    Direction of a Uniswap-V2-style swap.

    Exactly one of (amount0In>0 and amount1Out>0) or (amount1In>0 and amount0Out>0)
    must hold; anything else (both, neither) is ambiguous and yields None.
    """
    zero_for_one = amount0_in > 0 and amount1_out > 0
    one_for_zero = amount1_in > 0 and amount0_out > 0

    if zero_for_one == one_for_zero:
        return None

    if zero_for_one:
        return SwapLegs(
            token_in=pair.token0,
            token_out=pair.token1,
            amount_in=amount0_in,
            amount_out=amount1_out,
        )
    return SwapLegs(
        token_in=pair.token1,
        token_out=pair.token0,
        amount_in=amount1_in,
        amount_out=amount0_out,
    )


def v3_swap_legs(*, pool: PairTokens, amount0: int, amount1: int) -> SwapLegs | None:
    """
    Direction of a Uniswap-V3-style swap from the pool's signed deltas.

    Positive amount = flowed into the pool (token in), negative = flowed out.
    """
    if amount0 > 0 and amount1 < 0:
        return SwapLegs(
            token_in=pool.token0,
            token_out=pool.token1,
            amount_in=amount0,
            amount_out=-amount1,
        )
    if amount1 > 0 and amount0 < 0:
        return SwapLegs(
            token_in=pool.token1,
            token_out=pool.token0,
            amount_in=amount1,
            amount_out=-amount0,
        )
    return None


def price_stable_leg(
    *,
    legs: SwapLegs,
    decimals_in: int,
    decimals_out: int,
    stablecoins: Collection[str],
) -> tuple[str | None, bool]:
    """
    USD value of a swap inferred from its stablecoin leg (1:1 peg assumed).

    The in-leg wins when both legs are stablecoins. Returns (usd_value, priced);
    a non-positive value is reported as unpriced.
    """
    if legs.token_in in stablecoins:
        value = format_units(legs.amount_in, decimals_in)
    elif legs.token_out in stablecoins:
        value = format_units(legs.amount_out, decimals_out)
    else:
        return None, False

    if Decimal(value) <= 0:
        return None, False
    return value, True
