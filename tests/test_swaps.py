import pytest

from smart_money_indexer.app.domain.models import PairTokens, SwapLegs
from smart_money_indexer.app.domain.swaps import format_units, price_stable_leg, v2_swap_legs, v3_swap_legs
from tests.builders import TKN, USDC, USDT

POOL_TOKENS = PairTokens(token0=USDC, token1=TKN)


@pytest.mark.parametrize(
    "value, decimals, expected",
    [
        (1_500_000, 6, "1.5"),
        (1, 18, "0.000000000000000001"),
        (10**18, 18, "1"),
        (0, 6, "0"),
        (-2_500_000, 6, "-2.5"),
        (42, 0, "42"),
    ],
)
def test_format_units(value, decimals, expected):
    assert format_units(value, decimals) == expected


def test_v3_direction_token0_in():
    legs = v3_swap_legs(pool=POOL_TOKENS, amount0=500, amount1=-300)
    assert legs == SwapLegs(token_in=USDC, token_out=TKN, amount_in=500, amount_out=300)


def test_v3_direction_token1_in():
    legs = v3_swap_legs(pool=POOL_TOKENS, amount0=-200, amount1=700)
    assert legs == SwapLegs(token_in=TKN, token_out=USDC, amount_in=700, amount_out=200)


def test_v3_same_sign_is_skipped():
    assert v3_swap_legs(pool=POOL_TOKENS, amount0=5, amount1=5) is None
    assert v3_swap_legs(pool=POOL_TOKENS, amount0=0, amount1=-5) is None


def test_v2_direction():
    legs = v2_swap_legs(pair=POOL_TOKENS, amount0_in=100, amount1_in=0, amount0_out=0, amount1_out=7)
    assert legs == SwapLegs(token_in=USDC, token_out=TKN, amount_in=100, amount_out=7)

    legs = v2_swap_legs(pair=POOL_TOKENS, amount0_in=0, amount1_in=7, amount0_out=100, amount1_out=0)
    assert legs == SwapLegs(token_in=TKN, token_out=USDC, amount_in=7, amount_out=100)


def test_v2_ambiguous_is_skipped():
    assert v2_swap_legs(pair=POOL_TOKENS, amount0_in=1, amount1_in=1, amount0_out=1, amount1_out=1) is None
    assert v2_swap_legs(pair=POOL_TOKENS, amount0_in=0, amount1_in=0, amount0_out=0, amount1_out=0) is None


def test_price_from_stable_leg():
    stables = frozenset({USDC, USDT})
    buy = SwapLegs(token_in=USDC, token_out=TKN, amount_in=250_000_000, amount_out=10**18)
    assert price_stable_leg(legs=buy, decimals_in=6, decimals_out=18, stablecoins=stables) == ("250", True)

    sell = SwapLegs(token_in=TKN, token_out=USDC, amount_in=10**18, amount_out=99_500_000)
    assert price_stable_leg(legs=sell, decimals_in=18, decimals_out=6, stablecoins=stables) == ("99.5", True)

    no_stable = SwapLegs(token_in=TKN, token_out="0x" + "9" * 40, amount_in=1, amount_out=1)
    assert price_stable_leg(legs=no_stable, decimals_in=18, decimals_out=18, stablecoins=stables) == (None, False)


def test_both_stable_prices_the_in_leg():
    stables = frozenset({USDC, USDT})
    legs = SwapLegs(token_in=USDC, token_out=USDT, amount_in=1_000_000, amount_out=999_000)
    assert price_stable_leg(legs=legs, decimals_in=6, decimals_out=6, stablecoins=stables) == ("1", True)
