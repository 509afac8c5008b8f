from decimal import Decimal

from smart_money_indexer.app.domain.scoring import (
    TokenPnlRow,
    WalletFeatures,
    aggregate_wallet_features,
    avoid_rug_score,
    pnl_score,
    score_wallet,
)
from tests.builders import TKN, USDT, WALLET_A, WALLET_B

NOW = 1_700_000_000
WEEK = 7 * 86_400


def test_pnl_score_is_monotonic_and_capped():
    values = [pnl_score(x) for x in (-1_000, 0, 1, 10, 1_000, 99_999, 10**9)]
    assert values == sorted(values)
    assert pnl_score(-50) == 0.0
    assert pnl_score(10**9) == 1.0


def test_zero_trade_wallet_scores_zero():
    result = score_wallet(WalletFeatures(wallet=WALLET_A), {}, now=NOW)
    assert result.score == 0
    assert result.features["trades"] == 0


def test_score_formula():
    features = aggregate_wallet_features(
        [
            TokenPnlRow(
                wallet=WALLET_A,
                token=TKN,
                realized_pnl_usd_30d=Decimal(50),
                win_trades_30d=1,
                loss_trades_30d=0,
            )
        ]
    )[WALLET_A]
    result = score_wallet(features, {TKN: NOW - 30 * 86_400}, now=NOW)
    # 0.3 * log10(51) / 5 + 0.3 * 1 + 0.2 * 0.1 + 0.1 * 0 + 0.1 * 1
    assert result.score == 52
    assert result.features["win_rate"] == 1.0
    assert result.features["profitable_tokens"] == 1
    assert result.features["avoid_rug"] == 1.0


def test_more_pnl_never_scores_lower():
    def score_for(pnl: int) -> int:
        features = WalletFeatures(wallet=WALLET_A, pnl_usd=Decimal(pnl), win_trades=3, loss_trades=1)
        return score_wallet(features, {}, now=NOW).score

    scores = [score_for(p) for p in (0, 10, 100, 1_000, 10_000, 100_000)]
    assert scores == sorted(scores)


def test_consistency_requires_three_profitable_tokens():
    rows = [
        TokenPnlRow(wallet=WALLET_B, token=f"0x{i:040x}", realized_pnl_usd_30d=Decimal(10), win_trades_30d=1, loss_trades_30d=0)
        for i in range(3)
    ]
    features = aggregate_wallet_features(rows)[WALLET_B]
    assert score_wallet(features, {}, now=NOW).features["consistency"] == 1.0

    features = aggregate_wallet_features(rows[:2])[WALLET_B]
    assert score_wallet(features, {}, now=NOW).features["consistency"] == 0.0


def test_avoid_rug_counts_unknown_and_young_tokens_as_unsafe():
    first_seen = {TKN: NOW - WEEK, USDT: NOW - WEEK + 1}
    assert avoid_rug_score([TKN, USDT, "0x" + "7" * 40], first_seen, now=NOW) == 1 / 3
    assert avoid_rug_score([], first_seen, now=NOW) == 0.0
