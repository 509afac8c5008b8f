from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Mapping

SCORE_WINDOW = "30d"

WEIGHT_PNL = 0.3
WEIGHT_WIN_RATE = 0.3
WEIGHT_PROFITABLE_TOKENS = 0.2
WEIGHT_CONSISTENCY = 0.1
WEIGHT_AVOID_RUG = 0.1

PROFITABLE_TOKEN_TARGET = 10
CONSISTENCY_TOKEN_TARGET = 3
AVOID_RUG_SECONDS = 7 * 24 * 60 * 60


@dataclass(frozen=True)
class TokenPnlRow:
    """30-day PnL row of one (wallet, token) pair, as read from wallet_token_pnl."""

    wallet: str
    token: str
    realized_pnl_usd_30d: Decimal
    win_trades_30d: int
    loss_trades_30d: int


@dataclass
class WalletFeatures:
    wallet: str
    pnl_usd: Decimal = Decimal(0)
    win_trades: int = 0
    loss_trades: int = 0
    profitable_tokens: int = 0
    traded_tokens: set[str] = field(default_factory=set)

    @property
    def trades(self) -> int:
        return self.win_trades + self.loss_trades


@dataclass(frozen=True)
class WalletScoreResult:
    wallet: str
    score: int
    features: dict[str, Any]


def pnl_score(total_pnl_usd: float) -> float:
    """Diminishing returns on profit; losses contribute nothing."""
    return min(1.0, math.log10(1 + max(0.0, total_pnl_usd)) / 5)


def win_rate(win_trades: int, loss_trades: int) -> float:
    total = win_trades + loss_trades
    return win_trades / total if total > 0 else 0.0


def profitable_score(profitable_tokens: int) -> float:
    return min(1.0, profitable_tokens / PROFITABLE_TOKEN_TARGET)


def consistency_score(profitable_tokens: int) -> float:
    return 1.0 if profitable_tokens >= CONSISTENCY_TOKEN_TARGET else 0.0


def avoid_rug_score(
    tokens: Iterable[str],
    first_seen: Mapping[str, int | None],
    *,
    now: int,
) -> float:
    """Share of traded tokens first observed at least 7 days before `now`."""
    tokens = list(tokens)
    if not tokens:
        return 0.0
    safe = 0
    for token in tokens:
        seen_at = first_seen.get(token)
        if seen_at is not None and now - seen_at >= AVOID_RUG_SECONDS:
            safe += 1
    return safe / len(tokens)


def aggregate_wallet_features(rows: Iterable[TokenPnlRow]) -> dict[str, WalletFeatures]:
    """
    Fold per-token 30d PnL rows into per-wallet features.

    Only tokens with at least one closed trade in the window count as traded.
    """
    wallets: dict[str, WalletFeatures] = {}
    for row in rows:
        features = wallets.setdefault(row.wallet, WalletFeatures(wallet=row.wallet))
        features.pnl_usd += row.realized_pnl_usd_30d
        features.win_trades += row.win_trades_30d
        features.loss_trades += row.loss_trades_30d
        if row.realized_pnl_usd_30d > 0:
            features.profitable_tokens += 1
        if row.win_trades_30d + row.loss_trades_30d > 0:
            features.traded_tokens.add(row.token)
    return wallets


def score_wallet(
    features: WalletFeatures,
    first_seen: Mapping[str, int | None],
    *,
    now: int,
) -> WalletScoreResult:
    pnl = pnl_score(float(features.pnl_usd))
    wr = win_rate(features.win_trades, features.loss_trades)
    profitable = profitable_score(features.profitable_tokens)
    consistency = consistency_score(features.profitable_tokens)
    avoid_rug = avoid_rug_score(sorted(features.traded_tokens), first_seen, now=now)

    weighted = (
        WEIGHT_PNL * pnl
        + WEIGHT_WIN_RATE * wr
        + WEIGHT_PROFITABLE_TOKENS * profitable
        + WEIGHT_CONSISTENCY * consistency
        + WEIGHT_AVOID_RUG * avoid_rug
    )

    return WalletScoreResult(
        wallet=features.wallet,
        # half-up, so 0.5 rounds to 1 rather than to the even neighbour
        score=math.floor(weighted * 100 + 0.5),
        features={
            "pnl_usd_30d": float(features.pnl_usd),
            "pnl_score": pnl,
            "win_rate": wr,
            "profitable_tokens": features.profitable_tokens,
            "consistency": consistency,
            "avoid_rug": avoid_rug,
            "trades": features.trades,
        },
    )
