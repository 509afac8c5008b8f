from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict

from sqlalchemy.ext.asyncio import AsyncEngine

from smart_money_indexer.app.domain.ports.out import (
    WalletPnlIndexer,
    WalletPositionsIndexer,
    WalletScoresIndexer,
)
from smart_money_indexer.app.infrastructure.adapters.analytics.wallet_pnl_indexer import (
    SqlAlchemyWalletPnlIndexer,
)
from smart_money_indexer.app.infrastructure.adapters.analytics.wallet_positions_indexer import (
    SqlAlchemyWalletPositionsIndexer,
)
from smart_money_indexer.app.infrastructure.adapters.analytics.wallet_scores_indexer import (
    SqlAlchemyWalletScoresIndexer,
)


@dataclass(frozen=True)
class WalletAnalyticsIndexers:
    positions: WalletPositionsIndexer
    pnl: WalletPnlIndexer
    scores: WalletScoresIndexer


WalletAnalyticsFactory = Callable[[AsyncEngine], WalletAnalyticsIndexers]

_WALLET_ANALYTICS_REGISTRY: Dict[str, WalletAnalyticsFactory] = {
    "sqlalchemy": lambda engine: WalletAnalyticsIndexers(
        positions=SqlAlchemyWalletPositionsIndexer(engine),
        pnl=SqlAlchemyWalletPnlIndexer(engine),
        scores=SqlAlchemyWalletScoresIndexer(engine),
    ),
}


def wallet_analytics_factory(
    *,
    backend: str,
    engine: AsyncEngine,
) -> WalletAnalyticsIndexers:
    try:
        factory = _WALLET_ANALYTICS_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported wallet analytics backend: {backend!r}")
    return factory(engine)
