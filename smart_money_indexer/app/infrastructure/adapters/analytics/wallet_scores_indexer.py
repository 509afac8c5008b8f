from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine

from smart_money_indexer.app.domain.scoring import (
    SCORE_WINDOW,
    TokenPnlRow,
    aggregate_wallet_features,
    score_wallet,
)
from smart_money_indexer.app.infrastructure.db.models.analytics.wallet_scores import WalletScoresDB
from smart_money_indexer.app.infrastructure.db.models.analytics.wallet_token_pnl import WalletTokenPnlDB
from smart_money_indexer.app.infrastructure.db.models.domain.tokens import TokensDB
from smart_money_indexer.app.infrastructure.db.types import as_utc
from smart_money_indexer.app.infrastructure.db.upsert import upsert_rows

logger = logging.getLogger(__name__)


class SqlAlchemyWalletScoresIndexer:
    """
    Indexer adapter: scores every wallet of wallet_token_pnl into wallet_scores
    (window "30d"), with the feature breakdown stored as JSON.
    """

    def __init__(self, engine: AsyncEngine, *, batch_size: int = 1_000) -> None:
        self._engine = engine
        self._batch_size = batch_size

    async def update_wallet_scores(self, *, chain_id: int, now: int | None = None) -> int:
        now = int(time.time()) if now is None else now

        async with self._engine.begin() as conn:
            result = await conn.execute(
                select(
                    WalletTokenPnlDB.wallet,
                    WalletTokenPnlDB.token,
                    WalletTokenPnlDB.realized_pnl_usd_30d,
                    WalletTokenPnlDB.win_trades_30d,
                    WalletTokenPnlDB.loss_trades_30d,
                ).where(WalletTokenPnlDB.chain_id == chain_id)
            )
            wallets = aggregate_wallet_features(
                TokenPnlRow(
                    wallet=r.wallet,
                    token=r.token,
                    realized_pnl_usd_30d=r.realized_pnl_usd_30d,
                    win_trades_30d=r.win_trades_30d,
                    loss_trades_30d=r.loss_trades_30d,
                )
                for r in result
            )

            tokens = sorted({t for f in wallets.values() for t in f.traded_tokens})
            first_seen: dict[str, int | None] = {}
            for i in range(0, len(tokens), self._batch_size):
                rows = await conn.execute(
                    select(TokensDB.address, TokensDB.first_seen_at).where(
                        TokensDB.chain_id == chain_id,
                        TokensDB.address.in_(tokens[i : i + self._batch_size]),
                    )
                )
                for r in rows:
                    first_seen[r.address] = int(as_utc(r.first_seen_at).timestamp())

            updated_at = datetime.now(timezone.utc)
            payload = []
            for wallet in sorted(wallets):
                scored = score_wallet(wallets[wallet], first_seen, now=now)
                payload.append(
                    {
                        "chain_id": chain_id,
                        "wallet": wallet,
                        "window": SCORE_WINDOW,
                        "score": scored.score,
                        "features": scored.features,
                        "updated_at": updated_at,
                    }
                )

            for i in range(0, len(payload), self._batch_size):
                await upsert_rows(
                    conn,
                    WalletScoresDB.__table__,
                    payload[i : i + self._batch_size],
                    conflict_columns=("chain_id", "wallet", "window"),
                    update_columns=("score", "features", "updated_at"),
                )

        logger.info("Scored %s wallets (chain_id=%s)", len(payload), chain_id)
        return len(payload)
