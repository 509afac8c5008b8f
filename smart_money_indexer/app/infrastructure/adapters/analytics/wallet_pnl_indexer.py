from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncEngine

from smart_money_indexer.app.domain.pnl import PNL_WINDOW_SECONDS, SwapTrade, compute_wallet_token_pnl
from smart_money_indexer.app.infrastructure.db.models.analytics.wallet_token_pnl import WalletTokenPnlDB
from smart_money_indexer.app.infrastructure.db.models.domain.swaps import SwapsDB
from smart_money_indexer.app.infrastructure.db.upsert import upsert_rows
from smart_money_indexer.app.registry.chains import require_chain_config

logger = logging.getLogger(__name__)

_USD_QUANTUM = Decimal("0.0001")


def quantize_usd(value: Decimal) -> Decimal:
    return value.quantize(_USD_QUANTUM, rounding=ROUND_HALF_UP)


class SqlAlchemyWalletPnlIndexer:
    """
    Indexer adapter: rebuilds wallet_token_pnl from the full swap history.

    Strategy:
    - Select swaps of the chain with a trader and exactly one stablecoin leg
      candidate (either side), in chain order.
    - Replay them through FIFO lot accounting twice: all history and the
      trailing 30 days.
    - Upsert one row per (wallet, token) that realized anything.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        window_seconds: int = PNL_WINDOW_SECONDS,
        batch_size: int = 1_000,
    ) -> None:
        self._engine = engine
        self._window_seconds = window_seconds
        self._batch_size = batch_size

    async def update_wallet_pnl(self, *, chain_id: int, now: int | None = None) -> int:
        chain = require_chain_config(chain_id)
        stablecoins = sorted(chain.stablecoins)
        now = int(time.time()) if now is None else now

        async with self._engine.begin() as conn:
            result = await conn.execute(
                select(
                    SwapsDB.trader,
                    SwapsDB.token_in,
                    SwapsDB.token_out,
                    SwapsDB.amount_in_raw,
                    SwapsDB.amount_out_raw,
                    SwapsDB.amount_in_dec,
                    SwapsDB.amount_out_dec,
                    SwapsDB.timestamp,
                )
                .where(
                    SwapsDB.chain_id == chain_id,
                    SwapsDB.trader.is_not(None),
                    or_(SwapsDB.token_in.in_(stablecoins), SwapsDB.token_out.in_(stablecoins)),
                )
                .order_by(SwapsDB.block_number, SwapsDB.log_index)
            )
            swaps = [
                SwapTrade(
                    trader=r.trader,
                    token_in=r.token_in,
                    token_out=r.token_out,
                    amount_in_raw=r.amount_in_raw,
                    amount_out_raw=r.amount_out_raw,
                    amount_in_dec=r.amount_in_dec,
                    amount_out_dec=r.amount_out_dec,
                    timestamp=r.timestamp,
                )
                for r in result
            ]

            rows = compute_wallet_token_pnl(
                swaps,
                chain.stablecoins,
                now=now,
                window_seconds=self._window_seconds,
            )

            updated_at = datetime.now(timezone.utc)
            payload = [
                {
                    "chain_id": chain_id,
                    "wallet": row.wallet,
                    "token": row.token,
                    "realized_pnl_usd_30d": quantize_usd(row.realized_pnl_usd_30d),
                    "realized_pnl_usd_all": quantize_usd(row.realized_pnl_usd_all),
                    "win_trades_30d": row.win_trades_30d,
                    "loss_trades_30d": row.loss_trades_30d,
                    "avg_hold_seconds_30d": row.avg_hold_seconds_30d,
                    "updated_at": updated_at,
                }
                for row in rows
            ]

            for i in range(0, len(payload), self._batch_size):
                await upsert_rows(
                    conn,
                    WalletTokenPnlDB.__table__,
                    payload[i : i + self._batch_size],
                    conflict_columns=("chain_id", "wallet", "token"),
                    update_columns=(
                        "realized_pnl_usd_30d",
                        "realized_pnl_usd_all",
                        "win_trades_30d",
                        "loss_trades_30d",
                        "avg_hold_seconds_30d",
                        "updated_at",
                    ),
                )

        logger.info(
            "Updated PnL for %s wallet/token pairs from %s swaps (chain_id=%s)",
            len(payload),
            len(swaps),
            chain_id,
        )
        return len(payload)
