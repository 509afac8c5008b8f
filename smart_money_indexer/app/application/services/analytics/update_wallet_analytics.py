from __future__ import annotations

import logging
from dataclasses import dataclass

from smart_money_indexer.app.domain.ports.out import (
    WalletPnlIndexer,
    WalletPositionsIndexer,
    WalletScoresIndexer,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalletAnalyticsResult:
    positions: int
    pnl_rows: int
    scores: int


async def update_wallet_analytics(
    *,
    positions: WalletPositionsIndexer,
    pnl: WalletPnlIndexer,
    scores: WalletScoresIndexer,
    chain_id: int,
    to_block: int | None = None,
    now: int | None = None,
) -> WalletAnalyticsResult:
    """
    Positions, then realized PnL, then scores.

    Positions are brought forward to `to_block` from the stored checkpoint, so
    re-running after a retry does not double-count. Without `to_block` only
    PnL and scores are recomputed.
    """
    if chain_id <= 0:
        raise ValueError("chain_id must be positive")

    updated_positions = 0
    if to_block is not None:
        updated_positions = await positions.sync_wallet_positions(chain_id=chain_id, to_block=to_block)

    pnl_rows = await pnl.update_wallet_pnl(chain_id=chain_id, now=now)
    scored = await scores.update_wallet_scores(chain_id=chain_id, now=now)

    logger.info(
        "Wallet analytics done (chain_id=%s): positions=%s pnl=%s scores=%s",
        chain_id,
        updated_positions,
        pnl_rows,
        scored,
    )
    return WalletAnalyticsResult(positions=updated_positions, pnl_rows=pnl_rows, scores=scored)
