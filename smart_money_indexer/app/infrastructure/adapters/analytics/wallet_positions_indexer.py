from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Iterable, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from smart_money_indexer.app.domain.models import PLACEHOLDER_DECIMALS
from smart_money_indexer.app.domain.swaps import format_units
from smart_money_indexer.app.infrastructure.db.models.analytics.sync_checkpoints import SyncCheckpointsDB
from smart_money_indexer.app.infrastructure.db.models.analytics.wallet_positions import WalletPositionsDB
from smart_money_indexer.app.infrastructure.db.models.domain.token_transfers import TokenTransfersDB
from smart_money_indexer.app.infrastructure.db.models.domain.tokens import TokensDB
from smart_money_indexer.app.infrastructure.db.models.raw.blocks import BlocksDB
from smart_money_indexer.app.infrastructure.db.upsert import upsert_rows

logger = logging.getLogger(__name__)

POSITIONS_CHECKPOINT = "positions_block"

_T = TypeVar("_T")


def _chunks(seq: list[_T], size: int) -> Iterable[list[_T]]:
    for i in range(0, len(seq), size):
        yield seq[i : i + size]


class SqlAlchemyWalletPositionsIndexer:
    """
    Indexer adapter: accumulates token_transfers into wallet_positions.

    Strategy:
    - Load the transfers of the block range.
    - Fold them into a (wallet, token) -> signed delta map
      (debit sender, credit receiver).
    - Add every nonzero delta to the stored raw balance and re-derive the
      decimal string from the token's current decimals.

    update_wallet_positions is a plain accumulator: applying a range twice
    double-counts. sync_wallet_positions keeps a per-chain checkpoint in
    sync_checkpoints, advanced in the same transaction as the balances, so each
    block is applied exactly once. The checkpoint only moves across an unbroken
    run of rows in `blocks`; a range that failed to ingest holds it back until
    the range is ingested again.
    """

    def __init__(self, engine: AsyncEngine, *, batch_size: int = 500) -> None:
        self._engine = engine
        self._batch_size = batch_size

    async def update_wallet_positions(
        self,
        *,
        chain_id: int,
        from_block: int,
        to_block: int,
    ) -> int:
        async with self._engine.begin() as conn:
            return await self._apply_range(conn, chain_id, from_block, to_block)

    async def sync_wallet_positions(self, *, chain_id: int, to_block: int) -> int:
        async with self._engine.begin() as conn:
            checkpoint = await self.read_checkpoint(conn, chain_id)
            end = await self._contiguous_end(conn, chain_id, checkpoint, to_block)
            if end is None or end == checkpoint:
                logger.debug(
                    "Positions already applied up to block %s (chain_id=%s)",
                    checkpoint,
                    chain_id,
                )
                return 0
            if end < to_block:
                logger.warning(
                    "Block %s not ingested yet, positions stop at %s (chain_id=%s)",
                    end + 1,
                    end,
                    chain_id,
                )

            from_block = checkpoint + 1 if checkpoint is not None else 0
            updated = await self._apply_range(conn, chain_id, from_block, end)
            await upsert_rows(
                conn,
                SyncCheckpointsDB.__table__,
                [
                    {
                        "chain_id": chain_id,
                        "name": POSITIONS_CHECKPOINT,
                        "block_number": end,
                        "updated_at": datetime.now(timezone.utc),
                    }
                ],
                conflict_columns=("chain_id", "name"),
                update_columns=("block_number", "updated_at"),
            )
        return updated

    @staticmethod
    async def _contiguous_end(
        conn: AsyncConnection,
        chain_id: int,
        checkpoint: int | None,
        to_block: int,
    ) -> int | None:
        """Last block of the unbroken run of ingested blocks after the checkpoint."""
        stmt = select(BlocksDB.block_number).where(
            BlocksDB.chain_id == chain_id,
            BlocksDB.block_number <= to_block,
        )
        if checkpoint is not None:
            stmt = stmt.where(BlocksDB.block_number > checkpoint)
        result = await conn.execute(stmt.order_by(BlocksDB.block_number))

        end = checkpoint
        for number in result.scalars():
            if end is not None and number != end + 1:
                break
            end = number
        return end

    @staticmethod
    async def read_checkpoint(conn: AsyncConnection, chain_id: int) -> int | None:
        result = await conn.execute(
            select(SyncCheckpointsDB.block_number).where(
                SyncCheckpointsDB.chain_id == chain_id,
                SyncCheckpointsDB.name == POSITIONS_CHECKPOINT,
            )
        )
        return result.scalar_one_or_none()

    async def _apply_range(
        self,
        conn: AsyncConnection,
        chain_id: int,
        from_block: int,
        to_block: int,
    ) -> int:
        result = await conn.execute(
            select(
                TokenTransfersDB.token,
                TokenTransfersDB.from_address,
                TokenTransfersDB.to_address,
                TokenTransfersDB.amount_raw,
            ).where(
                TokenTransfersDB.chain_id == chain_id,
                TokenTransfersDB.block_number >= from_block,
                TokenTransfersDB.block_number <= to_block,
            )
        )

        deltas: dict[tuple[str, str], int] = defaultdict(int)
        for row in result:
            deltas[(row.from_address, row.token)] -= row.amount_raw
            deltas[(row.to_address, row.token)] += row.amount_raw

        deltas = {key: delta for key, delta in deltas.items() if delta != 0}
        if not deltas:
            return 0

        tokens = sorted({token for _, token in deltas})
        wallets = sorted({wallet for wallet, _ in deltas})

        decimals: dict[str, int] = {}
        for batch in _chunks(tokens, self._batch_size):
            rows = await conn.execute(
                select(TokensDB.address, TokensDB.decimals).where(
                    TokensDB.chain_id == chain_id,
                    TokensDB.address.in_(batch),
                )
            )
            decimals.update({r.address: r.decimals for r in rows})

        balances: dict[tuple[str, str], int] = {}
        for batch in _chunks(wallets, self._batch_size):
            rows = await conn.execute(
                select(
                    WalletPositionsDB.wallet,
                    WalletPositionsDB.token,
                    WalletPositionsDB.balance_raw,
                ).where(
                    WalletPositionsDB.chain_id == chain_id,
                    WalletPositionsDB.wallet.in_(batch),
                )
            )
            for r in rows:
                if (r.wallet, r.token) in deltas:
                    balances[(r.wallet, r.token)] = r.balance_raw

        now = datetime.now(timezone.utc)
        payload = []
        for (wallet, token), delta in sorted(deltas.items()):
            balance = balances.get((wallet, token), 0) + delta
            payload.append(
                {
                    "chain_id": chain_id,
                    "wallet": wallet,
                    "token": token,
                    "balance_raw": balance,
                    "balance_dec": format_units(balance, decimals.get(token, PLACEHOLDER_DECIMALS)),
                    "updated_at": now,
                }
            )

        for batch in _chunks(payload, self._batch_size):
            await upsert_rows(
                conn,
                WalletPositionsDB.__table__,
                batch,
                conflict_columns=("chain_id", "wallet", "token"),
                update_columns=("balance_raw", "balance_dec", "updated_at"),
            )

        logger.info(
            "Updated %s wallet positions from blocks %s..%s (chain_id=%s)",
            len(payload),
            from_block,
            to_block,
            chain_id,
        )
        return len(payload)
