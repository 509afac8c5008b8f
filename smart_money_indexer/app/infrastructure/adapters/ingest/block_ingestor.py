from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, false, select, text, true
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from smart_money_indexer.app.domain.errors import DecodeError, ReorgDetected
from smart_money_indexer.app.domain.models import (
    BlockSnapshot,
    ChainLog,
    DecodedTransfer,
    DecodedV2Swap,
    DecodedV3Swap,
    SwapLegs,
    SwapRecord,
    TokenRecord,
    TransferRecord,
)
from smart_money_indexer.app.domain.ports.out import (
    ChainFetcher,
    EvmEventDecoder,
    TokenMetadataResolver,
)
from smart_money_indexer.app.domain.swaps import (
    DEX_UNISWAP_V2,
    DEX_UNISWAP_V3,
    format_units,
    price_stable_leg,
    v2_swap_legs,
    v3_swap_legs,
)
from smart_money_indexer.app.infrastructure.db.models.domain.swaps import SwapsDB
from smart_money_indexer.app.infrastructure.db.models.domain.token_transfers import TokenTransfersDB
from smart_money_indexer.app.infrastructure.db.models.domain.tokens import TokensDB
from smart_money_indexer.app.infrastructure.db.models.raw.blocks import BlocksDB
from smart_money_indexer.app.infrastructure.db.models.raw.logs import LogsDB
from smart_money_indexer.app.infrastructure.db.models.raw.transactions import TransactionsDB
from smart_money_indexer.app.infrastructure.db.upsert import upsert_rows
from smart_money_indexer.app.infrastructure.decoders.erc20.transfer_decoder import Erc20TransferDecoder
from smart_money_indexer.app.infrastructure.decoders.uniswap_v2.swap_decoder import UniswapV2SwapDecoder
from smart_money_indexer.app.infrastructure.decoders.uniswap_v3.swap_decoder import UniswapV3SwapDecoder
from smart_money_indexer.app.registry.chains import ChainConfig

logger = logging.getLogger(__name__)

_LAST_PROCESSED_BLOCK_SQL = text(
    """
    SELECT MAX(block_number) AS max_block
    FROM blocks
    WHERE chain_id = :chain_id
    """
)

# Children first: nothing may reference a block that is already gone.
_RESET_ORDER = (TokenTransfersDB, SwapsDB, LogsDB, TransactionsDB, BlocksDB)


class SqlAlchemyBlockIngestor:
    """
    Indexer adapter: walks a block range of one chain and persists blocks,
    transactions, raw logs, tokens, token transfers and swaps.

    Strategy, per block in increasing order:
    - Fetch phase (RPC only): block with transactions, Transfer / V2 Swap /
      V3 Swap logs filtered by topic0, decoding, pair/token metadata,
      swap direction and stablecoin pricing -> BlockSnapshot.
    - Write phase (one DB transaction): compare the stored block hash; on
      mismatch delete every row derived from the stale block; then upsert
      everything from the snapshot.

    An RPC failure raises before anything of the block is written; a DB failure
    rolls the whole block back. Re-running a range is idempotent.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        chain: ChainConfig,
        fetcher: ChainFetcher,
        metadata: TokenMetadataResolver,
        transfer_decoder: EvmEventDecoder[DecodedTransfer] | None = None,
        v2_swap_decoder: EvmEventDecoder[DecodedV2Swap] | None = None,
        v3_swap_decoder: EvmEventDecoder[DecodedV3Swap] | None = None,
    ) -> None:
        self._engine = engine
        self._chain = chain
        self._fetcher = fetcher
        self._metadata = metadata
        self._transfer_decoder = transfer_decoder or Erc20TransferDecoder()
        self._v2_decoder = v2_swap_decoder or UniswapV2SwapDecoder()
        self._v3_decoder = v3_swap_decoder or UniswapV3SwapDecoder()

    @property
    def chain_id(self) -> int:
        return self._chain.chain_id

    def _check_chain(self, chain_id: int) -> None:
        if chain_id != self._chain.chain_id:
            raise ValueError(
                f"Ingestor is bound to chain_id={self._chain.chain_id}, got chain_id={chain_id}"
            )

    async def ingest_block_range(
        self,
        *,
        chain_id: int,
        from_block: int,
        to_block: int,
    ) -> None:
        self._check_chain(chain_id)
        logger.info(
            "Ingesting %s blocks %s..%s (chain_id=%s)",
            self._chain.name,
            from_block,
            to_block,
            chain_id,
        )

        reorgs = 0
        for block_number in range(from_block, to_block + 1):
            if await self.ingest_block(block_number):
                reorgs += 1

        logger.info(
            "Finished %s blocks %s..%s (reorgs=%s)",
            self._chain.name,
            from_block,
            to_block,
            reorgs,
        )

    async def ingest_block(self, block_number: int) -> bool:
        """Ingest one block. Returns True when a stale block was rolled back."""
        snapshot = await self.fetch_block_snapshot(block_number)
        reorged = await self.write_block_snapshot(snapshot)
        logger.debug(
            "Block %s: txs=%s logs=%s transfers=%s swaps=%s skipped=%s",
            block_number,
            len(snapshot.block.transactions),
            len(snapshot.logs),
            len(snapshot.transfers),
            len(snapshot.swaps),
            snapshot.skipped_logs,
        )
        return reorged

    async def last_processed_block(self, *, chain_id: int) -> int | None:
        async with self._engine.connect() as conn:
            result = await conn.execute(_LAST_PROCESSED_BLOCK_SQL, {"chain_id": chain_id})
            value = result.scalar_one_or_none()
        return int(value) if value is not None else None

    async def get_chain_head(self, *, chain_id: int) -> int:
        self._check_chain(chain_id)
        return await self._fetcher.get_block_number()

    # ---------------------------------------------------------------------
    # Fetch phase
    # ---------------------------------------------------------------------

    async def fetch_block_snapshot(self, block_number: int) -> BlockSnapshot:
        block = await self._fetcher.get_block(block_number)

        transfer_logs = await self._fetcher.get_logs(
            block_number=block_number, topic0=self._transfer_decoder.topic0
        )
        v2_logs = await self._fetcher.get_logs(block_number=block_number, topic0=self._v2_decoder.topic0)
        v3_logs = await self._fetcher.get_logs(block_number=block_number, topic0=self._v3_decoder.topic0)

        snapshot = BlockSnapshot(
            chain_id=self._chain.chain_id,
            block=block,
            logs=[*transfer_logs, *v2_logs, *v3_logs],
        )
        tx_senders = {tx.hash: tx.from_address for tx in block.transactions}

        for log in transfer_logs:
            await self._add_transfer(snapshot, log)

        for log in v2_logs:
            decoded = self._decode(self._v2_decoder, log, snapshot)
            if decoded is None:
                continue
            pair = await self._metadata.resolve_pair_tokens(self._chain.chain_id, log.address)
            if pair is None:
                snapshot.skipped_logs += 1
                continue
            legs = v2_swap_legs(
                pair=pair,
                amount0_in=decoded.amount0_in,
                amount1_in=decoded.amount1_in,
                amount0_out=decoded.amount0_out,
                amount1_out=decoded.amount1_out,
            )
            await self._add_swap(snapshot, log, legs, dex=DEX_UNISWAP_V2, trader=tx_senders.get(log.transaction_hash))

        for log in v3_logs:
            decoded = self._decode(self._v3_decoder, log, snapshot)
            if decoded is None:
                continue
            pool = await self._metadata.resolve_pool_tokens(self._chain.chain_id, log.address)
            if pool is None:
                snapshot.skipped_logs += 1
                continue
            legs = v3_swap_legs(pool=pool, amount0=decoded.amount0, amount1=decoded.amount1)
            await self._add_swap(snapshot, log, legs, dex=DEX_UNISWAP_V3, trader=tx_senders.get(log.transaction_hash))

        return snapshot

    def _decode(self, decoder: EvmEventDecoder[Any], log: ChainLog, snapshot: BlockSnapshot) -> Any | None:
        try:
            decoded = decoder.decode(log)
        except DecodeError as exc:
            logger.debug("Skipping malformed log: %s", exc)
            decoded = None
        if decoded is None:
            snapshot.skipped_logs += 1
        return decoded

    async def _token(self, snapshot: BlockSnapshot, address: str) -> TokenRecord:
        record = snapshot.tokens.get(address)
        if record is None:
            meta = await self._metadata.resolve_token_meta(self._chain.chain_id, address)
            record = TokenRecord(
                address=address,
                symbol=meta.symbol,
                decimals=meta.decimals,
                name=meta.name,
                placeholder=meta.placeholder,
                first_seen_block=snapshot.block.number,
                first_seen_at=datetime.fromtimestamp(snapshot.block.timestamp, tz=timezone.utc),
            )
            snapshot.tokens[address] = record
        return record

    async def _add_transfer(self, snapshot: BlockSnapshot, log: ChainLog) -> None:
        decoded = self._decode(self._transfer_decoder, log, snapshot)
        if decoded is None:
            return

        token = await self._token(snapshot, log.address)
        snapshot.transfers.append(
            TransferRecord(
                transaction_hash=log.transaction_hash,
                log_index=log.log_index,
                token=log.address,
                from_address=decoded.from_address,
                to_address=decoded.to_address,
                amount_raw=decoded.value,
                amount_dec=format_units(decoded.value, token.decimals),
            )
        )

    async def _add_swap(
        self,
        snapshot: BlockSnapshot,
        log: ChainLog,
        legs: SwapLegs | None,
        *,
        dex: str,
        trader: str | None,
    ) -> None:
        if legs is None:
            # ambiguous or zero-amount legs
            snapshot.skipped_logs += 1
            return

        token_in = await self._token(snapshot, legs.token_in)
        token_out = await self._token(snapshot, legs.token_out)
        usd_value, priced = price_stable_leg(
            legs=legs,
            decimals_in=token_in.decimals,
            decimals_out=token_out.decimals,
            stablecoins=self._chain.stablecoins,
        )

        snapshot.swaps.append(
            SwapRecord(
                transaction_hash=log.transaction_hash,
                log_index=log.log_index,
                dex=dex,
                pool=log.address,
                trader=trader,
                token_in=legs.token_in,
                token_out=legs.token_out,
                amount_in_raw=legs.amount_in,
                amount_out_raw=legs.amount_out,
                amount_in_dec=format_units(legs.amount_in, token_in.decimals),
                amount_out_dec=format_units(legs.amount_out, token_out.decimals),
                usd_value=usd_value,
                priced=priced,
            )
        )

    # ---------------------------------------------------------------------
    # Write phase
    # ---------------------------------------------------------------------

    async def write_block_snapshot(self, snapshot: BlockSnapshot) -> bool:
        chain_id = snapshot.chain_id
        block = snapshot.block
        reorged = False

        async with self._engine.begin() as conn:
            stored_hash = (
                await conn.execute(
                    select(BlocksDB.block_hash).where(
                        BlocksDB.chain_id == chain_id,
                        BlocksDB.block_number == block.number,
                    )
                )
            ).scalar_one_or_none()

            if stored_hash is not None and stored_hash.lower() != block.hash:
                reorg = ReorgDetected(
                    chain_id=chain_id,
                    block_number=block.number,
                    stored_hash=stored_hash,
                    canonical_hash=block.hash,
                )
                logger.warning("%s; rolling back stale block", reorg)
                await self._reset_block(conn, chain_id, block.number)
                reorged = True

            await self._upsert_snapshot(conn, snapshot)

        return reorged

    async def _reset_block(self, conn: AsyncConnection, chain_id: int, block_number: int) -> None:
        for model in _RESET_ORDER:
            await conn.execute(
                delete(model).where(
                    model.chain_id == chain_id,
                    model.block_number == block_number,
                )
            )

    async def _upsert_snapshot(self, conn: AsyncConnection, snapshot: BlockSnapshot) -> None:
        chain_id = snapshot.chain_id
        block = snapshot.block
        now = datetime.now(timezone.utc)

        await upsert_rows(
            conn,
            BlocksDB.__table__,
            [
                {
                    "chain_id": chain_id,
                    "block_number": block.number,
                    "block_hash": block.hash,
                    "parent_hash": block.parent_hash,
                    "timestamp": block.timestamp,
                }
            ],
            conflict_columns=("chain_id", "block_number"),
            update_columns=("block_hash", "parent_hash", "timestamp"),
        )

        await upsert_rows(
            conn,
            TransactionsDB.__table__,
            [
                {
                    "chain_id": chain_id,
                    "hash": tx.hash,
                    "block_number": block.number,
                    "from_address": tx.from_address,
                    "to_address": tx.to_address,
                    "value": tx.value,
                }
                for tx in block.transactions
            ],
            conflict_columns=("chain_id", "hash"),
            update_columns=("block_number", "from_address", "to_address", "value"),
        )

        await upsert_rows(
            conn,
            LogsDB.__table__,
            [
                {
                    "chain_id": chain_id,
                    "transaction_hash": log.transaction_hash,
                    "log_index": log.log_index,
                    "block_number": block.number,
                    "address": log.address,
                    "topic0": log.topic0,
                    "topics": list(log.topics),
                    "data": log.data,
                }
                for log in snapshot.logs
            ],
            conflict_columns=("chain_id", "transaction_hash", "log_index"),
            update_columns=("block_number", "address", "topic0", "topics", "data"),
        )

        # first_seen_* are never overwritten; metadata only replaces placeholders
        await upsert_rows(
            conn,
            TokensDB.__table__,
            [
                {
                    "chain_id": chain_id,
                    "address": token.address,
                    "symbol": token.symbol,
                    "decimals": token.decimals,
                    "name": token.name,
                    "placeholder": token.placeholder,
                    "first_seen_block": token.first_seen_block,
                    "first_seen_at": token.first_seen_at,
                    "updated_at": now,
                }
                for token in snapshot.tokens.values()
            ],
            conflict_columns=("chain_id", "address"),
            update_columns=("symbol", "decimals", "name", "placeholder", "updated_at"),
            where=lambda excluded: (TokensDB.__table__.c.placeholder == true())
            & (excluded.placeholder == false()),
        )

        await upsert_rows(
            conn,
            TokenTransfersDB.__table__,
            [
                {
                    "chain_id": chain_id,
                    "transaction_hash": t.transaction_hash,
                    "log_index": t.log_index,
                    "block_number": block.number,
                    "timestamp": block.timestamp,
                    "token": t.token,
                    "from_address": t.from_address,
                    "to_address": t.to_address,
                    "amount_raw": t.amount_raw,
                    "amount_dec": t.amount_dec,
                }
                for t in snapshot.transfers
            ],
            conflict_columns=("chain_id", "transaction_hash", "log_index"),
            update_columns=(
                "block_number",
                "timestamp",
                "token",
                "from_address",
                "to_address",
                "amount_raw",
                "amount_dec",
            ),
        )

        await upsert_rows(
            conn,
            SwapsDB.__table__,
            [
                {
                    "chain_id": chain_id,
                    "transaction_hash": s.transaction_hash,
                    "log_index": s.log_index,
                    "block_number": block.number,
                    "timestamp": block.timestamp,
                    "dex": s.dex,
                    "pool": s.pool,
                    "trader": s.trader,
                    "token_in": s.token_in,
                    "token_out": s.token_out,
                    "amount_in_raw": s.amount_in_raw,
                    "amount_out_raw": s.amount_out_raw,
                    "amount_in_dec": s.amount_in_dec,
                    "amount_out_dec": s.amount_out_dec,
                    "usd_value": Decimal(s.usd_value) if s.usd_value is not None else None,
                    "priced": s.priced,
                }
                for s in snapshot.swaps
            ],
            conflict_columns=("chain_id", "transaction_hash", "log_index"),
            update_columns=(
                "block_number",
                "timestamp",
                "dex",
                "pool",
                "trader",
                "token_in",
                "token_out",
                "amount_in_raw",
                "amount_out_raw",
                "amount_in_dec",
                "amount_out_dec",
                "usd_value",
                "priced",
            ),
        )
