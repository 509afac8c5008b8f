from __future__ import annotations

from sqlalchemy import BigInteger, Index, Integer, PrimaryKeyConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column

from smart_money_indexer.app.infrastructure.db.db_base import BaseDB


class BlocksDB(BaseDB):
    """
    Ingested EVM blocks.

    One row per (chain_id, block_number). The stored hash is compared with the
    canonical hash on every re-ingest; a mismatch means the row is stale and the
    block (with everything derived from it) is rolled back.
    """

    __tablename__ = "blocks"
    __table_args__ = (
        # Natural primary key: unique block per chain
        PrimaryKeyConstraint("chain_id", "block_number"),
        # Lookup by block hash on a given chain
        Index("ix_blocks_chain_hash", "chain_id", "block_hash"),
    )

    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_hash: Mapped[str] = mapped_column(Text, nullable=False)
    parent_hash: Mapped[str] = mapped_column(Text, nullable=False)

    # Block timestamp, unix seconds (UTC)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
